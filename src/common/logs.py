import json
import logging
import sys
from typing import Any

from loguru import logger

from src import settings
from src.common import context

LEVEL_ICONS = {
    logging.DEBUG: '🔬',
    logging.WARNING: '⚠️',
    logging.ERROR: '💣💥',
    logging.CRITICAL: '🚨',
}

# Stdlib loggers that only duplicate what our middleware already logs
SILENCED_LOGGERS = ['uvicorn.access']


class InterceptHandler(logging.Handler):
    """
    Routes stdlib logging (uvicorn, sqlalchemy, dramatiq, apscheduler) into loguru
    https://loguru.readthedocs.io/en/stable/overview.html#entirely-compatible-with-standard-logging
    """

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Report the frame that called logging, not logging itself
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def bind_app_context(record: dict[str, Any]) -> None:
    """
    Patcher run for every record. The request middleware contextualizes
    request_id, anything logged outside a request falls back to the app context
    """
    extra = record['extra']
    if not extra.get('request_id'):
        extra['request_id'] = context.get_safe_request_id() or ''
    extra['user_id'] = context.get_safe_user_id() or ''
    extra['client_ip'] = context.get_safe_client_ip() or ''


def deployed_log_formatter(record: dict[str, Any]) -> str:
    """
    One JSON document per line for the log shipper
    """
    payload = {
        'timestamp': record['time'].strftime('%Y-%m-%dT%H:%M:%S,%f'),
        'level': record['level'].name,
        'logger': record['name'],
        'message': record['message'],
        **{key: value for key, value in record['extra'].items() if key != 'serialized'},
    }
    if record['exception'] is not None:
        exc_value = record['exception'].value
        payload['error'] = {'exception_type': type(exc_value).__name__, 'message': str(exc_value)}

    record['extra']['serialized'] = json.dumps(payload, default=str)
    return '{extra[serialized]}\n'


def local_log_formatter(record: dict[str, Any]) -> str:
    level = record['level'].no
    duration = record['extra'].get('duration')
    if duration is not None and level < logging.WARNING:
        # Request log lines lead with the endpoint duration
        meta = f'<magenta>⏱️ {duration}s</magenta>'
        location = ''
    else:
        meta = LEVEL_ICONS.get(level, '✏️')
        location = ' <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan>'

    log_format = '<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> ' f'| {meta}{location} - <level>{{message}}</level>\n'

    if record['exception'] is not None:
        if settings.DEBUG:
            print_rich_traceback(record['exception'])
        else:
            log_format += '{exception}\n'
    return log_format


def print_rich_traceback(exception: Any) -> None:
    from rich.console import Console
    from rich.traceback import Traceback

    exc_type, exc_value, exc_traceback = exception
    Console(stderr=True).print(
        Traceback.from_exception(
            exc_type=exc_type,
            exc_value=exc_value,
            traceback=exc_traceback,
            show_locals=True,
            locals_max_length=5,
            locals_max_string=25,
            locals_hide_dunder=True,
            max_frames=10,
        )
    )


def configure_logging() -> None:
    logging.root.handlers = [InterceptHandler()]
    logging.root.setLevel(settings.LOG_LEVEL)
    for name in list(logging.root.manager.loggerDict):
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True
    for name in SILENCED_LOGGERS:
        logging.getLogger(name).propagate = False

    logger.remove()
    logger.configure(patcher=bind_app_context)
    logger.add(
        sys.stdout,
        level=settings.LOG_LEVEL,
        format=deployed_log_formatter if settings.IS_DEPLOYED_ENV else local_log_formatter,
        backtrace=False,
        # Locals could hold codes and secrets
        diagnose=False,
    )
    logger.info(f'logging level: {settings.LOG_LEVEL}')
