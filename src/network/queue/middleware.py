import threading
import time

import sentry_sdk
from dramatiq.errors import Retry
from dramatiq.middleware import Middleware
from loguru import logger
from sentry_sdk.integrations.logging import ignore_logger

from src import settings
from src.common import context


class DramatiqAppContextMiddleware(Middleware):
    """
    Actors run under a SYSTEM app context whose request id is the message id,
    worker log lines correlate with the message that produced them
    """

    _state = threading.local()

    def before_process_message(self, broker, message):
        self._state.token = context.initialize(
            user_type=context.AppContextUserType.SYSTEM,
            request_id=message.message_id,
            breadcrumb=message.actor_name,
        )
        self._state.started_at = time.monotonic()
        logger.info(f'processing {message.actor_name} {message.message_id}')

    def after_process_message(self, broker, message, *, result=None, exception=None):
        duration = time.monotonic() - getattr(self._state, 'started_at', time.monotonic())
        if exception is None:
            logger.info(f'completed {message.actor_name} {message.message_id} in {duration:.2f}s')
        else:
            logger.warning(f'failed {message.actor_name} {message.message_id} after {duration:.2f}s: {exception!r}')

        token = getattr(self._state, 'token', None)
        if token is not None:
            context.reset(token)
            self._state.token = None

    after_skip_message = after_process_message


class SentryMiddleware(Middleware):
    """
    Reports actor failures, dramatiq Retry and an actor's declared `throws` are expected
    """

    def __init__(self):
        if not settings.USE_MOCK_SENTRY_CLIENT:
            # Failures are reported here, the worker thread's error log would duplicate them
            ignore_logger('dramatiq.worker.WorkerThread')
            sentry_sdk.init(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT)

    def after_process_message(self, broker, message, *, result=None, exception=None):
        if exception is None or not sentry_sdk.get_client().is_active():
            return

        actor = broker.get_actor(message.actor_name)
        throws = message.options.get('throws') or actor.options.get('throws')
        if isinstance(exception, Retry) or (throws and isinstance(exception, throws)):
            return

        with sentry_sdk.new_scope() as scope:
            scope.set_transaction_name(message.actor_name)
            scope.set_tag('worker_message_id', message.message_id)
            sentry_sdk.capture_exception(exception)
