"""
Pieces every outbound provider client shares: the send timeout, the
preview files the local backends write instead of delivering, and the
failover walk the live backends use across providers
"""

import abc
import datetime
import os
from collections.abc import Callable, Sequence
from typing import Any

import sentry_sdk
from loguru import logger

from src import settings
from src.common.exceptions import InternalException
from src.common.nanoid import generate_custom_nanoid


class OutboundClient(abc.ABC):
    """
    Provider clients raise ValueError from __init__ when their credentials
    are missing, the failover walk treats that as "not configured"
    """

    def __init__(self, *args, timeout: float | None = None, **kwargs):
        self.timeout = timeout or settings.DISPATCH_SETTINGS['SEND_TIMEOUT_SECONDS']


class PreviewWriter:
    def __init__(self, kind: str):
        self.kind = kind
        self.directory = settings.TEMP_DIR

        os.makedirs(self.directory, exist_ok=True)
        if not os.access(self.directory, os.W_OK):
            raise ValueError(f"Can't write to directory: {self.directory}")

    def path_for(self, label: str, extension: str) -> str:
        stamp = datetime.datetime.now().strftime('%Y%m%d-%H%M%S')
        return os.path.join(self.directory, f'{stamp}-{generate_custom_nanoid(size=4)}-{label}.{extension}')

    def write(self, label: str, extension: str, content: str) -> str:
        path = self.path_for(label, extension)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)

        logger.info(f'[FILE {self.kind.upper()}] Saved to: {path}')
        return path


def deliver_with_failover(
    client_classes: Sequence[type[OutboundClient]],
    deliver: Callable[[Any], Any],
    failure: type[InternalException],
    description: str,
    timeout: float | None = None,
) -> Any:
    """
    Tries each provider in order and returns the first successful result.
    `failure` raised by a provider moves on to the next one, anything
    unexpected aborts the walk wrapped in `failure`
    """
    for client_class in client_classes:
        name = client_class.__name__
        try:
            client = client_class(timeout=timeout)
        except ValueError as exc:
            logger.debug(f'skipping {name}: {exc}')
            continue

        try:
            return deliver(client)
        except failure:
            logger.warning(f'{name} failed, trying the next provider')
            sentry_sdk.capture_exception()
        except Exception as exc:
            logger.exception(f'Unexpected error with {name}')
            raise failure(message=f'Unexpected failure using {name}') from exc

    raise failure(message=f'Exhausted all providers for {description}')
