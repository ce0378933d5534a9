"""
Who is acting and on behalf of which request, readable from anywhere in
the call stack. Feeds request logging, sentry tags and audit breadcrumbs
"""

import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import Any

from sentry_sdk import set_tag as set_sentry_tag
from sentry_sdk import set_user as set_sentry_user

from src.common.enum import BaseEnum


class AppContextUserType(BaseEnum):
    UNKNOWN = 'UNKNOWN'  # Every entry point should override this
    USER = 'U'  # End user calling the HTTP api
    WORKFLOW = 'W'  # Workflow automation webhook
    SYSTEM = 'S'  # Scheduler ticks, dramatiq actors and tests


@dataclass
class AppContext:
    user_type: AppContextUserType = AppContextUserType.UNKNOWN
    user_id: str | None = None
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    client_ip: str | None = None
    breadcrumb: str | None = None


_app_context: ContextVar[AppContext | None] = ContextVar('_app_context', default=None)


def initialize(
    user_type: AppContextUserType = AppContextUserType.UNKNOWN,
    user_id: str | None = None,
    request_id: str | None = None,
    client_ip: str | None = None,
    breadcrumb: str | None = None,
) -> Token[AppContext | None]:
    app_ctx = AppContext(user_type=user_type, user_id=user_id, client_ip=client_ip, breadcrumb=breadcrumb)
    if request_id:
        app_ctx.request_id = request_id
    return _app_context.set(app_ctx)


def reset(token: Token[AppContext | None]) -> None:
    _app_context.reset(token)


def _get_context() -> AppContext:
    app_ctx = _app_context.get()
    if app_ctx is None:
        raise RuntimeError('Application context not initialized')
    return app_ctx


def _get_safe(attribute: str) -> Any:
    app_ctx = _app_context.get()
    return getattr(app_ctx, attribute) if app_ctx is not None else None


def set_user(user_type: AppContextUserType, user_id: str | None = None) -> None:
    app_ctx = _get_context()
    app_ctx.user_type = user_type
    app_ctx.user_id = user_id
    set_sentry_user({'id': user_id})


def set_request_id(request_id: str) -> None:
    _get_context().request_id = request_id
    set_sentry_tag('request_id', request_id)


def set_breadcrumb(breadcrumb: str) -> None:
    _get_context().breadcrumb = breadcrumb


def get_request_id() -> str:
    return _get_context().request_id


def get_user_type() -> AppContextUserType:
    return AppContextUserType(_get_context().user_type)


def get_breadcrumb() -> str | None:
    return _get_context().breadcrumb


# The get_safe_* readers never raise, logging calls them before any context exists
def get_safe_request_id() -> str | None:
    return _get_safe('request_id')


def get_safe_user_id() -> str | None:
    return _get_safe('user_id')


def get_safe_client_ip() -> str | None:
    return _get_safe('client_ip')
