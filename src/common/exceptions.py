import re
from typing import Any

import sentry_sdk
from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

# body.0.field -> body.field
LIST_INDEX = re.compile(r'\.[0-9]+(?=\.|$)')


class InternalException(Exception):
    """
    Base for every domain error. Subclasses carry their own status_code and
    default_code so they render without translation in the view layer,
    context is merged into the response body
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Internal failure.'
    default_code = 'internal_failure'

    def __init__(self, message: str | None = None, context: dict[Any, Any] | Any = None):
        self.message = message or self.default_detail
        self.context = context or {}

    def __str__(self) -> str:
        return f'{type(self).__name__}({self.message})'

    def response_headers(self) -> dict[str, str] | None:
        return None


class APIException(Exception):
    """
    Raised by routers for request problems that never reach a service
    """

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid Request.'

    def __init__(
        self,
        message: str | None = None,
        code: int | None = None,
        error_type: str | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.message = message or self.default_detail
        self.code = code or self.status_code
        self.error_type = error_type
        self.headers = headers


def _render(status_code: int, content: dict, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content), headers=headers)


def validation_fingerprint(errors: list[dict]) -> list[str]:
    """
    "type:location" per error with list indexes dropped, the same bad field
    at any list position groups into one sentry issue
    """
    fingerprint = set()
    for error in errors:
        if 'loc' not in error:
            continue
        location = LIST_INDEX.sub('', '.'.join(str(part) for part in error['loc']))
        fingerprint.add(f"{error['type']}:{location}")
    return sorted(fingerprint)


async def internal_exception_handler(request: Request, exc: InternalException) -> JSONResponse:
    # 4xx are expected outcomes such as a wrong code
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.exception(exc)
    else:
        logger.warning(f'{exc} on {request.method} {request.url.path}')

    content = {'detail': exc.message, 'error_type': exc.default_code}
    if isinstance(exc.context, dict):
        for key, value in exc.context.items():
            content.setdefault(key, value)
    return _render(exc.status_code, content, headers=exc.response_headers())


async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    content = {'detail': exc.message}
    if exc.error_type:
        content['error_type'] = exc.error_type
    return _render(exc.code, content, headers=exc.headers)


async def inbound_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()

    fingerprint = validation_fingerprint(errors)
    if fingerprint:
        scope = sentry_sdk.get_current_scope()
        transaction_name = scope.transaction.name if scope.transaction else 'unknown'
        scope.fingerprint = [transaction_name, *fingerprint]
    sentry_sdk.capture_exception(exc)

    detail = [
        {'loc': error['loc'], 'message': error['msg'], 'input': error.get('input'), 'type': error['type']}
        for error in errors
    ]
    return _render(status.HTTP_422_UNPROCESSABLE_ENTITY, {'detail': detail})
