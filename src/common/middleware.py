from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request

from src.common import context
from src.common.request import get_client_ip_address


class HTTPAppContextMiddleware(BaseHTTPMiddleware):
    """
    Every request gets a fresh application context before anything
    downstream (logging, sessions, rate limiting) reads from it
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint):
        token = context.initialize(
            user_type=context.AppContextUserType.USER,
            client_ip=get_client_ip_address(request),
            breadcrumb=f'{request.method} {request.url.path}',
        )
        try:
            return await call_next(request)
        finally:
            context.reset(token)
