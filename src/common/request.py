import time
import uuid

from fastapi import status
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request

from src.common import context

REQUEST_ID_HEADER = 'X-Request-ID'


def get_user_ip_address_from_header(forwarded_header: str | None) -> str:
    """
    x-forwarded-for lists every proxy hop, the first entry is the client
    """
    if not forwarded_header:
        return ''
    return forwarded_header.split(',')[0].strip()


def get_client_ip_address(request: Request) -> str:
    forwarded_ip = get_user_ip_address_from_header(request.headers.get('x-forwarded-for'))
    if forwarded_ip:
        return forwarded_ip
    return request.client.host if request.client else 'unknown'


def log_level_for(status_code: int) -> str:
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return 'ERROR'
    if status_code >= status.HTTP_400_BAD_REQUEST:
        return 'WARNING'
    return 'INFO'


class RequestResponseMiddleware(BaseHTTPMiddleware):
    """
    One access log line per request, carrying the request id the load
    balancer assigned (or a fresh one) so every log line below it correlates
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint):
        started_at = time.time()
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        context.set_request_id(request_id)

        client_ip = get_client_ip_address(request)

        def access_log(status_code: int):
            meta = dict(
                endpoint=request.url.path,
                http_method=request.method,
                http_status_code=status_code,
                user_agent=request.headers.get('user-agent', 'unknown'),
                user_ip=client_ip,
                duration=round(time.time() - started_at, 3),
            )
            logger.bind(**meta).log(
                log_level_for(status_code), f'{client_ip} {request.method.upper()} {request.url.path} {status_code}'
            )

        with logger.contextualize(request_id=request_id):
            try:
                response = await call_next(request)
            except Exception:
                access_log(status.HTTP_500_INTERNAL_SERVER_ERROR)
                raise
            access_log(response.status_code)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
