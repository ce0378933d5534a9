from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from src import settings

PERMISSIONS_POLICY = ', '.join(
    f'{feature}=()'
    for feature in ['accelerometer', 'camera', 'geolocation', 'gyroscope', 'magnetometer', 'microphone', 'payment', 'usb']
)


def build_security_headers() -> dict[str, str]:
    if not settings.ENABLE_SECURITY_HEADERS:
        return {}

    headers = {
        'X-Frame-Options': 'DENY',
        'X-Content-Type-Options': 'nosniff',
        'Referrer-Policy': 'strict-origin-when-cross-origin',
        'Permissions-Policy': PERMISSIONS_POLICY,
        # Verification outcomes and credentials must never be cached
        'Cache-Control': 'no-store',
    }
    if settings.CSP_POLICY:
        headers['Content-Security-Policy'] = settings.CSP_POLICY
    if settings.ENABLE_HSTS:
        headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains; preload'
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, headers: dict[str, str] | None = None):
        super().__init__(app)
        self.headers = build_security_headers() if headers is None else headers

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers.update(self.headers)
        return response
