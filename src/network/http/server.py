from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from loguru import logger
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.errors import ServerErrorMiddleware

from src import settings
from src.common.exceptions import (
    APIException,
    InternalException,
    api_exception_handler,
    inbound_validation_exception_handler,
    internal_exception_handler,
)
from src.common.middleware import HTTPAppContextMiddleware
from src.common.rate_limit import FixedWindowRateLimiter
from src.common.request import RequestResponseMiddleware
from src.common.security_headers import SecurityHeadersMiddleware
from src.network.database.middleware import HTTPSessionManagerMiddleware
from src.network.http.router import api_router

# Probes would otherwise use up most of the transaction quota
UNSAMPLED_PATHS = {'/healthcheck/api', '/healthcheck/database'}


def traces_sampler(sampling_context: dict) -> float:
    asgi_scope = sampling_context.get('asgi_scope') or {}
    if asgi_scope.get('path') in UNSAMPLED_PATHS:
        return 0
    return settings.SENTRY_DEFAULT_SAMPLE_RATE


def configure_sentry() -> None:
    if settings.USE_MOCK_SENTRY_CLIENT:
        return

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        # Wrong codes and lockouts are expected outcomes, not errors
        ignore_errors=[APIException, InternalException],
        environment=settings.ENVIRONMENT,
        integrations=[StarletteIntegration(), FastApiIntegration()],
        traces_sampler=traces_sampler,
        send_default_pii=False,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f'{app.title} is ready! dispatch mode: {settings.DISPATCH_SETTINGS["MODE"]}')
    yield
    logger.info('💀 Shutting down!')


def add_middleware(app: FastAPI) -> None:
    # add_middleware inserts at 0, the last one added runs first
    app.add_middleware(SecurityHeadersMiddleware)
    # Request transaction, committed for client errors so failure counters persist
    app.add_middleware(HTTPSessionManagerMiddleware, commit_on_success=settings.ATOMIC_REQUESTS)
    app.add_middleware(RequestResponseMiddleware)
    app.add_middleware(HTTPAppContextMiddleware)

    if settings.DEBUG:
        app.add_middleware(ServerErrorMiddleware, debug=True)

    if settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
            allow_credentials=True,
            allow_methods=settings.CORS_ALLOWED_METHODS,
            allow_headers=settings.CORS_ALLOWED_HEADERS,
            # The UI reads the lockout countdown from Retry-After
            expose_headers=['Retry-After', 'X-Request-ID'],
        )


def add_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, inbound_validation_exception_handler)
    app.add_exception_handler(InternalException, internal_exception_handler)
    app.add_exception_handler(APIException, api_exception_handler)


def create_server() -> FastAPI:
    configure_sentry()
    app = FastAPI(
        title=settings.API_TITLE,
        description=settings.API_DESCRIPTION,
        version='0.1.0',
        lifespan=lifespan,
        openapi_url=f'{settings.API_PREFIX}/openapi.json' if settings.IS_LOCAL else None,
        docs_url='/docs' if settings.IS_LOCAL else None,
        redoc_url='/redoc' if settings.IS_LOCAL else None,
        generate_unique_id_function=lambda route: route.name,
        redirect_slashes=False,
        separate_input_output_schemas=False,
    )
    # Read by the verification routes, tests swap in a fresh limiter
    app.state.rate_limiter = FixedWindowRateLimiter()

    add_middleware(app)
    add_exception_handlers(app)
    app.include_router(api_router, prefix=settings.API_PREFIX)
    return app


server = create_server()
