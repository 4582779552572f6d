from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from .core.config import get_settings, Settings
from .core.logging import init_logging, request_context_middleware
from .core import errors
from .routers import health, rates
from .services.rates.exceptions import (
    InvalidAmountError,
    InvalidInstrumentError,
    InvalidRateError,
    RateUnavailableError,
)
from .services.rates.resolver import RateResolver, build_rate_resolver, get_rate_resolver
from .services.rates.validator import FeeInfoClient


def create_app(
    settings_override: Settings | None = None,
    *,
    resolver: RateResolver | None = None,
    validator_client: FeeInfoClient | None = None,
) -> FastAPI:
    """Application factory.

    settings_override: pass an already constructed Settings instance for tests
    to isolate environment. Falls back to cached get_settings().
    resolver: a prebuilt resolver (tests inject fakes here). Without one, a
    resolver is built from settings_override / validator_client when either
    is given; otherwise the app shares the process-wide get_rate_resolver()
    with the module-level convenience functions.
    """
    if settings_override is not None:
        settings_override.init_post_load()
    settings = settings_override or get_settings()
    # Initialize logging early
    init_logging(debug=settings.debug)

    if resolver is not None:
        rate_resolver = resolver
    elif settings_override is None and validator_client is None:
        rate_resolver = get_rate_resolver()
    else:
        rate_resolver = build_rate_resolver(settings, validator_client=validator_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await rate_resolver.aclose()

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.rate_resolver = rate_resolver

    # Middleware (request id / structured logging)
    app.middleware("http")(request_context_middleware)

    # Error handlers
    app.add_exception_handler(StarletteHTTPException, errors.http_exception_handler)
    app.add_exception_handler(RequestValidationError, errors.validation_error_handler)
    for exc_cls in (InvalidInstrumentError, InvalidAmountError, InvalidRateError):
        app.add_exception_handler(exc_cls, errors.invalid_input_handler)
    app.add_exception_handler(RateUnavailableError, errors.rate_unavailable_handler)
    app.add_exception_handler(ZeroDivisionError, errors.zero_rate_handler)
    app.add_exception_handler(Exception, errors.server_error_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(rates.router)

    @app.get("/")
    async def root():
        return {"message": "Exchange Rate Resolver API", "version": settings.version}

    return app


app = create_app()
