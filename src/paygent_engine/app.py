"""FastAPI application factory for Paygent-Engine."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from paygent_engine.common.config import get_settings
from paygent_engine.common.exceptions import (
    AccessDeniedError,
    ConcurrencyConflictError,
    InsufficientCreditsError,
    NotFoundError,
    PaygentError,
    ValidationError,
)
from paygent_engine.common.logging import setup_logging
from paygent_engine.common.schemas import ErrorResponse, HealthResponse

_STATUS_BY_ERROR = (
    (NotFoundError, 404),
    (ValidationError, 400),
    (AccessDeniedError, 403),
    (InsufficientCreditsError, 409),
    (ConcurrencyConflictError, 409),
)


def status_for(exc: PaygentError) -> int:
    for error_cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return status
    return 500


def create_app() -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        setup_logging(settings.log_level)
        from paygent_engine.deps import get_db
        db = get_db()
        await db.init()
        await db.create_all()
        yield
        # Shutdown
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PaygentError)
    async def paygent_error_handler(request: Request, exc: PaygentError):
        body = ErrorResponse(
            error=exc.message or exc.__class__.__name__,
            code=exc.code,
            detail=exc.__class__.__name__,
        )
        return JSONResponse(status_code=status_for(exc), content=body.model_dump())

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from paygent_engine.catalog.router import router as catalog_router
    from paygent_engine.agents.router import router as agents_router
    from paygent_engine.customers.router import router as customers_router
    from paygent_engine.metering.router import router as metering_router
    from paygent_engine.credits.router import router as credits_router
    from paygent_engine.fees.router import router as fees_router
    from paygent_engine.analytics.router import router as analytics_router

    prefix = settings.api_prefix
    app.include_router(catalog_router, prefix=prefix)
    app.include_router(agents_router, prefix=prefix)
    app.include_router(customers_router, prefix=prefix)
    app.include_router(metering_router, prefix=prefix)
    app.include_router(credits_router, prefix=prefix)
    app.include_router(fees_router, prefix=prefix)
    app.include_router(analytics_router, prefix=prefix)

    return app
