"""
PURPOSE: Main FastAPI application factory and lifecycle management for momentum-sync.

Initializes the FastAPI application with:
- The webhook router
- Rate limiting (slowapi)
- Exception handlers mapping the error taxonomy to HTTP responses
- Startup events (logging, schema migration)
- Shutdown events (engine disposal)
"""

from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from momentum_sync import __version__
from momentum_sync.api import api_router
from momentum_sync.config.settings import settings
from momentum_sync.core.errors import (
    ExternalSyncError,
    MomentumSyncError,
    StorageError,
    ValidationError,
)
from momentum_sync.core.rate_limit import limiter
from momentum_sync.db.engine import engine, init_schema
from momentum_sync.utils.logger import get_logger, setup_logging


logger = get_logger(__name__)


# ════════════════════════════════════════════════════════════════
# Lifecycle Events
# ════════════════════════════════════════════════════════════════


async def on_startup() -> None:
    """
    PURPOSE: Execute startup tasks: logging setup and schema migration.

    CALLED BY: FastAPI lifespan startup
    """
    try:
        setup_logging(settings.LOG_LEVEL)
        logger.info(
            "application_startup_starting",
            version=__version__,
            log_level=settings.LOG_LEVEL,
            sheet_sync_enabled=settings.sheets_enabled(),
            signal_policy=settings.SIGNAL_POLICY,
        )

        await init_schema()

        logger.info("application_startup_complete")

    except Exception as e:
        logger.critical("application_startup_failed", error=str(e))
        raise


async def on_shutdown() -> None:
    """
    PURPOSE: Execute shutdown tasks to gracefully close resources.

    CALLED BY: FastAPI lifespan shutdown
    """
    logger.info("application_shutdown_starting")
    await engine.dispose()
    logger.info("application_shutdown_complete")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    PURPOSE: Manage application lifespan with startup and shutdown events.

    Args:
        app: FastAPI application instance

    Yields:
        None
    """
    await on_startup()

    yield

    await on_shutdown()


# ════════════════════════════════════════════════════════════════
# Exception Handlers
# ════════════════════════════════════════════════════════════════


def _error_status(exc: MomentumSyncError) -> int:
    if isinstance(exc, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, ExternalSyncError):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def pipeline_exception_handler(
    request: Request,
    exc: MomentumSyncError
) -> JSONResponse:
    """
    PURPOSE: Map the pipeline error taxonomy to HTTP responses.

    ValidationError -> 400 (nothing stored). StorageError -> 500 with
    stored=false. ExternalSyncError -> 502 with stored=true, so operators can
    tell the local record is fine and only the sheet mirror lagged.

    Args:
        request: HTTP request that raised
        exc: Pipeline exception

    Returns:
        JSONResponse: Error body tagged with the error family
    """
    status_code = _error_status(exc)
    content: Dict[str, Any] = {
        "status": "error",
        "error": exc.code,
        "detail": exc.message,
    }
    if exc.ticker is not None:
        content["ticker"] = exc.ticker

    if isinstance(exc, ExternalSyncError):
        content.update(stored=True, sync="failed", retryable=exc.retryable)
    elif isinstance(exc, StorageError):
        content["stored"] = False

    log = logger.warning if status_code < 500 else logger.error
    log(
        "request_failed",
        path=request.url.path,
        method=request.method,
        error=exc.code,
        detail=exc.message,
        status_code=status_code,
    )

    return JSONResponse(status_code=status_code, content=content)


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    PURPOSE: Handle Pydantic validation errors with consistent JSON response.

    CALLED BY: FastAPI when request validation fails (e.g. body is not a JSON object)
    """
    logger.warning(
        "request_validation_failed",
        path=request.url.path,
        method=request.method,
        error_count=len(exc.errors())
    )

    safe_errors = jsonable_encoder(
        exc.errors(),
        custom_encoder={
            ValueError: lambda e: str(e),
            Exception: lambda e: str(e),
        },
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "status": "error",
            "detail": "Request validation failed",
            "errors": safe_errors,
        },
    )


async def general_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    PURPOSE: Handle unexpected exceptions with logging and safe error response.
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exception_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "status": "error",
            "detail": "Internal server error",
        },
    )


# ════════════════════════════════════════════════════════════════
# FastAPI Application Factory
# ════════════════════════════════════════════════════════════════


def create_app() -> FastAPI:
    """
    PURPOSE: Create and configure FastAPI application with routers, rate limiting and handlers.

    CALLED BY: Application entrypoint (uvicorn, docker, etc)

    Returns:
        FastAPI: Configured FastAPI application ready to run

    Raises:
        ValueError: If PRIMARY_INDICATOR or SIGNAL_POLICY is misconfigured
    """
    # Fail fast on an indicator policy the normalizer cannot honour
    settings.validate_policy()

    app = FastAPI(
        title="momentum-sync",
        description="TradingView indicator webhooks mirrored to Google Sheets",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.include_router(api_router)

    @app.get("/", tags=["root"])
    async def root():
        """
        PURPOSE: Root endpoint for API availability check.

        CALLED BY: Load balancers, basic connectivity tests
        """
        return {
            "status": "ok",
            "service": "momentum-sync",
            "version": __version__,
        }

    app.add_exception_handler(MomentumSyncError, pipeline_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info(
        "fastapi_application_created",
        version=__version__,
        sheet_sync_enabled=settings.sheets_enabled(),
    )

    return app


# Create the application
app = create_app()


if __name__ == "__main__":
    """
    PURPOSE: Run FastAPI application with Uvicorn server.

    Usage:
        python -m momentum_sync.main
        OR
        uvicorn momentum_sync.main:app --host 0.0.0.0 --port 8090
    """
    import uvicorn

    uvicorn.run(
        "momentum_sync.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
