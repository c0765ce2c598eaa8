"""
Diamond Dulceria API application.

The lifespan builds the Stripe and SES clients once, stores them on
``app.state`` for the dependencies in ``dulceria.api.deps`` and runs the
notification outbox loop. Storefront, checkout and webhook routes live
under ``/api``; the dashboard under ``/api/admin``.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from dulceria.api.v1.admin import router as admin_router
from dulceria.api.v1.admin_catalog import router as admin_catalog_router
from dulceria.api.v1.admin_content import router as admin_content_router
from dulceria.api.v1.checkout import router as checkout_router
from dulceria.api.v1.storefront import router as storefront_router
from dulceria.api.v1.webhooks import router as webhooks_router
from dulceria.core.config import get_settings
from dulceria.core.logging import (
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    log_performance,
    set_request_id,
)
from dulceria.core.rate_limit import limiter
from dulceria.database.connection import check_database_health, close_database_connections
from dulceria.services.notifications.ses_client import SESClient
from dulceria.services.notifications.service import dispatch_outbox
from dulceria.services.payments.stripe_client import StripeClient

configure_logging()
logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


async def dispatch_notifications_periodically(ses_client: SESClient, interval: int) -> None:
    """Drain the outbox every ``interval`` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            await dispatch_outbox(ses_client)
        except Exception as e:
            logger.error(
                "Notification dispatch loop iteration failed",
                error=str(e),
                error_type=type(e).__name__,
            )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger.info(
        "Application starting",
        environment=settings.environment,
        version=settings.app_version,
    )

    with log_performance(logger, "application_startup"):
        app.state.stripe_client = StripeClient.from_settings(settings)
        app.state.ses_client = SESClient.from_settings(settings)

    dispatch_task: Optional[asyncio.Task] = None
    if settings.environment != "test":
        dispatch_task = asyncio.create_task(
            dispatch_notifications_periodically(
                app.state.ses_client, settings.notification_dispatch_interval
            )
        )

    yield

    logger.info("Application shutting down")
    if dispatch_task is not None:
        dispatch_task.cancel()
        try:
            await dispatch_task
        except asyncio.CancelledError:
            pass
    await close_database_connections()


settings = get_settings()
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Diamond Dulceria storefront and admin API",
    lifespan=lifespan,
    debug=settings.debug,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """Bind a request id for log correlation and echo it on the response."""
    request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
    try:
        with log_performance(
            logger,
            "http_request",
            method=request.method,
            path=request.url.path,
        ):
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    finally:
        clear_context()


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    logger.warning("Request validation failed", path=request.url.path, errors=details)

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation Error",
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": details,
            "request_id": get_request_id(),
        },
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the failure and return a generic 500 without internal details."""
    logger.error(
        "Unhandled exception",
        method=request.method,
        path=request.url.path,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal Server Error",
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "request_id": get_request_id(),
        },
    )


@app.get("/health", tags=["Health"], summary="Liveness probe")
async def health_check() -> dict[str, str]:
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }


@app.get("/ready", tags=["Health"], summary="Readiness probe")
async def readiness_check():
    """Report 503 while the database is unreachable."""
    if not await check_database_health():
        logger.warning("Readiness check failed", database="unhealthy")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "database": "unhealthy"},
        )
    return {"status": "ready", "database": "healthy"}


app.include_router(storefront_router, prefix="/api")
app.include_router(checkout_router, prefix="/api")
app.include_router(webhooks_router, prefix="/api")

app.include_router(admin_router, prefix="/api/admin")
app.include_router(admin_catalog_router, prefix="/api/admin")
app.include_router(admin_content_router, prefix="/api/admin")
