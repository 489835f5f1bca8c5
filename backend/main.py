"""Contentbot Delivery Engine - FastAPI application.

Exposes the cron triggers that drive webhook retries and social publishing,
plus the webhook settings endpoints and health probes.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.middleware.rate_limit import limiter
from api.routes import api_router
from infrastructure.config import get_settings
from infrastructure.database import close_db, init_db
from infrastructure.logging_config import setup_logging

settings = get_settings()
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
MAX_BODY_BYTES = 64 * 1024


def _init_sentry() -> None:
    """Turn on Sentry when SENTRY_DSN is configured and well-formed."""
    dsn = settings.sentry_dsn
    if not dsn:
        return
    if not dsn.startswith("https://"):
        logger.warning("Ignoring malformed SENTRY_DSN: %s...", dsn[:30])
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.httpx import HttpxIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=dsn,
        environment=settings.environment,
        integrations=[
            FastApiIntegration(transaction_style="url"),
            SqlalchemyIntegration(),
            HttpxIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        send_default_pii=False,
    )
    logger.info("Sentry enabled for %s", settings.environment)


_init_sentry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(
        json_output=settings.is_production and not settings.debug,
        level="DEBUG" if settings.debug else "INFO",
    )
    settings.validate_production_secrets()

    logger.info(
        "Starting %s v%s (%s): backoff base %ss, max %s attempts, social pacing %sms",
        settings.app_name,
        settings.app_version,
        settings.environment,
        settings.retry_base_delay_seconds,
        settings.default_max_attempts,
        settings.social_post_pacing_ms,
    )
    if not settings.cron_secret:
        logger.warning("CRON_SECRET is not set; cron triggers are unauthenticated")

    if settings.is_development:
        await init_db()

    yield

    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.app_name,
    description="Cron-triggered retry scheduler for webhook deliveries and social posts",
    version=settings.app_version,
    docs_url="/docs" if settings.is_development else None,
    redoc_url=None,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    request_id = getattr(request.state, "request_id", None)
    if settings.is_production:
        # Exception text can carry connection strings; keep it short
        logger.error(
            "Unhandled %s on %s: %s",
            type(exc).__name__,
            request.url.path,
            str(exc)[:200],
            extra={"request_id": request_id},
        )
    else:
        logger.exception("Unhandled error on %s", request.url.path, extra={"request_id": request_id})
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.middleware("http")
async def reject_large_bodies(request: Request, call_next):
    length = request.headers.get("content-length")
    if length and length.isdigit() and int(length) > MAX_BODY_BYTES:
        return JSONResponse(status_code=413, content={"detail": "Request body too large"})
    return await call_next(request)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag each request with an ID, time it and log it."""
    request_id = request.headers.get("X-Request-ID")
    try:
        uuid.UUID(request_id or "")
    except ValueError:
        request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = round((time.perf_counter() - start) * 1000, 1)

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Response-Time"] = f"{duration_ms}ms"
    response.headers["X-Content-Type-Options"] = "nosniff"

    path = request.url.path
    # Probes hit every few seconds
    if not path.startswith(f"{API_PREFIX}/health"):
        logger.info(
            "%s %s %s %.1fms",
            request.method,
            path,
            response.status_code,
            duration_ms,
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
    return response


app.include_router(api_router, prefix=API_PREFIX)


@app.get("/")
async def root():
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "triggers": [
            f"{API_PREFIX}/cron/webhook-retries",
            f"{API_PREFIX}/cron/publish-social-posts",
        ],
        "health": f"{API_PREFIX}/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        workers=1 if settings.is_development else settings.workers,
    )
