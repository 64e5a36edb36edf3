"""Main FastAPI application entry point."""

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.exception_handlers import setup_exception_handlers
from api.middleware.logging import RequestLoggingMiddleware
from api.middleware.request_id import RequestIDMiddleware
from api.middleware.security import SecurityHeadersMiddleware
from api.routes.health import router as health_router
from api.v1 import router as v1_router
from api.v1.dependencies import get_notification_service
from core.config import settings
from core.logging import setup_logging
from core.rate_limit import limiter, rate_limit_exceeded_handler

logger = structlog.get_logger()

setup_logging()

CLEANUP_INTERVAL_SECONDS = 86400


async def notification_queue_loop() -> None:
    """Poll pending events and purge old processed ones once a day."""
    service = get_notification_service()
    last_cleanup = time.monotonic()
    logger.info(
        "notification_queue_started",
        poll_interval_seconds=settings.queue_poll_interval_seconds,
        batch_size=settings.dispatch_batch_size,
    )
    while True:
        try:
            results = await service.process_pending()
            # A full batch usually means more are waiting.
            if len(results) >= settings.dispatch_batch_size:
                continue
        except Exception:
            logger.exception("notification_queue_poll_failed")

        if time.monotonic() - last_cleanup >= CLEANUP_INTERVAL_SECONDS:
            last_cleanup = time.monotonic()
            try:
                deleted = await service.cleanup_processed(settings.event_retention_days)
                logger.info("notification_cleanup_completed", deleted_count=deleted)
            except Exception:
                logger.exception("notification_cleanup_failed")

        await asyncio.sleep(settings.queue_poll_interval_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the queue poller for the lifetime of the app."""
    worker: asyncio.Task[None] | None = None
    if settings.queue_worker_enabled:
        worker = asyncio.create_task(notification_queue_loop())
    yield
    if worker is not None:
        worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            pass
        logger.info("notification_queue_stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        title=settings.app_name,
        description=(
            "## Notification Delivery\n\n"
            "Turns domain events into in-app and web push notifications, "
            "exactly once per event and according to each user's preferences.\n\n"
            "### Authentication\n"
            "- `/api/v1/users/me/*`: `Authorization: Bearer <jwt>`\n"
            "- `/api/v1/notification-events*`: `X-Service-Key: <key>` (event producers)\n\n"
            "### Live unread count\n"
            "`GET /api/v1/users/me/notifications/unread-count/stream` is a "
            "server-sent event stream of `unread_count` events."
        ),
        version="1.0.0",
        debug=settings.debug,
        openapi_tags=[
            {
                "name": "health",
                "description": "Health check endpoints",
            },
            {
                "name": "notification-events",
                "description": "Event ingest and dispatch for producers",
            },
            {
                "name": "notifications",
                "description": "Inbox, unread count and preferences",
            },
            {
                "name": "push",
                "description": "Web push device registration",
            },
        ],
    )

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # LIFO order: last added is outermost
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(v1_router, prefix="/api/v1")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=not settings.is_production,
    )
