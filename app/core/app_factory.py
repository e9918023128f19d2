"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
owns the lifecycle of the rate limiter: it is built here, stored on
``app.state.rate_limiter`` and its sweeper is stopped on shutdown.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api.routes import health_router, medications_router, rate_limits_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.services.rate_limiter import FixedWindowRateLimiter


def create_app(rate_limiter: FixedWindowRateLimiter | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        rate_limiter: Limiter to use (tests inject one with a fake clock). A
            new one is built from settings when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    limiter = rate_limiter or FixedWindowRateLimiter(
        sweep_interval_seconds=settings.app.rate_limit_sweep_interval_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            limiter.close()

    app = FastAPI(
        title="MedTrack API",
        description=(
            "Backend for the medication tracker: rule-based dosage and schedule "
            "suggestions behind per-user fixed-window rate limits. Responses carry "
            "X-RateLimit-Limit, X-RateLimit-Remaining and X-RateLimit-Reset headers; "
            "throttled requests get HTTP 429."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.rate_limiter = limiter

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(medications_router, prefix="/v1")
    app.include_router(rate_limits_router, prefix="/v1")
    app.include_router(health_router)

    return app
