"""Application factory for the FastAPI app.

Outbound clients live for the lifetime of the app: the lifespan opens one
``httpx.AsyncClient``, one rate limiter and one technique service per process
and publishes them on ``app.state``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI

from grc_records.adapters.http.secure_fetch import FetchPolicy, SecureFetcher
from grc_records.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from grc_records.api.routes import health_router, mitre_router
from grc_records.core.config import Settings, settings as default_settings
from grc_records.core.exception_handlers import setup_exception_handlers
from grc_records.core.logging import configure_logging
from grc_records.core.middleware import request_id_middleware
from grc_records.core.openapi import apply_openapi_customizations
from grc_records.services.mitre_service import MitreAttackService

logger = logging.getLogger(__name__)


def build_mitre_service(client: httpx.AsyncClient, app_settings: Settings) -> MitreAttackService:
    """Wire the limiter, secure fetcher and cache around a shared HTTP client."""
    mitre = app_settings.mitre
    limiter = SlidingWindowRateLimiter(
        max_requests=mitre.rate_limit_requests,
        window_seconds=mitre.rate_limit_window_seconds,
    )
    fetcher = SecureFetcher(
        client,
        limiter,
        FetchPolicy.from_settings(mitre, app_settings.app_env),
    )
    return MitreAttackService.from_settings(fetcher, mitre, app_settings.app_env)


def create_app(
    app_settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to use instead of the module-level instance.
        transport: Optional httpx transport for the outbound client (tests
            pass an ``httpx.MockTransport``).
    """
    app_settings = app_settings or default_settings
    configure_logging(app_settings.log)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with httpx.AsyncClient(transport=transport, follow_redirects=False) as client:
            app.state.mitre_service = build_mitre_service(client, app_settings)
            logger.info("app.started", extra={"app_env": app_settings.app_env})
            yield
        logger.info("app.stopped")

    app = FastAPI(
        title="GRC Records API",
        description=(
            "Threat-intelligence lookups for the GRC register. Techniques come from the "
            "official MITRE ATT&CK STIX feed through a rate limited, time bounded and "
            "validated fetch. Requires X-API-Key."
        ),
        version="0.1.0",
        debug=app_settings.app.debug,
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(mitre_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)
    return app
