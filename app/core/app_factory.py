"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build isolated instances.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from app.api.routes import health_router, rate_limits_router, scraping_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Outreach Guard API",
        description=(
            "Guard services for the outreach message generator: per-user "
            "sliding-window rate limits backed by Firestore and SSRF checks "
            "for URLs scraped during contact enrichment."
        ),
        version="0.1.0",
        debug=settings.app.debug,
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(scraping_router, prefix="/v1")
    app.include_router(rate_limits_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    logger.info(
        "app.created",
        extra={
            "app_env": settings.app_env,
            "rate_limit_backend": settings.app.rate_limit_backend,
            "rate_limit_enabled": settings.app.rate_limit_enabled,
        },
    )
    return app
