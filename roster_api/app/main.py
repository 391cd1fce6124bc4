"""
Main entrypoint for the Volunteer Roster API.

``create_app`` configures logging, registers the error handlers and
the versioned routers and wires the event bus channels on startup.
The module-level ``app`` can be served directly::

    uvicorn roster_api.app.main:app --reload
"""

import logging

from fastapi import FastAPI

from .api.error_handlers import register_error_handlers
from .api.v1.router import router as v1_router
from .core.config import settings
from .core.db import init_db
from .core.events import event_bus
from .core.logging_config import setup_logging
from .services.notification_service import configure_event_bus

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure a FastAPI application.

    Returns
    -------
    FastAPI
        A configured FastAPI application instance.
    """
    # Logging first so that everything below can log.
    setup_logging(settings.log_level, settings.log_file or None)

    app = FastAPI(title=settings.project_name, version=settings.api_version, debug=settings.debug)
    register_error_handlers(app)
    app.include_router(v1_router, prefix="/api/v1")

    @app.on_event("startup")
    async def startup_event() -> None:
        init_db()
        configure_event_bus(event_bus)
        logger.info("%s %s started", settings.project_name, settings.api_version)

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        # Let queued e-mail/SMS deliveries finish.
        await event_bus.drain()

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok", "version": settings.api_version}

    return app


app = create_app()
