"""
FastAPI application for the PropertyFlow workflow API.

Production deployment configuration via environment variables.
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.exceptions import PropertyFlowError
from core.store.database import Database
from core.workflow import NotificationSink
from utils.config import Config
from utils.logging import setup_logging
from web.audit_routes import router as audit_router
from web.auth_routes import router as auth_router
from web.dependencies import services_for
from web.file_routes import router as file_router
from web.master_data_routes import router as master_data_router
from web.notification_routes import router as notification_router
from web.stats_routes import router as stats_router
from web.user_routes import router as user_router

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def create_app(
    config: Optional[Config] = None,
    database: Optional[Database] = None,
    sink: Optional[NotificationSink] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Settings; loaded from the environment when omitted
        database: Record store; opened from config.database_url when omitted
        sink: Notification sink; the database sink when omitted
    """
    config = config or Config.load()

    app = FastAPI(
        title="PropertyFlow",
        description="Multi-role property verification workflow",
        version=VERSION,
        # Production settings: disable docs/redoc for private deployment
        docs_url=None if config.production else "/docs",
        redoc_url=None if config.production else "/redoc",
        openapi_url=None if config.production else "/openapi.json",
        debug=config.debug and not config.production,
    )
    app.state.config = config
    app.state.database = database
    app.state.sink = sink
    app.state.services = None

    # Healthchecks are registered first and perform no IO.
    @app.get("/", include_in_schema=False)
    def root():
        return {"status": "ok"}

    @app.get("/health", include_in_schema=False)
    def health():
        return {"status": "healthy"}

    @app.exception_handler(PropertyFlowError)
    async def propertyflow_error_handler(request: Request, exc: PropertyFlowError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    if config.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.allowed_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
            allow_headers=["*"],
        )

    @app.on_event("startup")
    def on_startup():
        """Deferred startup tasks. Runs after healthcheck is ready."""
        setup_logging(config.log_level, config.log_format)
        Path(config.reports_dir).mkdir(parents=True, exist_ok=True)

        services = services_for(app)
        services.database.create_all()
        if config.admin_email and config.admin_password:
            services.users.ensure_admin(config.admin_email, config.admin_password)
        logger.info("PropertyFlow started (production=%s)", config.production)

    app.include_router(auth_router)
    app.include_router(file_router)
    app.include_router(user_router)
    app.include_router(master_data_router)
    app.include_router(notification_router)
    app.include_router(audit_router)
    app.include_router(stats_router)

    @app.get("/api/health")
    def api_health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": VERSION,
            "production": config.production,
        }

    return app


# Create default app instance
app = create_app()
