"""Main FastAPI application for the backup service."""

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from vetbackup import __version__
from vetbackup.api.backup_routes import admin_router, backup_router
from vetbackup.backup.datastore import MongoDatastore
from vetbackup.backup.gateway import BackupGateway
from vetbackup.backup.scheduler import BackupScheduler
from vetbackup.config.logging_config import get_logger, setup_logging
from vetbackup.config.settings import Settings
from vetbackup.core.error_handling import BaseError

logger = get_logger(__name__)


def build_gateway(settings: Settings) -> BackupGateway:
    """Wire the gateway to MongoDB. Fails fast when MONGO_URI is missing."""
    uri = settings.require_mongo_uri()
    datastore = MongoDatastore(
        uri,
        database=settings.mongo_database,
        use_transactions=settings.use_transactions,
    )
    return BackupGateway(settings, datastore)


def error_payload(error: BaseError, settings: Settings) -> Dict[str, Any]:
    """Human-readable error body. Tool output only in debug mode, never a traceback."""
    payload: Dict[str, Any] = {
        "message": error.message,
        "error_code": error.error_code,
        "category": error.category.name,
    }
    if settings.debug:
        payload["details"] = error.context
    elif "report" in error.context:
        payload["report"] = error.context["report"]
    return payload


def create_app(settings: Optional[Settings] = None, gateway: Optional[BackupGateway] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Settings to use; read from the environment when omitted
        gateway: Pre-built gateway; built from ``settings`` at startup when omitted

    Returns:
        Configured application
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings.create_directories()
        owns_gateway = app.state.gateway is None
        if owns_gateway:
            app.state.gateway = build_gateway(settings)

        scheduler = None
        if settings.scheduler_enabled:
            scheduler = BackupScheduler(
                app.state.gateway.run_scheduled_backup,
                cron=settings.backup_schedule,
                timezone=settings.schedule_timezone,
            )
            scheduler.start()
        app.state.scheduler = scheduler
        logger.info(f"{settings.app_name} started", version=__version__)

        try:
            yield
        finally:
            if scheduler:
                scheduler.stop()
            if owns_gateway:
                app.state.gateway.close()
                app.state.gateway.datastore.close()
            logger.info(f"{settings.app_name} stopped")

    app = FastAPI(title=settings.app_name, version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.gateway = gateway
    app.state.scheduler = None

    @app.exception_handler(BaseError)
    async def handle_backup_error(request: Request, exc: BaseError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}", error_code=exc.error_code)
        return JSONResponse(status_code=exc.status_code, content=error_payload(exc, settings))

    @app.get("/health")
    async def health():
        scheduler = app.state.scheduler
        return {
            "status": "healthy",
            "version": __version__,
            "scheduler_running": bool(scheduler and scheduler.running),
            "next_backup": str(scheduler.next_fire_time) if scheduler else None,
        }

    app.include_router(backup_router)
    app.include_router(admin_router)
    return app


def create_default_app() -> FastAPI:
    """Factory used by uvicorn: environment settings plus logging."""
    settings = Settings()
    setup_logging(settings.log_level, settings.log_file)
    return create_app(settings)
