"""HTTP API for the backup service."""

from .backup_routes import admin_router, backup_router
from .main import create_app, create_default_app

__all__ = [
    "admin_router",
    "backup_router",
    "create_app",
    "create_default_app",
]
