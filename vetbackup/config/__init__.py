"""Configuration for the backup service."""

from .logging_config import get_logger, setup_logging
from .settings import Settings

__all__ = [
    "Settings",
    "get_logger",
    "setup_logging",
]
