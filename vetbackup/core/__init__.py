"""Core infrastructure components."""

from .error_handling import (
    ArchiveError,
    AuthenticationError,
    BaseError,
    ConfigurationError,
    DatastoreError,
    ErrorCategory,
    ErrorSeverity,
    ExternalToolError,
    FileSystemError,
    NotFoundError,
    RestoreError,
    ValidationError,
    log_and_swallow,
)

__all__ = [
    "ArchiveError",
    "AuthenticationError",
    "BaseError",
    "ConfigurationError",
    "DatastoreError",
    "ErrorCategory",
    "ErrorSeverity",
    "ExternalToolError",
    "FileSystemError",
    "NotFoundError",
    "RestoreError",
    "ValidationError",
    "log_and_swallow",
]
