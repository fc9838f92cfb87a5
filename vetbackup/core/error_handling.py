"""
Error hierarchy for the backup and restore subsystem.

Every failure the subsystem reports is a ``BaseError`` subclass carrying a
category, a severity, a generated error code and the HTTP status the route
layer answers with. The scheduled path logs these and keeps going; the
on-demand path lets them reach the caller.
"""

import functools
import logging
import time
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from typing_extensions import ParamSpec

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


class ErrorSeverity(Enum):
    """Error severity levels for classification and handling."""

    CRITICAL = auto()  # Misconfiguration, the process cannot do its job
    HIGH = auto()  # A backup or restore did not happen
    MEDIUM = auto()  # Recoverable, next run may succeed
    LOW = auto()  # Caller input problems


class ErrorCategory(Enum):
    """Error categories for classification and routing."""

    EXTERNAL_TOOL = auto()  # mongodump / mongorestore failures
    ARCHIVE = auto()  # Compression and archive stream errors
    FILESYSTEM = auto()  # Missing paths, permissions, disk full
    VALIDATION = auto()  # Malformed or incomplete snapshots and inputs
    NOT_FOUND = auto()  # Named backup or export path does not exist
    DATASTORE = auto()  # Bulk read/insert/delete failures
    CONFIGURATION = auto()  # Missing or invalid settings
    AUTHENTICATION = auto()  # Missing or wrong admin credentials


class BaseError(Exception):
    """Base exception class with enhanced error information."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.FILESYSTEM,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ) -> None:
        """
        Initialize base error with comprehensive metadata.

        Args:
            message: Human-readable error message
            severity: Error severity level
            category: Error category for classification
            error_code: Unique error code for tracking
            context: Additional context information
            recoverable: Whether a later attempt may succeed
        """
        super().__init__(message)
        self.message = message
        self.severity = severity
        self.category = category
        self.error_code = error_code or self._generate_error_code()
        self.context = context or {}
        self.recoverable = recoverable
        self.timestamp = datetime.now(timezone.utc)

    def _generate_error_code(self) -> str:
        """Generate unique error code based on category and timestamp."""
        timestamp = int(time.time() * 1000) % 100000
        return f"{self.category.name[:3]}-{self.severity.name[:3]}-{timestamp}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "severity": self.severity.name,
            "category": self.category.name,
            "context": self.context,
            "recoverable": self.recoverable,
            "timestamp": self.timestamp.isoformat(),
        }


class ExternalToolError(BaseError):
    """A dump/restore executable is missing, timed out or exited nonzero."""

    def __init__(
        self,
        message: str,
        tool: str,
        exit_code: Optional[int] = None,
        stderr: str = "",
        **kwargs: Any,
    ) -> None:
        context = kwargs.pop("context", {})
        context["tool"] = tool
        context["exit_code"] = exit_code
        if stderr:
            context["stderr"] = stderr
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.EXTERNAL_TOOL,
            context=context,
            **kwargs,
        )
        self.tool = tool
        self.exit_code = exit_code
        self.stderr = stderr


class ArchiveError(BaseError):
    """Compression or archive stream errors."""

    def __init__(self, message: str, archive_path: Optional[str] = None, **kwargs: Any) -> None:
        context = kwargs.pop("context", {})
        if archive_path:
            context["archive_path"] = archive_path
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.ARCHIVE,
            context=context,
            **kwargs,
        )


class FileSystemError(BaseError):
    """Missing paths, permission problems, full disks."""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs: Any) -> None:
        context = kwargs.pop("context", {})
        if path:
            context["path"] = path
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.FILESYSTEM,
            context=context,
            **kwargs,
        )


class ValidationError(BaseError):
    """Input validation errors."""

    status_code = 400

    def __init__(
        self, message: str, field: Optional[str] = None, **kwargs: Any
    ) -> None:
        context = kwargs.pop("context", {})
        if field:
            context["field"] = field
        super().__init__(
            message,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.VALIDATION,
            context=context,
            recoverable=False,
            **kwargs,
        )


class NotFoundError(BaseError):
    """A caller-supplied backup or export path does not exist."""

    status_code = 404

    def __init__(self, message: str, path: Optional[str] = None, **kwargs: Any) -> None:
        context = kwargs.pop("context", {})
        if path:
            context["path"] = path
        super().__init__(
            message,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.NOT_FOUND,
            context=context,
            recoverable=False,
            **kwargs,
        )


class DatastoreError(BaseError):
    """Datastore operation errors."""

    def __init__(self, message: str, operation: str, collection: Optional[str] = None, **kwargs: Any) -> None:
        context = kwargs.pop("context", {})
        context["operation"] = operation
        if collection:
            context["collection"] = collection
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.DATASTORE,
            context=context,
            **kwargs,
        )


class RestoreError(DatastoreError):
    """A restore stopped part way; ``report`` says which collections made it."""

    def __init__(self, message: str, report: Any, **kwargs: Any) -> None:
        context = kwargs.pop("context", {})
        context["report"] = report.to_dict()
        super().__init__(message, operation="restore", context=context, **kwargs)
        self.report = report


class ConfigurationError(BaseError):
    """Configuration errors."""

    def __init__(self, message: str, config_key: str, **kwargs: Any) -> None:
        context = kwargs.pop("context", {})
        context["config_key"] = config_key
        super().__init__(
            message,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CONFIGURATION,
            context=context,
            recoverable=False,
            **kwargs,
        )


class AuthenticationError(BaseError):
    """Authentication and authorization errors."""

    status_code = 401

    def __init__(self, message: str, status_code: int = 401, **kwargs: Any) -> None:
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.AUTHENTICATION,
            recoverable=False,
            **kwargs,
        )
        self.status_code = status_code


def log_and_swallow(operation: str) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[Optional[T]]]]:
    """
    Decorator for unattended jobs: log any failure and return None.

    Args:
        operation: Name used in the log line

    Returns:
        Decorated coroutine function that never raises ``Exception``
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[Optional[T]]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> Optional[T]:
            try:
                return await func(*args, **kwargs)
            except BaseError as e:
                logger.error(
                    f"{operation} failed: {e.message}",
                    extra={"error_code": e.error_code, "category": e.category.name},
                )
            except Exception as e:
                logger.exception(f"Unexpected error during {operation}: {e}")
            return None

        return wrapper

    return decorator
