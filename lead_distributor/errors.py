"""Exception hierarchy shared by the sync engines and the service boundary."""
from __future__ import annotations


class LeadDistributorError(RuntimeError):
    """Base class for failures raised by lead distribution operations."""

    kind = "error"


class NotFoundError(LeadDistributorError):
    """Raised when a required file or directory is absent."""

    kind = "not_found"


class SchemaError(LeadDistributorError):
    """Raised when a load-bearing column cannot be resolved in a header."""

    kind = "schema"


class ValidationError(LeadDistributorError, ValueError):
    """Raised when caller supplied arguments are missing or malformed."""

    kind = "validation"


class UnsupportedFileTypeError(ValidationError):
    """Raised when a spreadsheet path has an unsupported extension."""


class PermissionDeniedError(LeadDistributorError):
    """Raised when the acting user may not run an operation."""

    kind = "forbidden"


class StorageError(LeadDistributorError):
    """Raised when reading, writing or moving a file fails."""

    kind = "storage"


class LockTimeoutError(StorageError):
    """Raised when the advisory workspace lock cannot be acquired in time."""


__all__ = [
    "LeadDistributorError",
    "LockTimeoutError",
    "NotFoundError",
    "PermissionDeniedError",
    "SchemaError",
    "StorageError",
    "UnsupportedFileTypeError",
    "ValidationError",
]
