"""Spreadsheet-backed lead distribution and reconciliation toolkit."""

from . import models  # noqa: F401
from .columns import normalize_id, resolve_column
from .config import Settings, load_settings
from .engine import LeadSyncService
from .errors import (
    LeadDistributorError,
    NotFoundError,
    SchemaError,
    StorageError,
    ValidationError,
)
from .factory import build_service
from .models import OperationResult, Sheet
from .workspace import Workspace

__all__ = [
    "LeadDistributorError",
    "LeadSyncService",
    "NotFoundError",
    "OperationResult",
    "SchemaError",
    "Settings",
    "Sheet",
    "StorageError",
    "ValidationError",
    "Workspace",
    "build_service",
    "load_settings",
    "normalize_id",
    "resolve_column",
    "engine",
    "ingestion",
]
