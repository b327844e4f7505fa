"""Distribution and reconciliation engines plus the service boundary."""

from .distribution import distribute, promote
from .reconciliation import sync
from .service import LeadSyncService

__all__ = ["LeadSyncService", "distribute", "promote", "sync"]
