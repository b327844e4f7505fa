"""Factory helpers for constructing the sync service from settings."""
from __future__ import annotations

from typing import Optional

from .config import Settings
from .engine.service import LeadSyncService
from .workspace import Clock, Workspace, utc_now


def build_service(settings: Settings, *, clock: Optional[Clock] = None) -> LeadSyncService:
    """Create a :class:`LeadSyncService` bound to the configured workspace."""

    workspace = Workspace(settings, clock=clock or utc_now)
    return LeadSyncService(
        workspace,
        users=settings.users,
        concurrent=settings.concurrent,
        max_workers=settings.max_workers,
    )
