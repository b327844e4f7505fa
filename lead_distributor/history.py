"""Export of reconciliation audit entries to the historical archive."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

from .errors import StorageError
from .models import HISTORY_COLUMNS, HistoryEntry
from .workspace import Workspace

LOGGER = logging.getLogger(__name__)


def history_to_dataframe(entries: Sequence[HistoryEntry]) -> pd.DataFrame:
    """Convert audit entries into a :class:`pandas.DataFrame` with fixed columns."""

    return pd.DataFrame([entry.as_row() for entry in entries], columns=list(HISTORY_COLUMNS))


def write_history_log(workspace: Workspace, entries: Sequence[HistoryEntry]) -> Optional[Path]:
    """Write ``entries`` to a new timestamped log; nothing is written when empty."""

    if not entries:
        return None

    destination = workspace.new_history_log_path()
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        history_to_dataframe(entries).to_excel(destination, index=False, sheet_name="Sheet1", engine="openpyxl")
    except OSError as exc:
        raise StorageError(f"Could not write history log '{destination}': {exc}") from exc

    LOGGER.info("Recorded %s history entries in %s", len(entries), destination.name)
    return destination


__all__ = ["history_to_dataframe", "write_history_log"]
