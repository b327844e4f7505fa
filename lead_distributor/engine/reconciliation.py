"""Reconciliation of per-person tracking files back into the master dataset."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..columns import cell_text, find_field, normalize_id, require_field
from ..errors import ValidationError
from ..history import write_history_log
from ..models import HistoryEntry, Sheet, SyncResult, SyncStats
from ..workspace import Workspace, file_date

LOGGER = logging.getLogger(__name__)

MODE_UPDATE = "update"
MODE_RELEASE = "release"
MODES = (MODE_UPDATE, MODE_RELEASE)

PASS_OVER_MARKERS = ("PO", "PASS OVER")
NEGATIVE_KEYWORDS = ("NA", "NS", "DISC", "ACB", "NO SALE", "DISCONNECTED", "NO ANSWER", "ALL CIRCUITS")

ACTION_PO_RELEASED = "PO_RELEASED"
ACTION_RELEASED_NEGATIVE = "RELEASED_NEGATIVE"
PO_STATUS = "PO"

# Row outcomes returned by classify_status.
PASS_OVER = "pass_over"
NEGATIVE = "negative"
UPDATE = "update"
KEEP = "keep"


def classify_status(status: str, mode: str) -> str:
    """Decide what a matched tracking row does to the master in ``mode``."""

    if mode == MODE_UPDATE:
        if any(marker in status for marker in PASS_OVER_MARKERS):
            return PASS_OVER
        return UPDATE
    if any(keyword in status for keyword in NEGATIVE_KEYWORDS):
        return NEGATIVE
    return KEEP


@dataclass
class _MasterIndex:
    sheet: Sheet
    idx_status: int
    idx_assigned: int
    idx_comments: int
    rows_by_id: Dict[str, int]

    @classmethod
    def build(cls, sheet: Sheet) -> "_MasterIndex":
        idx_id = require_field(sheet.header, "id", sheet_label="master")
        rows_by_id: Dict[str, int] = {}
        for row_index in range(sheet.row_count):
            key = normalize_id(sheet.get_cell(row_index, idx_id))
            if key:
                rows_by_id[key] = row_index
        return cls(
            sheet=sheet,
            idx_status=find_field(sheet.header, "status"),
            idx_assigned=find_field(sheet.header, "assigned_to"),
            idx_comments=find_field(sheet.header, "comments"),
            rows_by_id=rows_by_id,
        )

    def release(self, row_index: int, status: Any) -> None:
        self.sheet.set_cell(row_index, self.idx_status, status)
        self.sheet.set_cell(row_index, self.idx_assigned, "")


@dataclass
class _PersonOutcome:
    person: str
    path: Path
    kept: Sheet
    modified: bool = False
    history: List[HistoryEntry] = field(default_factory=list)
    stats: SyncStats = field(default_factory=SyncStats)


def sync(
    workspace: Workspace,
    mode: str = MODE_UPDATE,
    *,
    concurrent: bool = False,
    max_workers: Optional[int] = None,
) -> SyncResult:
    """Apply every person's latest tracking file to the master.

    In ``update`` mode pass-over rows are released for manager review and
    other matched rows copy their status and comment into the master. In
    ``release`` mode rows with a negative outcome are returned to the pool.
    Released rows leave the tracking file; unmatched rows always stay.
    """

    if mode not in MODES:
        raise ValidationError(f"Mode must be one of {', '.join(MODES)}")

    master_path = workspace.locate_master()
    master = _MasterIndex.build(workspace.read(master_path))
    today = file_date(workspace.clock())

    loaded = _load_tracking_sheets(workspace, workspace.person_names(), concurrent=concurrent, max_workers=max_workers)

    result = SyncResult()
    history: List[HistoryEntry] = []
    rewrites: List[_PersonOutcome] = []
    for person, path, sheet in loaded:
        outcome = _reconcile_person(person, path, sheet, master, mode, today)
        if outcome is None:
            continue
        _accumulate(result.stats, outcome.stats)
        history.extend(outcome.history)
        if outcome.modified:
            rewrites.append(outcome)

    for outcome in rewrites:
        workspace.write(outcome.path, outcome.kept)
        LOGGER.info("Rewrote tracking file %s for %s", outcome.path.name, outcome.person)

    workspace.write(master_path, master.sheet)

    history_path = write_history_log(workspace, history)
    result.files_updated = len(rewrites)
    result.history_entries = len(history)
    result.history_file = history_path.name if history_path else None
    LOGGER.info(
        "Sync (%s) finished: %s pass-over, %s released, %s updates",
        mode,
        result.stats.po_promoted,
        result.stats.na_released,
        result.stats.updates,
    )
    return result


def _load_tracking_sheets(
    workspace: Workspace,
    persons: Sequence[str],
    *,
    concurrent: bool,
    max_workers: Optional[int],
) -> List[tuple]:
    """Read each person's latest tracking file, keeping listing order."""

    def load(person: str):
        latest = workspace.latest_tracking_file(person)
        if latest is None:
            LOGGER.debug("No tracking file for %s", person)
            return None
        return person, latest, workspace.read(latest)

    if not concurrent or len(persons) <= 1:
        loaded = [load(person) for person in persons]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            loaded = list(executor.map(load, persons))
    return [entry for entry in loaded if entry is not None]


def _reconcile_person(
    person: str,
    path: Path,
    sheet: Sheet,
    master: _MasterIndex,
    mode: str,
    today: str,
) -> Optional[_PersonOutcome]:
    idx_id = find_field(sheet.header, "id")
    idx_status = find_field(sheet.header, "status")
    idx_comments = find_field(sheet.header, "comments")
    if idx_id == -1 or idx_status == -1:
        LOGGER.warning("Skipping %s: tracking file %s has no ID or Status column", person, path.name)
        return None

    kept: List[List[Any]] = []
    outcome = _PersonOutcome(person=person, path=path, kept=sheet)

    for row in sheet.rows:
        lead_id = normalize_id(_cell(row, idx_id))
        status = cell_text(_cell(row, idx_status)).upper().strip()
        master_row = master.rows_by_id.get(lead_id) if lead_id else None
        if master_row is None:
            kept.append(row)
            continue

        action = classify_status(status, mode)
        if action == PASS_OVER:
            master.release(master_row, PO_STATUS)
            outcome.history.append(
                HistoryEntry(today, lead_id, person, ACTION_PO_RELEASED, status, "Released for manager review")
            )
            outcome.stats.po_promoted += 1
            outcome.stats.updates += 1
            outcome.modified = True
            continue
        if action == NEGATIVE:
            master.release(master_row, status)
            outcome.history.append(
                HistoryEntry(today, lead_id, person, ACTION_RELEASED_NEGATIVE, status, "Returned to pool")
            )
            outcome.stats.na_released += 1
            outcome.stats.updates += 1
            outcome.modified = True
            continue
        if action == UPDATE:
            comment = _cell(row, idx_comments) if idx_comments != -1 else ""
            if status:
                master.sheet.set_cell(master_row, master.idx_status, status)
            if cell_text(comment):
                master.sheet.set_cell(master_row, master.idx_comments, comment)
            outcome.stats.updates += 1
        kept.append(row)

    outcome.kept = sheet.with_rows(kept)
    return outcome


def _cell(row: Sequence[Any], index: int) -> Any:
    return row[index] if 0 <= index < len(row) else ""


def _accumulate(total: SyncStats, part: SyncStats) -> None:
    total.po_promoted += part.po_promoted
    total.na_released += part.na_released
    total.updates += part.updates


__all__ = ["MODES", "NEGATIVE_KEYWORDS", "classify_status", "sync"]
