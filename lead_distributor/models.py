"""Data models shared by the sheet store, the sync engines and the service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .columns import cell_text


# --- Tabular Models ---

def _trim_trailing(cells: Sequence[Any]) -> List[Any]:
    values = ["" if cell is None else cell for cell in cells]
    while values and cell_text(values[-1]) == "":
        values.pop()
    return values


@dataclass(slots=True)
class Sheet:
    """Header row plus position-aligned data rows read from a spreadsheet."""

    header: List[Any] = field(default_factory=list)
    rows: List[List[Any]] = field(default_factory=list)

    @classmethod
    def from_rows(cls, rows: Iterable[Sequence[Any]]) -> "Sheet":
        """Build a sheet from raw rows, row 0 being the header.

        Short data rows are padded to the header width. Blank rows between
        data rows are kept as spacer rows; blank rows after the last data row
        are dropped.
        """

        iterator = iter(rows)
        try:
            header = _trim_trailing(next(iterator))
        except StopIteration:
            return cls()

        data: List[List[Any]] = []
        pending_blank = 0
        for row in iterator:
            cells = _trim_trailing(row)
            if not cells:
                pending_blank += 1
                continue
            data.extend([""] * len(header) for _ in range(pending_blank))
            pending_blank = 0
            if len(cells) < len(header):
                cells.extend([""] * (len(header) - len(cells)))
            data.append(cells)
        return cls(header=header, rows=data)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def is_empty(self) -> bool:
        return not self.header and not self.rows

    def to_rows(self) -> List[List[Any]]:
        return [list(self.header)] + [list(row) for row in self.rows]

    def with_rows(self, rows: Iterable[Sequence[Any]]) -> "Sheet":
        """Return a new sheet sharing this header but holding ``rows``."""

        return Sheet(header=list(self.header), rows=[list(row) for row in rows])

    def set_cell(self, row_index: int, column: int, value: Any) -> None:
        """Assign a cell, ignoring unresolved (``-1``) columns."""

        if column < 0:
            return
        row = self.rows[row_index]
        if column >= len(row):
            row.extend([""] * (column + 1 - len(row)))
        row[column] = value

    def get_cell(self, row_index: int, column: int) -> Any:
        if column < 0:
            return ""
        row = self.rows[row_index]
        return row[column] if column < len(row) else ""


# --- Operation Results ---

@dataclass(slots=True)
class AssignmentResult:
    assigned: int
    file_name: str

    def as_dict(self) -> Dict[str, Any]:
        return {"assigned": self.assigned, "fileName": self.file_name}


@dataclass
class DistributionResult:
    """Per-person outcome of a distribution run."""

    results: Dict[str, AssignmentResult] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {"results": {name: result.as_dict() for name, result in self.results.items()}}


@dataclass(slots=True)
class PromotionResult:
    promoted: int
    coordinator: str
    file_name: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {"promoted": self.promoted, "coordinator": self.coordinator, "fileName": self.file_name}


@dataclass(slots=True)
class SyncStats:
    po_promoted: int = 0
    na_released: int = 0
    updates: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {"poPromoted": self.po_promoted, "naReleased": self.na_released, "updates": self.updates}


@dataclass
class SyncResult:
    """Counters reported by a reconciliation run."""

    stats: SyncStats = field(default_factory=SyncStats)
    files_updated: int = 0
    history_entries: int = 0
    history_file: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "stats": self.stats.as_dict(),
            "filesUpdated": self.files_updated,
            "historyEntries": self.history_entries,
            "historyFile": self.history_file,
        }


@dataclass(slots=True)
class IngestedFile:
    name: str
    added: int = 0


@dataclass
class IngestionResult:
    added: int = 0
    files: List[IngestedFile] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "added": self.added,
            "files": [{"name": item.name, "added": item.added} for item in self.files],
        }


# --- Audit Models ---

HISTORY_COLUMNS = ("Date", "ID", "User", "Action", "Status", "Note")


@dataclass(slots=True)
class HistoryEntry:
    """One reconciliation action recorded in the historical log."""

    date: str
    id: str
    user: str
    action: str
    status: str
    note: str

    def as_row(self) -> Dict[str, str]:
        return dict(zip(HISTORY_COLUMNS, (self.date, self.id, self.user, self.action, self.status, self.note)))


# --- Service Boundary ---

@dataclass
class OperationResult:
    """Structured outcome returned to callers of :class:`LeadSyncService`."""

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, data: Dict[str, Any], message: Optional[str] = None) -> "OperationResult":
        return cls(success=True, data=data, message=message)

    @classmethod
    def failed(cls, error: str, message: str) -> "OperationResult":
        return cls(success=False, error=error, message=message)

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.message:
            payload["message"] = self.message
        if self.success:
            payload.update(self.data)
        else:
            payload["error"] = self.error
        return payload


__all__ = [
    "AssignmentResult",
    "DistributionResult",
    "HISTORY_COLUMNS",
    "HistoryEntry",
    "IngestedFile",
    "IngestionResult",
    "OperationResult",
    "PromotionResult",
    "Sheet",
    "SyncResult",
    "SyncStats",
]
