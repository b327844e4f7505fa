"""File-system layout of a distribution workspace.

A workspace is a data directory holding four folders::

    Main/<master>.xlsx              authoritative master dataset
    Tracking/<person>/<file>.xlsx   per-person tracking files, newest wins
    RawData/<file>                  pending ingestion batches
    Historical/<file>               archived batches and reconciliation logs

The file system is the only source of truth: nothing is cached between
operations and nothing is locked unless the advisory lock is enabled. Two
operations racing on the same master file can lose updates (last writer
wins).
"""
from __future__ import annotations

import contextlib
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, ContextManager, Dict, List, Optional, Tuple

from . import io
from .config import Settings
from .errors import NotFoundError, StorageError, UnsupportedFileTypeError, ValidationError
from .locking import AdvisoryLock
from .models import Sheet

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]

MASTER_SUFFIXES = (".xlsx",)
TRACKING_SUFFIXES = (".xlsx",)
RAW_SUFFIXES = (".xlsx", ".xls", ".csv")
HISTORICAL_SUFFIXES = (".xlsx",)
LOCK_FILE_NAME = ".lead-distributor.lock"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def file_date(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d")


def file_timestamp(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d-%H-%M-%S")


class Workspace:
    """Spreadsheet-backed sheet store rooted at a data directory."""

    def __init__(self, settings: Settings, *, clock: Clock = utc_now) -> None:
        self.settings = settings
        self.root = Path(settings.data_path)
        self.clock = clock
        self._lock = (
            AdvisoryLock(self.main_path / LOCK_FILE_NAME, timeout=settings.lock_timeout) if settings.use_lock else None
        )

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------
    @property
    def main_path(self) -> Path:
        return self.root / self.settings.main_dir

    @property
    def tracking_path(self) -> Path:
        return self.root / self.settings.tracking_dir

    @property
    def raw_path(self) -> Path:
        return self.root / self.settings.raw_dir

    @property
    def historical_path(self) -> Path:
        return self.root / self.settings.historical_dir

    def ensure_layout(self) -> None:
        for folder in (self.main_path, self.tracking_path, self.raw_path, self.historical_path):
            _ensure_dir(folder)

    def lock(self) -> ContextManager[Any]:
        """Return the advisory lock, or a no-op context when locking is off."""

        return self._lock if self._lock is not None else contextlib.nullcontext()

    # ------------------------------------------------------------------
    # Sheet I/O
    # ------------------------------------------------------------------
    def read(self, path: Path) -> Sheet:
        return io.read_sheet(path)

    def write(self, path: Path, sheet: Sheet) -> Path:
        return io.write_sheet(path, sheet)

    # ------------------------------------------------------------------
    # Master
    # ------------------------------------------------------------------
    def find_master(self) -> Optional[Path]:
        """Return the preferred master file, or ``None`` when there is none."""

        candidates = _list_files(self.main_path, MASTER_SUFFIXES)
        preferred = self.settings.master_file_name.lower()
        for path in candidates:
            if path.name.lower() == preferred:
                return path
        return candidates[0] if candidates else None

    def locate_master(self) -> Path:
        master = self.find_master()
        if master is None:
            raise NotFoundError(f"No master spreadsheet found in '{self.main_path}'")
        return master

    def default_master_path(self) -> Path:
        return self.main_path / self.settings.master_file_name

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------
    def person_names(self) -> List[str]:
        """List person folders under ``Tracking/``, sorted by name.

        Folders whose name is not a valid person name (for example one with
        surrounding spaces) cannot be addressed and are skipped with a warning.
        """

        if not self.tracking_path.is_dir():
            return []
        names: List[str] = []
        for entry in sorted(self.tracking_path.iterdir()):
            if not entry.is_dir():
                continue
            if not _is_canonical_person(entry.name):
                LOGGER.warning("Ignoring tracking folder %r: not a valid person name", entry.name)
                continue
            names.append(entry.name)
        return names

    def person_path(self, person: str) -> Path:
        return self.tracking_path / validate_person_name(person)

    def tracking_files(self, person: str) -> List[Path]:
        return _list_files(self.person_path(person), TRACKING_SUFFIXES)

    def latest_tracking_file(self, person: str) -> Optional[Path]:
        """Return the most recently modified tracking file of ``person``."""

        files = self.tracking_files(person)
        if not files:
            return None
        return max(files, key=lambda path: (path.stat().st_mtime, path.name))

    def tracking_seed(self, person: str, header: List[Any]) -> Sheet:
        """Return the person's latest tracking sheet or a header-only sheet."""

        latest = self.latest_tracking_file(person)
        if latest is None:
            return Sheet(header=list(header))
        seed = self.read(latest)
        if not seed.header:
            seed.header = list(header)
        return seed

    # ------------------------------------------------------------------
    # Raw data and history
    # ------------------------------------------------------------------
    def raw_files(self) -> List[Path]:
        return _list_files(self.raw_path, RAW_SUFFIXES)

    def archive_raw_file(self, path: Path) -> Path:
        """Move a consumed raw batch into the historical archive."""

        _ensure_dir(self.historical_path)
        target = self.historical_path / f"Processed_{file_timestamp(self.clock())}_{path.name}"
        try:
            os.replace(path, target)
        except OSError as exc:
            raise StorageError(f"Could not archive '{path}': {exc}") from exc
        LOGGER.info("Archived raw file %s as %s", path.name, target.name)
        return target

    def new_history_log_path(self) -> Path:
        base = f"History_Log_{file_timestamp(self.clock())}"
        target = self.historical_path / f"{base}.xlsx"
        counter = 1
        while target.exists():
            target = self.historical_path / f"{base}_{counter}.xlsx"
            counter += 1
        return target

    def historical_files(self) -> List[Dict[str, Any]]:
        """Describe archived spreadsheets, newest first."""

        entries = [_describe(path) for path in _list_files(self.historical_path, HISTORICAL_SUFFIXES)]
        entries.sort(key=lambda entry: entry["modified"], reverse=True)
        return entries

    def raw_file_entries(self) -> List[Dict[str, Any]]:
        return [_describe(path) for path in self.raw_files()]

    def raw_file_path(self, file_name: str) -> Path:
        """Return the path of an existing raw batch named ``file_name``."""

        path = self.raw_path / validate_file_name(file_name, RAW_SUFFIXES)
        if not path.is_file():
            raise NotFoundError(f"Raw file '{file_name}' was not found")
        return path

    def delete_raw_file(self, file_name: str) -> None:
        path = self.raw_file_path(file_name)
        try:
            path.unlink()
        except OSError as exc:
            raise StorageError(f"Could not delete '{path}': {exc}") from exc
        LOGGER.info("Deleted raw file %s", path.name)

    # ------------------------------------------------------------------
    # Direct saves
    # ------------------------------------------------------------------
    def save_master(self, sheet: Sheet, file_name: Optional[str] = None) -> Path:
        name = validate_file_name(file_name or self.settings.master_file_name, MASTER_SUFFIXES)
        return self.write(self.main_path / name, sheet)

    def save_tracking_sheet(self, person: str, sheet: Sheet, file_name: Optional[str] = None) -> Path:
        """Replace one tracking file of ``person``, ``<person>_tracking.xlsx`` by default."""

        folder = self.person_path(person)
        name = validate_file_name(file_name or f"{folder.name}_tracking.xlsx", TRACKING_SUFFIXES)
        return self.write(folder / name, sheet)

    def save_historical_sheet(self, sheet: Sheet, file_name: str) -> Path:
        name = validate_file_name(file_name, HISTORICAL_SUFFIXES)
        return self.write(self.historical_path / name, sheet)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------
    def structure(self) -> Dict[str, Any]:
        """Describe every spreadsheet in the workspace folders."""

        tracking: Dict[str, List[Dict[str, Any]]] = {}
        for person in self.person_names():
            tracking[person] = [_describe(path) for path in _list_files(self.tracking_path / person, (".xlsx", ".xls"))]
        return {
            "Main": [_describe(path) for path in _list_files(self.main_path, RAW_SUFFIXES)],
            "Tracking": tracking,
            "RawData": [_describe(path) for path in self.raw_files()],
            "Historical": [_describe(path) for path in _list_files(self.historical_path, (".xlsx", ".xls"))],
        }


def validate_person_name(person: str) -> str:
    """Reject blank names and names that would escape the tracking folder."""

    name = (person or "").strip()
    if not name:
        raise ValidationError("Person name must not be empty")
    if name in {".", ".."} or any(separator in name for separator in ("/", "\\", os.sep)):
        raise ValidationError(f"Invalid person name '{person}'")
    return name


def validate_file_name(file_name: str, suffixes: Tuple[str, ...]) -> str:
    """Reject file names that are hidden, carry a path or a foreign suffix."""

    name = (file_name or "").strip()
    if not name:
        raise ValidationError("File name must not be empty")
    if name.startswith(".") or any(separator in name for separator in ("/", "\\", os.sep)):
        raise ValidationError(f"Invalid file name '{file_name}'")
    if Path(name).suffix.lower() not in suffixes:
        raise UnsupportedFileTypeError(f"File name '{file_name}' must end with one of {', '.join(suffixes)}")
    return name


def _is_canonical_person(name: str) -> bool:
    try:
        return validate_person_name(name) == name
    except ValidationError:
        return False


def _ensure_dir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageError(f"Could not create directory '{path}': {exc}") from exc


def _list_files(folder: Path, suffixes: Tuple[str, ...]) -> List[Path]:
    if not folder.is_dir():
        return []
    return sorted(path for path in folder.iterdir() if path.is_file() and io.is_spreadsheet(path, suffixes))


def _describe(path: Path) -> Dict[str, Any]:
    stat = path.stat()
    return {
        "name": path.name,
        "size": stat.st_size,
        "modified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
    }


__all__ = [
    "Workspace",
    "file_date",
    "file_timestamp",
    "utc_now",
    "validate_file_name",
    "validate_person_name",
]
