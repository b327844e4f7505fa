"""Spreadsheet read/write helpers backing the file-system sheet store."""
from __future__ import annotations

import csv
import logging
import os
import tempfile
import zipfile
from pathlib import Path
from typing import Any, List, Sequence, Union

import pandas as pd
from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .errors import NotFoundError, StorageError, UnsupportedFileTypeError
from .models import Sheet

LOGGER = logging.getLogger(__name__)

PathLike = Union[str, Path]

_CSV_SUFFIXES = {".csv"}
_EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xltx", ".xltm"}
_LEGACY_EXCEL_SUFFIXES = {".xls"}

READABLE_SUFFIXES = frozenset(_CSV_SUFFIXES | _EXCEL_SUFFIXES | _LEGACY_EXCEL_SUFFIXES)
WRITABLE_SUFFIXES = frozenset(_CSV_SUFFIXES | _EXCEL_SUFFIXES)

DEFAULT_SHEET_NAME = "Sheet1"


def is_spreadsheet(path: PathLike, suffixes: Sequence[str] = tuple(READABLE_SUFFIXES)) -> bool:
    """Return ``True`` for visible files carrying one of ``suffixes``."""

    name = Path(path).name
    if name.startswith(".") or name.startswith("~$"):
        return False
    return Path(name).suffix.lower() in suffixes


def read_sheet(path: PathLike) -> Sheet:
    """Load the first worksheet of ``path`` as a :class:`Sheet`."""

    return Sheet.from_rows(read_rows(path))


def read_rows(path: PathLike) -> List[List[Any]]:
    """Return every row of the first worksheet without header handling."""

    file_path = Path(path)
    suffix = file_path.suffix.lower()
    if suffix not in READABLE_SUFFIXES:
        raise UnsupportedFileTypeError(f"Unsupported spreadsheet format '{file_path.suffix}'")
    if not file_path.is_file():
        raise NotFoundError(f"File '{file_path}' was not found")

    try:
        if file_path.stat().st_size == 0:
            return []
        if suffix in _CSV_SUFFIXES:
            return _read_csv_rows(file_path)
        if suffix in _EXCEL_SUFFIXES:
            return _read_excel_rows(file_path)
        return _read_legacy_excel_rows(file_path)
    except (OSError, zipfile.BadZipFile, InvalidFileException, ValueError) as exc:
        raise StorageError(f"Could not read spreadsheet '{file_path}': {exc}") from exc


def _read_csv_rows(path: Path) -> List[List[Any]]:
    with path.open(newline="", encoding="utf-8-sig") as handle:
        return [list(row) for row in csv.reader(handle)]


def _read_excel_rows(path: Path) -> List[List[Any]]:
    workbook = load_workbook(filename=path, read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        return [["" if cell is None else cell for cell in row] for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def _read_legacy_excel_rows(path: Path) -> List[List[Any]]:
    try:
        frame = pd.read_excel(path, sheet_name=0, header=None, dtype=object)
    except ImportError as exc:  # pragma: no cover - dependency optional
        raise StorageError("Reading .xls files requires the 'xlrd' package") from exc
    return frame.where(pd.notna(frame), "").values.tolist()


def write_sheet(path: PathLike, sheet: Sheet, *, sheet_name: str = DEFAULT_SHEET_NAME) -> Path:
    """Persist ``sheet`` to ``path``, replacing any existing file.

    The content is written to a temporary sibling first and moved into place
    so readers never observe a half-written workbook.
    """

    file_path = Path(path)
    suffix = file_path.suffix.lower()
    if suffix not in WRITABLE_SUFFIXES:
        raise UnsupportedFileTypeError(f"Cannot write spreadsheet format '{file_path.suffix}'")

    rows = sheet.to_rows() if not sheet.is_empty() else []
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handle, temp_name = tempfile.mkstemp(prefix=f".{file_path.stem}-", suffix=suffix, dir=file_path.parent)
        os.close(handle)
        temp_path = Path(temp_name)
        try:
            if suffix in _CSV_SUFFIXES:
                _write_csv_rows(temp_path, rows)
            else:
                _write_excel_rows(temp_path, rows, sheet_name=sheet_name)
            os.replace(temp_path, file_path)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise
    except OSError as exc:
        raise StorageError(f"Could not write spreadsheet '{file_path}': {exc}") from exc

    LOGGER.debug("Wrote %s data rows to %s", max(len(rows) - 1, 0), file_path)
    return file_path


def _write_csv_rows(path: Path, rows: Sequence[Sequence[Any]]) -> None:
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerows(rows)


def _write_excel_rows(path: Path, rows: Sequence[Sequence[Any]], *, sheet_name: str) -> None:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_name
    for row in rows:
        sheet.append([None if value == "" else value for value in row])
    workbook.save(path)


__all__ = [
    "READABLE_SUFFIXES",
    "WRITABLE_SUFFIXES",
    "is_spreadsheet",
    "read_rows",
    "read_sheet",
    "write_sheet",
]
