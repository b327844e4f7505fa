"""Utilities for loading raw lead batches from spreadsheets."""
from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union

import pandas as pd

from ..columns import cell_text, phone_digits
from ..errors import NotFoundError, StorageError, UnsupportedFileTypeError
from ..io import read_rows
from .models import RawLead

PathLike = Union[str, Path]

MIN_PHONE_DIGITS = 7

# Raw batches carry no header: column 0 is the phone, then these fields.
_POSITIONAL_FIELDS: Tuple[str, ...] = ("first_name", "last_name", "address", "city", "state", "zip_code")


def load_raw_rows(path: PathLike) -> List[List[Any]]:
    """Load every row of a raw batch, including the first one.

    Parameters
    ----------
    path:
        Path to the CSV/XLSX/XLS batch. Excel files are read from their first
        sheet.
    """

    path_obj = Path(path)
    if path_obj.suffix.lower() == ".csv":
        # Rows may differ in width, which pandas' CSV parser rejects.
        return read_rows(path_obj)
    dataframe = _read_dataframe(path_obj)
    return dataframe.where(pd.notna(dataframe), "").values.tolist()


def _read_dataframe(path: PathLike) -> pd.DataFrame:
    path_obj = Path(path)
    suffix = path_obj.suffix.lower()
    if suffix not in {".xlsx", ".xls"}:
        raise UnsupportedFileTypeError(f"Unsupported file extension: {path_obj.suffix}")
    if not path_obj.is_file():
        raise NotFoundError(f"Raw file '{path_obj}' was not found")

    try:
        engine = "openpyxl" if suffix == ".xlsx" else None
        return pd.read_excel(path_obj, sheet_name=0, header=None, dtype=object, engine=engine)
    except ImportError as exc:  # pragma: no cover - dependency optional
        raise StorageError(f"Reading '{path_obj.name}' requires an optional Excel engine: {exc}") from exc
    except (OSError, ValueError, zipfile.BadZipFile) as exc:
        raise StorageError(f"Could not read raw file '{path_obj}': {exc}") from exc


def row_to_raw_lead(row: Sequence[Any]) -> Optional[RawLead]:
    """Convert a positional raw row, or return ``None`` for unusable phones."""

    phone = phone_digits(row[0]) if row else ""
    if len(phone) < MIN_PHONE_DIGITS:
        return None

    values = {
        field: cell_text(row[position]) if position < len(row) else ""
        for position, field in enumerate(_POSITIONAL_FIELDS, start=1)
    }
    return RawLead(phone=phone, **values)


__all__ = ["MIN_PHONE_DIGITS", "load_raw_rows", "row_to_raw_lead"]
