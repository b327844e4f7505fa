"""Column resolution and identifier normalisation helpers."""
from __future__ import annotations

import math
import re
from typing import Any, Mapping, Sequence, Tuple

from .errors import SchemaError

FIELD_CANDIDATES: Mapping[str, Tuple[str, ...]] = {
    "id": ("ID", "Folio"),
    "phone": ("Phone", "Telefono", "Number"),
    "first_name": ("FirstName",),
    "last_name": ("LastName",),
    "address": ("Address",),
    "city": ("City",),
    "state": ("State",),
    "zip_code": ("ZipCode",),
    "classification": ("Classification",),
    "level": ("Level", "Nivel"),
    "status": ("Status", "Estado", "Estatus"),
    "assigned_to": ("AssignedTo", "Asignado"),
    "role": ("Role", "Rol"),
    "comments": ("Comments_Analyst", "Comentarios", "Comments"),
    "lead_source": ("LeadSource",),
}

STANDARD_HEADERS: Tuple[str, ...] = (
    "ID",
    "Phone",
    "FirstName",
    "LastName",
    "Address",
    "City",
    "State",
    "ZipCode",
    "Classification",
    "Level",
    "Status",
    "AssignedTo",
    "Role",
    "Comments_Analyst",
    "Comments_Coordinator",
    "Comments_Manager",
    "LeadSource",
)

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_NON_DIGIT = re.compile(r"\D")


def cell_text(value: Any) -> str:
    """Render a spreadsheet cell as trimmed text.

    Integral floats lose their ``.0`` suffix so that numeric identifiers and
    phone numbers read back from a workbook compare equal to their text form.
    """

    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def resolve_column(header: Sequence[Any], candidates: Sequence[str]) -> int:
    """Return the first header position matching any candidate, or ``-1``.

    A header cell matches when, once case-folded and trimmed, it equals a
    candidate or contains it as a substring. Header positions are scanned in
    order and the first one to match any candidate wins.
    """

    lowered = [candidate.lower() for candidate in candidates]
    for index, cell in enumerate(header):
        header_norm = cell_text(cell).lower()
        for candidate in lowered:
            if header_norm == candidate or candidate in header_norm:
                return index
    return -1


def find_field(header: Sequence[Any], field: str) -> int:
    return resolve_column(header, FIELD_CANDIDATES[field])


def require_field(header: Sequence[Any], field: str, *, sheet_label: str = "sheet") -> int:
    """Resolve a load-bearing column, raising :class:`SchemaError` when absent."""

    index = find_field(header, field)
    if index == -1:
        names = ", ".join(FIELD_CANDIDATES[field])
        raise SchemaError(f"No {names} column found in the {sheet_label} header")
    return index


def normalize_id(raw: Any) -> str:
    """Canonicalise a record identifier for cross-file equality."""

    return _NON_ALNUM.sub("", cell_text(raw).lower())


def phone_digits(raw: Any) -> str:
    return _NON_DIGIT.sub("", cell_text(raw))


__all__ = [
    "FIELD_CANDIDATES",
    "STANDARD_HEADERS",
    "cell_text",
    "find_field",
    "normalize_id",
    "phone_digits",
    "require_field",
    "resolve_column",
]
