"""Shared fixtures building on-disk workspaces for the engine tests."""
from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Sequence

import pytest
from openpyxl import Workbook

from lead_distributor.columns import STANDARD_HEADERS
from lead_distributor.config import Settings
from lead_distributor.workspace import Workspace

FIXED_NOW = datetime(2024, 5, 17, 9, 30, 0, tzinfo=timezone.utc)


class SheetFiles:
    """Write workbooks independently of the package under test."""

    @staticmethod
    def write(path: Path, rows: Sequence[Sequence[Any]], *, mtime: float | None = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        workbook = Workbook()
        sheet = workbook.active
        for row in rows:
            sheet.append(list(row))
        workbook.save(path)
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path


@pytest.fixture()
def sheets() -> SheetFiles:
    return SheetFiles()


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(data_path=tmp_path / "data")


@pytest.fixture()
def clock():
    return lambda: FIXED_NOW


@pytest.fixture()
def workspace(settings, clock) -> Workspace:
    workspace = Workspace(settings, clock=clock)
    workspace.ensure_layout()
    return workspace


def _lead_row(lead_id: Any, phone: str, first: str, assigned: str = "", status: str = "") -> List[Any]:
    values = {
        "ID": lead_id,
        "Phone": phone,
        "FirstName": first,
        "LastName": "Doe",
        "Status": status,
        "AssignedTo": assigned,
    }
    return [values.get(column, "") for column in STANDARD_HEADERS]


@pytest.fixture()
def lead_row():
    """Return a builder for master rows using the standard header."""

    return _lead_row


@pytest.fixture()
def master_rows() -> List[List[Any]]:
    return [
        list(STANDARD_HEADERS),
        _lead_row(1, "5550000001", "Ada"),
        _lead_row(2, "5550000002", "Grace"),
        _lead_row(3, "5550000003", "Alan"),
    ]


@pytest.fixture()
def master_path(workspace, sheets, master_rows) -> Path:
    return sheets.write(workspace.main_path / "Datos.xlsx", master_rows)
