import pandas as pd
import pytest

from lead_distributor.columns import STANDARD_HEADERS
from lead_distributor.engine.reconciliation import (
    KEEP,
    NEGATIVE,
    PASS_OVER,
    UPDATE,
    classify_status,
    sync,
)
from lead_distributor.errors import NotFoundError, SchemaError, ValidationError
from lead_distributor.io import read_sheet

ASSIGNED = STANDARD_HEADERS.index("AssignedTo")
STATUS = STANDARD_HEADERS.index("Status")
COMMENTS = STANDARD_HEADERS.index("Comments_Analyst")

TRACKING_HEADER = ["ID", "FirstName", "Status", "Comments_Analyst"]


@pytest.fixture()
def assigned_master(workspace, sheets, lead_row):
    return sheets.write(
        workspace.main_path / "Datos.xlsx",
        [
            list(STANDARD_HEADERS),
            lead_row(1, "5550000001", "Ada", assigned="Ana"),
            lead_row(2, "5550000002", "Grace", assigned="Ana"),
            lead_row(3, "5550000003", "Alan", assigned="Bob"),
            lead_row(4, "5550000004", "Edsger", assigned="Bob"),
        ],
    )


def _write_tracking(workspace, sheets, person, rows, name=None, mtime=None):
    path = workspace.tracking_path / person / (name or f"{person}_2024-05-10.xlsx")
    return sheets.write(path, [TRACKING_HEADER, *rows], mtime=mtime)


def _history_rows(workspace):
    logs = sorted(workspace.historical_path.glob("History_Log_*.xlsx"))
    assert len(logs) == 1
    frame = pd.read_excel(logs[0], dtype=str, keep_default_na=False)
    return frame.to_dict(orient="records")


@pytest.mark.parametrize(
    ("status", "mode", "expected"),
    [
        ("PO", "update", PASS_OVER),
        ("PASS OVER", "update", PASS_OVER),
        ("CALLBACK", "update", UPDATE),
        ("", "update", UPDATE),
        ("NA", "update", UPDATE),
        ("NO ANSWER", "release", NEGATIVE),
        ("DISCONNECTED", "release", NEGATIVE),
        ("ALL CIRCUITS BUSY", "release", NEGATIVE),
        ("PO", "release", KEEP),
        ("CALLBACK", "release", KEEP),
    ],
)
def test_classify_status(status, mode, expected):
    assert classify_status(status, mode) == expected


def test_sync_update_releases_pass_over_rows(workspace, sheets, assigned_master):
    tracking = _write_tracking(workspace, sheets, "Ana", [[1, "Ada", "PO", ""], [2, "Grace", "", ""]])

    result = sync(workspace, "update")

    assert result.stats.po_promoted == 1
    assert result.stats.updates == 2
    assert result.files_updated == 1
    assert result.history_entries == 1

    master = read_sheet(assigned_master)
    assert master.rows[0][STATUS] == "PO"
    assert master.rows[0][ASSIGNED] == ""
    assert master.rows[1][ASSIGNED] == "Ana"

    assert [row[0] for row in read_sheet(tracking).rows] == [2]

    history = _history_rows(workspace)
    assert len(history) == 1
    assert history[0]["Action"] == "PO_RELEASED"
    assert history[0]["User"] == "Ana"
    assert history[0]["ID"] == "1"
    assert history[0]["Date"] == "2024-05-17"
    assert history[0]["Note"] == "Released for manager review"


def test_sync_update_copies_status_and_comments_without_rewriting(workspace, sheets, assigned_master):
    tracking = _write_tracking(
        workspace, sheets, "Ana", [[1, "Ada", " Callback ", "call at 5"]], mtime=1_000_000
    )

    result = sync(workspace, "update")

    master = read_sheet(assigned_master)
    assert master.rows[0][STATUS] == "CALLBACK"
    assert master.rows[0][COMMENTS] == "call at 5"
    assert master.rows[0][ASSIGNED] == "Ana"
    assert result.stats.updates == 1
    assert result.files_updated == 0
    assert result.history_entries == 0
    assert result.history_file is None
    assert tracking.stat().st_mtime == 1_000_000
    assert not list(workspace.historical_path.glob("History_Log_*.xlsx"))


def test_sync_keeps_rows_without_master_match(workspace, sheets, assigned_master):
    tracking = _write_tracking(workspace, sheets, "Ana", [[404, "Ghost", "PO", ""], ["", "Blank", "PO", ""]])

    result = sync(workspace, "update")

    assert result.stats.po_promoted == 0
    assert result.files_updated == 0
    assert [row[1] for row in read_sheet(tracking).rows] == ["Ghost", "Blank"]


def test_sync_release_returns_negative_outcomes_to_pool(workspace, sheets, assigned_master):
    ana = _write_tracking(workspace, sheets, "Ana", [[1, "Ada", "na", ""], [2, "Grace", "Interested", ""]])
    bob = _write_tracking(workspace, sheets, "Bob", [[3, "Alan", "No Sale", ""], [4, "Edsger", "PO", ""]])

    result = sync(workspace, "release")

    assert result.stats.na_released == 2
    assert result.stats.updates == 2
    assert result.stats.po_promoted == 0
    assert result.files_updated == 2

    master = read_sheet(assigned_master)
    assert master.rows[0][STATUS] == "NA"
    assert master.rows[0][ASSIGNED] == ""
    assert master.rows[2][STATUS] == "NO SALE"
    assert master.rows[2][ASSIGNED] == ""
    assert master.rows[1][ASSIGNED] == "Ana"
    assert master.rows[3][ASSIGNED] == "Bob"
    assert master.rows[3][STATUS] == ""

    assert [row[0] for row in read_sheet(ana).rows] == [2]
    assert [row[0] for row in read_sheet(bob).rows] == [4]

    history = _history_rows(workspace)
    assert [entry["User"] for entry in history] == ["Ana", "Bob"]
    assert {entry["Action"] for entry in history} == {"RELEASED_NEGATIVE"}
    assert [entry["Status"] for entry in history] == ["NA", "NO SALE"]


def test_sync_only_reads_latest_tracking_file(workspace, sheets, assigned_master):
    older = _write_tracking(workspace, sheets, "Ana", [[1, "Ada", "PO", ""]], name="Ana_old.xlsx", mtime=1_000_000)
    _write_tracking(workspace, sheets, "Ana", [[2, "Grace", "Working", ""]], name="Ana_new.xlsx", mtime=2_000_000)

    result = sync(workspace, "update")

    assert result.stats.po_promoted == 0
    assert read_sheet(assigned_master).rows[1][STATUS] == "WORKING"
    assert read_sheet(older).row_count == 1


def test_sync_skips_tracking_files_without_status_column(workspace, sheets, assigned_master):
    path = workspace.tracking_path / "Ana" / "Ana_2024-05-10.xlsx"
    sheets.write(path, [["ID", "FirstName"], [1, "Ada"]])

    result = sync(workspace, "update")

    assert result.stats.updates == 0
    assert read_sheet(assigned_master).rows[0][ASSIGNED] == "Ana"


def test_sync_duplicate_master_ids_resolve_to_last_row(workspace, sheets, lead_row):
    master_path = sheets.write(
        workspace.main_path / "Datos.xlsx",
        [
            list(STANDARD_HEADERS),
            lead_row("A-1", "5550000001", "First", assigned="Ana"),
            lead_row("a1", "5550000002", "Second", assigned="Ana"),
        ],
    )
    _write_tracking(workspace, sheets, "Ana", [["A1", "Either", "PO", ""]])

    sync(workspace, "update")

    master = read_sheet(master_path)
    assert master.rows[0][STATUS] == ""
    assert master.rows[1][STATUS] == "PO"


def test_sync_concurrent_matches_sequential(workspace, sheets, assigned_master):
    _write_tracking(workspace, sheets, "Ana", [[1, "Ada", "PO", ""]])
    _write_tracking(workspace, sheets, "Bob", [[3, "Alan", "Pass Over", ""], [4, "Edsger", "Sold", "paid"]])

    result = sync(workspace, "update", concurrent=True, max_workers=2)

    assert result.stats.po_promoted == 2
    assert result.stats.updates == 3
    assert [entry["User"] for entry in _history_rows(workspace)] == ["Ana", "Bob"]
    master = read_sheet(assigned_master)
    assert master.rows[3][STATUS] == "SOLD"
    assert master.rows[3][COMMENTS] == "paid"


def test_sync_writes_master_even_without_tracking(workspace, assigned_master):
    result = sync(workspace, "update")

    assert result.as_dict() == {
        "stats": {"poPromoted": 0, "naReleased": 0, "updates": 0},
        "filesUpdated": 0,
        "historyEntries": 0,
        "historyFile": None,
    }


def test_sync_rejects_unknown_mode(workspace, assigned_master):
    with pytest.raises(ValidationError):
        sync(workspace, "purge")


def test_sync_requires_master_and_id_column(workspace, sheets):
    with pytest.raises(NotFoundError):
        sync(workspace, "update")

    sheets.write(workspace.main_path / "Datos.xlsx", [["Name", "Status"], ["Ada", ""]])
    with pytest.raises(SchemaError):
        sync(workspace, "update")


def test_sync_rewrite_keeps_spacer_rows(workspace, sheets, assigned_master):
    tracking = _write_tracking(
        workspace, sheets, "Ana", [[1, "Ada", "PO", ""], ["", "", "", ""], [2, "Grace", "", ""]]
    )

    sync(workspace, "update")

    rows = read_sheet(tracking).rows
    assert [row[0] for row in rows] == ["", 2]
    assert rows[0] == ["", "", "", ""]
