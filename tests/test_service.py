from dataclasses import replace

import pytest

from lead_distributor.config import UserDirectory
from lead_distributor.engine import LeadSyncService
from lead_distributor.factory import build_service
from lead_distributor.workspace import Workspace


@pytest.fixture()
def users():
    return UserDirectory.from_records(
        [
            {"username": "boss", "name": "Maria", "role": "Manager"},
            {"username": "ana", "name": "Ana", "role": "Analyst"},
        ]
    )


@pytest.fixture()
def service(workspace, users):
    return LeadSyncService(workspace, users=users)


def test_distribute_reports_success_payload(service, master_path):
    result = service.distribute({"Ana": [0]}, 1)

    assert result.success
    assert result.as_dict() == {
        "success": True,
        "message": "Distribution completed",
        "results": {"Ana": {"assigned": 1, "fileName": "Ana_2024-05-17.xlsx"}},
    }


def test_missing_master_is_reported_as_not_found(service):
    result = service.distribute({"Ana": [0]}, 1)

    assert not result.success
    assert result.error == "not_found"
    assert result.as_dict()["success"] is False


def test_malformed_request_is_reported_as_validation(service, master_path):
    assert service.sync("purge").error == "validation"
    assert service.promote([], "Carla").error == "validation"


def test_corrupt_master_is_reported_as_storage(service, workspace):
    (workspace.main_path / "Datos.xlsx").write_text("not a workbook", encoding="utf-8")

    result = service.sync()

    assert result.error == "storage"
    assert "Datos.xlsx" in result.message


def test_schema_problem_is_reported(service, workspace, sheets):
    sheets.write(workspace.main_path / "Datos.xlsx", [["ID", "Phone"], [1, "5550000001"]])

    assert service.distribute({"Ana": [0]}, 1).error == "schema"


def test_mutations_require_manager_when_actor_given(service, master_path):
    assert service.distribute({"Ana": [0]}, 1, actor="ana").error == "forbidden"
    assert service.sync(actor="ghost").error == "forbidden"
    assert not (service.workspace.tracking_path / "Ana").exists()

    assert service.distribute({"Ana": [0]}, 1, actor="BOSS").success


def test_promote_message_counts_promoted_leads(service, master_path):
    result = service.promote(["1", "2"], "Carla")

    assert result.message == "2 leads promoted to Level 2"
    assert result.data["fileName"] == "Carla_L2_2024-05-17.xlsx"


def test_process_raw_data_message(service, workspace):
    (workspace.raw_path / "batch.csv").write_text("5551234567,Ada,,,,,\n", encoding="utf-8")

    result = service.process_raw_data()

    assert result.message == "Processed 1 files, 1 new records added"
    assert result.data["added"] == 1


def test_sync_reports_counters(service, workspace, sheets, master_path):
    sheets.write(workspace.tracking_path / "Ana" / "Ana_2024-05-17.xlsx", [["ID", "Status"], [1, "PO"]])

    result = service.sync("update")

    assert result.message == "Sync completed"
    assert result.data["stats"] == {"poPromoted": 1, "naReleased": 0, "updates": 1}
    assert result.data["historyFile"] == "History_Log_2024-05-17-09-30-00.xlsx"


def test_tracking_sheet_is_limited_to_owner_or_manager(service, workspace, sheets):
    sheets.write(workspace.tracking_path / "Ana" / "Ana_2024-05-17.xlsx", [["ID", "Status"], [1, "CALLBACK"]])

    own = service.tracking_sheet("Ana", actor="ana")
    assert own.success
    assert own.data["fileName"] == "Ana_2024-05-17.xlsx"
    assert own.data["data"] == [[1, "CALLBACK"]]
    assert own.data["allFiles"] == ["Ana_2024-05-17.xlsx"]

    assert service.tracking_sheet("Bob", actor="ana").error == "forbidden"
    assert service.tracking_sheet("Bob", actor="boss").data == {"exists": False, "personName": "Bob"}


def test_read_only_views(service, workspace, master_path, sheets):
    sheets.write(workspace.tracking_path / "Ana" / "Ana_2024-05-17.xlsx", [["ID"], [1]])

    main = service.main_sheet()
    assert main.data["exists"]
    assert main.data["fileName"] == "Datos.xlsx"
    assert main.data["totalRows"] == 3

    structure = service.structure(actor="ana")
    assert [entry["name"] for entry in structure.data["structure"]["Main"]] == ["Datos.xlsx"]

    tracking = service.all_tracking()
    assert list(tracking.data["tracking"]) == ["Ana"]

    assert service.historical_files().data == {"files": []}
    assert service.structure(actor="ghost").error == "forbidden"


def test_main_sheet_without_master(service):
    assert service.main_sheet().data == {"exists": False}


def test_build_service_with_lock_and_concurrency(settings, clock, sheets, master_rows):
    locked = replace(settings, use_lock=True, lock_timeout=1.0, concurrent=True, max_workers=2)
    service = build_service(locked, clock=clock)
    service.workspace.ensure_layout()
    sheets.write(service.workspace.main_path / "Datos.xlsx", master_rows)

    assert service.distribute({"Ana": [0], "Bob": [1]}, 1).success
    assert service.sync().success
    assert not any(service.workspace.main_path.glob(".*.lock"))


def test_held_lock_is_reported_as_storage(settings, clock, master_rows, sheets):
    workspace = Workspace(replace(settings, use_lock=True, lock_timeout=0.2), clock=clock)
    workspace.ensure_layout()
    sheets.write(workspace.main_path / "Datos.xlsx", master_rows)
    other = Workspace(replace(settings, use_lock=True, lock_timeout=0.2))

    with other.lock():
        result = LeadSyncService(workspace).sync()

    assert result.error == "storage"


def test_save_tracking_sheet_by_owner(service, workspace):
    result = service.save_tracking_sheet("Ana", ["ID", "Status"], [[1, "CALLBACK"]], actor="ana")

    assert result.as_dict() == {
        "success": True,
        "message": "Tracking file saved for Ana",
        "personName": "Ana",
        "fileName": "Ana_tracking.xlsx",
    }
    saved = service.tracking_sheet("Ana").data
    assert saved["data"] == [[1, "CALLBACK"]]


def test_save_tracking_sheet_is_limited_to_owner_or_manager(service, workspace):
    assert service.save_tracking_sheet("Bob", ["ID"], [[1]], actor="ana").error == "forbidden"
    assert not (workspace.tracking_path / "Bob").exists()

    assert service.save_tracking_sheet("Bob", ["ID"], [[1]], "Bob_week.xlsx", actor="boss").success
    assert (workspace.tracking_path / "Bob" / "Bob_week.xlsx").is_file()


@pytest.mark.parametrize("file_name", ["../Datos.xlsx", ".hidden.xlsx", "notes.csv"])
def test_save_tracking_sheet_rejects_unsafe_file_names(service, workspace, file_name):
    assert service.save_tracking_sheet("Ana", ["ID"], [[1]], file_name).error == "validation"
    assert not (workspace.tracking_path / "Ana").exists()


def test_save_main_sheet_requires_manager(service, workspace):
    assert service.save_main_sheet(["ID"], [[1]], actor="ana").error == "forbidden"

    result = service.save_main_sheet(["ID", "Phone"], [[1, "5550000001"]], actor="boss")

    assert result.message == "Main file saved"
    assert result.data == {"fileName": "Datos.xlsx"}
    assert service.main_sheet().data["data"] == [[1, "5550000001"]]


def test_save_sheets_reject_malformed_payloads(service):
    assert service.save_main_sheet("ID", [[1]]).error == "validation"
    assert service.save_main_sheet([], []).error == "validation"
    assert service.save_main_sheet(["ID"], ["1"]).error == "validation"


def test_save_historical_sheet_for_any_known_user(service, workspace):
    assert service.save_historical_sheet(["ID"], [[1]], "", actor="ana").error == "validation"
    assert service.save_historical_sheet(["ID"], [[1]], "Notes.xlsx", actor="ghost").error == "forbidden"

    result = service.save_historical_sheet(["ID"], [[1]], "Notes.xlsx", actor="ana")

    assert result.message == "Log saved to Historical"
    assert [entry["name"] for entry in service.historical_files().data["files"]] == ["Notes.xlsx"]


def test_raw_file_listing_view_and_delete(service, workspace):
    (workspace.raw_path / "batch.csv").write_text("Phone,Name\n5551234567,Ada\n", encoding="utf-8")

    assert service.raw_files(actor="ana").error == "forbidden"
    listing = service.raw_files(actor="boss").data["files"]
    assert [entry["name"] for entry in listing] == ["batch.csv"]

    view = service.raw_file("batch.csv").data
    assert view["headers"] == ["Phone", "Name"]
    assert view["totalRows"] == 1

    assert service.delete_raw_file("batch.csv", actor="ana").error == "forbidden"
    deleted = service.delete_raw_file("batch.csv", actor="boss")
    assert deleted.message == "File batch.csv deleted from RawData"
    assert not (workspace.raw_path / "batch.csv").exists()
    assert service.delete_raw_file("batch.csv").error == "not_found"
    assert service.delete_raw_file("../Main/Datos.xlsx").error == "validation"
