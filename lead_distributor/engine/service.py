"""Service boundary that runs sync operations and reports structured outcomes."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from ..config import MANAGER_ROLE, UserDirectory
from ..errors import LeadDistributorError, PermissionDeniedError, StorageError, ValidationError
from ..ingestion.engine import process_raw_data
from ..models import OperationResult, Sheet
from ..workspace import Workspace
from .distribution import distribute, promote
from .reconciliation import MODE_UPDATE, sync

LOGGER = logging.getLogger(__name__)


class LeadSyncService:
    """Runs distribution, reconciliation and ingestion against one workspace.

    Every public method returns an :class:`OperationResult`; no exception
    escapes. Mutating operations run under the workspace lock when locking is
    enabled. When ``actor`` is given it must name a configured user holding
    the Manager role.
    """

    def __init__(
        self,
        workspace: Workspace,
        *,
        users: Optional[UserDirectory] = None,
        concurrent: bool = False,
        max_workers: Optional[int] = None,
    ) -> None:
        self._workspace = workspace
        self._users = users if users is not None else UserDirectory()
        self._concurrent = concurrent
        self._max_workers = max_workers

    @property
    def workspace(self) -> Workspace:
        return self._workspace

    # ------------------------------------------------------------------
    # Mutating operations
    # ------------------------------------------------------------------
    def distribute(
        self, assignments: Mapping[str, Sequence[int]], level: int = 1, *, actor: Optional[str] = None
    ) -> OperationResult:
        return self._run(
            "distribute",
            lambda: distribute(self._workspace, assignments, level).as_dict(),
            actor=actor,
            message="Distribution completed",
        )

    def sync(self, mode: str = MODE_UPDATE, *, actor: Optional[str] = None) -> OperationResult:
        return self._run(
            "sync",
            lambda: sync(
                self._workspace, mode, concurrent=self._concurrent, max_workers=self._max_workers
            ).as_dict(),
            actor=actor,
            message="Sync completed",
        )

    def promote(
        self, lead_ids: Sequence[Any], coordinator_name: str, *, actor: Optional[str] = None
    ) -> OperationResult:
        return self._run(
            "promote",
            lambda: promote(self._workspace, lead_ids, coordinator_name).as_dict(),
            actor=actor,
            message=lambda data: f"{data['promoted']} leads promoted to Level 2",
        )

    def process_raw_data(self, *, actor: Optional[str] = None) -> OperationResult:
        return self._run(
            "process-raw",
            lambda: process_raw_data(self._workspace).as_dict(),
            actor=actor,
            message=lambda data: f"Processed {len(data['files'])} files, {data['added']} new records added",
        )

    def save_main_sheet(
        self,
        headers: Sequence[Any],
        data: Sequence[Sequence[Any]],
        file_name: Optional[str] = None,
        *,
        actor: Optional[str] = None,
    ) -> OperationResult:
        def save() -> Dict[str, Any]:
            path = self._workspace.save_master(_sheet_from_payload(headers, data), file_name)
            return {"fileName": path.name}

        return self._run("save-main", save, actor=actor, message="Main file saved")

    def save_tracking_sheet(
        self,
        person: str,
        headers: Sequence[Any],
        data: Sequence[Sequence[Any]],
        file_name: Optional[str] = None,
        *,
        actor: Optional[str] = None,
    ) -> OperationResult:
        """Replace a person's tracking file with edited rows.

        Analysts record their progress this way; the owner or a Manager may
        save.
        """

        def save() -> Dict[str, Any]:
            if actor is not None:
                self._authorize_person(actor, person)
            sheet = _sheet_from_payload(headers, data)
            path = self._workspace.save_tracking_sheet(person, sheet, file_name)
            return {"personName": path.parent.name, "fileName": path.name}

        return self._run(
            "save-tracking",
            save,
            actor=None,
            message=lambda result: f"Tracking file saved for {result['personName']}",
        )

    def save_historical_sheet(
        self,
        headers: Sequence[Any],
        data: Sequence[Sequence[Any]],
        file_name: str,
        *,
        actor: Optional[str] = None,
    ) -> OperationResult:
        def save() -> Dict[str, Any]:
            path = self._workspace.save_historical_sheet(_sheet_from_payload(headers, data), file_name)
            return {"fileName": path.name}

        return self._run("save-historical", save, actor=actor, roles=None, message="Log saved to Historical")

    def delete_raw_file(self, file_name: str, *, actor: Optional[str] = None) -> OperationResult:
        def delete() -> Dict[str, Any]:
            self._workspace.delete_raw_file(file_name)
            return {"fileName": file_name}

        return self._run(
            "delete-raw", delete, actor=actor, message=f"File {file_name} deleted from RawData"
        )

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    def structure(self, *, actor: Optional[str] = None) -> OperationResult:
        return self._run(
            "structure",
            lambda: {"structure": self._workspace.structure()},
            actor=actor,
            roles=None,
            mutating=False,
        )

    def main_sheet(self, *, actor: Optional[str] = None) -> OperationResult:
        def load() -> Dict[str, Any]:
            master = self._workspace.find_master()
            if master is None:
                return {"exists": False}
            return {"exists": True, "fileName": master.name, **_sheet_payload(self._workspace.read(master))}

        return self._run("main", load, actor=actor, roles=None, mutating=False)

    def tracking_sheet(self, person: str, *, actor: Optional[str] = None) -> OperationResult:
        def load() -> Dict[str, Any]:
            if actor is not None:
                self._authorize_person(actor, person)
            files = self._workspace.tracking_files(person)
            latest = self._workspace.latest_tracking_file(person)
            if latest is None:
                return {"exists": False, "personName": person}
            return {
                "exists": True,
                "personName": person,
                "fileName": latest.name,
                **_sheet_payload(self._workspace.read(latest)),
                "allFiles": [path.name for path in files],
            }

        return self._run("tracking", load, actor=None, mutating=False)

    def all_tracking(self, *, actor: Optional[str] = None) -> OperationResult:
        def load() -> Dict[str, Any]:
            tracking: Dict[str, Any] = {}
            for person in self._workspace.person_names():
                latest = self._workspace.latest_tracking_file(person)
                if latest is None:
                    continue
                tracking[person] = {"fileName": latest.name, **_sheet_payload(self._workspace.read(latest))}
            return {"tracking": tracking}

        return self._run("tracking-all", load, actor=actor, mutating=False)

    def historical_files(self, *, actor: Optional[str] = None) -> OperationResult:
        return self._run(
            "historical",
            lambda: {"files": self._workspace.historical_files()},
            actor=actor,
            mutating=False,
        )

    def raw_files(self, *, actor: Optional[str] = None) -> OperationResult:
        return self._run(
            "rawdata",
            lambda: {"files": self._workspace.raw_file_entries()},
            actor=actor,
            mutating=False,
        )

    def raw_file(self, file_name: str, *, actor: Optional[str] = None) -> OperationResult:
        def load() -> Dict[str, Any]:
            path = self._workspace.raw_file_path(file_name)
            return {"fileName": path.name, **_sheet_payload(self._workspace.read(path))}

        return self._run("rawdata-file", load, actor=actor, mutating=False)

    # ------------------------------------------------------------------
    def _run(
        self,
        label: str,
        operation: Callable[[], Dict[str, Any]],
        *,
        actor: Optional[str],
        roles: Optional[Sequence[str]] = (MANAGER_ROLE,),
        mutating: bool = True,
        message: Any = None,
    ) -> OperationResult:
        try:
            if actor is not None:
                self._authorize(actor, roles)
            if mutating:
                with self._workspace.lock():
                    data = operation()
            else:
                data = operation()
        except StorageError as exc:
            LOGGER.exception("Operation %s failed", label)
            return OperationResult.failed(exc.kind, str(exc))
        except LeadDistributorError as exc:
            LOGGER.warning("Operation %s rejected: %s", label, exc)
            return OperationResult.failed(exc.kind, str(exc))
        except OSError as exc:
            LOGGER.exception("Operation %s failed", label)
            return OperationResult.failed(StorageError.kind, f"Could not complete {label}: {exc}")

        text = message(data) if callable(message) else message
        return OperationResult.ok(data, text)

    def _authorize(self, actor: str, roles: Optional[Sequence[str]]) -> None:
        if roles is None:
            if self._users.get(actor) is None:
                raise PermissionDeniedError(f"Unknown user '{actor}'")
            return
        self._users.require_role(actor, roles)

    def _authorize_person(self, actor: str, person: str) -> None:
        account = self._users.get(actor)
        if account is None:
            raise PermissionDeniedError(f"Unknown user '{actor}'")
        if account.role == MANAGER_ROLE:
            return
        if person.strip().lower() != account.name.strip().lower():
            raise PermissionDeniedError("Only your own tracking files can be accessed")


def _sheet_payload(sheet: Sheet) -> Dict[str, Any]:
    return {"headers": list(sheet.header), "data": [list(row) for row in sheet.rows], "totalRows": sheet.row_count}


def _sheet_from_payload(headers: Sequence[Any], data: Sequence[Sequence[Any]]) -> Sheet:
    if isinstance(headers, (str, bytes)) or not isinstance(headers, Sequence) or not headers:
        raise ValidationError("headers must be a non-empty list")
    if isinstance(data, (str, bytes)) or not isinstance(data, Sequence):
        raise ValidationError("data must be a list of rows")
    rows = []
    for row in data:
        if isinstance(row, (str, bytes)) or not isinstance(row, Sequence):
            raise ValidationError(f"Invalid row {row!r}: rows must be lists of cells")
        rows.append(list(row))
    return Sheet(header=list(headers), rows=rows)


__all__ = ["LeadSyncService"]
