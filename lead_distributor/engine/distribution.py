"""Assignment of master rows to analysts and coordinators."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from ..columns import find_field, normalize_id, require_field
from ..errors import ValidationError
from ..models import AssignmentResult, DistributionResult, PromotionResult
from ..workspace import Workspace, file_date, validate_person_name

LOGGER = logging.getLogger(__name__)

ROLE_BY_LEVEL = {1: "Analyst", 2: "Coordinator"}
PROMOTED_LEVEL = 2
PROMOTED_STATUS = "Promoted"


def distribute(workspace: Workspace, assignments: Mapping[str, Sequence[int]], level: int = 1) -> DistributionResult:
    """Assign master rows to people and append them to their tracking files.

    ``assignments`` maps a person name to zero-based indices into the master
    data rows. Out-of-range indices are skipped. Running the same request
    twice appends the rows twice.
    """

    plan = _validate_assignments(assignments)
    level = _validate_level(level)
    role = ROLE_BY_LEVEL[level]

    master_path = workspace.locate_master()
    master = workspace.read(master_path)
    idx_assigned = require_field(master.header, "assigned_to", sheet_label="master")
    idx_level = find_field(master.header, "level")
    idx_role = find_field(master.header, "role")

    today = file_date(workspace.clock())
    result = DistributionResult()

    for person, row_indices in plan.items():
        person_rows: List[List[Any]] = []
        for row_index in row_indices:
            if not 0 <= row_index < master.row_count:
                LOGGER.debug("Skipping out of range row %s for %s", row_index, person)
                continue
            master.set_cell(row_index, idx_assigned, person)
            master.set_cell(row_index, idx_level, level)
            master.set_cell(row_index, idx_role, role)
            person_rows.append(list(master.rows[row_index]))

        if not person_rows:
            continue

        file_name = f"{person}_{today}.xlsx"
        _append_to_tracking(workspace, person, master.header, person_rows, file_name)
        result.results[person] = AssignmentResult(assigned=len(person_rows), file_name=file_name)
        LOGGER.info("Assigned %s leads to %s (level %s)", len(person_rows), person, level)

    workspace.write(master_path, master)
    return result


def promote(workspace: Workspace, lead_ids: Sequence[Any], coordinator_name: str) -> PromotionResult:
    """Force-assign the given lead IDs to a coordinator at level 2."""

    if isinstance(lead_ids, (str, bytes)) or not lead_ids:
        raise ValidationError("leadIds must be a non-empty list")
    coordinator = validate_person_name(coordinator_name)
    requested = {normalize_id(lead_id) for lead_id in lead_ids} - {""}
    if not requested:
        raise ValidationError("leadIds contains no usable identifiers")

    master_path = workspace.locate_master()
    master = workspace.read(master_path)
    idx_id = require_field(master.header, "id", sheet_label="master")
    idx_assigned = require_field(master.header, "assigned_to", sheet_label="master")
    idx_level = find_field(master.header, "level")
    idx_role = find_field(master.header, "role")
    idx_status = find_field(master.header, "status")

    promoted_rows: List[List[Any]] = []
    for row_index in range(master.row_count):
        if normalize_id(master.get_cell(row_index, idx_id)) not in requested:
            continue
        master.set_cell(row_index, idx_assigned, coordinator)
        master.set_cell(row_index, idx_level, PROMOTED_LEVEL)
        master.set_cell(row_index, idx_role, ROLE_BY_LEVEL[PROMOTED_LEVEL])
        master.set_cell(row_index, idx_status, PROMOTED_STATUS)
        promoted_rows.append(list(master.rows[row_index]))

    file_name = None
    if promoted_rows:
        file_name = f"{coordinator}_L2_{file_date(workspace.clock())}.xlsx"
        _append_to_tracking(workspace, coordinator, master.header, promoted_rows, file_name)

    workspace.write(master_path, master)
    LOGGER.info("Promoted %s leads to %s", len(promoted_rows), coordinator)
    return PromotionResult(promoted=len(promoted_rows), coordinator=coordinator, file_name=file_name)


def _append_to_tracking(
    workspace: Workspace,
    person: str,
    header: List[Any],
    rows: Iterable[List[Any]],
    file_name: str,
) -> None:
    seed = workspace.tracking_seed(person, header)
    seed.rows.extend(rows)
    workspace.write(workspace.person_path(person) / file_name, seed)


def _validate_assignments(assignments: Mapping[str, Sequence[int]]) -> Dict[str, List[int]]:
    if not isinstance(assignments, Mapping) or not assignments:
        raise ValidationError("Assignments are required")

    plan: Dict[str, List[int]] = {}
    for person, indices in assignments.items():
        name = validate_person_name(person)
        if isinstance(indices, (str, bytes)) or not isinstance(indices, Iterable):
            raise ValidationError(f"Row indices for '{name}' must be a list of integers")
        cleaned: List[int] = []
        for value in indices:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"Row index {value!r} for '{name}' is not an integer")
            cleaned.append(value)
        plan.setdefault(name, []).extend(cleaned)
    return plan


def _validate_level(level: Any) -> int:
    if isinstance(level, bool) or level not in ROLE_BY_LEVEL:
        raise ValidationError(f"Level must be one of {sorted(ROLE_BY_LEVEL)}")
    return int(level)


__all__ = ["ROLE_BY_LEVEL", "distribute", "promote"]
