"""Merge of raw lead batches into the master dataset."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Set

from ..columns import STANDARD_HEADERS, find_field, phone_digits
from ..models import IngestedFile, IngestionResult, Sheet
from ..workspace import Workspace
from .loaders import load_raw_rows, row_to_raw_lead
from .models import RawLead

LOGGER = logging.getLogger(__name__)

NEW_CLASSIFICATION = "New"
NEW_LEVEL = 1


def process_raw_data(workspace: Workspace) -> IngestionResult:
    """Append unseen leads from every raw batch to the master.

    Rows are deduplicated by phone digits against the master and against
    rows added earlier in the same run. Each batch is archived once it has
    been fully merged and the master saved, so a batch that fails midway is
    picked up again on the next run.
    """

    workspace.ensure_layout()
    raw_files = workspace.raw_files()
    result = IngestionResult()
    if not raw_files:
        LOGGER.info("No raw files to process in %s", workspace.raw_path)
        return result

    master_path = workspace.find_master()
    if master_path is None:
        master_path = workspace.default_master_path()
        master = Sheet(header=list(STANDARD_HEADERS))
        LOGGER.info("Creating master file %s", master_path.name)
    else:
        master = workspace.read(master_path)

    columns = _resolve_columns(master.header)
    known_phones = _existing_phones(master, columns["phone"])
    next_id = master.row_count

    for raw_path in raw_files:
        added = 0
        for raw_row in load_raw_rows(raw_path):
            lead = row_to_raw_lead(raw_row)
            if lead is None or lead.phone in known_phones:
                continue
            next_id += 1
            known_phones.add(lead.phone)
            master.rows.append(_build_master_row(master.header, columns, lead, next_id, raw_path))
            added += 1

        workspace.write(master_path, master)
        workspace.archive_raw_file(raw_path)
        result.files.append(IngestedFile(name=raw_path.name, added=added))
        result.added += added
        LOGGER.info("Ingested %s new leads from %s", added, raw_path.name)

    return result


def _resolve_columns(header: List[Any]) -> Dict[str, int]:
    fields = (
        "id",
        "phone",
        "first_name",
        "last_name",
        "address",
        "city",
        "state",
        "zip_code",
        "classification",
        "level",
        "lead_source",
    )
    return {field: find_field(header, field) for field in fields}


def _existing_phones(master: Sheet, idx_phone: int) -> Set[str]:
    if idx_phone == -1:
        return set()
    phones = {phone_digits(master.get_cell(row_index, idx_phone)) for row_index in range(master.row_count)}
    phones.discard("")
    return phones


def _build_master_row(
    header: List[Any],
    columns: Dict[str, int],
    lead: RawLead,
    lead_id: int,
    source: Path,
) -> List[Any]:
    row: List[Any] = [""] * len(header)
    values: Dict[str, Any] = dict(lead.fields())
    values.update(
        {
            "id": lead_id,
            "classification": NEW_CLASSIFICATION,
            "level": NEW_LEVEL,
            "lead_source": source.name,
        }
    )
    for field, value in values.items():
        index = columns.get(field, -1)
        if index != -1:
            row[index] = value
    return row


__all__ = ["process_raw_data"]
