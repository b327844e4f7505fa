"""Ingestion of raw lead batches into the master dataset."""

from .engine import process_raw_data
from .loaders import load_raw_rows, row_to_raw_lead
from .models import RawLead

__all__ = ["RawLead", "load_raw_rows", "process_raw_data", "row_to_raw_lead"]
