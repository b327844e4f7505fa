"""Data models used by raw-batch ingestion."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(slots=True)
class RawLead:
    """Lead read positionally from a raw source batch."""

    phone: str
    first_name: str = ""
    last_name: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""

    def fields(self) -> Dict[str, str]:
        """Return values keyed by master field name."""

        return {
            "phone": self.phone,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
        }


__all__ = ["RawLead"]
