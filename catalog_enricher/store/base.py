"""
Record Store interface.

A record is a flat mapping of field name to optional string. A table is an
ordered list of records plus the header order it was read with; insertion
order survives a load/save cycle.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

Record = Dict[str, Optional[str]]


@dataclass
class Table:
    """Records of one entity kind as held by a store."""

    name: str
    records: List[Record] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)

    def index_by(self, key_field: str) -> Dict[str, Record]:
        """
        Build a primary-key lookup.

        Records without a value for `key_field` are left out; on duplicate
        keys the last record wins.
        """
        index: Dict[str, Record] = {}
        for record in self.records:
            key = record.get(key_field)
            if key:
                index[str(key)] = record
        return index


class RecordStore(ABC):
    """Load/save access to named tables."""

    @abstractmethod
    def exists(self, name: str) -> bool:
        """True when the table has been persisted before (even with zero rows)."""

    @abstractmethod
    def load(self, name: str) -> Table:
        """Load a table. A table that does not exist loads as empty."""

    @abstractmethod
    def save(self, name: str, records: List[Record], columns: List[str]) -> None:
        """Replace the stored table with `records`, written in `columns` order."""

    def path_for(self, name: str) -> Optional[Path]:
        """File backing the table, if the store is file based."""
        return None
