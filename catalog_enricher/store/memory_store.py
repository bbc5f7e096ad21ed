"""In-memory Record Store used by tests and dry runs."""

import copy
from typing import Dict, List

from .base import Record, RecordStore, Table


class InMemoryRecordStore(RecordStore):
    """
    Keeps tables in a dict. Loads hand out deep copies so callers can mutate
    records freely without touching stored state until `save`.
    """

    def __init__(self, tables: Dict[str, List[Record]] = None):
        self._tables: Dict[str, Table] = {}
        self.save_count: Dict[str, int] = {}
        for name, records in (tables or {}).items():
            columns: List[str] = []
            for record in records:
                columns.extend(key for key in record if key not in columns)
            self._tables[name] = Table(name=name, records=copy.deepcopy(records), columns=columns)

    def exists(self, name: str) -> bool:
        return name in self._tables

    def load(self, name: str) -> Table:
        table = self._tables.get(name)
        if table is None:
            return Table(name=name)
        return copy.deepcopy(table)

    def save(self, name: str, records: List[Record], columns: List[str]) -> None:
        self._tables[name] = Table(name=name, records=copy.deepcopy(records), columns=list(columns))
        self.save_count[name] = self.save_count.get(name, 0) + 1

    def records(self, name: str) -> List[Record]:
        """Stored records for assertions (a copy)."""
        return self.load(name).records
