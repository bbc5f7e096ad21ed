"""
CSV-backed Record Store.

Header row is the ordered field list, each following row is one record and
an empty cell is an empty value. Blank lines are skipped on read.
"""

import csv
import logging
from pathlib import Path
from typing import List, Optional

from .base import Record, RecordStore, Table

logger = logging.getLogger(__name__)


class CsvRecordStore(RecordStore):
    """Stores each table as `<data_dir>/<name>`."""

    def __init__(self, data_dir: Path, encoding: str = "utf-8"):
        self.data_dir = Path(data_dir)
        self.encoding = encoding

    def path_for(self, name: str) -> Optional[Path]:
        return self.data_dir / name

    def exists(self, name: str) -> bool:
        return (self.data_dir / name).exists()

    def load(self, name: str) -> Table:
        path = self.data_dir / name
        if not path.exists():
            logger.warning(f"File not found: {path}")
            return Table(name=name)

        records: List[Record] = []
        with open(path, newline="", encoding=self.encoding) as f:
            reader = csv.DictReader(f)
            columns = list(reader.fieldnames or [])
            for row in reader:
                # DictReader yields None for missing trailing cells and a None key for extras
                row.pop(None, None)
                if not any((value or "").strip() for value in row.values()):
                    continue
                records.append({key: value for key, value in row.items()})

        logger.info(f"Loaded {len(records)} records from {path}")
        return Table(name=name, records=records, columns=columns)

    def save(self, name: str, records: List[Record], columns: List[str]) -> None:
        path = self.data_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)

        fieldnames = list(columns)
        for record in records:
            for key in record:
                if key not in fieldnames:
                    fieldnames.append(key)

        with open(path, "w", newline="", encoding=self.encoding) as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            for record in records:
                writer.writerow({key: "" if value is None else value for key, value in record.items()})

        logger.info(f"Saved {len(records)} records to {path}")
