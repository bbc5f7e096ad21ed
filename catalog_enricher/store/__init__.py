"""
Record Store implementations.

Tables are loaded and saved through a RecordStore so the pipeline never
touches the file system directly:

    from catalog_enricher.store import CsvRecordStore, InMemoryRecordStore

    store = CsvRecordStore(Path("data"))
    table = store.load("Platforms.csv")
"""

from .base import Record, RecordStore, Table
from .csv_store import CsvRecordStore
from .memory_store import InMemoryRecordStore

__all__ = [
    "Record",
    "RecordStore",
    "Table",
    "CsvRecordStore",
    "InMemoryRecordStore",
]
