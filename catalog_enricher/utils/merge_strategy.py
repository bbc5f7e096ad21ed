"""
Non-destructive merge of enrichment output into a record.

Precedence is simple: an existing non-empty value always wins, generated
values only fill gaps (missing, None or empty string). `updatedAt` is
refreshed on every merge, including merges that change nothing, so the
timestamp records the enrichment attempt rather than a change.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from ..constants import CREATED_AT_FIELD, UPDATED_AT_FIELD


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with milliseconds, e.g. 2025-01-31T12:00:00.000Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def is_empty(value: Any) -> bool:
    """True for None and for strings that are empty after stripping."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


class MergeStrategy:
    """
    Strategy for merging generated fields into an existing record.

    Example:
        >>> strategy = MergeStrategy(clock=lambda: "2025-01-01T00:00:00.000Z")
        >>> record = {"benchmark_name": "MMLU", "benchmark_score": ""}
        >>> merged, filled = strategy.merge_with_report(record, {"benchmark_name": "X", "benchmark_score": "86.4"})
        >>> merged["benchmark_name"], merged["benchmark_score"], filled
        ('MMLU', '86.4', ['benchmark_score'])
    """

    PROTECTED_FIELDS = {CREATED_AT_FIELD, UPDATED_AT_FIELD}

    def __init__(self, clock: Callable[[], str] = utc_timestamp):
        self._clock = clock

    def merge_with_report(
        self,
        original: Mapping[str, Optional[str]],
        partial: Mapping[str, Optional[str]],
    ) -> Tuple[Dict[str, Optional[str]], List[str]]:
        """
        Merge `partial` into a copy of `original`.

        Returns:
            Tuple of (updated record, names of fields that were filled)
        """
        updated = dict(original)
        filled: List[str] = []

        for field_name, value in partial.items():
            if field_name in self.PROTECTED_FIELDS or is_empty(value):
                continue
            if is_empty(updated.get(field_name)):
                updated[field_name] = value
                filled.append(field_name)

        updated[UPDATED_AT_FIELD] = self._clock()
        return updated, filled

    def merge(
        self,
        original: Mapping[str, Optional[str]],
        partial: Mapping[str, Optional[str]],
    ) -> Dict[str, Optional[str]]:
        """Merge and return only the updated record."""
        updated, _ = self.merge_with_report(original, partial)
        return updated
