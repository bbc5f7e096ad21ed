"""Completeness Gate: a record is complete when every enrichable field has a value."""

from typing import Iterable, List, Mapping, Optional

from ..utils.merge_strategy import is_empty


def missing_fields(record: Mapping[str, Optional[str]], enrichable: Iterable[str]) -> List[str]:
    return [name for name in enrichable if is_empty(record.get(name))]


def is_complete(record: Mapping[str, Optional[str]], enrichable: Iterable[str]) -> bool:
    """
    True when no enrichable field is missing, None or blank.

    Complete records are never sent for enrichment.
    """
    return not missing_fields(record, enrichable)
