"""
Referential validation and stub synthesis.

Records whose foreign keys are empty or do not resolve against the parent
table are dropped (the parent table itself is never touched). When a table
is entirely empty but its primary parent is not, placeholder records are
synthesized according to the entity's stub policy so the enrichment step
has something to work on.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional

from ..constants import CREATED_AT_FIELD, UPDATED_AT_FIELD
from ..schemas.entity import EntitySpec, StubPolicy
from ..store.base import Record
from ..utils.id_utils import generate_id
from ..utils.logger import PipelineLogger
from ..utils.merge_strategy import is_empty, utc_timestamp

logger = logging.getLogger(__name__)

ParentIndex = Mapping[str, Record]


@dataclass
class ReferentialResult:
    """Outcome of one validation pass."""

    records: List[Record] = field(default_factory=list)
    dropped: List[Record] = field(default_factory=list)
    stubs_created: int = 0


def stub_count(policy: StubPolicy, parent: Record) -> int:
    """
    Number of stubs to create for one parent.

    The first count rule whose parent field contains any of its tokens
    (case-insensitive) wins; otherwise the policy's default count applies.
    """
    for rule in policy.count_rules:
        value = (parent.get(rule.field) or "").lower()
        if any(token.lower() in value for token in rule.contains):
            return rule.count
    return policy.count


def parent_allowed(policy: StubPolicy, parent: Record) -> bool:
    if policy.parent_filter is None:
        return True
    value = (parent.get(policy.parent_filter.field) or "").strip()
    return value in policy.parent_filter.values


class ReferentialValidator:
    """Validates one table's foreign keys against its parents' indexes."""

    def __init__(
        self,
        spec: EntitySpec,
        clock: Callable[[], str] = utc_timestamp,
        log: Optional[PipelineLogger] = None,
    ):
        self.spec = spec
        self._clock = clock
        # Drops and stub creation count towards the run summary when a PipelineLogger is given
        self.log = log or logger

    def validate(self, records: List[Record], parent_indexes: Dict[str, ParentIndex]) -> ReferentialResult:
        """
        Drop orphans, or synthesize stubs for an empty table.

        Args:
            records: The table's current records
            parent_indexes: foreign-key field -> (primary key -> parent record)

        Returns:
            ReferentialResult with the surviving (or synthesized) records
        """
        primary = self.spec.primary_parent
        if primary is None:
            return ReferentialResult(records=list(records))

        if not records:
            primary_index = parent_indexes.get(primary.field) or {}
            if primary_index and self.spec.stubs.enabled:
                stubs = self.synthesize_stubs(primary_index, parent_indexes)
                return ReferentialResult(records=stubs, stubs_created=len(stubs))
            return ReferentialResult()

        result = ReferentialResult()
        for record in records:
            reason = self._orphan_reason(record, parent_indexes)
            if reason:
                self.log.warning(
                    f"{self.spec.label.capitalize()} {record.get(self.spec.primary_key) or 'unknown'} {reason}, skipping"
                )
                result.dropped.append(record)
            else:
                result.records.append(record)

        self.log.info(f"Validated {len(result.records)}/{len(records)} {self.spec.name} records")
        return result

    def _orphan_reason(self, record: Record, parent_indexes: Dict[str, ParentIndex]) -> Optional[str]:
        for fk in self.spec.foreign_keys:
            # Optional parent whose table does not exist
            if fk.field not in parent_indexes:
                continue
            value = record.get(fk.field)
            if is_empty(value):
                return f"has no {fk.field}"
            if value not in parent_indexes[fk.field]:
                return f"references non-existent {fk.table} record {value}"
        return None

    def synthesize_stubs(
        self,
        primary_index: ParentIndex,
        parent_indexes: Dict[str, ParentIndex],
    ) -> List[Record]:
        """Build placeholder records, one or more per allowed parent."""
        policy = self.spec.stubs
        primary = self.spec.primary_parent

        secondary_values: Dict[str, str] = {}
        for fk_field in policy.secondary_parents:
            index = parent_indexes.get(fk_field) or {}
            if not index:
                self.log.warning(
                    f"No {self.spec.name} stubs created: parent table for {fk_field} is empty"
                )
                return []
            secondary_values[fk_field] = next(iter(index))

        self.log.warning(f"No {self.spec.name} records found, creating default records")
        stubs: List[Record] = []
        for parent_id, parent in primary_index.items():
            if not parent_allowed(policy, parent):
                continue

            if policy.seed_values:
                seeds = [{policy.seed_field: value} for value in policy.seed_values]
            else:
                seeds = [{} for _ in range(stub_count(policy, parent))]

            for seed in seeds:
                now = self._clock()
                stub: Record = {
                    self.spec.primary_key: generate_id(
                        policy.id_prefix, parent_id if policy.embed_parent_id else None
                    ),
                    primary.field: parent_id,
                    **secondary_values,
                    **seed,
                    CREATED_AT_FIELD: now,
                    UPDATED_AT_FIELD: now,
                }
                stubs.append(stub)

            if seeds:
                self.log.info(f"Created {len(seeds)} default {self.spec.name} record(s) for {primary.table} {parent_id}")

        return stubs
