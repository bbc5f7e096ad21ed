"""
Join-Table Reconciler.

Derives the (parent id, child id) pairs a join table should hold and
appends the ones it does not hold yet. Relations are never removed, so
running the reconciler again with unchanged inputs adds nothing.

Association rules:
    foreign_key     child[child_fk] names the parent
    id_contains     the child primary key contains the parent primary key as a segment
    delimited_list  each token of parent[source_field] is a child: prefix + slug(token)
    fan_out         min..max generated children per parent
"""

import logging
import re
import zlib
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..constants import CREATED_AT_FIELD, UPDATED_AT_FIELD
from ..schemas.entity import EntitySpec, ReconcileRule
from ..store.base import Record
from ..utils.id_utils import generate_id, slugify
from ..utils.merge_strategy import is_empty, utc_timestamp

logger = logging.getLogger(__name__)

Pair = Tuple[str, str]


@dataclass
class ReconcileResult:
    relations: List[Record] = field(default_factory=list)
    added: List[Record] = field(default_factory=list)


def fan_out_count(parent_id: str, minimum: int, maximum: int) -> int:
    """Rows wanted for a parent; a pure function of the id so re-runs agree."""
    span = maximum - minimum + 1
    return minimum + zlib.crc32(parent_id.encode("utf-8")) % span


def contains_id(child_id: str, parent_id: str) -> bool:
    """
    True when parent_id appears in child_id as a whole segment.

    The match must not be flanked by letters or digits, so "model_1" is found in
    "bench_model_1_ab12" and "bench_model_1" but not in "bench_model_10_ab12".
    """
    pattern = rf"(?<![A-Za-z0-9]){re.escape(parent_id)}(?![A-Za-z0-9])"
    return re.search(pattern, child_id) is not None


def split_tokens(value: Optional[str]) -> List[str]:
    """Trimmed, non-empty tokens of a comma-separated value, first occurrence kept."""
    tokens: List[str] = []
    for token in (value or "").split(","):
        token = token.strip()
        if token and token not in tokens:
            tokens.append(token)
    return tokens


class JoinTableReconciler:
    """Applies one ReconcileRule to the join table `target`."""

    def __init__(self, rule: ReconcileRule, target: EntitySpec, clock: Callable[[], str] = utc_timestamp):
        if rule.target != target.name:
            raise ValueError(f"rule targets {rule.target}, got entity {target.name}")
        self.rule = rule
        self.target = target
        self._clock = clock

    def candidate_pairs(
        self,
        parents: List[Record],
        children: List[Record],
        existing: List[Record],
        parent_pk: str,
        child_pk: Optional[str] = None,
    ) -> List[Pair]:
        """
        Pairs the rule says should exist, in parent/child input order.

        Args:
            parents: Parent table records
            children: Child table records (unused by delimited_list and fan_out)
            existing: Current join-table rows (fan_out counts them per parent)
            parent_pk: Primary key field of the parent table
            child_pk: Primary key field of the child table
        """
        rule = self.rule
        parent_ids = [p[parent_pk] for p in parents if not is_empty(p.get(parent_pk))]
        pairs: List[Pair] = []

        if rule.rule == "foreign_key":
            known = set(parent_ids)
            for child in children:
                parent_id, child_id = child.get(rule.child_fk), child.get(child_pk)
                if not is_empty(child_id) and parent_id in known:
                    pairs.append((parent_id, child_id))

        elif rule.rule == "id_contains":
            for child in children:
                child_id = child.get(child_pk)
                if is_empty(child_id):
                    continue
                for parent_id in parent_ids:
                    if contains_id(child_id, parent_id):
                        pairs.append((parent_id, child_id))

        elif rule.rule == "delimited_list":
            for parent in parents:
                parent_id = parent.get(parent_pk)
                if is_empty(parent_id):
                    continue
                for token in split_tokens(parent.get(rule.source_field)):
                    slug = slugify(token)
                    if slug:
                        pairs.append((parent_id, f"{rule.child_prefix}{slug}"))

        elif rule.rule == "fan_out":
            per_parent: Dict[str, int] = {}
            for row in existing:
                parent_id = row.get(rule.parent_key)
                if parent_id:
                    per_parent[parent_id] = per_parent.get(parent_id, 0) + 1
            for parent_id in parent_ids:
                missing = fan_out_count(parent_id, rule.min, rule.max) - per_parent.get(parent_id, 0)
                for _ in range(max(missing, 0)):
                    pairs.append((parent_id, generate_id(rule.child_prefix)))

        return pairs

    def reconcile(
        self,
        parents: List[Record],
        children: List[Record],
        existing: List[Record],
        parent_pk: str,
        child_pk: Optional[str] = None,
    ) -> ReconcileResult:
        """
        Append missing relations to `existing`.

        Membership is tested on (parent key, child key) only; existing rows
        are returned untouched and in their original order.
        """
        rule = self.rule
        present: Set[Pair] = {
            (row.get(rule.parent_key), row.get(rule.child_key))
            for row in existing
            if not is_empty(row.get(rule.parent_key)) and not is_empty(row.get(rule.child_key))
        }

        result = ReconcileResult(relations=list(existing))
        for parent_id, child_id in self.candidate_pairs(parents, children, existing, parent_pk, child_pk):
            if (parent_id, child_id) in present:
                continue
            present.add((parent_id, child_id))
            now = self._clock()
            relation: Record = {
                self.target.primary_key: generate_id(self.target.stubs.id_prefix),
                rule.parent_key: parent_id,
                rule.child_key: child_id,
                CREATED_AT_FIELD: now,
                UPDATED_AT_FIELD: now,
            }
            result.relations.append(relation)
            result.added.append(relation)
            logger.debug(f"Added {self.target.name} relation {parent_id} -> {child_id}")

        if result.added:
            logger.info(f"Added {len(result.added)} new {self.target.name} relation(s) via {rule.rule}")
        else:
            logger.info(f"No new {self.target.name} relations via {rule.rule}")
        return result
