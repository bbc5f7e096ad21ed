"""
Table processor: the enrichment pipeline for one table.

Steps, in order:
    1. Load required parent tables (missing required parent is fatal)
    2. Load the table itself (missing file = empty table)
    3. Table preparation: company derivation, URL normalization and company
       linking, seeding from association rules that target this table
    4. Back up the table file if it holds data
    5. Drop orphans / synthesize stubs
    6. Skip complete records, enrich the rest (rate limited)
    7. Merge generated fields into each record, then run validation checks
    8. Save the table
    9. Reconcile join tables fed by this table (backup, then save each)

Per-record failures are logged and counted; only configuration problems
escape `run()`.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..errors import ConfigurationError
from ..schemas.entity import EntitySpec, ReconcileRule
from ..store.base import Record, RecordStore, Table
from ..utils.backup import BackupManager
from ..utils.logger import PipelineLogger, get_logger
from ..utils.merge_strategy import MergeStrategy, utc_timestamp
from ..utils.rate_limiter import RateLimiter
from ..validators.record_validator import RecordValidator
from ..validators.referential_validator import ReferentialValidator
from .company_linker import (
    COMPANIES_TABLE,
    derive_companies,
    link_platforms_to_companies,
    normalize_platform_urls,
)
from .completeness import is_complete, missing_fields
from .orchestrator import Enricher
from .reconciler import JoinTableReconciler


@dataclass
class TableRunResult:
    """Counts for one table run."""

    table: str
    loaded: int = 0
    dropped: int = 0
    stubs_created: int = 0
    skipped_complete: int = 0
    enriched: int = 0
    failed: int = 0
    fields_filled: int = 0
    validation_warnings: int = 0
    relations_added: Dict[str, int] = field(default_factory=dict)
    backup_paths: List[Path] = field(default_factory=list)

    @property
    def total_relations_added(self) -> int:
        return sum(self.relations_added.values())

    def add_relations(self, target: str, count: int) -> None:
        self.relations_added[target] = self.relations_added.get(target, 0) + count


class TableProcessor:
    """Runs the pipeline for one entity against a Record Store."""

    def __init__(
        self,
        spec: EntitySpec,
        registry: Dict[str, EntitySpec],
        store: RecordStore,
        enricher: Enricher,
        backup_manager: BackupManager,
        rate_limiter: RateLimiter,
        merge_strategy: Optional[MergeStrategy] = None,
        logger: Optional[PipelineLogger] = None,
        clock: Callable[[], str] = utc_timestamp,
    ):
        self.spec = spec
        self.registry = registry
        self.store = store
        self.enricher = enricher
        self.backup_manager = backup_manager
        self.rate_limiter = rate_limiter
        self.merge_strategy = merge_strategy or MergeStrategy(clock=clock)
        self.logger = logger or get_logger()
        self._clock = clock
        self._tables: Dict[str, Table] = {}
        self._indexes: Dict[str, Dict[str, Record]] = {}

    # ─── Loading ─────────────────────────────────────────────────────────

    def _load(self, name: str) -> Optional[Table]:
        """Load a related table by entity name; None when its file does not exist."""
        if name in self._tables:
            return self._tables[name]
        spec = self.registry[name]
        if not self.store.exists(spec.file):
            return None
        table = self.store.load(spec.file)
        self._tables[name] = table
        self._indexes[name] = table.index_by(spec.primary_key)
        return table

    def _records_of(self, name: str) -> Optional[List[Record]]:
        table = self._load(name)
        return table.records if table is not None else None

    def load_parents(self) -> Dict[str, Dict[str, Record]]:
        """
        Load parent and grandparent tables and lookup tables.

        Returns:
            foreign-key field -> parent index, for every parent that exists

        Raises:
            ConfigurationError: A required parent table does not exist
        """
        parent_indexes: Dict[str, Dict[str, Record]] = {}
        for fk in self.spec.foreign_keys:
            parent_spec = self.registry[fk.table]
            if self._load(fk.table) is None:
                if fk.required:
                    raise ConfigurationError(
                        f"Required parent table {fk.table} ({parent_spec.file}) not found for {self.spec.name}"
                    )
                self.logger.warning(f"Optional parent table {fk.table} not found, not checking {fk.field}")
                continue
            parent_indexes[fk.field] = self._indexes[fk.table]
            self.logger.info(f"Loaded {len(self._indexes[fk.table])} {fk.table} records")

            for grandparent_fk in parent_spec.foreign_keys:
                self._load(grandparent_fk.table)

        for lookup in self.spec.context_lookups:
            if self._load(lookup.table) is None:
                self.logger.debug(f"Lookup table {lookup.table} not found, prompts will show Unknown")

        return parent_indexes

    def build_context(self, record: Record) -> Dict[str, Record]:
        """Related records for prompt placeholders: parents, grandparents, lookups."""
        context: Dict[str, Record] = {}
        for fk in self.spec.foreign_keys:
            parent = self._indexes.get(fk.table, {}).get(record.get(fk.field) or "")
            if parent is None:
                continue
            context[fk.table] = parent
            for grandparent_fk in self.registry[fk.table].foreign_keys:
                grandparent = self._indexes.get(grandparent_fk.table, {}).get(parent.get(grandparent_fk.field) or "")
                if grandparent is not None:
                    context.setdefault(grandparent_fk.table, grandparent)

        for lookup in self.spec.context_lookups:
            wanted = record.get(lookup.local_field)
            for candidate in self._records_of(lookup.table) or []:
                if wanted and candidate.get(lookup.match_field) == wanted:
                    context[lookup.table] = candidate
                    break
        return context

    # ─── Preparation ─────────────────────────────────────────────────────

    def _prepare(self, records: List[Record], result: TableRunResult) -> List[Record]:
        spec = self.spec
        if spec.derive_from:
            sources = self._records_of(spec.derive_from.table)
            if sources is None:
                self.logger.warning(f"Source table {spec.derive_from.table} not found, no {spec.name} derived")
            else:
                records, added = derive_companies(spec, sources, records, clock=self._clock)
                result.stubs_created += added

        if spec.link_companies:
            normalize_platform_urls(records)
            companies = self._records_of(COMPANIES_TABLE) if COMPANIES_TABLE in self.registry else None
            if companies is None:
                self.logger.info("Companies table not found, skipping company linking")
            else:
                link_platforms_to_companies(records, companies, company_pk=self.registry[COMPANIES_TABLE].primary_key)

        for rule in spec.reconcile:
            if rule.target == spec.name:
                records = self._reconcile(rule, records, result, self_records=records)
        return records

    def _reconcile(
        self,
        rule: ReconcileRule,
        existing: List[Record],
        result: TableRunResult,
        self_records: List[Record],
    ) -> List[Record]:
        """Apply one rule; this table's in-flight records stand in for its own stored copy."""

        def _resolve(name: Optional[str]) -> Optional[List[Record]]:
            if name is None:
                return []
            if name == self.spec.name:
                return self_records
            return self._records_of(name)

        parents = _resolve(rule.parent_table)
        children = _resolve(rule.child_table)
        if parents is None or children is None:
            missing = rule.parent_table if parents is None else rule.child_table
            self.logger.warning(f"Skipping {rule.rule} reconciliation into {rule.target}: {missing} not found")
            return existing

        target = self.registry[rule.target]
        reconciler = JoinTableReconciler(rule, target, clock=self._clock)
        outcome = reconciler.reconcile(
            parents,
            children,
            existing,
            parent_pk=self.registry[rule.parent_table].primary_key,
            child_pk=self.registry[rule.child_table].primary_key if rule.child_table else None,
        )
        result.add_relations(rule.target, len(outcome.added))
        return outcome.relations

    # ─── Run ─────────────────────────────────────────────────────────────

    def _columns(self, spec: EntitySpec, table: Table) -> List[str]:
        return spec.columns + [c for c in table.columns if c not in spec.columns]

    def run(self) -> TableRunResult:
        spec = self.spec
        result = TableRunResult(table=spec.name)
        self.logger.log_table_start(spec.name, spec.file)

        parent_indexes = self.load_parents()

        table = self.store.load(spec.file)
        result.loaded = len(table.records)
        unknown = [c for c in table.columns if c not in spec.columns]
        if unknown:
            self.logger.warning(f"Unknown columns in {spec.file} kept as is: {', '.join(unknown)}")

        records = self._prepare(list(table.records), result)

        if table.records:
            backup_path = self.backup_manager.backup(self.store.path_for(spec.file))
            if backup_path:
                result.backup_paths.append(backup_path)

        validation = ReferentialValidator(spec, clock=self._clock, log=self.logger).validate(records, parent_indexes)
        records = validation.records
        result.dropped = len(validation.dropped)
        result.stubs_created += validation.stubs_created

        if not records:
            self.logger.info(f"No {spec.name} records to process")

        self._enrich_all(records, result)

        if records or self.store.exists(spec.file):
            self.store.save(spec.file, records, self._columns(spec, table))
            self.logger.info(f"Saved {len(records)} {spec.name} records")

        for rule in spec.reconcile:
            if rule.target != spec.name:
                self._reconcile_into(rule, records, result)

        self.logger.log_table_complete(result)
        return result

    def _enrich_all(self, records: List[Record], result: TableRunResult) -> None:
        spec = self.spec
        checker = RecordValidator(spec.validation, primary_key=spec.primary_key)
        self.rate_limiter.reset()

        for position, record in enumerate(records):
            record_id = record.get(spec.primary_key) or "unknown"
            if is_complete(record, spec.enrichable):
                result.skipped_complete += 1
                self.logger.debug(f"Skipping {record_id} (already complete)")
                continue

            self.rate_limiter.wait()
            self.logger.info(
                f"Enriching {spec.label} {record_id}",
                missing=len(missing_fields(record, spec.enrichable)),
            )
            try:
                partial = self.enricher.enrich(record, self.build_context(record))
            except Exception as e:
                result.failed += 1
                self.logger.error(f"Failed to enrich {spec.label} {record_id}, keeping original", exception=e)
                continue

            merged, filled = self.merge_strategy.merge_with_report(record, partial)
            records[position] = merged
            result.enriched += 1
            result.fields_filled += len(filled)
            self.logger.info(f"Enriched {spec.label} {record_id}", fields_filled=len(filled))

            check = checker.validate(merged)
            if not check.is_valid:
                result.validation_warnings += len(check.warnings)
                checker.log_result(check, spec.name, log=self.logger)

    def _reconcile_into(self, rule: ReconcileRule, records: List[Record], result: TableRunResult) -> None:
        target = self.registry[rule.target]
        target_table = self.store.load(target.file)
        relations = self._reconcile(rule, list(target_table.records), result, self_records=records)
        if len(relations) == len(target_table.records):
            return

        if target_table.records:
            backup_path = self.backup_manager.backup(self.store.path_for(target.file))
            if backup_path:
                result.backup_paths.append(backup_path)
        self.store.save(target.file, relations, self._columns(target, target_table))
        self.logger.info(f"Saved {len(relations)} {target.name} records")
