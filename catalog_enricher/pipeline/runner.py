"""
Multi-table runner.

Wires the shared collaborators (store, generation client, backup manager,
rate limiter) once and runs TableProcessor for each requested table, in
the order given. A ConfigurationError stops the run; tables already
processed keep their saved output.
"""

from typing import Callable, Dict, Iterable, List, Optional

from ..config import Settings
from ..llm.llm_client import LLMClient
from ..schemas.entity import EntitySpec
from ..schemas.registry import get_entity, get_registry, processing_order
from ..store.base import RecordStore
from ..store.csv_store import CsvRecordStore
from ..utils.backup import BackupManager
from ..utils.logger import PipelineLogger, get_logger
from ..utils.merge_strategy import utc_timestamp
from ..utils.rate_limiter import RateLimiter
from .orchestrator import Enricher
from .platform_import import PlatformImporter
from .table_processor import TableProcessor, TableRunResult


class PipelineRunner:
    """Runs one or more tables against shared collaborators."""

    def __init__(
        self,
        store: RecordStore,
        registry: Dict[str, EntitySpec],
        client: LLMClient,
        backup_manager: BackupManager,
        rate_limiter: RateLimiter,
        logger: Optional[PipelineLogger] = None,
        clock: Callable[[], str] = utc_timestamp,
    ):
        self.store = store
        self.registry = registry
        self.client = client
        self.backup_manager = backup_manager
        self.rate_limiter = rate_limiter
        self.logger = logger or get_logger()
        self._clock = clock

    def processor_for(self, name: str) -> TableProcessor:
        spec = self.registry[name]
        return TableProcessor(
            spec=spec,
            registry=self.registry,
            store=self.store,
            enricher=Enricher(spec, self.client),
            backup_manager=self.backup_manager,
            rate_limiter=self.rate_limiter,
            logger=self.logger,
            clock=self._clock,
        )

    def run_table(self, name: str) -> TableRunResult:
        return self.processor_for(name).run()

    def run(self, names: Iterable[str]) -> List[TableRunResult]:
        results = []
        for name in names:
            with self.logger.time_operation("table", table=name):
                results.append(self.run_table(name))
        return results


def resolve_tables(names: Optional[List[str]], run_all: bool, config_path=None) -> List[str]:
    """
    Table names to run, canonicalized.

    `--all` runs every table in dependency order; explicit names keep the
    order they were given in.
    """
    if run_all:
        return processing_order(config_path)
    return [get_entity(name, config_path).name for name in names or []]


def build_runner(settings: Settings, logger: Optional[PipelineLogger] = None) -> PipelineRunner:
    """Production wiring: CSV store, LiteLLM client, file backups."""
    logger = logger or get_logger()
    client = LLMClient(
        primary_model=settings.primary_model,
        fallback_model=settings.fallback_model,
        api_key=settings.require_api_key(),
        logger=logger,
    )
    return PipelineRunner(
        store=CsvRecordStore(settings.data_dir),
        registry=get_registry(settings.entities_config),
        client=client,
        backup_manager=BackupManager(settings.backup_dir),
        rate_limiter=RateLimiter(settings.request_delay),
        logger=logger,
    )


def build_importer(settings: Settings, checker=None, logger: Optional[PipelineLogger] = None) -> PlatformImporter:
    """Production wiring for the platform list import; needs no credential."""
    return PlatformImporter(
        store=CsvRecordStore(settings.data_dir),
        registry=get_registry(settings.entities_config),
        backup_manager=BackupManager(settings.backup_dir),
        checker=checker,
        logger=logger or get_logger(),
    )
