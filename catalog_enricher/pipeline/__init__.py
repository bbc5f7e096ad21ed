"""The enrichment pipeline: gate, orchestrator, reconciler, table processor and runner."""

from .company_linker import derive_companies, link_platforms_to_companies, normalize_platform_urls
from .completeness import is_complete, missing_fields
from .orchestrator import Enricher, coerce_output, coerce_value
from .platform_import import PlatformImporter, UrlChecker, parse_platform_list
from .reconciler import JoinTableReconciler, ReconcileResult, contains_id, fan_out_count, split_tokens
from .runner import PipelineRunner, build_importer, build_runner, resolve_tables
from .table_processor import TableProcessor, TableRunResult

__all__ = [
    "derive_companies",
    "link_platforms_to_companies",
    "normalize_platform_urls",
    "is_complete",
    "missing_fields",
    "Enricher",
    "coerce_output",
    "coerce_value",
    "PlatformImporter",
    "UrlChecker",
    "parse_platform_list",
    "JoinTableReconciler",
    "ReconcileResult",
    "contains_id",
    "fan_out_count",
    "split_tokens",
    "PipelineRunner",
    "build_importer",
    "build_runner",
    "resolve_tables",
    "TableProcessor",
    "TableRunResult",
]
