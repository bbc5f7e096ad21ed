#!/usr/bin/env python3
"""
Enrich: fill missing fields in the AI platform catalog tables.

For each table: drop orphaned rows (or create placeholder rows for an empty
table), skip complete records, ask the generation service for the missing
fields of the rest, merge without overwriting, back up and save, then
update the join tables the table feeds.

Usage:
    uv run python enrich.py --list                      # Show tables in run order
    uv run python enrich.py --table Benchmarks          # Single table
    uv run python enrich.py --table API --table api_integrations
    uv run python enrich.py --all                       # Every table, dependency order
    uv run python enrich.py --all --delay 2 --verbose   # Slower, with debug output

    # Add new platforms from a platform list (name<TAB>url per line)
    uv run python enrich.py --import-platforms data/AI_Platform_List.txt
    uv run python enrich.py --import-platforms list.txt --dry-run --skip-url-check
"""

import argparse
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from catalog_enricher.config import load_settings
from catalog_enricher.errors import ConfigurationError
from catalog_enricher.pipeline.platform_import import FormatOnlyChecker, UrlChecker
from catalog_enricher.pipeline.runner import build_importer, build_runner, resolve_tables
from catalog_enricher.schemas.registry import get_registry, processing_order
from catalog_enricher.utils.logger import PipelineLogger

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Enrich: fill missing catalog fields with generated content")
    table_group = parser.add_mutually_exclusive_group(required=True)
    table_group.add_argument("--table", action="append", dest="tables", help="Table to process (repeatable)")
    table_group.add_argument("--all", action="store_true", help="Process every table in dependency order")
    table_group.add_argument("--list", action="store_true", help="List tables in processing order and exit")
    table_group.add_argument(
        "--import-platforms", type=Path, metavar="PATH", help="Validate a platform list and add new platforms"
    )
    parser.add_argument("--skip-url-check", action="store_true", help="Import: check URL format only, no HTTP requests")
    parser.add_argument("--dry-run", action="store_true", help="Import: write the validation report, change nothing")
    parser.add_argument("--report-dir", type=Path, help="Import: directory for the validation report (default: logs/)")
    parser.add_argument("--data-dir", type=Path, help="Directory holding the table CSV files")
    parser.add_argument("--backup-dir", type=Path, help="Directory for backups")
    parser.add_argument("--delay", type=float, help="Seconds between enrichment calls (default: 1.0)")
    parser.add_argument("--primary-model", type=str, help="Primary model (default: gpt-4o)")
    parser.add_argument("--fallback-model", type=str, help="Fallback model (default: gpt-3.5-turbo)")
    parser.add_argument("--verbose", action="store_true", help="Show debug output")
    parser.add_argument("--log-file", type=str, help="Also write logs to logs/<LOG_FILE>")
    return parser


def display_results(results, error_summary: dict) -> None:
    """Per-table counts and the run's warning/error totals."""
    console.print()
    table = Table(title="Enrichment Results")
    table.add_column("Table", style="cyan")
    for column in ("Loaded", "Dropped", "Stubs", "Skipped", "Enriched", "Failed", "Fields", "Relations"):
        table.add_column(column, justify="right")

    for result in results:
        failed = f"[red]{result.failed}[/red]" if result.failed else "0"
        table.add_row(
            result.table,
            str(result.loaded),
            str(result.dropped),
            str(result.stubs_created),
            str(result.skipped_complete),
            str(result.enriched),
            failed,
            str(result.fields_filled),
            str(result.total_relations_added),
        )
    console.print(table)

    summary = (
        f"Tables: {len(results)}\n"
        f"Records enriched: {sum(r.enriched for r in results)}\n"
        f"Records failed: {sum(r.failed for r in results)}\n"
        f"Orphans dropped: {sum(r.dropped for r in results)}\n"
        f"Validation warnings: {sum(r.validation_warnings for r in results)}\n"
        f"Warnings: {error_summary['total_warnings']}\n"
        f"Errors: {error_summary['total_errors']}"
    )
    console.print(Panel(summary, title="Summary", border_style="blue"))


def display_import(outcome) -> None:
    """Validation counts and what the import added."""
    report = outcome.report
    console.print()
    if report.invalid:
        table = Table(title="Invalid Platforms")
        table.add_column("Platform", style="cyan")
        table.add_column("URL")
        table.add_column("Reason", style="red")
        for entry, reason in report.invalid:
            table.add_row(entry.name or "-", entry.url or "-", reason)
        console.print(table)

    summary = (
        f"Valid: {len(report.valid)}\n"
        f"Invalid: {len(report.invalid)}\n"
        f"Duplicates: {len(report.duplicates)}\n"
        f"Platforms added: {len(outcome.platforms_added)}\n"
        f"Companies added: {len(outcome.companies_added)}"
    )
    if outcome.report_path:
        summary += f"\nReport: {outcome.report_path}"
    console.print(Panel(summary, title="Platform Import", border_style="blue"))


def run_import(args, settings, logger: PipelineLogger) -> int:
    report_dir = args.report_dir.expanduser().resolve() if args.report_dir else settings.report_dir
    checker = FormatOnlyChecker() if args.skip_url_check else UrlChecker()
    try:
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        importer = build_importer(settings, checker=checker, logger=logger)
        outcome = importer.run(args.import_platforms, report_dir=report_dir, dry_run=args.dry_run)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.error("Unhandled error, aborting import", exception=e)
        return 1
    finally:
        if isinstance(checker, UrlChecker):
            checker.close()

    display_import(outcome)
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings()
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

    if args.data_dir:
        settings.data_dir = args.data_dir.expanduser().resolve()
    if args.backup_dir:
        settings.backup_dir = args.backup_dir.expanduser().resolve()
    if args.delay is not None:
        if args.delay < 0:
            console.print("[red]Error:[/red] --delay must not be negative")
            return 1
        settings.request_delay = args.delay
    if args.primary_model:
        settings.primary_model = args.primary_model
    if args.fallback_model:
        settings.fallback_model = args.fallback_model

    if args.list:
        try:
            registry = get_registry(settings.entities_config)
            for name in processing_order(settings.entities_config):
                console.print(f"  {name:<28} {registry[name].file}")
        except ConfigurationError as e:
            console.print(f"[red]Error:[/red] {e}")
            return 1
        return 0

    log_level = "DEBUG" if args.verbose else "INFO"
    logger = PipelineLogger("enrich", log_level=log_level, log_file=args.log_file)

    if args.import_platforms:
        return run_import(args, settings, logger)

    try:
        tables = resolve_tables(args.tables, args.all, settings.entities_config)
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        runner = build_runner(settings, logger=logger)

        console.print(f"[bold]Enrichment[/bold]: {len(tables)} table(s)")
        console.print(f"  Data: {settings.data_dir}")
        console.print(f"  Models: {settings.primary_model} -> {settings.fallback_model}")
        console.print(f"  Delay: {settings.request_delay}s")
        console.print()

        results = runner.run(tables)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.error("Unhandled error, aborting run", exception=e)
        return 1

    display_results(results, logger.get_error_summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
