"""
Platform list import.

New platforms reach the catalog through a platform list file (one
`name<TAB>url` per line after a header). The list is validated against the
Platforms table and the web, a JSON report is written, and the valid entries
are appended to Platforms together with any companies they need.

Usage:
    with UrlChecker() as checker:
        importer = PlatformImporter(store, registry, backup_manager, checker=checker)
        outcome = importer.run(Path("data/AI_Platform_List.txt"), report_dir=Path("logs"))
"""

import csv
import json
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import httpx

from ..constants import CREATED_AT_FIELD, UPDATED_AT_FIELD
from ..errors import ConfigurationError
from ..schemas.entity import EntitySpec
from ..store.base import Record, RecordStore, Table
from ..utils.backup import BackupManager
from ..utils.id_utils import generate_id
from ..utils.logger import PipelineLogger, get_logger
from ..utils.merge_strategy import utc_timestamp
from ..utils.url_helpers import company_name_from_domain, extract_domain, is_valid_url, normalize_url
from .company_linker import (
    COMPANIES_TABLE,
    COMPANY_FK_FIELD,
    COMPANY_URL_FIELD,
    PLATFORM_URL_FIELD,
    company_domains,
    match_company,
)

PLATFORMS_TABLE = "Platforms"
PLATFORM_NAME_FIELD = "platform_name"
PLATFORM_STATUS_FIELD = "platform_status"
DEFAULT_PLATFORM_STATUS = "Active"

URL_CHECK_TIMEOUT_SECONDS = 5
REPORT_PREFIX = "platform_validation_"


@dataclass
class PlatformEntry:
    """One line of the platform list."""

    name: str
    url: str


@dataclass
class UrlCheck:
    """Result of checking a platform URL.

    Attributes:
        ok: Whether the URL parsed and answered with a 2xx status
        reason: Why the check failed (if not ok)
        status_code: HTTP status code (if a response arrived)
    """

    ok: bool
    reason: Optional[str] = None
    status_code: Optional[int] = None


@dataclass
class ValidationReport:
    """Outcome of validating a platform list."""

    valid: List[PlatformEntry] = field(default_factory=list)
    invalid: List[Tuple[PlatformEntry, str]] = field(default_factory=list)
    duplicates: List[Tuple[PlatformEntry, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": [asdict(entry) for entry in self.valid],
            "invalid": [{"platform": asdict(entry), "reason": reason} for entry, reason in self.invalid],
            "duplicates": [
                {"platform": asdict(entry), "existing_platform": existing} for entry, existing in self.duplicates
            ],
        }

    def save(self, report_dir: Path, stamp: str) -> Path:
        """Write the report as `platform_validation_<stamp>.json`; returns its path."""
        report_dir.mkdir(parents=True, exist_ok=True)
        path = report_dir / f"{REPORT_PREFIX}{stamp.replace(':', '-')}.json"
        path.write_text(json.dumps(self.to_dict(), indent=2))
        return path


@dataclass
class ImportOutcome:
    """Counts for one platform list import."""

    report: ValidationReport
    report_path: Optional[Path] = None
    platforms_added: List[Record] = field(default_factory=list)
    companies_added: List[Record] = field(default_factory=list)
    backup_paths: List[Path] = field(default_factory=list)


def parse_platform_list(path: Path) -> List[PlatformEntry]:
    """
    Read a platform list file.

    The first line is a header. Columns are tab-separated; a header without
    a tab is read as comma-separated instead. Blank lines are skipped.

    Raises:
        ConfigurationError: The file does not exist or cannot be read
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Platform list not found at {path}")
    try:
        with open(path, newline="", encoding="utf-8-sig") as f:
            lines = f.read().splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Could not read platform list {path}: {e}") from e

    if not lines:
        return []
    delimiter = "\t" if "\t" in lines[0] else ","

    entries: List[PlatformEntry] = []
    for row in csv.reader(lines[1:], delimiter=delimiter):
        if not any(cell.strip() for cell in row):
            continue
        name = row[0].strip() if row else ""
        url = row[1].strip() if len(row) > 1 else ""
        entries.append(PlatformEntry(name=name, url=url))
    return entries


def _url_key(url: str) -> str:
    return normalize_url(url.lower()).rstrip("/")


class UrlChecker:
    """Checks platform URLs with an HTTP HEAD request.

    Redirects are followed; any 2xx final status counts as reachable.
    """

    def __init__(self, timeout: float = URL_CHECK_TIMEOUT_SECONDS, transport: Optional[httpx.BaseTransport] = None):
        """Initialize the checker.

        Args:
            timeout: HTTP request timeout in seconds
            transport: Optional httpx transport (tests pass an httpx.MockTransport)
        """
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
                headers={"User-Agent": "catalog-enricher/0.1 (platform list validation)"},
            )
        return self._client

    def check(self, url: str) -> UrlCheck:
        if not is_valid_url(url):
            return UrlCheck(ok=False, reason="Invalid URL format")

        try:
            response = self._get_client().head(normalize_url(url))
        except httpx.TimeoutException:
            return UrlCheck(ok=False, reason=f"Timeout after {self.timeout}s")
        except httpx.HTTPError as e:
            return UrlCheck(ok=False, reason=f"Failed to connect to URL: {str(e)[:100]}")

        if not response.is_success:
            return UrlCheck(
                ok=False,
                reason=f"URL returned status {response.status_code}",
                status_code=response.status_code,
            )
        return UrlCheck(ok=True, status_code=response.status_code)

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class FormatOnlyChecker:
    """Stand-in for UrlChecker when reachability checks are switched off."""

    def check(self, url: str) -> UrlCheck:
        if not is_valid_url(url):
            return UrlCheck(ok=False, reason="Invalid URL format")
        return UrlCheck(ok=True)


class PlatformImporter:
    """Validates a platform list and appends the valid entries to Platforms."""

    def __init__(
        self,
        store: RecordStore,
        registry: Dict[str, EntitySpec],
        backup_manager: BackupManager,
        checker=None,
        logger: Optional[PipelineLogger] = None,
        clock: Callable[[], str] = utc_timestamp,
    ):
        for name in (PLATFORMS_TABLE, COMPANIES_TABLE):
            if name not in registry:
                raise ConfigurationError(f"Entity registry has no {name} table")
        self.store = store
        self.registry = registry
        self.backup_manager = backup_manager
        self.checker = checker or FormatOnlyChecker()
        self.logger = logger or get_logger()
        self._clock = clock

    # ─── Validation ──────────────────────────────────────────────────────

    def validate(self, entries: List[PlatformEntry], existing: List[Record]) -> ValidationReport:
        """
        Sort entries into valid, invalid and duplicate.

        Args:
            entries: Parsed platform list
            existing: Current Platforms records
        """
        report = ValidationReport()
        names: Dict[str, str] = {}
        urls: Dict[str, str] = {}
        platform_pk = self.registry[PLATFORMS_TABLE].primary_key
        for platform in existing:
            label = platform.get(PLATFORM_NAME_FIELD) or platform.get(platform_pk) or ""
            if platform.get(PLATFORM_NAME_FIELD):
                names.setdefault(platform[PLATFORM_NAME_FIELD].strip().lower(), label)
            if platform.get(PLATFORM_URL_FIELD):
                urls.setdefault(_url_key(platform[PLATFORM_URL_FIELD]), label)

        self.logger.info(f"Validating {len(entries)} platforms...")
        for position, entry in enumerate(entries, start=1):
            self.logger.debug(f"Validating platform {position}/{len(entries)}: {entry.name}")
            if not entry.name:
                report.invalid.append((entry, "Platform name is empty"))
                continue
            if not entry.url:
                report.invalid.append((entry, "Platform URL is empty"))
                continue

            duplicate_of = names.get(entry.name.lower()) or urls.get(_url_key(entry.url))
            if duplicate_of:
                report.duplicates.append((entry, duplicate_of))
                continue

            check = self.checker.check(entry.url)
            if not check.ok:
                report.invalid.append((entry, check.reason or "URL validation failed"))
                continue

            report.valid.append(entry)
            names[entry.name.lower()] = entry.name
            urls[_url_key(entry.url)] = entry.name

        for entry, reason in report.invalid:
            self.logger.warning(f"Invalid platform {entry.name or '(no name)'}: {reason}")
        for entry, existing_name in report.duplicates:
            self.logger.warning(f"{entry.name} may be a duplicate of {existing_name}")
        self.logger.info(
            "Validation complete",
            valid=len(report.valid),
            invalid=len(report.invalid),
            duplicates=len(report.duplicates),
        )
        return report

    # ─── Import ──────────────────────────────────────────────────────────

    def _find_or_create_company(self, url: str, companies: List[Record], outcome: ImportOutcome) -> Optional[str]:
        spec = self.registry[COMPANIES_TABLE]
        name_field = spec.derive_from.name_field if spec.derive_from else "company_name"
        url_field = spec.derive_from.url_target if spec.derive_from else COMPANY_URL_FIELD

        domain = extract_domain(url)
        if not domain:
            return None

        company_id = match_company(domain, company_domains(companies, spec.primary_key, url_field))
        if company_id:
            return company_id

        name = company_name_from_domain(domain)
        for company in companies:
            if (company.get(name_field) or "").strip().lower() == name.lower():
                return company.get(spec.primary_key)

        now = self._clock()
        company = {
            spec.primary_key: generate_id(spec.stubs.id_prefix),
            name_field: name,
            url_field: f"https://{domain}",
            CREATED_AT_FIELD: now,
            UPDATED_AT_FIELD: now,
        }
        companies.append(company)
        outcome.companies_added.append(company)
        self.logger.info(f"Created new company: {name}")
        return company[spec.primary_key]

    def _backup(self, spec: EntitySpec, table: Table, outcome: ImportOutcome) -> None:
        if not table.records:
            return
        backup_path = self.backup_manager.backup(self.store.path_for(spec.file))
        if backup_path:
            outcome.backup_paths.append(backup_path)

    def _save(self, spec: EntitySpec, table: Table, records: List[Record]) -> None:
        columns = spec.columns + [c for c in table.columns if c not in spec.columns]
        self.store.save(spec.file, records, columns)
        self.logger.info(f"Saved {len(records)} {spec.name} records")

    def import_valid(self, entries: List[PlatformEntry], outcome: ImportOutcome) -> ImportOutcome:
        """Append `entries` to Platforms, creating companies as needed."""
        if not entries:
            self.logger.warning("No valid platforms to import")
            return outcome

        platform_spec = self.registry[PLATFORMS_TABLE]
        company_spec = self.registry[COMPANIES_TABLE]
        platforms_table = self.store.load(platform_spec.file)
        companies_table = self.store.load(company_spec.file)
        platforms = list(platforms_table.records)
        companies = list(companies_table.records)

        self._backup(company_spec, companies_table, outcome)
        self._backup(platform_spec, platforms_table, outcome)

        for entry in entries:
            url = normalize_url(entry.url)
            now = self._clock()
            platform: Record = {
                platform_spec.primary_key: generate_id(platform_spec.stubs.id_prefix),
                PLATFORM_NAME_FIELD: entry.name,
                PLATFORM_URL_FIELD: url,
                COMPANY_FK_FIELD: self._find_or_create_company(url, companies, outcome) or "",
                PLATFORM_STATUS_FIELD: DEFAULT_PLATFORM_STATUS,
                CREATED_AT_FIELD: now,
                UPDATED_AT_FIELD: now,
            }
            platforms.append(platform)
            outcome.platforms_added.append(platform)
            self.logger.info(f"Created new platform: {entry.name}")

        if outcome.companies_added or self.store.exists(company_spec.file):
            self._save(company_spec, companies_table, companies)
        self._save(platform_spec, platforms_table, platforms)
        return outcome

    # ─── Run ─────────────────────────────────────────────────────────────

    def run(self, list_path: Path, report_dir: Optional[Path] = None, dry_run: bool = False) -> ImportOutcome:
        """
        Parse, validate, report and (unless `dry_run`) import a platform list.

        Raises:
            ConfigurationError: The platform list is missing or unreadable
        """
        start_time = time.time()
        entries = parse_platform_list(list_path)
        self.logger.info(f"Found {len(entries)} platforms in {Path(list_path).name}")

        existing = self.store.load(self.registry[PLATFORMS_TABLE].file).records
        report = self.validate(entries, existing)
        outcome = ImportOutcome(report=report)

        if report_dir is not None:
            outcome.report_path = report.save(Path(report_dir), self._clock())
            self.logger.info(f"Validation report saved to: {outcome.report_path}")

        if dry_run:
            self.logger.info("Dry run, nothing imported")
            return outcome

        self.import_valid(report.valid, outcome)
        self.logger.info(
            "Platform import complete",
            platforms_added=len(outcome.platforms_added),
            companies_added=len(outcome.companies_added),
            duration_seconds=round(time.time() - start_time, 2),
        )
        return outcome
