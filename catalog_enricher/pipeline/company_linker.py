"""
Company derivation and platform-to-company linking.

Companies are not curated by hand: one company exists per distinct web
domain in the Platforms table. Platforms in turn get their empty
`company_id` filled from the Companies table by matching domains.
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from ..constants import CREATED_AT_FIELD, UPDATED_AT_FIELD
from ..schemas.entity import EntitySpec
from ..store.base import Record
from ..utils.id_utils import generate_id
from ..utils.merge_strategy import is_empty, utc_timestamp
from ..utils.url_helpers import company_name_from_domain, extract_domain, is_valid_url, normalize_url

logger = logging.getLogger(__name__)

COMPANIES_TABLE = "Companies"
PLATFORM_URL_FIELD = "platform_url"
COMPANY_FK_FIELD = "company_id"
COMPANY_URL_FIELD = "website_url"


def normalize_platform_urls(platforms: List[Record], url_field: str = PLATFORM_URL_FIELD) -> int:
    """
    Add a scheme to scheme-less URLs in place.

    Returns:
        Number of records changed
    """
    changed = 0
    for platform in platforms:
        url = platform.get(url_field)
        if is_empty(url):
            continue
        if not is_valid_url(url):
            logger.warning(f"Unparseable URL left unchanged: {url!r}")
            continue
        normalized = normalize_url(url)
        if normalized != url:
            platform[url_field] = normalized
            changed += 1
    if changed:
        logger.info(f"Normalized {changed} platform URL(s)")
    return changed


def company_domains(companies: List[Record], company_pk: str, url_field: str) -> List[Tuple[str, str]]:
    domains = []
    for company in companies:
        company_id = company.get(company_pk)
        domain = extract_domain(company.get(url_field) or "")
        if company_id and domain:
            domains.append((domain, company_id))
    return domains


def match_company(domain: str, candidates: List[Tuple[str, str]]) -> Optional[str]:
    """Company id for `domain`: exact domain match first, then substring either way."""
    for company_domain, company_id in candidates:
        if company_domain == domain:
            return company_id
    for company_domain, company_id in candidates:
        if company_domain in domain or domain in company_domain:
            return company_id
    return None


def link_platforms_to_companies(
    platforms: List[Record],
    companies: List[Record],
    company_pk: str = COMPANY_FK_FIELD,
    url_field: str = PLATFORM_URL_FIELD,
    company_url_field: str = COMPANY_URL_FIELD,
) -> int:
    """
    Fill empty `company_id` values in place.

    Returns:
        Number of platforms linked
    """
    domains = company_domains(companies, company_pk, company_url_field)
    if not domains:
        return 0

    linked = 0
    for platform in platforms:
        if not is_empty(platform.get(COMPANY_FK_FIELD)):
            continue
        domain = extract_domain(platform.get(url_field) or "")
        if not domain:
            continue
        company_id = match_company(domain, domains)
        if company_id:
            platform[COMPANY_FK_FIELD] = company_id
            linked += 1
            logger.debug(f"Linked platform {platform.get('platform_id')} to company {company_id}")

    logger.info(f"Linked {linked} platform(s) to companies")
    return linked


def derive_companies(
    spec: EntitySpec,
    sources: List[Record],
    existing: List[Record],
    clock: Callable[[], str] = utc_timestamp,
) -> Tuple[List[Record], int]:
    """
    Add one company per distinct source domain not already present.

    Existing companies are matched by name (case-insensitive) and kept as is.

    Returns:
        (all company records, number added)
    """
    derive = spec.derive_from
    known_names: Dict[str, Record] = {
        (company.get(derive.name_field) or "").strip().lower(): company for company in existing
    }
    records = list(existing)
    seen_domains = set()
    added = 0

    for source in sources:
        domain = extract_domain(source.get(derive.url_field) or "")
        if not domain or domain in seen_domains:
            continue
        seen_domains.add(domain)

        name = company_name_from_domain(domain)
        if not name or name.lower() in known_names:
            continue

        now = clock()
        company: Record = {
            spec.primary_key: generate_id(spec.stubs.id_prefix),
            derive.name_field: name,
            derive.url_target: f"https://{domain}",
            CREATED_AT_FIELD: now,
            UPDATED_AT_FIELD: now,
        }
        records.append(company)
        known_names[name.lower()] = company
        added += 1

    logger.info(f"Derived {added} new {spec.name} record(s) from {len(seen_domains)} domain(s)")
    return records, added
