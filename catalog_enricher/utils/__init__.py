"""Shared utilities: logging, backups, throttling, merging, ids and URLs."""

from .backup import BackupManager, backup_file_name
from .id_utils import generate_id, slugify
from .logger import PipelineLogger, get_logger
from .merge_strategy import MergeStrategy, is_empty, utc_timestamp
from .rate_limiter import RateLimiter
from .url_helpers import company_name_from_domain, extract_domain, is_valid_url, normalize_url

__all__ = [
    "BackupManager",
    "backup_file_name",
    "generate_id",
    "slugify",
    "PipelineLogger",
    "get_logger",
    "MergeStrategy",
    "is_empty",
    "utc_timestamp",
    "RateLimiter",
    "company_name_from_domain",
    "extract_domain",
    "is_valid_url",
    "normalize_url",
]
