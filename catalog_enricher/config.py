"""
Central configuration for data paths and model selection.

Every setting is read from the environment so the CLI, tests and ad-hoc
scripts agree on where tables live. Values from a `.env` file at the
repository root are loaded by `load_settings()`.

Environment variables:
  - OPENAI_API_KEY (required for enrichment)
  - ENRICH_DATA_DIR (default: ./data)
  - ENRICH_BACKUP_DIR (default: ./backups)
  - ENRICH_PRIMARY_MODEL / ENRICH_FALLBACK_MODEL
  - ENRICH_REQUEST_DELAY (seconds between enrichment calls)
  - ENRICH_ENTITIES_CONFIG (path to an alternative entity registry)
  - ENRICH_REPORT_DIR (default: ./logs, platform list validation reports)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .constants import DEFAULT_REQUEST_DELAY_SECONDS, FALLBACK_MODEL, PRIMARY_MODEL
from .errors import ConfigurationError

PROJECT_ROOT = Path(__file__).parent.parent


def get_data_dir() -> Path:
    """
    Get the directory holding the table files.

    Uses ENRICH_DATA_DIR if set, otherwise ./data relative to the working directory.
    """
    env_path = os.environ.get("ENRICH_DATA_DIR")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path.cwd() / "data"


def get_backup_dir() -> Path:
    """Get the backup sink directory."""
    env_path = os.environ.get("ENRICH_BACKUP_DIR")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path.cwd() / "backups"


def get_report_dir() -> Path:
    """Directory for platform list validation reports."""
    env_path = os.environ.get("ENRICH_REPORT_DIR")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path.cwd() / "logs"


def get_entities_config_path() -> Optional[Path]:
    env_path = os.environ.get("ENRICH_ENTITIES_CONFIG")
    return Path(env_path).expanduser().resolve() if env_path else None


def get_request_delay() -> float:
    raw = os.environ.get("ENRICH_REQUEST_DELAY")
    if not raw:
        return DEFAULT_REQUEST_DELAY_SECONDS
    try:
        delay = float(raw)
    except ValueError as e:
        raise ConfigurationError(f"ENRICH_REQUEST_DELAY must be a number, got {raw!r}") from e
    if delay < 0:
        raise ConfigurationError("ENRICH_REQUEST_DELAY must not be negative")
    return delay


@dataclass
class Settings:
    """Resolved run configuration (environment plus CLI overrides)."""

    api_key: Optional[str]
    data_dir: Path
    backup_dir: Path
    primary_model: str = PRIMARY_MODEL
    fallback_model: str = FALLBACK_MODEL
    request_delay: float = DEFAULT_REQUEST_DELAY_SECONDS
    entities_config: Optional[Path] = None
    report_dir: Path = field(default_factory=lambda: Path.cwd() / "logs")

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError("OPENAI_API_KEY must be set in environment")
        return self.api_key


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Load settings from `.env` and the process environment.

    Existing environment variables take precedence over `.env` values.
    """
    load_dotenv(env_file or PROJECT_ROOT / ".env")
    return Settings(
        api_key=os.environ.get("OPENAI_API_KEY"),
        data_dir=get_data_dir(),
        backup_dir=get_backup_dir(),
        primary_model=os.environ.get("ENRICH_PRIMARY_MODEL", PRIMARY_MODEL),
        fallback_model=os.environ.get("ENRICH_FALLBACK_MODEL", FALLBACK_MODEL),
        request_delay=get_request_delay(),
        entities_config=get_entities_config_path(),
        report_dir=get_report_dir(),
    )
