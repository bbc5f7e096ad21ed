"""
Backup-before-write for table files.

Backups are named `<table>_backup_<ISO8601 timestamp>.csv` with ':' replaced
by '-' so the name is valid on every file system. There is no retention
policy; backups accumulate in the backup directory.
"""

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from ..constants import BACKUP_SUFFIX

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def backup_file_name(file_path: Path, when: datetime) -> str:
    """Backup name for `file_path` taken at `when`."""
    stamp = when.isoformat(timespec="milliseconds").replace("+00:00", "Z").replace(":", "-")
    return f"{file_path.stem}{BACKUP_SUFFIX}{stamp}{file_path.suffix or '.csv'}"


class BackupManager:
    """Snapshots a table file before the Record Store overwrites it."""

    def __init__(self, backup_dir: Path, clock: Callable[[], datetime] = _utc_now):
        self.backup_dir = Path(backup_dir)
        self._clock = clock

    def backup(self, file_path: Optional[Path]) -> Optional[Path]:
        """
        Copy `file_path` into the backup directory.

        Args:
            file_path: Table file about to be rewritten

        Returns:
            Path of the backup, or None when the file is missing or empty
            or the copy failed
        """
        if file_path is None:
            return None
        file_path = Path(file_path)
        if not file_path.exists():
            logger.debug(f"No backup needed, file not found: {file_path}")
            return None
        if file_path.stat().st_size == 0:
            logger.debug(f"No backup needed, file is empty: {file_path}")
            return None

        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            backup_path = self.backup_dir / backup_file_name(file_path, self._clock())
            shutil.copy2(file_path, backup_path)
        except OSError as e:
            logger.error(f"Error creating backup of {file_path}: {e}")
            return None

        logger.info(f"Created backup: {backup_path}")
        return backup_path
