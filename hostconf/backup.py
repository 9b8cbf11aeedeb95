"""Timestamped configuration backups and manual rollback."""

import datetime
import logging
import shutil
from pathlib import Path
from typing import Optional, Union

from hostconf.errors import ConfigFileNotFound

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def backup_path_for(
    file_path: Union[str, Path], now: Optional[datetime.datetime] = None
) -> Path:
    """Return a backup path that does not exist yet."""
    file_path = Path(file_path)
    timestamp = (now or datetime.datetime.now()).strftime(TIMESTAMP_FORMAT)
    candidate = file_path.with_name(f"{file_path.name}.bak.{timestamp}")
    counter = 1
    while candidate.exists():
        candidate = file_path.with_name(f"{file_path.name}.bak.{timestamp}.{counter}")
        counter += 1
    return candidate


def backup_file(file_path: Union[str, Path]) -> Path:
    """Create a backup of a file with timestamp and return its path."""
    file_path = Path(file_path)
    if not file_path.is_file():
        raise ConfigFileNotFound(file_path)
    backup_path = backup_path_for(file_path)
    shutil.copy2(file_path, backup_path)
    logger.info(f"Backed up {file_path} to {backup_path}")
    return backup_path


def restore_file(backup_path: Union[str, Path], file_path: Union[str, Path]) -> None:
    """Copy a backup over its original file."""
    backup_path = Path(backup_path)
    if not backup_path.is_file():
        raise ConfigFileNotFound(backup_path)
    shutil.copy2(backup_path, file_path)
    logger.warning(f"Restored {file_path} from {backup_path}")


class BackupSession:
    """Backs up a file at most once, before the first change of a run."""

    def __init__(self, file_path: Union[str, Path]) -> None:
        self.file_path = Path(file_path)
        self.backup_path: Optional[Path] = None

    @property
    def taken(self) -> bool:
        return self.backup_path is not None

    def ensure(self) -> Path:
        if self.backup_path is None:
            self.backup_path = backup_file(self.file_path)
        return self.backup_path

    def restore(self) -> bool:
        """Roll the file back; returns False when nothing was backed up."""
        if self.backup_path is None:
            return False
        restore_file(self.backup_path, self.file_path)
        return True
