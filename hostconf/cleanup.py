"""
Disk cleanup: package caches, the systemd journal and stale files in /tmp.

Every step is best effort. A failing command is logged and recorded in the
result, and the remaining steps still run.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from hostconf.errors import CommandError
from hostconf.system import command_exists, detect_package_manager, run_command

logger = logging.getLogger(__name__)

PACKAGE_CLEANUP: Dict[str, List[List[str]]] = {
    "apt": [
        ["apt-get", "update", "-y"],
        ["apt-get", "autoremove", "-y"],
        ["apt-get", "autoclean", "-y"],
        ["apt-get", "clean"],
    ],
    "dnf": [["dnf", "clean", "all", "-y"]],
    "yum": [["yum", "clean", "all", "-y"]],
    "pacman": [["pacman", "-Sc", "--noconfirm"]],
}
JOURNAL_VACUUM = ["journalctl", "--vacuum-time=7d"]
TMP_MAX_AGE_DAYS = 3


@dataclass
class CleanupResult:
    package_manager: Optional[str] = None
    commands: List[List[str]] = field(default_factory=list)
    failed: List[List[str]] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)


def _run(cmd: List[str], result: CleanupResult, check: bool = True) -> Optional[str]:
    result.commands.append(cmd)
    try:
        return run_command(cmd, check=check).stdout or ""
    except CommandError as e:
        logger.warning(f"Cleanup step failed: {e}")
        result.failed.append(cmd)
        return None


def clean_packages(package_manager: Optional[str], result: CleanupResult) -> None:
    """Clear the package cache and vacuum the journal to 7 days."""
    result.package_manager = package_manager
    if package_manager is None:
        logger.warning("No supported package manager found, skipping package cleanup")
    for cmd in PACKAGE_CLEANUP.get(package_manager, []):
        _run(cmd, result)
    if command_exists("journalctl"):
        _run(JOURNAL_VACUUM, result)


def clean_tmp(
    tmp_dir: Union[str, Path],
    result: CleanupResult,
    max_age_days: int = TMP_MAX_AGE_DAYS,
) -> None:
    """Delete regular files under ``tmp_dir`` not modified for ``max_age_days``."""
    cmd = [
        "find",
        str(tmp_dir),
        "-type",
        "f",
        "-mtime",
        f"+{max_age_days}",
        "-print",
        "-delete",
    ]
    # find exits non-zero when some files cannot be removed
    output = _run(cmd, result, check=False)
    if output:
        result.removed.extend(line for line in output.splitlines() if line.strip())
    logger.info(f"Removed {len(result.removed)} stale file(s) from {tmp_dir}")


def cleanup_disk(
    tmp_dir: Union[str, Path] = Path("/tmp"),
    packages: bool = True,
    max_age_days: int = TMP_MAX_AGE_DAYS,
) -> CleanupResult:
    result = CleanupResult()
    if packages:
        clean_packages(detect_package_manager(), result)
    clean_tmp(tmp_dir, result, max_age_days)
    return result
