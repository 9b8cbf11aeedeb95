"""Host detection and service management via external commands."""

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from hostconf.errors import CommandError, HostconfError

logger = logging.getLogger(__name__)

MYSQL_CONFIG_CANDIDATES: List[Path] = [
    Path("/etc/mysql/mysql.conf.d/mysqld.cnf"),
    Path("/etc/my.cnf"),
    Path("/etc/mysql/my.cnf"),
]
PACKAGE_MANAGERS = ("apt-get", "dnf", "yum", "pacman")


# ----------------------------------------------------------------
# Command Execution Helper
# ----------------------------------------------------------------
def run_command(
    cmd: List[str],
    check: bool = True,
    capture_output: bool = True,
    timeout: Optional[int] = None,
) -> subprocess.CompletedProcess:
    """Execute a system command, raising CommandError when it fails."""
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        return subprocess.run(
            cmd,
            check=check,
            text=True,
            capture_output=capture_output,
            timeout=timeout,
        )
    except subprocess.CalledProcessError as e:
        if e.stdout:
            logger.debug(f"Stdout: {e.stdout.strip()}")
        raise CommandError(cmd, e.returncode, e.stderr or "") from e
    except subprocess.TimeoutExpired as e:
        raise CommandError(cmd, -1, f"timed out after {timeout} seconds") from e
    except FileNotFoundError as e:
        raise CommandError(cmd, 127, f"{cmd[0]} not found") from e


def command_exists(cmd: str) -> bool:
    return shutil.which(cmd) is not None


def require_root() -> None:
    if os.geteuid() != 0:
        raise HostconfError("Root privileges are required. Please run with sudo.")


# ----------------------------------------------------------------
# Detection
# ----------------------------------------------------------------
def detect_package_manager() -> Optional[str]:
    """Return ``apt``, ``dnf``, ``yum`` or ``pacman``, whichever is found first."""
    for manager in PACKAGE_MANAGERS:
        if command_exists(manager):
            return "apt" if manager == "apt-get" else manager
    return None


def detect_mysql_config(
    candidates: Sequence[Path] = MYSQL_CONFIG_CANDIDATES, create: bool = True
) -> Path:
    """
    Return the first existing MySQL server config file.

    When none exists the second candidate (``/etc/my.cnf``) is created with an
    empty ``[mysqld]`` section, unless ``create`` is False.
    """
    for candidate in candidates:
        if Path(candidate).is_file():
            return Path(candidate)
    fallback = Path(candidates[1] if len(candidates) > 1 else candidates[0])
    if not create:
        raise HostconfError("No MySQL configuration file found.")
    fallback.parent.mkdir(parents=True, exist_ok=True)
    fallback.write_text("[mysqld]\n")
    logger.info(f"Created {fallback}")
    return fallback


def _unit_files() -> str:
    if not command_exists("systemctl"):
        return ""
    result = run_command(["systemctl", "list-unit-files"], check=False)
    return result.stdout or ""


def detect_mysql_service() -> str:
    units = _unit_files()
    for name in ("mysqld", "mariadb"):
        if any(line.startswith(f"{name}.service") for line in units.splitlines()):
            return name
    return "mysql"


# ----------------------------------------------------------------
# Service management
# ----------------------------------------------------------------
def check_sshd_config(config_file: Path) -> bool:
    """Run ``sshd -t`` against a config file."""
    sshd = shutil.which("sshd") or "/usr/sbin/sshd"
    try:
        run_command([sshd, "-t", "-f", str(config_file)])
    except CommandError as e:
        logger.error(f"sshd rejected {config_file}: {e.stderr.strip()}")
        return False
    return True


def restart_service(names: Sequence[str]) -> str:
    """Restart the first of ``names`` that systemctl accepts; return its name."""
    errors = []
    for name in names:
        try:
            run_command(["systemctl", "restart", name])
            logger.info(f"Restarted {name}")
            return name
        except CommandError as e:
            errors.append(str(e))
    raise HostconfError(f"Failed to restart {'/'.join(names)}: {'; '.join(errors)}")
