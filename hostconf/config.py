"""Runtime defaults, overridable from the environment."""

import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from hostconf.system import MYSQL_CONFIG_CANDIDATES


@dataclass
class Config:
    """Configuration for a hostconf run."""

    # Console only unless a log file is configured.
    LOG_FILE: Optional[Path] = field(
        default_factory=lambda: (
            Path(os.environ["HOSTCONF_LOG_FILE"])
            if os.environ.get("HOSTCONF_LOG_FILE")
            else None
        )
    )
    SSHD_CONFIG: Path = field(
        default_factory=lambda: Path(
            os.environ.get("HOSTCONF_SSHD_CONFIG", "/etc/ssh/sshd_config")
        )
    )
    SYSCTL_CONF: Path = field(
        default_factory=lambda: Path(
            os.environ.get("HOSTCONF_SYSCTL_CONF", "/etc/sysctl.d/90-optimized.conf")
        )
    )
    MYSQL_CONFIG_CANDIDATES: List[Path] = field(
        default_factory=lambda: list(MYSQL_CONFIG_CANDIDATES)
    )
    MYSQL_SECTION: str = "[mysqld]"
    SSH_SERVICES: List[str] = field(default_factory=lambda: ["sshd", "ssh"])

    def to_dict(self) -> Dict[str, Any]:
        """Convert the config to a dictionary."""
        return {k: str(v) if isinstance(v, Path) else v for k, v in asdict(self).items()}
