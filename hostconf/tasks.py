"""
Configuration tasks built on the patcher.

Each task backs the target file up once, applies a profile through a
``ConfigPatcher`` and reports which keys changed. Restarting services is left
to the caller.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Union

from hostconf.backup import BackupSession
from hostconf.errors import HostconfError
from hostconf.patcher import INI, SSH, SYSCTL, ConfigPatcher
from hostconf.profiles import (
    SYSCTL_HEADER,
    SYSCTL_PROFILE,
    MySQLTuning,
    Setting,
    SSHPolicy,
    as_mapping,
    replication_settings,
)
from hostconf.system import check_sshd_config

logger = logging.getLogger(__name__)


@dataclass
class TaskResult:
    path: Path
    changed: List[str] = field(default_factory=list)
    backup_path: Optional[Path] = None

    @property
    def modified(self) -> bool:
        return bool(self.changed)


def apply_settings(
    patcher: ConfigPatcher, settings: List[Setting]
) -> TaskResult:
    changed = patcher.set_many(as_mapping(settings))
    backup_path = patcher.backup.backup_path if patcher.backup else None
    return TaskResult(path=patcher.path, changed=changed, backup_path=backup_path)


def _patcher(path: Union[str, Path], style, section, backup: bool, strict: bool) -> ConfigPatcher:
    session = BackupSession(path) if backup else None
    return ConfigPatcher(path, style=style, section=section, strict=strict, backup=session)


def tune_mysql(
    config_file: Union[str, Path],
    tuning: MySQLTuning,
    section: str = "[mysqld]",
    backup: bool = True,
    strict: bool = False,
) -> TaskResult:
    # Validate everything before the first write.
    settings = tuning.settings()
    patcher = _patcher(config_file, INI, section, backup, strict)
    result = apply_settings(patcher, settings)
    logger.info(f"MySQL tuning: {len(result.changed)} setting(s) changed in {config_file}")
    return result


def configure_replication(
    config_file: Union[str, Path],
    role: str,
    db_name: str,
    server_id: Optional[int] = None,
    section: str = "[mysqld]",
    backup: bool = True,
    strict: bool = False,
) -> TaskResult:
    settings = replication_settings(role, db_name, server_id)
    patcher = _patcher(config_file, INI, section, backup, strict)
    result = apply_settings(patcher, settings)
    logger.info(f"Replication ({role}): {len(result.changed)} setting(s) changed")
    return result


def apply_ssh_policy(
    sshd_config: Union[str, Path],
    policy: SSHPolicy,
    check: bool = True,
    backup: bool = True,
    validator: Callable[[Path], bool] = check_sshd_config,
) -> TaskResult:
    """
    Write the authentication policy to ``sshd_config``.

    With ``check`` set the patched file is validated with ``sshd -t``; on
    failure it is restored from the session backup and HostconfError is raised.
    """
    patcher = _patcher(sshd_config, SSH, None, backup, False)
    result = apply_settings(patcher, policy.settings())
    if check and result.modified and not validator(Path(sshd_config)):
        if patcher.backup is not None and patcher.backup.restore():
            raise HostconfError(
                f"sshd rejected {sshd_config}; restored {patcher.backup.backup_path}"
            )
        raise HostconfError(f"sshd rejected {sshd_config}")
    return result


def apply_sysctl(
    conf_file: Union[str, Path],
    settings: Optional[List[Setting]] = None,
    backup: bool = True,
) -> TaskResult:
    """Write kernel parameters into a sysctl.d drop-in, creating it if needed."""
    conf_file = Path(conf_file)
    if not conf_file.exists():
        try:
            conf_file.parent.mkdir(parents=True, exist_ok=True)
            conf_file.write_text(SYSCTL_HEADER)
        except OSError as e:
            raise HostconfError(f"Cannot create {conf_file}: {e}") from e
        logger.info(f"Created {conf_file}")
        backup = False
    patcher = _patcher(conf_file, SYSCTL, None, backup, False)
    return apply_settings(patcher, settings if settings is not None else SYSCTL_PROFILE)
