"""
Setting profiles for the services hostconf configures.

Each profile renders an ordered list of ``Setting`` records that is applied
to a configuration file through a ``ConfigPatcher``. Defaults follow the
installer scripts they replace; values are validated before anything is
written.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import psutil

from hostconf.errors import ValidationError
from hostconf.validators import (
    validate_choice,
    validate_io_capacity,
    validate_positive_int,
    validate_size,
    validate_thread_concurrency,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Setting:
    key: str
    value: str


def as_mapping(settings: List[Setting]) -> Dict[str, str]:
    return {s.key: s.value for s in settings}


# ----------------------------------------------------------------
# Host facts
# ----------------------------------------------------------------
@dataclass
class HostFacts:
    """CPU and memory figures used to derive tuning defaults."""

    cpu_cores: int = 1
    mem_kb: Optional[int] = None

    @classmethod
    def detect(cls) -> "HostFacts":
        mem_kb = None
        try:
            mem_kb = psutil.virtual_memory().total // 1024
        except (OSError, RuntimeError) as e:
            logger.debug(f"Could not read total memory: {e}")
        return cls(cpu_cores=psutil.cpu_count(logical=True) or 1, mem_kb=mem_kb)


# ----------------------------------------------------------------
# MySQL storage engine tuning
# ----------------------------------------------------------------
ENGINES = ("InnoDB", "MyISAM", "MEMORY")


def _size(key: str) -> Callable[[str], str]:
    return lambda value: validate_size(key, value)


def _int(key: str) -> Callable[[str], str]:
    return lambda value: str(validate_positive_int(key, value))


def _choice(key: str, *choices: str) -> Callable[[str], str]:
    return lambda value: validate_choice(key, value, choices)


INNODB_RULES: Dict[str, Callable[[str], str]] = {
    "innodb_buffer_pool_size": _size("innodb_buffer_pool_size"),
    "innodb_log_file_size": _size("innodb_log_file_size"),
    "innodb_flush_log_at_trx_commit": _choice("innodb_flush_log_at_trx_commit", "0", "1", "2"),
    "innodb_file_per_table": _choice("innodb_file_per_table", "0", "1"),
    "innodb_flush_method": _choice("innodb_flush_method", "O_DIRECT", "fsync", "O_DSYNC"),
    "innodb_read_io_threads": _int("innodb_read_io_threads"),
    "innodb_write_io_threads": _int("innodb_write_io_threads"),
    "innodb_io_capacity": _int("innodb_io_capacity"),
    "innodb_io_capacity_max": _int("innodb_io_capacity_max"),
    "innodb_flush_log_at_timeout": _int("innodb_flush_log_at_timeout"),
    "innodb_lock_wait_timeout": _int("innodb_lock_wait_timeout"),
    "innodb_adaptive_hash_index": _choice("innodb_adaptive_hash_index", "0", "1"),
    "innodb_sort_buffer_size": _size("innodb_sort_buffer_size"),
    "innodb_table_locks": _choice("innodb_table_locks", "ON", "OFF", "1", "0"),
}

MYISAM_RULES: Dict[str, Callable[[str], str]] = {
    "key_buffer_size": _size("key_buffer_size"),
    "read_buffer_size": _size("read_buffer_size"),
    "read_rnd_buffer_size": _size("read_rnd_buffer_size"),
}

MEMORY_RULES: Dict[str, Callable[[str], str]] = {
    "max_heap_table_size": _size("max_heap_table_size"),
    "tmp_table_size": _size("tmp_table_size"),
}


def innodb_defaults(facts: HostFacts) -> Dict[str, str]:
    if facts.mem_kb:
        buffer_pool = f"{facts.mem_kb * 75 // 100 // 1024}M"
    else:
        buffer_pool = "1G"
    io_threads = str(max(facts.cpu_cores, 4))
    return {
        "innodb_buffer_pool_size": buffer_pool,
        "innodb_log_file_size": "1G",
        "innodb_flush_log_at_trx_commit": "1",
        "innodb_file_per_table": "1",
        "innodb_flush_method": "O_DIRECT",
        "innodb_read_io_threads": io_threads,
        "innodb_write_io_threads": io_threads,
        "innodb_io_capacity": "200",
        "innodb_io_capacity_max": "2000",
        "innodb_flush_log_at_timeout": "1",
        "innodb_lock_wait_timeout": "50",
        "innodb_adaptive_hash_index": "1",
        "innodb_sort_buffer_size": "256M",
        "innodb_table_locks": "ON",
    }


def myisam_defaults(facts: HostFacts) -> Dict[str, str]:
    key_buffer = f"{facts.mem_kb // 4 // 1024}M" if facts.mem_kb else "256M"
    return {
        "key_buffer_size": key_buffer,
        "read_buffer_size": "128K",
        "read_rnd_buffer_size": "256K",
    }


def memory_defaults() -> Dict[str, str]:
    # Keep both equal so internal temp tables do not spill to disk early.
    return {"max_heap_table_size": "64M", "tmp_table_size": "64M"}


ENGINE_PROFILES = {
    "INNODB": (innodb_defaults, INNODB_RULES),
    "MYISAM": (myisam_defaults, MYISAM_RULES),
    "MEMORY": (lambda facts: memory_defaults(), MEMORY_RULES),
}


@dataclass
class MySQLTuning:
    """Everything the MySQL tuning flow writes into the ``[mysqld]`` section."""

    facts: HostFacts = field(default_factory=HostFacts)
    bind_address: str = "0.0.0.0"
    thread_concurrency: Optional[int] = None
    max_connections: int = 200
    engine: str = "InnoDB"
    overrides: Dict[str, str] = field(default_factory=dict)
    # Debian packages also start the X plugin; keep it on loopback.
    mysqlx_loopback: bool = False

    @property
    def default_thread_concurrency(self) -> int:
        return self.facts.cpu_cores * 2

    def engine_settings(self) -> Dict[str, str]:
        engine = validate_choice("default_storage_engine", self.engine, ENGINES)
        defaults_for, rules = ENGINE_PROFILES[engine]
        unknown = sorted(set(self.overrides) - set(rules))
        if unknown:
            raise ValidationError(
                unknown[0], f"not a tunable setting for the {engine} engine"
            )
        values = defaults_for(self.facts)
        values.update({k: str(v) for k, v in self.overrides.items()})
        checked = {key: rules[key](value) for key, value in values.items()}
        if engine == "INNODB":
            validate_io_capacity(
                int(checked["innodb_io_capacity"]),
                int(checked["innodb_io_capacity_max"]),
            )
        return checked

    def settings(self) -> List[Setting]:
        if not self.bind_address.strip():
            raise ValidationError("bind-address", "must not be empty")
        if self.thread_concurrency is None:
            concurrency = self.default_thread_concurrency
        else:
            concurrency = validate_thread_concurrency(
                self.thread_concurrency, self.facts.cpu_cores
            )
        max_connections = validate_positive_int("max_connections", self.max_connections)
        engine = validate_choice("default_storage_engine", self.engine, ENGINES)

        result: List[Setting] = []
        if self.mysqlx_loopback:
            result.append(Setting("mysqlx-bind-address", "127.0.0.1"))
        result.extend(
            [
                Setting("bind-address", self.bind_address.strip()),
                Setting("thread_concurrency", str(concurrency)),
                Setting("max_connections", str(max_connections)),
                Setting("default_storage_engine", engine),
            ]
        )
        result.extend(Setting(k, v) for k, v in self.engine_settings().items())
        return result


# ----------------------------------------------------------------
# MySQL replication
# ----------------------------------------------------------------
REPLICATION_ROLES = ("master", "slave")
DEFAULT_SERVER_IDS = {"master": 1, "slave": 2}


def replication_settings(
    role: str, db_name: str, server_id: Optional[int] = None
) -> List[Setting]:
    """Settings for one side of a binlog replication pair."""
    role = validate_choice("role", role, REPLICATION_ROLES, upper=False)
    if not db_name or not db_name.strip():
        raise ValidationError("database", "must not be empty")
    db_name = db_name.strip()
    if server_id is None:
        server_id = DEFAULT_SERVER_IDS[role]
    server_id_text = str(server_id).strip()
    if not server_id_text.isdigit():
        raise ValidationError("server_id", f"must be a number, got {server_id!r}")

    settings = [Setting("binlog_format", "ROW"), Setting("server_id", server_id_text)]
    if role == "master":
        settings += [
            Setting("log_bin", "/var/log/mysql/mysql-bin.log"),
            Setting("binlog_do_db", db_name),
        ]
    else:
        settings += [
            Setting("relay_log", "/var/log/mysql/mysql-relay-bin"),
            Setting("read_only", "1"),
            Setting("super_read_only", "1"),
            Setting("replicate_do_db", db_name),
        ]
    return settings


# ----------------------------------------------------------------
# OpenSSH authentication policy
# ----------------------------------------------------------------
@dataclass
class SSHPolicy:
    permit_root_login: bool = False
    password_authentication: bool = True

    @staticmethod
    def _yes_no(flag: bool) -> str:
        return "yes" if flag else "no"

    @property
    def requires_public_key(self) -> bool:
        return not self.password_authentication

    def settings(self) -> List[Setting]:
        return [
            Setting("PermitRootLogin", self._yes_no(self.permit_root_login)),
            Setting("PasswordAuthentication", self._yes_no(self.password_authentication)),
            Setting("PubkeyAuthentication", "yes"),
        ]


# ----------------------------------------------------------------
# Kernel parameters
# ----------------------------------------------------------------
SYSCTL_HEADER = (
    "# Managed by hostconf: conservative kernel tuning for web/API servers.\n"
)

SYSCTL_PROFILE: List[Setting] = [
    Setting("net.core.somaxconn", "65535"),
    Setting("net.core.netdev_max_backlog", "250000"),
    Setting("net.ipv4.ip_local_port_range", "10240 65535"),
    Setting("net.core.rmem_default", "262144"),
    Setting("net.core.wmem_default", "262144"),
    Setting("net.core.rmem_max", "16777216"),
    Setting("net.core.wmem_max", "16777216"),
    Setting("net.ipv4.tcp_rmem", "4096 87380 16777216"),
    Setting("net.ipv4.tcp_wmem", "4096 65536 16777216"),
    Setting("net.ipv4.tcp_window_scaling", "1"),
    Setting("net.ipv4.tcp_sack", "1"),
    Setting("net.ipv4.tcp_timestamps", "1"),
    Setting("net.ipv4.tcp_max_syn_backlog", "262144"),
    Setting("net.ipv4.tcp_syncookies", "1"),
    # tcp_tw_recycle is gone from current kernels; only reuse is set.
    Setting("net.ipv4.tcp_tw_reuse", "1"),
    Setting("net.ipv4.tcp_fin_timeout", "15"),
    Setting("net.ipv4.tcp_keepalive_time", "600"),
    Setting("net.ipv4.tcp_keepalive_intvl", "30"),
    Setting("net.ipv4.tcp_keepalive_probes", "5"),
    Setting("fs.file-max", "2097152"),
    Setting("vm.overcommit_memory", "1"),
    Setting("vm.swappiness", "10"),
    Setting("vm.vfs_cache_pressure", "50"),
    Setting("net.ipv4.neigh.default.gc_thresh1", "4096"),
    Setting("net.ipv4.neigh.default.gc_thresh2", "8192"),
    Setting("net.ipv4.neigh.default.gc_thresh3", "16384"),
]
