"""
hostconf command-line interface.

Every command fails fast: any error is printed with the offending file or
key and the process exits with status 1. Nothing here restarts a service
unless ``--restart`` is given.
"""

import functools
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from hostconf import __version__
from hostconf.authorized_keys import install_public_key, read_public_key, user_home
from hostconf.backup import BackupSession, backup_file, restore_file
from hostconf.cleanup import TMP_MAX_AGE_DAYS, cleanup_disk
from hostconf.config import Config
from hostconf.errors import HostconfError, ValidationError
from hostconf.log import LOGGER_NAME, setup_logger
from hostconf.nginx import (
    STREAM_MODULES,
    NginxBuildOptions,
    configure_args,
    parse_module_selection,
)
from hostconf.patcher import STYLES, ConfigPatcher, get_config_value
from hostconf.profiles import HostFacts, MySQLTuning, SSHPolicy
from hostconf.system import (
    detect_mysql_config,
    detect_mysql_service,
    detect_package_manager,
    require_root,
    restart_service,
    run_command,
)
from hostconf.tasks import (
    TaskResult,
    apply_ssh_policy,
    apply_sysctl,
    configure_replication,
    tune_mysql,
)
from hostconf.ui import (
    console,
    create_header,
    print_error,
    print_step,
    print_success,
    print_warning,
    summary_table,
)

logger = logging.getLogger(LOGGER_NAME)

STYLE_CHOICE = click.Choice(sorted(STYLES))


def reports_errors(func):
    """Turn HostconfError into an error message and exit status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except HostconfError as e:
            print_error(str(e))
            logger.debug("Command failed", exc_info=True)
            sys.exit(1)

    return wrapper


def _parse_overrides(pairs: Tuple[str, ...]) -> dict:
    overrides = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValidationError("--set", f"expected KEY=VALUE, got {pair!r}")
        overrides[key.strip()] = value.strip()
    return overrides


def _report(result: TaskResult, title: str) -> None:
    if result.modified:
        console.print(
            summary_table(title, [(key, "updated") for key in result.changed])
        )
        print_success(f"{len(result.changed)} setting(s) updated in {result.path}")
    else:
        print_step(f"{result.path} already up to date")
    if result.backup_path:
        print_step(f"Backup: {result.backup_path}")


def _restart(names) -> None:
    require_root()
    name = restart_service(names)
    print_success(f"Service {name} restarted")


# ----------------------------------------------------------------
# Command group
# ----------------------------------------------------------------
@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write a log file (default: $HOSTCONF_LOG_FILE)",
)
@click.version_option(__version__, prog_name="hostconf")
@click.pass_context
def cli(ctx: click.Context, debug: bool, log_file: Optional[Path]) -> None:
    """Idempotent configuration patching for MySQL, OpenSSH and sysctl."""
    cfg = Config()
    if log_file is not None:
        cfg.LOG_FILE = log_file
    setup_logger(cfg.LOG_FILE, debug)
    ctx.obj = cfg


@cli.command("set")
@click.argument("path", type=click.Path(path_type=Path))
@click.argument("key")
@click.argument("value")
@click.option(
    "--section",
    default=None,
    help="Section header for ini files (default: [mysqld])",
)
@click.option("--style", type=STYLE_CHOICE, default="ini", show_default=True)
@click.option("--strict", is_flag=True, help="Fail if the key appears on several lines")
@click.option("--backup/--no-backup", default=True, show_default=True)
@click.pass_obj
@reports_errors
def set_command(
    cfg: Config,
    path: Path,
    key: str,
    value: str,
    section: Optional[str],
    style: str,
    strict: bool,
    backup: bool,
) -> None:
    """Set KEY to VALUE in the configuration file PATH."""
    if STYLES[style].sections and section is None:
        section = cfg.MYSQL_SECTION
    session = BackupSession(path) if backup else None
    patcher = ConfigPatcher(
        path, style=STYLES[style], section=section, strict=strict, backup=session
    )
    if patcher.set(key, value):
        print_success(f"{key} set to {value} in {path}")
        if session is not None and session.taken:
            print_step(f"Backup: {session.backup_path}")
    else:
        print_step(f"{key} already set to {value}")


@cli.command("get")
@click.argument("path", type=click.Path(path_type=Path))
@click.argument("key")
@click.option("--style", type=STYLE_CHOICE, default="ini", show_default=True)
@reports_errors
def get_command(path: Path, key: str, style: str) -> None:
    """Print the value of KEY in PATH (last assignment wins)."""
    value = get_config_value(path, key, STYLES[style])
    if value is None:
        print_warning(f"{key} is not set in {path}")
        sys.exit(1)
    click.echo(value)


@cli.command("backup")
@click.argument("path", type=click.Path(path_type=Path))
@reports_errors
def backup_command(path: Path) -> None:
    """Take a timestamped backup of PATH."""
    backup_path = backup_file(path)
    print_success(f"Backup created: {backup_path}")


@cli.command("restore")
@click.argument("backup_path", type=click.Path(path_type=Path))
@click.argument("path", type=click.Path(path_type=Path))
@reports_errors
def restore_command(backup_path: Path, path: Path) -> None:
    """Copy BACKUP_PATH back over PATH."""
    restore_file(backup_path, path)
    print_success(f"Restored {path}")


# ----------------------------------------------------------------
# MySQL
# ----------------------------------------------------------------
def _mysql_config(cfg: Config, config: Optional[Path]) -> Path:
    if config is not None:
        return config
    return detect_mysql_config(cfg.MYSQL_CONFIG_CANDIDATES)


@cli.command("mysql-tune")
@click.option("--config", type=click.Path(path_type=Path), default=None)
@click.option(
    "--engine",
    type=click.Choice(["InnoDB", "MyISAM", "MEMORY"], case_sensitive=False),
    default="InnoDB",
    show_default=True,
)
@click.option("--bind-address", default="0.0.0.0", show_default=True)
@click.option("--max-connections", default="200", show_default=True)
@click.option("--thread-concurrency", default=None, help="Default: 2 x CPU cores")
@click.option("--set", "overrides", multiple=True, metavar="KEY=VALUE")
@click.option("--mysqlx-loopback/--no-mysqlx-loopback", default=None)
@click.option("--strict", is_flag=True)
@click.option("--backup/--no-backup", default=True, show_default=True)
@click.option("--restart", is_flag=True, help="Restart MySQL afterwards")
@click.pass_obj
@reports_errors
def mysql_tune_command(
    cfg: Config,
    config: Optional[Path],
    engine: str,
    bind_address: str,
    max_connections: str,
    thread_concurrency: Optional[str],
    overrides: Tuple[str, ...],
    mysqlx_loopback: Optional[bool],
    strict: bool,
    backup: bool,
    restart: bool,
) -> None:
    """Write connection and storage engine tuning into [mysqld]."""
    console.print(create_header("MySQL"))
    if mysqlx_loopback is None:
        mysqlx_loopback = detect_package_manager() == "apt"
    tuning = MySQLTuning(
        facts=HostFacts.detect(),
        bind_address=bind_address,
        thread_concurrency=thread_concurrency,
        max_connections=max_connections,
        engine=engine,
        overrides=_parse_overrides(overrides),
        mysqlx_loopback=mysqlx_loopback,
    )
    config_file = _mysql_config(cfg, config)
    print_step(f"Using {config_file}")
    result = tune_mysql(config_file, tuning, cfg.MYSQL_SECTION, backup, strict)
    _report(result, "MySQL tuning")
    if restart:
        _restart([detect_mysql_service()])


@cli.command("mysql-replication")
@click.argument("role", type=click.Choice(["master", "slave"], case_sensitive=False))
@click.argument("db_name")
@click.option("--server-id", default=None, help="Default: 1 for master, 2 for slave")
@click.option("--config", type=click.Path(path_type=Path), default=None)
@click.option("--backup/--no-backup", default=True, show_default=True)
@click.option("--restart", is_flag=True, help="Restart MySQL afterwards")
@click.pass_obj
@reports_errors
def mysql_replication_command(
    cfg: Config,
    role: str,
    db_name: str,
    server_id: Optional[str],
    config: Optional[Path],
    backup: bool,
    restart: bool,
) -> None:
    """Write binlog replication settings for ROLE replicating DB_NAME."""
    console.print(create_header("Replication"))
    config_file = _mysql_config(cfg, config)
    result = configure_replication(
        config_file, role.lower(), db_name, server_id, cfg.MYSQL_SECTION, backup
    )
    _report(result, f"Replication ({role.lower()})")
    if role.lower() == "master":
        print_step(f"Configure replicate_do_db = {db_name} on the slave as well")
    if restart:
        _restart([detect_mysql_service()])


# ----------------------------------------------------------------
# OpenSSH
# ----------------------------------------------------------------
@cli.command("ssh-policy")
@click.option("--config", type=click.Path(path_type=Path), default=None)
@click.option("--permit-root-login/--no-permit-root-login", default=False, show_default=True)
@click.option("--password-auth/--no-password-auth", default=True, show_default=True)
@click.option("--public-key", default=None, help="Public key, or path to a .pub file")
@click.option("--user", default="root", show_default=True, help="Account receiving the key")
@click.option("--home", type=click.Path(path_type=Path), default=None)
@click.option("--check/--no-check", default=True, show_default=True, help="Validate with sshd -t")
@click.option("--backup/--no-backup", default=True, show_default=True)
@click.option("--restart", is_flag=True, help="Restart sshd afterwards")
@click.pass_obj
@reports_errors
def ssh_policy_command(
    cfg: Config,
    config: Optional[Path],
    permit_root_login: bool,
    password_auth: bool,
    public_key: Optional[str],
    user: str,
    home: Optional[Path],
    check: bool,
    backup: bool,
    restart: bool,
) -> None:
    """Set root login, password and public key authentication for sshd."""
    console.print(create_header("SSH"))
    policy = SSHPolicy(
        permit_root_login=permit_root_login, password_authentication=password_auth
    )
    key = read_public_key(public_key) if public_key else None
    if policy.requires_public_key and key is None:
        raise ValidationError(
            "--public-key", "required when password authentication is disabled"
        )

    sshd_config = config or cfg.SSHD_CONFIG
    result = apply_ssh_policy(sshd_config, policy, check=check, backup=backup)
    _report(result, "sshd_config")

    if key is not None:
        target_home = home or user_home(user)
        if install_public_key(target_home, key, owner=user):
            print_success(f"Public key installed for {user}")
        else:
            print_warning(f"Public key already authorized for {user}")
    if restart:
        print_warning("Keep another session open until you have tested the login")
        _restart(cfg.SSH_SERVICES)


# ----------------------------------------------------------------
# Kernel parameters
# ----------------------------------------------------------------
@cli.command("sysctl")
@click.option("--path", type=click.Path(path_type=Path), default=None)
@click.option("--backup/--no-backup", default=True, show_default=True)
@click.option("--reload", is_flag=True, help="Run sysctl --system afterwards")
@click.pass_obj
@reports_errors
def sysctl_command(cfg: Config, path: Optional[Path], backup: bool, reload: bool) -> None:
    """Write the conservative kernel tuning profile."""
    console.print(create_header("sysctl"))
    result = apply_sysctl(path or cfg.SYSCTL_CONF, backup=backup)
    _report(result, "Kernel parameters")
    if reload:
        require_root()
        run_command(["sysctl", "--system"], capture_output=False)
        print_success("Kernel parameters reloaded")


# ----------------------------------------------------------------
# Disk cleanup
# ----------------------------------------------------------------
@cli.command("cleanup")
@click.option(
    "--packages/--no-packages",
    default=True,
    show_default=True,
    help="Clean the package cache and journal (needs root)",
)
@click.option(
    "--tmp-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("/tmp"),
    show_default=True,
)
@click.option(
    "--max-age-days",
    type=click.IntRange(min=0),
    default=TMP_MAX_AGE_DAYS,
    show_default=True,
)
@reports_errors
def cleanup_command(packages: bool, tmp_dir: Path, max_age_days: int) -> None:
    """Free disk space: package cache, journal and stale temporary files."""
    console.print(create_header("cleanup"))
    if packages:
        require_root()
    result = cleanup_disk(tmp_dir, packages=packages, max_age_days=max_age_days)
    if result.package_manager:
        print_step(f"Package manager: {result.package_manager}")
    for cmd in result.failed:
        print_warning(f"Failed: {' '.join(cmd)}")
    print_success(f"Removed {len(result.removed)} stale file(s) from {tmp_dir}")


# ----------------------------------------------------------------
# Nginx
# ----------------------------------------------------------------
@cli.command("nginx-configure")
@click.option("--prefix", default="/usr/local/nginx", show_default=True)
@click.option("--conf-path", default="/etc/nginx/nginx.conf", show_default=True)
@click.option("--pid-path", default="/var/run/nginx.pid", show_default=True)
@click.option("--log-path", default="/var/log/nginx", show_default=True)
@click.option(
    "--modules",
    default="default",
    show_default=True,
    help="'all', 'default', 'skip' or stream module numbers, e.g. '1 2 5'",
)
@click.option("--mail", is_flag=True, help="Build the mail proxy modules")
@click.option("--list", "list_modules", is_flag=True, help="List stream modules")
@reports_errors
def nginx_configure_command(
    prefix: str,
    conf_path: str,
    pid_path: str,
    log_path: str,
    modules: str,
    mail: bool,
    list_modules: bool,
) -> None:
    """Print ./configure arguments for an Nginx source build."""
    if list_modules:
        for number, module in enumerate(STREAM_MODULES, 1):
            click.echo(f"{number}. {module.name} [{module.category}] {module.description}")
        return
    options = NginxBuildOptions(
        prefix=prefix,
        conf_path=conf_path,
        pid_path=pid_path,
        log_path=log_path,
        mail_modules=mail,
    )
    parse_module_selection(modules, options)
    for arg in configure_args(options):
        click.echo(arg)


@cli.command("show-config")
@click.pass_obj
def show_config_command(cfg: Config) -> None:
    """Show the paths hostconf uses by default."""
    console.print(summary_table("hostconf", list(cfg.to_dict().items())))


def main() -> None:
    try:
        cli()
    except KeyboardInterrupt:
        print_warning("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
