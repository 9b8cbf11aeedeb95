# Unit tests for hostconf/tasks.py

import pytest

from hostconf.errors import HostconfError, ValidationError
from hostconf.patcher import SSH, get_config_value
from hostconf.profiles import HostFacts, MySQLTuning, Setting, SSHPolicy
from hostconf.tasks import apply_ssh_policy, apply_sysctl, configure_replication, tune_mysql


def backups(path):
    return sorted(path.parent.glob(f"{path.name}.bak.*"))


class TestTuneMySQL:
    def test_writes_settings_and_one_backup(self, mysqld_cnf):
        tuning = MySQLTuning(facts=HostFacts(cpu_cores=2, mem_kb=None))

        result = tune_mysql(mysqld_cnf, tuning)

        assert result.modified
        assert "bind-address" in result.changed
        assert get_config_value(mysqld_cnf, "bind-address") == "0.0.0.0"
        assert get_config_value(mysqld_cnf, "innodb_buffer_pool_size") == "1G"
        assert backups(mysqld_cnf) == [result.backup_path]

    def test_second_run_changes_nothing(self, mysqld_cnf):
        tuning = MySQLTuning(facts=HostFacts(cpu_cores=2, mem_kb=None))
        tune_mysql(mysqld_cnf, tuning)
        content = mysqld_cnf.read_bytes()

        result = tune_mysql(mysqld_cnf, tuning)

        assert not result.modified
        assert result.backup_path is None
        assert mysqld_cnf.read_bytes() == content
        assert len(backups(mysqld_cnf)) == 1

    def test_invalid_tuning_writes_nothing(self, mysqld_cnf):
        before = mysqld_cnf.read_bytes()
        tuning = MySQLTuning(overrides={"innodb_buffer_pool_size": "huge"})

        with pytest.raises(ValidationError):
            tune_mysql(mysqld_cnf, tuning)

        assert mysqld_cnf.read_bytes() == before
        assert backups(mysqld_cnf) == []

    def test_without_backup(self, empty_cnf):
        result = tune_mysql(empty_cnf, MySQLTuning(), backup=False)

        assert result.modified
        assert result.backup_path is None
        assert empty_cnf.read_text().startswith("[mysqld]\nbind-address = 0.0.0.0\n")


def test_replication_slave(mysqld_cnf):
    result = configure_replication(mysqld_cnf, "slave", "shop", backup=False)

    assert result.changed == [
        "binlog_format",
        "server_id",
        "relay_log",
        "read_only",
        "super_read_only",
        "replicate_do_db",
    ]
    text = mysqld_cnf.read_text()
    assert text.index("replicate_do_db = shop") < text.index("[client]")


class TestSSHPolicy:
    """apply_ssh_policy() with an injected config check"""

    def test_applies_policy(self, sshd_config):
        result = apply_ssh_policy(sshd_config, SSHPolicy(), validator=lambda path: True)

        assert get_config_value(sshd_config, "PermitRootLogin", SSH) == "no"
        assert get_config_value(sshd_config, "PubkeyAuthentication", SSH) == "yes"
        assert result.changed == ["PermitRootLogin", "PubkeyAuthentication"]

    def test_global_policy_with_match_block(self, tmp_path):
        """A Match override must not absorb the global setting."""
        sshd_config = tmp_path / "sshd_config"
        sshd_config.write_text(
            "PasswordAuthentication yes\n"
            "Match Address 10.0.0.0/8\n"
            "    PasswordAuthentication yes\n"
        )

        apply_ssh_policy(
            sshd_config,
            SSHPolicy(password_authentication=False),
            validator=lambda path: True,
        )

        assert sshd_config.read_text() == (
            "PasswordAuthentication no\n"
            "PermitRootLogin no\n"
            "PubkeyAuthentication yes\n"
            "Match Address 10.0.0.0/8\n"
            "    PasswordAuthentication yes\n"
        )

    def test_rejected_config_is_restored(self, sshd_config):
        original = sshd_config.read_text()

        with pytest.raises(HostconfError, match="restored"):
            apply_ssh_policy(sshd_config, SSHPolicy(), validator=lambda path: False)

        assert sshd_config.read_text() == original

    def test_rejected_without_backup(self, sshd_config):
        with pytest.raises(HostconfError):
            apply_ssh_policy(
                sshd_config, SSHPolicy(), backup=False, validator=lambda path: False
            )

    def test_validator_skipped_when_unchanged(self, sshd_config):
        apply_ssh_policy(sshd_config, SSHPolicy(), check=False)
        calls = []

        result = apply_ssh_policy(
            sshd_config, SSHPolicy(), validator=lambda path: calls.append(path) or False
        )

        assert not result.modified
        assert calls == []


class TestSysctl:
    def test_creates_drop_in(self, tmp_path):
        conf = tmp_path / "sysctl.d" / "90-optimized.conf"

        result = apply_sysctl(conf, [Setting("vm.swappiness", "10")])

        assert conf.read_text().endswith("\nvm.swappiness = 10\n")
        assert conf.read_text().startswith("# Managed by hostconf")
        assert result.backup_path is None

    def test_full_profile_is_idempotent(self, tmp_path):
        conf = tmp_path / "90-optimized.conf"
        apply_sysctl(conf)

        result = apply_sysctl(conf)

        assert not result.modified
        assert "net.core.somaxconn = 65535" in conf.read_text()

    def test_existing_value_is_replaced(self, tmp_path):
        conf = tmp_path / "99-local.conf"
        conf.write_text("vm.swappiness=60\n")

        result = apply_sysctl(conf, [Setting("vm.swappiness", "10")])

        assert conf.read_text() == "vm.swappiness = 10\n"
        assert result.backup_path is not None
        assert result.backup_path.read_text() == "vm.swappiness=60\n"
