# Unit tests for hostconf/system.py

import subprocess

import pytest

from hostconf import system
from hostconf.errors import CommandError, HostconfError


def completed(cmd, stdout="", returncode=0):
    return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr="")


class TestRunCommand:
    def test_failure_becomes_command_error(self, monkeypatch):
        def fake_run(cmd, **kwargs):
            raise subprocess.CalledProcessError(3, cmd, output="", stderr="bad option\n")

        monkeypatch.setattr(system.subprocess, "run", fake_run)

        with pytest.raises(CommandError) as exc_info:
            system.run_command(["sshd", "-t"])
        assert exc_info.value.returncode == 3
        assert "bad option" in str(exc_info.value)

    def test_missing_executable(self, monkeypatch):
        def fake_run(cmd, **kwargs):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr(system.subprocess, "run", fake_run)

        with pytest.raises(CommandError) as exc_info:
            system.run_command(["nope"])
        assert exc_info.value.returncode == 127

    def test_timeout(self, monkeypatch):
        def fake_run(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])

        monkeypatch.setattr(system.subprocess, "run", fake_run)

        with pytest.raises(CommandError, match="timed out"):
            system.run_command(["sleep", "10"], timeout=1)


class TestDetection:
    def test_package_manager(self, monkeypatch):
        monkeypatch.setattr(
            system.shutil, "which", lambda cmd: "/usr/bin/dnf" if cmd == "dnf" else None
        )

        assert system.detect_package_manager() == "dnf"

    def test_apt_get_reported_as_apt(self, monkeypatch):
        monkeypatch.setattr(system.shutil, "which", lambda cmd: f"/usr/bin/{cmd}")

        assert system.detect_package_manager() == "apt"

    def test_pacman(self, monkeypatch):
        monkeypatch.setattr(
            system.shutil, "which", lambda cmd: "/usr/bin/pacman" if cmd == "pacman" else None
        )

        assert system.detect_package_manager() == "pacman"

    def test_no_package_manager(self, monkeypatch):
        monkeypatch.setattr(system.shutil, "which", lambda cmd: None)

        assert system.detect_package_manager() is None

    def test_first_existing_mysql_config(self, tmp_path):
        candidates = [tmp_path / "a.cnf", tmp_path / "b.cnf", tmp_path / "c.cnf"]
        candidates[2].write_text("[mysqld]\n")

        assert system.detect_mysql_config(candidates) == candidates[2]

    def test_mysql_config_is_created(self, tmp_path):
        candidates = [tmp_path / "conf.d" / "mysqld.cnf", tmp_path / "etc" / "my.cnf"]

        path = system.detect_mysql_config(candidates)

        assert path == candidates[1]
        assert path.read_text() == "[mysqld]\n"

    def test_mysql_config_not_created(self, tmp_path):
        with pytest.raises(HostconfError):
            system.detect_mysql_config([tmp_path / "a.cnf", tmp_path / "b.cnf"], create=False)

    @pytest.mark.parametrize(
        "units, expected",
        [
            ("mariadb.service enabled\n", "mariadb"),
            ("mysqld.service enabled\nmariadb.service alias\n", "mysqld"),
            ("ssh.service enabled\n", "mysql"),
        ],
    )
    def test_mysql_service(self, monkeypatch, units, expected):
        monkeypatch.setattr(system, "_unit_files", lambda: units)

        assert system.detect_mysql_service() == expected


class TestServices:
    def test_check_sshd_config(self, monkeypatch, sshd_config):
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append(cmd)
            return completed(cmd)

        monkeypatch.setattr(system.shutil, "which", lambda cmd: "/usr/sbin/sshd")
        monkeypatch.setattr(system.subprocess, "run", fake_run)

        assert system.check_sshd_config(sshd_config)
        assert calls == [["/usr/sbin/sshd", "-t", "-f", str(sshd_config)]]

    def test_check_sshd_config_rejects(self, monkeypatch, sshd_config):
        def fake_run(cmd, **kwargs):
            raise subprocess.CalledProcessError(255, cmd, stderr="Bad configuration option")

        monkeypatch.setattr(system.subprocess, "run", fake_run)

        assert not system.check_sshd_config(sshd_config)

    def test_restart_falls_back_to_next_name(self, monkeypatch):
        def fake_run(cmd, **kwargs):
            if cmd[-1] == "sshd":
                raise subprocess.CalledProcessError(5, cmd, stderr="Unit sshd.service not found.")
            return completed(cmd)

        monkeypatch.setattr(system.subprocess, "run", fake_run)

        assert system.restart_service(["sshd", "ssh"]) == "ssh"

    def test_restart_fails(self, monkeypatch):
        def fake_run(cmd, **kwargs):
            raise subprocess.CalledProcessError(5, cmd, stderr="not found")

        monkeypatch.setattr(system.subprocess, "run", fake_run)

        with pytest.raises(HostconfError, match="mysqld/mysql"):
            system.restart_service(["mysqld", "mysql"])
