# Unit tests for hostconf/cleanup.py

import subprocess

import pytest

from hostconf import cleanup
from hostconf.errors import CommandError


class FakeRunner:
    """Records commands instead of running them."""

    def __init__(self, outputs=None, failing=()):
        self.calls = []
        self.outputs = outputs or {}
        self.failing = set(failing)

    def __call__(self, cmd, check=True, **kwargs):
        self.calls.append((cmd, check))
        if cmd[0] in self.failing:
            raise CommandError(cmd, 100, "lock held")
        return subprocess.CompletedProcess(
            cmd, 0, stdout=self.outputs.get(cmd[0], ""), stderr=""
        )

    @property
    def commands(self):
        return [cmd for cmd, _ in self.calls]


@pytest.fixture
def runner(monkeypatch):
    fake = FakeRunner()
    monkeypatch.setattr(cleanup, "run_command", fake)
    monkeypatch.setattr(cleanup, "command_exists", lambda cmd: True)
    return fake


class TestCleanPackages:
    def test_apt(self, runner):
        result = cleanup.CleanupResult()

        cleanup.clean_packages("apt", result)

        assert runner.commands == [
            ["apt-get", "update", "-y"],
            ["apt-get", "autoremove", "-y"],
            ["apt-get", "autoclean", "-y"],
            ["apt-get", "clean"],
            ["journalctl", "--vacuum-time=7d"],
        ]
        assert result.package_manager == "apt"
        assert result.failed == []

    @pytest.mark.parametrize(
        "manager, expected",
        [
            ("dnf", ["dnf", "clean", "all", "-y"]),
            ("yum", ["yum", "clean", "all", "-y"]),
            ("pacman", ["pacman", "-Sc", "--noconfirm"]),
        ],
    )
    def test_other_managers(self, runner, manager, expected):
        cleanup.clean_packages(manager, cleanup.CleanupResult())

        assert runner.commands == [expected, cleanup.JOURNAL_VACUUM]

    def test_without_package_manager(self, runner):
        result = cleanup.CleanupResult()

        cleanup.clean_packages(None, result)

        assert runner.commands == [cleanup.JOURNAL_VACUUM]
        assert result.package_manager is None

    def test_without_journalctl(self, runner, monkeypatch):
        monkeypatch.setattr(cleanup, "command_exists", lambda cmd: False)

        cleanup.clean_packages("dnf", cleanup.CleanupResult())

        assert runner.commands == [["dnf", "clean", "all", "-y"]]

    def test_failed_step_does_not_stop_the_rest(self, runner):
        runner.failing = {"apt-get"}
        result = cleanup.CleanupResult()

        cleanup.clean_packages("apt", result)

        assert len(result.failed) == 4
        assert runner.commands[-1] == cleanup.JOURNAL_VACUUM
        assert cleanup.JOURNAL_VACUUM not in result.failed


class TestCleanTmp:
    def test_removed_files_are_collected(self, runner, tmp_path):
        runner.outputs = {"find": f"{tmp_path}/a.log\n{tmp_path}/b.tmp\n"}
        result = cleanup.CleanupResult()

        cleanup.clean_tmp(tmp_path, result)

        assert runner.calls == [
            (
                ["find", str(tmp_path), "-type", "f", "-mtime", "+3", "-print", "-delete"],
                False,
            )
        ]
        assert result.removed == [f"{tmp_path}/a.log", f"{tmp_path}/b.tmp"]

    def test_custom_age(self, runner, tmp_path):
        cleanup.clean_tmp(tmp_path, cleanup.CleanupResult(), max_age_days=10)

        assert "+10" in runner.commands[0]

    def test_missing_find(self, runner, tmp_path):
        runner.failing = {"find"}
        result = cleanup.CleanupResult()

        cleanup.clean_tmp(tmp_path, result)

        assert result.removed == []
        assert result.failed == [runner.commands[0]]


class TestCleanupDisk:
    def test_uses_detected_package_manager(self, runner, monkeypatch, tmp_path):
        monkeypatch.setattr(cleanup, "detect_package_manager", lambda: "pacman")

        result = cleanup.cleanup_disk(tmp_path)

        assert result.package_manager == "pacman"
        assert runner.commands[0] == ["pacman", "-Sc", "--noconfirm"]
        assert runner.commands[-1][0] == "find"

    def test_tmp_only(self, runner, monkeypatch, tmp_path):
        def no_detection():
            raise AssertionError("package manager lookup not expected")

        monkeypatch.setattr(cleanup, "detect_package_manager", no_detection)

        result = cleanup.cleanup_disk(tmp_path, packages=False)

        assert [cmd[0] for cmd in result.commands] == ["find"]
        assert result.package_manager is None
