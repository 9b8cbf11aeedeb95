"""Exception hierarchy for hostconf."""

from pathlib import Path
from typing import Union


class HostconfError(Exception):
    """Base class for every error raised by hostconf."""


# ----------------------------------------------------------------
# Config patching
# ----------------------------------------------------------------
class PatchError(HostconfError):
    """A configuration file could not be patched."""

    def __init__(self, path: Union[str, Path], message: str) -> None:
        self.path = Path(path)
        super().__init__(f"{self.path}: {message}")


class ConfigFileNotFound(PatchError):
    def __init__(self, path: Union[str, Path]) -> None:
        super().__init__(path, "configuration file does not exist")


class ConfigPermissionDenied(PatchError):
    def __init__(self, path: Union[str, Path]) -> None:
        super().__init__(path, "configuration file is not writable")


class InvalidKey(PatchError):
    def __init__(self, path: Union[str, Path], key: str) -> None:
        self.key = key
        super().__init__(path, f"invalid configuration key {key!r}")


class InvalidValue(PatchError):
    def __init__(self, path: Union[str, Path], key: str) -> None:
        self.key = key
        super().__init__(path, f"value for {key!r} must not contain a newline")


class SectionCreateFailed(PatchError):
    def __init__(self, path: Union[str, Path], section: str, reason: str) -> None:
        self.section = section
        super().__init__(path, f"could not add section {section}: {reason}")


class MultipleAssignments(PatchError):
    """Raised in strict mode when a key is assigned on more than one line."""

    def __init__(self, path: Union[str, Path], key: str, line_numbers: list) -> None:
        self.key = key
        self.line_numbers = line_numbers
        lines = ", ".join(str(n) for n in line_numbers)
        super().__init__(path, f"{key!r} is assigned on multiple lines ({lines})")


# ----------------------------------------------------------------
# Input validation and external commands
# ----------------------------------------------------------------
class ValidationError(HostconfError):
    """A user supplied setting failed validation."""

    def __init__(self, setting: str, message: str) -> None:
        self.setting = setting
        super().__init__(f"{setting}: {message}")


class CommandError(HostconfError):
    """An external command failed."""

    def __init__(self, cmd: list, returncode: int, stderr: str = "") -> None:
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(
            f"Command failed ({returncode}): {' '.join(cmd)}{detail}"
        )
