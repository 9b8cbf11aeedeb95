"""
Idempotent key/value patching of line-oriented configuration files.

A single call rewrites the last assignment of a key (commented out or
active) into an active ``key = value`` line, or inserts a new one at the end
of the requested section. Every other line is preserved byte for byte, so
running the same call twice leaves the file unchanged.

Only the last match is rewritten. Earlier duplicates are left as they are,
which matches how MySQL and OpenSSH resolve repeated keys closely enough for
interactive use; pass ``strict=True`` to refuse files with duplicates. In
sshd_config only the global part before the first ``Match`` block is read
or patched.

No file locking is done. Two processes patching the same file at the same
time can lose each other's changes.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Pattern, Tuple, Union

from hostconf.backup import BackupSession
from hostconf.errors import (
    ConfigFileNotFound,
    ConfigPermissionDenied,
    InvalidKey,
    InvalidValue,
    MultipleAssignments,
    SectionCreateFailed,
)

logger = logging.getLogger(__name__)

KEY_PATTERN: Pattern = re.compile(r"^[A-Za-z_][A-Za-z0-9_.-]*$")
SECTION_PATTERN: Pattern = re.compile(r"^\s*\[[^\]]+\]\s*$")
COMMENT_PREFIX: Pattern = re.compile(r"^[#\s]*")
ENCODING = "utf-8"


# ----------------------------------------------------------------
# Line styles
# ----------------------------------------------------------------
@dataclass(frozen=True)
class LineStyle:
    """How assignments are written in a family of configuration files."""

    name: str
    separator: str
    sections: bool
    # New flat assignments go before the first line matching this pattern.
    block_start: Optional[str] = None

    @property
    def uses_equals(self) -> bool:
        return self.separator.strip() == "="

    def matcher(self, key: str) -> Pattern:
        if self.uses_equals:
            return re.compile(rf"^[#\s]*{re.escape(key)}\s*=")
        return re.compile(rf"^[#\s]*{re.escape(key)}(\s|$)")

    def render(self, key: str, value: str) -> str:
        return f"{key}{self.separator}{value}"

    def parse_value(self, line: str, key: str) -> str:
        body = COMMENT_PREFIX.sub("", line).rstrip()
        rest = body[len(key):]
        if self.uses_equals:
            rest = rest.strip().lstrip("=")
        return rest.strip()


INI = LineStyle(name="ini", separator=" = ", sections=True)
SSH = LineStyle(name="ssh", separator=" ", sections=False, block_start=r"^\s*Match\s")
SYSCTL = LineStyle(name="sysctl", separator=" = ", sections=False)

STYLES: Dict[str, LineStyle] = {style.name: style for style in (INI, SSH, SYSCTL)}


@dataclass
class Assignment:
    """A key assignment found in a configuration file."""

    line_number: int
    key: str
    value: str
    active: bool


# ----------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------
def normalize_section(section: Optional[str]) -> Optional[str]:
    if section is None:
        return None
    section = section.strip()
    if not section:
        return None
    if not section.startswith("["):
        section = f"[{section}]"
    return section


def _split_lines(text: str) -> List[str]:
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _line_ending(line: str) -> str:
    if line.endswith("\r\n"):
        return "\r\n"
    if line.endswith("\n"):
        return "\n"
    return ""


def _newline(lines: List[str]) -> str:
    """Line ending used by the file, taken from its first terminated line."""
    for line in lines:
        ending = _line_ending(line)
        if ending:
            return ending
    return "\n"


def _terminate(lines: List[str], index: int, newline: str) -> None:
    if lines and not _line_ending(lines[index]):
        lines[index] += newline


def _read_lines(path: Path) -> List[str]:
    with open(path, "r", encoding=ENCODING, errors="surrogateescape", newline="") as f:
        return _split_lines(f.read())


def _check_file(path: Path) -> None:
    if not path.is_file():
        raise ConfigFileNotFound(path)
    if not os.access(path, os.W_OK):
        raise ConfigPermissionDenied(path)


def _validate(path: Path, key: str, value: str) -> None:
    if not KEY_PATTERN.match(key):
        raise InvalidKey(path, key)
    if "\n" in value or "\r" in value:
        raise InvalidValue(path, key)


def _matching_lines(lines: List[str], key: str, style: LineStyle) -> List[int]:
    # Keys inside conditional blocks (sshd Match) are never touched.
    pattern = style.matcher(key)
    end = _global_end(lines, style)
    return [i for i, line in enumerate(lines[:end]) if pattern.match(line)]


def _section_insert_index(lines: List[str], header_index: int) -> int:
    """Index right after the last non-blank line of the section."""
    last = header_index
    for i in range(header_index + 1, len(lines)):
        if SECTION_PATTERN.match(lines[i]):
            break
        if lines[i].strip():
            last = i
    return last + 1


def _find_section(lines: List[str], header: str) -> Optional[int]:
    for i, line in enumerate(lines):
        if line.strip() == header:
            return i
    return None


def _global_end(lines: List[str], style: LineStyle) -> int:
    """Index of the first block start line, or the end of the file."""
    if style.block_start:
        block = re.compile(style.block_start)
        for i, line in enumerate(lines):
            if block.match(line):
                return i
    return len(lines)


# ----------------------------------------------------------------
# Public API
# ----------------------------------------------------------------
def find_assignments(
    path: Union[str, Path], key: str, style: LineStyle = INI
) -> List[Assignment]:
    """Return every assignment of ``key`` in file order, commented or not."""
    path = Path(path)
    if not path.is_file():
        raise ConfigFileNotFound(path)
    if not KEY_PATTERN.match(key):
        raise InvalidKey(path, key)
    lines = _read_lines(path)
    return [
        Assignment(
            line_number=i + 1,
            key=key,
            value=style.parse_value(lines[i], key),
            active=not lines[i].lstrip().startswith("#"),
        )
        for i in _matching_lines(lines, key, style)
    ]


def get_config_value(
    path: Union[str, Path], key: str, style: LineStyle = INI
) -> Optional[str]:
    """Value of the last assignment of ``key`` (the one a reader would use)."""
    assignments = find_assignments(path, key, style)
    if not assignments:
        return None
    return assignments[-1].value


def _plan(
    path: Path,
    section: Optional[str],
    key: str,
    value: str,
    style: LineStyle,
    strict: bool,
) -> Tuple[str, str, Optional[str]]:
    """Return (original, patched, created section header) without writing."""
    _validate(path, key, value)
    _check_file(path)

    lines = _read_lines(path)
    original = "".join(lines)
    new_line = style.render(key, value)
    newline = _newline(lines)
    matches = _matching_lines(lines, key, style)
    header = normalize_section(section) if style.sections else None
    created = None

    if strict and len(matches) > 1:
        raise MultipleAssignments(path, key, [i + 1 for i in matches])

    if matches:
        index = matches[-1]
        lines[index] = new_line + _line_ending(lines[index])
    elif header is None:
        index = _global_end(lines, style)
        if index > 0:
            _terminate(lines, index - 1, newline)
        lines.insert(index, new_line + newline)
    else:
        header_index = _find_section(lines, header)
        if header_index is None:
            if lines:
                _terminate(lines, len(lines) - 1, newline)
                if lines[-1].strip():
                    lines.append(newline)
            lines.append(header + newline)
            header_index = len(lines) - 1
            created = header
        index = _section_insert_index(lines, header_index)
        _terminate(lines, index - 1, newline)
        lines.insert(index, new_line + newline)

    return original, "".join(lines), created


def would_change(
    path: Union[str, Path],
    section: Optional[str],
    key: str,
    value: str,
    style: LineStyle = INI,
    strict: bool = False,
) -> bool:
    original, patched, _ = _plan(Path(path), section, key, str(value), style, strict)
    return original != patched


def set_config_value(
    path: Union[str, Path],
    section: Optional[str],
    key: str,
    value: str,
    style: LineStyle = INI,
    strict: bool = False,
) -> bool:
    """
    Ensure ``key`` is actively set to ``value`` in a configuration file.

    Args:
        path: The configuration file. It must exist and be writable.
        section: Section header such as ``[mysqld]`` used when the key has to
            be added. Ignored for flat styles.
        key: The setting name.
        value: The setting value, written verbatim.
        style: Assignment syntax of the file.
        strict: Refuse to patch when the key is assigned on several lines.

    Returns:
        True if the file content changed, False if it already matched.
    """
    path = Path(path)
    original, patched, created = _plan(path, section, key, str(value), style, strict)
    if patched == original:
        logger.debug(f"{path}: {key} already set to {value}")
        return False

    try:
        with open(path, "w", encoding=ENCODING, errors="surrogateescape", newline="") as f:
            f.write(patched)
    except OSError as e:
        if created is not None:
            raise SectionCreateFailed(path, created, str(e)) from e
        if isinstance(e, PermissionError):
            raise ConfigPermissionDenied(path) from e
        raise
    if created is not None:
        logger.debug(f"{path}: added section {created}")
    logger.debug(f"{path}: {style.render(key, str(value))}")
    return True


class ConfigPatcher:
    """
    A configuration file bound to its syntax, default section and backup.

    The first call that changes the file takes the session backup, so a run
    that changes nothing leaves no backup behind.
    """

    def __init__(
        self,
        path: Union[str, Path],
        style: LineStyle = INI,
        section: Optional[str] = None,
        strict: bool = False,
        backup: Optional[BackupSession] = None,
    ) -> None:
        self.path = Path(path)
        self.style = style
        self.section = section
        self.strict = strict
        self.backup = backup

    def get(self, key: str) -> Optional[str]:
        return get_config_value(self.path, key, self.style)

    def set(self, key: str, value: str) -> bool:
        value = str(value)
        if self.backup is not None and not self.backup.taken:
            if not would_change(
                self.path, self.section, key, value, self.style, self.strict
            ):
                return False
            self.backup.ensure()
        changed = set_config_value(
            self.path, self.section, key, value, self.style, self.strict
        )
        if changed:
            logger.info(f"Set {self.style.render(key, value)} in {self.path}")
        return changed

    def set_many(self, settings: Dict[str, str]) -> List[str]:
        """Apply settings in order; return the keys that changed."""
        return [key for key, value in settings.items() if self.set(key, value)]

    def __repr__(self) -> str:
        return f"ConfigPatcher({str(self.path)!r}, style={self.style.name!r})"
