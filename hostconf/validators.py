"""Validation of tuning values before they are written to a config file."""

import re
from typing import Iterable, Union

from hostconf.errors import ValidationError

SIZE_PATTERN = re.compile(r"^[0-9]+[KkMmGg]?$")
PUBLIC_KEY_PATTERN = re.compile(r"^(ssh-rsa|ssh-ed25519|ecdsa-sha2-nistp\d+|ssh-dss) ")


def validate_size(setting: str, value: str) -> str:
    """Sizes are a number with an optional K, M or G suffix."""
    value = str(value).strip()
    if not SIZE_PATTERN.match(value):
        raise ValidationError(
            setting, f"invalid size {value!r}, use a number with optional K/M/G suffix"
        )
    return value


def validate_positive_int(setting: str, value: Union[str, int]) -> int:
    text = str(value).strip()
    if not text.isdigit() or int(text) <= 0:
        raise ValidationError(setting, f"must be a positive integer, got {value!r}")
    return int(text)


def validate_choice(
    setting: str, value: str, choices: Iterable[str], upper: bool = True
) -> str:
    """
    Match ``value`` against ``choices`` ignoring case.

    Returns the upper-cased value when ``upper`` is set, otherwise the
    choice as spelled in ``choices``.
    """
    choices = list(choices)
    text = str(value).strip()
    for choice in choices:
        if text.upper() == choice.upper():
            return text.upper() if upper else choice
    raise ValidationError(
        setting, f"must be one of {'/'.join(choices)}, got {value!r}"
    )


def validate_thread_concurrency(value: Union[str, int], cpu_cores: int) -> int:
    """Custom values must stay below twice the number of CPU cores."""
    limit = cpu_cores * 2
    text = str(value).strip()
    if not text.isdigit():
        raise ValidationError("thread_concurrency", f"must be a number, got {value!r}")
    number = int(text)
    if number <= 0 or number >= limit:
        raise ValidationError(
            "thread_concurrency", f"must be greater than 0 and less than {limit}"
        )
    return number


def validate_io_capacity(capacity: int, capacity_max: int) -> None:
    if capacity_max < capacity:
        raise ValidationError(
            "innodb_io_capacity_max",
            f"must be greater than or equal to innodb_io_capacity ({capacity})",
        )


def validate_public_key(key: str) -> str:
    key = key.strip()
    if not key:
        raise ValidationError("public key", "must not be empty")
    if "\n" in key:
        raise ValidationError("public key", "must be a single line")
    if not PUBLIC_KEY_PATTERN.match(key):
        raise ValidationError(
            "public key",
            "expected ssh-rsa, ssh-ed25519, ecdsa-sha2-nistp* or ssh-dss key",
        )
    return key
