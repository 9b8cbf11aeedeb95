"""Install SSH public keys into a user's ``authorized_keys``."""

import logging
import os
import pwd
from pathlib import Path
from typing import Optional, Tuple, Union

from hostconf.errors import ValidationError
from hostconf.validators import validate_public_key

logger = logging.getLogger(__name__)


def get_user_ids(user: str) -> Optional[Tuple[int, int]]:
    try:
        pw_record = pwd.getpwnam(user)
        return pw_record.pw_uid, pw_record.pw_gid
    except KeyError:
        logger.warning(f"User '{user}' not found.")
        return None


def user_home(user: str) -> Path:
    try:
        return Path(pwd.getpwnam(user).pw_dir)
    except KeyError:
        raise ValidationError("user", f"unknown user {user!r}")


def read_public_key(key_or_path: str) -> str:
    """Accept either a key or the path of a ``.pub`` file (first line is used)."""
    text = key_or_path.strip()
    if text and Path(text).is_file():
        lines = Path(text).read_text().splitlines()
        text = lines[0].strip() if lines else ""
        logger.info(f"Read public key from {key_or_path}")
    return validate_public_key(text)


def install_public_key(
    home: Union[str, Path], key: str, owner: Optional[str] = None
) -> bool:
    """
    Append ``key`` to ``~/.ssh/authorized_keys`` unless that exact line exists.

    Args:
        home: Home directory of the account receiving the key.
        key: A single-line OpenSSH public key.
        owner: Account that should own ``~/.ssh`` afterwards.

    Returns:
        True if the key was added, False if it was already present.
    """
    key = validate_public_key(key)
    ssh_dir = Path(home) / ".ssh"
    auth_keys = ssh_dir / "authorized_keys"

    if not ssh_dir.is_dir():
        ssh_dir.mkdir(mode=0o700, parents=True)
        logger.info(f"Created {ssh_dir}")
    os.chmod(ssh_dir, 0o700)

    existing = auth_keys.read_text() if auth_keys.is_file() else ""
    added = key not in (line.strip() for line in existing.splitlines())
    if added:
        with open(auth_keys, "a") as f:
            if existing and not existing.endswith("\n"):
                f.write("\n")
            f.write(key + "\n")
        logger.info(f"Public key added to {auth_keys}")
    else:
        logger.warning(f"Public key already present in {auth_keys}")
    os.chmod(auth_keys, 0o600)

    if owner and (ids := get_user_ids(owner)) is not None:
        for path in (ssh_dir, auth_keys):
            os.chown(path, *ids)
    return added
