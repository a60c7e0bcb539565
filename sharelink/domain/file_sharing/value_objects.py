"""
File Sharing Value Objects

Immutable value objects for identifiers and stored passwords.
"""

import secrets
import string
from dataclasses import dataclass
from typing import Callable, Optional, Union

from passlib.hash import bcrypt as bcrypt_handler

from ..errors import StorageInconsistencyError

FILE_ID_ALPHABET = string.ascii_lowercase + string.digits
FILE_ID_LENGTH = 4
SESSION_ID_BYTES = 8
MAX_ID_ATTEMPTS = 10


def is_bcrypt_hash(value: Optional[str]) -> bool:
    """True only for a complete bcrypt hash, not any string with the marker."""
    if not isinstance(value, str) or not bcrypt_handler.identify(value):
        return False
    try:
        parsed = bcrypt_handler.from_string(value)
    except (ValueError, TypeError):
        return False
    return parsed.checksum is not None


def generate_file_id(length: int = FILE_ID_LENGTH) -> str:
    """
    Generate a short share id.

    Draws from ``[a-z0-9]`` with a CSPRNG; four characters give a 36^4 space.

    Returns:
        Random lowercase alphanumeric id
    """
    return "".join(secrets.choice(FILE_ID_ALPHABET) for _ in range(length))


def generate_session_id() -> str:
    """Generate an owner session id (16 lowercase hex characters)."""
    return secrets.token_hex(SESSION_ID_BYTES)


def generate_unique_file_id(
    exists: Callable[[str], bool], attempts: int = MAX_ID_ATTEMPTS
) -> str:
    """
    Generate a file id that is not already taken.

    Args:
        exists: Predicate returning True when an id is already in use
        attempts: Maximum number of candidates to try

    Returns:
        A free file id

    Raises:
        StorageInconsistencyError: If every candidate was taken
    """
    for _ in range(attempts):
        candidate = generate_file_id()
        if not exists(candidate):
            return candidate
    raise StorageInconsistencyError(
        f"Could not find a free file id after {attempts} attempts"
    )


def build_storage_filename(file_id: str, original_name: str) -> str:
    """
    Build the storage-side filename ``<id>.<ext>``.

    The extension comes from the user-supplied name; names without one
    produce the bare id.
    """
    base = original_name.rsplit("/", 1)[-1].rsplit("\\", 1)[-1]
    if "." not in base.strip("."):
        return file_id
    extension = base.rsplit(".", 1)[-1].lower()
    if not extension:
        return file_id
    return f"{file_id}.{extension}"


@dataclass(frozen=True)
class HashedPassword:
    """A bcrypt hash. The only form new writes produce."""

    value: str

    def __post_init__(self):
        if not is_bcrypt_hash(self.value):
            raise ValueError("Hashed password must be a well-formed bcrypt hash")


@dataclass(frozen=True)
class LegacyPlaintextPassword:
    """
    A password persisted in clear text by an older release.

    Kept readable so existing links keep working; rewritten as a hash on the
    next successful verification or by the sweep.
    """

    value: str

    def __repr__(self) -> str:
        return "LegacyPlaintextPassword(value='***')"


StoredPassword = Union[HashedPassword, LegacyPlaintextPassword]
