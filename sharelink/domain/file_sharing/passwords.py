"""
Password Guard

One-way hashing and verification of per-file gate passwords, with
compatibility for passwords stored in clear text by older releases.
"""

import hmac
import logging
from typing import Optional

from passlib.context import CryptContext

from ..errors import EmptyInputError
from .value_objects import (
    HashedPassword,
    LegacyPlaintextPassword,
    StoredPassword,
    is_bcrypt_hash,
)

logger = logging.getLogger(__name__)

DEFAULT_ROUNDS = 10
MIN_ROUNDS = 10
MAX_ROUNDS = 14


class PasswordGuard:
    """
    Hashes and verifies file passwords with bcrypt.

    The cost factor is bounded to 10-14 rounds so interactive verification
    stays well under a second.
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        if not MIN_ROUNDS <= rounds <= MAX_ROUNDS:
            raise ValueError(
                f"bcrypt rounds must be between {MIN_ROUNDS} and {MAX_ROUNDS}, got {rounds}"
            )
        self.rounds = rounds
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, secret: str) -> str:
        """
        Hash a secret.

        Args:
            secret: Raw password

        Returns:
            Salted bcrypt hash

        Raises:
            EmptyInputError: If secret is empty
        """
        if not secret:
            raise EmptyInputError("Password must not be empty")
        return self._context.hash(secret)

    def verify(self, secret: str, hashed: str) -> bool:
        """
        Verify a secret against a bcrypt hash.

        Returns False on empty input or a malformed hash instead of raising.
        """
        if not secret or not hashed:
            return False
        try:
            return self._context.verify(secret, hashed)
        except (ValueError, TypeError):
            return False

    @staticmethod
    def is_hashed(value: Optional[str]) -> bool:
        return is_bcrypt_hash(value)

    def to_stored(self, value: str) -> HashedPassword:
        """Return the stored form of a new password, hashing it unless it already is."""
        if self.is_hashed(value):
            return HashedPassword(value)
        return HashedPassword(self.hash(value))

    def parse_stored(self, value: Optional[str]) -> Optional[StoredPassword]:
        if not value:
            return None
        if self.is_hashed(value):
            return HashedPassword(value)
        return LegacyPlaintextPassword(value)

    def verify_stored(
        self, secret: str, stored: StoredPassword, record_id: Optional[str] = None
    ) -> bool:
        """
        Verify a secret against either stored password form.

        Args:
            secret: Raw password supplied by the caller
            stored: Hashed or legacy plaintext password
            record_id: Record the password belongs to, for the log line

        Returns:
            True if the secret matches
        """
        if isinstance(stored, HashedPassword):
            return self.verify(secret, stored.value)

        logger.warning(
            "Verifying legacy plaintext password for file %s; record awaits migration",
            record_id or "<unknown>",
        )
        if not secret:
            return False
        return hmac.compare_digest(secret.encode("utf-8"), stored.value.encode("utf-8"))
