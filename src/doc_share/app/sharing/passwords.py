"""Argon2id hashing for optional share-link passwords.

Share passwords are short, human-chosen secrets, so they are stored with a
deliberately slow, salted hash.  Verification failures are an ordinary
access-decision input and return False; only a stored hash that cannot be
parsed is treated as a defect.
"""

from __future__ import annotations

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from .model import MalformedPasswordHash

DEFAULT_TIME_COST = 2
DEFAULT_MEMORY_COST = 65536  # KiB
DEFAULT_PARALLELISM = 1


class PasswordGuard:
    """Hash and verify share passwords with a configured Argon2id hasher."""

    def __init__(
        self,
        *,
        time_cost: int = DEFAULT_TIME_COST,
        memory_cost: int = DEFAULT_MEMORY_COST,
        parallelism: int = DEFAULT_PARALLELISM,
    ) -> None:
        self._hasher = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=32,
            salt_len=16,
        )

    def hash(self, plaintext: str) -> str:
        return self._hasher.hash(plaintext)

    def verify(self, plaintext: str, password_hash: str) -> bool:
        """Return True only when ``plaintext`` matches ``password_hash``.

        Raises:
            MalformedPasswordHash: The stored hash is not a valid Argon2 hash.
        """
        try:
            return self._hasher.verify(password_hash, plaintext)
        except VerifyMismatchError:
            return False
        except InvalidHashError as exc:
            raise MalformedPasswordHash('Stored share password hash is malformed') from exc
        except VerificationError:
            return False
