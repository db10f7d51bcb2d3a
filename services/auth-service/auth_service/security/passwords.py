"""Password hashing utilities using bcrypt."""

from __future__ import annotations

import bcrypt

DEFAULT_ROUNDS = 12

# bcrypt only reads the first 72 bytes of its input.
_MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """One-way password hashing and constant-time verification."""

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self._rounds = rounds
        self._dummy_hash: bytes | None = None

    @property
    def rounds(self) -> int:
        return self._rounds

    @staticmethod
    def _encode(password: str) -> bytes:
        return password.encode("utf-8")[:_MAX_PASSWORD_BYTES]

    def hash(self, password: str) -> str:
        """Hash ``password`` with a freshly generated salt."""
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(self._encode(password), salt).decode("utf-8")

    def verify(self, password: str, hashed_password: str) -> bool:
        """Return ``True`` iff ``password`` produced ``hashed_password``.

        ``bcrypt.checkpw`` compares digests in constant time. A digest that is
        not a bcrypt hash verifies as ``False``.
        """
        try:
            return bcrypt.checkpw(self._encode(password), hashed_password.encode("utf-8"))
        except ValueError:
            return False

    def dummy_verify(self, password: str) -> None:
        """Spend one verification so unknown accounts cost as much as known ones."""
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(b"unused", bcrypt.gensalt(rounds=self._rounds))
        bcrypt.checkpw(self._encode(password), self._dummy_hash)

    def needs_rehash(self, hashed_password: str) -> bool:
        """Return ``True`` when the digest was produced with a different cost.

        bcrypt digests look like ``$2b$12$<salt+hash>``; the cost sits in the
        third ``$``-separated field.
        """
        parts = hashed_password.split("$")
        if len(parts) < 4 or not parts[2].isdigit():
            return True
        return int(parts[2]) != self._rounds
