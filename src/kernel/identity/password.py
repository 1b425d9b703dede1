"""
Password hashing utilities using bcrypt.
"""

from functools import lru_cache
from typing import Optional

import bcrypt

from src.config import get_settings
from src.kernel.errors import InternalError

# Number of rounds for bcrypt hashing (12 is secure default)
BCRYPT_ROUNDS = 12


class PasswordHasher:
    """
    Password hashing service.

    Verification fails closed: a mismatch and an unreadable digest both
    return False, so callers cannot tell the two apart.
    """

    def __init__(self, rounds: int = BCRYPT_ROUNDS):
        self.rounds = rounds

    @staticmethod
    def _truncate_password(password: str) -> bytes:
        """
        Truncate password to 72 bytes (bcrypt limit) and encode.

        bcrypt only uses the first 72 bytes of a password.
        """
        return password.encode('utf-8')[:72]

    def hash(self, password: str) -> str:
        """
        Hash a password using bcrypt.

        Args:
            password: Plain text password

        Returns:
            Hashed password string

        Raises:
            InternalError: If bcrypt fails
        """
        pwd_bytes = self._truncate_password(password)
        try:
            salt = bcrypt.gensalt(rounds=self.rounds)
            hashed = bcrypt.hashpw(pwd_bytes, salt)
        except (ValueError, TypeError) as exc:
            raise InternalError("Password hashing failed") from exc
        return hashed.decode('utf-8')

    def verify(self, plain_password: str, hashed_password: Optional[str]) -> bool:
        """
        Verify a password against its hash.

        Args:
            plain_password: Plain text password to verify
            hashed_password: Stored hashed password

        Returns:
            True if password matches, False otherwise
        """
        if not hashed_password:
            return False
        try:
            pwd_bytes = self._truncate_password(plain_password)
            return bcrypt.checkpw(pwd_bytes, hashed_password.encode('utf-8'))
        except (ValueError, TypeError):
            # Malformed digest
            return False

    def needs_rehash(self, hashed_password: Optional[str]) -> bool:
        """
        Check if a password hash was produced with a different work factor.

        bcrypt hashes look like $2b$XX$..., XX being the rounds.
        """
        if not hashed_password:
            return True
        parts = hashed_password.split('$')
        if len(parts) < 3 or not parts[2].isdigit():
            return True
        return int(parts[2]) != self.rounds


@lru_cache
def get_password_hasher() -> PasswordHasher:
    """Hasher configured from settings, shared for the process lifetime."""
    return PasswordHasher(rounds=get_settings().bcrypt_rounds)


# Convenience functions
def hash_password(password: str) -> str:
    """Hash a password."""
    return get_password_hasher().hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password."""
    return get_password_hasher().verify(plain_password, hashed_password)
