"""Unit tests for password hashing."""

import pytest

from src.kernel.errors import ValidationError
from src.kernel.identity.validation import check_password

from src.kernel.identity.password import (
    PasswordHasher,
    hash_password,
    verify_password,
)


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


class TestPasswordHasher:
    """Tests for PasswordHasher."""

    def test_hash_creates_different_hashes(self, hasher):
        """Same password should create different hashes (due to salt)."""
        password = "secret123"
        hash1 = hasher.hash(password)
        hash2 = hasher.hash(password)

        assert hash1 != hash2
        assert hash1.startswith("$2b$")  # bcrypt prefix

    def test_verify_correct_password(self, hasher):
        """Correct password should verify successfully."""
        hashed = hasher.hash("secret123")

        assert hasher.verify("secret123", hashed) is True

    def test_verify_wrong_password(self, hasher):
        """Wrong password should fail verification."""
        hashed = hasher.hash("secret123")

        assert hasher.verify("secret124", hashed) is False

    def test_verify_missing_or_malformed_digest(self, hasher):
        """Unreadable digests fail closed instead of raising."""
        assert hasher.verify("secret123", None) is False
        assert hasher.verify("secret123", "") is False
        assert hasher.verify("secret123", "not-a-bcrypt-digest") is False

    def test_long_passwords_truncate_at_72_bytes(self, hasher):
        """bcrypt only sees the first 72 bytes."""
        base = "a" * 72
        hashed = hasher.hash(base + "tail-one")

        assert hasher.verify(base + "tail-two", hashed) is True

    def test_needs_rehash_tracks_work_factor(self, hasher):
        hashed = hasher.hash("secret123")

        assert hasher.needs_rehash(hashed) is False
        assert PasswordHasher(rounds=5).needs_rehash(hashed) is True
        assert hasher.needs_rehash("garbage") is True
        assert hasher.needs_rehash(None) is True
        assert hasher.needs_rehash("") is True

    def test_convenience_functions(self):
        """Test hash_password and verify_password functions."""
        hashed = hash_password("secret123")

        assert verify_password("secret123", hashed) is True
        assert verify_password("wrong", hashed) is False


class TestPasswordByteLimit:
    """Passwords bcrypt would silently truncate are refused up front."""

    def test_multibyte_password_over_72_bytes_is_rejected(self):
        # 27 characters, 75 bytes
        password = "密" * 24 + "abc"

        with pytest.raises(ValidationError) as exc_info:
            check_password(password)
        assert exc_info.value.field == "password"

    def test_exactly_72_bytes_is_accepted(self):
        password = "密" * 24

        assert check_password(password) == password
