"""Unit tests for credential and organization input rules."""

import pytest

from src.config import Settings
from src.kernel.errors import ValidationError
from src.kernel.identity.validation import (
    check_password,
    normalize_description,
    normalize_email,
    normalize_organization_code,
    normalize_username,
)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        password_min_length=6,
        password_max_length=32,
        username_min_length=3,
        username_max_length=32,
    )


class TestUsername:

    def test_strips_whitespace(self, settings):
        assert normalize_username("  alice  ", settings) == "alice"

    @pytest.mark.parametrize("value", ["", "ab", "x" * 33, None, "   "])
    def test_out_of_bounds(self, settings, value):
        with pytest.raises(ValidationError) as exc_info:
            normalize_username(value, settings)
        assert exc_info.value.field == "username"

    def test_bounds_are_inclusive(self, settings):
        assert normalize_username("abc", settings) == "abc"
        assert normalize_username("x" * 32, settings) == "x" * 32


class TestPassword:

    def test_not_altered(self, settings):
        assert check_password(" secret ", settings) == " secret "

    @pytest.mark.parametrize("value", ["", "12345", "x" * 33, None])
    def test_out_of_bounds(self, settings, value):
        with pytest.raises(ValidationError):
            check_password(value, settings)

    def test_field_name_is_reported(self, settings):
        with pytest.raises(ValidationError) as exc_info:
            check_password("123", settings, field="new_password")
        assert exc_info.value.field == "new_password"


class TestEmail:

    def test_lowercases_and_strips(self):
        assert normalize_email("  Alice@Example.COM ") == "alice@example.com"

    @pytest.mark.parametrize("value", ["", "alice", "alice@", "@example.com", None])
    def test_invalid(self, value):
        with pytest.raises(ValidationError) as exc_info:
            normalize_email(value)
        assert exc_info.value.field == "email"


class TestOrganization:

    def test_code_bounds(self):
        assert normalize_organization_code(" acme ") == "acme"
        assert normalize_organization_code("x" * 32) == "x" * 32
        with pytest.raises(ValidationError):
            normalize_organization_code("")
        with pytest.raises(ValidationError):
            normalize_organization_code("x" * 33)

    def test_description_bounds(self):
        assert normalize_description(None) == ""
        assert normalize_description("d" * 256) == "d" * 256
        with pytest.raises(ValidationError) as exc_info:
            normalize_description("d" * 257)
        assert exc_info.value.field == "description"
