"""Integration tests for password change and reset."""

import uuid

import pytest

from src.kernel.errors import (
    ForbiddenError,
    InvalidCredentialsError,
    InvalidOldPasswordError,
    NotFoundError,
    ValidationError,
)
from src.kernel.events.event_store import EventStore
from src.kernel.identity.identity_service import IdentityService
from src.kernel.identity.password_lifecycle import PasswordLifecycleService
from src.kernel.identity.principal import Principal
from src.kernel.models.event_log import EventType
from src.kernel.models.user import UserRole


@pytest.fixture
def identity(db_session, token_service) -> IdentityService:
    return IdentityService(db_session, token_service=token_service)


@pytest.fixture
def lifecycle(db_session, token_service) -> PasswordLifecycleService:
    return PasswordLifecycleService(db_session, token_service=token_service)


async def _member(identity, org, username):
    result = await identity.register(username, "secret123", f"{username}@example.com", org.id)
    return result.user


class TestChangePassword:

    @pytest.mark.asyncio
    async def test_change_then_login_with_new_password(self, identity, lifecycle, token_service, acme):
        alice = await _member(identity, acme, "alice")

        changed = await lifecycle.change_password(Principal.from_user(alice), "secret123", "newsecret1")

        assert token_service.verify(changed.token.access_token).user_id == alice.id
        await identity.login("alice", "newsecret1", acme.id)
        with pytest.raises(InvalidCredentialsError):
            await identity.login("alice", "secret123", acme.id)

    @pytest.mark.asyncio
    async def test_wrong_old_password(self, identity, lifecycle, acme):
        alice = await _member(identity, acme, "alice")

        with pytest.raises(InvalidOldPasswordError):
            await lifecycle.change_password(Principal.from_user(alice), "wrong123", "newsecret1")

    @pytest.mark.asyncio
    async def test_new_equal_to_old_is_rejected(self, identity, lifecycle, acme):
        alice = await _member(identity, acme, "alice")

        with pytest.raises(ValidationError) as exc_info:
            await lifecycle.change_password(Principal.from_user(alice), "secret123", "secret123")
        assert exc_info.value.field == "new_password"

    @pytest.mark.asyncio
    async def test_new_password_bounds(self, identity, lifecycle, acme):
        alice = await _member(identity, acme, "alice")

        with pytest.raises(ValidationError):
            await lifecycle.change_password(Principal.from_user(alice), "secret123", "123")

    @pytest.mark.asyncio
    async def test_new_password_beyond_bcrypt_limit(self, identity, lifecycle, acme):
        alice = await _member(identity, acme, "alice")

        with pytest.raises(ValidationError) as exc_info:
            await lifecycle.change_password(
                Principal.from_user(alice), "secret123", "密" * 24 + "xyz"
            )
        assert exc_info.value.field == "new_password"

        await identity.login("alice", "secret123", acme.id)

    @pytest.mark.asyncio
    async def test_vanished_user(self, lifecycle, acme):
        ghost = Principal(user_id=uuid.uuid4(), username="ghost", role=UserRole.ORG_MEMBER, organization_id=acme.id)

        with pytest.raises(NotFoundError):
            await lifecycle.change_password(ghost, "secret123", "newsecret1")

    @pytest.mark.asyncio
    async def test_records_event(self, db_session, identity, lifecycle, acme):
        alice = await _member(identity, acme, "alice")
        await lifecycle.change_password(Principal.from_user(alice), "secret123", "newsecret1")

        history = await EventStore(db_session).get_entity_history(
            "user", alice.id, event_types=[EventType.USER_PASSWORD_CHANGED]
        )
        assert len(history) == 1
        assert "new_password" not in history[0].payload


class TestResetPassword:

    @pytest.mark.asyncio
    async def test_super_admin_resets_anyone(self, identity, lifecycle, admin_principal, acme):
        alice = await _member(identity, acme, "alice")

        await lifecycle.reset_password(admin_principal, alice.id, "resetpass1")

        await identity.login("alice", "resetpass1", acme.id)

    @pytest.mark.asyncio
    async def test_org_admin_resets_own_member(self, identity, lifecycle, admin_principal, acme):
        boss = await identity.create_org_admin(admin_principal, acme.id, "boss", "secret123", "boss@example.com")
        alice = await _member(identity, acme, "alice")

        await lifecycle.reset_password(Principal.from_user(boss), alice.id, "resetpass1")

        await identity.login("alice", "resetpass1", acme.id)

    @pytest.mark.asyncio
    async def test_org_admin_cannot_reset_other_org(self, identity, lifecycle, admin_principal, acme, globex):
        boss = await identity.create_org_admin(admin_principal, acme.id, "boss", "secret123", "boss@example.com")
        bob = await _member(identity, globex, "bob")

        with pytest.raises(ForbiddenError):
            await lifecycle.reset_password(Principal.from_user(boss), bob.id, "resetpass1")

    @pytest.mark.asyncio
    async def test_org_admin_cannot_reset_fellow_org_admin(self, identity, lifecycle, admin_principal, acme):
        boss = await identity.create_org_admin(admin_principal, acme.id, "boss", "secret123", "boss@example.com")
        peer = await identity.create_org_admin(admin_principal, acme.id, "peer", "secret123", "peer@example.com")

        with pytest.raises(ForbiddenError):
            await lifecycle.reset_password(Principal.from_user(boss), peer.id, "resetpass1")

    @pytest.mark.asyncio
    async def test_member_cannot_reset(self, identity, lifecycle, acme):
        alice = await _member(identity, acme, "alice")
        carol = await _member(identity, acme, "carol")

        with pytest.raises(ForbiddenError):
            await lifecycle.reset_password(Principal.from_user(alice), carol.id, "resetpass1")

    @pytest.mark.asyncio
    async def test_unknown_target(self, lifecycle, admin_principal):
        with pytest.raises(NotFoundError):
            await lifecycle.reset_password(admin_principal, uuid.uuid4(), "resetpass1")
