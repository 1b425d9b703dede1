"""Integration tests for login, registration, admin creation and bootstrap."""

import uuid

import pytest

from src.kernel.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from src.kernel.events.event_store import EventStore
from src.kernel.identity import identity_service as identity_service_module
from src.kernel.identity.identity_service import IdentityService
from src.kernel.identity.identity_store import IdentityStore
from src.kernel.identity.principal import Principal
from src.kernel.models.event_log import EventType
from src.kernel.models.user import UserRole


@pytest.fixture
def service(db_session, token_service) -> IdentityService:
    return IdentityService(db_session, token_service=token_service)


class TestBootstrap:

    @pytest.mark.asyncio
    async def test_creates_system_org_and_super_admin(self, db_session, super_admin):
        store = IdentityStore(db_session)
        system_org = await store.get_system_organization()

        assert system_org is not None
        assert system_org.code == "system"
        assert super_admin.username == "admin"
        assert super_admin.role == UserRole.SUPER_ADMIN
        assert super_admin.organization_id == system_org.id

    @pytest.mark.asyncio
    async def test_is_idempotent(self, db_session, super_admin, service):
        assert await service.bootstrap() is None
        assert await IdentityStore(db_session).count_users(role=UserRole.SUPER_ADMIN) == 1

    @pytest.mark.asyncio
    async def test_default_password_is_admin(self, super_admin, service):
        result = await service.admin_login("admin", "admin")
        assert result.user.id == super_admin.id

    @pytest.mark.asyncio
    async def test_records_event(self, db_session, super_admin):
        count = await EventStore(db_session).count_events(event_type=EventType.SYSTEM_BOOTSTRAPPED)
        assert count == 1


class TestLogin:

    @pytest.mark.asyncio
    async def test_member_login_issues_token(self, service, token_service, acme):
        registered = await service.register("alice", "secret123", "alice@example.com", acme.id)

        result = await service.login("alice", "secret123", acme.id, ip_address="10.0.0.1")

        claims = token_service.verify(result.token.access_token)
        assert claims.user_id == registered.user.id
        assert claims.organization_id == acme.id
        assert claims.role == UserRole.ORG_MEMBER
        assert result.organization.code == "acme"

    @pytest.mark.asyncio
    async def test_failures_are_indistinguishable(self, service, acme):
        await service.register("alice", "secret123", "alice@example.com", acme.id)

        with pytest.raises(InvalidCredentialsError) as wrong_password:
            await service.login("alice", "wrong-password", acme.id)
        with pytest.raises(InvalidCredentialsError) as unknown_user:
            await service.login("bob", "secret123", acme.id)
        with pytest.raises(InvalidCredentialsError) as unknown_org:
            await service.login("alice", "secret123", uuid.uuid4())

        assert wrong_password.value.message == unknown_user.value.message == unknown_org.value.message

    @pytest.mark.asyncio
    async def test_login_is_scoped_to_organization(self, service, acme, globex):
        await service.register("alice", "secret123", "alice@example.com", acme.id)

        with pytest.raises(InvalidCredentialsError):
            await service.login("alice", "secret123", globex.id)

    @pytest.mark.asyncio
    async def test_super_admin_can_use_tenant_login_in_system_org(self, service, super_admin):
        result = await service.login("admin", "admin", super_admin.organization_id)
        assert result.user.id == super_admin.id

    @pytest.mark.asyncio
    async def test_admin_login_rejects_members(self, service, acme):
        await service.register("alice", "secret123", "alice@example.com", acme.id)

        with pytest.raises(InvalidCredentialsError):
            await service.admin_login("alice", "secret123")

    @pytest.mark.asyncio
    async def test_admin_login_before_bootstrap(self, service):
        with pytest.raises(InternalError):
            await service.admin_login("admin", "admin")


    @pytest.mark.asyncio
    async def test_username_is_stripped_at_login(self, service, acme):
        await service.register("alice ", "secret123", "alice@example.com", acme.id)

        result = await service.login("alice ", "secret123", acme.id)

        assert result.user.username == "alice"

    @pytest.mark.asyncio
    async def test_admin_username_is_stripped(self, service, super_admin):
        result = await service.admin_login(" admin ", "admin")
        assert result.user.id == super_admin.id

    @pytest.mark.asyncio
    async def test_unknown_user_digest_is_built_off_the_event_loop(self, service, acme, monkeypatch):
        calls = []
        real_to_thread = identity_service_module.asyncio.to_thread

        async def recording_to_thread(func, *args, **kwargs):
            calls.append(func)
            return await real_to_thread(func, *args, **kwargs)

        monkeypatch.setattr(identity_service_module.asyncio, "to_thread", recording_to_thread)

        with pytest.raises(InvalidCredentialsError):
            await service.login("nobody", "secret123", acme.id)

        assert identity_service_module._timing_digest in calls


class TestRegister:

    @pytest.mark.asyncio
    async def test_register_creates_member(self, service, acme):
        result = await service.register("  alice ", "secret123", "Alice@Example.com", acme.id)

        assert result.user.username == "alice"
        assert result.user.email == "alice@example.com"
        assert result.user.role_value == "org_member"
        assert result.user.password_hash != "secret123"
        assert result.token.access_token

    @pytest.mark.asyncio
    async def test_duplicate_username_in_same_org_conflicts(self, service, acme):
        await service.register("alice", "secret123", "alice@example.com", acme.id)

        with pytest.raises(ConflictError):
            await service.register("alice", "secret456", "other@example.com", acme.id)

    @pytest.mark.asyncio
    async def test_duplicate_email_in_same_org_conflicts(self, service, acme):
        await service.register("alice", "secret123", "alice@example.com", acme.id)

        with pytest.raises(ConflictError):
            await service.register("alice2", "secret123", "alice@example.com", acme.id)

    @pytest.mark.asyncio
    async def test_same_username_in_other_org(self, service, acme, globex):
        await service.register("alice", "secret123", "alice@example.com", acme.id)
        other = await service.register("alice", "secret123", "alice@example.com", globex.id)

        assert other.user.organization_id == globex.id

    @pytest.mark.asyncio
    async def test_unknown_org_is_validation_error(self, service, super_admin):
        with pytest.raises(ValidationError) as exc_info:
            await service.register("alice", "secret123", "alice@example.com", uuid.uuid4())
        assert exc_info.value.field == "organization_id"

    @pytest.mark.asyncio
    async def test_system_org_is_rejected(self, service, super_admin):
        with pytest.raises(ValidationError):
            await service.register(
                "alice", "secret123", "alice@example.com", super_admin.organization_id
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "username,password,email",
        [
            ("al", "secret123", "alice@example.com"),
            ("alice", "12345", "alice@example.com"),
            ("alice", "secret123", "not-an-email"),
        ],
    )
    async def test_bad_input(self, service, acme, username, password, email):
        with pytest.raises(ValidationError):
            await service.register(username, password, email, acme.id)


    @pytest.mark.asyncio
    async def test_password_beyond_bcrypt_limit_is_rejected(self, service, acme):
        with pytest.raises(ValidationError) as exc_info:
            await service.register("alice", "密" * 24 + "abc", "alice@example.com", acme.id)
        assert exc_info.value.field == "password"

    @pytest.mark.asyncio
    async def test_unique_constraint_backs_up_the_count_check(self, service, acme):
        """A soft-deleted row is invisible to the count check but still holds the constraint."""
        first = await service.register("alice", "secret123", "alice@example.com", acme.id)
        first.user.mark_deleted()
        await service.store.save_user(first.user)

        with pytest.raises(ConflictError):
            await service.register("alice", "secret456", "alice@example.com", acme.id)


class TestCreateAdmin:

    @pytest.mark.asyncio
    async def test_super_admin_creates_admin_in_system_org(self, service, admin_principal):
        admin = await service.create_admin(admin_principal, "root2", "secret123", "root2@example.com")

        assert admin.role == UserRole.SUPER_ADMIN
        assert admin.organization_id == admin_principal.organization_id

        result = await service.admin_login("root2", "secret123")
        assert result.user.id == admin.id

    @pytest.mark.asyncio
    async def test_duplicate_admin_username(self, service, admin_principal):
        with pytest.raises(ConflictError):
            await service.create_admin(admin_principal, "admin", "secret123", "x@example.com")

    @pytest.mark.asyncio
    async def test_non_super_admin_is_forbidden(self, service, acme):
        member = await service.register("alice", "secret123", "alice@example.com", acme.id)

        with pytest.raises(ForbiddenError):
            await service.create_admin(
                Principal.from_user(member.user), "root2", "secret123", "root2@example.com"
            )


class TestCreateOrgAdmin:

    @pytest.mark.asyncio
    async def test_creates_org_admin(self, service, admin_principal, acme):
        org_admin = await service.create_org_admin(
            admin_principal, acme.id, "boss", "secret123", "boss@example.com"
        )

        assert org_admin.role == UserRole.ORG_ADMIN
        assert org_admin.organization_id == acme.id

    @pytest.mark.asyncio
    async def test_unknown_org(self, service, admin_principal):
        with pytest.raises(NotFoundError):
            await service.create_org_admin(
                admin_principal, uuid.uuid4(), "boss", "secret123", "boss@example.com"
            )

    @pytest.mark.asyncio
    async def test_system_org_rejected(self, service, admin_principal):
        with pytest.raises(ValidationError):
            await service.create_org_admin(
                admin_principal, admin_principal.organization_id, "boss", "secret123", "boss@example.com"
            )

    @pytest.mark.asyncio
    async def test_org_admin_cannot_create_org_admins(self, service, admin_principal, acme):
        org_admin = await service.create_org_admin(
            admin_principal, acme.id, "boss", "secret123", "boss@example.com"
        )

        with pytest.raises(ForbiddenError):
            await service.create_org_admin(
                Principal.from_user(org_admin), acme.id, "boss2", "secret123", "boss2@example.com"
            )


class TestAuthenticateToken:

    @pytest.mark.asyncio
    async def test_resolves_principal(self, service, acme):
        result = await service.register("alice", "secret123", "alice@example.com", acme.id)

        principal = await service.authenticate_token(result.token.access_token)

        assert principal == Principal.from_user(result.user)

    @pytest.mark.asyncio
    async def test_deleted_user_is_unauthorized(self, service, acme):
        result = await service.register("alice", "secret123", "alice@example.com", acme.id)
        result.user.mark_deleted()
        await service.store.save_user(result.user)

        with pytest.raises(UnauthorizedError):
            await service.authenticate_token(result.token.access_token)

    @pytest.mark.asyncio
    async def test_bad_token(self, service):
        with pytest.raises(InvalidTokenError):
            await service.authenticate_token("garbage")

    @pytest.mark.asyncio
    async def test_profile(self, service, acme):
        result = await service.register("alice", "secret123", "alice@example.com", acme.id)

        profile = await service.get_profile(Principal.from_user(result.user))

        assert profile.user.id == result.user.id
        assert profile.organization.code == "acme"
