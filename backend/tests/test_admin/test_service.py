"""
Tests for admin login, setup and token subject resolution.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from dulceria.core.config import Settings
from dulceria.core.security import decode_admin_token, hash_password, verify_password
from dulceria.database.models.site_setting import AdminUser
from dulceria.services.admin.service import (
    AdminAuthService,
    AdminExistsError,
    InvalidCredentialsError,
    SetupForbiddenError,
)

ENV_ADMIN = "owner@diamonddulceria.com"


@pytest.fixture(scope="module")
def env_password_hash() -> str:
    return hash_password("env-admin-pass")


@pytest.fixture
def admin_settings(env_password_hash) -> Settings:
    return Settings(
        environment="test",
        admin_email=ENV_ADMIN,
        admin_password_hash=env_password_hash,
        admin_setup_key="let-me-in",
    )


def session_returning(admin=None) -> Mock:
    session = Mock()
    result = Mock()
    result.scalar_one_or_none.return_value = admin
    session.execute = AsyncMock(return_value=result)
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


class TestLogin:
    async def test_environment_admin(self, admin_settings):
        session = session_returning()
        service = AdminAuthService(session, settings=admin_settings)

        result = await service.login("  Owner@DiamondDulceria.com ", "env-admin-pass")

        assert result["admin"] == {"email": ENV_ADMIN, "name": "Administrator"}
        assert decode_admin_token(result["token"]) == ENV_ADMIN
        session.execute.assert_not_awaited()

    async def test_database_admin(self, admin_settings):
        admin = AdminUser(
            email="baker@diamonddulceria.com",
            password_hash=hash_password("baker-pass-1"),
            name="Baker",
        )
        session = session_returning(admin)
        service = AdminAuthService(session, settings=admin_settings)

        result = await service.login("baker@diamonddulceria.com", "baker-pass-1")

        assert result["admin"] == {"email": "baker@diamonddulceria.com", "name": "Baker"}
        assert admin.last_login_at is not None
        session.commit.assert_awaited_once()

    async def test_wrong_password(self, admin_settings):
        service = AdminAuthService(session_returning(), settings=admin_settings)

        with pytest.raises(InvalidCredentialsError) as exc_info:
            await service.login(ENV_ADMIN, "wrong")

        assert exc_info.value.code == "INVALID_CREDENTIALS"

    async def test_unknown_admin(self, admin_settings):
        service = AdminAuthService(session_returning(), settings=admin_settings)

        with pytest.raises(InvalidCredentialsError):
            await service.login("nobody@example.com", "whatever")


class TestSetup:
    async def test_creates_admin(self, admin_settings):
        session = session_returning()
        service = AdminAuthService(session, settings=admin_settings)

        admin = await service.setup("New@Example.com", "new-admin-pass", "New Admin", "let-me-in")

        assert admin.email == "new@example.com"
        assert admin.password_hash != "new-admin-pass"
        assert verify_password("new-admin-pass", admin.password_hash)
        session.add.assert_called_once_with(admin)
        session.commit.assert_awaited_once()

    @pytest.mark.parametrize("setup_key", ["", "wrong-key"])
    async def test_wrong_key(self, admin_settings, setup_key):
        session = session_returning()
        service = AdminAuthService(session, settings=admin_settings)

        with pytest.raises(SetupForbiddenError):
            await service.setup("new@example.com", "new-admin-pass", "New Admin", setup_key)
        session.add.assert_not_called()

    async def test_setup_disabled_without_key(self):
        service = AdminAuthService(session_returning(), settings=Settings(environment="test"))

        with pytest.raises(SetupForbiddenError):
            await service.setup("new@example.com", "new-admin-pass", "New Admin", "")

    async def test_existing_admin(self, admin_settings):
        existing = AdminUser(email="new@example.com", password_hash="x", name="Old")
        service = AdminAuthService(session_returning(existing), settings=admin_settings)

        with pytest.raises(AdminExistsError):
            await service.setup("new@example.com", "new-admin-pass", "New Admin", "let-me-in")

    async def test_environment_admin_cannot_be_recreated(self, admin_settings):
        service = AdminAuthService(session_returning(), settings=admin_settings)

        with pytest.raises(AdminExistsError):
            await service.setup(ENV_ADMIN, "new-admin-pass", "Owner", "let-me-in")


class TestResolveAdmin:
    async def test_deleted_admin_no_longer_resolves(self, admin_settings):
        service = AdminAuthService(session_returning(None), settings=admin_settings)

        assert await service.resolve_admin("gone@example.com") is None

    async def test_environment_admin(self, admin_settings):
        service = AdminAuthService(session_returning(), settings=admin_settings)

        assert await service.resolve_admin(ENV_ADMIN) == {
            "email": ENV_ADMIN,
            "name": "Administrator",
        }
