"""
Admin authentication service.

Two kinds of admin exist: the one configured through the environment
(``APP_ADMIN_EMAIL`` / ``APP_ADMIN_PASSWORD_HASH``) and accounts stored in
``admin_users``, created through the setup endpoint with the setup key.
Both authenticate with bcrypt and receive the same signed token.
"""

import hmac
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dulceria.core.config import Settings, get_settings
from dulceria.core.logging import get_logger
from dulceria.core.security import create_admin_token, hash_password, verify_password
from dulceria.database.models.site_setting import AdminUser

logger = get_logger(__name__)


class AuthenticationError(Exception):
    """Base exception for authentication errors."""

    def __init__(self, message: str, code: str = "AUTH_ERROR"):
        super().__init__(message)
        self.code = code


class InvalidCredentialsError(AuthenticationError):
    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, code="INVALID_CREDENTIALS")


class SetupForbiddenError(AuthenticationError):
    def __init__(self, message: str = "Invalid setup key"):
        super().__init__(message, code="INVALID_SETUP_KEY")


class AdminExistsError(AuthenticationError):
    def __init__(self, message: str = "Admin already exists"):
        super().__init__(message, code="ADMIN_EXISTS")


class AdminAuthService:
    """Login, setup and token subject resolution for admins."""

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()
        self.logger = logger.bind(service="admin_auth")

    def _is_env_admin(self, email: str) -> bool:
        configured = self.settings.admin_email.strip().lower()
        return bool(configured) and configured == email

    async def _get_admin_user(self, email: str) -> Optional[AdminUser]:
        result = await self.session.execute(select(AdminUser).where(AdminUser.email == email))
        return result.scalar_one_or_none()

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """
        Authenticate an admin and issue a token.

        Returns:
            ``{"token": ..., "admin": {"email": ..., "name": ...}}``

        Raises:
            InvalidCredentialsError: If the email or password is wrong
        """
        email = email.strip().lower()

        if self._is_env_admin(email) and verify_password(
            password, self.settings.admin_password_hash
        ):
            self.logger.info("Admin logged in", admin=email, source="environment")
            return {
                "token": create_admin_token(email),
                "admin": {"email": email, "name": "Administrator"},
            }

        admin = await self._get_admin_user(email)
        if admin is None or not verify_password(password, admin.password_hash):
            self.logger.warning("Admin login failed", admin=email)
            raise InvalidCredentialsError()

        admin.last_login_at = datetime.now(timezone.utc)
        await self.session.commit()

        self.logger.info("Admin logged in", admin=email, source="database")
        return {
            "token": create_admin_token(email),
            "admin": {"email": admin.email, "name": admin.name},
        }

    async def setup(self, email: str, password: str, name: str, setup_key: str) -> AdminUser:
        """
        Create an admin account.

        Raises:
            SetupForbiddenError: If setup is disabled or the key is wrong
            AdminExistsError: If the email is already registered
        """
        expected = self.settings.admin_setup_key
        if not expected or not hmac.compare_digest(setup_key.encode(), expected.encode()):
            self.logger.warning("Admin setup rejected", admin=email)
            raise SetupForbiddenError()

        email = email.strip().lower()
        if self._is_env_admin(email) or await self._get_admin_user(email) is not None:
            raise AdminExistsError()

        admin = AdminUser(email=email, password_hash=hash_password(password), name=name)
        try:
            self.session.add(admin)
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise AdminExistsError() from e

        self.logger.info("Admin account created", admin=email)
        return admin

    async def resolve_admin(self, email: str) -> Optional[dict[str, str]]:
        """Return the admin identified by a token subject, if it still exists."""
        if self._is_env_admin(email):
            return {"email": email, "name": "Administrator"}

        admin = await self._get_admin_user(email)
        if admin is None:
            return None
        return {"email": admin.email, "name": admin.name}
