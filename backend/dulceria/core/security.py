"""
Security utilities for admin password hashing and token management.

Admin passwords are stored as bcrypt hashes through passlib. Admin sessions
are HS256 JWTs carrying the admin email as subject and an expiry claim.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from dulceria.core.config import get_settings
from dulceria.core.logging import get_logger

logger = get_logger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=12,
    bcrypt__ident="2b",
)

ADMIN_TOKEN_TYPE = "admin"


class SecurityError(Exception):
    """Base exception for security-related errors."""

    def __init__(self, message: str, code: str, **context: Any):
        super().__init__(message)
        self.code = code
        self.context = context


class TokenError(SecurityError):
    """Exception raised for token-related errors."""

    pass


class PasswordError(SecurityError):
    """Exception raised for password-related errors."""

    pass


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Raises:
        PasswordError: If the password is empty
    """
    if not password:
        raise PasswordError("Password cannot be empty", code="EMPTY_PASSWORD")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a bcrypt hash.

    Returns:
        True if password matches, False otherwise (including malformed hashes)
    """
    if not plain_password or not hashed_password:
        return False

    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.warning(
            "Password verification failed on malformed hash",
            error_type=type(e).__name__,
        )
        return False


def create_admin_token(
    email: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed admin access token.

    Args:
        email: Admin email stored as the token subject
        expires_delta: Optional custom lifetime

    Returns:
        Encoded JWT string
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=settings.admin_token_expire_days))

    claims: Dict[str, Any] = {
        "sub": email,
        "type": ADMIN_TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }

    token = jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)

    logger.info("Admin token issued", admin=email, expires_at=expire.isoformat())
    return token


def decode_admin_token(token: str) -> str:
    """
    Validate an admin token and return the admin email.

    Raises:
        TokenError: If the token is expired, malformed, or not an admin token
    """
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except ExpiredSignatureError as e:
        raise TokenError("Token expired", code="TOKEN_EXPIRED") from e
    except JWTError as e:
        raise TokenError("Invalid token", code="INVALID_TOKEN") from e

    subject = payload.get("sub")
    if not subject or payload.get("type") != ADMIN_TOKEN_TYPE:
        raise TokenError("Invalid token", code="INVALID_TOKEN")

    return subject
