"""
Tests for admin password hashing, token handling and settings validation.
"""

from datetime import timedelta

import pytest
from jose import jwt
from pydantic import ValidationError

from dulceria.core.config import DEV_SECRET_KEY, Settings, get_settings
from dulceria.core.security import (
    PasswordError,
    TokenError,
    create_admin_token,
    decode_admin_token,
    hash_password,
    verify_password,
)


class TestPasswordHashing:
    def test_hash_and_verify(self):
        hashed = hash_password("correct horse")

        assert hashed.startswith("$2b$")
        assert verify_password("correct horse", hashed)
        assert not verify_password("wrong horse", hashed)

    def test_hashes_are_salted(self):
        assert hash_password("same-password") != hash_password("same-password")

    def test_empty_password_rejected(self):
        with pytest.raises(PasswordError) as exc_info:
            hash_password("")
        assert exc_info.value.code == "EMPTY_PASSWORD"

    @pytest.mark.parametrize("hashed", ["", "not-a-bcrypt-hash"])
    def test_malformed_hash_never_verifies(self, hashed):
        assert verify_password("anything", hashed) is False


class TestAdminTokens:
    def test_round_trip(self):
        token = create_admin_token("owner@diamonddulceria.com")

        assert decode_admin_token(token) == "owner@diamonddulceria.com"

    def test_expired(self):
        token = create_admin_token("owner@diamonddulceria.com", expires_delta=timedelta(seconds=-1))

        with pytest.raises(TokenError) as exc_info:
            decode_admin_token(token)
        assert exc_info.value.code == "TOKEN_EXPIRED"

    def test_wrong_signature(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "owner@diamonddulceria.com", "type": "admin"},
            "another-secret-key-that-is-long-enough",
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(TokenError) as exc_info:
            decode_admin_token(token)
        assert exc_info.value.code == "INVALID_TOKEN"

    def test_non_admin_token(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "owner@diamonddulceria.com", "type": "refresh"},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(TokenError):
            decode_admin_token(token)


class TestSettings:
    def test_default_secret_rejected_in_production(self):
        with pytest.raises(ValidationError):
            Settings(environment="production", secret_key=DEV_SECRET_KEY)

    def test_production_with_real_secret(self):
        settings = Settings(environment="production", secret_key="x" * 40)

        assert settings.is_production

    def test_cors_origins_from_string(self):
        settings = Settings(cors_origins="https://diamonddulceria.com, https://admin.diamonddulceria.com")

        assert settings.cors_origins == [
            "https://diamonddulceria.com",
            "https://admin.diamonddulceria.com",
        ]

    def test_database_url_scheme(self):
        with pytest.raises(ValidationError):
            Settings(database_url="mysql://localhost/dulceria")

    def test_currency_normalized(self):
        assert Settings(currency="USD").currency == "usd"
