"""
Tests for database connection helpers and model registration.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import UniqueConstraint
from sqlalchemy.exc import IntegrityError, OperationalError

from dulceria.database.connection import (
    _convert_database_url_to_async,
    check_database_health,
    execute_with_retry,
    is_transient_error,
)
from dulceria.database.models import Base


class TestUrlConversion:
    def test_plain_postgres_url(self):
        assert (
            _convert_database_url_to_async("postgresql://u:p@db:5432/dulceria")
            == "postgresql+asyncpg://u:p@db:5432/dulceria"
        )

    def test_async_url_unchanged(self):
        url = "postgresql+asyncpg://u:p@db:5432/dulceria"
        assert _convert_database_url_to_async(url) == url


class TestTransientErrors:
    def test_operational_error_is_transient(self):
        assert is_transient_error(OperationalError("SELECT 1", {}, Exception("connection refused")))

    def test_connection_error_is_transient(self):
        assert is_transient_error(ConnectionResetError("reset by peer"))

    def test_integrity_error_is_not_transient(self):
        assert not is_transient_error(IntegrityError("INSERT", {}, Exception("duplicate key")))

    def test_plain_error_is_not_transient(self):
        assert not is_transient_error(ValueError("bad"))


class TestExecuteWithRetry:
    async def test_retries_transient_failure(self):
        operation = AsyncMock(
            side_effect=[OperationalError("SELECT 1", {}, Exception("server closed")), "ok"]
        )

        result = await execute_with_retry(operation, "test_op", max_attempts=3, initial_delay=0)

        assert result == "ok"
        assert operation.await_count == 2

    async def test_non_transient_raised_immediately(self):
        operation = AsyncMock(side_effect=IntegrityError("INSERT", {}, Exception("duplicate key")))

        with pytest.raises(IntegrityError):
            await execute_with_retry(operation, "test_op", max_attempts=3, initial_delay=0)

        assert operation.await_count == 1

    async def test_gives_up_after_max_attempts(self):
        operation = AsyncMock(side_effect=ConnectionRefusedError("refused"))

        with pytest.raises(ConnectionRefusedError):
            await execute_with_retry(operation, "test_op", max_attempts=2, initial_delay=0)

        assert operation.await_count == 2


class TestHealth:
    async def test_unreachable_database_is_unhealthy(self):
        with patch(
            "dulceria.database.connection.execute_with_retry",
            AsyncMock(side_effect=OperationalError("SELECT 1", {}, Exception("refused"))),
        ):
            assert await check_database_health() is False


class TestModelRegistration:
    def test_all_tables_registered(self):
        assert set(Base.metadata.tables) == {
            "products",
            "categories",
            "promo_codes",
            "orders",
            "site_settings",
            "admin_users",
            "notification_outbox",
        }

    def test_payment_intent_reference_is_unique(self):
        orders = Base.metadata.tables["orders"]
        unique = {
            constraint.name: [col.name for col in constraint.columns]
            for constraint in orders.constraints
            if isinstance(constraint, UniqueConstraint)
        }

        assert unique["uq_orders_payment_intent_id"] == ["payment_intent_id"]
