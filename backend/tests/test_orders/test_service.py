"""
Tests for admin order management.
"""

import uuid
from unittest.mock import AsyncMock, Mock, patch

import pytest

from dulceria.database.models.notification import NotificationKind
from dulceria.database.models.order import OrderStatus, QuoteStatus
from dulceria.services.orders.repository import OrderNotFoundError, OrderRepository
from dulceria.services.orders.service import OrderService
from dulceria.services.orders.state_machine import validate_system_transition
from tests.conftest import build_order


@pytest.fixture
def repository() -> Mock:
    repo = Mock(spec=OrderRepository)
    repo.get_by_id = AsyncMock(return_value=None)
    repo.list_orders = AsyncMock(return_value=[])
    repo.save = AsyncMock(side_effect=lambda order, related=(): order)
    repo.delete_order = AsyncMock(return_value=True)
    repo.get_statistics = AsyncMock(
        return_value={
            "todaysOrders": 1,
            "pendingOrders": 2,
            "readyForPickup": 0,
            "totalRevenue": 150,
            "totalOrders": 4,
        }
    )
    return repo


@pytest.fixture
def order_service(repository, notification_service) -> OrderService:
    return OrderService(session=None, notifications=notification_service, repository=repository)


def saved_kinds(repository) -> list[str]:
    _, related = repository.save.await_args.args
    return [entry.kind for entry in related]


class TestListAndGet:
    async def test_list_with_status_filter(self, order_service, repository):
        await order_service.list_orders("Paid")

        repository.list_orders.assert_awaited_once_with(status=OrderStatus.PAID)

    async def test_list_without_filter(self, order_service, repository):
        await order_service.list_orders(None)

        repository.list_orders.assert_awaited_once_with(status=None)

    async def test_list_rejects_unknown_status(self, order_service, repository):
        with pytest.raises(ValueError):
            await order_service.list_orders("shipped")
        repository.list_orders.assert_not_awaited()

    async def test_get_missing_order(self, order_service):
        with pytest.raises(OrderNotFoundError):
            await order_service.get_order(uuid.uuid4())


class TestUpdateStatus:
    async def test_forward_change_notifies_customer(self, order_service, repository):
        order = build_order(OrderStatus.PAID)
        repository.get_by_id.return_value = order

        updated = await order_service.update_status(order.id, "ready")

        assert updated.status == "ready"
        assert saved_kinds(repository) == [NotificationKind.CUSTOMER_STATUS_CHANGE.value]
        _, related = repository.save.await_args.args
        assert related[0].recipient == order.customer_email
        assert "Ready for pickup" in related[0].body

    async def test_admin_may_move_backwards(self, order_service, repository):
        order = build_order(OrderStatus.COMPLETED)
        repository.get_by_id.return_value = order

        updated = await order_service.update_status(order.id, "pending")

        assert updated.status == "pending"
        repository.save.assert_awaited_once()

    async def test_override_checked_but_not_blocked(self, order_service, repository):
        order = build_order(OrderStatus.CANCELLED)
        repository.get_by_id.return_value = order

        with patch(
            "dulceria.services.orders.service.validate_system_transition",
            wraps=validate_system_transition,
        ) as guard:
            updated = await order_service.update_status(order.id, "paid")

        guard.assert_called_once_with(OrderStatus.CANCELLED, OrderStatus.PAID)
        assert updated.status == "paid"
        repository.save.assert_awaited_once()

    async def test_same_status_is_noop(self, order_service, repository):
        order = build_order(OrderStatus.READY)
        repository.get_by_id.return_value = order

        await order_service.update_status(order.id, "ready")

        repository.save.assert_not_awaited()

    async def test_unknown_status(self, order_service, repository):
        with pytest.raises(ValueError):
            await order_service.update_status(uuid.uuid4(), "shipped")
        repository.get_by_id.assert_not_awaited()

    async def test_missing_order(self, order_service):
        with pytest.raises(OrderNotFoundError):
            await order_service.update_status(uuid.uuid4(), "ready")


class TestAdminActions:
    async def test_update_notes(self, order_service, repository):
        order = build_order(OrderStatus.PAID)
        repository.get_by_id.return_value = order

        await order_service.update_notes(order.id, "Extra gold leaf")
        assert order.admin_notes == "Extra gold leaf"

        await order_service.update_notes(order.id, "")
        assert order.admin_notes is None

    async def test_send_quote(self, order_service, repository):
        order = build_order(OrderStatus.PENDING, total=0, payment_method="request")
        repository.get_by_id.return_value = order

        await order_service.send_quote(order.id, 12550, "Includes a 3-tier stand")

        assert order.quoted_price == 12550
        assert order.quote_status == QuoteStatus.SENT.value
        assert saved_kinds(repository) == [NotificationKind.CUSTOMER_QUOTE.value]
        _, related = repository.save.await_args.args
        assert "$125.50" in related[0].body
        assert "Includes a 3-tier stand" in related[0].body

    async def test_contact_customer(self, order_service, repository):
        order = build_order(OrderStatus.PAID)
        repository.get_by_id.return_value = order

        await order_service.contact_customer(order.id, "Pickup moved to 3pm", subject="Pickup time")

        _, related = repository.save.await_args.args
        assert related[0].subject == "Pickup time"
        assert "Pickup moved to 3pm" in related[0].body
        assert order.status == "paid"

    async def test_delete_order(self, order_service, repository):
        order_id = uuid.uuid4()

        await order_service.delete_order(order_id)

        repository.delete_order.assert_awaited_once_with(order_id)

    async def test_delete_missing_order(self, order_service, repository):
        repository.delete_order.return_value = False

        with pytest.raises(OrderNotFoundError):
            await order_service.delete_order(uuid.uuid4())

    async def test_statistics(self, order_service):
        stats = await order_service.get_statistics()

        assert stats["totalRevenue"] == 150
        assert set(stats) == {
            "todaysOrders",
            "pendingOrders",
            "readyForPickup",
            "totalRevenue",
            "totalOrders",
        }
