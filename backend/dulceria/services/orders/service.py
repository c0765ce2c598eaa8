"""
Order management service for the admin dashboard.

Admin status changes are an explicit override: any status can be set from
any other. Changes off the normal lifecycle are logged so they can be
audited. Customer emails triggered here are queued in the outbox with the
order change.
"""

import uuid
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dulceria.core.logging import get_logger
from dulceria.database.models.notification import NotificationOutbox
from dulceria.database.models.order import Order, OrderStatus, QuoteStatus
from dulceria.services.notifications.service import NotificationService
from dulceria.services.notifications.templates import TemplateEngineError
from dulceria.services.orders.repository import OrderNotFoundError, OrderRepository
from dulceria.services.orders.state_machine import (
    StateTransitionError,
    allowed_transitions,
    validate_system_transition,
)

logger = get_logger(__name__)


class OrderService:
    """Admin operations on existing orders."""

    def __init__(
        self,
        session: AsyncSession,
        notifications: Optional[NotificationService] = None,
        repository: Optional[OrderRepository] = None,
    ):
        self.repository = repository or OrderRepository(session)
        self.notifications = notifications or NotificationService(session)

    async def list_orders(self, status: Optional[str] = None) -> list[Order]:
        """
        List orders newest first.

        Raises:
            ValueError: If the status filter is not a known status
        """
        status_filter = OrderStatus.from_string(status) if status else None
        return await self.repository.list_orders(status=status_filter)

    async def get_order(self, order_id: uuid.UUID) -> Order:
        """
        Raises:
            OrderNotFoundError: If the order does not exist
        """
        order = await self.repository.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order not found: {order_id}", order_id=str(order_id))
        return order

    async def update_status(self, order_id: uuid.UUID, status: str) -> Order:
        """
        Set an order's status and notify the customer.

        Raises:
            ValueError: If the status is not a known status
            OrderNotFoundError: If the order does not exist
        """
        new_status = OrderStatus.from_string(status)
        order = await self.get_order(order_id)
        current = order.order_status

        if current == new_status:
            return order

        try:
            validate_system_transition(current, new_status)
        except StateTransitionError:
            # Admins may override the lifecycle; the change is only flagged.
            logger.warning(
                "Admin status override outside normal lifecycle",
                order_id=str(order_id),
                from_status=current.value,
                to_status=new_status.value,
                expected=sorted(s.value for s in allowed_transitions(current)),
            )

        order.status = new_status.value
        related = self._render(order, self.notifications.status_change_notifications)
        await self.repository.save(order, related)

        logger.info(
            "Order status updated",
            order_id=str(order_id),
            from_status=current.value,
            to_status=new_status.value,
        )
        return order

    async def update_notes(self, order_id: uuid.UUID, notes: Optional[str]) -> Order:
        order = await self.get_order(order_id)
        order.admin_notes = notes or None
        await self.repository.save(order)
        logger.info("Order notes updated", order_id=str(order_id))
        return order

    async def send_quote(
        self,
        order_id: uuid.UUID,
        quoted_price: int,
        message: Optional[str] = None,
    ) -> Order:
        """
        Record a quote for a custom order and email it to the customer.

        Args:
            order_id: Order being quoted
            quoted_price: Quoted price in minor units
            message: Optional note included in the email
        """
        order = await self.get_order(order_id)
        order.quoted_price = quoted_price
        order.quote_status = QuoteStatus.SENT.value

        related = self._render(
            order,
            lambda o: self.notifications.quote_notifications(o, quoted_price, message),
        )
        await self.repository.save(order, related)

        logger.info("Quote sent", order_id=str(order_id), quoted_price=quoted_price)
        return order

    async def contact_customer(
        self,
        order_id: uuid.UUID,
        message: str,
        subject: Optional[str] = None,
    ) -> Order:
        order = await self.get_order(order_id)
        related = self._render(
            order,
            lambda o: self.notifications.contact_notifications(o, message, subject),
        )
        await self.repository.save(order, related)
        logger.info("Customer contacted", order_id=str(order_id))
        return order

    async def delete_order(self, order_id: uuid.UUID) -> None:
        """
        Raises:
            OrderNotFoundError: If the order does not exist
        """
        if not await self.repository.delete_order(order_id):
            raise OrderNotFoundError(f"Order not found: {order_id}", order_id=str(order_id))

    async def get_statistics(self) -> dict[str, Any]:
        return await self.repository.get_statistics()

    @staticmethod
    def _render(order: Order, builder: Any) -> list[NotificationOutbox]:
        try:
            return builder(order)
        except TemplateEngineError as e:
            logger.error(
                "Order notification could not be rendered",
                order_id=str(order.id),
                error=str(e),
            )
            return []
