"""
Stripe webhook reconciliation.

Events are only acted on after signature verification. Delivery is
at-least-once, so every handler is a no-op when the order has already
moved past ``pending``.
"""

import uuid
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dulceria.core.logging import get_logger
from dulceria.database.models.notification import NotificationOutbox
from dulceria.database.models.order import Order, OrderStatus
from dulceria.services.notifications.service import NotificationService
from dulceria.services.notifications.templates import TemplateEngineError
from dulceria.services.orders.repository import OrderRepository
from dulceria.services.orders.state_machine import (
    StateTransitionError,
    validate_system_transition,
)
from dulceria.services.payments.stripe_client import StripeClient

logger = get_logger(__name__)

ORDER_ID_METADATA_KEYS = ("orderId", "order_id")


def _order_id_from_metadata(obj: dict[str, Any]) -> Optional[str]:
    metadata = obj.get("metadata") or {}
    for key in ORDER_ID_METADATA_KEYS:
        if metadata.get(key):
            return str(metadata[key])
    return None


class WebhookService:
    """
    Applies verified processor events to orders.

    Handled events:
        checkout.session.completed: mark the referenced order paid
        payment_intent.succeeded: mark the referenced order paid
        payment_intent.payment_failed: log only
    """

    def __init__(
        self,
        session: AsyncSession,
        stripe_client: StripeClient,
        notifications: Optional[NotificationService] = None,
        orders: Optional[OrderRepository] = None,
    ):
        self.stripe = stripe_client
        self.orders = orders or OrderRepository(session)
        self.notifications = notifications or NotificationService(session)

    async def handle(self, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify and process a raw webhook delivery.

        Raises:
            WebhookVerificationError: If the signature or payload is invalid
        """
        event = self.stripe.construct_webhook_event(payload, signature)
        return await self.process_event(event)

    async def process_event(self, event: dict[str, Any]) -> dict[str, Any]:
        event_type = event.get("type", "")
        obj = (event.get("data") or {}).get("object") or {}

        logger.info(
            "Processing webhook event",
            event_id=event.get("id"),
            event_type=event_type,
        )

        if event_type == "checkout.session.completed":
            action = await self._handle_checkout_session_completed(obj)
        elif event_type == "payment_intent.succeeded":
            action = await self._handle_payment_intent_succeeded(obj)
        elif event_type == "payment_intent.payment_failed":
            action = self._handle_payment_failed(obj)
        else:
            logger.debug("Unhandled webhook event type", event_type=event_type)
            action = "ignored"

        return {"received": True, "eventType": event_type, "action": action}

    async def _handle_checkout_session_completed(self, session_obj: dict[str, Any]) -> str:
        if session_obj.get("payment_status") != "paid":
            logger.info(
                "Checkout session completed without payment",
                session_id=session_obj.get("id"),
                payment_status=session_obj.get("payment_status"),
            )
            return "ignored"

        order_id = _order_id_from_metadata(session_obj)
        if order_id is None:
            logger.warning(
                "Checkout session has no order reference",
                session_id=session_obj.get("id"),
            )
            return "ignored"

        return await self._confirm_order(order_id)

    async def _handle_payment_intent_succeeded(self, intent: dict[str, Any]) -> str:
        order_id = _order_id_from_metadata(intent)
        if order_id is not None:
            return await self._confirm_order(order_id)

        existing = await self.orders.get_by_payment_intent_id(intent.get("id", ""))
        if existing is not None:
            logger.info(
                "Payment already recorded",
                order_id=str(existing.id),
                payment_intent_id=intent.get("id"),
            )
            return "already_recorded"

        # Payment-first checkouts create the order on completion, which may
        # not have happened yet.
        logger.warning(
            "Payment succeeded without a recorded order",
            payment_intent_id=intent.get("id"),
            amount=intent.get("amount"),
        )
        return "no_order"

    def _handle_payment_failed(self, intent: dict[str, Any]) -> str:
        error = intent.get("last_payment_error") or {}
        logger.warning(
            "Payment failed",
            payment_intent_id=intent.get("id"),
            failure_code=error.get("code"),
            failure_message=error.get("message"),
        )
        return "logged"

    async def _confirm_order(self, raw_order_id: str) -> str:
        try:
            order_id = uuid.UUID(raw_order_id)
        except ValueError:
            logger.warning("Webhook order reference is not a valid id", order_id=raw_order_id)
            return "ignored"

        order = await self.orders.get_by_id(order_id)
        if order is None:
            logger.warning("Webhook references unknown order", order_id=raw_order_id)
            return "order_not_found"

        try:
            validate_system_transition(order.order_status, OrderStatus.PAID)
        except StateTransitionError:
            logger.info(
                "Order already past pending, webhook is a no-op",
                order_id=raw_order_id,
                status=order.status,
            )
            return "noop"

        updated = await self.orders.mark_paid_if_pending(order_id, self._paid_notifications)
        if updated is None:
            logger.info("Order confirmed concurrently, webhook is a no-op", order_id=raw_order_id)
            return "noop"

        logger.info("Order marked paid from webhook", order_id=raw_order_id)
        return "marked_paid"

    def _paid_notifications(self, order: Order) -> list[NotificationOutbox]:
        try:
            return self.notifications.order_created_notifications(order)
        except TemplateEngineError as e:
            logger.error(
                "Order notifications could not be rendered",
                order_id=str(order.id),
                error=str(e),
            )
            return []
