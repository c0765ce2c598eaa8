"""
Notification outbox service.

Order events produce outbox rows that are committed in the same transaction
as the order write. Delivery happens later, from a background task after the
response or from the periodic dispatch loop, and its outcome is recorded on
the row only. A failed email never fails or rolls back an order.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dulceria.core.config import Settings, get_settings
from dulceria.core.logging import get_logger
from dulceria.database.connection import get_session
from dulceria.database.models.notification import (
    NotificationKind,
    NotificationOutbox,
    NotificationStatus,
)
from dulceria.database.models.order import Order, OrderStatus
from dulceria.services.notifications.ses_client import SESClient, SESClientError
from dulceria.services.notifications.templates import TemplateEngine
from dulceria.services.orders.state_machine import display_name

logger = get_logger(__name__)

DISPATCH_BATCH_SIZE = 50


class NotificationService:
    """
    Builds outbox entries for order events and delivers pending entries.

    The ``*_notifications`` builders return unsaved rows; the caller adds
    them to the session that writes the order so both commit together.
    """

    def __init__(
        self,
        session: Optional[AsyncSession] = None,
        settings: Optional[Settings] = None,
        template_engine: Optional[TemplateEngine] = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.templates = template_engine or TemplateEngine()

    def _entry(
        self,
        order: Order,
        kind: NotificationKind,
        recipient: str,
        subject: str,
        context: Optional[dict[str, Any]] = None,
    ) -> NotificationOutbox:
        body = self.templates.render(kind.value, {"order": order, **(context or {})})
        return NotificationOutbox(
            order_id=order.id,
            kind=kind.value,
            recipient=recipient,
            subject=subject,
            body=body,
            status=NotificationStatus.PENDING.value,
            attempts=0,
        )

    def order_created_notifications(self, order: Order) -> list[NotificationOutbox]:
        """Operator alert and customer confirmation for a new order."""
        entries: list[NotificationOutbox] = []

        if self.settings.owner_email:
            label = "Paid order" if order.payment_method == "card" else "Custom request"
            entries.append(
                self._entry(
                    order,
                    NotificationKind.OPERATOR_NEW_ORDER,
                    self.settings.owner_email,
                    f"New Order - {order.customer_name} - ${order.total} ({label})",
                )
            )
        else:
            logger.info(
                "Owner email not configured, skipping operator notification",
                order_id=str(order.id),
            )

        entries.append(
            self._entry(
                order,
                NotificationKind.CUSTOMER_ORDER_CONFIRMATION,
                order.customer_email,
                "Your Diamond Dulceria order",
            )
        )
        return entries

    def status_change_notifications(self, order: Order) -> list[NotificationOutbox]:
        label = display_name(OrderStatus(order.status))
        return [
            self._entry(
                order,
                NotificationKind.CUSTOMER_STATUS_CHANGE,
                order.customer_email,
                f"Your order is {label.lower()}",
                {"status_label": label},
            )
        ]

    def quote_notifications(
        self,
        order: Order,
        quoted_price: int,
        message: Optional[str] = None,
    ) -> list[NotificationOutbox]:
        return [
            self._entry(
                order,
                NotificationKind.CUSTOMER_QUOTE,
                order.customer_email,
                "Your custom order quote from Diamond Dulceria",
                {"quoted_price": quoted_price, "message": message},
            )
        ]

    def contact_notifications(
        self,
        order: Order,
        message: str,
        subject: Optional[str] = None,
    ) -> list[NotificationOutbox]:
        return [
            self._entry(
                order,
                NotificationKind.CUSTOMER_CONTACT,
                order.customer_email,
                subject or "A message about your Diamond Dulceria order",
                {"message": message},
            )
        ]

    async def dispatch_pending(
        self,
        ses_client: SESClient,
        limit: int = DISPATCH_BATCH_SIZE,
    ) -> dict[str, int]:
        """
        Send pending outbox entries.

        Rows are locked with SKIP LOCKED so concurrent dispatchers never send
        the same entry twice. Each failure increments ``attempts``; entries
        reaching ``notification_max_attempts`` or rejected permanently are
        marked failed.

        Returns:
            Counts of sent, retried and failed entries
        """
        if self.session is None:
            raise RuntimeError("dispatch_pending requires a database session")

        stmt = (
            select(NotificationOutbox)
            .where(NotificationOutbox.status == NotificationStatus.PENDING.value)
            .order_by(NotificationOutbox.created_at)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        result = await self.session.execute(stmt)
        entries = list(result.scalars().all())

        counts = {"sent": 0, "retried": 0, "failed": 0}
        max_attempts = self.settings.notification_max_attempts

        for entry in entries:
            try:
                message_id = await asyncio.to_thread(
                    ses_client.send_email,
                    entry.recipient,
                    entry.subject,
                    entry.body,
                )
            except SESClientError as e:
                entry.attempts += 1
                entry.last_error = str(e)[:2000]
                if e.permanent or entry.attempts >= max_attempts:
                    entry.status = NotificationStatus.FAILED.value
                    counts["failed"] += 1
                    logger.error(
                        "Notification delivery failed permanently",
                        notification_id=str(entry.id),
                        order_id=str(entry.order_id),
                        kind=entry.kind,
                        attempts=entry.attempts,
                        error=str(e),
                    )
                else:
                    counts["retried"] += 1
                    logger.warning(
                        "Notification delivery failed, will retry",
                        notification_id=str(entry.id),
                        kind=entry.kind,
                        attempts=entry.attempts,
                        error=str(e),
                    )
                continue

            entry.status = NotificationStatus.SENT.value
            entry.attempts += 1
            entry.sent_at = datetime.now(timezone.utc)
            entry.provider_message_id = message_id
            entry.last_error = None
            counts["sent"] += 1

        await self.session.commit()

        if entries:
            logger.info("Notification outbox dispatched", **counts)
        return counts


async def dispatch_outbox(ses_client: SESClient) -> dict[str, int]:
    """
    Drain the outbox in a dedicated session.

    Used from background tasks and the lifespan loop; errors are logged and
    swallowed so they never surface in a request.
    """
    try:
        async with get_session() as session:
            return await NotificationService(session).dispatch_pending(ses_client)
    except Exception as e:
        logger.error(
            "Notification outbox dispatch failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return {"sent": 0, "retried": 0, "failed": 0}
