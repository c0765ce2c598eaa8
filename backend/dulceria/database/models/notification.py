"""
Notification outbox model.

Emails triggered by order events are written to the outbox in the same
transaction as the order change and delivered afterwards by the dispatcher,
so a mail failure can never undo or fail an order write.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from dulceria.database.base import BaseModel


class NotificationKind(str, enum.Enum):
    """Kinds of transactional email."""

    OPERATOR_NEW_ORDER = "operator_new_order"
    CUSTOMER_ORDER_CONFIRMATION = "customer_order_confirmation"
    CUSTOMER_STATUS_CHANGE = "customer_status_change"
    CUSTOMER_QUOTE = "customer_quote"
    CUSTOMER_CONTACT = "customer_contact"


class NotificationStatus(str, enum.Enum):
    """Delivery state of an outbox entry."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        return self in (NotificationStatus.SENT, NotificationStatus.FAILED)


class NotificationOutbox(BaseModel):
    """
    Outbox entry for a single email.

    Attributes:
        order_id: Order the email relates to (no foreign key, orders may be deleted)
        kind: Notification kind
        recipient: Destination email address
        subject: Rendered subject line
        body: Rendered plain-text body
        status: pending, sent or failed
        attempts: Delivery attempts made so far
        last_error: Error text of the most recent failed attempt
        sent_at: When the email was accepted by the mail provider
        provider_message_id: Message id returned by the mail provider
    """

    __tablename__ = "notification_outbox"
    __table_args__ = (
        Index("ix_notification_outbox_status_created", "status", "created_at"),
        Index("ix_notification_outbox_order_id", "order_id"),
        {"comment": "Transactional email outbox"},
    )

    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    recipient: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=NotificationStatus.PENDING.value,
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    provider_message_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
