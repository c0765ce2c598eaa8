"""
Order model for confirmed and pending storefront purchases.

An order is written once by the checkout flow (paid card orders or zero-total
custom requests) and afterwards only changed by admin actions or by payment
confirmation from the processor webhook.
"""

from enum import Enum
from typing import Any, Optional

from sqlalchemy import (
    CheckConstraint,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from dulceria.database.base import BaseModel


class OrderStatus(str, Enum):
    """
    Order status enumeration.

    Attributes:
        PENDING: Custom request awaiting a quote, or card order awaiting confirmation
        PAID: Payment confirmed by the processor
        READY: Order prepared and ready for pickup/delivery
        COMPLETED: Order handed over to the customer
        CANCELLED: Order cancelled by the operator
    """

    PENDING = "pending"
    PAID = "paid"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def from_string(cls, value: str) -> "OrderStatus":
        """
        Create OrderStatus from string value.

        Raises:
            ValueError: If value is not a valid status
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Invalid order status: {value}")

    @property
    def is_terminal(self) -> bool:
        """Check if status is terminal."""
        return self in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


class PaymentMethod(str, Enum):
    """How an order was settled at checkout."""

    CARD = "card"
    REQUEST = "request"


class QuoteStatus(str, Enum):
    """Progress of an operator quote for a custom order."""

    SENT = "sent"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class Order(BaseModel):
    """
    Customer order.

    Attributes:
        customer_name: Customer full name
        customer_email: Customer email for confirmations
        customer_phone: Customer phone number
        delivery_address: Delivery or contact address
        special_instructions: Free-text instructions from the customer
        items: Ordered list of line items
            ``{id, name, price, quantity, customNotes?}`` as revalidated
            against the catalog
        subtotal: Sum of price x quantity over items, whole currency units
        discount_amount: Promo discount applied, whole currency units
        promo_code: Promo code applied, if any
        total: subtotal - discount_amount, whole currency units
        status: Current order status
        payment_method: card or request
        payment_intent_id: Processor payment intent reference (unique)
        admin_notes: Operator notes
        quoted_price: Quoted price for a custom order, minor units
        quote_status: Quote progress for a custom order
    """

    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("payment_intent_id", name="uq_orders_payment_intent_id"),
        CheckConstraint("total >= 0", name="ck_orders_total_non_negative"),
        CheckConstraint("subtotal >= 0", name="ck_orders_subtotal_non_negative"),
        CheckConstraint(
            "discount_amount >= 0 AND discount_amount <= subtotal",
            name="ck_orders_discount_within_subtotal",
        ),
        CheckConstraint(
            "status IN ('pending', 'paid', 'ready', 'completed', 'cancelled')",
            name="ck_orders_status_valid",
        ),
        Index("ix_orders_status", "status"),
        Index("ix_orders_created_at", "created_at"),
        {"comment": "Storefront customer orders"},
    )

    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str] = mapped_column(
        String(50), nullable=False, default=""
    )
    delivery_address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    special_instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    items: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False)

    subtotal: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    promo_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    total: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=OrderStatus.PENDING.value,
    )
    payment_method: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentMethod.CARD.value,
    )
    payment_intent_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )

    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    quoted_price: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    quote_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    @property
    def order_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    def to_response(self, include_admin_fields: bool = True) -> dict[str, Any]:
        """
        Serialize the order with the camelCase keys the storefront expects.

        Args:
            include_admin_fields: Include admin notes and quote details
        """
        data: dict[str, Any] = {
            "id": str(self.id),
            "customerName": self.customer_name,
            "customerEmail": self.customer_email,
            "customerPhone": self.customer_phone,
            "deliveryAddress": self.delivery_address,
            "specialInstructions": self.special_instructions,
            "items": self.items,
            "subtotal": self.subtotal,
            "discountAmount": self.discount_amount,
            "promoCode": self.promo_code,
            "total": self.total,
            "status": self.status,
            "paymentMethod": self.payment_method,
            "paymentIntentId": self.payment_intent_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
        if include_admin_fields:
            data.update(
                adminNotes=self.admin_notes,
                quotedPrice=self.quoted_price,
                quoteStatus=self.quote_status,
            )
        return data

    def __repr__(self) -> str:
        return (
            f"<Order(id={self.id}, status={self.status}, total={self.total}, "
            f"payment_intent_id={self.payment_intent_id})>"
        )

