"""
Promotional code model for checkout discounts.

A code is usable only while active. Percentage codes take ``discount_value``
percent of the subtotal; fixed codes subtract ``discount_value`` whole
currency units. The discount is always clamped to the subtotal at checkout.
"""

from enum import Enum
from typing import Any

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from dulceria.core.logging import get_logger
from dulceria.database.base import BaseModel

logger = get_logger(__name__)


class DiscountType(str, Enum):
    """Enumeration of discount types."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"

    @classmethod
    def from_string(cls, value: str) -> "DiscountType":
        """
        Convert string to DiscountType enum.

        Raises:
            ValueError: If value is not a valid discount type
        """
        try:
            return cls(value.strip().lower())
        except ValueError as e:
            logger.error(
                "Invalid discount type",
                value=value,
                valid_types=[t.value for t in cls],
            )
            raise ValueError(
                f"Invalid discount type: {value}. "
                f"Must be one of: {', '.join(t.value for t in cls)}"
            ) from e


class PromoCode(BaseModel):
    """
    Promotional code.

    Attributes:
        code: Unique code, stored upper-case
        discount_type: percentage or fixed
        discount_value: Percent (percentage) or whole currency units (fixed)
        active: Whether the code can currently be redeemed
        usage_count: Number of orders that applied the code
    """

    __tablename__ = "promo_codes"
    __table_args__ = (
        CheckConstraint(
            "discount_value >= 0",
            name="ck_promo_codes_discount_value_non_negative",
        ),
        CheckConstraint(
            "discount_type IN ('percentage', 'fixed')",
            name="ck_promo_codes_discount_type_valid",
        ),
        CheckConstraint(
            "usage_count >= 0",
            name="ck_promo_codes_usage_count_non_negative",
        ),
        Index("ix_promo_codes_active", "active"),
        {"comment": "Promotional codes for checkout discounts"},
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    discount_type: Mapped[str] = mapped_column(String(20), nullable=False)
    discount_value: Mapped[int] = mapped_column(Integer, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def to_response(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "code": self.code,
            "discountType": self.discount_type,
            "discountValue": self.discount_value,
            "active": self.active,
            "usageCount": self.usage_count,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
