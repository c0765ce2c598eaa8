"""
Database models package initialization.

Models are imported here so they are registered with the Base metadata for
Alembic autogeneration and relationship resolution.
"""

from dulceria.database.base import (
    Base,
    BaseModel,
    CreatedAtMixin,
    TimestampMixin,
    UUIDMixin,
)
from dulceria.database.models.notification import (
    NotificationKind,
    NotificationOutbox,
    NotificationStatus,
)
from dulceria.database.models.order import (
    Order,
    OrderStatus,
    PaymentMethod,
    QuoteStatus,
)
from dulceria.database.models.product import Category, Product
from dulceria.database.models.promo_code import DiscountType, PromoCode
from dulceria.database.models.site_setting import AdminUser, SiteSetting

__all__ = [
    "Base",
    "BaseModel",
    "CreatedAtMixin",
    "TimestampMixin",
    "UUIDMixin",
    "AdminUser",
    "Category",
    "DiscountType",
    "NotificationKind",
    "NotificationOutbox",
    "NotificationStatus",
    "Order",
    "OrderStatus",
    "PaymentMethod",
    "Product",
    "PromoCode",
    "QuoteStatus",
    "SiteSetting",
]
