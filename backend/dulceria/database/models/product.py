"""
Product and category catalog models.

Products are the authoritative source of prices and display names for the
checkout flow. Prices are whole currency units.
"""

from typing import Any, Optional

from sqlalchemy import Boolean, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from dulceria.database.base import Base, BaseModel, CreatedAtMixin


class Product(Base, CreatedAtMixin):
    """
    Catalog product.

    The primary key is a human-readable slug (``dubai-chocolate``) so that
    carts and seeded catalog entries can reference products stably.
    """

    __tablename__ = "products"
    __table_args__ = (
        Index("ix_products_category", "category"),
        Index("ix_products_active", "active"),
        {"comment": "Storefront catalog products"},
    )

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    batch: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Pieces per purchasable unit",
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_custom: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    trending: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_response(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "batch": self.batch,
            "category": self.category,
            "image": self.image,
            "isCustom": self.is_custom,
            "trending": self.trending,
            "active": self.active,
        }


class Category(BaseModel):
    """Product category shown as a storefront section."""

    __tablename__ = "categories"
    __table_args__ = (
        Index("ix_categories_sort_order", "sort_order"),
        {"comment": "Storefront product categories"},
    )

    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_response(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "sortOrder": self.sort_order,
            "active": self.active,
        }
