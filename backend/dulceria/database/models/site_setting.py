"""
Site settings and admin user models.
"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from dulceria.database.base import BaseModel


class SiteSetting(BaseModel):
    """Key/value store for editable storefront copy (hero text, banners, hours)."""

    __tablename__ = "site_settings"
    __table_args__ = ({"comment": "Editable storefront copy"},)

    key: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)


class AdminUser(BaseModel):
    """Dashboard operator account."""

    __tablename__ = "admin_users"
    __table_args__ = ({"comment": "Admin dashboard accounts"},)

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
