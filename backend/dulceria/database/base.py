"""
Declarative base and column mixins for storefront models.

Most tables use a UUID key plus created/updated timestamps. Products keep a
human-readable slug as primary key and only record their creation time.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


class Base(AsyncAttrs, DeclarativeBase):
    """Root of the model hierarchy; ``Base.metadata`` feeds Alembic."""

    __abstract__ = True

    def __repr__(self) -> str:
        keys = ", ".join(
            f"{column.key}={getattr(self, column.key, None)!r}"
            for column in self.__table__.primary_key.columns
        )
        return f"<{type(self).__name__}({keys})>"


class CreatedAtMixin:
    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            server_default=func.now(),
        )


class TimestampMixin(CreatedAtMixin):
    """Adds ``updated_at``, bumped by the ORM on every flush that changes the row."""

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            server_default=func.now(),
            onupdate=func.now(),
        )


class UUIDMixin:
    """
    UUID primary key.

    Generated in Python so new rows (orders in particular) have an id before
    the INSERT, which outbox rows reference in the same transaction. The
    server default covers rows inserted outside the ORM.
    """

    @declared_attr
    def id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            UUID(as_uuid=True),
            primary_key=True,
            default=uuid.uuid4,
            server_default=text("gen_random_uuid()"),
        )


class BaseModel(Base, UUIDMixin, TimestampMixin):
    __abstract__ = True
