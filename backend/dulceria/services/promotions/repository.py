"""
Promo code repository.

Codes are stored upper-case and matched case-insensitively.
"""

import uuid
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dulceria.core.logging import get_logger
from dulceria.database.connection import execute_with_retry
from dulceria.database.models.promo_code import DiscountType, PromoCode

logger = get_logger(__name__)


class PromoCodeError(Exception):
    """Base exception for promo code errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class PromoCodeConflictError(PromoCodeError):
    """Raised when a code already exists."""

    pass


def normalize_code(code: str) -> str:
    return code.strip().upper()


class PromoCodeRepository:
    """Repository for promo codes."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active_by_code(self, code: str) -> Optional[PromoCode]:
        """Return the active promo code matching ``code``, or None."""
        normalized = normalize_code(code)
        if not normalized:
            return None

        async def run() -> Optional[PromoCode]:
            stmt = select(PromoCode).where(
                PromoCode.code == normalized,
                PromoCode.active.is_(True),
            )
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()

        return await execute_with_retry(run, "get_active_promo_code")

    async def list_codes(self) -> list[PromoCode]:
        result = await self.session.execute(
            select(PromoCode).order_by(PromoCode.created_at.desc())
        )
        return list(result.scalars().all())

    async def create_code(
        self,
        code: str,
        discount_type: str,
        discount_value: int,
        active: bool = True,
    ) -> PromoCode:
        """
        Create a promo code.

        Raises:
            ValueError: If the discount type is unknown
            PromoCodeConflictError: If the code already exists
        """
        promo = PromoCode(
            code=normalize_code(code),
            discount_type=DiscountType.from_string(discount_type).value,
            discount_value=discount_value,
            active=active,
            usage_count=0,
        )
        try:
            self.session.add(promo)
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise PromoCodeConflictError(
                f"Promo code already exists: {promo.code}", code=promo.code
            ) from e

        logger.info(
            "Promo code created",
            code=promo.code,
            discount_type=promo.discount_type,
            discount_value=promo.discount_value,
        )
        return promo

    async def update_code(
        self, promo_id: uuid.UUID, **fields: Any
    ) -> Optional[PromoCode]:
        promo = await self.session.get(PromoCode, promo_id)
        if promo is None:
            return None

        if fields.get("code") is not None:
            promo.code = normalize_code(fields["code"])
        if fields.get("discount_type") is not None:
            promo.discount_type = DiscountType.from_string(fields["discount_type"]).value
        if fields.get("discount_value") is not None:
            promo.discount_value = fields["discount_value"]
        if fields.get("active") is not None:
            promo.active = fields["active"]

        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise PromoCodeConflictError(
                f"Promo code already exists: {promo.code}", code=promo.code
            ) from e

        logger.info("Promo code updated", code=promo.code, active=promo.active)
        return promo

    async def delete_code(self, promo_id: uuid.UUID) -> bool:
        result = await self.session.execute(
            delete(PromoCode).where(PromoCode.id == promo_id)
        )
        await self.session.commit()
        return result.rowcount > 0

    async def increment_usage(self, code: str) -> None:
        """
        Count one redemption of a code.

        Runs after the order is committed; the counter is informational, so a
        failure here is logged and does not affect the order.
        """
        try:
            await self.session.execute(
                update(PromoCode)
                .where(PromoCode.code == normalize_code(code))
                .values(usage_count=PromoCode.usage_count + 1)
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.warning("Promo usage count not updated", code=code, error=str(e))
