"""
Site settings repository.

Settings are a flat key/value store of storefront copy (hero text, banner,
opening hours) edited from the admin dashboard.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dulceria.core.logging import get_logger
from dulceria.database.connection import execute_with_retry
from dulceria.database.models.site_setting import SiteSetting

logger = get_logger(__name__)


class SiteSettingsError(Exception):
    """Raised when site settings cannot be written."""

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.context = context


class SiteSettingsRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_all(self) -> dict[str, str]:
        async def run() -> dict[str, str]:
            result = await self.session.execute(select(SiteSetting).order_by(SiteSetting.key))
            return {setting.key: setting.value for setting in result.scalars().all()}

        return await execute_with_retry(run, "get_site_settings")

    async def get(self, key: str) -> Optional[str]:
        result = await self.session.execute(
            select(SiteSetting.value).where(SiteSetting.key == key)
        )
        return result.scalar_one_or_none()

    async def upsert(self, key: str, value: str) -> None:
        """Insert or replace a setting."""
        stmt = insert(SiteSetting).values(key=key, value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=[SiteSetting.key],
            set_={"value": stmt.excluded.value, "updated_at": func.now()},
        )
        try:
            await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Site setting update failed", key=key, error=str(e))
            raise SiteSettingsError("Site setting update failed", key=key) from e

        logger.info("Site setting updated", key=key)
