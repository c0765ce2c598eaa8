"""
Admin endpoints for editable storefront copy.
"""

from fastapi import APIRouter, HTTPException, Path, status

from dulceria.api.deps import CurrentAdmin, SiteSettingsRepositoryDep
from dulceria.core.logging import get_logger
from dulceria.schemas.admin import SiteSettingUpdate
from dulceria.services.content.repository import SiteSettingsError

logger = get_logger(__name__)

router = APIRouter(prefix="/site-settings", tags=["admin-content"])


@router.get("", summary="All site settings")
async def get_site_settings(
    admin: CurrentAdmin,
    repository: SiteSettingsRepositoryDep,
) -> dict[str, str]:
    return await repository.get_all()


@router.put("/{key}", summary="Set a site setting")
async def put_site_setting(
    body: SiteSettingUpdate,
    admin: CurrentAdmin,
    repository: SiteSettingsRepositoryDep,
    key: str = Path(..., min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_.-]+$"),
) -> dict[str, str]:
    """Create or replace the value stored under ``key``."""
    try:
        await repository.upsert(key, body.value)
    except SiteSettingsError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Failed to save setting", "code": "SETTINGS_WRITE_FAILED"},
        )
    return {"key": key, "value": body.value}
