"""Public platform settings (deposit addresses, limits, feature flags)."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import get_session
from ..services.platform_settings import PlatformSettingsService

router = APIRouter()


@router.get("/settings")
async def get_platform_settings(session: AsyncSession = Depends(get_session)):
    return await PlatformSettingsService(session).get_public()
