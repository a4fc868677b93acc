"""Profile endpoints for the signed-in account."""

import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import get_session, Account
from .dependencies import get_current_account

logger = logging.getLogger(__name__)

router = APIRouter()


class ProfileUpdate(BaseModel):
    """Editable profile fields. Balance and role are not among them."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    btc_wallet: Optional[str] = Field(default=None, max_length=255)
    usdt_wallet: Optional[str] = Field(default=None, max_length=255)


@router.get("/profile")
async def get_profile(account: Account = Depends(get_current_account)):
    return {"user": account.to_dict()}


@router.put("/profile")
async def update_profile(
    data: ProfileUpdate,
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
):
    """Update name and payout wallets."""
    update_data = data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        if field == "name" and value is None:
            continue
        setattr(account, field, value.strip() if isinstance(value, str) else value)

    account.updated_at = datetime.utcnow()
    await session.commit()
    logger.info(f"Profile updated: account={account.id}, fields={sorted(update_data)}")
    return {"user": account.to_dict()}
