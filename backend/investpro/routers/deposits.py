"""Deposit requests of the signed-in account."""

from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import get_session, Account, Currency
from ..services.deposits import DepositService
from .dependencies import get_current_account

router = APIRouter()


class DepositCreate(BaseModel):
    """Schema for a deposit request."""
    amount: Decimal = Field(..., gt=0, max_digits=18, decimal_places=2)
    currency: Currency
    wallet_address: Optional[str] = Field(default=None, max_length=255)
    transaction_hash: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = Field(default=None, max_length=2000)


@router.post("/request", status_code=status.HTTP_201_CREATED)
async def request_deposit(
    data: DepositCreate,
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
):
    """Create a pending deposit request. The balance changes on confirmation."""
    deposit = await DepositService(session).create_request(
        account_id=account.id,
        amount=data.amount,
        currency=data.currency,
        wallet_address=data.wallet_address,
        transaction_hash=data.transaction_hash,
        notes=data.notes,
    )
    return {"deposit": deposit.to_dict()}


@router.get("")
async def list_my_deposits(
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
):
    deposits = await DepositService(session).list_for_account(account.id)
    return [deposit.to_dict() for deposit in deposits]
