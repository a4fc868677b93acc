"""Withdrawal requests of the signed-in account."""

from decimal import Decimal
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import get_session, Account, Currency
from ..services.withdrawals import WithdrawalService
from .dependencies import get_current_account

router = APIRouter()


class WithdrawalCreate(BaseModel):
    """Schema for a withdrawal request."""
    amount: Decimal = Field(..., gt=0, max_digits=18, decimal_places=2)
    currency: Currency
    wallet_address: str = Field(..., min_length=1, max_length=255)


@router.post("/request", status_code=status.HTTP_201_CREATED)
async def request_withdrawal(
    data: WithdrawalCreate,
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
):
    """Create a pending withdrawal request. Funds are debited on approval."""
    withdrawal = await WithdrawalService(session).create_request(
        account_id=account.id,
        amount=data.amount,
        currency=data.currency,
        wallet_address=data.wallet_address,
    )
    return {"withdrawal": withdrawal.to_dict()}


@router.get("")
async def list_my_withdrawals(
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
):
    withdrawals = await WithdrawalService(session).list_for_account(account.id)
    return [withdrawal.to_dict() for withdrawal in withdrawals]
