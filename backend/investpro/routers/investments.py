"""Investment plans and the caller's investments."""

from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, Header, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import get_session, Account, InvestmentStatus
from ..services.errors import NotFound
from ..services.investments import InvestmentService
from .dependencies import get_current_account

router = APIRouter()


class InvestmentCreate(BaseModel):
    """Schema for committing balance to a plan."""
    plan_id: str = Field(..., min_length=1, max_length=64)
    amount: Decimal = Field(..., gt=0, max_digits=18, decimal_places=2)
    is_reinvestment: bool = False


@router.get("/plans")
async def list_active_plans(session: AsyncSession = Depends(get_session)):
    """List plans open for new investments."""
    plans = await InvestmentService(session).list_plans()
    return [plan.to_dict() for plan in plans]


@router.get("")
async def list_my_investments(
    status_filter: Optional[InvestmentStatus] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
):
    """List the caller's investments, newest first."""
    investments = await InvestmentService(session).list_investments(
        account_id=account.id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )
    return [investment.to_dict() for investment in investments]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_investment(
    data: InvestmentCreate,
    response: Response,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key", max_length=128),
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
):
    """Invest from the caller's balance.

    Sending the same Idempotency-Key again returns the original investment
    without debiting twice.
    """
    outcome = await InvestmentService(session).create_investment(
        account_id=account.id,
        plan_id=data.plan_id,
        amount=data.amount,
        is_reinvestment=data.is_reinvestment,
        idempotency_key=idempotency_key,
    )
    if outcome.replayed:
        response.status_code = status.HTTP_200_OK

    return {
        "investment": outcome.investment.to_dict(),
        "balance": float(outcome.balance_after),
        "replayed": outcome.replayed,
    }


@router.get("/{investment_id}")
async def get_investment(
    investment_id: str,
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
):
    investment = await InvestmentService(session).get_investment(investment_id)
    if investment.user_id != account.id and not account.is_admin:
        raise NotFound(f"Investment {investment_id} not found")
    return investment.to_dict()
