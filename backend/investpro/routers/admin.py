"""Administration router: reviews, plans, settings, statistics and ledger checks.

Every route requires an account with the admin role.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    get_session,
    Account,
    AccountRole,
    DepositRequest,
    DepositStatus,
    Investment,
    InvestmentStatus,
    WithdrawalRequest,
    WithdrawalStatus,
)
from ..services.deposits import DepositService
from ..services.errors import NotFound, ValidationError
from ..services.investments import InvestmentService
from ..services.ledger_invariants import LedgerInvariantService
from ..services.maturity import MaturityService
from ..services.platform_settings import PlatformSettingsService
from ..services.withdrawals import WithdrawalService
from .dependencies import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])


# Pydantic schemas
class RoleUpdate(BaseModel):
    """Schema for changing an account's role."""
    role: AccountRole


class PlanCreate(BaseModel):
    """Schema for creating an investment plan."""
    name: str = Field(..., min_length=1, max_length=255)
    min_amount: Decimal = Field(..., gt=0, max_digits=18, decimal_places=2)
    max_amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=18, decimal_places=2)
    roi_percent: Decimal = Field(..., gt=0, max_digits=7, decimal_places=2)
    duration_hours: int = Field(..., gt=0)
    is_active: bool = True


class PlanUpdate(BaseModel):
    """Schema for editing a plan. max_amount: null removes the upper bound."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    min_amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=18, decimal_places=2)
    max_amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=18, decimal_places=2)
    roi_percent: Optional[Decimal] = Field(default=None, gt=0, max_digits=7, decimal_places=2)
    duration_hours: Optional[int] = Field(default=None, gt=0)
    is_active: Optional[bool] = None


class SettingsUpdate(BaseModel):
    """Schema for bulk settings update."""
    settings: Dict[str, Any]


class PlatformStatusUpdate(BaseModel):
    """Feature toggles, named as the admin panel sends them."""
    depositsEnabled: Optional[bool] = None
    investmentsEnabled: Optional[bool] = None
    reinvestmentsEnabled: Optional[bool] = None
    withdrawalsEnabled: Optional[bool] = None


class WalletAddressesUpdate(BaseModel):
    """Platform deposit addresses."""
    btcAddress: Optional[str] = Field(default=None, min_length=1, max_length=255)
    usdtAddress: Optional[str] = Field(default=None, min_length=1, max_length=255)


class CancelRequest(BaseModel):
    """Optional override of the configured refund policy."""
    refund: Optional[bool] = None


class DepositReject(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=2000)


# =====================================================================
# USERS
# =====================================================================

@router.get("/users")
async def list_users(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
):
    """List accounts, newest first."""
    result = await session.execute(
        select(Account).order_by(Account.created_at.desc()).limit(limit).offset(offset)
    )
    return [account.to_dict() for account in result.scalars().all()]


@router.put("/users/{user_id}/role")
async def update_user_role(
    user_id: str,
    data: RoleUpdate,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Promote or demote an account."""
    if user_id == admin.id and data.role != AccountRole.ADMIN:
        raise ValidationError("Admins cannot remove their own admin role")

    result = await session.execute(select(Account).where(Account.id == user_id))
    account = result.scalar_one_or_none()
    if account is None:
        raise NotFound("User not found")

    account.role = data.role
    account.updated_at = datetime.utcnow()
    await session.commit()

    logger.info(f"Role changed: account={user_id}, role={data.role.value}, by={admin.id}")
    return {"user": account.to_dict()}


# =====================================================================
# DEPOSITS
# =====================================================================

@router.get("/deposits")
async def list_deposits(
    status_filter: Optional[DepositStatus] = Query(default=None, alias="status"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
):
    return await DepositService(session).list_with_owner(status_filter, limit, offset)


@router.get("/deposits/pending")
async def list_pending_deposits(session: AsyncSession = Depends(get_session)):
    return await DepositService(session).list_with_owner(DepositStatus.PENDING)


@router.post("/deposits/{deposit_id}/confirm")
async def confirm_deposit(
    deposit_id: str,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Confirm a pending deposit; the requester is credited exactly once."""
    deposit, result = await DepositService(session).confirm(deposit_id, admin.id)
    return {
        "message": "Deposit confirmed successfully",
        "deposit": deposit.to_dict(),
        "balance": float(result.balance_after),
    }


@router.post("/deposits/{deposit_id}/reject")
async def reject_deposit(
    deposit_id: str,
    data: Optional[DepositReject] = None,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    deposit = await DepositService(session).reject(
        deposit_id, admin.id, notes=data.notes if data else None
    )
    return {"message": "Deposit rejected successfully", "deposit": deposit.to_dict()}


# =====================================================================
# WITHDRAWALS
# =====================================================================

@router.get("/withdrawals")
async def list_withdrawals(
    status_filter: Optional[WithdrawalStatus] = Query(default=None, alias="status"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
):
    return await WithdrawalService(session).list_with_owner(status_filter, limit, offset)


@router.post("/withdrawals/{withdrawal_id}/approve")
async def approve_withdrawal(
    withdrawal_id: str,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Approve a pending withdrawal and debit the requester."""
    withdrawal, result = await WithdrawalService(session).approve(withdrawal_id, admin.id)
    return {
        "message": "Withdrawal approved successfully",
        "withdrawal": withdrawal.to_dict(),
        "balance": float(result.balance_after),
    }


@router.post("/withdrawals/{withdrawal_id}/complete")
async def complete_withdrawal(
    withdrawal_id: str,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    withdrawal = await WithdrawalService(session).complete(withdrawal_id, admin.id)
    return {"message": "Withdrawal completed successfully", "withdrawal": withdrawal.to_dict()}


@router.post("/withdrawals/{withdrawal_id}/reject")
async def reject_withdrawal(
    withdrawal_id: str,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    withdrawal = await WithdrawalService(session).reject(withdrawal_id, admin.id)
    return {"message": "Withdrawal rejected successfully", "withdrawal": withdrawal.to_dict()}


# =====================================================================
# INVESTMENTS & PLANS
# =====================================================================

@router.get("/investments")
async def list_investments(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
):
    """List all investments with their owners, newest first."""
    return await InvestmentService(session).list_with_owner(limit, offset)


@router.post("/investments/sweep")
async def run_maturity_sweep(session: AsyncSession = Depends(get_session)):
    """Run one maturity pass now instead of waiting for the sweeper."""
    result = await MaturityService(session).sweep()
    return result.to_dict()


@router.post("/investments/{investment_id}/cancel")
async def cancel_investment(
    investment_id: str,
    data: Optional[CancelRequest] = None,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Cancel an active investment; refunds the principal unless configured otherwise."""
    investment = await InvestmentService(session).cancel_investment(
        investment_id, refund=data.refund if data else None
    )
    logger.info(f"Investment {investment_id} cancelled by admin {admin.id}")
    return {"message": "Investment cancelled successfully", "investment": investment.to_dict()}


@router.get("/plans")
async def list_plans(session: AsyncSession = Depends(get_session)):
    """List all plans, including inactive and superseded versions."""
    plans = await InvestmentService(session).list_plans(include_inactive=True)
    return [plan.to_dict() for plan in plans]


@router.post("/plans", status_code=201)
async def create_plan(
    data: PlanCreate,
    session: AsyncSession = Depends(get_session),
):
    plan = await InvestmentService(session).create_plan(**data.model_dump())
    return plan.to_dict()


@router.put("/plans/{plan_id}")
async def update_plan(
    plan_id: str,
    data: PlanUpdate,
    session: AsyncSession = Depends(get_session),
):
    """Edit a plan. Plans already invested in get a new version instead."""
    plan = await InvestmentService(session).update_plan(plan_id, **data.model_dump(exclude_unset=True))
    return plan.to_dict()


# =====================================================================
# STATISTICS
# =====================================================================

@router.get("/stats")
async def get_stats(session: AsyncSession = Depends(get_session)):
    """Get platform-wide statistics."""
    # Total users
    total_users = (await session.execute(select(func.count(Account.id)))).scalar() or 0

    # Pending deposits (count and amount)
    pending_row = (await session.execute(
        select(func.count(DepositRequest.id), func.coalesce(func.sum(DepositRequest.amount), 0))
        .where(DepositRequest.status == DepositStatus.PENDING)
    )).one()

    # Active investments
    active_investments = (await session.execute(
        select(func.count(Investment.id)).where(Investment.status == InvestmentStatus.ACTIVE)
    )).scalar() or 0

    # Total volume invested (all statuses)
    total_volume = (await session.execute(
        select(func.coalesce(func.sum(Investment.amount), 0))
    )).scalar() or 0

    # Pending withdrawals
    pending_withdrawals = (await session.execute(
        select(func.count(WithdrawalRequest.id))
        .where(WithdrawalRequest.status == WithdrawalStatus.PENDING)
    )).scalar() or 0

    # Per-user investment totals
    per_user = await session.execute(
        select(
            Account.id,
            Account.name,
            Account.email,
            func.count(Investment.id),
            func.coalesce(func.sum(Investment.amount), 0),
        )
        .join(Investment, Investment.user_id == Account.id)
        .group_by(Account.id, Account.name, Account.email)
        .order_by(func.sum(Investment.amount).desc())
    )

    return {
        "total_users": total_users,
        "pending_deposits": pending_row[0] or 0,
        "pending_deposits_amount": float(pending_row[1] or 0),
        "active_investments": active_investments,
        "total_volume": float(total_volume),
        "pending_withdrawals": pending_withdrawals,
        "user_investments": [
            {
                "user_id": user_id,
                "name": name,
                "email": email,
                "investment_count": count,
                "total_invested": float(total or 0),
            }
            for user_id, name, email, count, total in per_user.all()
        ],
    }


# =====================================================================
# SETTINGS
# =====================================================================

@router.get("/settings")
async def get_settings(session: AsyncSession = Depends(get_session)):
    return await PlatformSettingsService(session).get_all()


@router.post("/settings")
async def update_settings(
    data: SettingsUpdate,
    session: AsyncSession = Depends(get_session),
):
    """Update any known settings. Unknown keys are rejected."""
    settings = await PlatformSettingsService(session).update(data.settings)
    return {"message": "Settings updated successfully", "settings": settings}


@router.post("/platform-status")
async def update_platform_status(
    data: PlatformStatusUpdate,
    session: AsyncSession = Depends(get_session),
):
    """Toggle deposits, investments, reinvestments and withdrawals."""
    mapping = {
        "depositsEnabled": "deposits_enabled",
        "investmentsEnabled": "investments_enabled",
        "reinvestmentsEnabled": "reinvestments_enabled",
        "withdrawalsEnabled": "withdrawals_enabled",
    }
    values = {
        mapping[field]: value
        for field, value in data.model_dump(exclude_none=True).items()
    }
    if not values:
        raise ValidationError("No platform status values provided")

    settings = await PlatformSettingsService(session).update(values)
    return {"message": "Platform status updated successfully", "settings": settings}


@router.post("/wallet-addresses")
async def update_wallet_addresses(
    data: WalletAddressesUpdate,
    session: AsyncSession = Depends(get_session),
):
    values = {}
    if data.btcAddress is not None:
        values["btc_wallet_address"] = data.btcAddress
    if data.usdtAddress is not None:
        values["usdt_wallet_address"] = data.usdtAddress
    if not values:
        raise ValidationError("No wallet addresses provided")

    settings = await PlatformSettingsService(session).update(values)
    return {"message": "Wallet addresses updated successfully", "settings": settings}


# =====================================================================
# LEDGER
# =====================================================================

@router.get("/ledger/verify")
async def verify_ledger(
    account_id: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
):
    """Check balances against the ledger for every account (or one)."""
    reports = await LedgerInvariantService(session).verify_all(account_id)
    if account_id and not reports:
        raise NotFound("User not found")
    return {
        "valid": all(report["is_valid"] for report in reports),
        "accounts": reports,
    }
