"""Investment plans and the investment lifecycle (creation, cancellation)."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    Account,
    Investment,
    InvestmentPlan,
    InvestmentStatus,
    TransactionKind,
)
from .config import config_service
from .errors import Conflict, NotFound, ValidationError
from .ledger_engine import LedgerEngine, atomic
from .locks import AccountLockRegistry
from .money import to_money, roi_for
from .platform_settings import PlatformSettingsService
from .transitions import transition

logger = logging.getLogger(__name__)


@dataclass
class InvestmentOutcome:
    """Result of create_investment."""
    investment: Investment
    balance_after: Decimal
    replayed: bool = False


class _AlreadyInvested(Exception):
    """The idempotency key was already used; unwinds the unit of work."""

    def __init__(self, investment_id: str, balance_after: Decimal):
        super().__init__(investment_id)
        self.investment_id = investment_id
        self.balance_after = balance_after


class InvestmentService:
    """Plan catalogue and investment lifecycle.

    Creation debits the principal through the ledger in the same unit of
    work that inserts the investment row. Maturity lives in MaturityService.
    """

    def __init__(self, session: AsyncSession, locks: Optional[AccountLockRegistry] = None):
        """Initialize investment service.

        Args:
            session: Database session
            locks: Account lock registry (global registry if omitted)
        """
        self.session = session
        self.locks = locks
        self.ledger = LedgerEngine(session)
        self.settings = PlatformSettingsService(session)

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    async def list_plans(self, include_inactive: bool = False) -> List[InvestmentPlan]:
        query = select(InvestmentPlan).order_by(InvestmentPlan.min_amount, InvestmentPlan.version)
        if not include_inactive:
            query = query.where(InvestmentPlan.is_active == True)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_plan(self, plan_id: str) -> InvestmentPlan:
        result = await self.session.execute(select(InvestmentPlan).where(InvestmentPlan.id == plan_id))
        plan = result.scalar_one_or_none()
        if plan is None:
            raise NotFound(f"Investment plan {plan_id} not found")
        return plan

    async def create_plan(
        self,
        name: str,
        min_amount,
        max_amount,
        roi_percent,
        duration_hours: int,
        is_active: bool = True,
    ) -> InvestmentPlan:
        """Add a plan to the catalogue.

        Raises:
            ValidationError: bounds, rate or duration invalid
        """
        fields = self._validated_plan_fields(name, min_amount, max_amount, roi_percent, duration_hours)
        plan = InvestmentPlan(is_active=is_active, **fields)
        self.session.add(plan)
        await self.session.commit()
        logger.info(f"Investment plan created: id={plan.id}, name='{plan.name}'")
        return plan

    async def update_plan(self, plan_id: str, **changes) -> InvestmentPlan:
        """Edit a plan.

        A plan no investment references yet is edited in place. Otherwise a
        new version is created (new id, version + 1) and the old version is
        deactivated, so existing investments keep pointing at the terms they
        were made under.

        Returns:
            The edited plan or its new version

        Raises:
            NotFound: unknown plan
            ValidationError: resulting terms invalid
        """
        plan = await self.get_plan(plan_id)

        merged = {
            "name": changes.get("name", plan.name),
            "min_amount": changes.get("min_amount", plan.min_amount),
            "max_amount": changes["max_amount"] if "max_amount" in changes else plan.max_amount,
            "roi_percent": changes.get("roi_percent", plan.roi_percent),
            "duration_hours": changes.get("duration_hours", plan.duration_hours),
        }
        fields = self._validated_plan_fields(**merged)
        is_active = changes.get("is_active", plan.is_active)
        if is_active is None:
            is_active = plan.is_active

        referenced = (await self.session.execute(
            select(func.count(Investment.id)).where(Investment.plan_id == plan.id)
        )).scalar() or 0

        terms_changed = any(
            fields[key] != getattr(plan, key)
            for key in ("min_amount", "max_amount", "roi_percent", "duration_hours")
        )

        if referenced and terms_changed:
            new_plan = InvestmentPlan(
                version=plan.version + 1,
                previous_version_id=plan.id,
                is_active=is_active,
                **fields,
            )
            plan.is_active = False
            plan.updated_at = datetime.utcnow()
            self.session.add(new_plan)
            await self.session.commit()
            logger.info(
                f"Investment plan {plan.id} referenced by {referenced} investment(s); "
                f"created version {new_plan.version} as {new_plan.id}"
            )
            return new_plan

        for key, value in fields.items():
            setattr(plan, key, value)
        plan.is_active = is_active
        plan.updated_at = datetime.utcnow()
        await self.session.commit()
        logger.info(f"Investment plan {plan.id} updated in place")
        return plan

    def _validated_plan_fields(self, name, min_amount, max_amount, roi_percent, duration_hours) -> dict:
        try:
            min_amount = to_money(min_amount)
            max_amount = to_money(max_amount) if max_amount is not None else None
            roi_percent = to_money(roi_percent)
        except ValueError as e:
            raise ValidationError(str(e))

        if not name or not str(name).strip():
            raise ValidationError("Plan name is required")
        if min_amount <= 0:
            raise ValidationError("min_amount must be positive")
        if max_amount is not None and max_amount < min_amount:
            raise ValidationError("max_amount must not be below min_amount")
        if roi_percent <= 0:
            raise ValidationError("roi_percent must be positive")
        if int(duration_hours) <= 0:
            raise ValidationError("duration_hours must be positive")

        return {
            "name": str(name).strip(),
            "min_amount": min_amount,
            "max_amount": max_amount,
            "roi_percent": roi_percent,
            "duration_hours": int(duration_hours),
        }

    # ------------------------------------------------------------------
    # Investments
    # ------------------------------------------------------------------

    async def create_investment(
        self,
        account_id: str,
        plan_id: str,
        amount,
        is_reinvestment: bool = False,
        idempotency_key: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> InvestmentOutcome:
        """Commit balance to a plan.

        Args:
            account_id: Investing account
            plan_id: Active plan id
            amount: Principal
            is_reinvestment: Record as reinvestment (separate feature flag)
            idempotency_key: Client-supplied key; a replay returns the
                investment created by the first call, even after its plan
                was retired or versioned
            now: Start time (defaults to utcnow)

        Raises:
            NotFound: plan missing or inactive
            Forbidden: investments/reinvestments disabled
            ValidationError: amount outside the plan's bounds
            InsufficientFunds: balance does not cover the amount
            Conflict: idempotency key reused with different parameters
        """
        try:
            amount = to_money(amount)
        except ValueError as e:
            raise ValidationError(str(e))
        if amount <= 0:
            raise ValidationError("Investment amount must be positive")

        kind = TransactionKind.REINVESTMENT if is_reinvestment else TransactionKind.INVESTMENT
        investment_id = str(uuid4())
        if idempotency_key:
            ledger_key = f"investment:{account_id}:{idempotency_key}"
        else:
            ledger_key = f"investment:{investment_id}"

        try:
            async with atomic(self.session, account_id, self.locks):
                # Competing workers queue here, so the key lookup below sees
                # any investment they committed with the same key
                await self.ledger.lock_account(account_id)

                existing = await self.ledger.find_by_key(ledger_key)
                if existing is not None:
                    if existing.kind != kind or to_money(existing.amount) != -amount:
                        raise Conflict(f"Idempotency key {idempotency_key} already used for a different investment")
                    raise _AlreadyInvested(existing.investment_id, to_money(existing.balance_after))

                plan = await self.get_plan(plan_id)
                if not plan.is_active:
                    raise NotFound(f"Investment plan {plan_id} not found")

                if is_reinvestment:
                    await self.settings.require_enabled("reinvestments_enabled", "Reinvestments")
                else:
                    await self.settings.require_enabled("investments_enabled", "Investments")

                if not plan.accepts_amount(amount):
                    bounds = f"{plan.min_amount} - {plan.max_amount if plan.max_amount is not None else 'unlimited'}"
                    raise ValidationError(f"Invalid investment amount: {plan.name} accepts {bounds}")

                start = now or datetime.utcnow()
                investment = Investment(
                    id=investment_id,
                    user_id=account_id,
                    plan_id=plan.id,
                    plan_name=plan.name,
                    roi_percent=plan.roi_percent,
                    duration_hours=plan.duration_hours,
                    amount=amount,
                    roi_amount=roi_for(amount, plan.roi_percent),
                    start_date=start,
                    end_date=start + timedelta(hours=plan.duration_hours),
                    status=InvestmentStatus.ACTIVE,
                    is_reinvestment=is_reinvestment,
                    created_at=start,
                    updated_at=start,
                )
                self.session.add(investment)
                await self.session.flush()

                result = await self.ledger.apply_entry(
                    account_id=account_id,
                    amount=-amount,
                    kind=kind,
                    idempotency_key=ledger_key,
                    description=f"{plan.name} {kind.value} - ${amount}",
                    investment_id=investment.id,
                )
                if result.replayed:
                    # The new row has no debit behind it; roll it back
                    raise _AlreadyInvested(
                        result.transaction.investment_id, result.balance_after
                    )
        except _AlreadyInvested as replay:
            prior = await self.get_investment(replay.investment_id)
            if prior.plan_id != plan_id:
                raise Conflict(f"Idempotency key {idempotency_key} already used for a different investment")
            logger.info(f"Investment replay: key={idempotency_key}, investment={prior.id}")
            return InvestmentOutcome(prior, replay.balance_after, replayed=True)

        logger.info(
            f"Investment created: id={investment.id}, account={account_id}, plan={plan.id}, "
            f"amount={amount}, roi={investment.roi_amount}, matures={investment.end_date.isoformat()}"
        )
        return InvestmentOutcome(investment, result.balance_after)

    async def get_investment(self, investment_id: str) -> Investment:
        result = await self.session.execute(select(Investment).where(Investment.id == investment_id))
        investment = result.scalar_one_or_none()
        if investment is None:
            raise NotFound(f"Investment {investment_id} not found")
        return investment

    async def list_investments(
        self,
        account_id: Optional[str] = None,
        status: Optional[InvestmentStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Investment]:
        """List investments, newest first."""
        query = select(Investment)
        if account_id:
            query = query.where(Investment.user_id == account_id)
        if status:
            query = query.where(Investment.status == status)
        query = query.order_by(Investment.created_at.desc()).limit(limit).offset(offset)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_with_owner(self, limit: int = 50, offset: int = 0) -> List[dict]:
        """Admin listing: investments joined with the owner's name and email."""
        result = await self.session.execute(
            select(Investment, Account.name, Account.email)
            .join(Account, Investment.user_id == Account.id)
            .order_by(Investment.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        rows = []
        for investment, user_name, user_email in result.all():
            data = investment.to_dict()
            data["user_name"] = user_name
            data["user_email"] = user_email
            rows.append(data)
        return rows

    async def cancel_investment(
        self,
        investment_id: str,
        refund: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> Investment:
        """Cancel an active investment.

        Args:
            investment_id: Investment to cancel
            refund: Refund the principal; defaults to
                investments.refund_on_cancel from config. No ROI is paid.
            now: Cancellation time

        Raises:
            NotFound: unknown investment
            InvalidStateTransition: investment is not active
        """
        investment = await self.get_investment(investment_id)
        if refund is None:
            refund = bool(config_service.get("investments.refund_on_cancel", True))
        when = now or datetime.utcnow()

        async with atomic(self.session, investment.user_id, self.locks):
            await transition(
                self.session,
                Investment,
                investment.id,
                InvestmentStatus.ACTIVE,
                InvestmentStatus.CANCELLED,
                instance=investment,
                cancelled_at=when,
                updated_at=when,
            )
            if refund:
                await self.ledger.apply_entry(
                    account_id=investment.user_id,
                    amount=investment.amount,
                    kind=TransactionKind.REFUND,
                    idempotency_key=f"cancel:{investment.id}",
                    description=f"{investment.plan_name} cancelled - principal refund ${to_money(investment.amount)}",
                    investment_id=investment.id,
                )

        logger.info(
            f"Investment cancelled: id={investment.id}, "
            f"principal {'refunded' if refund else 'forfeited'}"
        )
        return investment
