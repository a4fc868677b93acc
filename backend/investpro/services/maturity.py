"""Investment maturity: the sweep that completes due investments and pays out.

A due investment is matured in one unit of work under its owner's lock:
the conditional status flip active -> completed and the roi_return ledger
credit (key "maturity:<investment id>") commit together or not at all. A
second sweep, or two overlapping sweeps, find nothing left to flip.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Investment, InvestmentStatus, TransactionKind
from .errors import InvestProError, InvalidStateTransition, NotFound
from .ledger_engine import LedgerEngine, atomic
from .ledger_invariants import LedgerInvariantService, LedgerInvariantError
from .locks import AccountLockRegistry
from .money import to_money
from .transitions import transition

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """Summary of one sweep pass."""
    scanned: int = 0
    completed: int = 0
    skipped: int = 0
    failed: int = 0
    investment_ids: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "scanned": self.scanned,
            "completed": self.completed,
            "skipped": self.skipped,
            "failed": self.failed,
        }


class MaturityService:
    """Matures investments whose end_date has passed."""

    def __init__(self, session: AsyncSession, locks: Optional[AccountLockRegistry] = None):
        """Initialize maturity service.

        Args:
            session: Database session
            locks: Account lock registry (global registry if omitted)
        """
        self.session = session
        self.locks = locks
        self.ledger = LedgerEngine(session)

    async def find_due(self, now: datetime, limit: int = 500) -> List[str]:
        """Ids of active investments with end_date <= now, oldest maturity first."""
        result = await self.session.execute(
            select(Investment.id)
            .where(
                Investment.status == InvestmentStatus.ACTIVE,
                Investment.end_date <= now,
            )
            .order_by(Investment.end_date)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mature(self, investment_id: str, now: Optional[datetime] = None) -> bool:
        """Complete one investment and credit principal + ROI.

        Returns:
            True if this call matured it, False if it is not yet due or no
            longer active (already completed or cancelled elsewhere)

        Raises:
            NotFound: unknown investment
        """
        when = now or datetime.utcnow()
        investment = (await self.session.execute(
            select(Investment)
            .where(Investment.id == investment_id)
            .execution_options(populate_existing=True)
        )).scalar_one_or_none()
        if investment is None:
            raise NotFound(f"Investment {investment_id} not found")
        if investment.status != InvestmentStatus.ACTIVE or investment.end_date > when:
            return False

        # A rollback expires loaded rows; keep what the log lines need
        account_id = investment.user_id
        payout = to_money(investment.amount) + to_money(investment.roi_amount)

        try:
            async with atomic(self.session, account_id, self.locks):
                await transition(
                    self.session,
                    Investment,
                    investment_id,
                    InvestmentStatus.ACTIVE,
                    InvestmentStatus.COMPLETED,
                    instance=investment,
                    completed_at=when,
                    updated_at=when,
                )
                result = await self.ledger.apply_entry(
                    account_id=account_id,
                    amount=payout,
                    kind=TransactionKind.ROI_RETURN,
                    idempotency_key=f"maturity:{investment_id}",
                    description=f"{investment.plan_name} matured - principal + ROI ${payout}",
                    investment_id=investment_id,
                )
        except InvalidStateTransition:
            logger.debug(f"Investment {investment_id}: no longer active, skipping")
            return False

        logger.info(
            f"Investment matured: id={investment_id}, account={account_id}, "
            f"payout={payout}, balance_after={result.balance_after}"
        )
        return True

    async def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """Mature every due investment.

        Failures of single investments are logged and counted; they do not
        stop the pass and leave that investment active for the next one.
        """
        when = now or datetime.utcnow()
        outcome = SweepResult()

        due = await self.find_due(when)
        outcome.scanned = len(due)

        for investment_id in due:
            try:
                if await self.mature(investment_id, when):
                    outcome.completed += 1
                    outcome.investment_ids.append(investment_id)
                else:
                    outcome.skipped += 1
            except (InvestProError, SQLAlchemyError) as e:
                outcome.failed += 1
                logger.error(f"Investment {investment_id}: maturity failed: {e}")

        if outcome.scanned:
            logger.info(
                f"Maturity sweep: scanned={outcome.scanned}, completed={outcome.completed}, "
                f"skipped={outcome.skipped}, failed={outcome.failed}"
            )
        return outcome


class MaturitySweeper:
    """Background task running MaturityService.sweep on a fixed interval.

    Each pass uses a fresh session from the factory. Accounts paid during
    a pass are checked against the ledger invariants afterwards.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        interval_seconds: float = 60,
        locks: Optional[AccountLockRegistry] = None,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.locks = locks
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Maturity sweeper started (interval {self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Maturity sweeper stopped")

    async def run_once(self, now: Optional[datetime] = None) -> SweepResult:
        async with self.session_factory() as session:
            result = await MaturityService(session, self.locks).sweep(now)

            if not result.investment_ids:
                return result

            accounts = await session.execute(
                select(Investment.user_id)
                .where(Investment.id.in_(result.investment_ids))
                .distinct()
            )
            validator = LedgerInvariantService(session)
            for account_id in sorted(accounts.scalars().all()):
                try:
                    await validator.validate_account(account_id)
                except LedgerInvariantError as e:
                    logger.error(f"Ledger invariant violated after sweep: {e}")
        return result

    async def _run_loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Maturity sweep pass failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval_seconds)
