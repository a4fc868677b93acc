"""Ledger Invariant Validation Service

Validates accounting invariants for accounts against the transactions ledger.
All violations raise exceptions; callers decide whether to halt or report.

Design principles:
- Fail fast: Raise exceptions on violation
- Read-only: No data modification
- Deterministic: No randomness or time-based logic
- Scoped: Validate one account at a time
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Account, Transaction
from .ledger_engine import LedgerEngine
from .money import to_money

logger = logging.getLogger(__name__)


# ============================================================================
# Exception Hierarchy
# ============================================================================

class LedgerInvariantError(Exception):
    """Base class for all ledger invariant violations."""
    pass


class BalanceMismatchError(LedgerInvariantError):
    """Cached balance differs from the sum of ledger entries."""
    pass


class NegativeBalanceError(LedgerInvariantError):
    """A ledger entry left the account below zero."""
    pass


class BalanceChainError(LedgerInvariantError):
    """balance_after of an entry is not previous balance_after + amount."""
    pass


# ============================================================================
# Ledger Invariant Service
# ============================================================================

class LedgerInvariantService:
    """Service for validating accounting invariants.

    Per account:
    1. Cached balance == sum(transactions.amount)
    2. No entry has a negative balance_after
    3. Each balance_after == previous balance_after + amount
    4. The latest balance_after == cached balance
    5. Entry sequence numbers run 1..n without gaps
    """

    # Slack for backends that store NUMERIC as binary floats
    TOLERANCE = Decimal("0.005")

    def __init__(self, session: AsyncSession):
        """Initialize the validator.

        Args:
            session: Async database session
        """
        self.session = session
        self.ledger = LedgerEngine(session)

    async def validate_account(self, account_id: str) -> None:
        """Validate all invariants for one account.

        Raises:
            LedgerInvariantError subclass if any invariant is violated
        """
        try:
            await self.validate_balance_matches_ledger(account_id)
            await self.validate_entry_chain(account_id)
            logger.debug(f"Account {account_id}: All ledger invariants hold")
        except LedgerInvariantError as e:
            logger.error(f"Account {account_id}: Ledger invariant violated - {e}")
            raise

    async def validate_balance_matches_ledger(self, account_id: str) -> None:
        """Cached balance must equal the sum of the account's entries.

        Raises:
            BalanceMismatchError if they differ
        """
        cached = await self.ledger.get_balance(account_id)
        reconstructed = await self.ledger.reconstruct_balance(account_id)

        if abs(cached - reconstructed) > self.TOLERANCE:
            raise BalanceMismatchError(
                f"Account {account_id}: cached balance {cached} != "
                f"ledger sum {reconstructed} (difference {cached - reconstructed})"
            )

    async def validate_entry_chain(self, account_id: str) -> None:
        """Walk entries in order checking balance_after continuity.

        Raises:
            NegativeBalanceError: an entry left the balance below zero
            BalanceChainError: balance_after does not follow from amounts,
                or the last balance_after differs from the cached balance
        """
        result = await self.session.execute(
            select(Transaction)
            .where(Transaction.user_id == account_id)
            .order_by(Transaction.sequence)
        )
        entries = result.scalars().all()

        running = Decimal("0.00")
        for expected_sequence, entry in enumerate(entries, start=1):
            if entry.sequence != expected_sequence:
                raise BalanceChainError(
                    f"Account {account_id}: entry {entry.id} has sequence {entry.sequence}, "
                    f"expected {expected_sequence}"
                )
            running = running + to_money(entry.amount)
            balance_after = to_money(entry.balance_after)

            if balance_after < -self.TOLERANCE:
                raise NegativeBalanceError(
                    f"Account {account_id}: entry {entry.id} ({entry.kind.value}) "
                    f"left balance at {balance_after}"
                )
            if abs(balance_after - running) > self.TOLERANCE:
                raise BalanceChainError(
                    f"Account {account_id}: entry {entry.id} has balance_after={balance_after}, "
                    f"expected {running}"
                )

        if entries:
            cached = await self.ledger.get_balance(account_id)
            if abs(cached - running) > self.TOLERANCE:
                raise BalanceChainError(
                    f"Account {account_id}: last balance_after {running} != cached balance {cached}"
                )

    async def verify_all(self, account_id: Optional[str] = None) -> List[Dict]:
        """Validate every account (or one) and report instead of raising.

        Returns:
            One report per account: id, balance, ledger_sum, is_valid, error
        """
        query = select(Account.id).order_by(Account.created_at)
        if account_id:
            query = query.where(Account.id == account_id)
        account_ids = (await self.session.execute(query)).scalars().all()

        reports = []
        for current_id in account_ids:
            error = None
            try:
                await self.validate_account(current_id)
            except LedgerInvariantError as e:
                error = str(e)

            balance = await self.ledger.get_balance(current_id)
            ledger_sum = await self.ledger.reconstruct_balance(current_id)
            reports.append({
                "account_id": current_id,
                "balance": float(balance),
                "ledger_sum": float(ledger_sum),
                "is_valid": error is None,
                "error": error,
            })

        invalid = sum(1 for r in reports if not r["is_valid"])
        logger.info(f"Ledger verification: {len(reports)} account(s), {invalid} invalid")
        return reports
