"""Ledger engine - the only path by which an account balance changes.

CRITICAL: This is the ONLY way to modify balances in the system.
- Every balance change writes exactly one Transaction row
- The cached balance and the row are written in the same database transaction
- Debits never drive a balance negative (conditional UPDATE, not read-then-write)
- Every entry carries an idempotency key; a replay is a no-op returning the
  original entry, a replay with different parameters is a Conflict

Callers hold the account lock (see atomic()) and commit the session.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from ..models import Account, Transaction, TransactionKind, CREDIT_KINDS, DEBIT_KINDS
from .errors import Conflict, InsufficientFunds, NotFound, ValidationError
from .locks import AccountLockRegistry, account_locks
from .money import to_money, HALF_CENT

logger = logging.getLogger(__name__)


@dataclass
class LedgerResult:
    """Outcome of apply_entry."""
    transaction: Transaction
    balance_after: Decimal
    replayed: bool = False


@asynccontextmanager
async def atomic(
    session: AsyncSession,
    account_id: str,
    locks: Optional[AccountLockRegistry] = None,
):
    """Run a unit of work for one account under its lock.

    Commits on success. Any exception rolls the whole unit back, so a status
    flip and its ledger entry are applied together or not at all. A unique
    constraint violation means another worker recorded the same operation
    first and surfaces as Conflict.
    """
    registry = locks or account_locks
    async with registry.hold(account_id):
        try:
            yield
            await session.commit()
        except IntegrityError as e:
            await session.rollback()
            logger.warning(f"Account {account_id}: unit of work hit a uniqueness conflict, rolled back")
            raise Conflict("Operation conflicts with one already recorded") from e
        except Exception:
            await session.rollback()
            raise


class LedgerEngine:
    """Applies signed ledger entries to accounts.

    Responsibilities:
    - Validate kind/sign pairing
    - Enforce idempotency per logical operation
    - Apply the balance change with a non-negative guard
    - Append the Transaction row with balance_after
    """

    def __init__(self, session: AsyncSession):
        """Initialize ledger engine.

        Args:
            session: Database session (the caller's unit of work)
        """
        self.session = session

    async def apply_entry(
        self,
        account_id: str,
        amount,
        kind: TransactionKind,
        idempotency_key: str,
        description: str,
        deposit_request_id: Optional[str] = None,
        investment_id: Optional[str] = None,
        withdrawal_request_id: Optional[str] = None,
    ) -> LedgerResult:
        """Apply one signed entry and return the resulting balance.

        Args:
            account_id: Account to credit or debit
            amount: Signed amount (+ credit, - debit)
            kind: Reason code; must agree with the sign
            idempotency_key: Stable key of the logical operation
            description: Human-readable description
            deposit_request_id: Originating deposit request
            investment_id: Originating investment
            withdrawal_request_id: Originating withdrawal request

        Returns:
            LedgerResult; replayed=True if the key was already applied

        Raises:
            ValidationError: zero amount or sign not matching kind
            Conflict: key already used with different parameters
            NotFound: account does not exist
            InsufficientFunds: debit exceeds the current balance

        Note:
            Caller must commit the session.
        """
        amount = to_money(amount)
        self._check_sign(amount, kind)

        existing = await self._find_by_key(idempotency_key)
        if existing is not None:
            return self._replay(existing, account_id, amount, kind)

        # Row lock where the backend supports it (no-op on SQLite)
        result = await self.session.execute(
            select(Account)
            .where(Account.id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        account = result.scalar_one_or_none()
        if account is None:
            raise NotFound(f"Account {account_id} not found")

        now = datetime.utcnow()
        stmt = update(Account).where(Account.id == account_id)
        if amount < 0:
            stmt = stmt.where(Account.balance + amount >= -HALF_CENT)
        stmt = stmt.values(balance=Account.balance + amount, updated_at=now)
        update_result = await self.session.execute(
            stmt.execution_options(synchronize_session=False)
        )

        if update_result.rowcount != 1:
            logger.info(
                f"Ledger rejected: account={account_id}, kind={kind.value}, "
                f"amount={amount}, balance={account.balance}"
            )
            raise InsufficientFunds(
                f"Insufficient balance: available {account.balance}, required {-amount}"
            )

        balance_after = to_money(
            (await self.session.execute(
                select(Account.balance).where(Account.id == account_id)
            )).scalar_one()
        )
        set_committed_value(account, "balance", balance_after)
        set_committed_value(account, "updated_at", now)

        sequence = (await self.session.execute(
            select(func.coalesce(func.max(Transaction.sequence), 0) + 1)
            .where(Transaction.user_id == account_id)
        )).scalar_one()

        entry = Transaction(
            user_id=account_id,
            sequence=sequence,
            kind=kind,
            amount=amount,
            balance_after=balance_after,
            description=description,
            idempotency_key=idempotency_key,
            deposit_request_id=deposit_request_id,
            investment_id=investment_id,
            withdrawal_request_id=withdrawal_request_id,
            created_at=now,
        )
        self.session.add(entry)
        await self.session.flush()

        # Log at INFO level (financial event)
        logger.info(
            f"Ledger entry: account={account_id}, kind={kind.value}, "
            f"amount={amount:+}, balance_after={balance_after}, key={idempotency_key}"
        )

        return LedgerResult(transaction=entry, balance_after=balance_after)

    def _check_sign(self, amount: Decimal, kind: TransactionKind) -> None:
        if amount == 0:
            raise ValidationError("Ledger amount must be non-zero")
        if kind in CREDIT_KINDS and amount < 0:
            raise ValidationError(f"{kind.value} entries must be credits")
        if kind in DEBIT_KINDS and amount > 0:
            raise ValidationError(f"{kind.value} entries must be debits")

    def _replay(
        self,
        existing: Transaction,
        account_id: str,
        amount: Decimal,
        kind: TransactionKind,
    ) -> LedgerResult:
        if (
            existing.user_id != account_id
            or existing.kind != kind
            or to_money(existing.amount) != amount
        ):
            raise Conflict(
                f"Idempotency key {existing.idempotency_key} already used for a different operation"
            )
        logger.info(f"Ledger replay: key={existing.idempotency_key} already applied, no-op")
        return LedgerResult(
            transaction=existing,
            balance_after=to_money(existing.balance_after),
            replayed=True,
        )

    async def _find_by_key(self, idempotency_key: str) -> Optional[Transaction]:
        result = await self.session.execute(
            select(Transaction).where(Transaction.idempotency_key == idempotency_key)
        )
        return result.scalar_one_or_none()

    async def find_by_key(self, idempotency_key: str) -> Optional[Transaction]:
        """Look up the entry recorded for an idempotency key, if any."""
        return await self._find_by_key(idempotency_key)

    async def lock_account(self, account_id: str) -> None:
        """Take the account's write lock for the rest of the transaction.

        A no-op UPDATE of the account row: a row lock on servers, the
        database write lock on SQLite. Lookups made after this call see
        whatever a competing worker committed before it.

        Raises:
            NotFound: account does not exist
        """
        result = await self.session.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(balance=Account.balance, updated_at=Account.updated_at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFound(f"Account {account_id} not found")

    async def get_balance(self, account_id: str) -> Decimal:
        """Get the cached balance of an account.

        Raises:
            NotFound: account does not exist
        """
        result = await self.session.execute(
            select(Account.balance).where(Account.id == account_id)
        )
        balance = result.scalar_one_or_none()
        if balance is None:
            raise NotFound(f"Account {account_id} not found")
        return to_money(balance)

    async def reconstruct_balance(
        self,
        account_id: str,
        up_to_created_at: Optional[datetime] = None,
    ) -> Decimal:
        """Reconstruct a balance by summing ledger entries.

        Args:
            account_id: Account identifier
            up_to_created_at: Only sum entries created at or before this time

        Returns:
            Reconstructed balance
        """
        query = select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.user_id == account_id
        )
        if up_to_created_at is not None:
            query = query.where(Transaction.created_at <= up_to_created_at)

        result = await self.session.execute(query)
        return to_money(result.scalar() or 0)

    async def list_entries(
        self,
        account_id: Optional[str] = None,
        kind: Optional[TransactionKind] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Transaction]:
        """List ledger entries, most recent first."""
        query = select(Transaction)
        if account_id:
            query = query.where(Transaction.user_id == account_id)
        if kind:
            query = query.where(Transaction.kind == kind)
        query = query.order_by(Transaction.created_at.desc(), Transaction.sequence.desc())
        query = query.limit(limit).offset(offset)

        result = await self.session.execute(query)
        return list(result.scalars().all())
