"""Withdrawal request workflow: pending -> approved -> completed, or rejected."""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Account, Currency, TransactionKind, WithdrawalRequest, WithdrawalStatus
from .errors import InsufficientFunds, NotFound, ValidationError
from .ledger_engine import LedgerEngine, LedgerResult, atomic
from .locks import AccountLockRegistry
from .money import to_money
from .platform_settings import PlatformSettingsService
from .transitions import transition

logger = logging.getLogger(__name__)


class WithdrawalService:
    """Withdrawal requests and their review.

    Funds leave the balance on approval (ledger key "withdrawal:<id>"), in
    the same unit of work as the status flip. Completion only records that
    the payout was sent; rejection is possible while the request is pending.
    """

    def __init__(self, session: AsyncSession, locks: Optional[AccountLockRegistry] = None):
        self.session = session
        self.locks = locks
        self.ledger = LedgerEngine(session)
        self.settings = PlatformSettingsService(session)

    async def create_request(
        self,
        account_id: str,
        amount,
        currency: Currency,
        wallet_address: str,
    ) -> WithdrawalRequest:
        """Record a pending withdrawal.

        Raises:
            Forbidden: withdrawals disabled
            ValidationError: amount below the platform minimum, or no address
            InsufficientFunds: amount exceeds the current balance
        """
        await self.settings.require_enabled("withdrawals_enabled", "Withdrawals")

        try:
            amount = to_money(amount)
        except ValueError as e:
            raise ValidationError(str(e))

        minimum = await self.settings.min_withdrawal_amount()
        if amount <= 0 or amount < minimum:
            raise ValidationError(f"Minimum withdrawal amount is ${minimum}")
        if not wallet_address or not wallet_address.strip():
            raise ValidationError("Wallet address is required")

        # Early check only; approval re-checks under the account lock
        balance = await self.ledger.get_balance(account_id)
        if amount > balance:
            raise InsufficientFunds(f"Insufficient balance: available {balance}, required {amount}")

        withdrawal = WithdrawalRequest(
            user_id=account_id,
            amount=amount,
            currency=currency,
            wallet_address=wallet_address.strip(),
            status=WithdrawalStatus.PENDING,
        )
        self.session.add(withdrawal)
        await self.session.commit()

        logger.info(f"Withdrawal requested: id={withdrawal.id}, account={account_id}, {amount} {currency.value}")
        return withdrawal

    async def get(self, withdrawal_id: str) -> WithdrawalRequest:
        result = await self.session.execute(
            select(WithdrawalRequest)
            .where(WithdrawalRequest.id == withdrawal_id)
            .execution_options(populate_existing=True)
        )
        withdrawal = result.scalar_one_or_none()
        if withdrawal is None:
            raise NotFound("Withdrawal not found")
        return withdrawal

    async def list_for_account(self, account_id: str) -> List[WithdrawalRequest]:
        result = await self.session.execute(
            select(WithdrawalRequest)
            .where(WithdrawalRequest.user_id == account_id)
            .order_by(WithdrawalRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_with_owner(
        self,
        status: Optional[WithdrawalStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[dict]:
        query = (
            select(WithdrawalRequest, Account.name, Account.email)
            .join(Account, WithdrawalRequest.user_id == Account.id)
        )
        if status:
            query = query.where(WithdrawalRequest.status == status)
        query = query.order_by(WithdrawalRequest.created_at.desc()).limit(limit).offset(offset)

        result = await self.session.execute(query)
        rows = []
        for withdrawal, user_name, user_email in result.all():
            data = withdrawal.to_dict()
            data["user_name"] = user_name
            data["user_email"] = user_email
            rows.append(data)
        return rows

    async def approve(
        self,
        withdrawal_id: str,
        admin_id: str,
        now: Optional[datetime] = None,
    ) -> Tuple[WithdrawalRequest, LedgerResult]:
        """Approve a pending withdrawal and debit the requester.

        Raises:
            NotFound: unknown request
            InvalidStateTransition: request not pending
            InsufficientFunds: balance no longer covers the amount
        """
        withdrawal = await self.get(withdrawal_id)
        account_id = withdrawal.user_id
        amount = to_money(withdrawal.amount)
        currency = withdrawal.currency
        when = now or datetime.utcnow()

        async with atomic(self.session, account_id, self.locks):
            await transition(
                self.session,
                WithdrawalRequest,
                withdrawal_id,
                WithdrawalStatus.PENDING,
                WithdrawalStatus.APPROVED,
                instance=withdrawal,
                reviewed_by=admin_id,
                reviewed_at=when,
                updated_at=when,
            )
            result = await self.ledger.apply_entry(
                account_id=account_id,
                amount=-amount,
                kind=TransactionKind.WITHDRAWAL,
                idempotency_key=f"withdrawal:{withdrawal_id}",
                description=f"{currency.value} withdrawal - ${amount}",
                withdrawal_request_id=withdrawal_id,
            )

        logger.info(f"Withdrawal approved: id={withdrawal_id}, account={account_id}, by={admin_id}")
        return withdrawal, result

    async def complete(
        self,
        withdrawal_id: str,
        admin_id: str,
        now: Optional[datetime] = None,
    ) -> WithdrawalRequest:
        """Mark an approved withdrawal as paid out. No ledger effect."""
        withdrawal = await self.get(withdrawal_id)
        when = now or datetime.utcnow()

        async with atomic(self.session, withdrawal.user_id, self.locks):
            await transition(
                self.session,
                WithdrawalRequest,
                withdrawal_id,
                WithdrawalStatus.APPROVED,
                WithdrawalStatus.COMPLETED,
                instance=withdrawal,
                updated_at=when,
            )

        logger.info(f"Withdrawal completed: id={withdrawal_id}, by={admin_id}")
        return withdrawal

    async def reject(
        self,
        withdrawal_id: str,
        admin_id: str,
        now: Optional[datetime] = None,
    ) -> WithdrawalRequest:
        """Reject a pending withdrawal. Nothing was debited, so nothing is returned."""
        withdrawal = await self.get(withdrawal_id)
        when = now or datetime.utcnow()

        async with atomic(self.session, withdrawal.user_id, self.locks):
            await transition(
                self.session,
                WithdrawalRequest,
                withdrawal_id,
                WithdrawalStatus.PENDING,
                WithdrawalStatus.REJECTED,
                instance=withdrawal,
                reviewed_by=admin_id,
                reviewed_at=when,
                updated_at=when,
            )

        logger.info(f"Withdrawal rejected: id={withdrawal_id}, by={admin_id}")
        return withdrawal
