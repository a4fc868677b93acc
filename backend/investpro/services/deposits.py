"""Deposit request workflow: pending -> confirmed | rejected."""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Account, Currency, DepositRequest, DepositStatus, TransactionKind
from .errors import NotFound, ValidationError
from .ledger_engine import LedgerEngine, LedgerResult, atomic
from .locks import AccountLockRegistry
from .money import to_money
from .platform_settings import PlatformSettingsService
from .transitions import transition

logger = logging.getLogger(__name__)


class DepositService:
    """Creates deposit requests and applies admin decisions.

    Requesting a deposit has no ledger effect; only confirmation credits
    the account, exactly once (ledger key "deposit:<request id>").
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
        wallet_address: Optional[str] = None,
        transaction_hash: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> DepositRequest:
        """Record a pending deposit.

        wallet_address defaults to the platform address for the currency.

        Raises:
            Forbidden: deposits disabled
            ValidationError: non-positive amount
        """
        await self.settings.require_enabled("deposits_enabled", "Deposits")

        try:
            amount = to_money(amount)
        except ValueError as e:
            raise ValidationError(str(e))
        if amount <= 0:
            raise ValidationError("Deposit amount must be positive")

        if not wallet_address:
            wallet_address = await self.settings.wallet_address(currency)

        deposit = DepositRequest(
            user_id=account_id,
            amount=amount,
            currency=currency,
            wallet_address=wallet_address,
            transaction_hash=transaction_hash,
            notes=notes,
            status=DepositStatus.PENDING,
        )
        self.session.add(deposit)
        await self.session.commit()

        logger.info(f"Deposit requested: id={deposit.id}, account={account_id}, {amount} {currency.value}")
        return deposit

    async def get(self, deposit_id: str) -> DepositRequest:
        result = await self.session.execute(
            select(DepositRequest)
            .where(DepositRequest.id == deposit_id)
            .execution_options(populate_existing=True)
        )
        deposit = result.scalar_one_or_none()
        if deposit is None:
            raise NotFound("Deposit not found")
        return deposit

    async def list_for_account(self, account_id: str) -> List[DepositRequest]:
        result = await self.session.execute(
            select(DepositRequest)
            .where(DepositRequest.user_id == account_id)
            .order_by(DepositRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_with_owner(
        self,
        status: Optional[DepositStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[dict]:
        """Admin listing: requests joined with the requester's name and email."""
        query = (
            select(DepositRequest, Account.name, Account.email)
            .join(Account, DepositRequest.user_id == Account.id)
        )
        if status:
            query = query.where(DepositRequest.status == status)
        query = query.order_by(DepositRequest.created_at.desc()).limit(limit).offset(offset)

        result = await self.session.execute(query)
        rows = []
        for deposit, user_name, user_email in result.all():
            data = deposit.to_dict()
            data["user_name"] = user_name
            data["user_email"] = user_email
            rows.append(data)
        return rows

    async def confirm(
        self,
        deposit_id: str,
        admin_id: str,
        now: Optional[datetime] = None,
    ) -> Tuple[DepositRequest, LedgerResult]:
        """Confirm a pending deposit and credit the requester.

        Raises:
            NotFound: unknown request
            InvalidStateTransition: request already confirmed or rejected
        """
        deposit = await self.get(deposit_id)
        account_id = deposit.user_id
        amount = to_money(deposit.amount)
        currency = deposit.currency
        when = now or datetime.utcnow()

        async with atomic(self.session, account_id, self.locks):
            await transition(
                self.session,
                DepositRequest,
                deposit_id,
                DepositStatus.PENDING,
                DepositStatus.CONFIRMED,
                instance=deposit,
                reviewed_by=admin_id,
                reviewed_at=when,
                updated_at=when,
            )
            result = await self.ledger.apply_entry(
                account_id=account_id,
                amount=amount,
                kind=TransactionKind.DEPOSIT,
                idempotency_key=f"deposit:{deposit_id}",
                description=f"{currency.value} deposit confirmed - ${amount}",
                deposit_request_id=deposit_id,
            )

        logger.info(f"Deposit confirmed: id={deposit_id}, account={account_id}, by={admin_id}")
        return deposit, result

    async def reject(
        self,
        deposit_id: str,
        admin_id: str,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> DepositRequest:
        """Reject a pending deposit. No ledger effect.

        Raises:
            NotFound: unknown request
            InvalidStateTransition: request already confirmed or rejected
        """
        deposit = await self.get(deposit_id)
        when = now or datetime.utcnow()
        values = {"reviewed_by": admin_id, "reviewed_at": when, "updated_at": when}
        if notes:
            values["notes"] = notes

        async with atomic(self.session, deposit.user_id, self.locks):
            await transition(
                self.session,
                DepositRequest,
                deposit_id,
                DepositStatus.PENDING,
                DepositStatus.REJECTED,
                instance=deposit,
                **values,
            )

        logger.info(f"Deposit rejected: id={deposit_id}, by={admin_id}")
        return deposit
