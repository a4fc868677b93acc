"""Tests for Ledger Invariant Validation Service"""

import pytest
from decimal import Decimal
from sqlalchemy import update

from investpro.models import Account, Transaction, TransactionKind
from investpro.services.ledger_engine import LedgerEngine, atomic
from investpro.services.ledger_invariants import (
    LedgerInvariantService,
    BalanceMismatchError,
    BalanceChainError,
    NegativeBalanceError,
)


async def record(session, account_id, amount, kind, key):
    async with atomic(session, account_id):
        return await LedgerEngine(session).apply_entry(
            account_id=account_id,
            amount=Decimal(amount),
            kind=kind,
            idempotency_key=key,
            description=key,
        )


@pytest.fixture
async def active_account(test_db, user):
    """Account with deposit, investment and payout recorded."""
    user_id = user.id
    await record(test_db, user_id, "1000.00", TransactionKind.DEPOSIT, "deposit:1")
    await record(test_db, user_id, "-1000.00", TransactionKind.INVESTMENT, "investment:1")
    await record(test_db, user_id, "1050.00", TransactionKind.ROI_RETURN, "maturity:1")
    return user_id


@pytest.mark.asyncio
async def test_valid_ledger_passes_all_validations(test_db, active_account):
    """Ledger written through the engine satisfies every invariant."""
    validator = LedgerInvariantService(test_db)
    await validator.validate_account(active_account)  # Should not raise


@pytest.mark.asyncio
async def test_empty_account_is_valid(test_db, user):
    await LedgerInvariantService(test_db).validate_account(user.id)


@pytest.mark.asyncio
async def test_cached_balance_tampering_detected(test_db, active_account):
    """A balance changed outside the ledger is a mismatch."""
    await test_db.execute(
        update(Account).where(Account.id == active_account).values(balance=Decimal("5000.00"))
    )
    await test_db.commit()

    with pytest.raises(BalanceMismatchError):
        await LedgerInvariantService(test_db).validate_account(active_account)


@pytest.mark.asyncio
async def test_broken_balance_after_chain_detected(test_db, active_account):
    await test_db.execute(
        update(Transaction)
        .where(Transaction.idempotency_key == "investment:1")
        .values(balance_after=Decimal("10.00"))
    )
    await test_db.commit()

    with pytest.raises(BalanceChainError):
        await LedgerInvariantService(test_db).validate_entry_chain(active_account)


@pytest.mark.asyncio
async def test_sequence_gap_detected(test_db, active_account):
    await test_db.execute(
        update(Transaction)
        .where(Transaction.idempotency_key == "maturity:1")
        .values(sequence=7)
    )
    await test_db.commit()

    with pytest.raises(BalanceChainError):
        await LedgerInvariantService(test_db).validate_account(active_account)


@pytest.mark.asyncio
async def test_negative_balance_detected(test_db, user):
    """An entry that left the account below zero is reported."""
    user_id = user.id
    test_db.add(Transaction(
        user_id=user_id,
        sequence=1,
        kind=TransactionKind.WITHDRAWAL,
        amount=Decimal("-5.00"),
        balance_after=Decimal("-5.00"),
        description="forced overdraft",
        idempotency_key="withdrawal:forced",
    ))
    await test_db.execute(
        update(Account).where(Account.id == user_id).values(balance=Decimal("-5.00"))
    )
    await test_db.commit()

    with pytest.raises(NegativeBalanceError):
        await LedgerInvariantService(test_db).validate_account(user_id)


@pytest.mark.asyncio
async def test_verify_all_reports_instead_of_raising(test_db, active_account, account_factory):
    other = await account_factory("other@example.com")
    other_id = other.id
    await test_db.execute(
        update(Account).where(Account.id == other_id).values(balance=Decimal("1.00"))
    )
    await test_db.commit()

    reports = await LedgerInvariantService(test_db).verify_all()
    by_id = {r["account_id"]: r for r in reports}

    assert by_id[active_account]["is_valid"] is True
    assert by_id[active_account]["balance"] == 1050.0
    assert by_id[other_id]["is_valid"] is False
    assert by_id[other_id]["ledger_sum"] == 0.0
    assert "ledger sum" in by_id[other_id]["error"]


@pytest.mark.asyncio
async def test_verify_single_account(test_db, active_account, account_factory):
    await account_factory("other@example.com")

    reports = await LedgerInvariantService(test_db).verify_all(active_account)

    assert len(reports) == 1
    assert reports[0]["account_id"] == active_account
