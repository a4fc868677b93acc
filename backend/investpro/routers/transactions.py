"""Ledger history of the signed-in account."""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import get_session, Account, TransactionKind
from ..services.ledger_engine import LedgerEngine
from .dependencies import get_current_account

router = APIRouter()


@router.get("")
async def list_my_transactions(
    kind: Optional[TransactionKind] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
):
    """Get the caller's ledger entries, most recent first.

    Args:
        kind: Filter by transaction type
        limit: Maximum entries to return (at most 200)
        offset: Pagination offset
    """
    entries = await LedgerEngine(session).list_entries(
        account_id=account.id,
        kind=kind,
        limit=limit,
        offset=offset,
    )
    return [entry.to_dict() for entry in entries]
