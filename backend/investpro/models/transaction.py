"""Transaction model - AUTHORITATIVE source for all balance changes.

CRITICAL: This is the single source of truth for account balances.
- Every balance change creates exactly one row, in the same database
  transaction as the cached balance update on the account
- APPEND-ONLY: never mutate historical records
- Corrections are new entries (refunds), not edits
- sum(amount) per account always equals the account's cached balance

Each row carries a unique idempotency key naming the logical operation that
produced it (e.g. "deposit:<request id>", "maturity:<investment id>"), so a
retried or duplicated operation can never be applied twice.
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship

from .database import Base


class TransactionKind(str, Enum):
    """Reason for a ledger entry."""
    DEPOSIT = "deposit"             # Confirmed deposit (credit)
    INVESTMENT = "investment"       # Principal committed to a plan (debit)
    ROI_RETURN = "roi_return"       # Principal + ROI at maturity (credit)
    REINVESTMENT = "reinvestment"   # Principal committed as reinvestment (debit)
    WITHDRAWAL = "withdrawal"       # Approved withdrawal (debit)
    REFUND = "refund"               # Principal returned on cancellation (credit)


CREDIT_KINDS = frozenset({TransactionKind.DEPOSIT, TransactionKind.ROI_RETURN, TransactionKind.REFUND})
DEBIT_KINDS = frozenset({TransactionKind.INVESTMENT, TransactionKind.REINVESTMENT, TransactionKind.WITHDRAWAL})


class Transaction(Base):
    """Append-only ledger of all balance changes.

    Example lifecycle for one account:
        deposit      +1000.00  balance_after=1000.00  key=deposit:<id>
        investment   -1000.00  balance_after=0.00     key=investment:<id>
        roi_return   +1050.00  balance_after=1050.00  key=maturity:<id>
    """
    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint("user_id", "sequence", name="uq_transactions_user_sequence"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    # Position in the account's ledger, 1-based and gap-free
    sequence = Column(Integer, nullable=False)

    kind = Column(SQLEnum(TransactionKind), nullable=False, index=True)
    amount = Column(Numeric(18, 2), nullable=False)  # Signed: + credit, - debit
    balance_after = Column(Numeric(18, 2), nullable=False)
    description = Column(String(500), nullable=False)

    idempotency_key = Column(String(255), unique=True, nullable=False, index=True)

    # Links to the originating records
    deposit_request_id = Column(String(36), ForeignKey("deposit_requests.id"), nullable=True, index=True)
    investment_id = Column(String(36), ForeignKey("investments.id"), nullable=True, index=True)
    withdrawal_request_id = Column(String(36), ForeignKey("withdrawal_requests.id"), nullable=True, index=True)

    # Timestamp (append-only, immutable)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    account = relationship("Account", back_populates="transactions")

    def __repr__(self):
        return (
            f"<Transaction(id={self.id}, "
            f"amount={self.amount:+}, "
            f"kind={self.kind.value})>"
        )

    def to_dict(self):
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "sequence": self.sequence,
            "type": self.kind.value,
            "amount": float(self.amount),
            "balance_after": float(self.balance_after),
            "description": self.description,
            "deposit_request_id": self.deposit_request_id,
            "investment_id": self.investment_id,
            "withdrawal_request_id": self.withdrawal_request_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
