"""Deposit request model."""

from datetime import datetime
from enum import Enum
from uuid import uuid4
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship

from .database import Base


class Currency(str, Enum):
    """Supported deposit and withdrawal currencies."""
    BTC = "BTC"
    USDT = "USDT"


class DepositStatus(str, Enum):
    """Deposit lifecycle: pending -> confirmed | rejected (both terminal)."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class DepositRequest(Base):
    """User claim that funds were sent to a platform wallet, awaiting review."""
    __tablename__ = "deposit_requests"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    amount = Column(Numeric(18, 2), nullable=False)
    currency = Column(SQLEnum(Currency), nullable=False)
    wallet_address = Column(String(255), nullable=False)
    transaction_hash = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    status = Column(SQLEnum(DepositStatus), default=DepositStatus.PENDING, nullable=False, index=True)
    reviewed_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    account = relationship("Account", back_populates="deposit_requests", foreign_keys=[user_id])

    def __repr__(self):
        return f"<DepositRequest(id={self.id}, amount={self.amount}, status={self.status.value})>"

    def to_dict(self):
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "amount": float(self.amount),
            "currency": self.currency.value,
            "wallet_address": self.wallet_address,
            "transaction_hash": self.transaction_hash,
            "notes": self.notes,
            "status": self.status.value,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
