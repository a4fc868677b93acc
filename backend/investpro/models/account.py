"""Account model - one per registered user."""

from datetime import datetime
from enum import Enum
from uuid import uuid4
from sqlalchemy import Column, String, Numeric, DateTime, Enum as SQLEnum
from sqlalchemy.orm import relationship

from .database import Base


class AccountRole(str, Enum):
    """Account role enumeration."""
    USER = "user"
    ADMIN = "admin"


class Account(Base):
    """Registered user with a cached balance.

    The balance column is a cache of the ledger: it only changes through
    LedgerEngine.apply_entry, in the same database transaction that appends
    the matching Transaction row.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(SQLEnum(AccountRole), nullable=False, default=AccountRole.USER)

    balance = Column(Numeric(18, 2), nullable=False, default=0)

    # Payout wallets
    btc_wallet = Column(String(255), nullable=True)
    usdt_wallet = Column(String(255), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    investments = relationship("Investment", back_populates="account")
    deposit_requests = relationship(
        "DepositRequest", back_populates="account", foreign_keys="DepositRequest.user_id"
    )
    withdrawal_requests = relationship(
        "WithdrawalRequest", back_populates="account", foreign_keys="WithdrawalRequest.user_id"
    )
    transactions = relationship("Transaction", back_populates="account")

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN

    def __repr__(self):
        return f"<Account(id={self.id}, email='{self.email}', role={self.role.value})>"

    def to_dict(self):
        """Convert to dictionary for API responses (never includes the hash)."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value,
            "balance": float(self.balance or 0),
            "btc_wallet": self.btc_wallet,
            "usdt_wallet": self.usdt_wallet,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
