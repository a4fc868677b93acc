"""Investment model."""

from datetime import datetime
from enum import Enum
from uuid import uuid4
from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship

from .database import Base


class InvestmentStatus(str, Enum):
    """Investment lifecycle: active -> completed | cancelled (both terminal)."""
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Investment(Base):
    """Principal committed to a plan until its maturity time."""
    __tablename__ = "investments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    plan_id = Column(String(64), ForeignKey("investment_plans.id"), nullable=False, index=True)

    # Plan snapshot at creation time
    plan_name = Column(String(255), nullable=False)
    roi_percent = Column(Numeric(7, 2), nullable=False)
    duration_hours = Column(Integer, nullable=False)

    amount = Column(Numeric(18, 2), nullable=False)
    roi_amount = Column(Numeric(18, 2), nullable=False)

    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False, index=True)  # maturity time

    status = Column(SQLEnum(InvestmentStatus), default=InvestmentStatus.ACTIVE, nullable=False, index=True)
    is_reinvestment = Column(Boolean, default=False, nullable=False)

    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    account = relationship("Account", back_populates="investments")
    plan = relationship("InvestmentPlan")

    @property
    def payout_amount(self):
        """Principal plus ROI credited at maturity."""
        return self.amount + self.roi_amount

    def __repr__(self):
        return (
            f"<Investment(id={self.id}, amount={self.amount}, "
            f"status={self.status.value})>"
        )

    def to_dict(self):
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "plan_id": self.plan_id,
            "plan_name": self.plan_name,
            "roi_percent": float(self.roi_percent),
            "duration_hours": self.duration_hours,
            "amount": float(self.amount),
            "roi_amount": float(self.roi_amount),
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "status": self.status.value,
            "is_reinvestment": self.is_reinvestment,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
