"""Investment plan catalogue model."""

from datetime import datetime
from uuid import uuid4
from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, ForeignKey

from .database import Base


class InvestmentPlan(Base):
    """Catalogue entry describing a fixed-term plan.

    A plan referenced by any investment is never edited in place; a new
    version row is created and the old one deactivated. Investments also
    snapshot roi_percent and duration_hours at creation time.
    """
    __tablename__ = "investment_plans"

    id = Column(String(64), primary_key=True, default=lambda: str(uuid4()))
    name = Column(String(255), nullable=False)

    min_amount = Column(Numeric(18, 2), nullable=False)
    max_amount = Column(Numeric(18, 2), nullable=True)  # null = unbounded
    roi_percent = Column(Numeric(7, 2), nullable=False)
    duration_hours = Column(Integer, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)

    # Versioning
    version = Column(Integer, default=1, nullable=False)
    previous_version_id = Column(String(64), ForeignKey("investment_plans.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<InvestmentPlan(id={self.id}, name='{self.name}', v{self.version})>"

    def accepts_amount(self, amount) -> bool:
        """Return True if amount lies within [min_amount, max_amount]."""
        if amount < self.min_amount:
            return False
        if self.max_amount is not None and amount > self.max_amount:
            return False
        return True

    def to_dict(self):
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "name": self.name,
            "min_amount": float(self.min_amount),
            "max_amount": float(self.max_amount) if self.max_amount is not None else None,
            "roi_percent": float(self.roi_percent),
            "duration_hours": self.duration_hours,
            "is_active": self.is_active,
            "version": self.version,
            "previous_version_id": self.previous_version_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
