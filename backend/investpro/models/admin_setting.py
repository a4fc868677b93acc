"""Platform-wide key/value settings."""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime

from .database import Base


class AdminSetting(Base):
    """Persisted platform setting (wallet addresses, feature flags, limits)."""
    __tablename__ = "admin_settings"

    id = Column(Integer, primary_key=True, index=True)
    setting_key = Column(String(100), unique=True, nullable=False, index=True)
    setting_value = Column(Text, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<AdminSetting(key={self.setting_key})>"
