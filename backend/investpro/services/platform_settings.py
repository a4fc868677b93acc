"""Platform settings stored in admin_settings (wallet addresses, feature flags)."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import AdminSetting, Currency
from ..models.seed import DEFAULT_SETTINGS
from .errors import Forbidden, ValidationError
from .money import to_money

logger = logging.getLogger(__name__)

FEATURE_FLAGS = (
    "deposits_enabled",
    "investments_enabled",
    "reinvestments_enabled",
    "withdrawals_enabled",
)

WALLET_KEYS = {
    Currency.BTC: "btc_wallet_address",
    Currency.USDT: "usdt_wallet_address",
}

# Settings safe to show to any signed-in user
PUBLIC_KEYS = ("btc_wallet_address", "usdt_wallet_address", "min_withdrawal_amount") + FEATURE_FLAGS


class PlatformSettingsService:
    """Typed access to the key/value settings table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_all(self) -> Dict[str, str]:
        """Return all settings as a key/value object (defaults filled in)."""
        result = await self.session.execute(select(AdminSetting))
        settings = dict(DEFAULT_SETTINGS)
        for row in result.scalars().all():
            settings[row.setting_key] = row.setting_value
        return settings

    async def get_public(self) -> Dict[str, str]:
        settings = await self.get_all()
        return {key: settings[key] for key in PUBLIC_KEYS if key in settings}

    async def get(self, key: str) -> Optional[str]:
        result = await self.session.execute(
            select(AdminSetting.setting_value).where(AdminSetting.setting_key == key)
        )
        value = result.scalar_one_or_none()
        if value is None:
            return DEFAULT_SETTINGS.get(key)
        return value

    async def is_enabled(self, flag: str) -> bool:
        value = await self.get(flag)
        return (value or "").strip().lower() == "true"

    async def require_enabled(self, flag: str, feature: str) -> None:
        """Raise Forbidden if a feature flag is switched off."""
        if not await self.is_enabled(flag):
            raise Forbidden(f"{feature} are currently disabled")

    async def wallet_address(self, currency: Currency) -> str:
        return await self.get(WALLET_KEYS[currency])

    async def min_withdrawal_amount(self) -> Decimal:
        return to_money(await self.get("min_withdrawal_amount") or "0")

    async def update(self, values: Dict[str, object]) -> Dict[str, str]:
        """Upsert settings. Only known keys are accepted.

        Booleans are stored as "true"/"false"; min_withdrawal_amount must be
        a non-negative amount.

        Raises:
            ValidationError: unknown key or invalid value
        """
        unknown = [key for key in values if key not in DEFAULT_SETTINGS]
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")

        normalized = {key: self._normalize(key, value) for key, value in values.items()}

        result = await self.session.execute(
            select(AdminSetting).where(AdminSetting.setting_key.in_(list(normalized)))
        )
        rows = {row.setting_key: row for row in result.scalars().all()}

        now = datetime.utcnow()
        for key, value in normalized.items():
            row = rows.get(key)
            if row is None:
                self.session.add(AdminSetting(setting_key=key, setting_value=value))
            else:
                row.setting_value = value
                row.updated_at = now

        await self.session.commit()
        logger.info(f"Platform settings updated: {sorted(normalized)}")
        return await self.get_all()

    def _normalize(self, key: str, value: object) -> str:
        if key in FEATURE_FLAGS:
            if isinstance(value, bool):
                return "true" if value else "false"
            text = str(value).strip().lower()
            if text not in ("true", "false"):
                raise ValidationError(f"{key} must be true or false")
            return text

        if key == "min_withdrawal_amount":
            try:
                amount = to_money(value)
            except ValueError:
                raise ValidationError("min_withdrawal_amount must be a number")
            if amount < 0:
                raise ValidationError("min_withdrawal_amount must not be negative")
            return str(amount)

        text = str(value).strip()
        if not text:
            raise ValidationError(f"{key} must not be empty")
        return text
