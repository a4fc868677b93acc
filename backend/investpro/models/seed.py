"""Default catalogue and settings inserted into an empty database."""

import logging
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from .investment_plan import InvestmentPlan
from .admin_setting import AdminSetting

logger = logging.getLogger(__name__)

DEFAULT_PLANS = [
    {"id": "starter", "name": "Starter Plan", "min_amount": "100", "max_amount": "1000", "roi_percent": "5", "duration_hours": 24},
    {"id": "growth", "name": "Growth Plan", "min_amount": "1000", "max_amount": "5000", "roi_percent": "7.5", "duration_hours": 48},
    {"id": "premium", "name": "Premium Plan", "min_amount": "5000", "max_amount": "20000", "roi_percent": "10", "duration_hours": 72},
    {"id": "elite", "name": "Elite Plan", "min_amount": "20000", "max_amount": None, "roi_percent": "15", "duration_hours": 120},
]

DEFAULT_SETTINGS = {
    "btc_wallet_address": "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa",
    "usdt_wallet_address": "TYJUrp7L3K5YKEf9e7C3qsP4h1A9vXWz7R",
    "min_withdrawal_amount": "10.00",
    "deposits_enabled": "true",
    "investments_enabled": "true",
    "reinvestments_enabled": "true",
    "withdrawals_enabled": "true",
}


async def seed_defaults(session: AsyncSession) -> None:
    """Insert default plans and settings if their tables are empty.

    Missing individual settings are added even when others exist, so a
    database created by an older release picks up new feature flags.

    Note:
        Caller must commit the session.
    """
    plan_count = (await session.execute(select(func.count(InvestmentPlan.id)))).scalar() or 0
    if plan_count == 0:
        for plan in DEFAULT_PLANS:
            session.add(InvestmentPlan(
                id=plan["id"],
                name=plan["name"],
                min_amount=Decimal(plan["min_amount"]),
                max_amount=Decimal(plan["max_amount"]) if plan["max_amount"] else None,
                roi_percent=Decimal(plan["roi_percent"]),
                duration_hours=plan["duration_hours"],
            ))
        logger.info(f"Seeded {len(DEFAULT_PLANS)} default investment plans")

    result = await session.execute(select(AdminSetting.setting_key))
    existing = set(result.scalars().all())
    missing = [key for key in DEFAULT_SETTINGS if key not in existing]
    for key in missing:
        session.add(AdminSetting(setting_key=key, setting_value=DEFAULT_SETTINGS[key]))
    if missing:
        logger.info(f"Seeded default settings: {missing}")

    await session.flush()
