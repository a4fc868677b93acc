# API Routers

from . import admin, auth, deposits, health, investments, platform, transactions, users, withdrawals

__all__ = [
    "admin",
    "auth",
    "deposits",
    "health",
    "investments",
    "platform",
    "transactions",
    "users",
    "withdrawals",
]
