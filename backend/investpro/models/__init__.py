# Database Models

from .database import Base, async_session_maker, get_session, init_db, configure_database
from .account import Account, AccountRole
from .investment_plan import InvestmentPlan
from .investment import Investment, InvestmentStatus
from .deposit_request import DepositRequest, DepositStatus, Currency
from .withdrawal_request import WithdrawalRequest, WithdrawalStatus
from .transaction import Transaction, TransactionKind, CREDIT_KINDS, DEBIT_KINDS
from .admin_setting import AdminSetting

__all__ = [
    "Base",
    "async_session_maker",
    "get_session",
    "init_db",
    "configure_database",
    "Account",
    "AccountRole",
    "InvestmentPlan",
    "Investment",
    "InvestmentStatus",
    "DepositRequest",
    "DepositStatus",
    "Currency",
    "WithdrawalRequest",
    "WithdrawalStatus",
    "Transaction",
    "TransactionKind",
    "CREDIT_KINDS",
    "DEBIT_KINDS",
    "AdminSetting",
]
