# Business Logic Services

from .errors import (
    InvestProError,
    Unauthorized,
    Forbidden,
    NotFound,
    InvalidStateTransition,
    InsufficientFunds,
    ValidationError,
    Conflict,
)
from .locks import AccountLockRegistry, account_locks
from .ledger_engine import LedgerEngine, LedgerResult, atomic
from .ledger_invariants import (
    LedgerInvariantService,
    LedgerInvariantError,
    BalanceMismatchError,
    NegativeBalanceError,
    BalanceChainError,
)
from .auth import AuthService, TokenService, get_token_service, hash_password, verify_password
from .platform_settings import PlatformSettingsService
from .investments import InvestmentService, InvestmentOutcome
from .maturity import MaturityService, MaturitySweeper, SweepResult
from .deposits import DepositService
from .withdrawals import WithdrawalService
from .config import (
    ConfigService,
    config_service,
    ConfigValidationException,
    ConfigValidationError,
)

__all__ = [
    # Errors
    "InvestProError",
    "Unauthorized",
    "Forbidden",
    "NotFound",
    "InvalidStateTransition",
    "InsufficientFunds",
    "ValidationError",
    "Conflict",
    # Ledger
    "AccountLockRegistry",
    "account_locks",
    "LedgerEngine",
    "LedgerResult",
    "atomic",
    "LedgerInvariantService",
    "LedgerInvariantError",
    "BalanceMismatchError",
    "NegativeBalanceError",
    "BalanceChainError",
    # Auth
    "AuthService",
    "TokenService",
    "get_token_service",
    "hash_password",
    "verify_password",
    # Workflows
    "PlatformSettingsService",
    "InvestmentService",
    "InvestmentOutcome",
    "MaturityService",
    "MaturitySweeper",
    "SweepResult",
    "DepositService",
    "WithdrawalService",
    # Config
    "ConfigService",
    "config_service",
    "ConfigValidationException",
    "ConfigValidationError",
]
