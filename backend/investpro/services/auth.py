"""Identity service: password hashing, token issue and resolution."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import bcrypt
import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Account, AccountRole
from .config import config_service
from .errors import Conflict, Unauthorized

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
MIN_PASSWORD_LENGTH = 6


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with a per-password bcrypt salt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def normalize_email(email: str) -> str:
    return email.strip().lower()


class TokenService:
    """Issues and verifies signed session tokens.

    Tokens carry a fixed expiry; resolving a token never extends it, the
    client must sign in again once it expires.
    """

    def __init__(self, secret: str, ttl_days: int = 7):
        self.secret = secret
        self.ttl = timedelta(days=ttl_days)

    def issue(self, account_id: str, now: Optional[datetime] = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": account_id,
            "iat": issued_at,
            "exp": issued_at + self.ttl,
        }
        return jwt.encode(payload, self.secret, algorithm=JWT_ALGORITHM)

    def decode(self, token: str) -> str:
        """Return the account id bound to a token.

        Raises:
            Unauthorized: token is expired, tampered with or malformed
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise Unauthorized("Token expired")
        except jwt.InvalidTokenError:
            raise Unauthorized("Invalid token")
        return payload["sub"]


def get_token_service() -> TokenService:
    """Build a TokenService from the current configuration."""
    return TokenService(
        secret=config_service.get("auth.jwt_secret"),
        ttl_days=config_service.get("auth.token_ttl_days", 7),
    )


class AuthService:
    """Sign-up, sign-in and token resolution against the accounts table."""

    def __init__(
        self,
        session: AsyncSession,
        tokens: Optional[TokenService] = None,
        bcrypt_rounds: Optional[int] = None,
    ):
        """Initialize auth service.

        Args:
            session: Database session
            tokens: Token service (built from config if omitted)
            bcrypt_rounds: bcrypt cost factor (from config if omitted)
        """
        self.session = session
        self.tokens = tokens or get_token_service()
        self.bcrypt_rounds = bcrypt_rounds or config_service.get("auth.bcrypt_rounds", 12)

    async def signup(
        self,
        email: str,
        password: str,
        name: str,
        btc_wallet: Optional[str] = None,
        usdt_wallet: Optional[str] = None,
        role: AccountRole = AccountRole.USER,
    ) -> Tuple[str, Account]:
        """Register an account and issue its first token.

        Raises:
            Conflict: email already registered
        """
        email = normalize_email(email)
        if await self._find_by_email(email) is not None:
            logger.info("Signup rejected: email already registered")
            raise Conflict("User already exists")

        # Keep bcrypt off the event loop
        password_hash = await asyncio.to_thread(hash_password, password, self.bcrypt_rounds)

        account = Account(
            email=email,
            password_hash=password_hash,
            name=name,
            role=role,
            balance=0,
            btc_wallet=btc_wallet,
            usdt_wallet=usdt_wallet,
        )
        self.session.add(account)
        await self.session.commit()

        logger.info(f"Account created: id={account.id}, role={role.value}")
        return self.tokens.issue(account.id), account

    async def signin(self, email: str, password: str) -> Tuple[str, Account]:
        """Verify credentials and issue a token.

        Raises:
            Unauthorized: unknown email or wrong password (same message)
        """
        account = await self._find_by_email(normalize_email(email))
        if account is None:
            logger.info("Signin failed: unknown email")
            raise Unauthorized("Invalid email or password")

        valid = await asyncio.to_thread(verify_password, password, account.password_hash)
        if not valid:
            logger.info(f"Signin failed: bad password for account {account.id}")
            raise Unauthorized("Invalid email or password")

        logger.info(f"Signin: account {account.id}")
        return self.tokens.issue(account.id), account

    async def resolve(self, token: Optional[str]) -> Account:
        """Resolve a token to its account.

        Raises:
            Unauthorized: missing/invalid token or account no longer exists
        """
        if not token:
            raise Unauthorized("No token provided")

        account_id = self.tokens.decode(token)
        result = await self.session.execute(select(Account).where(Account.id == account_id))
        account = result.scalar_one_or_none()
        if account is None:
            raise Unauthorized("Invalid token")
        return account

    async def _find_by_email(self, email: str) -> Optional[Account]:
        result = await self.session.execute(select(Account).where(Account.email == email))
        return result.scalar_one_or_none()
