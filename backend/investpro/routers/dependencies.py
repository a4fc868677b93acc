"""Request dependencies: current account resolution and role checks."""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import get_session, Account
from ..services.auth import AuthService
from ..services.errors import Forbidden

bearer_scheme = HTTPBearer(auto_error=False)

TOKEN_COOKIE = "access_token"


async def get_current_account(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session),
) -> Account:
    """Resolve the bearer token (header, or access_token cookie) to an account."""
    token = credentials.credentials if credentials else request.cookies.get(TOKEN_COOKIE)
    return await AuthService(session).resolve(token)


async def require_admin(account: Account = Depends(get_current_account)) -> Account:
    """Only accounts with the admin role pass."""
    if not account.is_admin:
        raise Forbidden("Admin access required")
    return account
