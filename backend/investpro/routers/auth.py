"""Sign-up, sign-in and current-identity endpoints."""

from typing import Optional
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import get_session, Account
from ..services.auth import AuthService, MIN_PASSWORD_LENGTH
from .dependencies import get_current_account

router = APIRouter()


class SignupRequest(BaseModel):
    """Schema for account registration."""
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    btc_wallet: Optional[str] = Field(default=None, max_length=255)
    usdt_wallet: Optional[str] = Field(default=None, max_length=255)


class SigninRequest(BaseModel):
    """Schema for sign-in."""
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(
    data: SignupRequest,
    session: AsyncSession = Depends(get_session),
):
    """Register a new account and return its first token."""
    token, account = await AuthService(session).signup(
        email=data.email,
        password=data.password,
        name=data.name.strip(),
        btc_wallet=data.btc_wallet,
        usdt_wallet=data.usdt_wallet,
    )
    return {"token": token, "user": account.to_dict()}


@router.post("/signin")
async def signin(
    data: SigninRequest,
    session: AsyncSession = Depends(get_session),
):
    """Exchange credentials for a token."""
    token, account = await AuthService(session).signin(data.email, data.password)
    return {"token": token, "user": account.to_dict()}


@router.get("/me")
async def me(account: Account = Depends(get_current_account)):
    return {"user": account.to_dict()}
