"""Tests for password hashing, tokens and the auth endpoints."""

import pytest
from datetime import datetime, timedelta, timezone

from investpro.services.auth import (
    AuthService,
    TokenService,
    hash_password,
    verify_password,
)
from investpro.services.errors import Conflict, Unauthorized


class TestPasswords:
    """Test bcrypt helpers."""

    def test_hash_roundtrip(self):
        hashed = hash_password("correct horse", rounds=4)
        assert hashed != "correct horse"
        assert hashed.startswith("$2")
        assert verify_password("correct horse", hashed)
        assert not verify_password("wrong horse", hashed)

    def test_salted(self):
        assert hash_password("same", rounds=4) != hash_password("same", rounds=4)

    def test_malformed_hash_is_a_mismatch(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class TestTokens:
    """Test token issue and verification."""

    def test_roundtrip(self, tokens):
        assert tokens.decode(tokens.issue("acct-1")) == "acct-1"

    def test_expired(self, tokens):
        issued = datetime.now(timezone.utc) - timedelta(days=7, seconds=1)
        token = tokens.issue("acct-1", now=issued)

        with pytest.raises(Unauthorized, match="Token expired"):
            tokens.decode(token)

    def test_valid_until_expiry(self, tokens):
        issued = datetime.now(timezone.utc) - timedelta(days=6, hours=23)
        assert tokens.decode(tokens.issue("acct-1", now=issued)) == "acct-1"

    def test_wrong_secret(self, tokens):
        forged = TokenService("another-secret-that-is-long-enough-too").issue("acct-1")
        with pytest.raises(Unauthorized, match="Invalid token"):
            tokens.decode(forged)

    def test_garbage(self, tokens):
        with pytest.raises(Unauthorized):
            tokens.decode("not.a.token")


class TestAuthService:
    """Test sign-up, sign-in and resolution."""

    @pytest.mark.asyncio
    async def test_signup_and_signin(self, test_db, tokens):
        service = AuthService(test_db, tokens=tokens, bcrypt_rounds=4)
        token, account = await service.signup("New@Example.com ", "secret123", "New User")

        assert account.email == "new@example.com"
        assert account.password_hash != "secret123"
        assert tokens.decode(token) == account.id

        _, signed_in = await service.signin("new@example.com", "secret123")
        assert signed_in.id == account.id

    @pytest.mark.asyncio
    async def test_duplicate_email(self, test_db, user, tokens):
        service = AuthService(test_db, tokens=tokens, bcrypt_rounds=4)
        with pytest.raises(Conflict):
            await service.signup("USER@example.com", "secret123", "Again")

    @pytest.mark.asyncio
    async def test_signin_errors_are_indistinguishable(self, test_db, user, tokens):
        service = AuthService(test_db, tokens=tokens, bcrypt_rounds=4)

        with pytest.raises(Unauthorized) as unknown:
            await service.signin("nobody@example.com", "secret123")
        with pytest.raises(Unauthorized) as wrong:
            await service.signin("user@example.com", "wrong-password")

        assert unknown.value.message == wrong.value.message == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_resolve_token_for_deleted_account(self, test_db, tokens):
        service = AuthService(test_db, tokens=tokens, bcrypt_rounds=4)
        with pytest.raises(Unauthorized):
            await service.resolve(tokens.issue("deleted-account"))

    @pytest.mark.asyncio
    async def test_resolve_without_token(self, test_db, tokens):
        with pytest.raises(Unauthorized, match="No token provided"):
            await AuthService(test_db, tokens=tokens).resolve(None)


class TestAuthApi:
    """Test the /api/auth endpoints."""

    @pytest.mark.asyncio
    async def test_signup_returns_token_and_user(self, client):
        response = await client.post("/api/auth/signup", json={
            "email": "alice@example.com",
            "password": "secret123",
            "name": "Alice",
            "btc_wallet": "bc1qalice",
        })
        assert response.status_code == 201
        data = response.json()
        assert data["token"]
        assert data["user"]["email"] == "alice@example.com"
        assert data["user"]["role"] == "user"
        assert data["user"]["balance"] == 0
        assert "password_hash" not in data["user"]

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
        assert me.status_code == 200
        assert me.json()["user"]["btc_wallet"] == "bc1qalice"

    @pytest.mark.asyncio
    async def test_signup_short_password(self, client):
        response = await client.post("/api/auth/signup", json={
            "email": "bob@example.com", "password": "12345", "name": "Bob",
        })
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_signup_duplicate(self, client, user):
        response = await client.post("/api/auth/signup", json={
            "email": "user@example.com", "password": "secret123", "name": "Dup",
        })
        assert response.status_code == 409
        assert response.json()["detail"] == "User already exists"

    @pytest.mark.asyncio
    async def test_signin(self, client, user):
        response = await client.post("/api/auth/signin", json={
            "email": "user@example.com", "password": "secret123",
        })
        assert response.status_code == 200
        assert response.json()["user"]["email"] == "user@example.com"

    @pytest.mark.asyncio
    async def test_signin_wrong_password(self, client, user):
        response = await client.post("/api/auth/signin", json={
            "email": "user@example.com", "password": "nope-nope",
        })
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_me_requires_token(self, client):
        response = await client.get("/api/auth/me")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me_rejects_expired_token(self, client, user, tokens):
        token = tokens.issue(user.id, now=datetime.now(timezone.utc) - timedelta(days=8))
        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Token expired"

    @pytest.mark.asyncio
    async def test_token_accepted_from_cookie(self, client, user, tokens):
        cookie = f"access_token={tokens.issue(user.id)}"
        response = await client.get("/api/auth/me", headers={"Cookie": cookie})
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_admin_route_forbidden_for_users(self, client, user_headers):
        response = await client.get("/api/admin/users", headers=user_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_route_requires_token(self, client):
        response = await client.get("/api/admin/users")
        assert response.status_code == 401
