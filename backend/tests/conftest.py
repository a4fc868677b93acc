"""Pytest configuration and fixtures."""

from decimal import Decimal

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from investpro.main import app
from investpro.models import Base, get_session, Account, AccountRole
from investpro.models.seed import seed_defaults
from investpro.services.auth import TokenService, hash_password
from investpro.services.config import config_service
from investpro.services.ledger_engine import LedgerEngine, atomic
from investpro.services.locks import AccountLockRegistry
from investpro.models import TransactionKind


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_JWT_SECRET = "test-secret-key-that-is-long-enough-for-hs256"


@pytest.fixture(autouse=True)
def test_config():
    """Fast bcrypt and a fixed signing key for every test."""
    previous = config_service._config
    config_service._config = {
        "auth": {"bcrypt_rounds": 4, "jwt_secret": TEST_JWT_SECRET, "token_ttl_days": 7},
    }
    yield config_service
    config_service._config = previous


@pytest.fixture
def tokens():
    return TokenService(TEST_JWT_SECRET, ttl_days=7)


@pytest.fixture
def locks():
    """Isolated lock registry per test."""
    return AccountLockRegistry()


@pytest.fixture(scope="function")
async def test_db():
    """Create a fresh, seeded test database for each test."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        await seed_defaults(session)
        await session.commit()
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def client(test_db):
    """Create test client with test database."""

    async def override_get_session():
        yield test_db

    app.dependency_overrides[get_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _make_account(session, email, role=AccountRole.USER, name="Test User", password="secret123"):
    account = Account(
        email=email,
        password_hash=hash_password(password, rounds=4),
        name=name,
        role=role,
        balance=Decimal("0.00"),
    )
    session.add(account)
    await session.commit()
    return account


async def _fund(session, account_id, amount, key, locks=None):
    """Credit an account through the ledger, as a confirmed deposit would."""
    async with atomic(session, account_id, locks):
        result = await LedgerEngine(session).apply_entry(
            account_id=account_id,
            amount=Decimal(str(amount)),
            kind=TransactionKind.DEPOSIT,
            idempotency_key=key,
            description=f"Test funding ${amount}",
        )
    return result


@pytest.fixture
async def user(test_db):
    """A regular account with zero balance."""
    return await _make_account(test_db, "user@example.com")


@pytest.fixture
async def admin(test_db):
    return await _make_account(test_db, "admin@example.com", role=AccountRole.ADMIN, name="Admin")


@pytest.fixture
def user_headers(user, tokens):
    return {"Authorization": f"Bearer {tokens.issue(user.id)}"}


@pytest.fixture
def admin_headers(admin, tokens):
    return {"Authorization": f"Bearer {tokens.issue(admin.id)}"}


@pytest.fixture
def account_factory(test_db):
    """Create extra accounts: await account_factory("other@example.com")."""
    async def factory(email, role=AccountRole.USER, name="Test User", password="secret123"):
        return await _make_account(test_db, email, role=role, name=name, password=password)
    return factory


@pytest.fixture
def fund(test_db):
    """Credit an account: await fund(account_id, "1000", key="seed-1")."""
    async def credit(account_id, amount, key=None, locks=None):
        return await _fund(test_db, account_id, amount, key or f"test-fund:{account_id}:{amount}", locks)
    return credit
