"""Pytest configuration and shared fixtures."""

import os

# Settings are read at import time; these must be in place before any application import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production-use")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Optional
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from budget_keeper.core.database import Base, get_db
from budget_keeper.core.security import create_access_token, hash_password
from budget_keeper.main import app
from budget_keeper.models.budget import Budget
from budget_keeper.models.transaction import (
    Category,
    CategoryType,
    Merchant,
    Transaction,
    TransactionType,
)
from budget_keeper.models.user import User

# Use StaticPool so in-memory SQLite shares one connection
# (NullPool creates a new connection per call, losing all tables each time)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    import budget_keeper.models  # noqa: F401

    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        """Enable foreign keys for SQLite."""
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def db(db_session: AsyncSession) -> AsyncSession:
    """Alias for db_session to match test function signatures."""
    return db_session


@pytest.fixture(scope="function")
def override_get_db(db_session: AsyncSession):
    """Override the get_db dependency."""

    async def _override_get_db():
        yield db_session

    return _override_get_db


@pytest_asyncio.fixture(scope="function")
async def async_client(override_get_db) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client without authentication overrides."""
    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user."""
    user = User(
        id=uuid4(),
        email="test@example.com",
        password_hash=hash_password("password123"),
        name="Test User",
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def second_user(db_session: AsyncSession) -> User:
    """Create a second test user for isolation tests."""
    user = User(
        id=uuid4(),
        email="other@example.com",
        password_hash=hash_password("password123"),
        name="Other User",
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Create authentication headers with access token."""
    access_token = create_access_token(data={"sub": str(test_user.id), "email": test_user.email})
    return {"Authorization": f"Bearer {access_token}"}


@pytest_asyncio.fixture
async def authenticated_client(override_get_db, test_user: User) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with authentication."""
    from budget_keeper.dependencies import get_current_user

    async def mock_get_current_user():
        return test_user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = mock_get_current_user

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_category(db_session: AsyncSession):
    """Factory for categories owned by a user."""

    async def _make(user: User, name: str, parent: Optional[Category] = None, **kwargs) -> Category:
        category = Category(
            id=uuid4(),
            user_id=user.id,
            parent_id=parent.id if parent else None,
            name=name,
            type=CategoryType.EXPENSE,
            **kwargs,
        )
        db_session.add(category)
        await db_session.commit()
        await db_session.refresh(category)
        return category

    return _make


@pytest.fixture
def make_merchant(db_session: AsyncSession):
    """Factory for merchants owned by a user."""

    async def _make(user: User, name: str, **kwargs) -> Merchant:
        merchant = Merchant(id=uuid4(), user_id=user.id, name=name, **kwargs)
        db_session.add(merchant)
        await db_session.commit()
        await db_session.refresh(merchant)
        return merchant

    return _make


@pytest.fixture
def make_transaction(db_session: AsyncSession):
    """Factory for ledger entries; expenses unless ``type`` says otherwise."""

    async def _make(
        user: User,
        amount,
        transaction_date: date,
        category: Optional[Category] = None,
        merchant: Optional[Merchant] = None,
        type: TransactionType = TransactionType.EXPENSE,
        **kwargs,
    ) -> Transaction:
        transaction = Transaction(
            id=uuid4(),
            user_id=user.id,
            type=type,
            amount=Decimal(str(amount)),
            currency="CHF",
            title=kwargs.pop("title", "Test transaction"),
            transaction_date=transaction_date,
            category_id=category.id if category else None,
            merchant_id=merchant.id if merchant else None,
            **kwargs,
        )
        db_session.add(transaction)
        await db_session.commit()
        await db_session.refresh(transaction)
        return transaction

    return _make


@pytest.fixture
def make_budget(db_session: AsyncSession):
    """Factory for budgets stored as-is, without computing their window."""

    async def _make(user: User, **kwargs) -> Budget:
        values = {
            "id": uuid4(),
            "user_id": user.id,
            "name": "Test Budget",
            "amount": Decimal("1000.00"),
            "currency": "CHF",
            "period": "monthly",
            "start_date": date(2024, 1, 1),
            "current_period_spent": Decimal("0"),
            "rollover_unused": False,
            "rollover_amount": Decimal("0"),
            "alert_threshold": 80,
            "alert_sent": False,
            "is_active": True,
        }
        values.update(kwargs)
        budget = Budget(**values)
        db_session.add(budget)
        await db_session.commit()
        await db_session.refresh(budget)
        return budget

    return _make


@pytest.fixture
def sample_budget_data() -> dict:
    """Sample budget payload for the API."""
    return {
        "name": "Groceries Budget",
        "amount": "500.00",
        "period": "monthly",
        "start_date": "2024-01-01",
        "alert_threshold": 80,
        "rollover_unused": False,
    }
