"""
Pytest configuration and fixtures for testing
"""
from datetime import datetime
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from auth_utils import create_jwt, hash_password
from config import settings
from database import Base, get_db
from database_models import User
from main import app

TEST_JWT_SECRET = "test-jwt-secret-key"
TEST_PASSWORD = "Passw0rdOK"


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    """Every test runs with a known JWT signing key."""
    monkeypatch.setattr(settings, "jwt_secret_key", TEST_JWT_SECRET)


@pytest.fixture
def db_path(tmp_path):
    """
    Fixture that creates an isolated SQLite database file for each test.
    Tables are created with a sync engine so setup never touches an event loop.
    """
    path = tmp_path / "test.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()
    return path


@pytest.fixture
def session_factory(db_path):
    # NullPool: every session opens its own connection in whatever loop uses it
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        echo=False,
        poolclass=NullPool,
    )
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture
async def test_db(session_factory):
    """Yields a clean AsyncSession bound to the test database."""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@pytest.fixture
def sync_db(db_path):
    """Sync Session on the same database, for seeding and inspecting rows around API calls."""
    engine = create_engine(f"sqlite:///{db_path}")
    with Session(engine, expire_on_commit=False) as session:
        yield session
    engine.dispose()


@pytest.fixture
def client(session_factory):
    """FastAPI TestClient fixture with test database override"""
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    # https so the secure session cookie round-trips
    test_client = TestClient(app, base_url="https://testserver")

    yield test_client

    app.dependency_overrides.clear()


def make_user(
    session: Session,
    email: str = "user@example.com",
    password: Optional[str] = TEST_PASSWORD,
    name: Optional[str] = None,
    subscription_id: Optional[str] = None,
    period_end: Optional[datetime] = None,
    price_id: Optional[str] = None,
    customer_id: Optional[str] = None,
) -> User:
    user = User(
        email=email.lower(),
        name=name,
        hashed_password=hash_password(password) if password else None,
        stripe_subscription_id=subscription_id,
        stripe_current_period_end=period_end,
        stripe_price_id=price_id,
        stripe_customer_id=customer_id,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def auth_headers(user_id: str, email: str) -> dict:
    return {"Authorization": f"Bearer {create_jwt(user_id, email)}"}
