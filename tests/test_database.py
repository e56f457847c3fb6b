"""
Tests for DATABASE_URL handling
"""
import pytest

from database import DEFAULT_DATABASE_URL, resolve_database_url


def test_missing_url_falls_back_to_local_sqlite():
    assert resolve_database_url(None) == DEFAULT_DATABASE_URL


@pytest.mark.parametrize("url", [
    "postgres://app:pw@db.internal:5432/app",
    "postgresql://app:pw@db.internal:5432/app",
])
def test_postgres_urls_get_the_async_driver(url):
    assert resolve_database_url(url) == "postgresql+asyncpg://app:pw@db.internal:5432/app"


def test_explicit_driver_is_left_alone():
    url = "postgresql+asyncpg://app:pw@db.internal/app"
    assert resolve_database_url(url, production=True) == url


def test_production_refuses_sqlite():
    with pytest.raises(RuntimeError, match="SQLite is forbidden"):
        resolve_database_url("sqlite+aiosqlite:///./prod.db", production=True)


def test_production_requires_a_url():
    with pytest.raises(RuntimeError, match="DATABASE_URL must be set"):
        resolve_database_url("", production=True)
