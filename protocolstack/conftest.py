# protocolstack/conftest.py
import os
import pytest


@pytest.fixture(scope="session")
def db_url():
    """
    Provide DATABASE_URL for tests.

    Returns the URL from environment, or None if not set.
    Tests can use this to conditionally enable persistence tests.
    """
    return os.getenv("TEST_DATABASE_URL") or os.getenv("DATABASE_URL")


@pytest.fixture(scope="session", autouse=True)
def create_tables(db_url):
    """
    Create all database tables before running tests.

    Runs once per test session if a database URL is set.
    """
    if not db_url:
        yield
        return

    from protocolstack.core.database import create_all_tables
    create_all_tables()
    yield


@pytest.fixture(scope="function", autouse=True)
def fresh_streak_store():
    """
    Give every test an empty streak store.

    In-memory without a database; truncated PostgreSQL tables with one.
    """
    from protocolstack.features.streaks.store import get_store, reset_store

    reset_store()
    store = get_store()
    store.clear()
    yield store
    store.clear()
    reset_store()
