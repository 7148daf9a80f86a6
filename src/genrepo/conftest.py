# src/genrepo/conftest.py
"""
Pytest configuration and shared fixtures.

Tests are co-located with implementation files using the *_test.py suffix.
Unit tests need nothing but this package. Integration tests use the
db_connection fixture, which needs a PostgreSQL server at DATABASE_URL and
skips the test when none is reachable.
"""

import asyncio
import os

# Set environment BEFORE importing any app modules
os.environ["GENREPO_ENV"] = "test"

from pathlib import Path

import psycopg
import pytest
import pytest_asyncio
from psycopg import sql

from genrepo import db
from genrepo.config import config
from genrepo.user import UserRepository

MIGRATIONS_DIR = Path(__file__).parent.parent.parent / "migrations"

# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def test_db():
    """
    Create the test database and schema once per test session.

    This fixture:
    1. Drops the test database if it exists (clean slate)
    2. Creates a fresh test database
    3. Applies all migrations

    Skips dependent tests when the server cannot be reached.
    """
    from genrepo.migrations import split_database_url, upgrade

    test_db_url = config.database_url
    base_url, db_name = split_database_url(test_db_url)

    try:
        admin = psycopg.connect(base_url, autocommit=True, connect_timeout=3)
    except psycopg.OperationalError as e:
        pytest.skip(f"PostgreSQL not available: {e}")

    with admin:
        with admin.cursor() as cur:
            # Terminate existing connections to test database
            cur.execute(
                """
                SELECT pg_terminate_backend(pg_stat_activity.pid)
                FROM pg_stat_activity
                WHERE pg_stat_activity.datname = %s
                AND pid <> pg_backend_pid()
            """,
                (db_name,),
            )
            cur.execute(sql.SQL("DROP DATABASE IF EXISTS {}").format(sql.Identifier(db_name)))

    result = asyncio.run(upgrade(test_db_url, MIGRATIONS_DIR))
    if not result.successful:
        raise result.error

    yield test_db_url


@pytest_asyncio.fixture
async def db_connection(test_db):
    """
    Provide a database connection with transaction rollback.

    Each test runs in a transaction that is rolled back at the end,
    ensuring tests don't affect each other.
    """
    conn = await psycopg.AsyncConnection.connect(test_db)

    # Clean slate: truncate all tables before each test
    await conn.execute('TRUNCATE "Users"')
    await conn.commit()

    # Override the db module to use this connection
    db.set_connection_override(conn)

    yield conn

    # Rollback any changes made during the test
    await conn.rollback()
    db.clear_connection_override()
    await conn.close()


# =============================================================================
# Repository Fixtures
# =============================================================================


@pytest.fixture
def user_repo(db_connection):
    """Provide a UserRepository bound to the Users table."""
    return UserRepository()
