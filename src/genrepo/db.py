"""
Database connection and query utilities.

Provides a small async interface for executing statements with psycopg,
returning rows as dictionaries. Every helper opens its own connection and
closes it before returning.

For testing, use set_connection_override() to inject a connection
that will be used instead of creating new ones. This enables
transaction rollback between tests.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Iterable, Mapping

import psycopg
from psycopg import IsolationLevel, sql
from psycopg.rows import dict_row

from genrepo.config import config
from genrepo.errors import ConnectionFailure

logger = logging.getLogger(__name__)

Query = str | sql.Composable
Params = Mapping[str, Any] | None

# =============================================================================
# Connection Override (for testing)
# =============================================================================

_connection_override: psycopg.AsyncConnection | None = None


def set_connection_override(conn: psycopg.AsyncConnection) -> None:
    """
    Set a connection to use instead of creating new ones.

    Used by test fixtures to ensure all database operations run
    within a single transaction that can be rolled back.

    Args:
        conn: The connection to use for all subsequent operations
    """
    global _connection_override
    _connection_override = conn


def clear_connection_override() -> None:
    """Clear the connection override, restoring normal behavior."""
    global _connection_override
    _connection_override = None


# =============================================================================
# Connection Management
# =============================================================================


async def connect(url: str | None = None, **kwargs) -> psycopg.AsyncConnection:
    """
    Open a new connection, translating connection errors.

    Raises:
        ConnectionFailure: if the server cannot be reached
    """
    try:
        return await psycopg.AsyncConnection.connect(url or config.database_url, **kwargs)
    except psycopg.OperationalError as e:
        raise ConnectionFailure(f"Could not connect to the database: {e}") from e


@asynccontextmanager
async def get_connection(isolation_level: IsolationLevel | None = None):
    """
    Async context manager for database connections.

    In normal operation:
        - Opens a new connection
        - Commits on successful exit
        - Rolls back on exception
        - Raises ConnectionFailure if the connection breaks mid-operation
        - Closes connection when done

    With override set (testing):
        - Returns the override connection
        - Does NOT commit, rollback, or close
        - Caller (test fixture) manages the transaction

    Args:
        isolation_level: Transaction isolation for the new connection.
            Ignored when an override is set.

    Usage:
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT ...")
    """
    if _connection_override is not None:
        yield _connection_override
        return

    conn = await connect()
    try:
        if isolation_level is not None:
            await conn.set_isolation_level(isolation_level)
        yield conn
        await conn.commit()
    except psycopg.OperationalError as e:
        # Statement-level errors (e.g. SerializationFailure) leave the
        # connection usable and propagate unchanged
        if not conn.broken:
            await conn.rollback()
            raise
        raise ConnectionFailure(f"Lost connection to the database: {e}") from e
    except Exception:
        await conn.rollback()
        raise
    finally:
        await conn.close()


@asynccontextmanager
async def get_cursor(isolation_level: IsolationLevel | None = None):
    """
    Async context manager for a cursor with dict rows.

    Usage:
        async with get_cursor() as cur:
            await cur.execute('SELECT * FROM "Users"')
            rows = await cur.fetchall()  # List of dicts
    """
    async with get_connection(isolation_level) as conn:
        async with conn.cursor(row_factory=dict_row) as cur:
            yield cur


# =============================================================================
# Query Helpers
# =============================================================================


async def execute(
    query: Query, params: Params = None, isolation_level: IsolationLevel | None = None
) -> int:
    """
    Execute a statement without returning results.

    Args:
        query: SQL statement with %(name)s placeholders
        params: Mapping of placeholder names to values
        isolation_level: Optional transaction isolation for this statement

    Returns:
        Number of rows affected
    """
    async with get_cursor(isolation_level) as cur:
        await cur.execute(query, params)
        return cur.rowcount


async def fetch_one(query: Query, params: Params = None) -> dict[str, Any] | None:
    """
    Execute a query and return a single row as dict.

    Returns:
        Dict of column names to values, or None if no row found
    """
    async with get_cursor() as cur:
        await cur.execute(query, params)
        return await cur.fetchone()


async def fetch_all(query: Query, params: Params = None) -> list[dict[str, Any]]:
    """
    Execute a query and return all rows as list of dicts.

    Returns:
        List of dicts, empty list if no rows found
    """
    async with get_cursor() as cur:
        await cur.execute(query, params)
        return await cur.fetchall()


async def execute_many(query: Query, params_seq: Iterable[Mapping[str, Any]]) -> int:
    """
    Execute a statement once per parameter mapping on a single connection.

    The batch shares the connection's transaction, so a failure part-way
    through rolls back every row of it.

    Returns:
        Number of rows affected
    """
    async with get_cursor() as cur:
        await cur.executemany(query, params_seq)
        return cur.rowcount
