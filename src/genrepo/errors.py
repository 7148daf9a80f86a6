"""
Error types raised by genrepo.

Constraint violations reported by the database (duplicate keys, NOT NULL,
type mismatches) are not wrapped: they reach the caller as the driver's own
``psycopg.errors.IntegrityError`` subclasses.
"""


class GenrepoError(Exception):
    """Base class for all genrepo errors."""


class ConnectionFailure(GenrepoError):
    """The database could not be reached when opening a connection."""


class NotFoundError(GenrepoError, KeyError):
    """No row matched the requested identity."""

    def __init__(self, table: str, id):
        self.table = table
        self.id = id
        super().__init__(f"{table} with id [{id}] could not be found.")

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return self.args[0]


class MalformedQueryError(GenrepoError, ValueError):
    """The table binding cannot produce valid SQL for its record type."""


class MigrationError(GenrepoError):
    """A migration script failed to apply."""

    def __init__(self, script: str, cause: Exception):
        self.script = script
        self.cause = cause
        super().__init__(f"Migration {script} failed: {cause}")
