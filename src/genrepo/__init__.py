"""
genrepo

Generic async CRUD repository for PostgreSQL with SQL generated from
record types.
"""

from genrepo.errors import (
    ConnectionFailure,
    GenrepoError,
    MalformedQueryError,
    MigrationError,
    NotFoundError,
)
from genrepo.query import QueryBuilder, Statement
from genrepo.repository import GenericRepository
from genrepo.schema import FieldSpec, IdentityPolicy, RecordSchema, describe, ignored, register_schema

__all__ = [
    "ConnectionFailure",
    "FieldSpec",
    "GenericRepository",
    "GenrepoError",
    "IdentityPolicy",
    "MalformedQueryError",
    "MigrationError",
    "NotFoundError",
    "QueryBuilder",
    "RecordSchema",
    "Statement",
    "describe",
    "ignored",
    "register_schema",
]
