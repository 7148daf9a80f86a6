"""
SQL generation for a table binding.

QueryBuilder turns a table name and a RecordSchema into the statements the
generic repository executes. Identifiers are composed with psycopg.sql and
values are always left as named placeholders, so nothing from a record's
data ever ends up in the SQL text.

Column lists are built as ordered lists and joined once, so generated SQL
never carries a leading or trailing separator.
"""

from dataclasses import dataclass

from psycopg import sql

from genrepo.errors import MalformedQueryError
from genrepo.schema import IDENTITY_FIELD, FieldSpec, IdentityPolicy, RecordSchema

COMMA = sql.SQL(", ")


@dataclass(frozen=True)
class Statement:
    """A generated statement and the parameter names it binds."""

    sql: sql.Composed
    params: tuple[str, ...]

    def as_string(self) -> str:
        return self.sql.as_string()


def _names(fields: list[FieldSpec]) -> list[str]:
    return [f.name for f in fields]


def _columns(names: list[str]) -> sql.Composed:
    return COMMA.join(sql.Identifier(n) for n in names)


def _placeholders(names: list[str]) -> sql.Composed:
    return COMMA.join(sql.Placeholder(n) for n in names)


def _assignments(names: list[str]) -> sql.Composed:
    return COMMA.join(
        sql.SQL("{} = {}").format(sql.Identifier(n), sql.Placeholder(n)) for n in names
    )


def _unique(*groups: list[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(n for group in groups for n in group))


class QueryBuilder:
    """
    Builds INSERT, UPDATE, UPSERT, SELECT and DELETE statements for one table.

    Pure: holds no connection and caches nothing, every call recomputes the
    statement from the schema.
    """

    def __init__(self, table_name: str, schema: RecordSchema):
        if not table_name:
            raise MalformedQueryError("table name must not be empty")
        self.table_name = table_name
        self.schema = schema

    @property
    def table(self) -> sql.Identifier:
        return sql.Identifier(self.table_name)

    @property
    def identity(self) -> sql.Identifier:
        return sql.Identifier(IDENTITY_FIELD)

    def _where_id(self) -> sql.Composed:
        return sql.SQL("WHERE {} = {}").format(self.identity, sql.Placeholder(IDENTITY_FIELD))

    # -------------------------------------------------------------------------
    # Field filtering
    # -------------------------------------------------------------------------

    def included_fields(self) -> list[FieldSpec]:
        """Fields without the ignore marker, in declaration order."""
        return [f for f in self.schema.fields if not f.ignored]

    def insert_columns(self) -> list[str]:
        names = _names(self.included_fields())
        if self.schema.identity is IdentityPolicy.SERVER_GENERATED:
            names = [n for n in names if n != IDENTITY_FIELD]
        return names

    def update_columns(self) -> list[str]:
        return [n for n in _names(self.included_fields()) if n != IDENTITY_FIELD]

    def select_columns(self) -> list[str]:
        return self.schema.field_names

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def insert(self) -> Statement:
        columns = self.insert_columns()
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({})").format(
            self.table, _columns(columns), _placeholders(columns)
        )
        return Statement(query, tuple(columns))

    def update(self) -> Statement:
        columns = self.update_columns()
        query = sql.SQL("UPDATE {} SET {} {}").format(
            self.table, _assignments(columns), self._where_id()
        )
        return Statement(query, _unique(columns, [IDENTITY_FIELD]))

    def upsert(self) -> Statement:
        """
        Update the row with the given Id if it exists, insert it otherwise.

        The existence check takes a row lock (FOR UPDATE); run the statement
        in a SERIALIZABLE transaction to also guard against a concurrent
        insert of the same Id.
        """
        update_columns = self.update_columns()
        insert_columns = self.insert_columns()
        query = sql.SQL(
            "WITH existing AS ("
            "SELECT {id} FROM {table} {where} FOR UPDATE"
            "), updated AS ("
            "UPDATE {table} SET {assignments} WHERE {id} IN (SELECT {id} FROM existing)"
            ") "
            "INSERT INTO {table} ({columns}) SELECT {values} "
            "WHERE NOT EXISTS (SELECT 1 FROM existing)"
        ).format(
            id=self.identity,
            table=self.table,
            where=self._where_id(),
            assignments=_assignments(update_columns),
            columns=_columns(insert_columns),
            values=_placeholders(insert_columns),
        )
        return Statement(query, _unique([IDENTITY_FIELD], update_columns, insert_columns))

    def select_all(self) -> Statement:
        query = sql.SQL("SELECT {} FROM {}").format(
            _columns(self.select_columns()), self.table
        )
        return Statement(query, ())

    def select_by_id(self) -> Statement:
        query = sql.SQL("SELECT {} FROM {} {}").format(
            _columns(self.select_columns()), self.table, self._where_id()
        )
        return Statement(query, (IDENTITY_FIELD,))

    def delete_by_id(self) -> Statement:
        query = sql.SQL("DELETE FROM {} {}").format(self.table, self._where_id())
        return Statement(query, (IDENTITY_FIELD,))
