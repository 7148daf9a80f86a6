import logging
from typing import Any, Generic, Iterable, List, Optional, TypeVar

from psycopg import IsolationLevel

from genrepo import db
from genrepo.errors import MalformedQueryError, NotFoundError
from genrepo.query import QueryBuilder, Statement
from genrepo.schema import IDENTITY_FIELD, describe

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GenericRepository(Generic[T]):
    """
    CRUD repository for any record type bound to a single table.
    Generates its SQL from the record type's fields on every call and uses
    one connection per operation.

    Bind the record type per instance or on a subclass:

        class UserRepository(GenericRepository[User]):
            record_type = User

        users = UserRepository("Users")
    """

    record_type: Optional[type] = None

    def __init__(self, table_name: str, record_type: Optional[type] = None):
        record_type = record_type or self.record_type
        if record_type is None:
            raise MalformedQueryError(f"no record type bound to table {table_name!r}")

        self.table_name = table_name
        self.record_type = record_type
        self.schema = describe(record_type)
        self.schema.validate()
        self.queries = QueryBuilder(table_name, self.schema)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.table_name!r}, {self.record_type.__name__})"

    def _bind(self, statement: Statement, record: Any) -> dict[str, Any]:
        values = self.schema.to_params(record)
        return {name: values[name] for name in statement.params}

    def _log(self, operation: str, statement: Statement) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("%s %s: %s", self.table_name, operation, statement.as_string())

    async def get_all(self) -> List[T]:
        """Fetch every row of the table."""
        statement = self.queries.select_all()
        self._log("get_all", statement)
        rows = await db.fetch_all(statement.sql)
        return [self.schema.to_record(row) for row in rows]

    async def get(self, id) -> T:
        """
        Fetch the row with the given identity.

        Raises:
            NotFoundError: if no row has this Id
        """
        statement = self.queries.select_by_id()
        self._log("get", statement)
        row = await db.fetch_one(statement.sql, {IDENTITY_FIELD: id})
        if row is None:
            raise NotFoundError(self.table_name, id)
        return self.schema.to_record(row)

    async def insert(self, record: T) -> None:
        """Insert one row. Constraint violations propagate from psycopg."""
        statement = self.queries.insert()
        self._log("insert", statement)
        await db.execute(statement.sql, self._bind(statement, record))

    async def update(self, record: T) -> None:
        """
        Update the row whose Id matches the record's.

        Succeeds silently when no row matches.
        """
        statement = self.queries.update()
        self._log("update", statement)
        count = await db.execute(statement.sql, self._bind(statement, record))
        if count == 0:
            logger.debug("%s update matched no row for id %s", self.table_name, record.Id)

    async def save(self, record: T, upsert: bool = False) -> None:
        """
        Persist a record.

        With upsert=False this is insert(). With upsert=True the row is
        updated when its Id exists and inserted otherwise, in one statement
        run under SERIALIZABLE isolation.
        """
        if not upsert:
            await self.insert(record)
            return

        statement = self.queries.upsert()
        self._log("upsert", statement)
        await db.execute(
            statement.sql,
            self._bind(statement, record),
            isolation_level=IsolationLevel.SERIALIZABLE,
        )

    async def save_range(self, records: Iterable[T]) -> int:
        """
        Insert many records over one connection.

        Returns:
            Number of rows inserted
        """
        records = list(records)
        if not records:
            return 0

        statement = self.queries.insert()
        self._log("save_range", statement)
        inserted = await db.execute_many(
            statement.sql, [self._bind(statement, r) for r in records]
        )
        logger.info("Inserted %d rows into %s", inserted, self.table_name)
        return inserted

    async def delete_row(self, id) -> None:
        """Delete the row with the given identity, if any."""
        statement = self.queries.delete_by_id()
        self._log("delete_row", statement)
        count = await db.execute(statement.sql, {IDENTITY_FIELD: id})
        if count == 0:
            logger.debug("%s delete matched no row for id %s", self.table_name, id)
