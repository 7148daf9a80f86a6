"""
Unit tests for QueryBuilder.

Run with: pytest src/genrepo/query_test.py -v
"""

import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import pytest

from genrepo.errors import MalformedQueryError
from genrepo.query import QueryBuilder
from genrepo.schema import describe, ignored
from genrepo.user import User


@dataclass
class Account:
    Id: int
    Email: str
    CreatedAt: Optional[datetime] = ignored(default=None)
    Nickname: Optional[str] = None


@dataclass
class Slug:
    Id: str
    Title: str


@dataclass
class Audited:
    Name: str
    Id: uuid.UUID
    UpdatedBy: str = ignored(default="system")
    Score: int = 0


RECORD_TYPES = [User, Account, Slug, Audited]


def builder(record_type, table: str = "Things") -> QueryBuilder:
    return QueryBuilder(table, describe(record_type))


def insert_lists(text: str) -> tuple[list[str], list[str]]:
    match = re.fullmatch(r'INSERT INTO "\w+" \((.*)\) VALUES \((.*)\)', text)
    assert match, text
    columns = [c.strip().strip('"') for c in match.group(1).split(",")]
    values = [v.strip() for v in match.group(2).split(",")]
    return columns, values


class TestInsert:
    """Tests for QueryBuilder.insert()"""

    def test_user_insert(self):
        statement = builder(User, "Users").insert()

        assert statement.as_string() == (
            'INSERT INTO "Users" ("Id", "FirstName", "LastName") '
            "VALUES (%(Id)s, %(FirstName)s, %(LastName)s)"
        )
        assert statement.params == ("Id", "FirstName", "LastName")

    @pytest.mark.parametrize("record_type,has_id", [
        (User, True),
        (Slug, True),
        (Audited, True),
        (Account, False),
    ])
    def test_identity_inclusion(self, record_type, has_id):
        columns, _ = insert_lists(builder(record_type).insert().as_string())

        assert ("Id" in columns) is has_id

    def test_server_generated_identity_and_ignored_fields_left_out(self):
        statement = builder(Account, "Accounts").insert()

        assert statement.as_string() == (
            'INSERT INTO "Accounts" ("Email", "Nickname") VALUES (%(Email)s, %(Nickname)s)'
        )

    @pytest.mark.parametrize("record_type", RECORD_TYPES)
    def test_columns_match_placeholders(self, record_type):
        statement = builder(record_type).insert()
        columns, values = insert_lists(statement.as_string())

        assert len(columns) == len(values)
        assert values == [f"%({c})s" for c in columns]
        assert list(statement.params) == columns

    def test_declaration_order_kept(self):
        columns, _ = insert_lists(builder(Audited).insert().as_string())

        assert columns == ["Name", "Id", "Score"]


class TestUpdate:
    """Tests for QueryBuilder.update()"""

    def test_user_update(self):
        statement = builder(User, "Users").update()

        assert statement.as_string() == (
            'UPDATE "Users" SET "FirstName" = %(FirstName)s, "LastName" = %(LastName)s '
            'WHERE "Id" = %(Id)s'
        )
        assert statement.params == ("FirstName", "LastName", "Id")

    @pytest.mark.parametrize("record_type", RECORD_TYPES)
    def test_single_identity_predicate(self, record_type):
        text = builder(record_type).update().as_string()

        assert text.count('WHERE "Id" = %(Id)s') == 1
        assert text.endswith('WHERE "Id" = %(Id)s')
        assert not re.search(r",\s*WHERE", text)
        assert '"Id" = %(Id)s,' not in text

    def test_ignored_fields_not_set(self):
        text = builder(Account).update().as_string()

        assert "CreatedAt" not in text
        assert '"Email" = %(Email)s, "Nickname" = %(Nickname)s' in text


class TestUpsert:
    """Tests for QueryBuilder.upsert()"""

    def test_user_upsert(self):
        text = builder(User, "Users").upsert().as_string()

        assert text.startswith(
            'WITH existing AS (SELECT "Id" FROM "Users" WHERE "Id" = %(Id)s FOR UPDATE)'
        )
        assert (
            'UPDATE "Users" SET "FirstName" = %(FirstName)s, "LastName" = %(LastName)s '
            'WHERE "Id" IN (SELECT "Id" FROM existing)'
        ) in text
        assert (
            'INSERT INTO "Users" ("Id", "FirstName", "LastName") '
            "SELECT %(Id)s, %(FirstName)s, %(LastName)s "
            "WHERE NOT EXISTS (SELECT 1 FROM existing)"
        ) in text

    def test_server_generated_identity_not_inserted(self):
        text = builder(Account, "Accounts").upsert().as_string()

        assert 'INSERT INTO "Accounts" ("Email", "Nickname") SELECT %(Email)s, %(Nickname)s' in text

    @pytest.mark.parametrize("record_type", RECORD_TYPES)
    def test_params_unique_and_include_identity(self, record_type):
        params = builder(record_type).upsert().params

        assert params[0] == "Id"
        assert len(params) == len(set(params))

    @pytest.mark.parametrize("record_type", RECORD_TYPES)
    def test_balanced_parentheses(self, record_type):
        text = builder(record_type).upsert().as_string()

        assert text.count("(") == text.count(")")


class TestFixedShapes:
    """Tests for select_all(), select_by_id() and delete_by_id()"""

    def test_select_all(self):
        statement = builder(User, "Users").select_all()

        assert statement.as_string() == 'SELECT "Id", "FirstName", "LastName" FROM "Users"'
        assert statement.params == ()

    def test_select_all_reads_ignored_fields(self):
        text = builder(Account, "Accounts").select_all().as_string()

        assert '"CreatedAt"' in text

    def test_select_by_id(self):
        statement = builder(User, "Users").select_by_id()

        assert statement.as_string() == (
            'SELECT "Id", "FirstName", "LastName" FROM "Users" WHERE "Id" = %(Id)s'
        )
        assert statement.params == ("Id",)

    def test_delete_by_id(self):
        statement = builder(User, "Users").delete_by_id()

        assert statement.as_string() == 'DELETE FROM "Users" WHERE "Id" = %(Id)s'
        assert statement.params == ("Id",)


class TestIdentifiers:
    """Identifiers are quoted, never spliced raw."""

    def test_table_name_is_quoted(self):
        text = builder(User, 'Users"; DROP TABLE x; --').delete_by_id().as_string()

        assert text == 'DELETE FROM "Users""; DROP TABLE x; --" WHERE "Id" = %(Id)s'

    def test_empty_table_name_rejected(self):
        with pytest.raises(MalformedQueryError):
            builder(User, "")

    def test_statements_recomputed_per_call(self):
        queries = builder(User)

        assert queries.insert() is not queries.insert()
        assert queries.insert() == queries.insert()
