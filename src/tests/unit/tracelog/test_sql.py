"""Unit tests for SQL statement classification."""

import pytest

from tracelog.sql import SQLOperation, classify, extract_table_name, parse_operation


class TestParseOperation:
    """Tests for operation detection."""

    @pytest.mark.parametrize(
        "statement,expected",
        [
            ("SELECT 1", SQLOperation.SELECT),
            ("select * from users", SQLOperation.SELECT),
            ("  \n\tSELECT id FROM t", SQLOperation.SELECT),
            ("INSERT INTO t VALUES (1)", SQLOperation.INSERT),
            ("Update t SET a = 1", SQLOperation.UPDATE),
            ("delete from t", SQLOperation.DELETE),
            ("CREATE TABLE t (id int)", SQLOperation.OTHER),
            ("WITH x AS (SELECT 1) SELECT * FROM x", SQLOperation.OTHER),
            ("", SQLOperation.OTHER),
        ],
    )
    def test_operation(self, statement, expected) -> None:
        assert parse_operation(statement) == expected


class TestClassify:
    """Tests for operation and table extraction."""

    def test_select(self) -> None:
        assert classify("SELECT * FROM users WHERE id=1") == (SQLOperation.SELECT, "users")

    def test_insert_double_quoted(self) -> None:
        assert classify('INSERT INTO "orders" (a) VALUES (1)') == (
            SQLOperation.INSERT,
            "orders",
        )

    def test_update_backticks(self) -> None:
        assert classify("UPDATE `accounts` SET balance = 0") == (
            SQLOperation.UPDATE,
            "accounts",
        )

    def test_delete(self) -> None:
        assert classify('DELETE FROM "sessions" WHERE expired') == (
            SQLOperation.DELETE,
            "sessions",
        )

    def test_lowercase_keywords(self) -> None:
        assert classify("select id from items") == (SQLOperation.SELECT, "items")

    def test_garbage(self) -> None:
        assert classify("garbage;;;") == (SQLOperation.OTHER, "")

    def test_select_without_from(self) -> None:
        assert classify("SELECT 1") == (SQLOperation.SELECT, "")

    def test_join_takes_first_table(self) -> None:
        statement = "SELECT u.id FROM users u JOIN orders o ON o.user_id = u.id"
        assert classify(statement) == (SQLOperation.SELECT, "users")

    def test_subquery_uses_first_identifier_after_from(self) -> None:
        operation, table = classify("SELECT * FROM (SELECT id FROM users) AS sub")
        assert operation == SQLOperation.SELECT
        assert table == "users"

    def test_schema_qualified_name(self) -> None:
        assert classify("SELECT * FROM public.users") == (SQLOperation.SELECT, "public")

    def test_column_named_like_keyword(self) -> None:
        assert classify("SELECT date_from FROM bookings") == (
            SQLOperation.SELECT,
            "bookings",
        )

    def test_other_has_no_table(self) -> None:
        assert classify("DROP TABLE users") == (SQLOperation.OTHER, "")

    def test_non_string_input(self) -> None:
        assert classify(None) == (SQLOperation.OTHER, "")  # type: ignore[arg-type]

    def test_extract_table_name_other(self) -> None:
        assert extract_table_name("SELECT * FROM users", SQLOperation.OTHER) == ""
