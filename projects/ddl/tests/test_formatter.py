"""Tests for SQL formatting, minifying and checking."""

import pytest

from ddl.formatter import MAX_INPUT_LENGTH, check_sql, format_sql, minify_sql


def test_format_select() -> None:
    """Test clause breaks, select list breaks and BETWEEN handling."""
    sql = "select id, title from posts where a = 1 and b between 1 and 5 order by id"

    assert format_sql(sql) == (
        "SELECT id,\n"
        "  title\n"
        "FROM posts\n"
        "WHERE a = 1\n"
        "  AND b BETWEEN 1 AND 5\n"
        "ORDER BY id;"
    )


def test_format_create_table() -> None:
    """Test that table definitions get one line per column."""
    sql = "create table t (id int primary key, title varchar(50) not null, price decimal(10, 2))"

    assert format_sql(sql, indent_size=4) == (
        "CREATE TABLE t (\n"
        "    id INT PRIMARY KEY,\n"
        "    title VARCHAR(50) NOT NULL,\n"
        "    price DECIMAL(10, 2)\n"
        ");"
    )


def test_format_join_stays_on_one_line() -> None:
    """Test that join modifiers do not split from their JOIN."""
    sql = "SELECT a FROM x LEFT JOIN y ON x.id = y.x_id"

    assert format_sql(sql) == "SELECT a\nFROM x\nLEFT JOIN y ON x.id = y.x_id;"


def test_format_keeps_case_when_asked() -> None:
    """Test that keywords keep their spelling without upper-casing."""
    assert format_sql("select 1 from t", uppercase=False) == "select 1\nfrom t;"


def test_format_keeps_literals_and_drops_comments() -> None:
    """Test that strings are verbatim and comments are removed."""
    sql = "select 'select from where' -- note\nfrom t"

    assert format_sql(sql) == "SELECT 'select from where'\nFROM t;"


def test_lines_between_statements() -> None:
    """Test the blank line count between statements."""
    sql = "drop table a; drop table b;"

    assert format_sql(sql) == "DROP TABLE a;\n\nDROP TABLE b;"
    assert format_sql(sql, lines_between=0) == "DROP TABLE a;\nDROP TABLE b;"


def test_format_empty() -> None:
    """Test that empty input formats to an empty string."""
    assert format_sql("  ;  ") == ""


def test_minify() -> None:
    """Test collapsing statements onto one line."""
    sql = "SELECT *\n  FROM t -- trailing\n;\n\n/* next */ DELETE FROM t WHERE id = 1"

    assert minify_sql(sql) == "SELECT * FROM t; DELETE FROM t WHERE id = 1;"


def test_check_valid_sql() -> None:
    """Test that well-formed SQL has no problems."""
    assert check_sql("CREATE TABLE t (id INT);") == []


@pytest.mark.parametrize(
    ("sql", "message"),
    [
        ("", "SQL is empty"),
        ("hello world", "Not a SQL statement"),
        ("SELECT (1", "Unbalanced parentheses: 1 opening, 0 closing"),
        ("SELECT 'abc", "Unterminated quoted text starting at offset 7"),
        ("x" * (MAX_INPUT_LENGTH + 1), "SQL is too long"),
    ],
)
def test_check_problems(sql: str, message: str) -> None:
    """Test each kind of reported problem."""
    assert any(problem.startswith(message) for problem in check_sql(sql))
