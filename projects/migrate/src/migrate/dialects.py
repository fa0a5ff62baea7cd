"""Dialect syntax tables for generated DDL.

Identifier quoting is delegated to SQLAlchemy's identifier preparers so that
embedded quote characters are escaped the same way the engines expect.
"""

from collections.abc import Mapping
from enum import StrEnum, auto
from re import fullmatch
from types import MappingProxyType
from typing import NamedTuple

from schema.types import INTEGER_TYPES, Column, DataType, IndexMethod, Table
from sqlalchemy.dialects import mysql, postgresql
from sqlalchemy.engine import Dialect as SQLDialect


class Dialect(StrEnum):
    """Supported target databases."""

    POSTGRESQL = auto()
    MYSQL = auto()


ALIASES = {
    "postgres": Dialect.POSTGRESQL,
    "pg": Dialect.POSTGRESQL,
    "mariadb": Dialect.MYSQL,
}


class DialectSyntax(NamedTuple):
    """Syntax fragments that differ between dialects."""

    title: str
    engine: SQLDialect
    begin: str
    types: Mapping[DataType, str]
    serial_types: Mapping[DataType, str]
    auto_increment: str | None
    index_methods: frozenset[IndexMethod]
    partial_indexes: bool

    @property
    def max_identifier_length(self) -> int:
        """Longest identifier the engine accepts."""
        return self.engine.max_identifier_length


POSTGRESQL_TYPES = MappingProxyType(
    {
        **{data_type: data_type.value for data_type in DataType},
        DataType.DOUBLE: "DOUBLE PRECISION",
        DataType.BLOB: "BYTEA",
        DataType.ARRAY: "TEXT[]",
    },
)

MYSQL_TYPES = MappingProxyType(
    {
        **{data_type: data_type.value for data_type in DataType},
        DataType.TIMESTAMPTZ: "TIMESTAMP",
        DataType.BYTEA: "BLOB",
        DataType.JSONB: "JSON",
        DataType.UUID: "CHAR(36)",
        DataType.INET: "VARCHAR(45)",
        DataType.CIDR: "VARCHAR(43)",
        DataType.ARRAY: "JSON",
        DataType.TSVECTOR: "TEXT",
    },
)

# Paramstyle "named" keeps the preparers from doubling percent signs
DIALECTS: Mapping[Dialect, DialectSyntax] = MappingProxyType(
    {
        Dialect.POSTGRESQL: DialectSyntax(
            title="PostgreSQL",
            engine=postgresql.dialect(paramstyle="named"),
            begin="BEGIN;",
            types=POSTGRESQL_TYPES,
            serial_types=MappingProxyType(
                {
                    DataType.SMALLINT: "SMALLSERIAL",
                    DataType.INTEGER: "SERIAL",
                    DataType.BIGINT: "BIGSERIAL",
                },
            ),
            auto_increment=None,
            index_methods=frozenset(IndexMethod),
            partial_indexes=True,
        ),
        Dialect.MYSQL: DialectSyntax(
            title="MySQL",
            engine=mysql.dialect(paramstyle="named"),
            begin="START TRANSACTION;",
            types=MYSQL_TYPES,
            serial_types=MappingProxyType({}),
            auto_increment="AUTO_INCREMENT",
            index_methods=frozenset({IndexMethod.BTREE, IndexMethod.HASH}),
            partial_indexes=False,
        ),
    },
)

RAW_DEFAULTS = frozenset(
    {
        "NULL",
        "TRUE",
        "FALSE",
        "CURRENT_TIMESTAMP",
        "CURRENT_DATE",
        "CURRENT_TIME",
        "LOCALTIMESTAMP",
    },
)


def parse_dialect(name: str) -> Dialect:
    """Resolve a dialect name or common alias.

    Raises:
        ValueError: If the name is not a supported dialect.

    """
    key = name.strip().lower()
    if key in ALIASES:
        return ALIASES[key]
    try:
        return Dialect(key)
    except ValueError as e:
        supported = ", ".join(dialect.value for dialect in Dialect)
        msg = f"Unsupported dialect {name!r}, expected one of: {supported}"
        raise ValueError(msg) from e


def quote(name: str, dialect: Dialect) -> str:
    """Quote an identifier, doubling embedded quote characters."""
    return DIALECTS[dialect].engine.identifier_preparer.quote_identifier(name)


def column_type(column: Column, dialect: Dialect) -> str:
    """Render the dialect type of a column with its size parameters."""
    rendered = DIALECTS[dialect].types[column.type]
    match column.type:
        case DataType.VARCHAR | DataType.CHAR if column.length is not None:
            return f"{rendered}({column.length})"
        case DataType.DECIMAL if column.precision is not None:
            return f"{rendered}({column.precision},{column.scale or 0})"
        case _:
            return rendered


def is_serial(table: Table, column: Column) -> bool:
    """Auto-increment is only promoted for a single-column primary key."""
    return (
        column.auto_increment
        and column.primary_key
        and column.type in INTEGER_TYPES
        and not table.has_composite_primary_key
    )


def format_default(value: str) -> str:
    """Render a default value as a SQL expression.

    Keywords, function calls, booleans and numbers are emitted as-is,
    everything else becomes a string literal with doubled single quotes.
    """
    text = value.strip()
    if text.upper() in RAW_DEFAULTS:
        return text.upper()
    if fullmatch(r"-?\d+(\.\d+)?", text):
        return text
    if fullmatch(r"[A-Za-z_][\w.]*\(.*\)", text):
        return text
    return "'" + text.replace("'", "''") + "'"


def sanitize_comment(text: str) -> str:
    """Make free text safe to emit after ``--``."""
    return " ".join(text.replace("--", " ").split())


def constraint_name(prefix: str, table: str, column: str, dialect: Dialect) -> str:
    """Name a single-column constraint, truncated to the identifier limit."""
    name = f"{prefix}_{table}_{column}"
    return name[: DIALECTS[dialect].max_identifier_length]
