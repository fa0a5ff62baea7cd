"""Canonical schema model, validation and schema exports."""

from schema.main import metadata_to_schema, read_only_sqlite, sqlite_to_schema
from schema.prisma_export import schema_to_prisma
from schema.serialization import (
    schema_from_document,
    schema_from_json,
    schema_to_document,
    schema_to_json,
)
from schema.sqlalchemy_export import schema_to_sqlalchemy
from schema.types import (
    CascadeAction,
    Column,
    DataType,
    Index,
    IndexMethod,
    Position,
    Reference,
    Schema,
    Table,
)
from schema.validation import ValidationResult, validate_schema

__all__ = [
    "CascadeAction",
    "Column",
    "DataType",
    "Index",
    "IndexMethod",
    "Position",
    "Reference",
    "Schema",
    "Table",
    "ValidationResult",
    "metadata_to_schema",
    "read_only_sqlite",
    "schema_from_document",
    "schema_from_json",
    "schema_to_document",
    "schema_to_json",
    "schema_to_prisma",
    "schema_to_sqlalchemy",
    "sqlite_to_schema",
    "validate_schema",
]
