"""JSON document format for schemas.

Keys use the camelCase names of the designer's document format so that
exported files can be exchanged with it unchanged.
"""

import json
from typing import Any, NotRequired, TypedDict

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


class ReferenceDocument(TypedDict):
    """Serialized foreign key target."""

    table: str
    column: str
    onDelete: str
    onUpdate: str


class ColumnDocument(TypedDict):
    """Serialized column."""

    id: str
    name: str
    type: str
    length: NotRequired[int]
    precision: NotRequired[int]
    scale: NotRequired[int]
    nullable: bool
    unique: bool
    primaryKey: bool
    autoIncrement: bool
    defaultValue: NotRequired[str]
    comment: NotRequired[str]
    references: NotRequired[ReferenceDocument]


class IndexDocument(TypedDict):
    """Serialized index."""

    id: str
    name: str
    columns: list[str]
    type: str
    unique: bool
    where: NotRequired[str]
    comment: NotRequired[str]


class TableDocument(TypedDict):
    """Serialized table."""

    id: str
    name: str
    columns: list[ColumnDocument]
    indexes: list[IndexDocument]
    position: dict[str, float]
    comment: NotRequired[str]


class SchemaDocument(TypedDict):
    """Serialized schema."""

    name: str
    description: NotRequired[str]
    tables: list[TableDocument]


def column_to_document(column: Column) -> ColumnDocument:
    """Convert a column into plain JSON-compatible data."""
    document: ColumnDocument = {
        "id": column.id,
        "name": column.name,
        "type": column.type.value,
        "nullable": column.nullable,
        "unique": column.unique,
        "primaryKey": column.primary_key,
        "autoIncrement": column.auto_increment,
    }
    if column.length is not None:
        document["length"] = column.length
    if column.precision is not None:
        document["precision"] = column.precision
    if column.scale is not None:
        document["scale"] = column.scale
    if column.default is not None:
        document["defaultValue"] = column.default
    if column.comment:
        document["comment"] = column.comment
    if (reference := column.references) is not None:
        document["references"] = {
            "table": reference.table,
            "column": reference.column,
            "onDelete": reference.on_delete.value,
            "onUpdate": reference.on_update.value,
        }
    return document


def index_to_document(index: Index) -> IndexDocument:
    """Convert an index into plain JSON-compatible data."""
    document: IndexDocument = {
        "id": index.id,
        "name": index.name,
        "columns": list(index.columns),
        "type": index.method.value,
        "unique": index.unique,
    }
    if index.where:
        document["where"] = index.where
    if index.comment:
        document["comment"] = index.comment
    return document


def table_to_document(table: Table) -> TableDocument:
    """Convert a table into plain JSON-compatible data."""
    document: TableDocument = {
        "id": table.id,
        "name": table.name,
        "columns": [column_to_document(column) for column in table.columns],
        "indexes": [index_to_document(index) for index in table.indexes],
        "position": {"x": table.position.x, "y": table.position.y},
    }
    if table.comment:
        document["comment"] = table.comment
    return document


def schema_to_document(schema: Schema) -> SchemaDocument:
    """Convert a schema into plain JSON-compatible data."""
    document: SchemaDocument = {
        "name": schema.name,
        "tables": [table_to_document(table) for table in schema.tables],
    }
    if schema.description:
        document["description"] = schema.description
    return document


def _reference_from_document(data: dict[str, Any]) -> Reference:
    return Reference(
        table=data["table"],
        column=data["column"],
        on_delete=CascadeAction(data.get("onDelete") or CascadeAction.NO_ACTION),
        on_update=CascadeAction(data.get("onUpdate") or CascadeAction.NO_ACTION),
    )


def _column_from_document(data: dict[str, Any]) -> Column:
    extra = {"id": data["id"]} if data.get("id") else {}
    return Column(
        name=data["name"],
        type=DataType(data["type"]),
        length=data.get("length"),
        precision=data.get("precision"),
        scale=data.get("scale"),
        nullable=data.get("nullable", True),
        unique=data.get("unique", False),
        primary_key=data.get("primaryKey", False),
        auto_increment=data.get("autoIncrement", False),
        default=data.get("defaultValue"),
        comment=data.get("comment") or None,
        references=(
            _reference_from_document(data["references"])
            if data.get("references")
            else None
        ),
        **extra,
    )


def _index_from_document(data: dict[str, Any]) -> Index:
    extra = {"id": data["id"]} if data.get("id") else {}
    return Index(
        name=data["name"],
        columns=tuple(data["columns"]),
        method=IndexMethod(data.get("type") or IndexMethod.BTREE),
        unique=data.get("unique", False),
        where=data.get("where") or None,
        comment=data.get("comment") or None,
        **extra,
    )


def _table_from_document(data: dict[str, Any]) -> Table:
    extra = {"id": data["id"]} if data.get("id") else {}
    position = data.get("position") or {}
    return Table(
        name=data["name"],
        columns=tuple(_column_from_document(column) for column in data["columns"]),
        indexes=tuple(_index_from_document(index) for index in data.get("indexes", [])),
        position=Position(position.get("x", 0.0), position.get("y", 0.0)),
        comment=data.get("comment") or None,
        **extra,
    )


def schema_from_document(data: dict[str, Any]) -> Schema:
    """Build a schema from plain JSON data.

    Raises:
        ValueError: If a required key is missing or an enum value is unknown.

    """
    try:
        return Schema(
            name=data.get("name") or "Untitled Schema",
            description=data.get("description") or None,
            tables=tuple(_table_from_document(table) for table in data["tables"]),
        )
    except KeyError as e:
        msg = f"Schema document is missing required key {e}"
        raise ValueError(msg) from e


def schema_to_json(schema: Schema, *, indent: int | None = 2) -> str:
    """Serialize a schema to a JSON string."""
    return json.dumps(schema_to_document(schema), indent=indent, ensure_ascii=False)


def schema_from_json(text: str) -> Schema:
    """Deserialize a schema from a JSON string."""
    data = json.loads(text)
    if not isinstance(data, dict):
        msg = "Schema document must be a JSON object"
        raise ValueError(msg)
    return schema_from_document(data)
