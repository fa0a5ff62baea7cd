"""Main schema comparison functionality."""

import json
from collections.abc import Iterable
from logging import getLogger
from pathlib import Path
from typing import Any, NamedTuple

from jinja2 import Environment, FileSystemLoader, select_autoescape
from jinja2.environment import TemplateStream
from schema.serialization import column_to_document, index_to_document, table_to_document
from schema.types import Column, Index, Reference, Schema, Table, render_type

from compare.types import (
    AutoIncrementChanged,
    ColumnAttributeChange,
    ColumnChange,
    ColumnType,
    CommentChanged,
    DefaultChanged,
    IndexChange,
    IndexChangeKind,
    NullabilityChanged,
    PrimaryKeyChanged,
    ReferenceActionsChanged,
    ReferenceChanged,
    SchemaDiff,
    TableChange,
    TypeChanged,
    UniqueChanged,
)

logger = getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"


class ChangeCounts(NamedTuple):
    """Number of changed objects per category."""

    tables_added: int = 0
    tables_removed: int = 0
    tables_modified: int = 0
    columns_added: int = 0
    columns_removed: int = 0
    columns_modified: int = 0
    indexes_added: int = 0
    indexes_removed: int = 0
    indexes_modified: int = 0

    @property
    def total(self) -> int:
        """Total number of changed objects, modified tables not counted twice."""
        return sum(self) - self.tables_modified


def by_name[T: (Table, Column, Index)](items: Iterable[T]) -> dict[str, T]:
    """Index named objects by their case-sensitive name."""
    return {item.name: item for item in items}


def compare_columns(old: Column, new: Column) -> tuple[ColumnAttributeChange, ...]:
    """Record every attribute that differs between two versions of a column."""
    changes: list[ColumnAttributeChange] = []
    if (old_type := ColumnType.of(old)) != (new_type := ColumnType.of(new)):
        changes.append(TypeChanged(old_type, new_type))
    if old.primary_key != new.primary_key:
        changes.append(PrimaryKeyChanged(old.primary_key, new.primary_key))
    if old.nullable != new.nullable:
        changes.append(NullabilityChanged(old.nullable, new.nullable))
    if old.default != new.default:
        changes.append(DefaultChanged(old.default, new.default))
    if old.unique != new.unique:
        changes.append(UniqueChanged(old.unique, new.unique))
    if old.auto_increment != new.auto_increment:
        changes.append(AutoIncrementChanged(old.auto_increment, new.auto_increment))

    old_target = old.references.target if old.references else None
    new_target = new.references.target if new.references else None
    if old_target != new_target:
        changes.append(ReferenceChanged(old.references, new.references))
    elif old.references and new.references and old.references != new.references:
        changes.append(ReferenceActionsChanged(old.references, new.references))

    if (old.comment or None) != (new.comment or None):
        changes.append(CommentChanged(old.comment, new.comment))
    return tuple(changes)


def compare_indexes(old: Index, new: Index) -> tuple[IndexChangeKind, ...]:
    """Classify how an index definition changed."""
    kinds: list[IndexChangeKind] = []
    if old.columns != new.columns:
        kinds.append(IndexChangeKind.COLUMNS)
    if old.method != new.method:
        kinds.append(IndexChangeKind.METHOD)
    if old.unique != new.unique:
        kinds.append(IndexChangeKind.UNIQUE)
    if (old.where or None) != (new.where or None):
        kinds.append(IndexChangeKind.WHERE)
    return tuple(kinds)


def compare_tables(old: Table, new: Table) -> TableChange:
    """Compare the columns and indexes of a table present in both schemas."""
    old_columns = by_name(old.columns)
    new_columns = by_name(new.columns)
    old_indexes = by_name(old.indexes)
    new_indexes = by_name(new.indexes)

    return TableChange(
        old=old,
        new=new,
        columns_added=tuple(c for c in new.columns if c.name not in old_columns),
        columns_removed=tuple(c for c in old.columns if c.name not in new_columns),
        columns_modified=tuple(
            ColumnChange(old_columns[column.name], column, changes)
            for column in new.columns
            if column.name in old_columns
            and (changes := compare_columns(old_columns[column.name], column))
        ),
        indexes_added=tuple(i for i in new.indexes if i.name not in old_indexes),
        indexes_removed=tuple(i for i in old.indexes if i.name not in new_indexes),
        indexes_modified=tuple(
            IndexChange(old_indexes[index.name], index, kinds)
            for index in new.indexes
            if index.name in old_indexes
            and (kinds := compare_indexes(old_indexes[index.name], index))
        ),
    )


def compare_schemas(old: Schema | None, new: Schema | None) -> SchemaDiff:
    """Compute the structural delta between two schemas.

    Tables, columns and indexes are matched by case-sensitive name, so a rename
    shows up as a removal plus an addition. Missing or malformed input yields
    an empty diff.
    """
    if not isinstance(old, Schema) or not isinstance(new, Schema):
        logger.error(
            "Cannot compare %s with %s, returning an empty diff",
            type(old).__name__,
            type(new).__name__,
        )
        return SchemaDiff()

    old_tables = by_name(old.tables)
    new_tables = by_name(new.tables)
    changes = (
        compare_tables(old_tables[table.name], table)
        for table in new.tables
        if table.name in old_tables
    )
    return SchemaDiff(
        tables_added=tuple(t for t in new.tables if t.name not in old_tables),
        tables_removed=tuple(t for t in old.tables if t.name not in new_tables),
        tables_modified=tuple(change for change in changes if change.has_changes),
    )


def _flag(value: bool) -> str:  # noqa: FBT001
    return "yes" if value else "no"


def _reference(reference: Reference | None) -> str:
    if reference is None:
        return "none"
    return f"{reference.table}.{reference.column}"


def describe_change(change: ColumnAttributeChange) -> str:
    """Render a column attribute change for people."""
    match change:
        case TypeChanged(old, new):
            return f"type {old} -> {new}"
        case PrimaryKeyChanged(_, new):
            return "added to primary key" if new else "removed from primary key"
        case NullabilityChanged(_, new):
            return "NOT NULL -> nullable" if new else "nullable -> NOT NULL"
        case DefaultChanged(old, new):
            return f"default {old or 'none'} -> {new or 'none'}"
        case UniqueChanged(old, new):
            return f"unique {_flag(old)} -> {_flag(new)}"
        case AutoIncrementChanged(old, new):
            return f"auto increment {_flag(old)} -> {_flag(new)}"
        case ReferenceChanged(old, new):
            return f"references {_reference(old)} -> {_reference(new)}"
        case ReferenceActionsChanged(old, new):
            return (
                f"ON DELETE {old.on_delete} -> {new.on_delete}, "
                f"ON UPDATE {old.on_update} -> {new.on_update}"
            )
        case CommentChanged(old, new):
            return f"comment {old or 'none'} -> {new or 'none'}"


def describe_column(column: Column) -> str:
    """Render a column definition in one line."""
    parts = [column.name, render_type(column)]
    if column.primary_key:
        parts.append("PRIMARY KEY")
    if not column.nullable:
        parts.append("NOT NULL")
    if column.unique and not column.primary_key:
        parts.append("UNIQUE")
    if column.references:
        parts.append(f"-> {_reference(column.references)}")
    return " ".join(parts)


def describe_index(index: Index) -> str:
    """Render an index definition in one line."""
    unique = "UNIQUE " if index.unique else ""
    where = f" WHERE {index.where}" if index.where else ""
    return f"{unique}{index.name} ({', '.join(index.columns)}) {index.method}{where}"


def diff_summary(diff: SchemaDiff) -> list[str]:
    """Render a diff as indented text lines.

    Added objects are prefixed with ``+``, removed ones with ``-`` and
    modified ones with ``~``.
    """
    lines = [f"+ table {table.name}" for table in diff.tables_added]
    lines.extend(f"- table {table.name}" for table in diff.tables_removed)
    for change in diff.tables_modified:
        lines.append(f"~ table {change.name}")
        lines.extend(f"    + column {describe_column(c)}" for c in change.columns_added)
        lines.extend(f"    - column {c.name}" for c in change.columns_removed)
        lines.extend(
            f"    ~ column {column.name}: "
            + "; ".join(describe_change(detail) for detail in column.changes)
            for column in change.columns_modified
        )
        lines.extend(f"    + index {describe_index(i)}" for i in change.indexes_added)
        lines.extend(f"    - index {i.name}" for i in change.indexes_removed)
        lines.extend(
            f"    ~ index {index.name}: {', '.join(index.kinds)}"
            for index in change.indexes_modified
        )
    return lines


def count_changes(diff: SchemaDiff) -> ChangeCounts:
    """Count added, removed and modified objects in a diff."""
    tables = diff.tables_modified
    return ChangeCounts(
        tables_added=len(diff.tables_added),
        tables_removed=len(diff.tables_removed),
        tables_modified=len(tables),
        columns_added=sum(len(change.columns_added) for change in tables),
        columns_removed=sum(len(change.columns_removed) for change in tables),
        columns_modified=sum(len(change.columns_modified) for change in tables),
        indexes_added=sum(len(change.indexes_added) for change in tables),
        indexes_removed=sum(len(change.indexes_removed) for change in tables),
        indexes_modified=sum(len(change.indexes_modified) for change in tables),
    )


def diff_to_summary(diff: SchemaDiff) -> list[dict[str, Any]]:
    """Convert a diff to summary rows with change counts.

    Returns a list of dictionaries suitable for terminal tables. Each row has
    the table name, the change type (``added``, ``removed`` or ``modified``)
    and the number of affected columns and indexes.
    """
    rows = [
        {
            "name": table.name,
            "change_type": "added",
            "columns": len(table.columns),
            "indexes": len(table.indexes),
        }
        for table in diff.tables_added
    ]
    rows.extend(
        {
            "name": table.name,
            "change_type": "removed",
            "columns": len(table.columns),
            "indexes": len(table.indexes),
        }
        for table in diff.tables_removed
    )
    rows.extend(
        {
            "name": change.name,
            "change_type": "modified",
            "columns": len(change.columns_added)
            + len(change.columns_removed)
            + len(change.columns_modified),
            "indexes": len(change.indexes_added)
            + len(change.indexes_removed)
            + len(change.indexes_modified),
        }
        for change in diff.tables_modified
    )
    return rows


def _change_value(value: object) -> object:
    match value:
        case ColumnType():
            return str(value)
        case Reference():
            return {
                "table": value.table,
                "column": value.column,
                "onDelete": value.on_delete.value,
                "onUpdate": value.on_update.value,
            }
        case _:
            return value


def diff_to_document(diff: SchemaDiff) -> dict[str, Any]:
    """Convert a diff into plain JSON-compatible data."""
    return {
        "hasChanges": diff.has_changes,
        "tablesAdded": [table_to_document(table) for table in diff.tables_added],
        "tablesRemoved": [table_to_document(table) for table in diff.tables_removed],
        "tablesModified": [
            {
                "tableName": change.name,
                "columnsAdded": [column_to_document(c) for c in change.columns_added],
                "columnsRemoved": [column_to_document(c) for c in change.columns_removed],
                "columnsModified": [
                    {
                        "columnName": column.name,
                        "changes": [
                            {
                                "type": detail.kind,
                                "oldValue": _change_value(detail.old),
                                "newValue": _change_value(detail.new),
                            }
                            for detail in column.changes
                        ],
                    }
                    for column in change.columns_modified
                ],
                "indexesAdded": [index_to_document(i) for i in change.indexes_added],
                "indexesRemoved": [index_to_document(i) for i in change.indexes_removed],
                "indexesModified": [
                    {
                        "indexName": index.name,
                        "changes": [kind.value for kind in index.kinds],
                        "old": index_to_document(index.old),
                        "new": index_to_document(index.new),
                    }
                    for index in change.indexes_modified
                ],
            }
            for change in diff.tables_modified
        ],
    }


def diff_to_json(diff: SchemaDiff, *, indent: int | None = 2) -> str:
    """Convert a diff to a JSON string."""
    return json.dumps(diff_to_document(diff), indent=indent, ensure_ascii=False)


def diff_to_html(diff: SchemaDiff, title: str = "Schema Comparison") -> TemplateStream:
    """Generate an HTML report from a diff."""
    env = Environment(
        loader=FileSystemLoader(TEMPLATE_DIR),
        autoescape=select_autoescape(),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["describe_change"] = describe_change
    env.filters["describe_column"] = describe_column
    env.filters["describe_index"] = describe_index
    template = env.get_template("report.html")

    return template.stream(
        title=title,
        diff=diff,
        counts=count_changes(diff),
        summary=diff_to_summary(diff),
    )
