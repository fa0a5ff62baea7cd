"""Apply and invert schema diffs on the canonical model.

Applying a diff and then its inverse restores every table, column and index of
the original schema. Tables re-added by the inverse are appended at the end;
column and index order follows the table version recorded in the diff.
"""

from collections.abc import Iterable, Sequence
from dataclasses import replace
from logging import getLogger

from schema.types import Column, Index, Schema, Table

from compare.types import (
    ColumnAttributeChange,
    ColumnChange,
    IndexChange,
    SchemaDiff,
    TableChange,
)

logger = getLogger(__name__)


def invert_change(change: ColumnAttributeChange) -> ColumnAttributeChange:
    """Swap the old and new values of an attribute change."""
    return type(change)(change.new, change.old)  # pyright: ignore[reportArgumentType]


def invert_table_change(change: TableChange) -> TableChange:
    """Build the change that undoes a table change."""
    return TableChange(
        old=change.new,
        new=change.old,
        columns_added=change.columns_removed,
        columns_removed=change.columns_added,
        columns_modified=tuple(
            ColumnChange(
                column.new,
                column.old,
                tuple(invert_change(detail) for detail in column.changes),
            )
            for column in change.columns_modified
        ),
        indexes_added=change.indexes_removed,
        indexes_removed=change.indexes_added,
        indexes_modified=tuple(
            IndexChange(index.new, index.old, index.kinds)
            for index in change.indexes_modified
        ),
    )


def invert_diff(diff: SchemaDiff) -> SchemaDiff:
    """Build the diff leading from the new schema back to the old one."""
    return SchemaDiff(
        tables_added=diff.tables_removed,
        tables_removed=diff.tables_added,
        tables_modified=tuple(invert_table_change(c) for c in diff.tables_modified),
    )


def merge_named[T: (Column, Index)](
    current: Sequence[T],
    removed: Iterable[T],
    replaced: Iterable[T],
    added: Iterable[T],
    order: Sequence[T],
) -> tuple[T, ...]:
    """Remove, replace and add named items, then sort them by a reference order.

    Items missing from the reference order keep their relative position after
    the ordered ones.
    """
    removed_names = {item.name for item in removed}
    replacements = {item.name: item for item in replaced}
    merged = [
        replacements.get(item.name, item)
        for item in current
        if item.name not in removed_names
    ]
    merged.extend(added)
    positions = {item.name: position for position, item in enumerate(order)}
    return tuple(sorted(merged, key=lambda item: positions.get(item.name, len(order))))


def apply_table_change(table: Table, change: TableChange) -> Table:
    """Apply the column and index changes of one table."""
    return replace(
        table,
        columns=merge_named(
            table.columns,
            change.columns_removed,
            (column.new for column in change.columns_modified),
            change.columns_added,
            change.new.columns,
        ),
        indexes=merge_named(
            table.indexes,
            change.indexes_removed,
            (index.new for index in change.indexes_modified),
            change.indexes_added,
            change.new.indexes,
        ),
    )


def apply_diff(schema: Schema, diff: SchemaDiff) -> Schema:
    """Apply a diff to a schema, returning the changed copy."""
    removed = {table.name for table in diff.tables_removed}
    modified = {change.name: change for change in diff.tables_modified}
    tables = [
        apply_table_change(table, modified[table.name])
        if table.name in modified
        else table
        for table in schema.tables
        if table.name not in removed
    ]
    missing = modified.keys() - {table.name for table in tables}
    if missing:
        logger.warning("Diff modifies tables not in schema: %s", ", ".join(sorted(missing)))
    tables.extend(diff.tables_added)
    return replace(schema, tables=tuple(tables))


def revert_diff(schema: Schema, diff: SchemaDiff) -> Schema:
    """Undo a diff previously applied to a schema."""
    return apply_diff(schema, invert_diff(diff))
