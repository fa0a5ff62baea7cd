"""Forward and reverse DDL generation from schema diffs.

The ``down`` block is generated from the inverted diff, with modified tables
visited in reverse order, so both directions share the same statement ordering:

1. create added tables, their indexes, then their foreign keys
2. modify existing tables: drop affected foreign keys and indexes, add columns,
   alter columns, drop columns, create indexes, add foreign keys
3. drop removed tables, referencing tables first
"""

from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import UTC, datetime
from difflib import get_close_matches
from logging import getLogger
from typing import NamedTuple

from compare.apply import invert_diff
from compare.types import (
    AutoIncrementChanged,
    ColumnChange,
    CommentChanged,
    DefaultChanged,
    NullabilityChanged,
    ReferenceActionsChanged,
    ReferenceChanged,
    SchemaDiff,
    TableChange,
    TypeChanged,
    UniqueChanged,
)
from schema.types import Column, Index, IndexMethod, Table

from migrate.dialects import (
    DIALECTS,
    Dialect,
    column_type,
    constraint_name,
    format_default,
    is_serial,
    quote,
    sanitize_comment,
)

logger = getLogger(__name__)

STATEMENT_LIMIT = 100
RENAME_SIMILARITY = 0.6

# MySQL rewrites the whole column definition for these changes
MODIFY_CHANGES = (TypeChanged, NullabilityChanged, AutoIncrementChanged, DefaultChanged)


class Migration(NamedTuple):
    """Forward and reverse statements plus advisory warnings.

    Each entry is a complete statement, a comment line or a blank line.
    """

    up: tuple[str, ...] = ()
    down: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


class SectionTitles(NamedTuple):
    """Comment headings for the three parts of a migration block."""

    added: str
    modified: str
    removed: str


UP_TITLES = SectionTitles(
    added="Add new tables",
    modified="Modify existing tables",
    removed="Drop removed tables",
)
DOWN_TITLES = SectionTitles(
    added="Re-create dropped tables",
    modified="Revert table modifications",
    removed="Drop newly added tables",
)


def is_statement(line: str) -> bool:
    """Check whether a line is executable SQL rather than a comment or blank."""
    text = line.strip()
    return bool(text) and not text.startswith("--")


def reference_moved(change: ColumnChange) -> bool:
    """Check whether the foreign key constraint of a column must be rebuilt."""
    return any(
        isinstance(detail, ReferenceChanged | ReferenceActionsChanged)
        for detail in change.changes
    )


class StatementBuilder:
    """Render DDL statements for one dialect, collecting dialect warnings."""

    def __init__(self, dialect: Dialect) -> None:
        self.dialect = dialect
        self.syntax = DIALECTS[dialect]
        self.warnings: list[str] = []

    def quote(self, name: str) -> str:
        """Quote an identifier for this dialect."""
        return quote(name, self.dialect)

    def column_list(self, names: Iterable[str]) -> str:
        """Quote and join column names."""
        return ", ".join(self.quote(name) for name in names)

    def column_definition(self, table: Table, column: Column) -> str:
        """Render ``name type [AUTO_INCREMENT] [NOT NULL] [DEFAULT value]``."""
        serial = is_serial(table, column)
        serial_type = self.syntax.serial_types.get(column.type) if serial else None
        parts = [self.quote(column.name), serial_type or column_type(column, self.dialect)]
        if serial and self.syntax.auto_increment:
            parts.append(self.syntax.auto_increment)
        if not column.nullable or column.primary_key:
            parts.append("NOT NULL")
        if column.default is not None and serial_type is None:
            parts.append(f"DEFAULT {format_default(column.default)}")
        return " ".join(parts)

    def unique_name(self, table: str, column: str) -> str:
        """Name of the unique constraint of a single column."""
        return self.quote(constraint_name("uq", table, column, self.dialect))

    def foreign_key_name(self, table: str, column: str) -> str:
        """Name of the foreign key constraint of a column."""
        return self.quote(constraint_name("fk", table, column, self.dialect))

    def create_table(self, table: Table) -> list[str]:
        """Create a table with its primary key, unique constraints and indexes."""
        if not table.columns:
            self.warnings.append(f'Table "{table.name}" has no columns, skipping creation')
            return [f"-- Table {sanitize_comment(table.name)} has no columns, skipped"]

        definitions = [f"  {self.column_definition(table, c)}" for c in table.columns]
        if table.primary_keys:
            definitions.append(f"  PRIMARY KEY ({self.column_list(table.primary_keys)})")
        definitions.extend(
            f"  CONSTRAINT {self.unique_name(table.name, column.name)} "
            f"UNIQUE ({self.quote(column.name)})"
            for column in table.columns
            if column.unique and not column.primary_key
        )
        lines = [f"-- {sanitize_comment(table.comment)}"] if table.comment else []
        lines.append(
            f"CREATE TABLE {self.quote(table.name)} (\n" + ",\n".join(definitions) + "\n);",
        )
        lines.extend(self.create_index(table.name, index) for index in table.indexes)
        return lines

    def drop_table(self, table: Table) -> str:
        """Drop a table."""
        return f"DROP TABLE {self.quote(table.name)};"

    def drop_order(self, tables: Sequence[Table]) -> list[Table]:
        """Order tables so that referencing tables are dropped before their targets."""
        remaining = list(tables)
        ordered: list[Table] = []
        while remaining:
            referenced = {
                column.references.table
                for table in remaining
                for column in table.columns
                if column.references and column.references.table != table.name
            }
            ready = [table for table in remaining if table.name not in referenced]
            if not ready:
                names = ", ".join(table.name for table in remaining)
                self.warnings.append(
                    f"Tables {names} reference each other; drop their foreign keys "
                    "first if dropping them fails",
                )
                ready = remaining
            ordered.extend(ready)
            done = {table.name for table in ready}
            remaining = [table for table in remaining if table.name not in done]
        return ordered

    def add_foreign_key(self, table: str, column: Column) -> str:
        """Add the foreign key constraint of a column."""
        reference = column.references
        if reference is None:
            msg = f'Column "{table}.{column.name}" has no foreign key'
            raise ValueError(msg)
        return (
            f"ALTER TABLE {self.quote(table)} "
            f"ADD CONSTRAINT {self.foreign_key_name(table, column.name)} "
            f"FOREIGN KEY ({self.quote(column.name)}) "
            f"REFERENCES {self.quote(reference.table)} ({self.quote(reference.column)}) "
            f"ON DELETE {reference.on_delete} ON UPDATE {reference.on_update};"
        )

    def drop_foreign_key(self, table: str, column: Column) -> str:
        """Drop the foreign key constraint of a column."""
        name = self.foreign_key_name(table, column.name)
        match self.dialect:
            case Dialect.POSTGRESQL:
                return f"ALTER TABLE {self.quote(table)} DROP CONSTRAINT IF EXISTS {name};"
            case Dialect.MYSQL:
                return f"ALTER TABLE {self.quote(table)} DROP FOREIGN KEY {name};"

    def add_unique(self, table: str, column: Column) -> str:
        """Add a single-column unique constraint."""
        return (
            f"ALTER TABLE {self.quote(table)} "
            f"ADD CONSTRAINT {self.unique_name(table, column.name)} "
            f"UNIQUE ({self.quote(column.name)});"
        )

    def drop_unique(self, table: str, column: Column) -> str:
        """Drop a single-column unique constraint."""
        name = self.unique_name(table, column.name)
        match self.dialect:
            case Dialect.POSTGRESQL:
                return f"ALTER TABLE {self.quote(table)} DROP CONSTRAINT IF EXISTS {name};"
            case Dialect.MYSQL:
                return f"ALTER TABLE {self.quote(table)} DROP INDEX {name};"

    def add_primary_key(self, table: Table) -> str:
        """Add the primary key of a table."""
        return (
            f"ALTER TABLE {self.quote(table.name)} "
            f"ADD PRIMARY KEY ({self.column_list(table.primary_keys)});"
        )

    def drop_primary_key(self, table: Table) -> str:
        """Drop the primary key of a table."""
        match self.dialect:
            case Dialect.POSTGRESQL:
                name = self.quote(f"{table.name}_pkey"[: self.syntax.max_identifier_length])
                return (
                    f"ALTER TABLE {self.quote(table.name)} DROP CONSTRAINT IF EXISTS {name};"
                )
            case Dialect.MYSQL:
                return f"ALTER TABLE {self.quote(table.name)} DROP PRIMARY KEY;"

    def create_index(self, table: str, index: Index) -> str:
        """Create an index, dropping features the dialect cannot express."""
        method = ""
        if index.method not in self.syntax.index_methods:
            self.warnings.append(
                f'Index "{index.name}": {self.syntax.title} does not support '
                f"{index.method} indexes, the default method is used instead",
            )
        elif index.method != IndexMethod.BTREE:
            method = f" USING {index.method}"

        where = ""
        if index.where and self.syntax.partial_indexes:
            where = f" WHERE {index.where}"
        elif index.where:
            self.warnings.append(
                f'Index "{index.name}": {self.syntax.title} does not support partial '
                f"indexes, the predicate {index.where!r} is dropped",
            )

        unique = "UNIQUE " if index.unique else ""
        target = f"{self.quote(index.name)} ON {self.quote(table)}"
        columns = self.column_list(index.columns)
        match self.dialect:
            case Dialect.POSTGRESQL:
                return f"CREATE {unique}INDEX {target}{method} ({columns}){where};"
            case Dialect.MYSQL:
                return f"CREATE {unique}INDEX {target} ({columns}){method};"

    def drop_index(self, table: str, index: Index) -> str:
        """Drop an index."""
        match self.dialect:
            case Dialect.POSTGRESQL:
                return f"DROP INDEX IF EXISTS {self.quote(index.name)};"
            case Dialect.MYSQL:
                return f"DROP INDEX {self.quote(index.name)} ON {self.quote(table)};"

    def alter_column(self, table: Table, change: ColumnChange) -> list[str]:
        """Bring an existing column to its new definition."""
        column = change.new
        location = f"{table.name}.{column.name}"
        prefix = f"ALTER TABLE {self.quote(table.name)} ALTER COLUMN {self.quote(column.name)}"
        statements: list[str] = []

        if self.dialect == Dialect.MYSQL and any(
            isinstance(detail, MODIFY_CHANGES) for detail in change.changes
        ):
            statements.append(
                f"ALTER TABLE {self.quote(table.name)} "
                f"MODIFY COLUMN {self.column_definition(table, column)};",
            )

        for detail in change.changes:
            match detail:
                case TypeChanged() if self.dialect == Dialect.POSTGRESQL:
                    statements.append(f"{prefix} TYPE {column_type(column, self.dialect)};")
                case NullabilityChanged(_, nullable) if self.dialect == Dialect.POSTGRESQL:
                    statements.append(f"{prefix} {'DROP' if nullable else 'SET'} NOT NULL;")
                case DefaultChanged(_, default) if self.dialect == Dialect.POSTGRESQL:
                    if default is None:
                        statements.append(f"{prefix} DROP DEFAULT;")
                    else:
                        statements.append(f"{prefix} SET DEFAULT {format_default(default)};")
                case AutoIncrementChanged(_, auto) if self.dialect == Dialect.POSTGRESQL:
                    action = "attach a sequence to" if auto else "drop the sequence of"
                    statements.append(f"-- Manual step: {action} {sanitize_comment(location)}")
                    self.warnings.append(
                        f'Column "{location}": auto-increment changes need a manual '
                        "sequence change on PostgreSQL",
                    )
                case UniqueChanged(_, unique) if not column.primary_key:
                    statements.append(
                        self.add_unique(table.name, column)
                        if unique
                        else self.drop_unique(table.name, change.old),
                    )
                case CommentChanged(_, comment):
                    text = sanitize_comment(comment) if comment else "(removed)"
                    statements.append(f"-- Comment on {sanitize_comment(location)}: {text}")
                case _:
                    pass
        return statements

    def table_modifications(self, change: TableChange) -> list[str]:
        """Statements turning ``change.old`` into ``change.new``."""
        table = change.new
        name = table.name
        quoted = self.quote(name)
        primary_key_changed = change.old.primary_keys != table.primary_keys
        statements: list[str] = []

        statements.extend(
            self.drop_foreign_key(name, column)
            for column in change.columns_removed
            if column.references
        )
        statements.extend(
            self.drop_foreign_key(name, column.old)
            for column in change.columns_modified
            if reference_moved(column) and column.old.references
        )
        statements.extend(self.drop_index(name, index) for index in change.indexes_removed)
        statements.extend(self.drop_index(name, index.old) for index in change.indexes_modified)
        if primary_key_changed and change.old.primary_keys:
            statements.append(self.drop_primary_key(change.old))

        for column in change.columns_added:
            definition = self.column_definition(table, column)
            statements.append(f"ALTER TABLE {quoted} ADD COLUMN {definition};")
            if column.unique and not column.primary_key:
                statements.append(self.add_unique(name, column))

        for column in change.columns_modified:
            statements.extend(self.alter_column(table, column))
        if primary_key_changed and table.primary_keys:
            statements.append(self.add_primary_key(table))

        statements.extend(
            f"ALTER TABLE {quoted} DROP COLUMN {self.quote(column.name)};"
            for column in change.columns_removed
        )
        statements.extend(self.create_index(name, index) for index in change.indexes_added)
        statements.extend(
            self.create_index(name, index.new) for index in change.indexes_modified
        )
        statements.extend(
            self.add_foreign_key(name, column)
            for column in change.columns_added
            if column.references
        )
        statements.extend(
            self.add_foreign_key(name, column.new)
            for column in change.columns_modified
            if reference_moved(column) and column.new.references
        )
        return statements

    def block(self, diff: SchemaDiff, titles: SectionTitles) -> list[str]:
        """Statements applying a diff, grouped under section comments."""
        lines: list[str] = []
        if diff.tables_added:
            lines.append(f"-- {titles.added}")
            for table in diff.tables_added:
                lines.extend(self.create_table(table))
            lines.extend(
                self.add_foreign_key(table.name, column)
                for table in diff.tables_added
                for column in table.columns
                if column.references
            )
            lines.append("")
        if diff.tables_modified:
            lines.append(f"-- {titles.modified}")
            for change in diff.tables_modified:
                lines.extend(self.table_modifications(change))
            lines.append("")
        if diff.tables_removed:
            lines.append(f"-- {titles.removed}")
            lines.extend(self.drop_table(table) for table in self.drop_order(diff.tables_removed))
        while lines and not lines[-1]:
            lines.pop()
        return lines


def header(label: str | None, dialect: Dialect, generated_at: datetime) -> list[str]:
    """Fixed-format comment block opening every migration direction."""
    return [
        f"-- Migration: {sanitize_comment(label or 'Schema Update')}",
        f"-- Generated: {generated_at.isoformat(timespec='seconds')}",
        f"-- Dialect: {DIALECTS[dialect].title}",
        "-- Review this migration before applying it to production.",
        "",
    ]


def wrap(lines: list[str], opening: list[str], dialect: Dialect) -> tuple[str, ...]:
    """Add the header and a transaction, unless the block has no statements."""
    if not any(is_statement(line) for line in lines):
        return tuple([*opening, *lines])
    return tuple([*opening, DIALECTS[dialect].begin, "", *lines, "", "COMMIT;"])


def rename_hints(
    kind: str,
    removed: Sequence[str],
    added: Sequence[str],
    statement: str,
) -> list[str]:
    """Suggest which dropped names were probably renamed to added ones."""
    hints = [
        f'{kind} "{name}" may have been renamed to "{match[0]}". It is dropped and '
        f"re-created, use {statement} instead to keep its data."
        for name in removed
        if (match := get_close_matches(name, added, n=1, cutoff=RENAME_SIMILARITY))
    ]
    if removed and added and not hints:
        hints.append(
            f"Note: a renamed {kind.lower()} appears as dropped plus added. "
            f"Use {statement} if this was a rename.",
        )
    return hints


def column_warnings(change: TableChange) -> list[str]:
    """Risk warnings for the column and index changes of one table."""
    warnings: list[str] = []
    name = change.name
    if change.columns_removed:
        dropped = ", ".join(column.name for column in change.columns_removed)
        warnings.append(
            f'Table "{name}": {len(change.columns_removed)} column(s) will be dropped '
            f"({dropped}). Their data will be lost.",
        )
        warnings.extend(
            rename_hints(
                f'Column in "{name}"',
                [column.name for column in change.columns_removed],
                [column.name for column in change.columns_added],
                "ALTER TABLE ... RENAME COLUMN",
            ),
        )
    if change.old.primary_keys != change.new.primary_keys:
        warnings.append(
            f'Table "{name}": primary key changes from ({", ".join(change.old.primary_keys)}) '
            f"to ({', '.join(change.new.primary_keys)}). This may require recreating the "
            "table.",
        )

    for column in change.columns_added:
        if not column.nullable and column.default is None and not column.auto_increment:
            warnings.append(
                f'Column "{name}.{column.name}": adding a NOT NULL column without a '
                "default fails if the table already has rows.",
            )

    for column in change.columns_modified:
        location = f"{name}.{column.name}"
        if type_change := column.find(TypeChanged):
            if column.old.primary_key or column.new.primary_key:
                warnings.append(
                    f'Column "{location}": primary key type change ({type_change.old} -> '
                    f"{type_change.new}) requires a manual migration of referencing keys.",
                )
            else:
                warnings.append(
                    f'Column "{location}": type change ({type_change.old} -> '
                    f"{type_change.new}) may require manual data conversion.",
                )
        if (nullable := column.find(NullabilityChanged)) and not nullable.new:
            if column.new.default is None:
                warnings.append(
                    f'Column "{location}": adding NOT NULL without a default fails if '
                    "existing rows contain NULL values.",
                )
            else:
                warnings.append(
                    f'Column "{location}": adding NOT NULL fails if existing rows '
                    "contain NULL values.",
                )

    if change.indexes_modified:
        warnings.append(
            f'Table "{name}": {len(change.indexes_modified)} index(es) will be dropped '
            "and recreated. This may lock the table temporarily.",
        )
    return warnings


def risk_warnings(diff: SchemaDiff) -> list[str]:
    """Warnings about data loss and locking, independent of the dialect."""
    warnings: list[str] = []
    if diff.tables_removed:
        dropped = ", ".join(table.name for table in diff.tables_removed)
        warnings.append(
            f"{len(diff.tables_removed)} table(s) will be dropped ({dropped}). "
            "This is irreversible and deletes all of their data.",
        )
        warnings.extend(
            rename_hints(
                "Table",
                [table.name for table in diff.tables_removed],
                [table.name for table in diff.tables_added],
                "ALTER TABLE ... RENAME TO",
            ),
        )
    for change in diff.tables_modified:
        warnings.extend(column_warnings(change))

    structural = bool(diff.tables_added or diff.tables_removed)
    defaults = any(
        column.find(DefaultChanged)
        for change in diff.tables_modified
        for column in change.columns_modified
    )
    if structural and defaults:
        warnings.append(
            "This migration mixes structural changes (new or dropped tables) with "
            "default value changes. Test it in a staging environment first.",
        )
    return warnings


def generate_migration(
    diff: SchemaDiff,
    dialect: Dialect | str = Dialect.POSTGRESQL,
    label: str | None = None,
    *,
    statement_limit: int = STATEMENT_LIMIT,
    generated_at: datetime | None = None,
) -> Migration:
    """Generate the up and down DDL for a diff.

    Args:
        diff: Structural changes from the old schema to the new one.
        dialect: Target database.
        label: Migration name written into the header.
        statement_limit: Executable statement count above which a warning
            suggests splitting the migration.
        generated_at: Timestamp for the header, defaults to now.

    Returns:
        The migration. An empty or malformed diff yields an empty migration.

    """
    if not isinstance(diff, SchemaDiff) or not diff.has_changes:
        return Migration()
    dialect = Dialect(dialect)
    opening = header(label, dialect, generated_at or datetime.now(UTC))

    builder = StatementBuilder(dialect)
    up_lines = builder.block(diff, UP_TITLES)
    inverse = invert_diff(diff)
    down_lines = builder.block(
        replace(inverse, tables_modified=tuple(reversed(inverse.tables_modified))),
        DOWN_TITLES,
    )

    warnings = risk_warnings(diff)
    warnings.extend(builder.warnings)
    count = sum(1 for line in up_lines if is_statement(line))
    if count > statement_limit:
        warnings.append(
            f"Large migration detected ({count} statements). Consider splitting it "
            "into smaller migrations for better rollback control.",
        )

    migration = Migration(
        up=wrap(up_lines, opening, dialect),
        down=wrap(down_lines, opening, dialect),
        warnings=tuple(dict.fromkeys(warnings)),
    )
    logger.debug(
        "Generated %s migration with %d up lines, %d down lines and %d warnings",
        dialect,
        len(migration.up),
        len(migration.down),
        len(migration.warnings),
    )
    return migration
