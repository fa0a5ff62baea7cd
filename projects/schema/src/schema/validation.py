"""Structural and semantic validation of a schema."""

from collections import Counter, defaultdict
from collections.abc import Iterable, Iterator
from logging import getLogger
from re import compile as re_compile
from typing import NamedTuple

from sqlalchemy.sql.compiler import RESERVED_WORDS

from schema.types import (
    BOUNDED_STRING_TYPES,
    INTEGER_TYPES,
    Column,
    Schema,
    Table,
    compatible_types,
    render_type,
)

logger = getLogger(__name__)

RESERVED_KEYWORDS = frozenset(word.upper() for word in RESERVED_WORDS) | frozenset(
    {
        "ALTER",
        "CREATE",
        "DATABASE",
        "DELETE",
        "DROP",
        "EXISTS",
        "INDEX",
        "INSERT",
        "KEY",
        "SCHEMA",
        "UPDATE",
        "VALUES",
        "VIEW",
    },
)

VALID_IDENTIFIER = re_compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
LEADING_DIGIT = re_compile(r"^[0-9]")

MAX_IDENTIFIER_LENGTH = 63
MAX_COLUMNS_PER_TABLE = 100


class ValidationResult(NamedTuple):
    """Blocking errors and advisory warnings found in a schema."""

    errors: list[str]
    warnings: list[str]

    @property
    def is_valid(self) -> bool:
        """A schema without errors is valid; warnings never block."""
        return not self.errors


def duplicates(names: Iterable[str]) -> list[str]:
    """Return names occurring more than once, compared case-insensitively."""
    names = list(names)
    counts = Counter(name.casefold() for name in names)
    seen: set[str] = set()
    result: list[str] = []
    for name in names:
        key = name.casefold()
        if counts[key] > 1 and key not in seen:
            seen.add(key)
            result.append(name)
    return result


def check_identifier(kind: str, name: str) -> Iterator[str]:
    """Yield naming warnings for a table or column name."""
    if name.upper() in RESERVED_KEYWORDS:
        yield f'{kind} name "{name}" is a reserved SQL keyword and must be quoted'
    if LEADING_DIGIT.match(name):
        yield f'{kind} name "{name}" starts with a number'
    elif not VALID_IDENTIFIER.match(name):
        yield f'{kind} name "{name}" contains special characters'
    if len(name) > MAX_IDENTIFIER_LENGTH:
        yield (
            f'{kind} name "{name}" is longer than '
            f"{MAX_IDENTIFIER_LENGTH} characters and may be truncated"
        )


def check_column(table: Table, column: Column) -> tuple[list[str], list[str]]:
    """Check the invariants carried by a single column."""
    errors: list[str] = []
    warnings = list(check_identifier("Column", column.name))
    qualified = f"{table.name}.{column.name}"

    if column.type in BOUNDED_STRING_TYPES and column.length is None:
        errors.append(f'Column "{qualified}" of type {column.type} needs a length')
    if (
        column.precision is not None
        and column.scale is not None
        and column.scale > column.precision
    ):
        errors.append(
            f'Column "{qualified}" has scale {column.scale} '
            f"greater than precision {column.precision}",
        )
    if column.auto_increment:
        if column.type not in INTEGER_TYPES:
            warnings.append(
                f'Column "{qualified}" is AUTO_INCREMENT but has type '
                f"{render_type(column)}; use an integer type",
            )
        if column.nullable:
            warnings.append(f'Column "{qualified}" is AUTO_INCREMENT but nullable')
    if column.primary_key and column.nullable:
        warnings.append(f'Primary key column "{qualified}" is nullable')

    return errors, warnings


def check_table(table: Table) -> tuple[list[str], list[str]]:
    """Check the invariants of a table in isolation."""
    errors: list[str] = []
    warnings = list(check_identifier("Table", table.name))

    if not table.columns:
        errors.append(f'Table "{table.name}" has no columns')
    if len(table.columns) > MAX_COLUMNS_PER_TABLE:
        warnings.append(
            f'Table "{table.name}" has {len(table.columns)} columns; '
            "consider splitting it",
        )

    if names := duplicates(column.name for column in table.columns):
        errors.append(
            f'Table "{table.name}" has duplicate column names: {", ".join(names)}',
        )

    for column in table.columns:
        column_errors, column_warnings = check_column(table, column)
        errors.extend(column_errors)
        warnings.extend(column_warnings)

    primary_keys = table.primary_keys
    auto_increment = [column.name for column in table.columns if column.auto_increment]
    if len(auto_increment) > 1:
        errors.append(
            f'Table "{table.name}" has {len(auto_increment)} AUTO_INCREMENT columns '
            f"({', '.join(auto_increment)}); only one is allowed per table",
        )
    if len(primary_keys) > 1:
        if auto_increment:
            errors.append(
                f'Table "{table.name}" combines AUTO_INCREMENT column '
                f'"{auto_increment[0]}" with a composite primary key '
                f"({', '.join(primary_keys)})",
            )
        else:
            warnings.append(
                f'Table "{table.name}" has multiple primary key columns '
                f"({', '.join(primary_keys)}) forming a composite primary key",
            )
    elif table.columns and not primary_keys:
        warnings.append(f'Table "{table.name}" has no primary key')

    column_names = {column.name.casefold() for column in table.columns}
    for index in table.indexes:
        if not index.columns:
            errors.append(f'Index "{index.name}" on table "{table.name}" has no columns')
        errors.extend(
            f'Index "{index.name}" on table "{table.name}" '
            f'references non-existent column "{name}"'
            for name in index.columns
            if name.casefold() not in column_names
        )
        errors.extend(
            f'Index "{index.name}" on table "{table.name}" '
            f'lists column "{name}" more than once'
            for name in duplicates(index.columns)
        )

    return errors, warnings


def is_covered(table: Table, column: Column) -> bool:
    """Check whether lookups on a column can use an existing index."""
    if column.unique:
        return True
    primary_keys = table.primary_keys
    if primary_keys and primary_keys[0] == column.name:
        return True
    return any(index.columns[:1] == (column.name,) for index in table.indexes)


def check_references(schema: Schema) -> tuple[list[str], list[str]]:
    """Resolve every foreign key and check its target."""
    errors: list[str] = []
    warnings: list[str] = []
    tables = {table.name.casefold(): table for table in schema.tables}

    for table in schema.tables:
        for column in table.columns:
            if (reference := column.references) is None:
                continue
            source = f"{table.name}.{column.name}"
            target_table = tables.get(reference.table.casefold())
            if target_table is None:
                errors.append(
                    f'Column "{source}" references non-existent table '
                    f'"{reference.table}"',
                )
                continue
            target = next(
                (
                    candidate
                    for candidate in target_table.columns
                    if candidate.name.casefold() == reference.column.casefold()
                ),
                None,
            )
            if target is None:
                errors.append(
                    f'Column "{source}" references non-existent column '
                    f'"{reference.column}" in table "{reference.table}"',
                )
                continue
            if not target.is_unique:
                warnings.append(
                    f'Column "{source}" references "{target_table.name}.{target.name}" '
                    "which is neither a primary key nor unique",
                )
            if not compatible_types(column.type, target.type):
                warnings.append(
                    f'Column "{source}" has type {render_type(column)} but references '
                    f'"{target_table.name}.{target.name}" of type {render_type(target)}',
                )
            if not is_covered(table, column):
                warnings.append(
                    f'Foreign key column "{source}" has no index; '
                    "joins and cascades may be slow",
                )

    return errors, warnings


def reference_graph(schema: Schema) -> dict[str, list[str]]:
    """Map each table to the tables it references, ignoring self references."""
    graph: dict[str, list[str]] = defaultdict(list)
    for table in schema.tables:
        for column in table.columns:
            reference = column.references
            if reference is None or reference.table == table.name:
                continue
            if reference.table not in graph[table.name]:
                graph[table.name].append(reference.table)
    return graph


def find_cycles(graph: dict[str, list[str]]) -> list[list[str]]:
    """Find reference cycles with a depth-first search, one entry per cycle."""
    cycles: list[list[str]] = []
    seen: set[frozenset[str]] = set()
    done: set[str] = set()

    def visit(node: str, path: list[str]) -> None:
        if node in path:
            cycle = path[path.index(node) :]
            if (key := frozenset(cycle)) not in seen:
                seen.add(key)
                cycles.append([*cycle, node])
            return
        if node in done:
            return
        path.append(node)
        for neighbour in graph.get(node, []):
            visit(neighbour, path)
        path.pop()
        done.add(node)

    for node in list(graph):
        visit(node, [])
    return cycles


def validate_schema(schema: Schema) -> ValidationResult:
    """Validate a schema and collect errors and warnings.

    Never raises: malformed input is reported as an error.

    Args:
        schema: The schema to validate.

    Returns:
        ValidationResult: Errors block code generation, warnings are advisory.

    """
    if not isinstance(schema, Schema):
        logger.error("Cannot validate object of type %s", type(schema).__name__)
        return ValidationResult(["Schema is missing or malformed"], [])

    errors: list[str] = []
    warnings: list[str] = []

    if names := duplicates(table.name for table in schema.tables):
        errors.append(f"Duplicate table names: {', '.join(names)}")

    for table in schema.tables:
        table_errors, table_warnings = check_table(table)
        errors.extend(table_errors)
        warnings.extend(table_warnings)

    owners: dict[str, list[str]] = defaultdict(list)
    for table in schema.tables:
        for index in table.indexes:
            owners[index.name.casefold()].append(table.name)
    for table in schema.tables:
        for index in table.indexes:
            if len(tables := owners.pop(index.name.casefold(), [])) > 1:
                errors.append(
                    f'Index name "{index.name}" is used more than once '
                    f"(tables: {', '.join(tables)})",
                )

    reference_errors, reference_warnings = check_references(schema)
    errors.extend(reference_errors)
    warnings.extend(reference_warnings)

    warnings.extend(
        f"Circular foreign key dependency: {' -> '.join(cycle)}"
        for cycle in find_cycles(reference_graph(schema))
    )

    logger.debug(
        "Validated schema %r: %d errors, %d warnings",
        schema.name,
        len(errors),
        len(warnings),
    )
    return ValidationResult(errors, warnings)
