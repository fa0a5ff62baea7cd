"""Full-schema DDL export."""

from datetime import UTC, datetime

from compare.types import SchemaDiff
from schema.types import Schema

from migrate.dialects import DIALECTS, Dialect, sanitize_comment
from migrate.generator import SectionTitles, StatementBuilder

EXPORT_TITLES = SectionTitles(added="Tables", modified="", removed="")


def schema_to_ddl(
    schema: Schema,
    dialect: Dialect | str = Dialect.POSTGRESQL,
    *,
    generated_at: datetime | None = None,
) -> str:
    """Export every table of a schema as ``CREATE`` statements.

    Tables come first, then their indexes, then foreign keys, so the output
    runs regardless of the order the tables were declared in.
    """
    dialect = Dialect(dialect)
    builder = StatementBuilder(dialect)
    timestamp = (generated_at or datetime.now(UTC)).isoformat(timespec="seconds")
    lines = [
        f"-- Schema: {sanitize_comment(schema.name)}",
        f"-- Generated: {timestamp}",
        f"-- Dialect: {DIALECTS[dialect].title}",
    ]
    if schema.description:
        lines.append(f"-- {sanitize_comment(schema.description)}")
    lines.append("")
    lines.extend(builder.block(SchemaDiff(tables_added=schema.tables), EXPORT_TITLES))
    lines.extend(f"-- Warning: {sanitize_comment(warning)}" for warning in builder.warnings)
    return "\n".join(lines) + "\n"
