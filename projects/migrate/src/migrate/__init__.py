"""Migration generation for PostgreSQL and MySQL."""

from migrate.dialects import Dialect, parse_dialect
from migrate.export import schema_to_ddl
from migrate.generator import Migration, generate_migration
from migrate.main import executable_statements, migration_to_markdown, render_migration

__all__ = [
    "Dialect",
    "Migration",
    "executable_statements",
    "generate_migration",
    "migration_to_markdown",
    "parse_dialect",
    "render_migration",
    "schema_to_ddl",
]
