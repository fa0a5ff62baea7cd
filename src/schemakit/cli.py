"""Command line interface for schemakit."""

import logging
import sys
from collections.abc import Iterable
from pathlib import Path
from sys import stdout
from typing import Any, Literal

from cyclopts import App
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from schemakit.config import Settings, load_settings

app = App(help="Parse, validate, compare and migrate database schemas")


type Format = Literal["table", "text", "json", "html"]
type OutputFormat = Literal["json", "sql", "prisma", "python"]
type Direction = Literal["up", "down", "both"]

console = Console()
err_console = Console(stderr=True)

SQL_EXTENSIONS = {".sql", ".ddl"}
PRISMA_EXTENSIONS = {".prisma"}
JSON_EXTENSIONS = {".json"}
SQLITE_EXTENSIONS = {".sqlite", ".db", ".sqlite3"}
SCHEMA_EXTENSIONS = SQL_EXTENSIONS | PRISMA_EXTENSIONS | JSON_EXTENSIONS | SQLITE_EXTENSIONS


def print_error(message: str) -> None:
    """Print error message to stderr."""
    err_console.print(f"[bold red]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print success message to stderr."""
    err_console.print(f"[bold green]✓[/] {message}")


def print_info(message: str) -> None:
    """Print info message to stderr."""
    err_console.print(f"[bold blue]i[/] {message}")


def print_warning(message: str) -> None:
    """Print warning message to stderr."""
    err_console.print(f"[bold yellow]![/] {message}")


def configure_logging(*, verbose: bool) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def settings_or_exit(config: Path | None) -> Settings:
    """Load settings, exiting with an error message when they are invalid."""
    try:
        return load_settings(config)
    except (OSError, ValueError) as e:
        print_error(f"Invalid configuration: {e}")
        sys.exit(1)


def validate_schema_location(location: Path, extensions: Iterable[str]) -> None:
    """Validate that a schema file exists and has a supported extension."""
    if not location.exists():
        print_error(f"Schema file does not exist: {location}")
        sys.exit(1)
    if location.suffix.lower() not in extensions:
        print_error(
            f"Schema file has invalid extension, expected one of: "
            f"{', '.join(sorted(extensions))}",
        )
        sys.exit(1)


def load_schema(location: Path) -> Any:  # noqa: ANN401
    """Load a schema from SQL, Prisma, JSON or a SQLite database."""
    from ddl import ParseError, parse, parse_prisma
    from schema import read_only_sqlite, schema_from_json, sqlite_to_schema
    from sqlalchemy.exc import SQLAlchemyError

    validate_schema_location(location, SCHEMA_EXTENSIONS)
    suffix = location.suffix.lower()
    try:
        if suffix in SQLITE_EXTENSIONS:
            return sqlite_to_schema(read_only_sqlite(location))
        text = location.read_text(encoding="utf-8")
        if suffix in JSON_EXTENSIONS:
            return schema_from_json(text)
        result = parse_prisma(text) if suffix in PRISMA_EXTENSIONS else parse(text)
    except ParseError as e:
        print_error(f"Failed to parse {location}")
        for error in e.errors:
            err_console.print(f"  [red]-[/] {error}")
        sys.exit(1)
    except (ValueError, OSError, SQLAlchemyError) as e:
        print_error(f"Failed to load {location}: {e}")
        sys.exit(1)

    for warning in result.warnings:
        print_warning(f"{location.name}: {warning}")
    return result.schema


def format_issue_table(errors: list[str], warnings: list[str]) -> None:
    """Format validation problems as a rich table."""
    table = Table(title="Validation Results")
    table.add_column("Severity", style="bold")
    table.add_column("Message")
    for error in errors:
        table.add_row("[red]error[/]", error)
    for warning in warnings:
        table.add_row("[yellow]warning[/]", warning)
    console.print(table)


def format_diff_table(data: Iterable[dict[str, Any]]) -> None:
    """Format diff summary as a rich table."""
    rows = list(data)
    if not rows:
        console.print("No differences found between schemas.")
        return

    table = Table(title="Schema Comparison Results")
    table.add_column("Table", style="bold cyan")
    table.add_column("Change", style="bold")
    table.add_column("Column Changes", style="bold yellow")
    table.add_column("Index Changes", style="bold yellow")

    for row in rows:
        table.add_row(
            row.get("name", ""),
            row.get("change_type", ""),
            str(row.get("columns", 0)),
            str(row.get("indexes", 0)),
        )

    console.print(table)


@app.command
def validate(
    source: Path,
    fmt: Literal["table", "json"] = "table",
    *,
    verbose: bool = False,
) -> None:
    """Validate a schema file and report errors and warnings."""
    from json import dumps

    from schema import validate_schema

    configure_logging(verbose=verbose)
    print_info(f"Schema: {source}")
    result = validate_schema(load_schema(source))

    if fmt == "json":
        stdout.write(dumps(result._asdict(), indent=2) + "\n")
    elif result.errors or result.warnings:
        format_issue_table(result.errors, result.warnings)

    if not result.is_valid:
        print_error(f"{len(result.errors)} validation error(s)")
        sys.exit(1)
    print_success(f"Schema is valid ({len(result.warnings)} warning(s))")


@app.command
def convert(
    source: Path,
    fmt: OutputFormat = "json",
    *,
    dialect: str | None = None,
    config: Path | None = None,
    verbose: bool = False,
) -> None:
    """Convert a schema file to JSON, SQL DDL, Prisma or SQLAlchemy models."""
    from migrate import parse_dialect, schema_to_ddl
    from schema import schema_to_json, schema_to_prisma, schema_to_sqlalchemy

    configure_logging(verbose=verbose)
    settings = settings_or_exit(config)
    try:
        target = parse_dialect(dialect) if dialect else settings.dialect
    except ValueError as e:
        print_error(str(e))
        sys.exit(1)

    print_info(f"Source: {source}")
    print_info(f"Output format: {fmt}")
    schema = load_schema(source)

    match fmt:
        case "json":
            stdout.write(schema_to_json(schema) + "\n")
        case "sql":
            stdout.write(schema_to_ddl(schema, target))
        case "prisma":
            provider = "postgresql" if target == "postgresql" else "mysql"
            stdout.write(schema_to_prisma(schema, provider=provider))
        case "python":
            stdout.write(schema_to_sqlalchemy(schema))

    print_success(f"Converted {len(schema.tables)} tables")


@app.command
def diff(
    old_location: Path,
    new_location: Path,
    fmt: Format = "table",
    *,
    verbose: bool = False,
) -> None:
    """Compare two schema files."""
    from compare import (
        compare_schemas,
        diff_summary,
        diff_to_html,
        diff_to_json,
        diff_to_summary,
    )

    configure_logging(verbose=verbose)
    print_info(f"Old schema: {old_location}")
    print_info(f"New schema: {new_location}")
    print_info(f"Output format: {fmt}")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=err_console,
    ) as progress:
        progress.add_task("Comparing schemas...", total=None)
        schema_diff = compare_schemas(load_schema(old_location), load_schema(new_location))

    # Output to stdout in requested format (keep stdout clean for data)
    if fmt == "html":
        for chunk in diff_to_html(schema_diff):
            stdout.write(chunk)

    if fmt == "json":
        stdout.write(diff_to_json(schema_diff) + "\n")

    if fmt == "text":
        for line in diff_summary(schema_diff):
            stdout.write(line + "\n")

    if fmt == "table":
        format_diff_table(diff_to_summary(schema_diff))


@app.command(name="migrate")
def migrate_schema(
    old_location: Path,
    new_location: Path,
    *,
    dialect: str | None = None,
    label: str | None = None,
    direction: Direction = "both",
    markdown: bool = False,
    output: Path | None = None,
    config: Path | None = None,
    verbose: bool = False,
) -> None:
    """Generate up and down migration SQL between two schema files."""
    from compare import compare_schemas
    from migrate import (
        generate_migration,
        migration_to_markdown,
        parse_dialect,
        render_migration,
    )

    configure_logging(verbose=verbose)
    settings = settings_or_exit(config)
    try:
        target = parse_dialect(dialect) if dialect else settings.dialect
    except ValueError as e:
        print_error(str(e))
        sys.exit(1)
    print_info(f"Dialect: {target}")

    schema_diff = compare_schemas(load_schema(old_location), load_schema(new_location))
    if not schema_diff.has_changes:
        print_success("Schemas are identical, nothing to migrate")
        return

    migration = generate_migration(
        schema_diff,
        target,
        label or settings.label,
        statement_limit=settings.statement_limit,
    )
    for warning in migration.warnings:
        print_warning(warning)

    if markdown:
        text = migration_to_markdown(migration, target, label or settings.label)
    elif direction == "both":
        text = "\n".join(
            (
                "-- ==== UP ====",
                render_migration(migration, "up"),
                "-- ==== DOWN ====",
                render_migration(migration, "down"),
            ),
        )
    else:
        text = render_migration(migration, direction)

    if output:
        try:
            output.write_text(text, encoding="utf-8")
        except OSError as e:
            print_error(f"Failed to write output file: {e}")
            sys.exit(1)
        print_success(f"Migration written to {output}")
    else:
        stdout.write(text)
        print_success(f"Migration generated with {len(migration.warnings)} warning(s)")


@app.command(name="format")
def format_sql_file(
    source: Path,
    *,
    minify: bool = False,
    indent: int | None = None,
    uppercase: bool | None = None,
    config: Path | None = None,
    verbose: bool = False,
) -> None:
    """Pretty-print or minify a SQL file."""
    from ddl import check_sql, format_sql, minify_sql

    configure_logging(verbose=verbose)
    settings = settings_or_exit(config)
    validate_schema_location(source, SQL_EXTENSIONS)
    try:
        text = source.read_text(encoding="utf-8")
    except OSError as e:
        print_error(f"Failed to read {source}: {e}")
        sys.exit(1)

    if problems := check_sql(text):
        for problem in problems:
            print_error(problem)
        sys.exit(1)

    if minify:
        stdout.write(minify_sql(text) + "\n")
        return
    formatted = format_sql(
        text,
        indent_size=settings.indent_size if indent is None else indent,
        uppercase=settings.uppercase if uppercase is None else uppercase,
    )
    stdout.write(formatted + "\n")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
