"""Rendering of generated migrations."""

from collections.abc import Iterable
from pathlib import Path
from typing import Literal

from jinja2 import Environment, FileSystemLoader, select_autoescape

from migrate.dialects import DIALECTS, Dialect
from migrate.generator import Migration, is_statement

TEMPLATE_DIR = Path(__file__).parent / "templates"

type Direction = Literal["up", "down"]


def render_migration(migration: Migration, direction: Direction = "up") -> str:
    """Join one direction of a migration into SQL text."""
    lines = migration.up if direction == "up" else migration.down
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def executable_statements(lines: Iterable[str]) -> list[str]:
    """Keep only the statements, dropping comment and blank lines."""
    return [line for line in lines if is_statement(line)]


def migration_to_markdown(
    migration: Migration,
    dialect: Dialect | str = Dialect.POSTGRESQL,
    label: str | None = None,
) -> str:
    """Render a migration as a Markdown summary with both directions."""
    env = Environment(
        loader=FileSystemLoader(TEMPLATE_DIR),
        autoescape=select_autoescape(),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    template = env.get_template("summary.md")
    return template.render(
        label=label or "Schema Update",
        dialect=DIALECTS[Dialect(dialect)].title,
        warnings=migration.warnings,
        up=render_migration(migration, "up"),
        down=render_migration(migration, "down"),
        up_count=len(executable_statements(migration.up)),
        down_count=len(executable_statements(migration.down)),
    )
