"""Tests for full-schema DDL export and migration rendering."""

from datetime import UTC, datetime

import pytest

from compare.main import compare_schemas
from schema.types import Column, DataType, Index, IndexMethod, Reference, Schema, Table

from migrate.dialects import Dialect
from migrate.export import schema_to_ddl
from migrate.generator import Migration, generate_migration
from migrate.main import executable_statements, migration_to_markdown, render_migration

GENERATED_AT = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)


@pytest.fixture(name="blog")
def create_blog() -> Schema:
    """Create a schema whose referencing table is declared first."""
    posts = Table(
        "posts",
        columns=(
            Column("id", DataType.BIGINT, primary_key=True, auto_increment=True),
            Column("author_id", DataType.INTEGER, references=Reference("authors", "id")),
            Column("tags", DataType.ARRAY),
        ),
        indexes=(Index("idx_posts_tags", ("tags",), method=IndexMethod.GIN),),
    )
    authors = Table(
        "authors",
        columns=(
            Column("id", DataType.INTEGER, primary_key=True, auto_increment=True),
            Column("name", DataType.VARCHAR, length=100, nullable=False, default="anonymous"),
        ),
        comment="People who write posts",
    )
    return Schema("blog", (posts, authors), description="Blog -- schema")


@pytest.fixture(name="migration")
def create_migration() -> Migration:
    """Generate a migration adding one column."""
    users = Table("users", (Column("id", DataType.INTEGER, primary_key=True),))
    grown = Table("users", (*users.columns, Column("bio", DataType.TEXT, nullable=False)))
    return generate_migration(
        compare_schemas(Schema(tables=(users,)), Schema(tables=(grown,))),
        Dialect.MYSQL,
        "Add bio",
        generated_at=GENERATED_AT,
    )


def test_schema_to_ddl_postgresql(blog: Schema) -> None:
    """Test the header, table order and trailing foreign keys."""
    ddl = schema_to_ddl(blog, generated_at=GENERATED_AT)

    assert ddl.startswith(
        "-- Schema: blog\n"
        "-- Generated: 2026-01-02T03:04:05+00:00\n"
        "-- Dialect: PostgreSQL\n"
        "-- Blog schema\n"
        "\n"
        "-- Tables\n",
    )
    assert '  "id" BIGSERIAL NOT NULL,\n  "author_id" INTEGER,\n  "tags" TEXT[],' in ddl
    assert "  \"name\" VARCHAR(100) NOT NULL DEFAULT 'anonymous'," in ddl
    assert "-- People who write posts\nCREATE TABLE \"authors\"" in ddl
    assert 'CREATE INDEX "idx_posts_tags" ON "posts" USING GIN ("tags");' in ddl
    assert ddl.endswith(
        'ALTER TABLE "posts" ADD CONSTRAINT "fk_posts_author_id" FOREIGN KEY ("author_id") '
        'REFERENCES "authors" ("id") ON DELETE NO ACTION ON UPDATE NO ACTION;\n',
    )
    assert ddl.index('CREATE TABLE "authors"') < ddl.index("FOREIGN KEY")


def test_schema_to_ddl_mysql_warnings(blog: Schema) -> None:
    """Test that dialect warnings are appended as comments."""
    ddl = schema_to_ddl(blog, "mysql", generated_at=GENERATED_AT)

    assert "`id` BIGINT AUTO_INCREMENT NOT NULL" in ddl
    assert "`tags` JSON" in ddl
    assert ddl.endswith(
        '-- Warning: Index "idx_posts_tags": MySQL does not support GIN indexes, '
        "the default method is used instead\n",
    )


def test_empty_schema_to_ddl() -> None:
    """Test that a schema without tables exports only its header."""
    ddl = schema_to_ddl(Schema(), Dialect.MYSQL, generated_at=GENERATED_AT)

    assert ddl == (
        "-- Schema: Untitled Schema\n"
        "-- Generated: 2026-01-02T03:04:05+00:00\n"
        "-- Dialect: MySQL\n"
        "\n"
    )


def test_render_migration(migration: Migration) -> None:
    """Test joining both directions into SQL text."""
    up = render_migration(migration)
    down = render_migration(migration, "down")

    assert up.startswith("-- Migration: Add bio\n")
    assert up.endswith("ALTER TABLE `users` ADD COLUMN `bio` TEXT NOT NULL;\n\nCOMMIT;\n")
    assert "ALTER TABLE `users` DROP COLUMN `bio`;\n" in down
    assert render_migration(Migration()) == ""


def test_executable_statements(migration: Migration) -> None:
    """Test that comments and blank lines are dropped."""
    assert executable_statements(migration.up) == [
        "START TRANSACTION;",
        "ALTER TABLE `users` ADD COLUMN `bio` TEXT NOT NULL;",
        "COMMIT;",
    ]


def test_migration_to_markdown(migration: Migration) -> None:
    """Test the Markdown summary of a migration with a warning."""
    markdown = migration_to_markdown(migration, Dialect.MYSQL, "Add bio")

    assert markdown.startswith("# Migration: Add bio\n\nDialect: MySQL\n")
    assert "## Warnings\n\n" in markdown
    assert (
        '- Column "users.bio": adding a NOT NULL column without a default fails if the '
        "table already has rows."
    ) in markdown
    assert "## Up (3 statements)\n\n```sql\n-- Migration: Add bio\n" in markdown
    assert "## Down (3 statements)" in markdown
    assert "COMMIT;\n```" in markdown


def test_markdown_without_changes() -> None:
    """Test the summary of an empty migration."""
    markdown = migration_to_markdown(Migration(), "postgresql")

    assert markdown.startswith("# Migration: Schema Update\n\nDialect: PostgreSQL\n")
    assert "No structural changes." in markdown
    assert "```sql" not in markdown
