"""Tests for migration generation from schema diffs."""

from dataclasses import replace
from datetime import UTC, datetime

import pytest

from compare.main import compare_schemas
from compare.types import SchemaDiff
from schema.types import CascadeAction, Column, DataType, Index, IndexMethod, Reference, Schema, Table

from migrate.dialects import Dialect
from migrate.generator import Migration, generate_migration, is_statement
from migrate.main import executable_statements

GENERATED_AT = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)


@pytest.fixture(name="users")
def create_users() -> Table:
    """Create a users table with a serial key and a unique email."""
    return Table(
        "users",
        columns=(
            Column(
                "id",
                DataType.INTEGER,
                nullable=False,
                primary_key=True,
                auto_increment=True,
            ),
            Column("email", DataType.VARCHAR, length=255, nullable=False, unique=True),
        ),
    )


@pytest.fixture(name="posts")
def create_posts() -> Table:
    """Create a posts table referencing users."""
    return Table(
        "posts",
        columns=(
            Column(
                "id",
                DataType.INTEGER,
                nullable=False,
                primary_key=True,
                auto_increment=True,
            ),
            Column(
                "user_id",
                DataType.INTEGER,
                nullable=False,
                references=Reference("users", "id", on_delete=CascadeAction.CASCADE),
            ),
        ),
        indexes=(Index("idx_posts_user", ("user_id",)),),
    )


def migrate(old: Schema, new: Schema, dialect: Dialect = Dialect.POSTGRESQL) -> Migration:
    """Compare two schemas and generate their migration."""
    return generate_migration(
        compare_schemas(old, new),
        dialect,
        generated_at=GENERATED_AT,
    )


def add_column(table: Table, column: Column) -> Table:
    """Return a copy of a table with one more column."""
    return replace(table, columns=(*table.columns, column))


def test_added_column_postgresql(users: Table) -> None:
    """Test the complete up block of a single added column."""
    name = Column("name", DataType.VARCHAR, length=100)
    diff = compare_schemas(Schema(tables=(users,)), Schema(tables=(add_column(users, name),)))

    migration = generate_migration(diff, label="Add user name", generated_at=GENERATED_AT)

    assert migration.up == (
        "-- Migration: Add user name",
        "-- Generated: 2026-01-02T03:04:05+00:00",
        "-- Dialect: PostgreSQL",
        "-- Review this migration before applying it to production.",
        "",
        "BEGIN;",
        "",
        "-- Modify existing tables",
        'ALTER TABLE "users" ADD COLUMN "name" VARCHAR(100);',
        "",
        "COMMIT;",
    )
    assert migration.warnings == ()


@pytest.mark.parametrize(
    ("dialect", "add", "drop"),
    [
        (
            Dialect.POSTGRESQL,
            'ALTER TABLE "users" ADD COLUMN "name" VARCHAR(100);',
            'ALTER TABLE "users" DROP COLUMN "name";',
        ),
        (
            Dialect.MYSQL,
            "ALTER TABLE `users` ADD COLUMN `name` VARCHAR(100);",
            "ALTER TABLE `users` DROP COLUMN `name`;",
        ),
    ],
)
def test_added_column_statements(users: Table, dialect: Dialect, add: str, drop: str) -> None:
    """Test that an added column yields exactly one statement each way."""
    name = Column("name", DataType.VARCHAR, length=100)

    migration = migrate(Schema(tables=(users,)), Schema(tables=(add_column(users, name),)), dialect)

    begin = "BEGIN;" if dialect == Dialect.POSTGRESQL else "START TRANSACTION;"
    assert executable_statements(migration.up) == [begin, add, "COMMIT;"]
    assert executable_statements(migration.down) == [begin, drop, "COMMIT;"]


def test_empty_diff_yields_empty_migration(users: Table) -> None:
    """Test that identical schemas and malformed input produce nothing."""
    schema = Schema(tables=(users,))

    assert migrate(schema, schema) == Migration()
    assert generate_migration(SchemaDiff()) == Migration()
    assert generate_migration(None) == Migration()  # type: ignore[arg-type]


def test_dialect_by_name(users: Table) -> None:
    """Test that the dialect may be given as a string."""
    diff = compare_schemas(Schema(), Schema(tables=(users,)))

    migration = generate_migration(diff, "mysql", generated_at=GENERATED_AT)

    assert "-- Dialect: MySQL" in migration.up
    assert "START TRANSACTION;" in migration.up


def test_create_table_postgresql(users: Table) -> None:
    """Test serial keys, the primary key clause and unique constraints."""
    migration = migrate(Schema(), Schema(tables=(users,)))

    assert (
        'CREATE TABLE "users" (\n'
        '  "id" SERIAL NOT NULL,\n'
        '  "email" VARCHAR(255) NOT NULL,\n'
        '  PRIMARY KEY ("id"),\n'
        '  CONSTRAINT "uq_users_email" UNIQUE ("email")\n'
        ");"
    ) in migration.up
    assert executable_statements(migration.down)[1:-1] == ['DROP TABLE "users";']


def test_create_table_mysql(users: Table) -> None:
    """Test AUTO_INCREMENT and backtick quoting."""
    migration = migrate(Schema(), Schema(tables=(users,)), Dialect.MYSQL)

    assert (
        "CREATE TABLE `users` (\n"
        "  `id` INTEGER AUTO_INCREMENT NOT NULL,\n"
        "  `email` VARCHAR(255) NOT NULL,\n"
        "  PRIMARY KEY (`id`),\n"
        "  CONSTRAINT `uq_users_email` UNIQUE (`email`)\n"
        ");"
    ) in migration.up


def test_foreign_keys_follow_creates(users: Table, posts: Table) -> None:
    """Test that constraints are added once every new table exists."""
    migration = migrate(Schema(), Schema(tables=(posts, users)))

    statements = executable_statements(migration.up)
    foreign_key = (
        'ALTER TABLE "posts" ADD CONSTRAINT "fk_posts_user_id" FOREIGN KEY ("user_id") '
        'REFERENCES "users" ("id") ON DELETE CASCADE ON UPDATE NO ACTION;'
    )
    assert statements[-2] == foreign_key
    assert 'CREATE INDEX "idx_posts_user" ON "posts" ("user_id");' in statements
    creates = [i for i, s in enumerate(statements) if s.startswith("CREATE TABLE")]
    assert max(creates) < statements.index(foreign_key)


def test_drop_order_follows_references(users: Table, posts: Table) -> None:
    """Test that referencing tables are dropped before their targets."""
    migration = migrate(Schema(tables=(users, posts)), Schema())

    assert executable_statements(migration.up)[1:-1] == [
        'DROP TABLE "posts";',
        'DROP TABLE "users";',
    ]
    assert migration.warnings[0] == (
        "2 table(s) will be dropped (users, posts). "
        "This is irreversible and deletes all of their data."
    )


def test_mutual_references_are_reported() -> None:
    """Test the warning for tables referencing each other."""
    first = Table(
        "a",
        (Column("b_id", DataType.INTEGER, references=Reference("b", "id")),),
    )
    second = Table(
        "b",
        (
            Column("id", DataType.INTEGER, primary_key=True),
            Column("a_id", DataType.INTEGER, references=Reference("a", "b_id")),
        ),
    )

    migration = migrate(Schema(tables=(first, second)), Schema())

    assert executable_statements(migration.up)[1:-1] == ['DROP TABLE "a";', 'DROP TABLE "b";']
    assert any("reference each other" in warning for warning in migration.warnings)


def test_column_changes_postgresql(users: Table) -> None:
    """Test separate ALTER COLUMN statements per attribute."""
    old = add_column(users, Column("nickname", DataType.VARCHAR, length=50))
    new = add_column(
        users,
        Column("nickname", DataType.VARCHAR, length=80, nullable=False, default="n/a"),
    )

    migration = migrate(Schema(tables=(old,)), Schema(tables=(new,)))

    assert executable_statements(migration.up)[1:-1] == [
        'ALTER TABLE "users" ALTER COLUMN "nickname" TYPE VARCHAR(80);',
        'ALTER TABLE "users" ALTER COLUMN "nickname" SET NOT NULL;',
        "ALTER TABLE \"users\" ALTER COLUMN \"nickname\" SET DEFAULT 'n/a';",
    ]
    assert executable_statements(migration.down)[1:-1] == [
        'ALTER TABLE "users" ALTER COLUMN "nickname" TYPE VARCHAR(50);',
        'ALTER TABLE "users" ALTER COLUMN "nickname" DROP NOT NULL;',
        'ALTER TABLE "users" ALTER COLUMN "nickname" DROP DEFAULT;',
    ]
    assert migration.warnings == (
        'Column "users.nickname": type change (VARCHAR(50) -> VARCHAR(80)) may require '
        "manual data conversion.",
        'Column "users.nickname": adding NOT NULL fails if existing rows contain NULL values.',
    )


def test_column_changes_mysql(users: Table) -> None:
    """Test that MySQL rewrites the column definition once."""
    old = add_column(users, Column("nickname", DataType.VARCHAR, length=50))
    new = add_column(
        users,
        Column("nickname", DataType.VARCHAR, length=80, nullable=False, default="n/a"),
    )

    migration = migrate(Schema(tables=(old,)), Schema(tables=(new,)), Dialect.MYSQL)

    assert executable_statements(migration.up)[1:-1] == [
        "ALTER TABLE `users` MODIFY COLUMN `nickname` VARCHAR(80) NOT NULL DEFAULT 'n/a';",
    ]
    assert executable_statements(migration.down)[1:-1] == [
        "ALTER TABLE `users` MODIFY COLUMN `nickname` VARCHAR(50);",
    ]


def test_auto_increment_change_postgresql() -> None:
    """Test that sequence changes become a manual step."""
    old = Table("counters", (Column("id", DataType.INTEGER, nullable=False, primary_key=True),))
    new = replace(old, columns=(replace(old.columns[0], auto_increment=True),))

    migration = migrate(Schema(tables=(old,)), Schema(tables=(new,)))

    assert "-- Manual step: attach a sequence to counters.id" in migration.up
    assert "-- Manual step: drop the sequence of counters.id" in migration.down
    assert executable_statements(migration.up) == []
    assert (
        'Column "counters.id": auto-increment changes need a manual sequence change '
        "on PostgreSQL"
    ) in migration.warnings


def test_unique_and_comment_changes(users: Table) -> None:
    """Test unique constraints and comment lines on modified columns."""
    old = add_column(users, Column("code", DataType.CHAR, length=3))
    new = add_column(
        users,
        Column("code", DataType.CHAR, length=3, unique=True, comment="ISO -- code"),
    )

    migration = migrate(Schema(tables=(old,)), Schema(tables=(new,)), Dialect.MYSQL)

    assert "ALTER TABLE `users` ADD CONSTRAINT `uq_users_code` UNIQUE (`code`);" in migration.up
    assert "-- Comment on users.code: ISO code" in migration.up
    assert "ALTER TABLE `users` DROP INDEX `uq_users_code`;" in migration.down
    assert "-- Comment on users.code: (removed)" in migration.down


def test_retargeted_reference(posts: Table) -> None:
    """Test that a moved foreign key is dropped and added again."""
    accounts = Table("accounts", (Column("id", DataType.INTEGER, primary_key=True),))
    moved = replace(
        posts,
        columns=(
            posts.columns[0],
            replace(posts.columns[1], references=Reference("accounts", "id")),
        ),
    )

    migration = migrate(
        Schema(tables=(accounts, posts)),
        Schema(tables=(accounts, moved)),
        Dialect.MYSQL,
    )

    assert executable_statements(migration.up)[1:-1] == [
        "ALTER TABLE `posts` DROP FOREIGN KEY `fk_posts_user_id`;",
        "ALTER TABLE `posts` ADD CONSTRAINT `fk_posts_user_id` FOREIGN KEY (`user_id`) "
        "REFERENCES `accounts` (`id`) ON DELETE NO ACTION ON UPDATE NO ACTION;",
    ]


def test_primary_key_change(users: Table) -> None:
    """Test that a primary key change drops and re-adds the constraint."""
    old = add_column(users, Column("tenant", DataType.INTEGER, nullable=False))
    new = replace(
        old,
        columns=(
            replace(old.columns[0], auto_increment=False),
            old.columns[1],
            replace(old.columns[2], primary_key=True),
        ),
    )

    migration = migrate(Schema(tables=(old,)), Schema(tables=(new,)))

    statements = executable_statements(migration.up)
    assert statements[1] == 'ALTER TABLE "users" DROP CONSTRAINT IF EXISTS "users_pkey";'
    assert 'ALTER TABLE "users" ADD PRIMARY KEY ("id", "tenant");' in statements
    assert any("primary key changes from (id) to (id, tenant)" in w for w in migration.warnings)


def test_index_methods_and_predicates() -> None:
    """Test GIN and partial indexes on both dialects."""
    documents = Table(
        "documents",
        columns=(
            Column("id", DataType.INTEGER, primary_key=True),
            Column("body", DataType.TSVECTOR),
            Column("deleted_at", DataType.TIMESTAMP),
        ),
        indexes=(
            Index("idx_documents_body", ("body",), method=IndexMethod.GIN),
            Index("idx_documents_live", ("id",), unique=True, where="deleted_at IS NULL"),
        ),
    )
    diff = compare_schemas(Schema(), Schema(tables=(documents,)))

    postgresql = generate_migration(diff, Dialect.POSTGRESQL, generated_at=GENERATED_AT)
    mysql = generate_migration(diff, Dialect.MYSQL, generated_at=GENERATED_AT)

    assert 'CREATE INDEX "idx_documents_body" ON "documents" USING GIN ("body");' in postgresql.up
    assert (
        'CREATE UNIQUE INDEX "idx_documents_live" ON "documents" ("id") WHERE deleted_at IS NULL;'
    ) in postgresql.up
    assert postgresql.warnings == ()
    assert "CREATE INDEX `idx_documents_body` ON `documents` (`body`);" in mysql.up
    assert "CREATE UNIQUE INDEX `idx_documents_live` ON `documents` (`id`);" in mysql.up
    assert mysql.warnings == (
        'Index "idx_documents_body": MySQL does not support GIN indexes, the default '
        "method is used instead",
        'Index "idx_documents_live": MySQL does not support partial indexes, the '
        "predicate 'deleted_at IS NULL' is dropped",
    )


def test_modified_index_is_recreated(users: Table) -> None:
    """Test drop and create of a changed index plus the locking warning."""
    old = replace(users, indexes=(Index("idx_users_email", ("email",)),))
    new = replace(users, indexes=(Index("idx_users_email", ("email", "id")),))

    migration = migrate(Schema(tables=(old,)), Schema(tables=(new,)))

    assert executable_statements(migration.up)[1:-1] == [
        'DROP INDEX IF EXISTS "idx_users_email";',
        'CREATE INDEX "idx_users_email" ON "users" ("email", "id");',
    ]
    assert migration.warnings == (
        'Table "users": 1 index(es) will be dropped and recreated. This may lock the '
        "table temporarily.",
    )


def test_dropped_column_warnings(users: Table) -> None:
    """Test data loss warnings and rename hints."""
    old = add_column(users, Column("fullname", DataType.TEXT))
    new = add_column(users, Column("full_name", DataType.TEXT, nullable=False))

    migration = migrate(Schema(tables=(old,)), Schema(tables=(new,)))

    assert migration.warnings[0] == (
        'Table "users": 1 column(s) will be dropped (fullname). Their data will be lost.'
    )
    assert migration.warnings[1].startswith(
        'Column in "users" "fullname" may have been renamed to "full_name".',
    )
    assert migration.warnings[2] == (
        'Column "users.full_name": adding a NOT NULL column without a default fails if '
        "the table already has rows."
    )


def test_renamed_table_hint(users: Table) -> None:
    """Test that a similar table name is suggested as a rename."""
    migration = migrate(Schema(tables=(users,)), Schema(tables=(replace(users, name="user"),)))

    assert any(
        warning.startswith('Table "users" may have been renamed to "user"')
        for warning in migration.warnings
    )


def test_statement_limit(users: Table, posts: Table) -> None:
    """Test the large migration warning."""
    diff = compare_schemas(Schema(), Schema(tables=(users, posts)))

    migration = generate_migration(diff, statement_limit=2, generated_at=GENERATED_AT)

    count = len(executable_statements(migration.up)) - 2
    assert migration.warnings[-1] == (
        f"Large migration detected ({count} statements). Consider splitting it into "
        "smaller migrations for better rollback control."
    )
    assert not generate_migration(diff, statement_limit=count).warnings


def test_down_reverts_tables_in_reverse_order() -> None:
    """Test that the down block visits modified tables last to first."""
    first = Table("a", (Column("id", DataType.INTEGER, primary_key=True),))
    second = Table("b", (Column("id", DataType.INTEGER, primary_key=True),))
    extra = Column("note", DataType.TEXT)

    migration = migrate(
        Schema(tables=(first, second)),
        Schema(tables=(add_column(first, extra), add_column(second, extra))),
    )

    assert executable_statements(migration.down)[1:-1] == [
        'ALTER TABLE "b" DROP COLUMN "note";',
        'ALTER TABLE "a" DROP COLUMN "note";',
    ]


def test_table_without_columns() -> None:
    """Test that empty tables are skipped with a warning."""
    migration = migrate(Schema(), Schema(tables=(Table("empty"),)))

    assert "-- Table empty has no columns, skipped" in migration.up
    assert 'Table "empty" has no columns, skipping creation' in migration.warnings


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("CREATE TABLE t (id INT);", True),
        ("  -- comment", False),
        ("", False),
        ("   ", False),
    ],
)
def test_is_statement(line: str, expected: bool) -> None:  # noqa: FBT001
    """Test the distinction between statements, comments and blanks."""
    assert is_statement(line) is expected
