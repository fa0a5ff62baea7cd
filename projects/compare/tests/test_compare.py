"""Tests for structural schema comparison."""

from dataclasses import replace

import pytest

from schema.types import (
    CascadeAction,
    Column,
    DataType,
    Index,
    IndexMethod,
    Reference,
    Schema,
    Table,
)

from compare.main import compare_columns, compare_indexes, compare_schemas, count_changes
from compare.types import (
    ColumnType,
    CommentChanged,
    DefaultChanged,
    IndexChangeKind,
    NullabilityChanged,
    ReferenceActionsChanged,
    ReferenceChanged,
    TypeChanged,
)


@pytest.fixture(name="users")
def create_users() -> Table:
    """Create the users table with a primary key and a unique email."""
    return Table(
        "users",
        columns=(
            Column("id", DataType.INTEGER, nullable=False, primary_key=True),
            Column("email", DataType.VARCHAR, length=255, nullable=False, unique=True),
        ),
    )


@pytest.fixture(name="schema")
def create_schema(users: Table) -> Schema:
    """Create a one-table schema."""
    return Schema("app", (users,))


def test_identical_schemas_have_no_changes(schema: Schema) -> None:
    """Test that comparing a schema with itself yields an empty diff."""
    diff = compare_schemas(schema, schema)

    assert not diff.has_changes
    assert diff.tables_added == diff.tables_removed == diff.tables_modified == ()


def test_identity_does_not_matter(schema: Schema) -> None:
    """Test that freshly identified copies compare as unchanged."""
    copy = Schema(
        "app",
        tuple(
            Table(table.name, tuple(replace(c, id="x" + c.name) for c in table.columns))
            for table in schema.tables
        ),
    )

    assert not compare_schemas(schema, copy).has_changes


def test_added_column(schema: Schema, users: Table) -> None:
    """Test that a new column is the only change recorded."""
    name = Column("name", DataType.VARCHAR, length=100)
    new = Schema("app", (replace(users, columns=(*users.columns, name)),))

    diff = compare_schemas(schema, new)

    assert diff.tables_added == ()
    assert diff.tables_removed == ()
    assert len(diff.tables_modified) == 1
    change = diff.tables_modified[0]
    assert change.name == "users"
    assert change.columns_added == (name,)
    assert change.columns_removed == ()
    assert change.columns_modified == ()
    assert change.indexes_added == change.indexes_removed == change.indexes_modified == ()


def test_added_and_removed_tables(schema: Schema, users: Table) -> None:
    """Test table level additions and removals."""
    posts = Table("posts", (Column("id", DataType.INTEGER, primary_key=True),))

    diff = compare_schemas(schema, Schema("app", (posts,)))

    assert diff.tables_added == (posts,)
    assert diff.tables_removed == (users,)
    assert diff.tables_modified == ()


def test_rename_is_drop_and_add(schema: Schema, users: Table) -> None:
    """Test that renamed tables are not matched."""
    renamed = replace(users, name="accounts")

    diff = compare_schemas(schema, Schema("app", (renamed,)))

    assert [t.name for t in diff.tables_added] == ["accounts"]
    assert [t.name for t in diff.tables_removed] == ["users"]


def test_names_are_case_sensitive(schema: Schema, users: Table) -> None:
    """Test that a change of case counts as a different table."""
    diff = compare_schemas(schema, Schema("app", (replace(users, name="Users"),)))

    assert len(diff.tables_added) == len(diff.tables_removed) == 1


def test_malformed_input_yields_empty_diff(schema: Schema) -> None:
    """Test that missing input does not raise."""
    assert not compare_schemas(None, schema).has_changes
    assert not compare_schemas(schema, "not a schema").has_changes  # type: ignore[arg-type]


def test_column_attribute_changes() -> None:
    """Test that each differing attribute is recorded with typed values."""
    old = Column("price", DataType.DECIMAL, precision=8, scale=2, default="0")
    new = Column(
        "price",
        DataType.DECIMAL,
        precision=10,
        scale=2,
        nullable=False,
        comment="Gross price",
    )

    changes = compare_columns(old, new)

    assert changes == (
        TypeChanged(ColumnType(DataType.DECIMAL, None, 8, 2), ColumnType(DataType.DECIMAL, None, 10, 2)),
        NullabilityChanged(old=True, new=False),
        DefaultChanged("0", None),
        CommentChanged(None, "Gross price"),
    )
    assert str(changes[0].old) == "DECIMAL(8,2)"


def test_reference_changes() -> None:
    """Test retargeted references versus changed actions."""
    base = Column("user_id", DataType.INTEGER, references=Reference("users", "id"))
    cascade = replace(
        base,
        references=Reference("users", "id", on_delete=CascadeAction.CASCADE),
    )
    retarget = replace(base, references=Reference("accounts", "id"))

    assert compare_columns(base, cascade) == (
        ReferenceActionsChanged(base.references, cascade.references),
    )
    assert compare_columns(base, retarget) == (
        ReferenceChanged(base.references, retarget.references),
    )
    assert compare_columns(base, replace(base, references=None)) == (
        ReferenceChanged(base.references, None),
    )


def test_unchanged_column_has_no_changes() -> None:
    """Test that equal columns produce no change records."""
    column = Column("a", DataType.TEXT, comment="")

    assert compare_columns(column, replace(column, comment=None)) == ()


def test_index_changes() -> None:
    """Test classification of index modifications."""
    old = Index("idx_a", ("a",))
    new = Index("idx_a", ("a", "b"), method=IndexMethod.HASH, unique=True, where="a > 0")

    assert compare_indexes(old, new) == (
        IndexChangeKind.COLUMNS,
        IndexChangeKind.METHOD,
        IndexChangeKind.UNIQUE,
        IndexChangeKind.WHERE,
    )
    assert compare_indexes(old, replace(old, comment="x")) == ()


def test_modified_column_and_index(schema: Schema, users: Table) -> None:
    """Test that modified columns and indexes are found by name."""
    email = replace(users.columns[1], length=320)
    new_users = replace(
        users,
        columns=(users.columns[0], email),
        indexes=(Index("idx_users_email", ("email",)),),
    )
    old_users = replace(users, indexes=(Index("idx_users_email", ("email",), unique=True),))

    diff = compare_schemas(Schema(tables=(old_users,)), Schema(tables=(new_users,)))

    change = diff.tables_modified[0]
    column = change.columns_modified[0]
    assert column.name == "email"
    type_change = column.find(TypeChanged)
    assert type_change is not None
    assert (str(type_change.old), str(type_change.new)) == ("VARCHAR(255)", "VARCHAR(320)")
    assert column.find(NullabilityChanged) is None
    assert change.indexes_modified[0].kinds == (IndexChangeKind.UNIQUE,)


def test_count_changes(schema: Schema, users: Table) -> None:
    """Test change counts per category."""
    posts = Table("posts", (Column("id", DataType.INTEGER, primary_key=True),))
    grown = replace(users, columns=(*users.columns, Column("name", DataType.TEXT)))

    counts = count_changes(compare_schemas(schema, Schema("app", (grown, posts))))

    assert counts.tables_added == 1
    assert counts.tables_modified == 1
    assert counts.columns_added == 1
    assert counts.total == 2
