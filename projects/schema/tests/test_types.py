"""Tests for the canonical schema model."""

import pytest

from schema.types import (
    CascadeAction,
    Column,
    DataType,
    Index,
    Reference,
    Schema,
    Table,
    compatible_types,
    render_type,
)


@pytest.fixture(name="users")
def create_users() -> Table:
    """Create a users table with a single-column primary key."""
    return Table(
        name="users",
        columns=(
            Column("id", DataType.INTEGER, nullable=False, primary_key=True),
            Column("email", DataType.VARCHAR, length=255, unique=True),
        ),
        indexes=(Index("idx_users_email", ("email",)),),
    )


def test_identity_excluded_from_equality() -> None:
    """Test that two columns differing only by id compare equal."""
    first = Column("id", DataType.INTEGER, id="a")
    second = Column("id", DataType.INTEGER, id="b")

    assert first == second
    assert first.id != second.id


def test_generated_ids_are_unique() -> None:
    """Test that every element receives its own identity."""
    assert Column("a", DataType.TEXT).id != Column("a", DataType.TEXT).id


def test_primary_key_is_implicitly_unique() -> None:
    """Test that primary key columns report as unique."""
    assert Column("id", DataType.INTEGER, primary_key=True).is_unique
    assert Column("code", DataType.TEXT, unique=True).is_unique
    assert not Column("name", DataType.TEXT).is_unique


def test_sequences_become_tuples() -> None:
    """Test that list arguments are stored as tuples."""
    index = Index("idx", ["a", "b"])  # type: ignore[arg-type]
    table = Table("t", columns=[Column("a", DataType.TEXT)])  # type: ignore[arg-type]

    assert index.columns == ("a", "b")
    assert isinstance(table.columns, tuple)


def test_table_lookups(users: Table) -> None:
    """Test primary key and column lookups on a table."""
    assert users.primary_keys == ("id",)
    assert not users.has_composite_primary_key
    assert users.get_column("email") is users.columns[1]
    assert users.get_column("missing") is None


def test_composite_primary_key() -> None:
    """Test detection of a composite primary key."""
    table = Table(
        "memberships",
        columns=(
            Column("user_id", DataType.INTEGER, primary_key=True),
            Column("group_id", DataType.INTEGER, primary_key=True),
        ),
    )

    assert table.has_composite_primary_key
    assert table.primary_keys == ("user_id", "group_id")


def test_schema_get_table(users: Table) -> None:
    """Test finding a table by name."""
    schema = Schema(tables=(users,))

    assert schema.get_table("users") is users
    assert schema.get_table("Users") is None


def test_reference_defaults() -> None:
    """Test that references default to NO ACTION."""
    reference = Reference("users", "id")

    assert reference.on_delete == CascadeAction.NO_ACTION
    assert reference.on_update == CascadeAction.NO_ACTION
    assert reference.target == ("users", "id")


@pytest.mark.parametrize(
    ("column", "expected"),
    [
        (Column("a", DataType.VARCHAR, length=100), "VARCHAR(100)"),
        (Column("a", DataType.CHAR, length=2), "CHAR(2)"),
        (Column("a", DataType.DECIMAL, precision=10, scale=2), "DECIMAL(10,2)"),
        (Column("a", DataType.DECIMAL, precision=8), "DECIMAL(8)"),
        (Column("a", DataType.TEXT), "TEXT"),
        (Column("a", DataType.VARCHAR), "VARCHAR"),
    ],
)
def test_render_type(column: Column, expected: str) -> None:
    """Test rendering of logical types with size parameters."""
    assert render_type(column) == expected


def test_compatible_types() -> None:
    """Test foreign key type families."""
    assert compatible_types(DataType.INTEGER, DataType.BIGINT)
    assert compatible_types(DataType.VARCHAR, DataType.TEXT)
    assert compatible_types(DataType.UUID, DataType.UUID)
    assert not compatible_types(DataType.INTEGER, DataType.VARCHAR)
    assert not compatible_types(DataType.UUID, DataType.TEXT)
