"""Shape reflected SQLAlchemy metadata into the canonical schema model."""

from logging import getLogger
from pathlib import Path
from typing import Any
from warnings import catch_warnings, filterwarnings

from sqlalchemy import Engine, MetaData, create_engine
from sqlalchemy.exc import SAWarning
from sqlalchemy.schema import Column as SQLColumn
from sqlalchemy.schema import ForeignKey, UniqueConstraint
from sqlalchemy.schema import Index as SQLIndex
from sqlalchemy.schema import Table as SQLTable

from schema.type_conversion import sql_to_data_type
from schema.types import (
    INTEGER_TYPES,
    CascadeAction,
    Column,
    Index,
    Position,
    Reference,
    Schema,
    Table,
)

logger = getLogger(__name__)

# Matches the grid used when a canvas has no stored coordinates
GRID_COLUMNS = 3
GRID_WIDTH = 400
GRID_HEIGHT = 200
GRID_MARGIN = 100


def grid_position(index: int) -> Position:
    """Place the n-th table on a three-column grid."""
    return Position(
        x=GRID_MARGIN + (index % GRID_COLUMNS) * GRID_WIDTH,
        y=GRID_MARGIN + (index // GRID_COLUMNS) * GRID_HEIGHT,
    )


def read_only_sqlite(sqlite_location: Path) -> Engine:
    """Create a read-only SQLAlchemy engine for SQLite database."""
    connection_string = f"sqlite:///{sqlite_location}?mode=ro"
    return create_engine(connection_string, connect_args={"uri": True})


def _cascade_action(value: str | None) -> CascadeAction:
    if not value:
        return CascadeAction.NO_ACTION
    try:
        return CascadeAction(value.upper())
    except ValueError:
        logger.warning("Unsupported referential action %r, using NO ACTION", value)
        return CascadeAction.NO_ACTION


def _reference_from_sqla(foreign_key: ForeignKey) -> Reference:
    """Derive a Reference from a reflected foreign key."""
    return Reference(
        table=foreign_key.column.table.name,
        column=foreign_key.column.name,
        on_delete=_cascade_action(foreign_key.ondelete),
        on_update=_cascade_action(foreign_key.onupdate),
    )


def _column_from_sqla(column: SQLColumn[Any], unique_columns: set[str]) -> Column:
    """Derive a Column from a SQLAlchemy Column object."""
    mapped = sql_to_data_type(column.type)
    foreign_key = next(iter(column.foreign_keys), None)
    primary_key = column.primary_key
    # SQLite reports rowid aliases as "auto"
    auto_increment = (
        primary_key
        and len(column.table.primary_key.columns) == 1
        and (
            column.autoincrement is True
            or (column.autoincrement == "auto" and mapped.type in INTEGER_TYPES)
        )
    )
    default = column.server_default
    return Column(
        name=column.name,
        type=mapped.type,
        length=mapped.length,
        precision=mapped.precision,
        scale=mapped.scale,
        nullable=bool(column.nullable) and not primary_key,
        unique=column.name in unique_columns,
        primary_key=primary_key,
        auto_increment=auto_increment,
        default=(
            str(default.arg).strip("'")  # pyright: ignore[reportAttributeAccessIssue]
            if default is not None
            else None
        ),
        comment=column.comment,
        references=_reference_from_sqla(foreign_key) if foreign_key else None,
    )


def _index_from_sqla(index: SQLIndex) -> Index:
    """Derive an Index from a reflected SQLAlchemy Index."""
    return Index(
        name=index.name or f"idx_{index.table.name}",  # pyright: ignore[reportOptionalMemberAccess]
        columns=tuple(column.name for column in index.columns),
        unique=bool(index.unique),
    )


def _table_from_sqla(table: SQLTable, position: Position) -> Table:
    """Derive a Table from a SQLAlchemy Table object."""
    # Single-column unique indexes and constraints mark the column unique
    unique_columns = {
        next(iter(index.columns)).name
        for index in table.indexes
        if index.unique and len(index.columns) == 1
    }
    unique_columns |= {
        next(iter(constraint.columns)).name
        for constraint in table.constraints
        if isinstance(constraint, UniqueConstraint)
        and len(constraint.columns) == 1
    }
    return Table(
        name=table.name,
        columns=tuple(_column_from_sqla(col, unique_columns) for col in table.columns),
        indexes=tuple(
            _index_from_sqla(index)
            for index in sorted(table.indexes, key=lambda index: index.name or "")
            if not (index.unique and len(index.columns) == 1)
        ),
        position=position,
        comment=table.comment,
    )


def metadata_to_schema(metadata: MetaData, name: str = "Reflected Schema") -> Schema:
    """Convert reflected metadata into a schema, tables in dependency order."""
    with catch_warnings():
        filterwarnings("ignore", category=SAWarning)
        tables = metadata.sorted_tables
    return Schema(
        name=name,
        tables=tuple(
            _table_from_sqla(table, grid_position(index))
            for index, table in enumerate(tables)
        ),
    )


def reflect_metadata(engine: Engine) -> MetaData:
    """Reflect all tables reachable through an engine."""
    metadata = MetaData()
    metadata.reflect(bind=engine)
    logger.debug("Reflected %d tables from %s", len(metadata.tables), engine.url)
    return metadata


def sqlite_to_schema(sqlite_database: Engine) -> Schema:
    """Generate a schema from a SQLite database using metadata reflection."""
    return metadata_to_schema(
        reflect_metadata(sqlite_database),
        name=sqlite_database.url.database or "unknown",
    )
