"""Canonical schema model shared by the parser, comparator and generator."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import NamedTuple
from uuid import uuid4


class DataType(StrEnum):
    """Logical column types understood by every dialect."""

    SMALLINT = "SMALLINT"
    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    VARCHAR = "VARCHAR"
    TEXT = "TEXT"
    CHAR = "CHAR"
    DECIMAL = "DECIMAL"
    FLOAT = "FLOAT"
    DOUBLE = "DOUBLE"
    REAL = "REAL"
    DATE = "DATE"
    TIME = "TIME"
    TIMESTAMP = "TIMESTAMP"
    TIMESTAMPTZ = "TIMESTAMPTZ"
    BOOLEAN = "BOOLEAN"
    BYTEA = "BYTEA"
    BLOB = "BLOB"
    JSON = "JSON"
    JSONB = "JSONB"
    UUID = "UUID"
    INET = "INET"
    CIDR = "CIDR"
    ARRAY = "ARRAY"
    TSVECTOR = "TSVECTOR"


class CascadeAction(StrEnum):
    """Referential action applied on delete or update of the referenced row."""

    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO ACTION"


class IndexMethod(StrEnum):
    """Index access methods."""

    BTREE = "BTREE"
    HASH = "HASH"
    GIN = "GIN"
    GIST = "GIST"
    BRIN = "BRIN"


INTEGER_TYPES = frozenset({DataType.SMALLINT, DataType.INTEGER, DataType.BIGINT})
FLOAT_TYPES = frozenset({DataType.FLOAT, DataType.DOUBLE, DataType.REAL})
STRING_TYPES = frozenset({DataType.VARCHAR, DataType.TEXT, DataType.CHAR})
TIMESTAMP_TYPES = frozenset({DataType.TIMESTAMP, DataType.TIMESTAMPTZ})
BOUNDED_STRING_TYPES = frozenset({DataType.VARCHAR, DataType.CHAR})

# Foreign keys may connect columns of different types within one family
TYPE_FAMILIES = (INTEGER_TYPES, FLOAT_TYPES, STRING_TYPES, TIMESTAMP_TYPES)


def new_id() -> str:
    """Generate an opaque identity for a schema element."""
    return uuid4().hex


def compatible_types(source: DataType, target: DataType) -> bool:
    """Check whether a foreign key may join columns of these two types."""
    if source == target:
        return True
    return any(source in family and target in family for family in TYPE_FAMILIES)


@dataclass(frozen=True, slots=True)
class Reference:
    """Foreign key target of a column."""

    table: str
    column: str
    on_delete: CascadeAction = CascadeAction.NO_ACTION
    on_update: CascadeAction = CascadeAction.NO_ACTION

    @property
    def target(self) -> tuple[str, str]:
        """Referenced (table, column) pair, ignoring the actions."""
        return self.table, self.column


@dataclass(frozen=True, slots=True)
class Column:
    """A single table column.

    ``default`` holds either a literal without surrounding quotes or a
    function call such as ``NOW()``. Identity is excluded from equality.
    """

    name: str
    type: DataType
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    nullable: bool = True
    unique: bool = False
    primary_key: bool = False
    auto_increment: bool = False
    default: str | None = None
    comment: str | None = None
    references: Reference | None = None
    id: str = field(default_factory=new_id, compare=False)

    @property
    def is_unique(self) -> bool:
        """Primary key columns are implicitly unique."""
        return self.unique or self.primary_key


@dataclass(frozen=True, slots=True)
class Index:
    """Named index over an ordered list of columns of its owning table."""

    name: str
    columns: tuple[str, ...]
    method: IndexMethod = IndexMethod.BTREE
    unique: bool = False
    where: str | None = None
    comment: str | None = None
    id: str = field(default_factory=new_id, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))


class Position(NamedTuple):
    """Canvas coordinates of a table."""

    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True, slots=True)
class Table:
    """A table with its columns and indexes."""

    name: str
    columns: tuple[Column, ...] = ()
    indexes: tuple[Index, ...] = ()
    position: Position = Position()
    comment: str | None = None
    id: str = field(default_factory=new_id, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(self, "indexes", tuple(self.indexes))

    @property
    def primary_keys(self) -> tuple[str, ...]:
        """Names of the primary key columns in declaration order."""
        return tuple(column.name for column in self.columns if column.primary_key)

    @property
    def has_composite_primary_key(self) -> bool:
        """Check whether more than one column forms the primary key."""
        return len(self.primary_keys) > 1

    def get_column(self, name: str) -> Column | None:
        """Find a column by exact name."""
        return next((column for column in self.columns if column.name == name), None)


@dataclass(frozen=True, slots=True)
class Schema:
    """A complete schema: the unit passed between all components."""

    name: str = "Untitled Schema"
    tables: tuple[Table, ...] = ()
    description: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "tables", tuple(self.tables))

    def get_table(self, name: str) -> Table | None:
        """Find a table by exact name."""
        return next((table for table in self.tables if table.name == name), None)


def render_type(column: Column) -> str:
    """Render the logical type of a column with its size parameters.

    Examples:
        VARCHAR with length 255 -> ``VARCHAR(255)``
        DECIMAL with precision 10 and scale 2 -> ``DECIMAL(10,2)``

    """
    if column.type in BOUNDED_STRING_TYPES and column.length is not None:
        return f"{column.type}({column.length})"
    if column.type == DataType.DECIMAL and column.precision is not None:
        if column.scale is not None:
            return f"{column.type}({column.precision},{column.scale})"
        return f"{column.type}({column.precision})"
    return str(column.type)
