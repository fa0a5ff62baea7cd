"""Module for mapping SQLAlchemy TypeEngine objects to logical column types."""

from typing import Any, NamedTuple

from sqlalchemy.dialects.postgresql import CIDR, INET, JSONB, TSVECTOR
from sqlalchemy.types import (
    ARRAY,
    BIGINT,
    CHAR,
    DOUBLE,
    JSON,
    REAL,
    SMALLINT,
    TEXT,
    TIMESTAMP,
    UUID,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Double,
    Float,
    Integer,
    LargeBinary,
    Numeric,
    SmallInteger,
    String,
    Text,
    Time,
    TypeEngine,
    Uuid,
)

from schema.types import Column, DataType


class TypeSpec(NamedTuple):
    """Logical type with its size parameters."""

    type: DataType
    length: int | None = None
    precision: int | None = None
    scale: int | None = None


class TypeInfo(NamedTuple):
    """Holds information about a SQLAlchemy type for code generation."""

    module: str
    name: str
    expression: str


def sql_to_data_type(sql_type: TypeEngine[Any]) -> TypeSpec:
    """Map a reflected SQLAlchemy type onto a logical type.

    Order matters: subclasses are matched before their bases.

    Examples:
        VARCHAR(255) -> VARCHAR with length=255
        NUMERIC(10,2) -> DECIMAL with precision=10, scale=2
        DATETIME -> TIMESTAMP

    """
    match sql_type:
        case Boolean():
            return TypeSpec(DataType.BOOLEAN)
        case SmallInteger():
            return TypeSpec(DataType.SMALLINT)
        case BigInteger():
            return TypeSpec(DataType.BIGINT)
        case Integer():
            return TypeSpec(DataType.INTEGER)
        case JSONB():
            return TypeSpec(DataType.JSONB)
        case JSON():
            return TypeSpec(DataType.JSON)
        case ARRAY():
            return TypeSpec(DataType.ARRAY)
        case TSVECTOR():
            return TypeSpec(DataType.TSVECTOR)
        case INET():
            return TypeSpec(DataType.INET)
        case CIDR():
            return TypeSpec(DataType.CIDR)
        case Uuid():
            return TypeSpec(DataType.UUID)
        case Text():
            return TypeSpec(DataType.TEXT)
        case CHAR():
            return TypeSpec(DataType.CHAR, length=sql_type.length or 1)
        case String() if sql_type.length is None:
            return TypeSpec(DataType.TEXT)
        case String():
            return TypeSpec(DataType.VARCHAR, length=sql_type.length)
        case REAL():
            return TypeSpec(DataType.REAL)
        case Double():
            return TypeSpec(DataType.DOUBLE)
        case Float():
            return TypeSpec(DataType.FLOAT)
        case Numeric():
            return TypeSpec(
                DataType.DECIMAL,
                precision=sql_type.precision,
                scale=sql_type.scale,
            )
        case LargeBinary():
            return TypeSpec(DataType.BLOB)
        case DateTime() if sql_type.timezone:
            return TypeSpec(DataType.TIMESTAMPTZ)
        case DateTime():
            return TypeSpec(DataType.TIMESTAMP)
        case Date():
            return TypeSpec(DataType.DATE)
        case Time():
            return TypeSpec(DataType.TIME)
        case _:
            return TypeSpec(DataType.VARCHAR, length=255)


def data_type_to_sql(column: Column) -> TypeEngine[Any]:
    """Convert the logical type of a column back to a SQLAlchemy TypeEngine."""
    sql_type: TypeEngine[Any]

    match column.type:
        case DataType.SMALLINT:
            sql_type = SMALLINT()
        case DataType.INTEGER:
            sql_type = Integer()
        case DataType.BIGINT:
            sql_type = BIGINT()
        case DataType.VARCHAR:
            sql_type = String(column.length)
        case DataType.CHAR:
            sql_type = CHAR(column.length)
        case DataType.TEXT | DataType.TSVECTOR:
            sql_type = TEXT()
        case DataType.DECIMAL:
            sql_type = Numeric(precision=column.precision, scale=column.scale)
        case DataType.FLOAT:
            sql_type = Float()
        case DataType.DOUBLE:
            sql_type = DOUBLE()
        case DataType.REAL:
            sql_type = REAL()
        case DataType.DATE:
            sql_type = Date()
        case DataType.TIME:
            sql_type = Time()
        case DataType.TIMESTAMP:
            sql_type = TIMESTAMP()
        case DataType.TIMESTAMPTZ:
            sql_type = TIMESTAMP(timezone=True)
        case DataType.BOOLEAN:
            sql_type = Boolean()
        case DataType.BYTEA | DataType.BLOB:
            sql_type = LargeBinary()
        case DataType.JSON | DataType.JSONB:
            sql_type = JSON()
        case DataType.UUID:
            sql_type = UUID()
        case DataType.ARRAY:
            sql_type = ARRAY(Text())
        case _:
            sql_type = String()

    return sql_type


def sql_to_string(sql_type: TypeEngine[Any]) -> str:
    """Convert a SQLAlchemy type to its string representation for code generation."""
    match sql_type:
        case String() if sql_type.length:
            return f"{sql_type.__class__.__name__}({sql_type.length})"
        case Numeric() if sql_type.precision and sql_type.scale is not None:
            return f"Numeric({sql_type.precision}, {sql_type.scale})"
        case Numeric() if sql_type.precision:
            return f"Numeric({sql_type.precision})"
        case TIMESTAMP() if sql_type.timezone:
            return "TIMESTAMP(timezone=True)"
        case ARRAY():
            return "ARRAY(Text)"
        case _:
            return sql_type.__class__.__name__


def sql_to_python(sql_type: TypeEngine[Any]) -> TypeInfo:
    """Get the 3 components needed for code generation from SQLAlchemy type.

    Returns module, import_name, and expression.
    """
    match sql_type:
        case JSON():
            return TypeInfo(module="typing", name="Any", expression="Any")
        case ARRAY():
            return TypeInfo(module="builtins", name="list", expression="list[str]")
        case _:
            py_type = sql_type.python_type
            return TypeInfo(
                module=py_type.__module__,
                name=py_type.__name__,
                expression=py_type.__name__,
            )
