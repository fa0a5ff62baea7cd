"""Prisma schema generation from the schema model."""

from collections import defaultdict
from re import fullmatch

from schema.sqlalchemy_export import pascal_case
from schema.types import CascadeAction, Column, DataType, IndexMethod, Schema, Table

# Logical type -> (Prisma scalar, native type attribute or None)
PRISMA_TYPES: dict[DataType, tuple[str, str | None]] = {
    DataType.SMALLINT: ("Int", "SmallInt"),
    DataType.INTEGER: ("Int", None),
    DataType.BIGINT: ("BigInt", None),
    DataType.VARCHAR: ("String", "VarChar"),
    DataType.TEXT: ("String", None),
    DataType.CHAR: ("String", "Char"),
    DataType.DECIMAL: ("Decimal", "Decimal"),
    DataType.FLOAT: ("Float", "DoublePrecision"),
    DataType.DOUBLE: ("Float", None),
    DataType.REAL: ("Float", "Real"),
    DataType.DATE: ("DateTime", "Date"),
    DataType.TIME: ("DateTime", "Time"),
    DataType.TIMESTAMP: ("DateTime", None),
    DataType.TIMESTAMPTZ: ("DateTime", "Timestamptz"),
    DataType.BOOLEAN: ("Boolean", None),
    DataType.BYTEA: ("Bytes", None),
    DataType.BLOB: ("Bytes", "ByteA"),
    DataType.JSON: ("Json", None),
    DataType.JSONB: ("Json", "JsonB"),
    DataType.UUID: ("String", "Uuid"),
    DataType.INET: ("String", "Inet"),
    DataType.CIDR: ("String", "Cidr"),
    DataType.ARRAY: ("String[]", None),
    DataType.TSVECTOR: ('Unsupported("tsvector")', None),
}

PRISMA_ACTIONS: dict[CascadeAction, str] = {
    CascadeAction.CASCADE: "Cascade",
    CascadeAction.SET_NULL: "SetNull",
    CascadeAction.RESTRICT: "Restrict",
    CascadeAction.NO_ACTION: "NoAction",
}

PRISMA_INDEX_TYPES: dict[IndexMethod, str] = {
    IndexMethod.BTREE: "BTree",
    IndexMethod.HASH: "Hash",
    IndexMethod.GIN: "Gin",
    IndexMethod.GIST: "Gist",
    IndexMethod.BRIN: "Brin",
}

PRISMA_FUNCTIONS = {
    "NOW()": "now()",
    "CURRENT_TIMESTAMP": "now()",
    "GEN_RANDOM_UUID()": "uuid()",
    "UUID()": "uuid()",
}


def prisma_default(column: Column) -> str | None:
    """Render the ``@default`` argument of a column."""
    if column.auto_increment:
        return "autoincrement()"
    if column.default is None:
        return None
    value = column.default
    if function := PRISMA_FUNCTIONS.get(value.upper()):
        return function
    if column.type == DataType.BOOLEAN and value.lower() in {"true", "false"}:
        return value.lower()
    if fullmatch(r"-?\d+(\.\d+)?", value):
        return value
    if fullmatch(r"\w+\(.*\)", value):
        escaped = value.replace('"', '\\"')
        return f'dbgenerated("{escaped}")'
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def native_type(column: Column) -> str | None:
    """Render the ``@db.`` attribute carrying size parameters."""
    _, native = PRISMA_TYPES[column.type]
    if native is None:
        return None
    if column.type in {DataType.VARCHAR, DataType.CHAR} and column.length:
        return f"@db.{native}({column.length})"
    if column.type == DataType.DECIMAL and column.precision:
        return f"@db.{native}({column.precision}, {column.scale or 0})"
    return f"@db.{native}"


def model_name(table: Table) -> str:
    """Model names are the PascalCase table names."""
    return pascal_case(table.name) or table.name


def relation_name(table: Table, column: Column) -> str:
    """Name a relation after the foreign key column owning it."""
    return f"{table.name}_{column.name}"


def generate_field(table: Table, column: Column) -> list[str]:
    """Generate the scalar field (and its doc comment) for a column."""
    scalar, _ = PRISMA_TYPES[column.type]
    optional = "?" if column.nullable and not scalar.endswith("[]") else ""
    attributes: list[str] = []
    if column.primary_key and not table.has_composite_primary_key:
        attributes.append("@id")
    if column.unique and not column.primary_key:
        attributes.append("@unique")
    if (default := prisma_default(column)) is not None:
        attributes.append(f"@default({default})")
    if native := native_type(column):
        attributes.append(native)
    lines = [f"  /// {column.comment}"] if column.comment else []
    lines.append(" ".join((f"  {column.name}", f"{scalar}{optional}", *attributes)).rstrip())
    return lines


def generate_model(table: Table, schema: Schema, back_relations: list[str]) -> str:
    """Generate a complete model block for a table."""
    models = {candidate.name: model_name(candidate) for candidate in schema.tables}
    lines = [f"/// {table.comment}"] if table.comment else []
    lines.append(f"model {model_name(table)} {{")
    for column in table.columns:
        lines.extend(generate_field(table, column))

    for column in table.columns:
        if (reference := column.references) is None:
            continue
        target = models.get(reference.table, pascal_case(reference.table))
        optional = "?" if column.nullable else ""
        arguments = [
            f'"{relation_name(table, column)}"',
            f"fields: [{column.name}]",
            f"references: [{reference.column}]",
        ]
        if reference.on_delete != CascadeAction.NO_ACTION:
            arguments.append(f"onDelete: {PRISMA_ACTIONS[reference.on_delete]}")
        if reference.on_update != CascadeAction.NO_ACTION:
            arguments.append(f"onUpdate: {PRISMA_ACTIONS[reference.on_update]}")
        lines.append(
            f"  {relation_name(table, column)}_rel {target}{optional} "
            f"@relation({', '.join(arguments)})",
        )
    lines.extend(back_relations)

    if table.has_composite_primary_key:
        lines.append(f"  @@id([{', '.join(table.primary_keys)}])")
    for index in table.indexes:
        keyword = "@@unique" if index.unique else "@@index"
        arguments = [f"[{', '.join(index.columns)}]", f'map: "{index.name}"']
        if index.method != IndexMethod.BTREE:
            arguments.append(f"type: {PRISMA_INDEX_TYPES[index.method]}")
        lines.append(f"  {keyword}({', '.join(arguments)})")
    if model_name(table) != table.name:
        lines.append(f'  @@map("{table.name}")')
    lines.append("}")
    return "\n".join(lines)


def schema_to_prisma(schema: Schema, provider: str = "postgresql") -> str:
    """Generate a Prisma schema file for every table in a schema."""
    back_relations: dict[str, list[str]] = defaultdict(list)
    for table in schema.tables:
        for column in table.columns:
            if (reference := column.references) is not None:
                back_relations[reference.table].append(
                    f"  {relation_name(table, column)}_refs {model_name(table)}[] "
                    f'@relation("{relation_name(table, column)}")',
                )

    header = [
        "generator client {",
        '  provider = "prisma-client-js"',
        "}",
        "",
        "datasource db {",
        f'  provider = "{provider}"',
        '  url      = env("DATABASE_URL")',
        "}",
    ]
    models = [
        generate_model(table, schema, back_relations[table.name])
        for table in schema.tables
    ]
    return "\n\n".join(("\n".join(header), *models)) + "\n"
