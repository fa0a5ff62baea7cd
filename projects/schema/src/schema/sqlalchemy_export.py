"""SQLAlchemy model code generation working directly from the schema model."""

import keyword
from collections import defaultdict
from re import sub

from schema.type_conversion import data_type_to_sql, sql_to_python, sql_to_string
from schema.types import CascadeAction, Column, DataType, Index, Schema, Table

type Imports = dict[str, set[str]]


def pascal_case(name: str) -> str:
    """Convert name to PascalCase."""
    return "".join(word[:1].upper() + word[1:] for word in name.split("_") if word)


def snake_case(name: str) -> str:
    """Convert name to snake_case."""
    name = sub("([a-z0-9])([A-Z])|([A-Z])([A-Z][a-z])", r"\1\3_\2\4", name).lower()
    return f"{name}_" if keyword.iskeyword(name) else name


def render_foreign_key(column: Column, imports: Imports) -> str | None:
    """Render the ForeignKey argument of a column, if it references one."""
    if (reference := column.references) is None:
        return None
    imports["sqlalchemy"].add("ForeignKey")
    args = [f'"{reference.table}.{reference.column}"']
    if reference.on_delete != CascadeAction.NO_ACTION:
        args.append(f'ondelete="{reference.on_delete}"')
    if reference.on_update != CascadeAction.NO_ACTION:
        args.append(f'onupdate="{reference.on_update}"')
    return f"ForeignKey({', '.join(args)})"


def generate_column_definition(table: Table, column: Column, imports: Imports) -> str:
    """Generate mapped_column definition for a column."""
    sql_type = data_type_to_sql(column)
    type_info = sql_to_python(sql_type)
    if type_info.module != "builtins":
        imports[type_info.module].add(type_info.name)
    imports["sqlalchemy"].add(sql_type.__class__.__name__)
    if column.type == DataType.ARRAY:
        imports["sqlalchemy"].add("Text")

    python_type = (
        f"{type_info.expression} | None" if column.nullable else type_info.expression
    )

    args = [f'"{column.name}"', sql_to_string(sql_type)]
    if foreign_key := render_foreign_key(column, imports):
        args.append(foreign_key)
    if column.primary_key:
        args.append("primary_key=True")
        if column.auto_increment and not table.has_composite_primary_key:
            args.append("autoincrement=True")
    if column.unique and not column.primary_key:
        args.append("unique=True")
    if column.default is not None:
        args.append(f"server_default={column.default!r}")
    if column.comment:
        args.append(f"comment={column.comment!r}")

    imports["sqlalchemy.orm"].update(("Mapped", "mapped_column"))
    return (
        f"    {snake_case(column.name)}: Mapped[{python_type}] = "
        f"mapped_column({', '.join(args)})"
    )


def generate_index_definition(index: Index, imports: Imports) -> str:
    """Generate an Index entry for ``__table_args__``."""
    imports["sqlalchemy"].add("Index")
    args = [f'"{index.name}"', *(f'"{name}"' for name in index.columns)]
    if index.unique:
        args.append("unique=True")
    return f"        Index({', '.join(args)}),"


def generate_class_definition(table: Table, base_class: str, imports: Imports) -> str:
    """Generate complete SQLAlchemy class definition for a table."""
    lines = [
        f"class {pascal_case(table.name)}({base_class}):",
        f'    """{table.comment or f"Model for the {table.name} table."}"""',
        "",
        f'    __tablename__ = "{table.name}"',
    ]
    if table.indexes:
        lines.append("    __table_args__ = (")
        lines.extend(generate_index_definition(index, imports) for index in table.indexes)
        lines.append("    )")
    lines.append("")
    lines.extend(
        generate_column_definition(table, column, imports) for column in table.columns
    )
    return "\n".join(lines)


def generate_imports(imports: Imports) -> str:
    """Generate import statements from collected imports."""
    lines = [
        f"from {module} import {", ".join(sorted(names))}"
        for module, names in sorted(imports.items(), key=lambda item: item[0] != "__future__")
        if names
    ]
    return "\n".join(lines)


def generate_base_class(base_name: str) -> str:
    """Generate the base class definition."""
    return f'''class {base_name}(DeclarativeBase):
    """Base class for all generated models."""'''


def schema_to_sqlalchemy(schema: Schema, base_class: str = "Base") -> str:
    """Generate SQLAlchemy declarative models for every table in a schema."""
    imports: Imports = defaultdict(set)
    imports["__future__"].add("annotations")
    imports["sqlalchemy.orm"].add("DeclarativeBase")

    # Force evaluation to populate imports
    models = [
        generate_class_definition(table, base_class, imports) for table in schema.tables
    ]

    parts = (
        f'"""SQLAlchemy models generated from the {schema.name} schema."""',
        "",
        generate_imports(imports),
        "",
        "",
        generate_base_class(base_class),
        *(f"\n\n{model}" for model in models),
    )
    return "\n".join(parts) + "\n"
