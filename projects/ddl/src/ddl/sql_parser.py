"""Parse SQL DDL (CREATE TABLE / CREATE INDEX) into the schema model.

Only the subset of DDL needed to describe tables, columns, inline foreign
keys and indexes is understood. Table-level ``FOREIGN KEY``, ``UNIQUE``,
``CHECK`` and ``INDEX``/``KEY`` clauses are skipped.
"""

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import replace
from logging import getLogger

from schema.main import grid_position
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
from schema.validation import validate_schema

from ddl.tokenizer import (
    Token,
    TokenKind,
    check_balance,
    matching_close,
    render_tokens,
    split_statements,
    split_tokens,
    strip_comments,
    unquote,
)
from ddl.types import ParseError, ParseResult

logger = getLogger(__name__)

MAX_TABLES = 100
MANY_TABLES = 50

VARCHAR_LENGTH = (1, 65535)
CHAR_LENGTH = (1, 255)
DECIMAL_PRECISION = (1, 65)
DECIMAL_SCALE = (0, 30)

DEFAULT_VARCHAR_LENGTH = 255
DEFAULT_CHAR_LENGTH = 1
DEFAULT_DECIMAL = (10, 2)

TYPE_ALIASES: dict[str, DataType] = {
    "SMALLINT": DataType.SMALLINT,
    "INT2": DataType.SMALLINT,
    "TINYINT": DataType.SMALLINT,
    "INT": DataType.INTEGER,
    "INTEGER": DataType.INTEGER,
    "INT4": DataType.INTEGER,
    "MEDIUMINT": DataType.INTEGER,
    "BIGINT": DataType.BIGINT,
    "INT8": DataType.BIGINT,
    "VARCHAR": DataType.VARCHAR,
    "VARCHAR2": DataType.VARCHAR,
    "NVARCHAR": DataType.VARCHAR,
    "CHARACTER VARYING": DataType.VARCHAR,
    "CHAR": DataType.CHAR,
    "CHARACTER": DataType.CHAR,
    "NCHAR": DataType.CHAR,
    "BPCHAR": DataType.CHAR,
    "TEXT": DataType.TEXT,
    "TINYTEXT": DataType.TEXT,
    "MEDIUMTEXT": DataType.TEXT,
    "LONGTEXT": DataType.TEXT,
    "CLOB": DataType.TEXT,
    "CITEXT": DataType.TEXT,
    "DECIMAL": DataType.DECIMAL,
    "DEC": DataType.DECIMAL,
    "NUMERIC": DataType.DECIMAL,
    "FLOAT": DataType.FLOAT,
    "FLOAT8": DataType.DOUBLE,
    "DOUBLE": DataType.DOUBLE,
    "DOUBLE PRECISION": DataType.DOUBLE,
    "REAL": DataType.REAL,
    "FLOAT4": DataType.REAL,
    "DATE": DataType.DATE,
    "TIME": DataType.TIME,
    "TIMETZ": DataType.TIME,
    "TIMESTAMP": DataType.TIMESTAMP,
    "DATETIME": DataType.TIMESTAMP,
    "TIMESTAMPTZ": DataType.TIMESTAMPTZ,
    "BOOLEAN": DataType.BOOLEAN,
    "BOOL": DataType.BOOLEAN,
    "BYTEA": DataType.BYTEA,
    "BLOB": DataType.BLOB,
    "TINYBLOB": DataType.BLOB,
    "MEDIUMBLOB": DataType.BLOB,
    "LONGBLOB": DataType.BLOB,
    "BINARY": DataType.BLOB,
    "VARBINARY": DataType.BLOB,
    "JSON": DataType.JSON,
    "JSONB": DataType.JSONB,
    "UUID": DataType.UUID,
    "INET": DataType.INET,
    "CIDR": DataType.CIDR,
    "ARRAY": DataType.ARRAY,
    "TSVECTOR": DataType.TSVECTOR,
}

SERIAL_TYPES: dict[str, DataType] = {
    "SMALLSERIAL": DataType.SMALLINT,
    "SERIAL2": DataType.SMALLINT,
    "SERIAL": DataType.INTEGER,
    "SERIAL4": DataType.INTEGER,
    "BIGSERIAL": DataType.BIGINT,
    "SERIAL8": DataType.BIGINT,
}

AUTO_INCREMENT_KEYWORDS = ("AUTO_INCREMENT", "AUTOINCREMENT", "IDENTITY")

# Keywords ending a DEFAULT expression
DEFAULT_TERMINATORS = (
    "NOT",
    "NULL",
    "PRIMARY",
    "UNIQUE",
    "REFERENCES",
    "CONSTRAINT",
    "CHECK",
    "COMMENT",
    "COLLATE",
    "GENERATED",
    "ON",
    *AUTO_INCREMENT_KEYWORDS,
)

CURRENT_TIME_FUNCTIONS = frozenset(
    {"NOW()", "CURRENT_TIMESTAMP", "CURRENT_TIMESTAMP()", "LOCALTIMESTAMP"},
)

SKIPPED_CLAUSES = (
    "FOREIGN",
    "UNIQUE",
    "CHECK",
    "INDEX",
    "KEY",
    "FULLTEXT",
    "SPATIAL",
    "EXCLUDE",
    "LIKE",
)

TABLE_MODIFIERS = ("TEMP", "TEMPORARY", "UNLOGGED", "GLOBAL", "LOCAL")
TYPE_NAMES = frozenset(TYPE_ALIASES) | frozenset(SERIAL_TYPES)
NAME_KINDS = frozenset({TokenKind.WORD, TokenKind.QUOTED})


class TokenCursor:
    """Forward-only reader over significant tokens."""

    def __init__(self, tokens: Sequence[Token]) -> None:
        self.tokens = tokens
        self.index = 0

    @property
    def at_end(self) -> bool:
        """Check whether every token has been consumed."""
        return self.index >= len(self.tokens)

    def peek(self, offset: int = 0) -> Token | None:
        """Look ahead without consuming."""
        position = self.index + offset
        return self.tokens[position] if position < len(self.tokens) else None

    def next(self) -> Token | None:
        """Consume and return the next token."""
        token = self.peek()
        self.index += 1
        return token

    def accept(self, *words: str) -> bool:
        """Consume a sequence of keywords if all of them come next."""
        for offset, word in enumerate(words):
            token = self.peek(offset)
            if token is None or not token.is_keyword(word):
                return False
        self.index += len(words)
        return True

    def group(self) -> list[Token] | None:
        """Consume a parenthesised group and return its inner tokens."""
        token = self.peek()
        if token is None or token.kind != TokenKind.OPEN:
            return None
        end = matching_close(self.tokens, self.index)
        if end == -1:
            msg = "Unclosed parenthesis"
            raise ParseError(msg)
        inner = list(self.tokens[self.index + 1 : end])
        self.index = end + 1
        return inner

    def name(self) -> str | None:
        """Consume a possibly schema-qualified name and return its last part."""
        token = self.peek()
        if token is None or token.kind not in {TokenKind.WORD, TokenKind.QUOTED}:
            return None
        self.index += 1
        name = unquote(token.text)
        while (dot := self.peek()) is not None and dot.text == ".":
            part = self.peek(1)
            if part is None or part.kind not in {TokenKind.WORD, TokenKind.QUOTED}:
                break
            self.index += 2
            name = unquote(part.text)
        return name

    def rest(self) -> list[Token]:
        """Consume every remaining token."""
        tokens = list(self.tokens[self.index :])
        self.index = len(self.tokens)
        return tokens


def _numbers(tokens: Sequence[Token]) -> list[int] | None:
    """Read a comma separated list of integers, or None if it is not one."""
    values: list[int] = []
    for item in split_tokens(tokens, TokenKind.COMMA):
        if len(item) != 1 or item[0].kind != TokenKind.NUMBER:
            return None
        try:
            values.append(int(item[0].text))
        except ValueError:
            return None
    return values


def _in_range(value: int, bounds: tuple[int, int]) -> bool:
    low, high = bounds
    return low <= value <= high


class ColumnParser:
    """Parse one column definition clause."""

    def __init__(self, table: str, tokens: Sequence[Token], warnings: list[str]) -> None:
        self.table = table
        self.cursor = TokenCursor(tokens)
        self.warnings = warnings
        self.name = ""

    def warn(self, message: str) -> None:
        """Record a warning attributed to the current column."""
        self.warnings.append(f'Column "{self.table}.{self.name}": {message}')

    def fail(self, message: str) -> ParseError:
        """Build an error attributed to the current column."""
        return ParseError(message, table=self.table, column=self.name or None)

    def parse(self) -> Column:
        """Parse the clause into a column."""
        name = self.cursor.name()
        if name is None:
            raise self.fail("Invalid column definition")
        self.name = name

        data_type, length, precision, scale, auto_increment = self.parse_type()

        nullable: bool | None = None
        unique = primary_key = False
        default: str | None = None
        comment: str | None = None
        references: Reference | None = None
        cursor = self.cursor

        while not cursor.at_end:
            if cursor.accept("NOT", "NULL"):
                nullable = False
            elif cursor.accept("NULL"):
                nullable = True
            elif cursor.accept("PRIMARY", "KEY"):
                primary_key = True
            elif cursor.accept("UNIQUE"):
                unique = True
                cursor.accept("KEY")
            elif any(cursor.accept(word) for word in AUTO_INCREMENT_KEYWORDS):
                auto_increment = True
                cursor.group()
            elif cursor.accept("GENERATED"):
                auto_increment = self.parse_generated() or auto_increment
            elif cursor.accept("DEFAULT"):
                default = self.parse_default(nullable=nullable)
            elif cursor.accept("REFERENCES"):
                references = self.parse_reference()
            elif cursor.accept("CHECK"):
                cursor.group()
            elif cursor.accept("CONSTRAINT"):
                cursor.name()
            elif cursor.accept("COMMENT"):
                token = cursor.next()
                comment = unquote(token.text) if token else None
            elif cursor.accept("COLLATE") or cursor.accept("CHARACTER", "SET"):
                cursor.name()
            elif cursor.accept("ON", "UPDATE"):
                cursor.next()
                cursor.group()
            else:
                token = cursor.next()
                logger.debug("Ignoring token %r in column %s", token, self.name)

        if default is not None and default.lower().startswith("nextval("):
            auto_increment = True
            default = None
        if primary_key:
            if nullable:
                self.warn("PRIMARY KEY column declared NULL; forcing NOT NULL")
            nullable = False
        if auto_increment:
            if nullable:
                self.warn("AUTO_INCREMENT column declared NULL; forcing NOT NULL")
            nullable = False
            if default is not None:
                self.warn("DEFAULT ignored on AUTO_INCREMENT column")
                default = None

        return Column(
            name=self.name,
            type=data_type,
            length=length,
            precision=precision,
            scale=scale,
            nullable=True if nullable is None else nullable,
            unique=unique,
            primary_key=primary_key,
            auto_increment=auto_increment,
            default=default,
            comment=comment,
            references=references,
        )

    def parse_type(
        self,
    ) -> tuple[DataType, int | None, int | None, int | None, bool]:
        """Parse the type, its parameters and any serial promotion."""
        cursor = self.cursor
        token = cursor.next()
        if token is None or token.kind != TokenKind.WORD:
            raise self.fail("Missing column type")

        words = [token.text.upper()]
        for phrase in ("DOUBLE PRECISION", "CHARACTER VARYING"):
            first, second = phrase.split()
            if words[0] == first and cursor.accept(second):
                words = [phrase]
        params_tokens = cursor.group()
        if cursor.accept("WITH", "TIME", "ZONE"):
            words.append("WITH TIME ZONE")
        elif cursor.accept("WITHOUT", "TIME", "ZONE"):
            pass
        cursor.accept("UNSIGNED")
        cursor.accept("ZEROFILL")
        array = False
        while (bracket := cursor.peek()) is not None and bracket.text == "[":
            cursor.next()
            while (item := cursor.next()) is not None and item.text != "]":
                pass
            array = True

        type_name = " ".join(words)
        params = _numbers(params_tokens) if params_tokens else []
        if params is None:
            self.warn(f"Unsupported parameters for type {type_name}; ignoring them")
            params = []

        auto_increment = False
        if array:
            return DataType.ARRAY, None, None, None, False
        if type_name in SERIAL_TYPES:
            return SERIAL_TYPES[type_name], None, None, None, True
        if type_name == "TIMESTAMP WITH TIME ZONE":
            return DataType.TIMESTAMPTZ, None, None, None, False
        if type_name == "TIME WITH TIME ZONE":
            return DataType.TIME, None, None, None, False
        if type_name == "TINYINT" and params == [1]:
            return DataType.BOOLEAN, None, None, None, False

        data_type = TYPE_ALIASES.get(type_name)
        if data_type is None:
            self.warn(f"Unknown type {type_name}; using VARCHAR(255)")
            return DataType.VARCHAR, DEFAULT_VARCHAR_LENGTH, None, None, False

        length = precision = scale = None
        match data_type:
            case DataType.VARCHAR:
                length = self.parse_length(params, VARCHAR_LENGTH, DEFAULT_VARCHAR_LENGTH)
            case DataType.CHAR:
                length = self.parse_length(params, CHAR_LENGTH, DEFAULT_CHAR_LENGTH)
            case DataType.DECIMAL:
                precision, scale = self.parse_decimal(params)
            case _:
                pass
        return data_type, length, precision, scale, auto_increment

    def parse_length(
        self,
        params: list[int],
        bounds: tuple[int, int],
        fallback: int,
    ) -> int:
        """Validate a string length or fall back with a warning."""
        type_name = "VARCHAR" if bounds == VARCHAR_LENGTH else "CHAR"
        if not params:
            self.warn(f"{type_name} without length; using {type_name}({fallback})")
            return fallback
        length = params[0]
        if not _in_range(length, bounds):
            msg = (
                f"{type_name} length {length} is out of range "
                f"({bounds[0]}..{bounds[1]})"
            )
            raise self.fail(msg)
        return length

    def parse_decimal(self, params: list[int]) -> tuple[int, int]:
        """Validate DECIMAL precision and scale or fall back with a warning."""
        if not params:
            precision, scale = DEFAULT_DECIMAL
            self.warn(f"DECIMAL without precision; using DECIMAL({precision},{scale})")
            return precision, scale
        precision = params[0]
        scale = params[1] if len(params) > 1 else 0
        if not _in_range(precision, DECIMAL_PRECISION):
            msg = (
                f"DECIMAL precision {precision} is out of range "
                f"({DECIMAL_PRECISION[0]}..{DECIMAL_PRECISION[1]})"
            )
            raise self.fail(msg)
        if not _in_range(scale, DECIMAL_SCALE):
            msg = (
                f"DECIMAL scale {scale} is out of range "
                f"({DECIMAL_SCALE[0]}..{DECIMAL_SCALE[1]})"
            )
            raise self.fail(msg)
        if scale > precision:
            msg = f"DECIMAL scale {scale} cannot exceed precision {precision}"
            raise self.fail(msg)
        return precision, scale

    def parse_generated(self) -> bool:
        """Parse ``GENERATED ... AS IDENTITY`` or a generated column expression."""
        cursor = self.cursor
        if not cursor.accept("ALWAYS"):
            cursor.accept("BY", "DEFAULT")
        if not cursor.accept("AS"):
            return False
        if cursor.accept("IDENTITY"):
            cursor.group()
            return True
        cursor.group()
        if not cursor.accept("STORED"):
            cursor.accept("VIRTUAL")
        self.warn("Generated column expression is not imported")
        return False

    def parse_default(self, *, nullable: bool | None) -> str | None:
        """Parse a DEFAULT expression into a literal or normalized function call."""
        cursor = self.cursor
        tokens: list[Token] = []
        while (token := cursor.peek()) is not None:
            if tokens and token.is_keyword(*DEFAULT_TERMINATORS):
                break
            if token.kind == TokenKind.OPEN:
                group = cursor.group() or []
                tokens.extend((token, *group, Token(TokenKind.CLOSE, ")", -1)))
                continue
            tokens.append(token)
            cursor.next()
            if len(tokens) == 1 and token.is_keyword("NULL"):
                break

        if not tokens:
            self.warn("DEFAULT without a value")
            return None
        if len(tokens) == 1 and tokens[0].is_keyword("NULL"):
            if nullable is False:
                self.warn("DEFAULT NULL on a NOT NULL column is ignored")
            return None
        if (
            tokens[0].kind == TokenKind.OPEN
            and matching_close(tokens, 0) == len(tokens) - 1
        ):
            tokens = tokens[1:-1]
        first = tokens[0]
        # 'value'::type casts keep the literal
        if first.kind == TokenKind.STRING and (
            len(tokens) == 1 or tokens[1].text == ":"
        ):
            return unquote(first.text)
        if first.text in {"-", "+"} and len(tokens) == 2:  # noqa: PLR2004
            return first.text + tokens[1].text
        value = render_tokens(tokens)
        if value.upper() in CURRENT_TIME_FUNCTIONS:
            return "NOW()"
        return value

    def parse_reference(self) -> Reference:
        """Parse ``REFERENCES table(column) [ON DELETE x] [ON UPDATE y]``."""
        cursor = self.cursor
        table = cursor.name()
        if table is None:
            raise self.fail("REFERENCES without a table name")
        column = ""
        if (group := cursor.group()) is not None:
            names = [unquote(token.text) for token in group if token.kind != TokenKind.COMMA]
            if len(names) > 1:
                self.warn("Composite foreign keys are not supported; using the first column")
            column = names[0] if names else ""

        on_delete = on_update = CascadeAction.RESTRICT
        while not cursor.at_end:
            if cursor.accept("ON", "DELETE"):
                on_delete = self.parse_action("ON DELETE")
            elif cursor.accept("ON", "UPDATE"):
                on_update = self.parse_action("ON UPDATE")
            elif cursor.accept("MATCH"):
                cursor.next()
            elif (
                cursor.accept("DEFERRABLE")
                or cursor.accept("NOT", "DEFERRABLE")
                or cursor.accept("INITIALLY", "DEFERRED")
                or cursor.accept("INITIALLY", "IMMEDIATE")
            ):
                continue
            else:
                break
        return Reference(table, column, on_delete, on_update)

    def parse_action(self, clause: str) -> CascadeAction:
        """Parse a referential action."""
        cursor = self.cursor
        if cursor.accept("CASCADE"):
            return CascadeAction.CASCADE
        if cursor.accept("RESTRICT"):
            return CascadeAction.RESTRICT
        if cursor.accept("SET", "NULL"):
            return CascadeAction.SET_NULL
        if cursor.accept("NO", "ACTION"):
            return CascadeAction.NO_ACTION
        if cursor.accept("SET", "DEFAULT"):
            self.warn(f"{clause} SET DEFAULT is not supported; using RESTRICT")
            return CascadeAction.RESTRICT
        token = cursor.next()
        self.warn(f"Invalid {clause} action {token.text if token else ''!r}; using RESTRICT")
        return CascadeAction.RESTRICT


def _apply_primary_key(
    table: str,
    columns: list[Column],
    primary_key: list[str],
) -> list[Column]:
    """Mark the columns of a table-level PRIMARY KEY clause."""
    names = {column.name.casefold(): column.name for column in columns}
    for name in primary_key:
        if name.casefold() not in names:
            msg = f'PRIMARY KEY references unknown column "{name}"'
            raise ParseError(msg, table=table)
    keys = {name.casefold() for name in primary_key}
    composite = len(keys) > 1
    return [
        replace(
            column,
            primary_key=True,
            nullable=False,
            auto_increment=column.auto_increment and not composite,
        )
        if column.name.casefold() in keys
        else column
        for column in columns
    ]


def is_table_constraint(tokens: Sequence[Token]) -> bool:
    """Tell a table constraint from a column named after a constraint keyword.

    ``KEY idx_name (a)``, ``UNIQUE (a)`` and ``FOREIGN KEY (a)`` are
    constraints; ``key VARCHAR(100)``, ``index INTEGER`` and ``unique TEXT``
    are columns.
    """
    if not tokens or not tokens[0].is_keyword(*SKIPPED_CLAUSES):
        return False
    head, following = tokens[0], tokens[1] if len(tokens) > 1 else None
    if following is None:
        return False
    if following.kind == TokenKind.WORD and following.text.upper() in TYPE_NAMES:
        return False
    if head.is_keyword("FOREIGN"):
        return following.is_keyword("KEY")
    if head.is_keyword("LIKE"):
        return following.kind in NAME_KINDS
    if following.kind == TokenKind.OPEN or following.is_keyword("KEY", "INDEX", "USING"):
        return True

    # [name] ( columns ), where a column type would hold sizes or values
    after = tokens[2] if len(tokens) > 2 else None  # noqa: PLR2004
    if following.kind not in NAME_KINDS or after is None:
        return False
    if after.is_keyword("USING"):
        return True
    first = tokens[3] if len(tokens) > 3 else None  # noqa: PLR2004
    return (
        after.kind == TokenKind.OPEN
        and first is not None
        and first.kind not in {TokenKind.NUMBER, TokenKind.STRING}
    )


def parse_create_table(tokens: Sequence[Token], warnings: list[str]) -> Table:
    """Parse the tokens of one CREATE TABLE statement."""
    cursor = TokenCursor(tokens)
    cursor.accept("CREATE")
    cursor.accept("OR", "REPLACE")
    while any(cursor.accept(word) for word in TABLE_MODIFIERS):
        pass
    cursor.accept("TABLE")
    cursor.accept("IF", "NOT", "EXISTS")
    name = cursor.name()
    if name is None:
        msg = "CREATE TABLE without a table name"
        raise ParseError(msg)
    body = cursor.group()
    if body is None:
        msg = "CREATE TABLE has no column list"
        raise ParseError(msg, table=name)

    columns: list[Column] = []
    primary_key: list[str] = []
    for clause in split_tokens(body, TokenKind.COMMA):
        if not clause:
            continue
        clause_cursor = TokenCursor(clause)
        if clause_cursor.accept("CONSTRAINT"):
            clause_cursor.name()
        if clause_cursor.accept("PRIMARY", "KEY"):
            group = clause_cursor.group() or []
            primary_key.extend(
                unquote(token.text)
                for token in group
                if token.kind in {TokenKind.WORD, TokenKind.QUOTED}
                and not token.is_keyword("ASC", "DESC")
            )
            continue
        if is_table_constraint(clause[clause_cursor.index :]):
            logger.debug("Skipping table constraint in %s: %s", name, render_tokens(clause))
            continue
        if clause_cursor.index:
            # CONSTRAINT name followed by something other than PRIMARY KEY
            continue
        columns.append(ColumnParser(name, clause, warnings).parse())

    if not columns:
        msg = "Table has no columns"
        raise ParseError(msg, table=name)
    if primary_key:
        columns = _apply_primary_key(name, columns, primary_key)
    return Table(name=name, columns=tuple(columns))


def _index_column(item: Sequence[Token]) -> str | None:
    """Read an index column, allowing a MySQL prefix length like ``name(10)``.

    Returns None for expression items such as ``lower(email)``.
    """
    if len(item) > 1 and item[1].kind == TokenKind.OPEN:
        end = matching_close(item, 1)
        inner = item[2:end]
        if len(inner) != 1 or inner[0].kind != TokenKind.NUMBER:
            return None
    if item[0].kind not in {TokenKind.WORD, TokenKind.QUOTED}:
        return None
    return unquote(item[0].text)


def parse_create_index(
    tokens: Sequence[Token],
    warnings: list[str],
) -> tuple[str, Index] | None:
    """Parse one CREATE INDEX statement into its table name and index.

    Returns None for expression indexes, which are skipped with a warning.
    """
    cursor = TokenCursor(tokens)
    cursor.accept("CREATE")
    unique = cursor.accept("UNIQUE")
    cursor.accept("INDEX")
    cursor.accept("CONCURRENTLY")
    cursor.accept("IF", "NOT", "EXISTS")
    name = None if (token := cursor.peek()) and token.is_keyword("ON") else cursor.name()
    label = name or "(unnamed)"
    if not cursor.accept("ON"):
        msg = f"CREATE INDEX {label} is missing ON <table>"
        raise ParseError(msg)
    cursor.accept("ONLY")
    table = cursor.name()
    if table is None:
        msg = f"CREATE INDEX {label} is missing its table name"
        raise ParseError(msg)

    method = IndexMethod.BTREE
    if cursor.accept("USING"):
        method = _index_method(cursor.next(), warnings)
    group = cursor.group()
    if group is None:
        msg = f"CREATE INDEX {label} on {table} has no column list"
        raise ParseError(msg, table=table)
    if cursor.accept("USING"):
        method = _index_method(cursor.next(), warnings)
    if cursor.accept("INCLUDE"):
        cursor.group()
    where = render_tokens(cursor.rest()) if cursor.accept("WHERE") else None

    columns: list[str] = []
    for item in split_tokens(group, TokenKind.COMMA):
        if not item:
            continue
        if (column := _index_column(item)) is None:
            warnings.append(f"Expression index {label} on {table} is not supported; skipped")
            return None
        columns.append(column)

    return table, Index(
        name=name or f"idx_{table}_{'_'.join(columns)}",
        columns=tuple(columns),
        method=method,
        unique=unique,
        where=where or None,
    )


def _index_method(token: Token | None, warnings: list[str]) -> IndexMethod:
    text = token.text.upper() if token else ""
    try:
        return IndexMethod(text)
    except ValueError:
        warnings.append(f"Unsupported index method {text!r}; using BTREE")
        return IndexMethod.BTREE


def _statement_kind(tokens: Sequence[Token]) -> str:
    """Classify a statement by its leading keywords."""
    cursor = TokenCursor(tokens)
    if cursor.accept("CREATE"):
        cursor.accept("OR", "REPLACE")
        if cursor.accept("UNIQUE", "INDEX") or cursor.accept("INDEX"):
            return "index"
        while any(cursor.accept(word) for word in TABLE_MODIFIERS):
            pass
        if cursor.accept("TABLE"):
            return "table"
    if cursor.accept("ALTER", "TABLE"):
        return "alter"
    if cursor.accept("DROP", "TABLE"):
        return "drop"
    return "other"


def _resolve_references(
    tables: list[Table],
    failures: list[ParseError],
) -> list[Table]:
    """Point column-less references at the target's single primary key."""
    by_name = {table.name.casefold(): table for table in tables}
    resolved: list[Table] = []
    for table in tables:
        columns: list[Column] = []
        for column in table.columns:
            reference = column.references
            if reference is not None and not reference.column:
                target = by_name.get(reference.table.casefold())
                keys = target.primary_keys if target else ()
                if len(keys) == 1:
                    column = replace(column, references=replace(reference, column=keys[0]))
                else:
                    msg = (
                        f'References "{reference.table}" without a column and the '
                        "target has no single-column primary key"
                    )
                    failures.append(ParseError(msg, table=table.name, column=column.name))
            columns.append(column)
        resolved.append(replace(table, columns=tuple(columns)))
    return resolved


def _attach_indexes(
    tables: list[Table],
    indexes: list[tuple[str, Index]],
    failures: list[ParseError],
) -> list[Table]:
    """Attach each CREATE INDEX to its table and lay tables out on the grid."""
    owned: dict[str, list[Index]] = defaultdict(list)
    known = {table.name.casefold() for table in tables}
    for table_name, index in indexes:
        if table_name.casefold() not in known:
            msg = f'Index "{index.name}" is defined on unknown table'
            failures.append(ParseError(msg, table=table_name))
            continue
        owned[table_name.casefold()].append(index)
    return [
        replace(
            table,
            indexes=tuple(owned.pop(table.name.casefold(), ())),
            position=grid_position(position),
        )
        for position, table in enumerate(tables)
    ]


def parse(sql: str, *, max_tables: int = MAX_TABLES) -> ParseResult:
    """Parse DDL text into a validated schema.

    Args:
        sql: SQL text containing CREATE TABLE and CREATE INDEX statements.
        max_tables: Maximum number of tables accepted.

    Returns:
        ParseResult: The schema and every warning raised while parsing it.

    Raises:
        ParseError: If the text is empty, unbalanced, contains no tables,
            contains malformed tables, or fails validation. Problems in
            several tables are reported together.

    """
    if not sql or not sql.strip():
        msg = "SQL input is empty"
        raise ParseError(msg)

    cleaned = strip_comments(sql)
    if not cleaned.strip():
        msg = "SQL input contains only comments"
        raise ParseError(msg)

    balance = check_balance(cleaned)
    if not balance.balanced:
        msg = (
            f"Unbalanced parentheses: {balance.opening} opening and "
            f"{balance.closing} closing"
        )
        raise ParseError(msg)

    warnings: list[str] = []
    failures: list[ParseError] = []
    tables: list[Table] = []
    indexes: list[tuple[str, Index]] = []
    skipped = 0

    for statement in split_statements(cleaned):
        try:
            match _statement_kind(statement):
                case "table":
                    tables.append(parse_create_table(statement, warnings))
                case "index":
                    if (parsed := parse_create_index(statement, warnings)) is not None:
                        indexes.append(parsed)
                case "alter":
                    warnings.append("ALTER TABLE statements are ignored")
                case "drop":
                    warnings.append("DROP TABLE statements are ignored")
                case _:
                    skipped += 1
        except ParseError as e:
            failures.append(e)

    if skipped:
        warnings.append(f"Skipped {skipped} statement(s) other than CREATE TABLE/INDEX")

    if not tables and not failures:
        msg = "No CREATE TABLE statements found"
        raise ParseError(msg)
    if len(tables) > max_tables:
        msg = f"Too many tables ({len(tables)}); at most {max_tables} are supported"
        raise ParseError(msg)
    if len(tables) > MANY_TABLES:
        warnings.append(f"Large schema with {len(tables)} tables")

    tables = _resolve_references(tables, failures)
    tables = _attach_indexes(tables, indexes, failures)

    if len(failures) == 1:
        raise failures[0]
    if failures:
        msg = f"Found {len(failures)} errors in the SQL input"
        raise ParseError(msg, errors=[failure.render() for failure in failures])

    schema = Schema(
        name="Imported Schema",
        description=f"Imported {len(tables)} tables from SQL",
        tables=tuple(tables),
    )

    result = validate_schema(schema)
    if result.errors:
        msg = "Schema validation failed"
        raise ParseError(msg, errors=result.errors)

    warnings = list(dict.fromkeys([*warnings, *result.warnings]))
    for warning in warnings:
        logger.debug("Parse warning: %s", warning)
    return ParseResult(schema, warnings)


def parse_sql(sql: str) -> Schema:
    """Parse DDL text into a validated schema, discarding warnings."""
    return parse(sql).schema
