"""Pretty-print and minify SQL text using the shared scanner.

Formatting works statement by statement. ``CREATE TABLE`` bodies get one
definition per line, other statements break before their major clauses.
Comments are dropped, string literals and quoted identifiers are kept verbatim.
"""

from collections.abc import Sequence
from logging import getLogger

from schema.types import CascadeAction, DataType, IndexMethod
from schema.validation import RESERVED_KEYWORDS

from ddl.tokenizer import (
    Token,
    TokenKind,
    check_balance,
    matching_close,
    render_tokens,
    split_statements,
    split_tokens,
    tokenize,
)

logger = getLogger(__name__)

MAX_INPUT_LENGTH = 100_000

KEYWORDS = (
    RESERVED_KEYWORDS
    | {data_type.value for data_type in DataType}
    | {method.value for method in IndexMethod}
    | {word for action in CascadeAction for word in action.value.split()}
    | {
        "ACTION",
        "ADD",
        "AUTO_INCREMENT",
        "AUTOINCREMENT",
        "BEGIN",
        "BIGSERIAL",
        "BY",
        "COLUMN",
        "COMMENT",
        "COMMIT",
        "COUNT",
        "ENGINE",
        "IF",
        "INT",
        "MODIFY",
        "NOW",
        "RENAME",
        "SERIAL",
        "SMALLSERIAL",
        "TRANSACTION",
        "TRUNCATE",
        "TYPE",
        "USING",
        "WITH",
        "WITHOUT",
        "ZONE",
    }
)

COMMANDS = frozenset(
    {"ALTER", "CREATE", "DELETE", "DROP", "INSERT", "SELECT", "TRUNCATE", "UPDATE"},
)

MAJOR_CLAUSES = frozenset(
    {
        "SELECT",
        "FROM",
        "WHERE",
        "GROUP",
        "HAVING",
        "ORDER",
        "LIMIT",
        "OFFSET",
        "INSERT",
        "VALUES",
        "UPDATE",
        "SET",
        "DELETE",
        "JOIN",
        "INNER",
        "LEFT",
        "RIGHT",
        "FULL",
        "CROSS",
        "UNION",
    },
)
JOIN_MODIFIERS = frozenset({"INNER", "LEFT", "RIGHT", "FULL", "CROSS", "OUTER"})


def normalize_case(token: Token, *, uppercase: bool) -> Token:
    """Upper-case known keywords when requested, leave everything else alone."""
    if uppercase and token.kind == TokenKind.WORD and token.text.upper() in KEYWORDS:
        return token._replace(text=token.text.upper())
    return token


def is_create_table(tokens: Sequence[Token]) -> bool:
    """Check for ``CREATE [TEMPORARY] TABLE``."""
    words = [token.text.upper() for token in tokens[:4]]
    return bool(words) and words[0] == "CREATE" and "TABLE" in words


def format_create_table(tokens: Sequence[Token], indent: str) -> str:
    """Put every column and constraint definition on its own line."""
    start = next(
        (index for index, token in enumerate(tokens) if token.kind == TokenKind.OPEN),
        -1,
    )
    end = matching_close(tokens, start) if start >= 0 else -1
    if end < 0:
        return render_tokens(tokens)
    head = render_tokens(tokens[:start])
    body = ",\n".join(
        f"{indent}{render_tokens(item)}"
        for item in split_tokens(tokens[start + 1 : end], TokenKind.COMMA)
        if item
    )
    tail = render_tokens(tokens[end + 1 :])
    return f"{head} (\n{body}\n)" + (f" {tail}" if tail else "")


def format_clauses(tokens: Sequence[Token], indent: str) -> str:
    """Break before major clauses and top-level ``AND``/``OR``.

    Commas of a ``SELECT`` list also break so that each column sits on its own
    indented line.
    """
    lines: list[tuple[str, list[Token]]] = [("", [])]
    depth = 0
    clause = ""
    between = False
    previous: Token | None = None
    for token in tokens:
        if token.kind == TokenKind.OPEN:
            depth += 1
        elif token.kind == TokenKind.CLOSE:
            depth -= 1
        elif depth == 0:
            if token.is_keyword(*MAJOR_CLAUSES):
                joined = previous is not None and previous.is_keyword(*JOIN_MODIFIERS)
                if lines[-1][1] and not joined:
                    lines.append(("", []))
                clause = token.text.upper()
            elif token.is_keyword("BETWEEN"):
                between = True
            elif token.is_keyword("AND") and between:
                between = False
            elif token.is_keyword("AND", "OR"):
                lines.append((indent, []))
            elif token.kind == TokenKind.COMMA and clause == "SELECT":
                lines[-1][1].append(token)
                lines.append((indent, []))
                previous = token
                continue
        lines[-1][1].append(token)
        previous = token
    return "\n".join(prefix + render_tokens(line) for prefix, line in lines if line)


def format_statement(tokens: Sequence[Token], indent: str, *, uppercase: bool) -> str:
    """Format a single statement of significant tokens, without its semicolon."""
    tokens = [normalize_case(token, uppercase=uppercase) for token in tokens]
    if is_create_table(tokens):
        return format_create_table(tokens, indent)
    return format_clauses(tokens, indent)


def format_sql(
    sql: str,
    *,
    indent_size: int = 2,
    uppercase: bool = True,
    lines_between: int = 1,
) -> str:
    """Beautify SQL text.

    Args:
        sql: One or more statements separated by semicolons.
        indent_size: Spaces per indentation level.
        uppercase: Upper-case SQL keywords and type names.
        lines_between: Blank lines between statements.

    Returns:
        The formatted statements, each terminated by a semicolon. Empty input
        gives an empty string.

    """
    indent = " " * indent_size
    statements = [
        format_statement(statement, indent, uppercase=uppercase) + ";"
        for statement in split_statements(sql)
    ]
    logger.debug("Formatted %d statements", len(statements))
    return ("\n" * (lines_between + 1)).join(statements)


def minify_sql(sql: str) -> str:
    """Collapse SQL onto a single line with comments removed."""
    return " ".join(render_tokens(statement) + ";" for statement in split_statements(sql))


def check_sql(sql: str) -> list[str]:
    """Report problems that would make SQL text unformattable.

    Returns:
        Error messages; an empty list means the text looks like SQL.

    """
    if not sql or not sql.strip():
        return ["SQL is empty"]
    if len(sql) > MAX_INPUT_LENGTH:
        return [f"SQL is too long (max {MAX_INPUT_LENGTH:,} characters)"]

    errors: list[str] = []
    tokens = list(tokenize(sql))
    if not any(token.is_keyword(*COMMANDS) for token in tokens):
        errors.append(
            "Not a SQL statement: expected one of " + ", ".join(sorted(COMMANDS)),
        )
    balance = check_balance(sql)
    if not balance.balanced:
        errors.append(
            f"Unbalanced parentheses: {balance.opening} opening, "
            f"{balance.closing} closing",
        )
    last = next(
        (token for token in reversed(tokens) if token.kind != TokenKind.WHITESPACE),
        None,
    )
    if last is not None and last.kind in {TokenKind.STRING, TokenKind.QUOTED}:
        quote = last.text[0]
        body = last.text[1:]
        if not body.endswith(quote) or body.endswith("\\" + quote):
            errors.append(f"Unterminated quoted text starting at offset {last.position}")
    return errors
