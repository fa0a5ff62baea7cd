"""Single-pass SQL scanner shared by the DDL parser and the formatter.

The scanner understands string literals, quoted identifiers and comments, so
that parentheses, commas and semicolons inside them never count as structure.
"""

from collections.abc import Callable, Iterable, Iterator, Sequence
from enum import StrEnum, auto
from typing import NamedTuple


class TokenKind(StrEnum):
    """Lexical categories of SQL text."""

    WORD = auto()
    NUMBER = auto()
    STRING = auto()
    QUOTED = auto()
    OPEN = auto()
    CLOSE = auto()
    COMMA = auto()
    SEMICOLON = auto()
    PUNCTUATION = auto()
    WHITESPACE = auto()
    COMMENT = auto()


class Token(NamedTuple):
    """A lexeme and the offset where it starts."""

    kind: TokenKind
    text: str
    position: int

    def is_keyword(self, *words: str) -> bool:
        """Check whether the token is one of the given bare words."""
        return self.kind == TokenKind.WORD and self.text.upper() in words


class Balance(NamedTuple):
    """Parenthesis counts outside literals."""

    opening: int
    closing: int
    balanced: bool


CLOSING_QUOTES = {"'": "'", '"': '"', "`": "`"}
SIGNIFICANT = frozenset(TokenKind) - {TokenKind.WHITESPACE, TokenKind.COMMENT}
OPERATOR_CHARS = frozenset("<>=!|")
LITERAL_FOLLOWERS = frozenset(",);:")


def _scan_quoted(sql: str, start: int, closing: str) -> int:
    r"""Return the offset after a quoted section starting at ``start``.

    A doubled closing quote is an escaped quote. Inside string literals a
    backslash escapes the next character, except that a backslash right before
    a quote that is followed by whitespace, ``,``, ``)``, ``;``, ``:`` or the end
    of input is kept as text and the quote ends the literal. This reads both
    MySQL's ``'it\'s'`` and standard SQL's ``'C:\'``; a MySQL literal holding
    an escaped quote followed by a space is misread. Unterminated sections run
    to the end.
    """
    position = start + 1
    length = len(sql)
    while position < length:
        char = sql[position]
        if char == "\\" and closing == "'":
            if not _ends_literal(sql, position + 1, closing):
                position += 2
                continue
            return position + 2
        if char == closing:
            if position + 1 < length and sql[position + 1] == closing:
                position += 2
                continue
            return position + 1
        position += 1
    return length


def _ends_literal(sql: str, position: int, closing: str) -> bool:
    """Check whether the quote at ``position`` is followed by literal-ending text."""
    if position >= len(sql) or sql[position] != closing:
        return False
    following = sql[position + 1 : position + 2]
    return not following or following.isspace() or following in LITERAL_FOLLOWERS


def _scan_while(sql: str, start: int, predicate: Callable[[str], bool]) -> int:
    position = start
    while position < len(sql) and predicate(sql[position]):
        position += 1
    return position


def _is_word(char: str) -> bool:
    return char.isalnum() or char in "_$"


def _is_number(char: str) -> bool:
    return char.isdigit() or char == "."


def tokenize(sql: str) -> Iterator[Token]:
    """Split SQL text into tokens, including whitespace and comments."""
    position = 0
    length = len(sql)
    while position < length:
        char = sql[position]
        start = position
        if char.isspace():
            position = _scan_while(sql, position, str.isspace)
            kind = TokenKind.WHITESPACE
        elif sql.startswith("--", position):
            end = sql.find("\n", position)
            position = length if end == -1 else end
            kind = TokenKind.COMMENT
        elif sql.startswith("/*", position):
            end = sql.find("*/", position + 2)
            position = length if end == -1 else end + 2
            kind = TokenKind.COMMENT
        elif char == "'":
            position = _scan_quoted(sql, position, "'")
            kind = TokenKind.STRING
        elif char in CLOSING_QUOTES:
            position = _scan_quoted(sql, position, CLOSING_QUOTES[char])
            kind = TokenKind.QUOTED
        elif char.isdigit():
            position = _scan_while(sql, position, _is_number)
            kind = TokenKind.NUMBER
        elif char.isalpha() or char in "_$":
            position = _scan_while(sql, position, _is_word)
            kind = TokenKind.WORD
        else:
            position += 1
            kind = {
                "(": TokenKind.OPEN,
                ")": TokenKind.CLOSE,
                ",": TokenKind.COMMA,
                ";": TokenKind.SEMICOLON,
            }.get(char, TokenKind.PUNCTUATION)
        yield Token(kind, sql[start:position], start)


def significant(tokens: Iterable[Token]) -> list[Token]:
    """Drop whitespace and comment tokens."""
    return [token for token in tokens if token.kind in SIGNIFICANT]


def strip_comments(sql: str) -> str:
    """Remove ``--`` and ``/* */`` comments while leaving literals intact."""
    parts: list[str] = []
    for token in tokenize(sql):
        if token.kind != TokenKind.COMMENT:
            parts.append(token.text)
        elif token.text.startswith("/*"):
            parts.append(" ")
    return "".join(parts)


def check_balance(sql: str) -> Balance:
    """Count parentheses outside literals and comments."""
    depth = opening = closing = 0
    negative = False
    for token in tokenize(sql):
        if token.kind == TokenKind.OPEN:
            opening += 1
            depth += 1
        elif token.kind == TokenKind.CLOSE:
            closing += 1
            depth -= 1
            negative = negative or depth < 0
    return Balance(opening, closing, balanced=depth == 0 and not negative)


def split_tokens(
    tokens: Sequence[Token],
    separator: TokenKind,
) -> list[list[Token]]:
    """Split a token sequence on a separator at nesting depth zero."""
    groups: list[list[Token]] = [[]]
    depth = 0
    for token in tokens:
        if token.kind == TokenKind.OPEN:
            depth += 1
        elif token.kind == TokenKind.CLOSE:
            depth -= 1
        elif token.kind == separator and depth == 0:
            groups.append([])
            continue
        groups[-1].append(token)
    return groups


def join_tokens(tokens: Iterable[Token]) -> str:
    """Reassemble tokens into text, trimming surrounding whitespace."""
    return "".join(token.text for token in tokens).strip()


def split_top_level(sql: str, separator: str = ",") -> list[str]:
    """Split text on a separator that is outside parentheses and literals.

    Empty segments are dropped.
    """
    kind = TokenKind.SEMICOLON if separator == ";" else TokenKind.COMMA
    return [
        text
        for group in split_tokens(list(tokenize(sql)), kind)
        if (text := join_tokens(group))
    ]


def split_statements(sql: str) -> list[list[Token]]:
    """Split SQL into statements of significant tokens, dropping empty ones."""
    return [
        statement
        for group in split_tokens(list(tokenize(sql)), TokenKind.SEMICOLON)
        if (statement := significant(group))
    ]


def matching_close(tokens: Sequence[Token], start: int) -> int:
    """Return the index of the parenthesis closing the one at ``start``.

    Returns -1 when the group is never closed.
    """
    depth = 0
    for index in range(start, len(tokens)):
        if tokens[index].kind == TokenKind.OPEN:
            depth += 1
        elif tokens[index].kind == TokenKind.CLOSE:
            depth -= 1
            if depth == 0:
                return index
    return -1


def unquote(text: str) -> str:
    """Strip identifier or string quotes, undoing doubled quote escapes."""
    if len(text) >= 2 and text[0] in CLOSING_QUOTES:  # noqa: PLR2004
        closing = CLOSING_QUOTES[text[0]]
        if text[-1] == closing:
            inner = text[1:-1].replace(closing * 2, closing)
            if closing == "'":
                inner = inner.replace("\\'", "'")
            return inner
    return text


def render_tokens(tokens: Iterable[Token]) -> str:
    """Render significant tokens as canonical single-spaced text.

    Layout does not matter: any two spellings of an expression that differ
    only in whitespace or comments render identically.
    """
    parts: list[str] = []
    previous: Token | None = None
    for token in significant(tokens):
        if previous is not None and not (
            token.kind in {TokenKind.CLOSE, TokenKind.COMMA}
            or previous.kind == TokenKind.OPEN
            or (token.kind == TokenKind.OPEN and previous.kind == TokenKind.WORD)
            or token.text in {".", ":"}
            or previous.text in {".", ":"}
            or (token.text in OPERATOR_CHARS and previous.text in OPERATOR_CHARS)
        ):
            parts.append(" ")
        parts.append(token.text)
        previous = token
    return "".join(parts)
