"""Result and error types shared by the schema parsers."""

from typing import NamedTuple

from schema.types import Schema


class ParseError(ValueError):
    """Raised when source text cannot be turned into a valid schema.

    Attributes:
        message: Human readable summary.
        table: Table being parsed when the error occurred, if known.
        column: Column being parsed when the error occurred, if known.
        errors: Every individual problem found, for multi-error reports.

    """

    def __init__(
        self,
        message: str,
        *,
        table: str | None = None,
        column: str | None = None,
        errors: list[str] | None = None,
    ) -> None:
        self.message = message
        self.table = table
        self.column = column
        self.errors = errors or [message]
        super().__init__(self.render())

    def render(self) -> str:
        """Format the message with its location and all collected errors."""
        location = ".".join(part for part in (self.table, self.column) if part)
        text = f"{location}: {self.message}" if location else self.message
        if len(self.errors) > 1 or self.errors[0] != self.message:
            text += "".join(f"\n  - {error}" for error in self.errors)
        return text


class ParseResult(NamedTuple):
    """Parsed schema together with the warnings raised while parsing it."""

    schema: Schema
    warnings: list[str]
