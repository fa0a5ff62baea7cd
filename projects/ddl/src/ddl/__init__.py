"""DDL and Prisma parsing plus SQL formatting."""

from ddl.formatter import check_sql, format_sql, minify_sql
from ddl.prisma_parser import parse_prisma
from ddl.sql_parser import parse, parse_sql
from ddl.types import ParseError, ParseResult

__all__ = [
    "ParseError",
    "ParseResult",
    "check_sql",
    "format_sql",
    "minify_sql",
    "parse",
    "parse_prisma",
    "parse_sql",
]
