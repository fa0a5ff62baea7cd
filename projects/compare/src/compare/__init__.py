"""Structural comparison of schemas."""

from compare.apply import apply_diff, invert_diff, revert_diff
from compare.main import (
    compare_schemas,
    count_changes,
    describe_change,
    diff_summary,
    diff_to_html,
    diff_to_json,
    diff_to_summary,
)
from compare.types import SchemaDiff, TableChange

__all__ = [
    "SchemaDiff",
    "TableChange",
    "apply_diff",
    "compare_schemas",
    "count_changes",
    "describe_change",
    "diff_summary",
    "diff_to_html",
    "diff_to_json",
    "diff_to_summary",
    "invert_diff",
    "revert_diff",
]
