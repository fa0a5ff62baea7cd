"""Settings loaded from TOML files.

Packaged defaults are overlaid with a ``schemakit.toml`` from the working
directory, or with an explicitly given file. Keys may sit at the top level or
under a ``[schemakit]`` table.
"""

import tomllib
from importlib.resources import files
from logging import getLogger
from pathlib import Path
from typing import Any, NamedTuple

from migrate import Dialect, parse_dialect

logger = getLogger(__name__)

DEFAULTS = "defaults.toml"
LOCAL_SETTINGS = "schemakit.toml"
MAX_INDENT = 8


class Settings(NamedTuple):
    """Effective configuration of the command line tool."""

    dialect: Dialect = Dialect.POSTGRESQL
    label: str | None = None
    statement_limit: int = 100
    indent_size: int = 2
    uppercase: bool = True


def read_table(text: str) -> dict[str, Any]:
    """Parse TOML text and return its ``[schemakit]`` table, or the whole document."""
    data = tomllib.loads(text)
    table = data.get("schemakit", data)
    if not isinstance(table, dict):
        msg = "The [schemakit] entry must be a table"
        raise ValueError(msg)
    return table


def _positive_int(data: dict[str, Any], key: str, maximum: int | None = None) -> int:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        msg = f"Setting {key!r} must be a non-negative integer, got {value!r}"
        raise ValueError(msg)
    if maximum is not None and value > maximum:
        msg = f"Setting {key!r} must be at most {maximum}, got {value}"
        raise ValueError(msg)
    return value


def load_settings(path: Path | None = None, cwd: Path | None = None) -> Settings:
    """Load the packaged defaults and overlay user settings.

    Args:
        path: Explicit settings file, which must exist.
        cwd: Directory searched for ``schemakit.toml`` when no path is given.

    Raises:
        OSError: If an explicit settings file cannot be read.
        ValueError: If a file is not valid TOML or holds unknown or bad values.

    """
    data = read_table(files("schemakit").joinpath(DEFAULTS).read_text(encoding="utf-8"))
    source = path
    if source is None and (candidate := (cwd or Path.cwd()) / LOCAL_SETTINGS).is_file():
        source = candidate

    if source is not None:
        logger.debug("Loading settings from %s", source)
        try:
            overlay = read_table(source.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            msg = f"Invalid settings file {source}: {e}"
            raise ValueError(msg) from e
        if unknown := overlay.keys() - data.keys():
            msg = f"Unknown settings in {source}: {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        data |= overlay

    if not isinstance(data["uppercase"], bool):
        msg = f"Setting 'uppercase' must be true or false, got {data['uppercase']!r}"
        raise ValueError(msg)
    return Settings(
        dialect=parse_dialect(str(data["dialect"])),
        label=str(data["label"]) or None,
        statement_limit=_positive_int(data, "statement_limit"),
        indent_size=_positive_int(data, "indent_size", MAX_INDENT),
        uppercase=data["uppercase"],
    )
