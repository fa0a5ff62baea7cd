"""Schema compiler toolkit: parse, validate, compare and migrate schemas."""

from schemakit.config import Settings, load_settings

__all__ = ["Settings", "load_settings"]
