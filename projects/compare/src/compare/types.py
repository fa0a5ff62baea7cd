"""Type definitions for schema comparison."""

from dataclasses import dataclass
from enum import StrEnum, auto
from typing import ClassVar, NamedTuple, Self

from schema.types import Column, DataType, Index, Reference, Table


class ColumnType(NamedTuple):
    """A logical type together with its size parameters."""

    type: DataType
    length: int | None = None
    precision: int | None = None
    scale: int | None = None

    @classmethod
    def of(cls, column: Column) -> Self:
        """Extract the type of a column."""
        return cls(column.type, column.length, column.precision, column.scale)

    def __str__(self) -> str:
        if self.length is not None:
            return f"{self.type}({self.length})"
        if self.precision is not None:
            return f"{self.type}({self.precision},{self.scale or 0})"
        return str(self.type)


@dataclass(frozen=True)
class Changed[T]:
    """An attribute that moved from ``old`` to ``new``."""

    kind: ClassVar[str] = "changed"

    old: T
    new: T


@dataclass(frozen=True)
class TypeChanged(Changed[ColumnType]):
    """Logical type or size parameters changed."""

    kind: ClassVar[str] = "type"


@dataclass(frozen=True)
class PrimaryKeyChanged(Changed[bool]):
    """Primary key membership changed."""

    kind: ClassVar[str] = "primary_key"


@dataclass(frozen=True)
class NullabilityChanged(Changed[bool]):
    """The column became nullable or NOT NULL."""

    kind: ClassVar[str] = "nullable"


@dataclass(frozen=True)
class DefaultChanged(Changed[str | None]):
    """The default value changed, was added or was dropped."""

    kind: ClassVar[str] = "default"


@dataclass(frozen=True)
class UniqueChanged(Changed[bool]):
    """The uniqueness flag changed."""

    kind: ClassVar[str] = "unique"


@dataclass(frozen=True)
class AutoIncrementChanged(Changed[bool]):
    """The auto-increment flag changed."""

    kind: ClassVar[str] = "auto_increment"


@dataclass(frozen=True)
class ReferenceChanged(Changed[Reference | None]):
    """The foreign key target was added, removed or retargeted."""

    kind: ClassVar[str] = "references"


@dataclass(frozen=True)
class ReferenceActionsChanged(Changed[Reference]):
    """ON DELETE or ON UPDATE changed while the target stayed the same."""

    kind: ClassVar[str] = "reference_actions"


@dataclass(frozen=True)
class CommentChanged(Changed[str | None]):
    """The free-text comment changed."""

    kind: ClassVar[str] = "comment"


type ColumnAttributeChange = (
    TypeChanged
    | PrimaryKeyChanged
    | NullabilityChanged
    | DefaultChanged
    | UniqueChanged
    | AutoIncrementChanged
    | ReferenceChanged
    | ReferenceActionsChanged
    | CommentChanged
)


class IndexChangeKind(StrEnum):
    """Independent categories of index modification."""

    COLUMNS = auto()
    METHOD = auto()
    UNIQUE = auto()
    WHERE = auto()


@dataclass(frozen=True, slots=True)
class ColumnChange:
    """A column present in both schemas with at least one changed attribute."""

    old: Column
    new: Column
    changes: tuple[ColumnAttributeChange, ...]

    @property
    def name(self) -> str:
        """Name shared by both versions of the column."""
        return self.new.name

    def find[C: Changed](self, change_type: type[C]) -> C | None:
        """Return the change of a given kind, if recorded."""
        return next(
            (change for change in self.changes if isinstance(change, change_type)),
            None,
        )


@dataclass(frozen=True, slots=True)
class IndexChange:
    """An index present in both schemas whose definition changed."""

    old: Index
    new: Index
    kinds: tuple[IndexChangeKind, ...]

    @property
    def name(self) -> str:
        """Name shared by both versions of the index."""
        return self.new.name


@dataclass(frozen=True, slots=True)
class TableChange:
    """Structural changes to a table present in both schemas."""

    old: Table
    new: Table
    columns_added: tuple[Column, ...] = ()
    columns_removed: tuple[Column, ...] = ()
    columns_modified: tuple[ColumnChange, ...] = ()
    indexes_added: tuple[Index, ...] = ()
    indexes_removed: tuple[Index, ...] = ()
    indexes_modified: tuple[IndexChange, ...] = ()

    @property
    def name(self) -> str:
        """Name shared by both versions of the table."""
        return self.new.name

    @property
    def has_changes(self) -> bool:
        """Check whether any column or index changed."""
        return any(
            (
                self.columns_added,
                self.columns_removed,
                self.columns_modified,
                self.indexes_added,
                self.indexes_removed,
                self.indexes_modified,
            ),
        )


@dataclass(frozen=True, slots=True)
class SchemaDiff:
    """Complete structural delta between two schemas."""

    tables_added: tuple[Table, ...] = ()
    tables_removed: tuple[Table, ...] = ()
    tables_modified: tuple[TableChange, ...] = ()

    @property
    def has_changes(self) -> bool:
        """Check whether any table was added, removed or modified."""
        return bool(self.tables_added or self.tables_removed or self.tables_modified)
