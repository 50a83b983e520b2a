"""Pydantic models for catalog metadata and schema comparison results.

Every metadata model is frozen and uses tuples for ordered collections:
a ``TableMetadata`` snapshot is shared by DDL generation, data extraction
and diffing, so it must not change once an inspector has built it.
Column and constraint-column order is catalog order and is never sorted.
"""

from collections import Counter
from enum import Enum

from pydantic import BaseModel, ConfigDict


# ============================================================================
# Catalog Metadata Models
# ============================================================================


class TableColumn(BaseModel):
    """Schema for a table column, in catalog ordinal order."""

    model_config = ConfigDict(frozen=True)

    name: str
    data_type: str  # display form, e.g. "character varying"
    udt_name: str  # catalog type name, e.g. "varchar"; used for equality
    is_nullable: bool = True
    default: str | None = None
    character_maximum_length: int | None = None
    numeric_precision: int | None = None
    numeric_scale: int | None = None
    generation_expression: str | None = None
    identity_start: int | None = None  # Oracle identity columns: next value to issue

    @property
    def is_generated(self) -> bool:
        return bool(self.generation_expression)


class ConstraintType(str, Enum):
    PRIMARY_KEY = "PRIMARY KEY"
    FOREIGN_KEY = "FOREIGN KEY"
    UNIQUE = "UNIQUE"
    CHECK = "CHECK"


class TableConstraint(BaseModel):
    """Schema for a table constraint.

    ``columns`` and ``foreign_columns`` keep the key's declared order,
    which defines composite-key semantics.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    constraint_type: ConstraintType
    columns: tuple[str, ...] = ()
    foreign_schema: str | None = None
    foreign_table: str | None = None
    foreign_columns: tuple[str, ...] = ()
    on_delete: str | None = None  # NO ACTION, CASCADE, SET NULL, ...
    on_update: str | None = None
    definition: str | None = None  # CHECK (...) body or full catalog text


class TableIndex(BaseModel):
    """Schema for a secondary index with its executable definition."""

    model_config = ConfigDict(frozen=True)

    name: str
    definition: str
    columns: tuple[str, ...] = ()
    is_unique: bool = False


class TableSequence(BaseModel):
    """Schema for a sequence backing a table's identity/serial column.

    ``last_value`` is the value held at inspection time, or None when
    the sequence has never been called.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    data_type: str = "bigint"
    start_value: int = 1
    min_value: int = 1
    max_value: int | None = None
    increment_by: int = 1
    cycle: bool = False
    cache_size: int = 1
    last_value: int | None = None
    owned_by: str | None = None  # owning column

    @property
    def is_called(self) -> bool:
        return self.last_value is not None

    @property
    def restart_value(self) -> int:
        """Value the restored sequence must be synchronized to."""
        return self.last_value if self.last_value is not None else self.start_value


class TableMetadata(BaseModel):
    """Complete metadata for one base table."""

    model_config = ConfigDict(frozen=True)

    name: str
    schema_name: str
    columns: tuple[TableColumn, ...] = ()
    constraints: tuple[TableConstraint, ...] = ()
    indexes: tuple[TableIndex, ...] = ()
    sequences: tuple[TableSequence, ...] = ()

    def get_column(self, name: str) -> TableColumn | None:
        return next((c for c in self.columns if c.name == name), None)

    @property
    def primary_key(self) -> TableConstraint | None:
        return next(
            (
                c
                for c in self.constraints
                if c.constraint_type is ConstraintType.PRIMARY_KEY
            ),
            None,
        )


class DatabaseObject(BaseModel):
    """A function or trigger with its full create text."""

    model_config = ConfigDict(frozen=True)

    name: str
    schema_name: str
    definition: str
    table_name: str | None = None  # owning table, triggers only


# ============================================================================
# Comparison Result Models
# ============================================================================


class DiffType(str, Enum):
    MISSING_TABLE = "MISSING_TABLE"
    MISSING_COLUMN = "MISSING_COLUMN"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    NULLABILITY_MISMATCH = "NULLABILITY_MISMATCH"
    DEFAULT_MISMATCH = "DEFAULT_MISMATCH"
    MISSING_CONSTRAINT = "MISSING_CONSTRAINT"
    MISSING_INDEX = "MISSING_INDEX"
    MISSING_FUNCTION = "MISSING_FUNCTION"
    MISSING_TRIGGER = "MISSING_TRIGGER"
    FUNCTION_MISMATCH = "FUNCTION_MISMATCH"
    TRIGGER_MISMATCH = "TRIGGER_MISMATCH"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").lower()


class SchemaDiff(BaseModel):
    """A single discrepancy between source and target."""

    model_config = ConfigDict(frozen=True)

    diff_type: DiffType
    table: str | None = None  # None for schema-wide objects (functions)
    name: str | None = None  # column or object name
    expected: str | None = None
    actual: str | None = None
    details: str = ""
    fix: str | None = None


class ComparisonResult(BaseModel):
    """Ordered diffs found between a source and a target schema."""

    model_config = ConfigDict(frozen=True)

    source: str
    target: str
    diffs: tuple[SchemaDiff, ...] = ()

    @property
    def is_identical(self) -> bool:
        return not self.diffs

    def count_by_type(self) -> dict[DiffType, int]:
        return dict(Counter(d.diff_type for d in self.diffs))

    def format_report(self) -> str:
        """Format comparison result as human-readable report."""
        if self.is_identical:
            return f"No differences between {self.source} and {self.target}"

        lines = [f"{len(self.diffs)} difference(s) from {self.source} to {self.target}:"]
        for diff in self.diffs:
            where = ".".join(part for part in (diff.table, diff.name) if part)
            lines.append(f"  - [{diff.diff_type.label}] {where}: {diff.details}")
        return "\n".join(lines)
