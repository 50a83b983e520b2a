"""Metadata model, schema comparison and report export."""

from db_snapshot.schema.models import (
    ComparisonResult,
    ConstraintType,
    DatabaseObject,
    DiffType,
    SchemaDiff,
    TableColumn,
    TableConstraint,
    TableIndex,
    TableMetadata,
    TableSequence,
)

__all__ = [
    "ComparisonResult",
    "ConstraintType",
    "DatabaseObject",
    "DiffType",
    "SchemaDiff",
    "TableColumn",
    "TableConstraint",
    "TableIndex",
    "TableMetadata",
    "TableSequence",
]
