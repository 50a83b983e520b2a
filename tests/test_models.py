"""Tests for the metadata and comparison models."""

import pytest
from pydantic import ValidationError

from db_snapshot.schema.models import (
    ComparisonResult,
    ConstraintType,
    DiffType,
    SchemaDiff,
    TableColumn,
    TableMetadata,
    TableSequence,
)


# ============================================================
# Test: Metadata immutability
# ============================================================


class TestMetadataImmutability:
    """Metadata snapshots cannot change after inspection."""

    def test_table_metadata_is_frozen(self, orders) -> None:
        """Assigning a field on TableMetadata raises."""
        with pytest.raises(ValidationError):
            orders.name = "renamed"

    def test_collections_are_tuples(self, orders) -> None:
        """Ordered collections are stored as tuples, not lists."""
        assert isinstance(orders.columns, tuple)
        assert isinstance(orders.constraints, tuple)

    def test_lists_are_coerced_to_tuples(self) -> None:
        """Passing lists still yields tuples that keep catalog order."""
        meta = TableMetadata(
            name="t",
            schema_name="public",
            columns=[
                TableColumn(name="b", data_type="text", udt_name="text"),
                TableColumn(name="a", data_type="text", udt_name="text"),
            ],
        )
        assert [c.name for c in meta.columns] == ["b", "a"]

    def test_get_column_and_primary_key(self, orders) -> None:
        """Lookup helpers find columns by name and the primary key."""
        assert orders.get_column("total").numeric_scale == 2
        assert orders.get_column("missing") is None
        assert orders.primary_key.constraint_type is ConstraintType.PRIMARY_KEY


# ============================================================
# Test: Sequence restart value
# ============================================================


class TestSequenceRestartValue:
    """restart_value follows the last observed value."""

    def test_uses_last_value_when_called(self) -> None:
        seq = TableSequence(name="s", start_value=1, last_value=57)
        assert seq.restart_value == 57
        assert seq.is_called

    def test_falls_back_to_start_value(self) -> None:
        seq = TableSequence(name="s", start_value=100, last_value=None)
        assert seq.restart_value == 100
        assert not seq.is_called


# ============================================================
# Test: ComparisonResult
# ============================================================


class TestComparisonResult:
    """Reporting helpers on ComparisonResult."""

    def test_identical_when_no_diffs(self) -> None:
        result = ComparisonResult(source="a", target="b")
        assert result.is_identical
        assert result.format_report() == "No differences between a and b"

    def test_count_by_type(self) -> None:
        result = ComparisonResult(
            source="a",
            target="b",
            diffs=[
                SchemaDiff(diff_type=DiffType.MISSING_COLUMN, table="t", name="x"),
                SchemaDiff(diff_type=DiffType.MISSING_COLUMN, table="t", name="y"),
                SchemaDiff(diff_type=DiffType.MISSING_INDEX, table="t", name="i"),
            ],
        )
        assert result.count_by_type() == {DiffType.MISSING_COLUMN: 2, DiffType.MISSING_INDEX: 1}

    def test_format_report_lists_each_diff(self) -> None:
        result = ComparisonResult(
            source="a",
            target="b",
            diffs=[
                SchemaDiff(
                    diff_type=DiffType.TYPE_MISMATCH, table="t", name="c", details="Type differs"
                )
            ],
        )
        report = result.format_report()
        assert "1 difference(s) from a to b" in report
        assert "[type mismatch] t.c: Type differs" in report

    def test_eleven_diff_types(self) -> None:
        assert len(DiffType) == 11
        assert DiffType.NULLABILITY_MISMATCH.label == "nullability mismatch"
