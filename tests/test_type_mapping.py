"""Tests for per-engine-pair type mapping."""

import pytest

from db_snapshot.engines.type_mapping import (
    TYPE_MAPPINGS,
    NativeType,
    normalize_type_name,
    register_type_mapping,
    render_type,
)
from db_snapshot.schema.models import TableColumn
from db_snapshot.types import EngineType

PG = EngineType.POSTGRES
ORA = EngineType.ORACLE


def col(udt_name: str, data_type: str | None = None, **kwargs) -> TableColumn:
    return TableColumn(name="c", data_type=data_type or udt_name, udt_name=udt_name, **kwargs)


class TestNormalizeTypeName:
    def test_strips_precision_and_lowercases(self) -> None:
        assert normalize_type_name("TIMESTAMP(6) WITH TIME ZONE") == "timestamp with time zone"
        assert normalize_type_name("VARCHAR2") == "varchar2"


class TestPostgresToPostgres:
    """Same-engine rendering keeps sizes."""

    def test_varchar_with_length(self) -> None:
        column = col("varchar", "character varying", character_maximum_length=50)
        assert render_type(column, PG, PG) == "VARCHAR(50)"

    def test_numeric_with_precision_and_scale(self) -> None:
        column = col("numeric", numeric_precision=10, numeric_scale=2)
        assert render_type(column, PG, PG) == "NUMERIC(10, 2)"

    def test_unconstrained_numeric(self) -> None:
        assert render_type(col("numeric"), PG, PG) == "NUMERIC"

    def test_integer_ignores_catalog_precision(self) -> None:
        column = col("int4", "integer", numeric_precision=32, numeric_scale=0)
        assert render_type(column, PG, PG) == "INTEGER"

    def test_array_of_element_type(self) -> None:
        assert render_type(col("_int4", "ARRAY"), PG, PG) == "INTEGER[]"

    def test_unmapped_builtin_uses_display_type(self) -> None:
        assert render_type(col("tsvector", "tsvector"), PG, PG) == "TSVECTOR"

    def test_user_defined_type_uses_catalog_name(self) -> None:
        assert render_type(col("mood", "USER-DEFINED"), PG, PG) == "mood"


class TestPostgresToOracle:
    """Cross-engine mapping collapses type families."""

    @pytest.mark.parametrize(
        ("udt", "expected"),
        [
            ("text", "VARCHAR2(4000)"),
            ("bool", "NUMBER(1)"),
            ("int8", "NUMBER(19)"),
            ("jsonb", "CLOB"),
            ("bytea", "BLOB"),
        ],
    )
    def test_mapped_types(self, udt: str, expected: str) -> None:
        assert render_type(col(udt), PG, ORA) == expected

    def test_varchar_keeps_length(self) -> None:
        column = col("varchar", character_maximum_length=80)
        assert render_type(column, PG, ORA) == "VARCHAR2(80)"

    def test_arrays_become_clob(self) -> None:
        assert render_type(col("_text", "ARRAY"), PG, ORA) == "CLOB"


class TestOracleRendering:
    def test_number_star_scale(self) -> None:
        column = col("number", "NUMBER", numeric_scale=0)
        assert render_type(column, ORA, ORA) == "NUMBER(*, 0)"

    def test_timestamp_keeps_display_precision(self) -> None:
        column = col("timestamp", "TIMESTAMP(6)")
        assert render_type(column, ORA, ORA) == "TIMESTAMP(6)"

    def test_oracle_to_postgres(self) -> None:
        assert render_type(col("varchar2", character_maximum_length=20), ORA, PG) == "VARCHAR(20)"
        assert render_type(col("clob"), ORA, PG) == "TEXT"


class TestRegisterTypeMapping:
    def test_new_mapping_used_by_render(self) -> None:
        try:
            register_type_mapping(PG, ORA, "CITEXT2", NativeType("NVARCHAR2", sized=True, default_size=100))
            assert render_type(col("citext2"), PG, ORA) == "NVARCHAR2(100)"
        finally:
            TYPE_MAPPINGS[(PG, ORA)].pop("citext2", None)
