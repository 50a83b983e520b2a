"""Tests for PostgresInspector catalog parsing."""

import asyncio

import pytest

from conftest import FakeConnection
from db_snapshot.engines.postgres import inspector as pg
from db_snapshot.engines.postgres.inspector import PostgresInspector
from db_snapshot.schema.models import ConstraintType

COLUMN_ROWS = [
    {
        "name": "id",
        "data_type": "integer",
        "udt_name": "int4",
        "is_nullable": False,
        "column_default": "nextval('orders_id_seq'::regclass)",
        "character_maximum_length": None,
        "numeric_precision": 32,
        "numeric_scale": 0,
        "generation_expression": None,
    },
    {
        "name": "total",
        "data_type": "numeric",
        "udt_name": "numeric",
        "is_nullable": False,
        "column_default": "0",
        "character_maximum_length": None,
        "numeric_precision": 10,
        "numeric_scale": 2,
        "generation_expression": None,
    },
]

# Composite FK flattened one row per column, with a duplicate row
CONSTRAINT_ROWS = [
    {"name": "line_fk", "constraint_type": "FOREIGN KEY", "column_name": "order_id",
     "foreign_schema": "public", "foreign_table": "orders", "foreign_column": "id",
     "on_delete": "CASCADE", "on_update": "NO ACTION", "definition": "FOREIGN KEY ..."},
    {"name": "line_fk", "constraint_type": "FOREIGN KEY", "column_name": "order_rev",
     "foreign_schema": "public", "foreign_table": "orders", "foreign_column": "rev",
     "on_delete": "CASCADE", "on_update": "NO ACTION", "definition": "FOREIGN KEY ..."},
    {"name": "line_fk", "constraint_type": "FOREIGN KEY", "column_name": "order_id",
     "foreign_schema": "public", "foreign_table": "orders", "foreign_column": "id",
     "on_delete": "CASCADE", "on_update": "NO ACTION", "definition": "FOREIGN KEY ..."},
    {"name": "line_pkey", "constraint_type": "PRIMARY KEY", "column_name": "line_no",
     "foreign_schema": None, "foreign_table": None, "foreign_column": None,
     "on_delete": None, "on_update": None, "definition": "PRIMARY KEY (line_no, order_id)"},
    {"name": "line_pkey", "constraint_type": "PRIMARY KEY", "column_name": "order_id",
     "foreign_schema": None, "foreign_table": None, "foreign_column": None,
     "on_delete": None, "on_update": None, "definition": "PRIMARY KEY (line_no, order_id)"},
    {"name": "qty_positive", "constraint_type": "CHECK", "column_name": None,
     "foreign_schema": None, "foreign_table": None, "foreign_column": None,
     "on_delete": None, "on_update": None, "definition": "CHECK ((qty > 0))"},
]

INDEX_ROWS = [
    {"name": "idx_total", "definition": "CREATE INDEX idx_total ON public.orders USING btree (total)",
     "is_unique": False, "columns": ["total"]},
]

SEQUENCE_ROWS = [
    {"name": "orders_id_seq", "data_type": "integer", "start_value": 1, "min_value": 1,
     "max_value": 2147483647, "increment_by": 1, "cycle": False, "cache_size": 1,
     "last_value": 57, "owned_by": "id"},
]


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection(
        {
            pg.TABLES_SQL: [{"table_name": "customers"}, {"table_name": "orders"}, {"table_name": "spatial_ref_sys"}],
            pg.COLUMNS_SQL: COLUMN_ROWS,
            pg.CONSTRAINTS_SQL: CONSTRAINT_ROWS,
            pg.INDEXES_SQL: INDEX_ROWS,
            pg.SEQUENCES_SQL: SEQUENCE_ROWS,
            pg.FUNCTIONS_SQL: [{"name": "touch()", "definition": "CREATE OR REPLACE FUNCTION public.touch() ..."}],
            pg.TRIGGERS_SQL: [{"name": "trg_touch", "table_name": "orders", "definition": "CREATE TRIGGER trg_touch ..."}],
        }
    )


# ============================================================
# Test: list_tables
# ============================================================


class TestListTables:
    """Tables come back in catalog order, filtered and without exclusions."""

    @pytest.mark.asyncio
    async def test_excludes_extension_tables(self, connection: FakeConnection) -> None:
        tables = await PostgresInspector(connection).list_tables("public")
        assert tables == ["customers", "orders"]

    @pytest.mark.asyncio
    async def test_filter_is_passed_as_array_and_catalog_order_kept(
        self, connection: FakeConnection
    ) -> None:
        tables = await PostgresInspector(connection).list_tables("public", ["orders", "customers"])
        statement, params = connection.queries[-1]
        assert "table_name = ANY(:tables)" in statement
        assert statement.rstrip().endswith("ORDER BY table_name")
        assert params == {"schema": "public", "tables": ["orders", "customers"]}
        assert tables == ["customers", "orders"]

    @pytest.mark.asyncio
    async def test_custom_exclusions(self, connection: FakeConnection) -> None:
        inspector = PostgresInspector(connection, excluded_tables={"customers"})
        assert await inspector.list_tables("public") == ["orders", "spatial_ref_sys"]


# ============================================================
# Test: get_table_metadata
# ============================================================


class TestGetTableMetadata:
    """Metadata assembly from the four catalog queries."""

    @pytest.mark.asyncio
    async def test_columns_in_catalog_order(self, connection: FakeConnection) -> None:
        meta = await PostgresInspector(connection).get_table_metadata("public", "orders")
        assert [c.name for c in meta.columns] == ["id", "total"]
        assert meta.columns[1].numeric_precision == 10
        assert meta.schema_name == "public"

    @pytest.mark.asyncio
    async def test_constraints_reaggregated_in_first_seen_order(
        self, connection: FakeConnection
    ) -> None:
        meta = await PostgresInspector(connection).get_table_metadata("public", "order_lines")
        by_name = {c.name: c for c in meta.constraints}

        fk = by_name["line_fk"]
        assert fk.constraint_type is ConstraintType.FOREIGN_KEY
        assert fk.columns == ("order_id", "order_rev")
        assert fk.foreign_columns == ("id", "rev")
        assert fk.on_delete == "CASCADE"

        assert by_name["line_pkey"].columns == ("line_no", "order_id")
        assert by_name["qty_positive"].columns == ()
        assert by_name["qty_positive"].definition == "CHECK ((qty > 0))"
        assert [c.name for c in meta.constraints] == ["line_fk", "line_pkey", "qty_positive"]

    @pytest.mark.asyncio
    async def test_indexes_and_sequences(self, connection: FakeConnection) -> None:
        meta = await PostgresInspector(connection).get_table_metadata("public", "orders")
        assert meta.indexes[0].columns == ("total",)
        seq = meta.sequences[0]
        assert seq.last_value == 57
        assert seq.owned_by == "id"

    def test_index_query_excludes_constraint_backed_indexes(self) -> None:
        assert "NOT ix.indisprimary" in pg.INDEXES_SQL
        assert "pc.contype IN ('p', 'u')" in pg.INDEXES_SQL

    def test_sequence_query_uses_dependency_graph(self) -> None:
        assert "pg_depend" in pg.SEQUENCES_SQL
        assert "d.deptype IN ('a', 'i')" in pg.SEQUENCES_SQL

    @pytest.mark.asyncio
    async def test_catalog_queries_run_concurrently(self) -> None:
        in_flight = 0
        peak = 0

        class SlowConnection(FakeConnection):
            async def query(self, statement, params=None):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return await super().query(statement, params)

        await PostgresInspector(SlowConnection()).get_table_metadata("public", "orders")
        assert peak == 4


# ============================================================
# Test: functions and triggers
# ============================================================


class TestFunctionsAndTriggers:
    @pytest.mark.asyncio
    async def test_list_functions(self, connection: FakeConnection) -> None:
        functions = await PostgresInspector(connection).list_functions("public")
        assert functions[0].name == "touch()"
        assert functions[0].schema_name == "public"
        assert functions[0].table_name is None

    @pytest.mark.asyncio
    async def test_list_triggers_carry_table(self, connection: FakeConnection) -> None:
        triggers = await PostgresInspector(connection).list_triggers("public")
        assert triggers[0].table_name == "orders"
