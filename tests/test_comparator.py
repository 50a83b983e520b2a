"""Tests for one-directional schema comparison."""

from unittest.mock import patch

import pytest

from conftest import FakeInspector, customers_table, make_bundle, orders_table
from db_snapshot.config.models import ConnectionConfig
from db_snapshot.engines.sql import requalify
from db_snapshot.schema.comparator import compare_profiles, compare_schemas
from db_snapshot.schema.models import (
    DatabaseObject,
    DiffType,
    TableColumn,
    TableMetadata,
)


def _without_column(meta: TableMetadata, name: str) -> TableMetadata:
    return meta.model_copy(update={"columns": tuple(c for c in meta.columns if c.name != name)})


def _replace_column(meta: TableMetadata, name: str, **changes) -> TableMetadata:
    return meta.model_copy(
        update={
            "columns": tuple(
                c.model_copy(update=changes) if c.name == name else c for c in meta.columns
            )
        }
    )


async def _compare(source_tables, target_tables, **kwargs):
    source = make_bundle(FakeInspector(source_tables, **kwargs.get("source", {})))
    target = make_bundle(
        FakeInspector(target_tables, **kwargs.get("target", {})), schema=kwargs.get("target_schema", "public")
    )
    return await compare_schemas(source, target)


# ============================================================
# Test: tables and columns
# ============================================================


class TestTableAndColumnDiffs:
    """Table and column level drift."""

    @pytest.mark.asyncio
    async def test_identical_schemas(self) -> None:
        result = await _compare([orders_table(), customers_table()], [orders_table(), customers_table()])
        assert result.is_identical
        assert result.diffs == ()

    @pytest.mark.asyncio
    async def test_missing_column_reported_with_add_fix(self) -> None:
        target = _without_column(customers_table(), "email")
        result = await _compare([customers_table()], [target])

        (diff,) = result.diffs
        assert diff.diff_type is DiffType.MISSING_COLUMN
        assert diff.table == "customers"
        assert diff.name == "email"
        assert diff.expected == "VARCHAR(255)"
        assert diff.fix == 'ALTER TABLE "public"."customers" ADD COLUMN "email" VARCHAR(255);'

    @pytest.mark.asyncio
    async def test_type_family_change_is_mismatch(self) -> None:
        target = _replace_column(
            customers_table(), "email", data_type="text", udt_name="text", character_maximum_length=None
        )
        result = await _compare([customers_table()], [target])

        (diff,) = result.diffs
        assert diff.diff_type is DiffType.TYPE_MISMATCH
        assert (diff.expected, diff.actual) == ("varchar", "text")
        assert diff.fix == (
            'ALTER TABLE "public"."customers" ALTER COLUMN "email" '
            'TYPE VARCHAR(255) USING "email"::VARCHAR(255);'
        )

    @pytest.mark.asyncio
    async def test_length_change_is_not_a_type_mismatch(self) -> None:
        target = _replace_column(customers_table(), "email", character_maximum_length=100)
        result = await _compare([customers_table()], [target])
        assert result.is_identical

    @pytest.mark.asyncio
    async def test_nullability_and_default(self) -> None:
        target = _replace_column(orders_table(), "total", is_nullable=True, default=None)
        result = await _compare([orders_table()], [target])

        types = [d.diff_type for d in result.diffs]
        assert types == [DiffType.NULLABILITY_MISMATCH, DiffType.DEFAULT_MISMATCH]
        nullability, default = result.diffs
        assert (nullability.expected, nullability.actual) == ("NOT NULL", "NULL")
        assert nullability.fix.endswith('ALTER COLUMN "total" SET NOT NULL;')
        assert (default.expected, default.actual) == ("0", None)
        assert default.fix.endswith('ALTER COLUMN "total" SET DEFAULT 0;')

    @pytest.mark.asyncio
    async def test_missing_table_gets_full_create(self) -> None:
        result = await _compare([orders_table(), customers_table()], [orders_table()])

        (diff,) = result.diffs
        assert diff.diff_type is DiffType.MISSING_TABLE
        assert diff.table == "customers"
        assert 'CREATE TABLE "public"."customers"' in diff.fix
        assert "CREATE INDEX idx_customers_order" in diff.fix
        assert '"customers_order_fk" FOREIGN KEY' in diff.fix

    @pytest.mark.asyncio
    async def test_missing_table_fix_addresses_target_schema(self) -> None:
        result = await _compare([orders_table()], [], target_schema="staging")
        (diff,) = result.diffs
        assert 'CREATE TABLE "staging"."orders"' in diff.fix
        assert """setval('"staging"."orders_id_seq'""" in diff.fix

    @pytest.mark.asyncio
    async def test_missing_table_fix_has_no_source_schema_references(self) -> None:
        result = await _compare(
            [orders_table(), customers_table()], [orders_table("staging")], target_schema="staging"
        )
        (diff,) = result.diffs
        assert 'CREATE TABLE "staging"."customers"' in diff.fix
        assert 'CREATE INDEX idx_customers_order ON "staging".customers' in diff.fix
        assert 'REFERENCES "staging"."orders"' in diff.fix
        assert "public" not in diff.fix

    @pytest.mark.asyncio
    async def test_foreign_key_into_other_schema_is_kept(self) -> None:
        source = customers_table()
        source = source.model_copy(
            update={
                "constraints": tuple(
                    c.model_copy(update={"foreign_schema": "billing"})
                    if c.name == "customers_order_fk"
                    else c
                    for c in source.constraints
                )
            }
        )
        result = await _compare([source], [], target_schema="staging")
        (diff,) = result.diffs
        assert 'REFERENCES "billing"."orders"' in diff.fix

    @pytest.mark.asyncio
    async def test_target_only_objects_ignored(self) -> None:
        extra_column = TableColumn(name="legacy", data_type="text", udt_name="text")
        target_orders = orders_table().model_copy(
            update={"columns": (*orders_table().columns, extra_column)}
        )
        result = await _compare([orders_table()], [target_orders, customers_table()])
        assert result.is_identical


# ============================================================
# Test: constraints and indexes
# ============================================================


class TestConstraintAndIndexDiffs:
    @pytest.mark.asyncio
    async def test_missing_constraint_and_index(self) -> None:
        target = customers_table().model_copy(
            update={
                "constraints": tuple(
                    c for c in customers_table().constraints if c.name != "customers_email_key"
                ),
                "indexes": (),
            }
        )
        result = await _compare([customers_table()], [target])

        constraint, index = result.diffs
        assert constraint.diff_type is DiffType.MISSING_CONSTRAINT
        assert constraint.name == "customers_email_key"
        assert constraint.fix == (
            'ALTER TABLE "public"."customers" ADD CONSTRAINT "customers_email_key" UNIQUE ("email");'
        )
        assert index.diff_type is DiffType.MISSING_INDEX
        assert index.fix == customers_table().indexes[0].definition + ";"

    @pytest.mark.asyncio
    async def test_index_and_constraint_fixes_address_target_schema(self) -> None:
        target = customers_table("staging").model_copy(
            update={
                "constraints": tuple(
                    c
                    for c in customers_table("staging").constraints
                    if c.name != "customers_order_fk"
                ),
                "indexes": (),
            }
        )
        result = await _compare([customers_table()], [target], target_schema="staging")

        constraint, index = result.diffs
        assert constraint.fix == (
            'ALTER TABLE "staging"."customers" ADD CONSTRAINT "customers_order_fk" '
            'FOREIGN KEY ("order_id") REFERENCES "staging"."orders" ("id") ON DELETE CASCADE;'
        )
        assert index.fix == (
            'CREATE INDEX idx_customers_order ON "staging".customers USING btree (order_id);'
        )


# ============================================================
# Test: functions and triggers
# ============================================================


def _function(definition: str) -> DatabaseObject:
    return DatabaseObject(name="touch()", schema_name="public", definition=definition)


def _trigger(definition: str, schema: str = "public") -> DatabaseObject:
    return DatabaseObject(
        name="trg_touch", schema_name=schema, definition=definition, table_name="orders"
    )


class TestObjectDiffs:
    """Function and trigger drift."""

    @pytest.mark.asyncio
    async def test_missing_function(self) -> None:
        result = await _compare(
            [], [], source={"functions": [_function("CREATE FUNCTION touch() ...")]}
        )
        (diff,) = result.diffs
        assert diff.diff_type is DiffType.MISSING_FUNCTION
        assert diff.table is None
        assert diff.fix == "CREATE FUNCTION touch() ...;"

    @pytest.mark.asyncio
    async def test_function_definition_changed(self) -> None:
        result = await _compare(
            [],
            [],
            source={"functions": [_function("CREATE FUNCTION touch() v2")]},
            target={"functions": [_function("CREATE FUNCTION touch() v1")]},
        )
        (diff,) = result.diffs
        assert diff.diff_type is DiffType.FUNCTION_MISMATCH
        assert diff.expected.endswith("v2")
        assert diff.actual.endswith("v1")

    @pytest.mark.asyncio
    async def test_trigger_mismatch_drops_then_recreates(self) -> None:
        result = await _compare(
            [],
            [],
            source={"triggers": [_trigger("CREATE TRIGGER trg_touch v2")]},
            target={"triggers": [_trigger("CREATE TRIGGER trg_touch v1")]},
        )
        (diff,) = result.diffs
        assert diff.diff_type is DiffType.TRIGGER_MISMATCH
        assert diff.table == "orders"
        assert diff.fix == (
            'DROP TRIGGER IF EXISTS "trg_touch" ON "public"."orders";\n'
            "CREATE TRIGGER trg_touch v2;"
        )

    @pytest.mark.asyncio
    async def test_missing_trigger(self) -> None:
        result = await _compare([], [], source={"triggers": [_trigger("CREATE TRIGGER trg_touch")]})
        (diff,) = result.diffs
        assert diff.diff_type is DiffType.MISSING_TRIGGER
        assert diff.fix == "CREATE TRIGGER trg_touch;"

    @pytest.mark.asyncio
    async def test_same_trigger_name_on_other_table_is_missing(self) -> None:
        other = _trigger("CREATE TRIGGER trg_touch").model_copy(update={"table_name": "customers"})
        result = await _compare(
            [],
            [],
            source={"triggers": [_trigger("CREATE TRIGGER trg_touch")]},
            target={"triggers": [other]},
        )
        assert [d.diff_type for d in result.diffs] == [DiffType.MISSING_TRIGGER]


# ============================================================
# Test: compare_profiles
# ============================================================


class TestCompareProfiles:
    @pytest.mark.asyncio
    async def test_opens_and_closes_both_bundles(self) -> None:
        source = make_bundle(FakeInspector([orders_table()]))
        target = make_bundle(FakeInspector([]), database="replica")
        source_cfg = ConnectionConfig(database="app", user="u")
        target_cfg = ConnectionConfig(database="replica", user="u")

        with patch(
            "db_snapshot.schema.comparator.create_engine_bundle",
            side_effect=[source, target],
        ):
            result = await compare_profiles(source_cfg, target_cfg)

        assert [d.diff_type for d in result.diffs] == [DiffType.MISSING_TABLE]
        assert result.source == source.label
        assert result.target == target.label
        assert source.connection.close_calls == 1
        assert target.connection.close_calls == 1


# ============================================================
# Test: requalify
# ============================================================


class TestRequalify:
    def test_rewrites_quoted_and_unquoted_prefixes(self) -> None:
        text = "SELECT public.touch(), \"public\".\"orders\".id, nextval('public.orders_id_seq')"
        assert requalify(text, "public", "staging") == (
            'SELECT "staging".touch(), "staging"."orders".id, '
            "nextval('\"staging\".orders_id_seq')"
        )

    def test_leaves_lookalike_names_alone(self) -> None:
        text = "SELECT mypublic.a, public_data.b, other.public.c FROM t"
        assert requalify(text, "public", "staging") == text

    def test_unquoted_match_ignores_case(self) -> None:
        assert requalify("ON SCOTT.emp", "scott", "hr") == 'ON "hr".emp'

    def test_same_schema_is_unchanged(self) -> None:
        assert requalify("ON public.t", "public", "public") == "ON public.t"
