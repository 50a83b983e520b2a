"""Shared fakes for engine, backup and comparison tests."""

from collections.abc import Callable
from typing import Any

import pytest

from db_snapshot.config.models import ConnectionConfig
from db_snapshot.engines.factory import EngineBundle
from db_snapshot.engines.postgres.extractor import PostgresExtractor
from db_snapshot.engines.postgres.generator import PostgresGenerator
from db_snapshot.schema.models import (
    ConstraintType,
    DatabaseObject,
    TableColumn,
    TableConstraint,
    TableIndex,
    TableMetadata,
    TableSequence,
)
from db_snapshot.types import EngineType

Rows = list[dict[str, Any]] | Callable[[dict[str, Any] | None], list[dict[str, Any]]]


class FakeConnection:
    """In-memory ``DatabaseConnection``.

    ``responses`` and ``streams`` map a statement fragment to rows (or a
    callable taking the params). The first fragment contained in the
    statement wins; unmatched queries return no rows.
    """

    def __init__(
        self,
        responses: dict[str, Rows] | None = None,
        streams: dict[str, list[dict[str, Any]]] | None = None,
    ) -> None:
        self.responses = responses or {}
        self.streams = streams or {}
        self.queries: list[tuple[str, dict | None]] = []
        self.streamed: list[str] = []
        self.pages_fetched = 0
        self.cursors_closed = 0
        self.close_calls = 0

    @staticmethod
    def _match(table: dict[str, Any], statement: str) -> Any:
        for fragment, rows in table.items():
            if fragment in statement:
                return rows
        return []

    async def query(self, statement: str, params: dict | None = None) -> list[dict[str, Any]]:
        self.queries.append((statement, params))
        rows = self._match(self.responses, statement)
        return list(rows(params) if callable(rows) else rows)

    async def stream(self, statement: str, params: dict | None = None, page_size: int = 1000):
        self.streamed.append(statement)
        rows = self._match(self.streams, statement)
        try:
            for start in range(0, len(rows), page_size):
                self.pages_fetched += 1
                yield rows[start : start + page_size]
        finally:
            self.cursors_closed += 1

    async def close(self) -> None:
        self.close_calls += 1


class FakeInspector:
    """In-memory ``SchemaInspector`` over prebuilt metadata."""

    def __init__(
        self,
        tables: list[TableMetadata] | None = None,
        functions: list[DatabaseObject] | None = None,
        triggers: list[DatabaseObject] | None = None,
    ) -> None:
        self.tables = {t.name: t for t in tables or []}
        self.functions = functions or []
        self.triggers = triggers or []
        self.metadata_calls: list[str] = []

    async def list_tables(self, schema, tables=None):
        return [name for name in self.tables if not tables or name in tables]

    async def get_table_metadata(self, schema, table):
        self.metadata_calls.append(table)
        return self.tables[table]

    async def list_functions(self, schema):
        return list(self.functions)

    async def list_triggers(self, schema):
        return list(self.triggers)


def make_bundle(
    inspector: Any,
    connection: FakeConnection | None = None,
    schema: str = "public",
    database: str = "app",
) -> EngineBundle:
    connection = connection or FakeConnection()
    return EngineBundle(
        engine=EngineType.POSTGRES,
        config=ConnectionConfig(database=database, user="readonly"),
        schema=schema,
        connection=connection,
        inspector=inspector,
        generator=PostgresGenerator(),
        extractor=PostgresExtractor(connection),
    )


def orders_table(schema: str = "public") -> TableMetadata:
    """orders(id serial primary key, total numeric(10,2) not null default 0)"""
    return TableMetadata(
        name="orders",
        schema_name=schema,
        columns=(
            TableColumn(
                name="id",
                data_type="integer",
                udt_name="int4",
                is_nullable=False,
                default="nextval('orders_id_seq'::regclass)",
                numeric_precision=32,
                numeric_scale=0,
            ),
            TableColumn(
                name="total",
                data_type="numeric",
                udt_name="numeric",
                is_nullable=False,
                default="0",
                numeric_precision=10,
                numeric_scale=2,
            ),
        ),
        constraints=(
            TableConstraint(
                name="orders_pkey",
                constraint_type=ConstraintType.PRIMARY_KEY,
                columns=("id",),
            ),
        ),
        sequences=(
            TableSequence(
                name="orders_id_seq",
                data_type="integer",
                start_value=1,
                min_value=1,
                max_value=2147483647,
                last_value=2,
                owned_by="id",
            ),
        ),
    )


def customers_table(schema: str = "public") -> TableMetadata:
    return TableMetadata(
        name="customers",
        schema_name=schema,
        columns=(
            TableColumn(name="id", data_type="bigint", udt_name="int8", is_nullable=False),
            TableColumn(
                name="email",
                data_type="character varying",
                udt_name="varchar",
                character_maximum_length=255,
            ),
            TableColumn(name="order_id", data_type="integer", udt_name="int4"),
        ),
        constraints=(
            TableConstraint(
                name="customers_pkey",
                constraint_type=ConstraintType.PRIMARY_KEY,
                columns=("id",),
            ),
            TableConstraint(
                name="customers_email_key",
                constraint_type=ConstraintType.UNIQUE,
                columns=("email",),
            ),
            TableConstraint(
                name="customers_order_fk",
                constraint_type=ConstraintType.FOREIGN_KEY,
                columns=("order_id",),
                foreign_schema=schema,
                foreign_table="orders",
                foreign_columns=("id",),
                on_delete="CASCADE",
            ),
        ),
        indexes=(
            TableIndex(
                name="idx_customers_order",
                definition=f"CREATE INDEX idx_customers_order ON {schema}.customers USING btree (order_id)",
                columns=("order_id",),
            ),
        ),
    )


@pytest.fixture
def orders() -> TableMetadata:
    return orders_table()


@pytest.fixture
def customers() -> TableMetadata:
    return customers_table()
