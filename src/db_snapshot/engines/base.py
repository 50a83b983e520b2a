"""Capability contracts every engine variant implements.

An engine is a set of four collaborating objects (connection, inspector,
generator, extractor) selected together by ``engines.factory``. Variants
share no base class; these Protocols are the only coupling.

Usage:
    from db_snapshot.engines.base import SchemaInspector

    async def table_names(inspector: SchemaInspector) -> list[str]:
        return await inspector.list_tables("public")
"""

from collections.abc import AsyncIterator, Collection, Sequence
from typing import Any, Protocol

from db_snapshot.schema.models import (
    ConstraintType,
    DatabaseObject,
    TableColumn,
    TableConstraint,
    TableMetadata,
)
from db_snapshot.types import EngineType

DEFAULT_PAGE_SIZE = 1000


class DatabaseConnection(Protocol):
    """Query executor owning exactly one session or pool."""

    async def query(
        self, statement: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Run a statement and return every row.

        Args:
            statement: SQL text with named ``:param`` placeholders.
            params: Values for the placeholders.

        Returns:
            List of dicts keyed by column name, in result order.

        Raises:
            DatabaseConnectionError: Host unreachable or authentication failed.
            QueryError: The statement failed; ``.statement`` holds its text.
        """
        ...

    def stream(
        self,
        statement: str,
        params: dict[str, Any] | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """Fetch rows in pages through a server-side cursor.

        Yields non-empty pages of at most ``page_size`` rows. The next page
        is not fetched until the consumer asks for it, and the cursor is
        released on every exit path, including ``aclose()``.
        """
        ...

    async def close(self) -> None:
        """Release all held resources. Safe to call more than once."""
        ...


class SchemaInspector(Protocol):
    """Turns catalog queries into metadata models."""

    async def list_tables(
        self, schema: str, tables: Collection[str] | None = None
    ) -> list[str]:
        """List base tables in catalog order.

        Args:
            schema: Schema (Postgres) or owner (Oracle) to inspect.
            tables: Optional allow-list; only intersecting tables are
                returned, still in catalog order.
        """
        ...

    async def get_table_metadata(self, schema: str, table: str) -> TableMetadata:
        """Fetch columns, constraints, indexes and sequences for one table."""
        ...

    async def list_functions(self, schema: str) -> list[DatabaseObject]: ...

    async def list_triggers(self, schema: str) -> list[DatabaseObject]: ...


class DDLGenerator(Protocol):
    """Pure metadata -> SQL text functions for one dialect. No I/O."""

    engine: EngineType

    def render_column_type(self, column: TableColumn) -> str: ...

    def generate_database_create(self, database: str) -> str: ...

    def generate_schema_create(self, schema: str) -> str: ...

    def generate_integrity_bypass(self) -> str: ...

    def generate_integrity_restore(self) -> str: ...

    def generate_sequences(self, meta: TableMetadata) -> list[str]: ...

    def generate_table_create(self, meta: TableMetadata) -> str:
        """``CREATE TABLE`` with inline columns, then the primary key as
        a trailing ``ALTER TABLE``."""
        ...

    def generate_indexes(self, meta: TableMetadata) -> list[str]: ...

    def generate_constraints(
        self, meta: TableMetadata, kinds: Collection[ConstraintType] | None = None
    ) -> list[str]:
        """``ADD CONSTRAINT`` statements for every non-primary-key
        constraint, or only those whose type is in ``kinds``."""
        ...

    def generate_add_column(self, meta: TableMetadata, column: TableColumn) -> str: ...

    def generate_alter_column_type(self, meta: TableMetadata, column: TableColumn) -> str: ...

    def generate_alter_column_nullability(
        self, meta: TableMetadata, column: TableColumn
    ) -> str: ...

    def generate_alter_column_default(self, meta: TableMetadata, column: TableColumn) -> str: ...

    def generate_constraint_fix(
        self, meta: TableMetadata, constraint: TableConstraint
    ) -> str: ...

    def generate_drop_trigger(self, trigger: DatabaseObject) -> str: ...

    def generate_object_create(self, obj: DatabaseObject) -> str: ...

    def generate_missing_table_fix(self, meta: TableMetadata) -> str: ...


class DataExtractor(Protocol):
    """Streams table rows as batches of INSERT statements."""

    def stream_table_data(
        self, meta: TableMetadata, page_size: int = DEFAULT_PAGE_SIZE
    ) -> AsyncIterator[Sequence[str]]:
        """Yield one non-empty list of complete INSERT statements per page."""
        ...


def aggregate_constraints(rows: list[dict[str, Any]]) -> tuple[TableConstraint, ...]:
    """Fold flattened (constraint, column) catalog rows into one constraint per name.

    Every engine's catalog exposes constraint keys one row per column.
    Columns and referenced columns are deduplicated keeping first-seen
    order, which is the key's declared order.

    Args:
        rows: Dicts with ``name``, ``constraint_type`` (a ``ConstraintType``
            value), ``column_name`` and optionally ``foreign_schema``,
            ``foreign_table``, ``foreign_column``, ``on_delete``,
            ``on_update`` and ``definition``.

    Returns:
        Constraints in order of first appearance.
    """
    grouped: dict[str, dict[str, Any]] = {}
    for row in rows:
        entry = grouped.get(row["name"])
        if entry is None:
            entry = grouped[row["name"]] = {
                "name": row["name"],
                "constraint_type": ConstraintType(row["constraint_type"]),
                "columns": [],
                "foreign_schema": row.get("foreign_schema"),
                "foreign_table": row.get("foreign_table"),
                "foreign_columns": [],
                "on_delete": row.get("on_delete"),
                "on_update": row.get("on_update"),
                "definition": row.get("definition"),
            }
        column = row.get("column_name")
        if column and column not in entry["columns"]:
            entry["columns"].append(column)
        foreign_column = row.get("foreign_column")
        if foreign_column and foreign_column not in entry["foreign_columns"]:
            entry["foreign_columns"].append(foreign_column)

    return tuple(
        TableConstraint(
            **{
                **entry,
                "columns": tuple(entry["columns"]),
                "foreign_columns": tuple(entry["foreign_columns"]),
            }
        )
        for entry in grouped.values()
    )
