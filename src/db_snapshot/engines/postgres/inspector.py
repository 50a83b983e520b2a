"""PostgreSQL catalog inspection.

Reads ``information_schema`` for tables and columns and the ``pg_catalog``
tables for everything whose definition only Postgres can reproduce
(constraints, index definitions, sequence ownership, functions, triggers).
"""

import asyncio
import logging
from collections.abc import Collection

from db_snapshot.engines.base import DatabaseConnection, aggregate_constraints
from db_snapshot.schema.models import (
    DatabaseObject,
    TableColumn,
    TableConstraint,
    TableIndex,
    TableMetadata,
    TableSequence,
)

logger = logging.getLogger(__name__)

# Tables installed by common extensions
DEFAULT_EXCLUDED_TABLES = frozenset({"spatial_ref_sys", "pg_stat_statements"})

TABLES_SQL = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = :schema
      AND table_type = 'BASE TABLE'
"""

# Identity columns have no column_default; they are reported with the
# equivalent nextval() default on their backing sequence.
COLUMNS_SQL = """
    SELECT
        c.column_name AS name,
        c.data_type,
        c.udt_name,
        c.is_nullable = 'YES' AS is_nullable,
        CASE
            WHEN c.is_identity = 'YES' THEN format(
                'nextval(%L::regclass)',
                pg_get_serial_sequence(format('%I.%I', c.table_schema, c.table_name), c.column_name)
            )
            ELSE c.column_default
        END AS column_default,
        c.character_maximum_length,
        c.numeric_precision,
        c.numeric_scale,
        c.generation_expression
    FROM information_schema.columns c
    WHERE c.table_schema = :schema
      AND c.table_name = :table
    ORDER BY c.ordinal_position
"""

# One row per (constraint, key column); re-aggregated in Python
CONSTRAINTS_SQL = """
    SELECT
        con.conname AS name,
        CASE con.contype
            WHEN 'p' THEN 'PRIMARY KEY'
            WHEN 'f' THEN 'FOREIGN KEY'
            WHEN 'u' THEN 'UNIQUE'
            WHEN 'c' THEN 'CHECK'
        END AS constraint_type,
        att.attname AS column_name,
        fns.nspname AS foreign_schema,
        fcl.relname AS foreign_table,
        fatt.attname AS foreign_column,
        CASE con.confdeltype
            WHEN 'a' THEN 'NO ACTION'
            WHEN 'r' THEN 'RESTRICT'
            WHEN 'c' THEN 'CASCADE'
            WHEN 'n' THEN 'SET NULL'
            WHEN 'd' THEN 'SET DEFAULT'
        END AS on_delete,
        CASE con.confupdtype
            WHEN 'a' THEN 'NO ACTION'
            WHEN 'r' THEN 'RESTRICT'
            WHEN 'c' THEN 'CASCADE'
            WHEN 'n' THEN 'SET NULL'
            WHEN 'd' THEN 'SET DEFAULT'
        END AS on_update,
        pg_get_constraintdef(con.oid) AS definition
    FROM pg_constraint con
    JOIN pg_class cl ON cl.oid = con.conrelid
    JOIN pg_namespace ns ON ns.oid = cl.relnamespace
    LEFT JOIN LATERAL unnest(con.conkey) WITH ORDINALITY AS k(attnum, ord) ON TRUE
    LEFT JOIN pg_attribute att ON att.attrelid = con.conrelid AND att.attnum = k.attnum
    LEFT JOIN pg_class fcl ON fcl.oid = con.confrelid
    LEFT JOIN pg_namespace fns ON fns.oid = fcl.relnamespace
    LEFT JOIN pg_attribute fatt
        ON fatt.attrelid = con.confrelid AND fatt.attnum = con.confkey[k.ord::int]
    WHERE ns.nspname = :schema
      AND cl.relname = :table
      AND con.contype IN ('p', 'f', 'u', 'c')
    ORDER BY con.conname, k.ord
"""

# Indexes backing PRIMARY KEY / UNIQUE constraints are recreated by the constraint
INDEXES_SQL = """
    SELECT
        i.relname AS name,
        pg_get_indexdef(ix.indexrelid) AS definition,
        ix.indisunique AS is_unique,
        array_remove(array_agg(a.attname ORDER BY x.ordinality), NULL) AS columns
    FROM pg_index ix
    JOIN pg_class t ON t.oid = ix.indrelid
    JOIN pg_class i ON i.oid = ix.indexrelid
    JOIN pg_namespace n ON n.oid = t.relnamespace
    LEFT JOIN LATERAL unnest(ix.indkey) WITH ORDINALITY AS x(attnum, ordinality) ON TRUE
    LEFT JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = x.attnum
    WHERE n.nspname = :schema
      AND t.relname = :table
      AND NOT ix.indisprimary
      AND NOT EXISTS (
          SELECT 1
          FROM pg_constraint pc
          WHERE pc.conindid = ix.indexrelid
            AND pc.conrelid = t.oid
            AND pc.contype IN ('p', 'u')
      )
    GROUP BY i.relname, ix.indexrelid, ix.indisunique
    ORDER BY i.relname
"""

# Sequences owned by a column ('a' = SERIAL / OWNED BY, 'i' = IDENTITY)
SEQUENCES_SQL = """
    SELECT
        s.relname AS name,
        ps.data_type::text AS data_type,
        ps.start_value,
        ps.min_value,
        ps.max_value,
        ps.increment_by,
        ps.cycle,
        ps.cache_size,
        ps.last_value,
        a.attname AS owned_by
    FROM pg_class s
    JOIN pg_namespace n ON n.oid = s.relnamespace
    JOIN pg_depend d
        ON d.objid = s.oid
        AND d.classid = 'pg_class'::regclass
        AND d.refclassid = 'pg_class'::regclass
        AND d.deptype IN ('a', 'i')
    JOIN pg_class t ON t.oid = d.refobjid
    JOIN pg_namespace tn ON tn.oid = t.relnamespace
    LEFT JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = d.refobjsubid
    JOIN pg_sequences ps ON ps.schemaname = n.nspname AND ps.sequencename = s.relname
    WHERE s.relkind = 'S'
      AND tn.nspname = :schema
      AND t.relname = :table
    ORDER BY s.relname
"""

# Extension-owned functions (pg_depend deptype 'e') are installed by
# CREATE EXTENSION, not by the schema owner
FUNCTIONS_SQL = """
    SELECT
        p.proname || '(' || pg_get_function_identity_arguments(p.oid) || ')' AS name,
        pg_get_functiondef(p.oid) AS definition
    FROM pg_proc p
    JOIN pg_namespace n ON n.oid = p.pronamespace
    WHERE n.nspname = :schema
      AND p.prokind = 'f'
      AND NOT EXISTS (
          SELECT 1 FROM pg_depend dep
          WHERE dep.objid = p.oid AND dep.deptype = 'e'
      )
    ORDER BY 1
"""

TRIGGERS_SQL = """
    SELECT
        tr.tgname AS name,
        rel.relname AS table_name,
        pg_get_triggerdef(tr.oid) AS definition
    FROM pg_trigger tr
    JOIN pg_class rel ON rel.oid = tr.tgrelid
    JOIN pg_namespace n ON n.oid = rel.relnamespace
    WHERE n.nspname = :schema
      AND NOT tr.tgisinternal
    ORDER BY rel.relname, tr.tgname
"""


class PostgresInspector:
    """Postgres ``SchemaInspector``.

    Args:
        connection: Connection to run catalog queries on.
        excluded_tables: Table names never listed. Defaults to tables
            installed by common extensions.
    """

    def __init__(
        self,
        connection: DatabaseConnection,
        excluded_tables: Collection[str] | None = None,
    ) -> None:
        self._conn = connection
        self.excluded_tables = frozenset(
            DEFAULT_EXCLUDED_TABLES if excluded_tables is None else excluded_tables
        )

    async def list_tables(
        self, schema: str, tables: Collection[str] | None = None
    ) -> list[str]:
        statement = TABLES_SQL
        params: dict = {"schema": schema}
        if tables:
            statement += "  AND table_name = ANY(:tables)\n"
            params["tables"] = list(tables)
        statement += "    ORDER BY table_name\n"

        rows = await self._conn.query(statement, params)
        return [
            row["table_name"]
            for row in rows
            if row["table_name"] not in self.excluded_tables
        ]

    async def get_table_metadata(self, schema: str, table: str) -> TableMetadata:
        logger.info("Inspecting metadata for table: %s.%s", schema, table)
        columns, constraints, indexes, sequences = await asyncio.gather(
            self._get_columns(schema, table),
            self._get_constraints(schema, table),
            self._get_indexes(schema, table),
            self._get_sequences(schema, table),
        )
        return TableMetadata(
            name=table,
            schema_name=schema,
            columns=columns,
            constraints=constraints,
            indexes=indexes,
            sequences=sequences,
        )

    async def _get_columns(self, schema: str, table: str) -> tuple[TableColumn, ...]:
        rows = await self._conn.query(COLUMNS_SQL, {"schema": schema, "table": table})
        return tuple(
            TableColumn(
                name=row["name"],
                data_type=row["data_type"],
                udt_name=row["udt_name"],
                is_nullable=row["is_nullable"],
                default=row["column_default"],
                character_maximum_length=row["character_maximum_length"],
                numeric_precision=row["numeric_precision"],
                numeric_scale=row["numeric_scale"],
                generation_expression=row["generation_expression"],
            )
            for row in rows
        )

    async def _get_constraints(
        self, schema: str, table: str
    ) -> tuple[TableConstraint, ...]:
        rows = await self._conn.query(CONSTRAINTS_SQL, {"schema": schema, "table": table})
        return aggregate_constraints(rows)

    async def _get_indexes(self, schema: str, table: str) -> tuple[TableIndex, ...]:
        rows = await self._conn.query(INDEXES_SQL, {"schema": schema, "table": table})
        return tuple(
            TableIndex(
                name=row["name"],
                definition=row["definition"],
                columns=tuple(row["columns"] or ()),
                is_unique=row["is_unique"],
            )
            for row in rows
        )

    async def _get_sequences(self, schema: str, table: str) -> tuple[TableSequence, ...]:
        rows = await self._conn.query(SEQUENCES_SQL, {"schema": schema, "table": table})
        return tuple(
            TableSequence(
                name=row["name"],
                data_type=row["data_type"],
                start_value=row["start_value"],
                min_value=row["min_value"],
                max_value=row["max_value"],
                increment_by=row["increment_by"],
                cycle=row["cycle"],
                cache_size=row["cache_size"],
                last_value=row["last_value"],
                owned_by=row["owned_by"],
            )
            for row in rows
        )

    async def list_functions(self, schema: str) -> list[DatabaseObject]:
        logger.info("Inspecting functions in schema: %s", schema)
        rows = await self._conn.query(FUNCTIONS_SQL, {"schema": schema})
        return [
            DatabaseObject(name=row["name"], schema_name=schema, definition=row["definition"])
            for row in rows
        ]

    async def list_triggers(self, schema: str) -> list[DatabaseObject]:
        logger.info("Inspecting triggers in schema: %s", schema)
        rows = await self._conn.query(TRIGGERS_SQL, {"schema": schema})
        return [
            DatabaseObject(
                name=row["name"],
                schema_name=schema,
                definition=row["definition"],
                table_name=row["table_name"],
            )
            for row in rows
        ]

