"""Oracle catalog inspection over the ``ALL_*`` dictionary views.

Oracle exposes no replayable index statement in its views, so index
definitions are reconstructed from ALL_INDEXES, ALL_IND_COLUMNS and
ALL_IND_EXPRESSIONS. Sequences are not owned by columns in Oracle; a
sequence belongs to a table when one of the table's triggers depends
on it (the classic pre-12c auto-increment pattern).
"""

import asyncio
import logging
import re
from collections.abc import Collection

from db_snapshot.engines.base import DatabaseConnection, aggregate_constraints
from db_snapshot.engines.sql import quote_ident
from db_snapshot.engines.type_mapping import normalize_type_name
from db_snapshot.schema.models import (
    DatabaseObject,
    TableColumn,
    TableConstraint,
    TableIndex,
    TableMetadata,
    TableSequence,
)

logger = logging.getLogger(__name__)

_CONSTRAINT_TYPES = {"P": "PRIMARY KEY", "R": "FOREIGN KEY", "U": "UNIQUE", "C": "CHECK"}

# System-named CHECK constraints Oracle creates for NOT NULL columns
_NOT_NULL_CHECK = re.compile(r'^\s*"[^"]+"\s+IS\s+NOT\s+NULL\s*$', re.IGNORECASE)

# Types whose length is declared in bytes rather than characters
_BYTE_SIZED = frozenset({"raw"})

TABLES_SQL = """
    SELECT t.table_name AS "table_name"
    FROM all_tables t
    WHERE t.owner = :owner
      AND t.nested = 'NO'
      AND t.secondary = 'N'
      AND t.dropped = 'NO'
      AND (t.iot_type IS NULL OR t.iot_type = 'IOT')
      AND NOT EXISTS (
          SELECT 1 FROM all_mviews m
          WHERE m.owner = t.owner AND m.mview_name = t.table_name
      )
"""

COLUMNS_SQL = """
    SELECT
        c.column_name AS "name",
        c.data_type AS "data_type",
        c.nullable AS "nullable",
        c.data_default AS "column_default",
        c.virtual_column AS "virtual_column",
        c.identity_column AS "identity_column",
        c.char_length AS "char_length",
        c.data_length AS "data_length",
        c.data_precision AS "numeric_precision",
        c.data_scale AS "numeric_scale",
        s.last_number AS "identity_start"
    FROM all_tab_cols c
    LEFT JOIN all_tab_identity_cols ic
        ON ic.owner = c.owner
        AND ic.table_name = c.table_name
        AND ic.column_name = c.column_name
    LEFT JOIN all_sequences s
        ON s.sequence_owner = ic.owner
        AND s.sequence_name = ic.sequence_name
    WHERE c.owner = :owner
      AND c.table_name = :table_name
      AND c.hidden_column = 'NO'
    ORDER BY c.column_id
"""

CONSTRAINTS_SQL = """
    SELECT
        c.constraint_name AS "name",
        c.constraint_type AS "type_code",
        c.generated AS "generated",
        c.search_condition_vc AS "search_condition",
        c.delete_rule AS "on_delete",
        cc.column_name AS "column_name",
        r.owner AS "foreign_schema",
        r.table_name AS "foreign_table",
        rc.column_name AS "foreign_column"
    FROM all_constraints c
    LEFT JOIN all_cons_columns cc
        ON cc.owner = c.owner
        AND cc.constraint_name = c.constraint_name
        AND cc.table_name = c.table_name
    LEFT JOIN all_constraints r
        ON r.owner = c.r_owner
        AND r.constraint_name = c.r_constraint_name
    LEFT JOIN all_cons_columns rc
        ON rc.owner = r.owner
        AND rc.constraint_name = r.constraint_name
        AND rc.position = cc.position
    WHERE c.owner = :owner
      AND c.table_name = :table_name
      AND c.constraint_type IN ('P', 'R', 'U', 'C')
    ORDER BY c.constraint_name, cc.position
"""

# Indexes backing PRIMARY KEY / UNIQUE constraints are recreated by the constraint
INDEXES_SQL = """
    SELECT
        i.index_name AS "name",
        i.index_type AS "index_type",
        i.uniqueness AS "uniqueness",
        ic.column_name AS "column_name",
        ic.descend AS "descend",
        ie.column_expression AS "column_expression"
    FROM all_indexes i
    JOIN all_ind_columns ic
        ON ic.index_owner = i.owner
        AND ic.index_name = i.index_name
    LEFT JOIN all_ind_expressions ie
        ON ie.index_owner = ic.index_owner
        AND ie.index_name = ic.index_name
        AND ie.column_position = ic.column_position
    WHERE i.table_owner = :owner
      AND i.table_name = :table_name
      AND i.generated = 'N'
      AND i.index_type IN (
          'NORMAL', 'NORMAL/REV', 'BITMAP', 'FUNCTION-BASED NORMAL', 'FUNCTION-BASED BITMAP'
      )
      AND NOT EXISTS (
          SELECT 1 FROM all_constraints pc
          WHERE pc.owner = i.table_owner
            AND pc.table_name = i.table_name
            AND pc.index_name = i.index_name
            AND pc.constraint_type IN ('P', 'U')
      )
    ORDER BY i.index_name, ic.column_position
"""

SEQUENCES_SQL = """
    SELECT DISTINCT
        s.sequence_name AS "name",
        s.min_value AS "min_value",
        s.max_value AS "max_value",
        s.increment_by AS "increment_by",
        s.cycle_flag AS "cycle_flag",
        s.cache_size AS "cache_size",
        s.last_number AS "last_number"
    FROM all_triggers t
    JOIN all_dependencies d
        ON d.owner = t.owner
        AND d.name = t.trigger_name
        AND d.type = 'TRIGGER'
        AND d.referenced_type = 'SEQUENCE'
    JOIN all_sequences s
        ON s.sequence_owner = d.referenced_owner
        AND s.sequence_name = d.referenced_name
    WHERE t.table_owner = :owner
      AND t.table_name = :table_name
    ORDER BY s.sequence_name
"""

FUNCTIONS_SQL = """
    SELECT name AS "name", text AS "text"
    FROM all_source
    WHERE owner = :owner
      AND type = 'FUNCTION'
    ORDER BY name, line
"""

TRIGGERS_SQL = """
    SELECT
        trigger_name AS "name",
        table_name AS "table_name",
        description AS "description",
        when_clause AS "when_clause",
        trigger_body AS "trigger_body"
    FROM all_triggers
    WHERE owner = :owner
      AND base_object_type = 'TABLE'
    ORDER BY table_name, trigger_name
"""


class OracleInspector:
    """Oracle ``SchemaInspector``. ``schema`` arguments are owner names."""

    def __init__(self, connection: DatabaseConnection) -> None:
        self._conn = connection

    async def list_tables(
        self, schema: str, tables: Collection[str] | None = None
    ) -> list[str]:
        statement = TABLES_SQL
        params: dict = {"owner": schema}
        if tables:
            binds = {f"t{i}": name for i, name in enumerate(tables)}
            statement += f"      AND t.table_name IN ({', '.join(':' + b for b in binds)})\n"
            params.update(binds)
        statement += "    ORDER BY t.table_name\n"

        rows = await self._conn.query(statement, params)
        return [row["table_name"] for row in rows]

    async def get_table_metadata(self, schema: str, table: str) -> TableMetadata:
        logger.info("Inspecting metadata for Oracle table: %s.%s", schema, table)
        params = {"owner": schema, "table_name": table}
        column_rows, constraint_rows, index_rows, sequence_rows = await asyncio.gather(
            self._conn.query(COLUMNS_SQL, params),
            self._conn.query(CONSTRAINTS_SQL, params),
            self._conn.query(INDEXES_SQL, params),
            self._conn.query(SEQUENCES_SQL, params),
        )
        return TableMetadata(
            name=table,
            schema_name=schema,
            columns=tuple(_column(row) for row in column_rows),
            constraints=_constraints(constraint_rows),
            indexes=_indexes(table, index_rows),
            sequences=_sequences(sequence_rows),
        )

    async def list_functions(self, schema: str) -> list[DatabaseObject]:
        logger.info("Inspecting functions for owner: %s", schema)
        rows = await self._conn.query(FUNCTIONS_SQL, {"owner": schema})

        # ALL_SOURCE has one row per source line
        sources: dict[str, list[str]] = {}
        for row in rows:
            sources.setdefault(row["name"], []).append(row["text"] or "")

        return [
            DatabaseObject(
                name=name,
                schema_name=schema,
                definition="CREATE OR REPLACE " + "".join(lines).rstrip(),
            )
            for name, lines in sources.items()
        ]

    async def list_triggers(self, schema: str) -> list[DatabaseObject]:
        logger.info("Inspecting triggers for owner: %s", schema)
        rows = await self._conn.query(TRIGGERS_SQL, {"owner": schema})
        triggers = []
        for row in rows:
            parts = ["CREATE OR REPLACE TRIGGER " + row["description"].strip()]
            if row["when_clause"]:
                parts.append(f"WHEN ({row['when_clause'].strip()})")
            parts.append((row["trigger_body"] or "").rstrip())
            triggers.append(
                DatabaseObject(
                    name=row["name"],
                    schema_name=schema,
                    definition="\n".join(parts),
                    table_name=row["table_name"],
                )
            )
        return triggers


def _column(row: dict) -> TableColumn:
    data_type = row["data_type"]
    udt_name = normalize_type_name(data_type)
    default = (row["column_default"] or "").strip() or None
    is_virtual = row["virtual_column"] == "YES"
    is_identity = row["identity_column"] == "YES"

    if udt_name in _BYTE_SIZED:
        length = row["data_length"]
    else:
        length = row["char_length"] or None

    return TableColumn(
        name=row["name"],
        data_type=data_type,
        udt_name=udt_name,
        is_nullable=row["nullable"] == "Y",
        # Identity defaults reference the system ISEQ$$ sequence
        default=None if is_virtual or is_identity else default,
        character_maximum_length=length,
        numeric_precision=row["numeric_precision"],
        numeric_scale=row["numeric_scale"],
        generation_expression=default if is_virtual else None,
        identity_start=int(row["identity_start"]) if is_identity and row["identity_start"] else None,
    )


def _constraints(rows: list[dict]) -> tuple[TableConstraint, ...]:
    normalized = []
    for row in rows:
        condition = row["search_condition"]
        if row["type_code"] == "C" and (
            condition is None
            or (row["generated"] == "GENERATED NAME" and _NOT_NULL_CHECK.match(condition))
        ):
            continue
        normalized.append(
            {
                "name": row["name"],
                "constraint_type": _CONSTRAINT_TYPES[row["type_code"]],
                "column_name": row["column_name"],
                "foreign_schema": row["foreign_schema"],
                "foreign_table": row["foreign_table"],
                "foreign_column": row["foreign_column"],
                "on_delete": row["on_delete"] if row["type_code"] == "R" else None,
                "definition": f"CHECK ({condition})" if row["type_code"] == "C" else None,
            }
        )
    return aggregate_constraints(normalized)


def _indexes(table: str, rows: list[dict]) -> tuple[TableIndex, ...]:
    grouped: dict[str, dict] = {}
    for row in rows:
        entry = grouped.setdefault(
            row["name"],
            {"index_type": row["index_type"], "unique": row["uniqueness"] == "UNIQUE", "keys": [], "columns": []},
        )
        expression = row["column_expression"]
        key = expression.strip() if expression else quote_ident(row["column_name"])
        if row["descend"] == "DESC" and not key.upper().endswith(" DESC"):
            key += " DESC"
        entry["keys"].append(key)
        if not expression:
            entry["columns"].append(row["column_name"])

    indexes = []
    for name, entry in grouped.items():
        kind = "UNIQUE INDEX" if entry["unique"] else "INDEX"
        if "BITMAP" in entry["index_type"]:
            kind = "BITMAP INDEX"
        definition = (
            f"CREATE {kind} {quote_ident(name)} ON {quote_ident(table)} "
            f"({', '.join(entry['keys'])})"
        )
        if entry["index_type"] == "NORMAL/REV":
            definition += " REVERSE"
        indexes.append(
            TableIndex(
                name=name,
                definition=definition,
                columns=tuple(entry["columns"]),
                is_unique=entry["unique"],
            )
        )
    return tuple(indexes)


def _sequences(rows: list[dict]) -> tuple[TableSequence, ...]:
    sequences = {}
    for row in rows:
        # LAST_NUMBER is the next value the sequence will hand out
        last_number = int(row["last_number"])
        sequences[row["name"]] = TableSequence(
            name=row["name"],
            data_type="NUMBER",
            start_value=last_number,
            min_value=int(row["min_value"]),
            max_value=int(row["max_value"]),
            increment_by=int(row["increment_by"]),
            cycle=row["cycle_flag"] == "Y",
            cache_size=int(row["cache_size"]),
            last_value=last_number,
        )
    return tuple(sequences.values())
