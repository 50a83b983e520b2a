"""PostgreSQL DDL generation.

Pure functions of metadata to SQL text. Every identifier is quoted and
schema-qualified so the script restores regardless of ``search_path``.
"""

from collections.abc import Callable, Collection

from db_snapshot.engines.sql import column_list, qualify, quote_ident, quote_literal
from db_snapshot.engines.type_mapping import render_type
from db_snapshot.schema.models import (
    ConstraintType,
    DatabaseObject,
    TableColumn,
    TableConstraint,
    TableMetadata,
    TableSequence,
)
from db_snapshot.types import EngineType

# Constraints emitted after the data load, in emission order
DEFERRED_CONSTRAINTS = (ConstraintType.UNIQUE, ConstraintType.CHECK, ConstraintType.FOREIGN_KEY)


class PostgresGenerator:
    """Postgres ``DDLGenerator``.

    Args:
        source_engine: Engine the metadata was inspected on; selects the
            type mapping table.
    """

    engine = EngineType.POSTGRES

    def __init__(self, source_engine: EngineType = EngineType.POSTGRES) -> None:
        self.source_engine = source_engine
        self._constraint_generators: dict[
            ConstraintType, Callable[[TableMetadata, TableConstraint], str]
        ] = {
            ConstraintType.PRIMARY_KEY: self._primary_key,
            ConstraintType.FOREIGN_KEY: self._foreign_key,
            ConstraintType.UNIQUE: self._unique,
            ConstraintType.CHECK: self._check,
        }

    # ------------------------------------------------------------------
    # Backup script
    # ------------------------------------------------------------------

    def render_column_type(self, column: TableColumn) -> str:
        return render_type(column, self.source_engine, self.engine)

    def generate_database_create(self, database: str) -> str:
        # CREATE DATABASE cannot run inside the target database the script is
        # replayed against, so it is left for the operator.
        return (
            "-- Database creation (run separately, then connect to it)\n"
            f"-- CREATE DATABASE {quote_ident(database)};\n"
        )

    def generate_schema_create(self, schema: str) -> str:
        if schema == "public":
            return ""
        return f"CREATE SCHEMA IF NOT EXISTS {quote_ident(schema)};\n"

    def generate_integrity_bypass(self) -> str:
        return "SET session_replication_role = replica;"

    def generate_integrity_restore(self) -> str:
        return "SET session_replication_role = DEFAULT;"

    def generate_sequences(self, meta: TableMetadata) -> list[str]:
        statements = []
        for seq in meta.sequences:
            name = qualify(meta.schema_name, seq.name)
            statements.append(self._sequence_create(name, seq))
            # setval(..., false) makes the next nextval() return the value itself
            statements.append(
                f"SELECT setval({quote_literal(name)}, {seq.restart_value}, "
                f"{'true' if seq.is_called else 'false'});"
            )
        return statements

    def _sequence_create(self, name: str, seq: TableSequence) -> str:
        lines = [f"CREATE SEQUENCE IF NOT EXISTS {name}"]
        if seq.data_type:
            lines.append(f"  AS {seq.data_type}")
        lines.append(f"  START WITH {seq.start_value}")
        lines.append(f"  INCREMENT BY {seq.increment_by}")
        lines.append(f"  MINVALUE {seq.min_value}")
        lines.append(f"  MAXVALUE {seq.max_value}" if seq.max_value is not None else "  NO MAXVALUE")
        lines.append(f"  CACHE {seq.cache_size}")
        lines.append("  CYCLE;" if seq.cycle else "  NO CYCLE;")
        return "\n".join(lines)

    def generate_table_create(self, meta: TableMetadata) -> str:
        table = qualify(meta.schema_name, meta.name)
        columns = ",\n  ".join(self._format_column(col) for col in meta.columns)
        parts = [f"CREATE TABLE {table} (\n  {columns}\n);"]

        pk = meta.primary_key
        if pk is not None:
            parts.append(self._primary_key(meta, pk) + ";")

        for seq in meta.sequences:
            if seq.owned_by:
                parts.append(
                    f"ALTER SEQUENCE {qualify(meta.schema_name, seq.name)} "
                    f"OWNED BY {table}.{quote_ident(seq.owned_by)};"
                )
        return "\n".join(parts)

    def generate_indexes(self, meta: TableMetadata) -> list[str]:
        return [f"{idx.definition};" for idx in meta.indexes]

    def generate_constraints(
        self, meta: TableMetadata, kinds: Collection[ConstraintType] | None = None
    ) -> list[str]:
        kinds = DEFERRED_CONSTRAINTS if kinds is None else kinds
        return [
            self.generate_constraint_fix(meta, constraint)
            for kind in DEFERRED_CONSTRAINTS
            if kind in kinds
            for constraint in meta.constraints
            if constraint.constraint_type is kind
        ]

    def _format_column(self, col: TableColumn) -> str:
        parts = [quote_ident(col.name), self.render_column_type(col)]
        if col.is_generated:
            parts.append(f"GENERATED ALWAYS AS ({col.generation_expression}) STORED")
        elif col.default:
            parts.append(f"DEFAULT {col.default}")
        if not col.is_nullable:
            parts.append("NOT NULL")
        return " ".join(parts)

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def generate_constraint_fix(self, meta: TableMetadata, constraint: TableConstraint) -> str:
        body = self._constraint_generators[constraint.constraint_type](meta, constraint)
        return body + ";"

    def _add_constraint(self, meta: TableMetadata, constraint: TableConstraint) -> str:
        return (
            f"ALTER TABLE {qualify(meta.schema_name, meta.name)} "
            f"ADD CONSTRAINT {quote_ident(constraint.name)}"
        )

    def _primary_key(self, meta: TableMetadata, constraint: TableConstraint) -> str:
        return f"{self._add_constraint(meta, constraint)} PRIMARY KEY ({column_list(constraint.columns)})"

    def _unique(self, meta: TableMetadata, constraint: TableConstraint) -> str:
        return f"{self._add_constraint(meta, constraint)} UNIQUE ({column_list(constraint.columns)})"

    def _check(self, meta: TableMetadata, constraint: TableConstraint) -> str:
        definition = constraint.definition or ""
        if not definition.upper().startswith("CHECK"):
            definition = f"CHECK ({definition})"
        return f"{self._add_constraint(meta, constraint)} {definition}"

    def _foreign_key(self, meta: TableMetadata, constraint: TableConstraint) -> str:
        referenced = qualify(constraint.foreign_schema or meta.schema_name, constraint.foreign_table)
        sql = (
            f"{self._add_constraint(meta, constraint)} FOREIGN KEY ({column_list(constraint.columns)}) "
            f"REFERENCES {referenced} ({column_list(constraint.foreign_columns)})"
        )
        if constraint.on_delete and constraint.on_delete != "NO ACTION":
            sql += f" ON DELETE {constraint.on_delete}"
        if constraint.on_update and constraint.on_update != "NO ACTION":
            sql += f" ON UPDATE {constraint.on_update}"
        return sql

    # ------------------------------------------------------------------
    # Incremental fixes
    # ------------------------------------------------------------------

    def _alter_column(self, meta: TableMetadata, column: TableColumn) -> str:
        return (
            f"ALTER TABLE {qualify(meta.schema_name, meta.name)} "
            f"ALTER COLUMN {quote_ident(column.name)}"
        )

    def generate_add_column(self, meta: TableMetadata, column: TableColumn) -> str:
        parts = [
            f"ALTER TABLE {qualify(meta.schema_name, meta.name)} ADD COLUMN",
            quote_ident(column.name),
            self.render_column_type(column),
        ]
        if column.is_generated:
            parts.append(f"GENERATED ALWAYS AS ({column.generation_expression}) STORED")
        elif column.default:
            parts.append(f"DEFAULT {column.default}")
        # NOT NULL without a default fails on a table that already has rows
        if not column.is_nullable and (column.default or column.is_generated):
            parts.append("NOT NULL")
        return " ".join(parts) + ";"

    def generate_alter_column_type(self, meta: TableMetadata, column: TableColumn) -> str:
        col_type = self.render_column_type(column)
        return (
            f"{self._alter_column(meta, column)} TYPE {col_type} "
            f"USING {quote_ident(column.name)}::{col_type};"
        )

    def generate_alter_column_nullability(self, meta: TableMetadata, column: TableColumn) -> str:
        action = "DROP NOT NULL" if column.is_nullable else "SET NOT NULL"
        return f"{self._alter_column(meta, column)} {action};"

    def generate_alter_column_default(self, meta: TableMetadata, column: TableColumn) -> str:
        if column.default:
            return f"{self._alter_column(meta, column)} SET DEFAULT {column.default};"
        return f"{self._alter_column(meta, column)} DROP DEFAULT;"

    def generate_drop_trigger(self, trigger: DatabaseObject) -> str:
        return (
            f"DROP TRIGGER IF EXISTS {quote_ident(trigger.name)} "
            f"ON {qualify(trigger.schema_name, trigger.table_name)};"
        )

    def generate_object_create(self, obj: DatabaseObject) -> str:
        return obj.definition.rstrip().rstrip(";") + ";"

    def generate_missing_table_fix(self, meta: TableMetadata) -> str:
        statements = [
            *self.generate_sequences(meta),
            self.generate_table_create(meta),
            *self.generate_indexes(meta),
            *self.generate_constraints(meta),
        ]
        return "\n".join(statements)
