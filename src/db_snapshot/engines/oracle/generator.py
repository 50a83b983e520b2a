"""Oracle DDL generation.

Object names are quoted but not owner-qualified: the script recreates
objects in the schema of the user replaying it. Oracle has no
session-level switch to suspend constraint checking, so the integrity
bypass and restore directives are comments. The backup defers every
UNIQUE, CHECK and FOREIGN KEY constraint until after the data load, so
no bypass is needed.
"""

from collections.abc import Callable, Collection

from db_snapshot.engines.sql import column_list, quote_ident
from db_snapshot.engines.type_mapping import render_type
from db_snapshot.schema.models import (
    ConstraintType,
    DatabaseObject,
    TableColumn,
    TableConstraint,
    TableMetadata,
)
from db_snapshot.types import EngineType

DEFERRED_CONSTRAINTS = (ConstraintType.UNIQUE, ConstraintType.CHECK, ConstraintType.FOREIGN_KEY)

# Oracle supports no ON UPDATE clause and only these ON DELETE actions
_DELETE_RULES = frozenset({"CASCADE", "SET NULL"})


class OracleGenerator:
    """Oracle ``DDLGenerator``."""

    engine = EngineType.ORACLE

    def __init__(self, source_engine: EngineType = EngineType.ORACLE) -> None:
        self.source_engine = source_engine
        self._constraint_generators: dict[
            ConstraintType, Callable[[TableMetadata, TableConstraint], str]
        ] = {
            ConstraintType.PRIMARY_KEY: self._primary_key,
            ConstraintType.FOREIGN_KEY: self._foreign_key,
            ConstraintType.UNIQUE: self._unique,
            ConstraintType.CHECK: self._check,
        }

    def render_column_type(self, column: TableColumn) -> str:
        return render_type(column, self.source_engine, self.engine)

    def generate_database_create(self, database: str) -> str:
        return (
            "-- Oracle database creation is handled by the DBA (tablespaces, PDB)\n"
            f"-- CREATE TABLESPACE {quote_ident(database.upper() + '_DATA')} ...;\n"
        )

    def generate_schema_create(self, schema: str) -> str:
        return (
            "-- Oracle schemas are users; create and grant separately if needed\n"
            f"-- CREATE USER {quote_ident(schema)} IDENTIFIED BY <password>;\n"
            f"-- GRANT CONNECT, RESOURCE TO {quote_ident(schema)};\n"
        )

    def generate_integrity_bypass(self) -> str:
        return "-- Oracle has no session-level integrity bypass; constraints are added after the data load."

    def generate_integrity_restore(self) -> str:
        return "-- Constraints were added after the data load; nothing to restore."

    def generate_sequences(self, meta: TableMetadata) -> list[str]:
        statements = []
        for seq in meta.sequences:
            lines = [
                f"CREATE SEQUENCE {quote_ident(seq.name)}",
                f"  START WITH {seq.restart_value}",
                f"  INCREMENT BY {seq.increment_by}",
                f"  MINVALUE {seq.min_value}",
                f"  MAXVALUE {seq.max_value}" if seq.max_value is not None else "  NOMAXVALUE",
                f"  CACHE {seq.cache_size}" if seq.cache_size > 1 else "  NOCACHE",
                "  CYCLE;" if seq.cycle else "  NOCYCLE;",
            ]
            statements.append("\n".join(lines))
        return statements

    def generate_table_create(self, meta: TableMetadata) -> str:
        columns = ",\n  ".join(self._format_column(col) for col in meta.columns)
        sql = f"CREATE TABLE {quote_ident(meta.name)} (\n  {columns}\n);"
        pk = meta.primary_key
        if pk is not None:
            sql += "\n" + self._primary_key(meta, pk) + ";"
        return sql

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
            parts.append(f"GENERATED ALWAYS AS ({col.generation_expression}) VIRTUAL")
        elif col.identity_start is not None:
            # BY DEFAULT so the data load can insert explicit values
            parts.append(
                f"GENERATED BY DEFAULT ON NULL AS IDENTITY (START WITH {col.identity_start})"
            )
            return " ".join(parts)
        elif col.default:
            parts.append(f"DEFAULT {col.default}")
        if not col.is_nullable:
            parts.append("NOT NULL")
        return " ".join(parts)

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def generate_constraint_fix(self, meta: TableMetadata, constraint: TableConstraint) -> str:
        return self._constraint_generators[constraint.constraint_type](meta, constraint) + ";"

    def _add_constraint(self, meta: TableMetadata, constraint: TableConstraint) -> str:
        return f"ALTER TABLE {quote_ident(meta.name)} ADD CONSTRAINT {quote_ident(constraint.name)}"

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
        referenced = quote_ident(constraint.foreign_table or "")
        if constraint.foreign_schema and constraint.foreign_schema != meta.schema_name:
            referenced = f"{quote_ident(constraint.foreign_schema)}.{referenced}"
        sql = (
            f"{self._add_constraint(meta, constraint)} FOREIGN KEY ({column_list(constraint.columns)}) "
            f"REFERENCES {referenced} ({column_list(constraint.foreign_columns)})"
        )
        if constraint.on_delete in _DELETE_RULES:
            sql += f" ON DELETE {constraint.on_delete}"
        return sql

    # ------------------------------------------------------------------
    # Incremental fixes
    # ------------------------------------------------------------------

    def generate_add_column(self, meta: TableMetadata, column: TableColumn) -> str:
        definition = self._format_column(column)
        # NOT NULL without a default fails on a table that already has rows
        if not column.is_nullable and not column.default and definition.endswith(" NOT NULL"):
            definition = definition.removesuffix(" NOT NULL")
        return f"ALTER TABLE {quote_ident(meta.name)} ADD ({definition});"

    def generate_alter_column_type(self, meta: TableMetadata, column: TableColumn) -> str:
        return (
            f"ALTER TABLE {quote_ident(meta.name)} "
            f"MODIFY ({quote_ident(column.name)} {self.render_column_type(column)});"
        )

    def generate_alter_column_nullability(self, meta: TableMetadata, column: TableColumn) -> str:
        nullability = "NULL" if column.is_nullable else "NOT NULL"
        return f"ALTER TABLE {quote_ident(meta.name)} MODIFY ({quote_ident(column.name)} {nullability});"

    def generate_alter_column_default(self, meta: TableMetadata, column: TableColumn) -> str:
        return (
            f"ALTER TABLE {quote_ident(meta.name)} "
            f"MODIFY ({quote_ident(column.name)} DEFAULT {column.default or 'NULL'});"
        )

    def generate_drop_trigger(self, trigger: DatabaseObject) -> str:
        return f"DROP TRIGGER {quote_ident(trigger.name)};"

    def generate_object_create(self, obj: DatabaseObject) -> str:
        # PL/SQL blocks are terminated by "/" on its own line in SQL*Plus scripts
        return obj.definition.rstrip() + "\n/"

    def generate_missing_table_fix(self, meta: TableMetadata) -> str:
        statements = [
            *self.generate_sequences(meta),
            self.generate_table_create(meta),
            *self.generate_indexes(meta),
            *self.generate_constraints(meta),
        ]
        return "\n".join(statements)
