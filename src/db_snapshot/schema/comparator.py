"""Schema comparison between a source and a target database.

Diffing is one-directional: it reports what the source has that the
target lacks or defines differently, never target-only objects. Fixes are
written by the source engine's generator and address the target schema:
source-schema qualifiers in catalog text (index definitions, defaults,
foreign keys, function and trigger bodies) are rewritten to the target
schema.

Usage:
    from db_snapshot.schema.comparator import compare_profiles

    result = await compare_profiles(source_config, target_config)
    for diff in result.diffs:
        print(diff.diff_type.label, diff.table, diff.fix)
"""

import logging

from db_snapshot.config.models import ConnectionConfig
from db_snapshot.engines.base import DDLGenerator, SchemaInspector
from db_snapshot.engines.factory import EngineBundle, create_engine_bundle
from db_snapshot.engines.sql import requalify
from db_snapshot.schema.models import (
    ComparisonResult,
    DatabaseObject,
    DiffType,
    SchemaDiff,
    TableColumn,
    TableConstraint,
    TableMetadata,
)

logger = logging.getLogger(__name__)


async def compare_schemas(
    source: EngineBundle,
    target: EngineBundle,
    generator: DDLGenerator | None = None,
) -> ComparisonResult:
    """Compare the source bundle's schema against the target's.

    Steps run one at a time; any query failure aborts the comparison.

    Args:
        source: Bundle for the reference database.
        target: Bundle for the database being checked.
        generator: Generator for fix statements (default: the source's).

    Returns:
        ComparisonResult with diffs in source table order, followed by
        function and trigger diffs.
    """
    generator = generator or source.generator
    differ = _SchemaDiffer(
        source.inspector, source.schema, target.inspector, target.schema, generator
    )
    diffs = await differ.run()
    logger.info("Found %d difference(s) between %s and %s", len(diffs), source.label, target.label)
    return ComparisonResult(source=source.label, target=target.label, diffs=tuple(diffs))


async def compare_profiles(
    source_config: ConnectionConfig, target_config: ConnectionConfig
) -> ComparisonResult:
    """Open both databases, compare them and close both connections."""
    async with create_engine_bundle(source_config) as source:
        async with create_engine_bundle(target_config) as target:
            return await compare_schemas(source, target)


class _SchemaDiffer:
    def __init__(
        self,
        source: SchemaInspector,
        source_schema: str,
        target: SchemaInspector,
        target_schema: str,
        generator: DDLGenerator,
    ) -> None:
        self.source = source
        self.source_schema = source_schema
        self.target = target
        self.target_schema = target_schema
        self.generator = generator
        self.diffs: list[SchemaDiff] = []

    async def run(self) -> list[SchemaDiff]:
        source_tables = await self.source.list_tables(self.source_schema)
        target_tables = set(await self.target.list_tables(self.target_schema))

        for table in source_tables:
            source_meta = await self.source.get_table_metadata(self.source_schema, table)
            if table not in target_tables:
                self._missing_table(source_meta)
                continue
            target_meta = await self.target.get_table_metadata(self.target_schema, table)
            self._compare_columns(source_meta, target_meta)
            self._compare_constraints(source_meta, target_meta)
            self._compare_indexes(source_meta, target_meta)

        await self._compare_functions()
        await self._compare_triggers()
        return self.diffs

    def _add(self, diff_type: DiffType, table: str | None, **fields: object) -> None:
        self.diffs.append(SchemaDiff(diff_type=diff_type, table=table, **fields))

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def _missing_table(self, source_meta: TableMetadata) -> None:
        relocated = self._relocate_table(source_meta)
        self._add(
            DiffType.MISSING_TABLE,
            source_meta.name,
            expected=source_meta.name,
            details=f"Table {source_meta.name} does not exist in target",
            fix=self.generator.generate_missing_table_fix(relocated),
        )

    def _compare_columns(self, source_meta: TableMetadata, target_meta: TableMetadata) -> None:
        table = source_meta.name
        for column in source_meta.columns:
            actual = target_meta.get_column(column.name)
            if actual is None:
                self._add(
                    DiffType.MISSING_COLUMN,
                    table,
                    name=column.name,
                    expected=self.generator.render_column_type(column),
                    details=f"Column {column.name} is missing",
                    fix=self.generator.generate_add_column(
                        target_meta, self._relocate_column(column)
                    ),
                )
                continue

            if column.udt_name != actual.udt_name:
                self._add(
                    DiffType.TYPE_MISMATCH,
                    table,
                    name=column.name,
                    expected=column.udt_name,
                    actual=actual.udt_name,
                    details=f"Type differs: {column.data_type} vs {actual.data_type}",
                    fix=self.generator.generate_alter_column_type(target_meta, column),
                )

            if column.is_nullable != actual.is_nullable:
                self._add(
                    DiffType.NULLABILITY_MISMATCH,
                    table,
                    name=column.name,
                    expected=_nullability(column.is_nullable),
                    actual=_nullability(actual.is_nullable),
                    details="Nullability differs",
                    fix=self.generator.generate_alter_column_nullability(target_meta, column),
                )

            if column.default != actual.default:
                self._add(
                    DiffType.DEFAULT_MISMATCH,
                    table,
                    name=column.name,
                    expected=column.default,
                    actual=actual.default,
                    details="Default expression differs",
                    fix=self.generator.generate_alter_column_default(
                        target_meta, self._relocate_column(column)
                    ),
                )

    def _compare_constraints(self, source_meta: TableMetadata, target_meta: TableMetadata) -> None:
        existing = {c.name for c in target_meta.constraints}
        for constraint in source_meta.constraints:
            if constraint.name not in existing:
                self._add(
                    DiffType.MISSING_CONSTRAINT,
                    source_meta.name,
                    name=constraint.name,
                    expected=constraint.constraint_type.value,
                    details=f"{constraint.constraint_type.value} constraint {constraint.name} is missing",
                    fix=self.generator.generate_constraint_fix(
                        target_meta, self._relocate_constraint(constraint)
                    ),
                )

    def _compare_indexes(self, source_meta: TableMetadata, target_meta: TableMetadata) -> None:
        existing = {i.name for i in target_meta.indexes}
        for index in source_meta.indexes:
            if index.name not in existing:
                self._add(
                    DiffType.MISSING_INDEX,
                    source_meta.name,
                    name=index.name,
                    expected=index.definition,
                    details=f"Index {index.name} is missing",
                    fix=f"{self._requalify(index.definition)};",
                )

    # ------------------------------------------------------------------
    # Schema-wide objects
    # ------------------------------------------------------------------

    async def _compare_functions(self) -> None:
        source_functions = await self.source.list_functions(self.source_schema)
        target_functions = {
            f.name: f for f in await self.target.list_functions(self.target_schema)
        }
        for function in source_functions:
            actual = target_functions.get(function.name)
            if actual is None:
                self._add(
                    DiffType.MISSING_FUNCTION,
                    None,
                    name=function.name,
                    details=f"Function {function.name} is missing",
                    fix=self.generator.generate_object_create(self._retarget(function)),
                )
            elif function.definition != actual.definition:
                self._add(
                    DiffType.FUNCTION_MISMATCH,
                    None,
                    name=function.name,
                    expected=function.definition,
                    actual=actual.definition,
                    details=f"Function {function.name} definition differs",
                    fix=self.generator.generate_object_create(self._retarget(function)),
                )

    async def _compare_triggers(self) -> None:
        source_triggers = await self.source.list_triggers(self.source_schema)
        target_triggers = {
            (t.table_name, t.name): t for t in await self.target.list_triggers(self.target_schema)
        }
        for trigger in source_triggers:
            actual = target_triggers.get((trigger.table_name, trigger.name))
            if actual is None:
                self._add(
                    DiffType.MISSING_TRIGGER,
                    trigger.table_name,
                    name=trigger.name,
                    details=f"Trigger {trigger.name} is missing",
                    fix=self.generator.generate_object_create(self._retarget(trigger)),
                )
            elif trigger.definition != actual.definition:
                # Triggers cannot be redefined in place on every engine
                retargeted = self._retarget(trigger)
                self._add(
                    DiffType.TRIGGER_MISMATCH,
                    trigger.table_name,
                    name=trigger.name,
                    expected=trigger.definition,
                    actual=actual.definition,
                    details=f"Trigger {trigger.name} definition differs",
                    fix=self.generator.generate_drop_trigger(retargeted)
                    + "\n"
                    + self.generator.generate_object_create(retargeted),
                )

    # ------------------------------------------------------------------
    # Moving source definitions onto the target schema
    # ------------------------------------------------------------------

    def _requalify(self, text: str | None) -> str | None:
        if text is None:
            return None
        return requalify(text, self.source_schema, self.target_schema)

    def _relocate_table(self, meta: TableMetadata) -> TableMetadata:
        return meta.model_copy(
            update={
                "schema_name": self.target_schema,
                "columns": tuple(self._relocate_column(c) for c in meta.columns),
                "constraints": tuple(self._relocate_constraint(c) for c in meta.constraints),
                "indexes": tuple(
                    i.model_copy(update={"definition": self._requalify(i.definition)})
                    for i in meta.indexes
                ),
            }
        )

    def _relocate_column(self, column: TableColumn) -> TableColumn:
        return column.model_copy(
            update={
                "default": self._requalify(column.default),
                "generation_expression": self._requalify(column.generation_expression),
            }
        )

    def _relocate_constraint(self, constraint: TableConstraint) -> TableConstraint:
        foreign_schema = constraint.foreign_schema
        if foreign_schema == self.source_schema:
            foreign_schema = self.target_schema
        return constraint.model_copy(
            update={
                "foreign_schema": foreign_schema,
                "definition": self._requalify(constraint.definition),
            }
        )

    def _retarget(self, obj: DatabaseObject) -> DatabaseObject:
        return obj.model_copy(
            update={
                "schema_name": self.target_schema,
                "definition": self._requalify(obj.definition),
            }
        )


def _nullability(is_nullable: bool) -> str:
    return "NULL" if is_nullable else "NOT NULL"
