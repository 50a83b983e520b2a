"""Backup orchestration.

``run_backup`` drives inspector -> generator -> extractor -> writer in the
one order that restores cleanly:

1. database and schema DDL
2. sequences (table defaults reference them)
3. tables with primary keys
4. data, one table at a time
5. indexes (built once instead of maintained per insert)
6. UNIQUE and CHECK constraints, then FOREIGN KEYs (rows may reference
   rows inserted later, or their own table)

Metadata is captured once, before anything is written past the header,
and reused by every later phase. Any failure aborts the run.
"""

import logging
from contextlib import aclosing
from pathlib import Path

from db_snapshot.backup.writer import SQLWriter
from db_snapshot.config.models import BackupConfig
from db_snapshot.engines.factory import EngineBundle, create_engine_bundle
from db_snapshot.schema.models import ConstraintType, TableMetadata

logger = logging.getLogger(__name__)


async def run_backup(config: BackupConfig, bundle: EngineBundle | None = None) -> Path:
    """Write a full schema + data backup script.

    Args:
        config: Connection, optional table allow-list, output directory and
            page size.
        bundle: Pre-built engine bundle (default: built from
            ``config.connection``). Closed when the run ends either way.

    Returns:
        Path of the completed backup file.

    Raises:
        SnapshotError: Any connection, query or engine failure. A partial
            file is left on disk.
    """
    if bundle is None:
        bundle = create_engine_bundle(config.connection)
    generator = bundle.generator
    database = config.connection.database

    writer = SQLWriter(
        config.output_dir,
        database,
        title=f"db-snapshot {bundle.engine.label} Backup",
        bypass=generator.generate_integrity_bypass(),
        restore=generator.generate_integrity_restore(),
    )

    try:
        await writer.open()
        await _write_block(
            writer,
            [generator.generate_database_create(database), generator.generate_schema_create(bundle.schema)],
        )

        tables = await bundle.inspector.list_tables(bundle.schema, config.tables)
        logger.info("Backing up %d table(s) from %s", len(tables), bundle.label)
        metadata: list[TableMetadata] = []
        for table in tables:
            metadata.append(await bundle.inspector.get_table_metadata(bundle.schema, table))

        await _write_section(writer, "Sequences", [s for m in metadata for s in generator.generate_sequences(m)])
        await _write_section(writer, "Tables", [generator.generate_table_create(m) for m in metadata])

        await writer.write("-- Data\n")
        for meta in metadata:
            await _write_table_data(writer, bundle, meta, config.page_size)

        await _write_section(writer, "Indexes", [s for m in metadata for s in generator.generate_indexes(m)])
        await _write_section(
            writer,
            "Constraints",
            [
                s
                for m in metadata
                for s in generator.generate_constraints(m, (ConstraintType.UNIQUE, ConstraintType.CHECK))
            ],
        )
        await _write_section(
            writer,
            "Foreign keys",
            [s for m in metadata for s in generator.generate_constraints(m, (ConstraintType.FOREIGN_KEY,))],
        )

        await writer.close()
    except Exception:
        logger.error("Backup of %s failed", bundle.label)
        raise
    finally:
        await writer.abort()
        await bundle.close()

    logger.info("Backup completed: %s", writer.path)
    return writer.path


async def _write_table_data(
    writer: SQLWriter, bundle: EngineBundle, meta: TableMetadata, page_size: int
) -> None:
    rows = 0
    async with aclosing(bundle.extractor.stream_table_data(meta, page_size=page_size)) as batches:
        async for batch in batches:
            await writer.write("\n".join(batch) + "\n")
            rows += len(batch)
    await writer.write("\n")
    logger.info("Exported %d row(s) from %s", rows, meta.name)


async def _write_section(writer: SQLWriter, title: str, statements: list[str]) -> None:
    if statements:
        await writer.write(f"-- {title}\n")
        await _write_block(writer, statements)


async def _write_block(writer: SQLWriter, statements: list[str]) -> None:
    text = "\n".join(s.rstrip("\n") for s in statements if s)
    if text:
        await writer.write(text + "\n\n")
