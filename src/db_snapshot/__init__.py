"""db-snapshot: read-only SQL backups and schema comparison.

Produces a replayable ``.sql`` script (schema + data) from a live
PostgreSQL or Oracle database using only read privileges, and compares
two schemas to report drift along with fix statements.

Usage:
    from db_snapshot import BackupConfig, ConnectionConfig, EngineType, run_backup

    config = BackupConfig(
        connection=ConnectionConfig(
            engine=EngineType.POSTGRES,
            host="localhost",
            port=5432,
            database="app",
            user="readonly",
        ),
        tables=["orders"],
    )
    path = await run_backup(config)
"""

from db_snapshot.backup.orchestrator import run_backup
from db_snapshot.config.models import BackupConfig, ConnectionConfig
from db_snapshot.engines.factory import create_engine_bundle
from db_snapshot.errors import (
    ConfigError,
    DatabaseConnectionError,
    QueryError,
    SnapshotError,
    UnsupportedEngineError,
)
from db_snapshot.schema.comparator import compare_profiles, compare_schemas
from db_snapshot.schema.exporter import export_comparison
from db_snapshot.schema.models import ComparisonResult, DiffType, SchemaDiff
from db_snapshot.types import EngineType

__all__ = [
    "BackupConfig",
    "ComparisonResult",
    "ConfigError",
    "ConnectionConfig",
    "DatabaseConnectionError",
    "DiffType",
    "EngineType",
    "QueryError",
    "SchemaDiff",
    "SnapshotError",
    "UnsupportedEngineError",
    "compare_profiles",
    "compare_schemas",
    "create_engine_bundle",
    "export_comparison",
    "run_backup",
]
