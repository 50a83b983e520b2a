"""Configuration models and db.toml loading."""

from db_snapshot.config.loader import get_profile, load_db_config
from db_snapshot.config.models import (
    BackupConfig,
    BackupSettings,
    ConnectionConfig,
    SnapshotConfig,
)

__all__ = [
    "BackupConfig",
    "BackupSettings",
    "ConnectionConfig",
    "SnapshotConfig",
    "get_profile",
    "load_db_config",
]
