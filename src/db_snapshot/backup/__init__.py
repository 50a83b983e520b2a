"""Backup pipeline: ordered SQL script generation."""

from db_snapshot.backup.orchestrator import run_backup
from db_snapshot.backup.writer import SQLWriter, backup_filename

__all__ = ["SQLWriter", "backup_filename", "run_backup"]
