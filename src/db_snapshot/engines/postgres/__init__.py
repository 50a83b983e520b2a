"""PostgreSQL engine variant."""

from db_snapshot.engines.postgres.connection import PostgresConnection
from db_snapshot.engines.postgres.extractor import PostgresExtractor
from db_snapshot.engines.postgres.generator import PostgresGenerator
from db_snapshot.engines.postgres.inspector import PostgresInspector

__all__ = ["PostgresConnection", "PostgresExtractor", "PostgresGenerator", "PostgresInspector"]
