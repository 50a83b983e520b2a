"""Oracle engine variant."""

from db_snapshot.engines.oracle.connection import OracleConnection
from db_snapshot.engines.oracle.extractor import OracleExtractor
from db_snapshot.engines.oracle.generator import OracleGenerator
from db_snapshot.engines.oracle.inspector import OracleInspector

__all__ = ["OracleConnection", "OracleExtractor", "OracleGenerator", "OracleInspector"]
