"""Exception hierarchy for db-snapshot.

Every failure is fatal to the current run: nothing below the CLI catches
these. ``DatabaseConnectionError`` also subclasses the builtin
``ConnectionError`` so callers catching the builtin keep working.
"""


class SnapshotError(Exception):
    """Base exception for all db-snapshot errors."""


class ConfigError(SnapshotError):
    """Configuration file is missing, malformed, or names an unknown profile."""


class DatabaseConnectionError(SnapshotError, ConnectionError):
    """Database host unreachable or authentication rejected."""


class QueryError(SnapshotError):
    """A statement failed to execute.

    Attributes:
        statement: The SQL text that failed.
    """

    def __init__(self, message: str, statement: str = "") -> None:
        super().__init__(message)
        self.statement = statement


class UnsupportedEngineError(SnapshotError, ValueError):
    """Engine tag has no registered implementation."""
