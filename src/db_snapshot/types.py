"""Shared enums."""

from enum import Enum


class EngineType(str, Enum):
    """Supported database engines."""

    POSTGRES = "postgres"
    ORACLE = "oracle"

    @property
    def label(self) -> str:
        return {"postgres": "PostgreSQL", "oracle": "Oracle"}[self.value]
