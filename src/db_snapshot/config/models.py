"""Pydantic models for connection and backup configuration."""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from db_snapshot.types import EngineType

DEFAULT_PORTS = {EngineType.POSTGRES: 5432, EngineType.ORACLE: 1521}


# ============================================================================
# Connection Models
# ============================================================================


class ConnectionConfig(BaseModel):
    """Identifies one reachable database. Immutable after creation."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    engine: EngineType = EngineType.POSTGRES
    host: str = "localhost"
    port: int = 5432  # 1521 when engine is oracle and port is omitted
    database: str
    user: str
    password: str | None = None
    # "schema" in db.toml; renamed so it does not shadow BaseModel.schema
    schema_name: str | None = Field(default=None, alias="schema")
    description: str = ""

    @model_validator(mode="before")
    @classmethod
    def _default_port(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("port") is None:
            engine = data.get("engine", EngineType.POSTGRES)
            data = {**data, "port": DEFAULT_PORTS[EngineType(engine)]}
        return data

    @property
    def label(self) -> str:
        """Short ``engine://user@host:port/database`` form for reports."""
        return f"{self.engine.value}://{self.user}@{self.host}:{self.port}/{self.database}"


# ============================================================================
# Backup Models
# ============================================================================


class BackupSettings(BaseModel):
    """``[backup]`` section of db.toml."""

    output_dir: Path = Path("files/dumps")
    page_size: int = Field(default=1000, gt=0)


class BackupConfig(BaseModel):
    """Everything one backup run needs."""

    connection: ConnectionConfig
    tables: list[str] | None = None  # allow-list; None means every base table
    output_dir: Path = Path("files/dumps")
    page_size: int = Field(default=1000, gt=0)


class SnapshotConfig(BaseModel):
    """Complete configuration from db.toml."""

    profiles: dict[str, ConnectionConfig] = Field(default_factory=dict)
    backup: BackupSettings = Field(default_factory=BackupSettings)
