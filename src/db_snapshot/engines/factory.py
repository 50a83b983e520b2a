"""Engine selection by declared engine type.

Each supported engine registers an ``EngineVariant``: the four
constructors that make up its capability set. Nothing else dispatches on
the engine tag.

Usage:
    from db_snapshot.engines.factory import create_engine_bundle

    async with create_engine_bundle(config) as bundle:
        tables = await bundle.inspector.list_tables(bundle.schema)
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from db_snapshot.config.models import ConnectionConfig
from db_snapshot.engines.base import DatabaseConnection, DataExtractor, DDLGenerator, SchemaInspector
from db_snapshot.engines.oracle import (
    OracleConnection,
    OracleExtractor,
    OracleGenerator,
    OracleInspector,
)
from db_snapshot.engines.postgres import (
    PostgresConnection,
    PostgresExtractor,
    PostgresGenerator,
    PostgresInspector,
)
from db_snapshot.errors import UnsupportedEngineError
from db_snapshot.types import EngineType


@dataclass(frozen=True)
class EngineVariant:
    """Constructors for one engine's capability set."""

    connection: Callable[[ConnectionConfig], DatabaseConnection]
    inspector: Callable[[DatabaseConnection], SchemaInspector]
    generator: Callable[[EngineType], DDLGenerator]
    extractor: Callable[[DatabaseConnection], DataExtractor]
    default_schema: Callable[[ConnectionConfig], str]


ENGINE_VARIANTS: dict[EngineType, EngineVariant] = {
    EngineType.POSTGRES: EngineVariant(
        connection=PostgresConnection,
        inspector=PostgresInspector,
        generator=PostgresGenerator,
        extractor=PostgresExtractor,
        default_schema=lambda config: config.schema_name or "public",
    ),
    EngineType.ORACLE: EngineVariant(
        connection=OracleConnection,
        inspector=OracleInspector,
        generator=OracleGenerator,
        extractor=OracleExtractor,
        # Unquoted Oracle user names are stored upper-case
        default_schema=lambda config: config.schema_name or config.user.upper(),
    ),
}


def resolve_engine(engine: EngineType | str) -> EngineType:
    """Validate an engine tag against the registered variants.

    Raises:
        UnsupportedEngineError: If no variant is registered for ``engine``.
    """
    try:
        resolved = EngineType(engine)
    except ValueError:
        resolved = None
    if resolved not in ENGINE_VARIANTS:
        supported = ", ".join(e.value for e in ENGINE_VARIANTS)
        raise UnsupportedEngineError(
            f"Unsupported engine: {engine!r}. Supported: {supported}"
        )
    return resolved


def get_variant(engine: EngineType | str) -> EngineVariant:
    return ENGINE_VARIANTS[resolve_engine(engine)]


def create_generator(
    engine: EngineType | str, source_engine: EngineType | str | None = None
) -> DDLGenerator:
    """Create a DDL generator writing ``engine`` SQL for metadata
    inspected on ``source_engine`` (same engine by default)."""
    target = resolve_engine(engine)
    source = target if source_engine is None else resolve_engine(source_engine)
    return ENGINE_VARIANTS[target].generator(source)


@dataclass
class EngineBundle:
    """One engine's capability set bound to a single connection.

    Closing the bundle closes the connection. Usable as an async context
    manager.
    """

    engine: EngineType
    config: ConnectionConfig
    schema: str
    connection: DatabaseConnection
    inspector: SchemaInspector
    generator: DDLGenerator
    extractor: DataExtractor

    @property
    def label(self) -> str:
        return f"{self.config.label} ({self.schema})"

    async def close(self) -> None:
        await self.connection.close()

    async def __aenter__(self) -> "EngineBundle":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


def create_engine_bundle(config: ConnectionConfig) -> EngineBundle:
    """Build the engine bundle for a connection config.

    No connection is opened here; the first query opens it.

    Raises:
        UnsupportedEngineError: If ``config.engine`` has no registered variant.
    """
    engine = resolve_engine(config.engine)
    variant = ENGINE_VARIANTS[engine]
    connection = variant.connection(config)
    return EngineBundle(
        engine=engine,
        config=config,
        schema=variant.default_schema(config),
        connection=connection,
        inspector=variant.inspector(connection),
        generator=variant.generator(engine),
        extractor=variant.extractor(connection),
    )
