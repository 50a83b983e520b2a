"""Async PostgreSQL connection.

Provides ``PostgresConnection``, the Postgres ``DatabaseConnection``,
built on SQLAlchemy's async engine with the ``asyncpg`` driver.
Streaming uses a server-side cursor (``AsyncConnection.stream``) held
on one pooled connection for the lifetime of the iterator.

Usage:
    from db_snapshot.engines.postgres.connection import PostgresConnection

    conn = PostgresConnection(config)
    rows = await conn.query("SELECT 1 AS one")
    async for page in conn.stream('SELECT * FROM "public"."orders"', page_size=500):
        ...
    await conn.close()
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import URL, text
from sqlalchemy.exc import DBAPIError, InterfaceError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from db_snapshot.config.models import ConnectionConfig
from db_snapshot.engines.base import DEFAULT_PAGE_SIZE
from db_snapshot.errors import DatabaseConnectionError, QueryError

logger = logging.getLogger(__name__)


def build_url(config: ConnectionConfig) -> URL:
    return URL.create(
        "postgresql+asyncpg",
        username=config.user,
        password=config.password,
        host=config.host,
        port=config.port,
        database=config.database,
    )


def create_async_engine_pooled(url: str | URL, **kwargs: Any) -> AsyncEngine:
    """Create an async SQLAlchemy engine with connection pooling.

    Default pool settings:

    - ``pool_size=5``: Reasonable default for typical workloads.
    - ``max_overflow=10``: Allow burst connections.
    - ``pool_pre_ping=True``: Validate connections before checkout.
    - ``pool_recycle=300``: Recycle connections every 5 minutes.
    - ``connect_args={"timeout": 5}``: asyncpg connect timeout in seconds.

    Args:
        url: PostgreSQL URL with the ``postgresql+asyncpg`` driver.
        **kwargs: Additional keyword arguments forwarded to
            ``create_async_engine``.

    Returns:
        Configured ``AsyncEngine``.
    """
    defaults: dict[str, Any] = {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "connect_args": {"timeout": 5},
        "echo": False,
    }
    # Caller kwargs override defaults
    merged = {**defaults, **kwargs}

    return create_async_engine(url, **merged)


class PostgresConnection:
    """Postgres ``DatabaseConnection`` over a pooled async engine.

    Args:
        config: Connection settings.
        **engine_kwargs: Overrides for ``create_async_engine_pooled``.
    """

    def __init__(self, config: ConnectionConfig, **engine_kwargs: Any) -> None:
        self._config = config
        self._engine: AsyncEngine | None = create_async_engine_pooled(
            build_url(config), **engine_kwargs
        )

    @asynccontextmanager
    async def _checkout(self) -> AsyncIterator[AsyncConnection]:
        if self._engine is None:
            raise DatabaseConnectionError(f"Connection to {self._config.label} is closed")
        try:
            conn = await self._engine.connect()
        except (OSError, DBAPIError) as e:
            raise DatabaseConnectionError(
                f"Cannot connect to {self._config.label}: {e}"
            ) from e
        try:
            yield conn
        finally:
            await conn.close()

    async def query(
        self, statement: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        started = time.perf_counter()
        async with self._checkout() as conn:
            try:
                result = await conn.execute(text(statement), params or {})
            except InterfaceError as e:
                raise DatabaseConnectionError(
                    f"Lost connection to {self._config.label}: {e}"
                ) from e
            except DBAPIError as e:
                raise QueryError(f"Query failed: {e.orig}", statement) from e
            rows = [dict(row) for row in result.mappings()] if result.returns_rows else []

        logger.debug(
            "query returned %d row(s) in %.1f ms: %s",
            len(rows),
            (time.perf_counter() - started) * 1000,
            " ".join(statement.split())[:120],
        )
        return rows

    async def stream(
        self,
        statement: str,
        params: dict[str, Any] | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        started = time.perf_counter()
        total = 0
        async with self._checkout() as conn:
            try:
                result = await conn.stream(text(statement), params or {})
            except DBAPIError as e:
                raise QueryError(f"Query failed: {e.orig}", statement) from e
            try:
                async for partition in result.mappings().partitions(page_size):
                    total += len(partition)
                    yield [dict(row) for row in partition]
            except DBAPIError as e:
                raise QueryError(f"Fetch failed: {e.orig}", statement) from e
            finally:
                await result.close()
                logger.debug(
                    "cursor released after %d row(s) in %.1f ms: %s",
                    total,
                    (time.perf_counter() - started) * 1000,
                    " ".join(statement.split())[:120],
                )

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
