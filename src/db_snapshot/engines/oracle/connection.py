"""Async Oracle connection.

Provides ``OracleConnection``, the Oracle ``DatabaseConnection``, on one
lazily opened python-oracledb async (thin mode) session. Calls on the
session are serialized with an ``asyncio.Lock``, so concurrent catalog
queries from ``asyncio.gather`` run one after another. LOB columns are
fetched inline as ``str``/``bytes`` and non-integer NUMBER columns as
``Decimal`` so no digits are lost to ``float``.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from decimal import Decimal
from typing import Any

import oracledb

from db_snapshot.config.models import ConnectionConfig
from db_snapshot.engines.base import DEFAULT_PAGE_SIZE
from db_snapshot.errors import DatabaseConnectionError, QueryError

logger = logging.getLogger(__name__)

_LOB_FETCH_TYPES = {
    oracledb.DB_TYPE_CLOB: oracledb.DB_TYPE_LONG,
    oracledb.DB_TYPE_NCLOB: oracledb.DB_TYPE_LONG_NVARCHAR,
    oracledb.DB_TYPE_BLOB: oracledb.DB_TYPE_LONG_RAW,
}


def output_type_handler(cursor: Any, metadata: Any) -> Any:
    """Fetch LOBs as str/bytes and fractional or unconstrained NUMBERs as Decimal.

    NUMBER(p) with scale 0 keeps the driver's int conversion. Unconstrained
    NUMBER and FLOAT report precision 0 or scale -127.
    """
    if metadata.type_code == oracledb.DB_TYPE_NUMBER:
        if metadata.scale != 0 or not metadata.precision:
            return cursor.var(Decimal, arraysize=cursor.arraysize)
        return None
    fetch_type = _LOB_FETCH_TYPES.get(metadata.type_code)
    if fetch_type is not None:
        return cursor.var(fetch_type, arraysize=cursor.arraysize)
    return None


def build_dsn(config: ConnectionConfig) -> str:
    return f"{config.host}:{config.port}/{config.database}"


class OracleConnection:
    """Oracle ``DatabaseConnection`` over a single async session."""

    def __init__(self, config: ConnectionConfig) -> None:
        self._config = config
        self._session: Any = None
        self._lock = asyncio.Lock()
        self._open_lock = asyncio.Lock()
        self._closed = False

    async def _get_session(self) -> Any:
        if self._closed:
            raise DatabaseConnectionError(f"Connection to {self._config.label} is closed")
        if self._session is not None:
            return self._session
        # Concurrent first callers wait here and share one session
        async with self._open_lock:
            if self._session is None:
                try:
                    session = await oracledb.connect_async(
                        user=self._config.user,
                        password=self._config.password,
                        dsn=build_dsn(self._config),
                    )
                except oracledb.Error as e:
                    raise DatabaseConnectionError(
                        f"Cannot connect to {self._config.label}: {e}"
                    ) from e
                session.outputtypehandler = output_type_handler
                self._session = session
        return self._session

    async def query(
        self, statement: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        started = time.perf_counter()
        session = await self._get_session()
        async with self._lock:
            cursor = session.cursor()
            try:
                await cursor.execute(statement, params or {})
                if cursor.description is None:
                    rows = []
                else:
                    names = [d[0] for d in cursor.description]
                    rows = [dict(zip(names, row)) for row in await cursor.fetchall()]
            except oracledb.Error as e:
                raise QueryError(f"Query failed: {e}", statement) from e
            finally:
                cursor.close()

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
        session = await self._get_session()
        cursor = session.cursor()
        cursor.arraysize = page_size
        try:
            # The lock is held per round trip, not across yields
            async with self._lock:
                await cursor.execute(statement, params or {})
            names = [d[0] for d in cursor.description]
            while True:
                async with self._lock:
                    rows = await cursor.fetchmany(page_size)
                if not rows:
                    break
                total += len(rows)
                yield [dict(zip(names, row)) for row in rows]
        except oracledb.Error as e:
            raise QueryError(f"Query failed: {e}", statement) from e
        finally:
            cursor.close()
            logger.debug(
                "cursor released after %d row(s) in %.1f ms: %s",
                total,
                (time.perf_counter() - started) * 1000,
                " ".join(statement.split())[:120],
            )

    async def close(self) -> None:
        self._closed = True
        if self._session is not None:
            session, self._session = self._session, None
            await session.close()
