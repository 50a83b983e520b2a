"""PostgreSQL data extraction as INSERT statements."""

import json
import math
from collections.abc import AsyncIterator
from contextlib import aclosing
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

from db_snapshot.engines.base import DEFAULT_PAGE_SIZE, DatabaseConnection
from db_snapshot.engines.sql import column_list, qualify, quote_literal
from db_snapshot.schema.models import TableMetadata

_JSON_TYPES = frozenset({"json", "jsonb"})


class PostgresExtractor:
    """Postgres ``DataExtractor``.

    Generated columns are skipped: the restored table computes them.
    """

    def __init__(self, connection: DatabaseConnection) -> None:
        self._conn = connection

    async def stream_table_data(
        self, meta: TableMetadata, page_size: int = DEFAULT_PAGE_SIZE
    ) -> AsyncIterator[list[str]]:
        columns = [col for col in meta.columns if not col.is_generated]
        if not columns:
            return

        table = qualify(meta.schema_name, meta.name)
        names = column_list(col.name for col in columns)
        prefix = f"INSERT INTO {table} ({names}) VALUES ("

        async with aclosing(
            self._conn.stream(f"SELECT {names} FROM {table}", page_size=page_size)
        ) as pages:
            async for page in pages:
                yield [
                    prefix
                    + ", ".join(format_value(row[col.name], col.udt_name) for col in columns)
                    + ");"
                    for row in page
                ]


def format_value(value: Any, udt_name: str) -> str:
    """Render one value as a Postgres literal for a column of ``udt_name``.

    Example:
        >>> format_value("O'Brien", "text")
        "'O''Brien'"
        >>> format_value([1, 2], "_int4")
        'ARRAY[1, 2]::int4[]'
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "'NaN'"
        if math.isinf(value):
            return "'Infinity'" if value > 0 else "'-Infinity'"
        return repr(value)
    if isinstance(value, Decimal):
        if value.is_nan():
            return "'NaN'"
        if value.is_infinite():
            return "'Infinity'" if value > 0 else "'-Infinity'"
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"'\\x{bytes(value).hex()}'::bytea"
    if udt_name in _JSON_TYPES:
        text = value if isinstance(value, str) else json.dumps(value)
        return f"{quote_literal(text)}::{udt_name}"
    if isinstance(value, list):
        element = udt_name[1:] if udt_name.startswith("_") else udt_name
        if not value:
            return f"'{{}}'::{element}[]"
        return f"{_format_array(value, element)}::{element}[]"
    if isinstance(value, timedelta):
        return quote_literal(
            f"{value.days} days {value.seconds} seconds {value.microseconds} microseconds"
        ) + "::interval"
    if isinstance(value, (datetime, date, time)):
        return quote_literal(value.isoformat())
    return quote_literal(str(value))


def _format_array(values: list, element: str) -> str:
    items = (
        _format_array(v, element) if isinstance(v, list) else format_value(v, element)
        for v in values
    )
    return f"ARRAY[{', '.join(items)}]"
