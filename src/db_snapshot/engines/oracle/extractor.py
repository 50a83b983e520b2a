"""Oracle data extraction as INSERT statements.

Binary values longer than one ``HEXTORAW`` literal cannot be written as a
SQL expression, so rows holding them become anonymous PL/SQL blocks that
assemble the value chunk by chunk before the INSERT.
"""

import json
import math
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

import oracledb

from db_snapshot.engines.base import DEFAULT_PAGE_SIZE, DatabaseConnection
from db_snapshot.engines.sql import column_list, qualify, quote_ident, quote_literal
from db_snapshot.schema.models import TableColumn, TableMetadata

# Oracle caps a string literal at 4000 bytes; 1000 characters fits any UTF-8 text
MAX_LITERAL_LENGTH = 1000
# Two hex digits per byte, same 4000 byte cap
MAX_RAW_BYTES = 2000


class OracleExtractor:
    """Oracle ``DataExtractor``. Virtual columns are skipped."""

    def __init__(self, connection: DatabaseConnection) -> None:
        self._conn = connection

    async def stream_table_data(
        self, meta: TableMetadata, page_size: int = DEFAULT_PAGE_SIZE
    ) -> AsyncIterator[list[str]]:
        columns = [col for col in meta.columns if not col.is_generated]
        if not columns:
            return

        names = column_list(col.name for col in columns)
        prefix = f"INSERT INTO {quote_ident(meta.name)} ({names}) VALUES ("
        statement = f"SELECT {names} FROM {qualify(meta.schema_name, meta.name)}"

        async with aclosing(self._conn.stream(statement, page_size=page_size)) as pages:
            async for page in pages:
                yield [insert_statement(prefix, row, columns) for row in page]


def insert_statement(prefix: str, row: dict[str, Any], columns: Sequence[TableColumn]) -> str:
    """Render one row as an INSERT, or a PL/SQL block when it holds large binaries."""
    values: list[str] = []
    declarations: list[str] = []
    body: list[str] = []
    lobs: list[str] = []
    for col in columns:
        value = row[col.name]
        if isinstance(value, (bytes, bytearray)) and len(value) > MAX_RAW_BYTES:
            var = f"v{len(declarations) + 1}"
            lob = col.udt_name == "blob"
            declarations.append(f"  {var} {'BLOB' if lob else 'RAW(32767)'};")
            body.extend(_append_binary(var, bytes(value), lob))
            if lob:
                lobs.append(var)
            values.append(var)
        else:
            values.append(format_value(value, col.udt_name))

    insert = prefix + ", ".join(values) + ");"
    if not declarations:
        return insert
    frees = [f"  DBMS_LOB.FREETEMPORARY({var});" for var in lobs]
    return "\n".join(
        ["DECLARE", *declarations, "BEGIN", *body, f"  {insert}", *frees, "END;", "/"]
    )


def _append_binary(var: str, data: bytes, lob: bool) -> list[str]:
    chunks = [data[i : i + MAX_RAW_BYTES] for i in range(0, len(data), MAX_RAW_BYTES)]
    if lob:
        return [f"  DBMS_LOB.CREATETEMPORARY({var}, TRUE);"] + [
            f"  DBMS_LOB.WRITEAPPEND({var}, {len(chunk)}, {_hextoraw(chunk)});"
            for chunk in chunks
        ]
    first, *rest = chunks
    return [f"  {var} := {_hextoraw(first)};"] + [
        f"  {var} := UTL_RAW.CONCAT({var}, {_hextoraw(chunk)});" for chunk in rest
    ]


def _hextoraw(data: bytes) -> str:
    return f"HEXTORAW('{data.hex().upper()}')"


def format_value(value: Any, udt_name: str) -> str:
    """Render one value as an Oracle literal for a column of ``udt_name``.

    ``udt_name`` is the normalized catalog type (``"date"``,
    ``"timestamp with time zone"``, ``"clob"``, ...).

    Raises:
        ValueError: binary value over ``MAX_RAW_BYTES``; only
            ``insert_statement`` can place those.
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "BINARY_DOUBLE_NAN"
        if math.isinf(value):
            return "BINARY_DOUBLE_INFINITY" if value > 0 else "-BINARY_DOUBLE_INFINITY"
        return repr(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        if len(value) > MAX_RAW_BYTES:
            raise ValueError(
                f"{len(value)} byte value exceeds a single HEXTORAW literal ({MAX_RAW_BYTES} bytes)"
            )
        return _hextoraw(bytes(value))
    if isinstance(value, datetime):
        return _format_datetime(value, udt_name)
    if isinstance(value, date):
        return f"TO_DATE('{value.isoformat()}', 'YYYY-MM-DD')"
    if isinstance(value, timedelta):
        return _format_interval(value)
    if isinstance(value, oracledb.IntervalYM):
        return _format_interval_ym(value)
    if isinstance(value, (dict, list)):
        text = json.dumps(value)
        return f"JSON({quote_literal(text)})" if udt_name == "json" else _format_text(text)
    return _format_text(str(value))


def _format_datetime(value: datetime, udt_name: str) -> str:
    if udt_name == "date":
        return f"TO_DATE('{value:%Y-%m-%d %H:%M:%S}', 'YYYY-MM-DD HH24:MI:SS')"
    if value.tzinfo is not None:
        offset = value.strftime("%z")
        return (
            f"TO_TIMESTAMP_TZ('{value:%Y-%m-%d %H:%M:%S.%f} {offset[:3]}:{offset[3:5]}', "
            "'YYYY-MM-DD HH24:MI:SS.FF6 TZH:TZM')"
        )
    return f"TO_TIMESTAMP('{value:%Y-%m-%d %H:%M:%S.%f}', 'YYYY-MM-DD HH24:MI:SS.FF6')"


def _format_interval(value: timedelta) -> str:
    sign = "-" if value < timedelta(0) else ""
    value = abs(value)
    hours, remainder = divmod(value.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return (
        f"INTERVAL '{sign}{value.days} {hours:02d}:{minutes:02d}:{seconds:02d}.{value.microseconds:06d}' "
        "DAY(9) TO SECOND(6)"
    )


def _format_interval_ym(value: oracledb.IntervalYM) -> str:
    # The driver gives both fields the interval's sign
    sign = "-" if value.years < 0 or value.months < 0 else ""
    return f"INTERVAL '{sign}{abs(value.years)}-{abs(value.months)}' YEAR(9) TO MONTH"


def _format_text(text: str) -> str:
    if len(text) <= MAX_LITERAL_LENGTH:
        return quote_literal(text)
    # Longer text only fits a CLOB built from literal chunks
    chunks = (
        text[i : i + MAX_LITERAL_LENGTH] for i in range(0, len(text), MAX_LITERAL_LENGTH)
    )
    return " || ".join(f"TO_CLOB({quote_literal(chunk)})" for chunk in chunks)
