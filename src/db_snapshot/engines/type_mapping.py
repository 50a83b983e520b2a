"""Catalog type name -> native type mapping, per (source, target) engine pair.

Mappings are lossy: character/text variants collapse to one
string type, numeric variants to one decimal type, and boolean becomes a
1-digit number on engines without a native boolean. Generators only call
``render_type``; new pairs or types are added with
``register_type_mapping`` without touching generation logic.

Usage:
    from db_snapshot.engines.type_mapping import NativeType, register_type_mapping

    register_type_mapping(
        EngineType.POSTGRES, EngineType.ORACLE, "citext", NativeType("VARCHAR2", sized=True, default_size=4000)
    )
"""

import re
from dataclasses import dataclass

from db_snapshot.schema.models import TableColumn
from db_snapshot.types import EngineType


@dataclass(frozen=True)
class NativeType:
    """A native type on the target engine.

    Attributes:
        name: Type name as written in DDL.
        sized: Append ``(character_maximum_length)`` when known.
        scaled: Append ``(precision, scale)`` when known.
        default_size: Length used for sized types when the source has none.
    """

    name: str
    sized: bool = False
    scaled: bool = False
    default_size: int | None = None


_P = EngineType.POSTGRES
_O = EngineType.ORACLE

TYPE_MAPPINGS: dict[tuple[EngineType, EngineType], dict[str, NativeType]] = {
    (_P, _P): {
        "varchar": NativeType("VARCHAR", sized=True),
        "bpchar": NativeType("CHAR", sized=True),
        "bit": NativeType("BIT", sized=True),
        "varbit": NativeType("VARBIT", sized=True),
        "numeric": NativeType("NUMERIC", scaled=True),
        "text": NativeType("TEXT"),
        "int2": NativeType("SMALLINT"),
        "int4": NativeType("INTEGER"),
        "int8": NativeType("BIGINT"),
        "float4": NativeType("REAL"),
        "float8": NativeType("DOUBLE PRECISION"),
        "bool": NativeType("BOOLEAN"),
        "bytea": NativeType("BYTEA"),
        "date": NativeType("DATE"),
        "time": NativeType("TIME"),
        "timetz": NativeType("TIMETZ"),
        "timestamp": NativeType("TIMESTAMP"),
        "timestamptz": NativeType("TIMESTAMPTZ"),
        "interval": NativeType("INTERVAL"),
        "uuid": NativeType("UUID"),
        "json": NativeType("JSON"),
        "jsonb": NativeType("JSONB"),
        "xml": NativeType("XML"),
        "inet": NativeType("INET"),
        "cidr": NativeType("CIDR"),
        "macaddr": NativeType("MACADDR"),
        "money": NativeType("MONEY"),
    },
    (_P, _O): {
        "varchar": NativeType("VARCHAR2", sized=True, default_size=4000),
        "bpchar": NativeType("CHAR", sized=True, default_size=1),
        "text": NativeType("VARCHAR2", sized=True, default_size=4000),
        "citext": NativeType("VARCHAR2", sized=True, default_size=4000),
        "numeric": NativeType("NUMBER", scaled=True),
        "int2": NativeType("NUMBER(5)"),
        "int4": NativeType("NUMBER(10)"),
        "int8": NativeType("NUMBER(19)"),
        "float4": NativeType("BINARY_FLOAT"),
        "float8": NativeType("BINARY_DOUBLE"),
        "money": NativeType("NUMBER(19, 2)"),
        "bool": NativeType("NUMBER(1)"),
        "bytea": NativeType("BLOB"),
        "date": NativeType("DATE"),
        "timestamp": NativeType("TIMESTAMP"),
        "timestamptz": NativeType("TIMESTAMP WITH TIME ZONE"),
        "interval": NativeType("INTERVAL DAY TO SECOND"),
        "uuid": NativeType("VARCHAR2(36)"),
        "json": NativeType("CLOB"),
        "jsonb": NativeType("CLOB"),
        "xml": NativeType("XMLTYPE"),
    },
    (_O, _O): {
        "varchar2": NativeType("VARCHAR2", sized=True),
        "nvarchar2": NativeType("NVARCHAR2", sized=True),
        "char": NativeType("CHAR", sized=True),
        "nchar": NativeType("NCHAR", sized=True),
        "raw": NativeType("RAW", sized=True),
        "number": NativeType("NUMBER", scaled=True),
    },
    (_O, _P): {
        "varchar2": NativeType("VARCHAR", sized=True),
        "nvarchar2": NativeType("VARCHAR", sized=True),
        "char": NativeType("CHAR", sized=True),
        "nchar": NativeType("CHAR", sized=True),
        "number": NativeType("NUMERIC", scaled=True),
        "float": NativeType("DOUBLE PRECISION"),
        "binary_float": NativeType("REAL"),
        "binary_double": NativeType("DOUBLE PRECISION"),
        "date": NativeType("TIMESTAMP(0)"),
        "timestamp": NativeType("TIMESTAMP"),
        "timestamp with time zone": NativeType("TIMESTAMPTZ"),
        "timestamp with local time zone": NativeType("TIMESTAMPTZ"),
        "interval day to second": NativeType("INTERVAL"),
        "interval year to month": NativeType("INTERVAL"),
        "clob": NativeType("TEXT"),
        "nclob": NativeType("TEXT"),
        "long": NativeType("TEXT"),
        "rowid": NativeType("TEXT"),
        "blob": NativeType("BYTEA"),
        "raw": NativeType("BYTEA"),
        "long raw": NativeType("BYTEA"),
        "json": NativeType("JSONB"),
        "xmltype": NativeType("XML"),
        "boolean": NativeType("BOOLEAN"),
    },
}

_PRECISION = re.compile(r"\(\s*\d+\s*\)")


def normalize_type_name(name: str) -> str:
    """Lowercase a catalog type name and drop inline precision.

    Example:
        >>> normalize_type_name("TIMESTAMP(6) WITH TIME ZONE")
        'timestamp with time zone'
    """
    return " ".join(_PRECISION.sub("", name).lower().split())


def register_type_mapping(
    source: EngineType, target: EngineType, catalog_type: str, native: NativeType
) -> None:
    """Add or replace one catalog type mapping for an engine pair."""
    TYPE_MAPPINGS.setdefault((source, target), {})[normalize_type_name(catalog_type)] = native


def lookup_type(source: EngineType, target: EngineType, catalog_type: str) -> NativeType | None:
    return TYPE_MAPPINGS.get((source, target), {}).get(normalize_type_name(catalog_type))


def render_type(column: TableColumn, source: EngineType, target: EngineType) -> str:
    """Render a column's type in the target dialect.

    Unmapped types fall back to the catalog's display type (same engine) or
    the raw catalog name (user-defined types, other engine).

    Args:
        column: Column as captured on the source engine.
        source: Engine the column was inspected on.
        target: Engine the DDL is written for.

    Returns:
        Type text ready to place after the column name.
    """
    udt = column.udt_name
    if source is EngineType.POSTGRES and udt.startswith("_"):
        # Postgres array types are the element type prefixed with "_"
        if target is EngineType.ORACLE:
            return "CLOB"
        element = column.model_copy(
            update={"udt_name": udt[1:], "data_type": udt[1:], "character_maximum_length": None}
        )
        return render_type(element, source, target) + "[]"

    native = lookup_type(source, target, udt)
    if native is None:
        if source is target and column.data_type not in ("USER-DEFINED", "ARRAY"):
            return column.data_type.upper()
        return udt if udt.isidentifier() and udt.islower() else f'"{udt}"'

    if native.sized:
        size = column.character_maximum_length or native.default_size
        return f"{native.name}({size})" if size else native.name

    if native.scaled:
        precision, scale = column.numeric_precision, column.numeric_scale
        if precision is not None:
            return f"{native.name}({precision}, {scale or 0})"
        if scale is not None and target is EngineType.ORACLE:
            return f"{native.name}(*, {scale})"
        return native.name

    return native.name
