"""Identifier and literal quoting shared by every dialect.

Both supported engines use ANSI double-quoted identifiers and
single-quoted string literals with embedded quotes doubled.
"""

import re
from collections.abc import Iterable


def quote_ident(name: str) -> str:
    """Quote an identifier, doubling embedded double quotes."""
    return '"' + name.replace('"', '""') + '"'


def qualify(*parts: str | None) -> str:
    """Quote and dot-join identifier parts, skipping empty ones.

    Example:
        >>> qualify("public", "orders")
        '"public"."orders"'
    """
    return ".".join(quote_ident(part) for part in parts if part)


def quote_literal(value: str) -> str:
    """Single-quote text, doubling embedded single quotes."""
    return "'" + value.replace("'", "''") + "'"


def column_list(names: Iterable[str]) -> str:
    return ", ".join(quote_ident(name) for name in names)


_PLAIN_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_$]*")


def requalify(text: str, source_schema: str, target_schema: str) -> str:
    """Point schema-qualified names in catalog text at another schema.

    Replaces ``source.`` and ``"source".`` prefixes in generated DDL
    (``pg_get_indexdef``, function bodies, column defaults). The unquoted
    form matches case-insensitively, as engines fold unquoted names.

    Example:
        >>> requalify("CREATE INDEX ix ON public.orders USING btree (id)", "public", "staging")
        'CREATE INDEX ix ON "staging".orders USING btree (id)'
    """
    if source_schema == target_schema:
        return text
    forms = [re.escape(quote_ident(source_schema))]
    if _PLAIN_IDENT.fullmatch(source_schema) and source_schema in (
        source_schema.lower(),
        source_schema.upper(),
    ):
        forms.append(f"(?i:{re.escape(source_schema)})")
    pattern = re.compile(rf"(?<![\w$\".])(?:{'|'.join(forms)})\.(?=[\w\"$])")
    return pattern.sub(lambda _: quote_ident(target_schema) + ".", text)
