"""CLI for read-only SQL backups and schema comparison.

Usage:
    db-snapshot profiles
    db-snapshot backup --profile prod --tables orders,customers
    db-snapshot backup -e postgres -H db.internal -d app -u readonly -P secret
    db-snapshot compare --source prod --target staging --output drift.csv

Commands:
    backup    - Write a replayable .sql script of schema and data
    compare   - Report schema drift from a source to a target profile
    profiles  - List profiles from db.toml
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from db_snapshot.backup.orchestrator import run_backup
from db_snapshot.config.loader import get_profile, load_db_config
from db_snapshot.config.models import BackupConfig, ConnectionConfig, SnapshotConfig
from db_snapshot.errors import ConfigError, SnapshotError
from db_snapshot.schema.comparator import compare_profiles
from db_snapshot.schema.exporter import EXPORT_FORMATS, export_comparison
from db_snapshot.schema.models import ComparisonResult
from db_snapshot.types import EngineType

console = Console()


def configure_logging(verbose: bool = False) -> None:
    """Route library logging through rich on stderr. Called once per process."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    if not verbose:
        # SQLAlchemy pool chatter only matters when debugging
        logging.getLogger("sqlalchemy").setLevel(logging.WARNING)


# ============================================================================
# Config helpers
# ============================================================================


def _load_config(args: argparse.Namespace, required: bool) -> SnapshotConfig:
    path = Path(args.config)
    if not required and not path.exists():
        return SnapshotConfig()
    return load_db_config(path)


def _parse_tables(value: str | None) -> list[str] | None:
    if not value:
        return None
    tables = [t.strip() for t in value.split(",") if t.strip()]
    return tables or None


def _resolve_connection(args: argparse.Namespace, config: SnapshotConfig) -> ConnectionConfig:
    if args.profile:
        return get_profile(config, args.profile)
    if not args.database or not args.user:
        raise ConfigError("Either --profile or both --database and --user are required")
    try:
        return ConnectionConfig(
            engine=EngineType(args.engine),
            host=args.host,
            port=args.port,
            database=args.database,
            user=args.user,
            password=args.password,
            schema_name=args.schema,
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid connection options:\n{e}") from e


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_backup(args: argparse.Namespace) -> int:
    """Async implementation for backup command.

    Returns:
        0 on success, 1 on failure.
    """
    config = _load_config(args, required=bool(args.profile))
    connection = _resolve_connection(args, config)
    backup_config = BackupConfig(
        connection=connection,
        tables=_parse_tables(args.tables),
        output_dir=Path(args.output) if args.output else config.backup.output_dir,
        page_size=args.page_size or config.backup.page_size,
    )

    console.print(
        f"Backing up [bold cyan]{connection.database}[/bold cyan] "
        f"({connection.engine.label} at {connection.host}:{connection.port})...",
        style="dim",
    )
    path = await run_backup(backup_config)

    console.print()
    console.print(f"[bold green]v[/bold green] Backup written to [bold]{path}[/bold]")
    return 0


async def _async_compare(args: argparse.Namespace) -> int:
    """Async implementation for compare command.

    Returns:
        0 when the target matches the source, 1 when drift is found.
    """
    if args.output and Path(args.output).suffix.lower() not in EXPORT_FORMATS:
        raise ConfigError(f"--output must end in {' or '.join(EXPORT_FORMATS)}: {args.output}")

    config = _load_config(args, required=True)
    source = get_profile(config, args.source)
    target = get_profile(config, args.target)

    console.print(
        f"Comparing [bold cyan]{args.source}[/bold cyan] -> "
        f"[bold cyan]{args.target}[/bold cyan]...",
        style="dim",
    )
    result = await compare_profiles(source, target)

    if result.is_identical:
        console.print()
        console.print("[bold green]v[/bold green] Schemas match")
        return 0

    console.print()
    console.print(_diff_table(result, show_fixes=args.show_fixes))
    console.print()
    console.print(f"[bold red]x[/bold red] {len(result.diffs)} difference(s) found")
    for diff_type, count in result.count_by_type().items():
        console.print(f"  {diff_type.label}: {count}")

    if args.output:
        path = export_comparison(result, args.output)
        console.print(f"\nReport exported to [bold]{path}[/bold]")
    return 1


def _diff_table(result: ComparisonResult, show_fixes: bool) -> Table:
    table = Table(title="Schema Differences", show_header=True, header_style="bold")
    table.add_column("Table", style="cyan")
    table.add_column("Type")
    table.add_column("Column/Object")
    table.add_column("Expected", style="green")
    table.add_column("Actual", style="red")
    if show_fixes:
        table.add_column("Fix", style="dim")

    for diff in result.diffs:
        row = [
            diff.table or "-",
            diff.diff_type.label,
            diff.name or "-",
            _truncate(diff.expected),
            _truncate(diff.actual),
        ]
        if show_fixes:
            row.append(diff.fix or "")
        table.add_row(*(escape(cell) for cell in row))
    return table


def _truncate(value: str | None, width: int = 60) -> str:
    if not value:
        return "-"
    value = " ".join(value.split())
    return value if len(value) <= width else value[: width - 3] + "..."


# ============================================================================
# Command entry points
# ============================================================================


def _run(coro_fn, args: argparse.Namespace) -> int:
    try:
        return asyncio.run(coro_fn(args))
    except SnapshotError as e:
        console.print(f"\n[red]Error: {escape(str(e))}[/red]")
        return 1


def cmd_backup(args: argparse.Namespace) -> int:
    """Write a backup script.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return _run(_async_backup, args)


def cmd_compare(args: argparse.Namespace) -> int:
    """Compare two profiles.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return _run(_async_compare, args)


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from db.toml.

    Reads only local TOML config -- no database calls.

    Returns:
        0 on success, 1 if db.toml is missing or invalid.
    """
    try:
        config = load_db_config(Path(args.config))
    except ConfigError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("Profile", style="cyan")
    table.add_column("Engine")
    table.add_column("Address")
    table.add_column("Schema")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        table.add_row(
            name,
            profile.engine.label,
            f"{profile.user}@{profile.host}:{profile.port}/{profile.database}",
            profile.schema_name or "-",
            profile.description,
        )

    console.print(table)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="db-snapshot",
        description="Read-only SQL backups and schema comparison for PostgreSQL and Oracle",
    )
    parser.add_argument(
        "--config",
        default="db.toml",
        help="Path to db.toml with [profiles.<name>] sections (default: ./db.toml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log every catalog query with its duration",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # backup command
    p_backup = subparsers.add_parser(
        "backup",
        help="Write a replayable .sql script of schema and data",
    )
    p_backup.add_argument("--profile", help="Profile from db.toml to back up")
    p_backup.add_argument(
        "--engine",
        "-e",
        choices=[e.value for e in EngineType],
        default=EngineType.POSTGRES.value,
        help="Database engine (without --profile)",
    )
    p_backup.add_argument("--host", "-H", default="localhost", help="Database host")
    p_backup.add_argument("--port", "-p", type=int, help="Database port (default: engine's)")
    p_backup.add_argument("--database", "-d", help="Database (Postgres) or service name (Oracle)")
    p_backup.add_argument("--user", "-u", help="Database user")
    p_backup.add_argument("--password", "-P", help="Database password")
    p_backup.add_argument("--schema", "-s", help="Schema (Postgres) or owner (Oracle)")
    p_backup.add_argument(
        "--tables",
        "-t",
        help="Comma-separated list of tables to back up (default: all)",
    )
    p_backup.add_argument("--output", "-o", help="Output directory (default: files/dumps)")
    p_backup.add_argument("--page-size", type=int, help="Rows fetched per cursor page")
    p_backup.set_defaults(func=cmd_backup)

    # compare command
    p_compare = subparsers.add_parser(
        "compare",
        help="Report schema drift from a source to a target profile",
    )
    p_compare.add_argument("--source", required=True, help="Reference profile")
    p_compare.add_argument("--target", required=True, help="Profile to check")
    p_compare.add_argument("--output", help="Export diffs to a .csv or .json file")
    p_compare.add_argument(
        "--show-fixes",
        action="store_true",
        help="Include fix statements in the console table",
    )
    p_compare.set_defaults(func=cmd_compare)

    # profiles command
    p_profiles = subparsers.add_parser(
        "profiles",
        help="List available profiles",
    )
    p_profiles.set_defaults(func=cmd_profiles)

    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
