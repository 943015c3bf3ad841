"""CLI module for MySQL migration planning.

Provides commands for listing database profiles, planning the migration of
a live database towards an entities file, and previewing the DDL that
builds every table from nothing.  Nothing is ever executed against the
database; plans are printed for review.

Usage:
    db-migrate profiles
    DB_PROFILE=local db-migrate plan --entities entities.toml
    db-migrate plan --profile staging --safe-only
    db-migrate preview --entities entities.toml > schema.sql

Commands:
    profiles  - List available profiles
    plan      - Introspect a database and print its migration plan
    preview   - Print the create-everything DDL without a database

Exit codes for ``plan``: 0 when every table is up to date or only safe
steps are pending, 2 when unsafe steps (column drops) are pending, 1 on
errors.
"""

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from db_migrate.config.loader import load_db_config, load_entities
from db_migrate.factory import ProfileNotFoundError, get_active_profile_name, get_runner
from db_migrate.schema.compiler import DefinitionError
from db_migrate.schema.introspector import AmbiguousForeignKeyError
from db_migrate.schema.models import EntityDefinition, MigrationPlan
from db_migrate.schema.planner import migrate_all, mock_migration

console = Console()

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_UNSAFE = 2


# ============================================================================
# Helpers
# ============================================================================


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _entities_path(args: argparse.Namespace) -> Path:
    """Entities file from ``--entities``, else db.toml's ``[schema]``, else the default.

    Raises:
        ValueError: If db.toml exists but is malformed
    """
    if args.entities:
        return Path(args.entities)
    try:
        return Path(load_db_config().entities_file)
    except FileNotFoundError:
        return Path("entities.toml")


def _load_entities(args: argparse.Namespace) -> list[EntityDefinition] | None:
    try:
        path = _entities_path(args)
    except ValueError as e:
        console.print(f"[red]Error reading db.toml: {escape(str(e))}[/red]")
        return None

    try:
        entities = load_entities(path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error reading entities from {escape(str(path))}: {escape(str(e))}[/red]")
        return None

    if not entities:
        console.print(f"[yellow]No entities defined in {escape(str(path))}[/yellow]")
    return entities


def _print_plan(plan: MigrationPlan, safe_only: bool = False) -> None:
    table = escape(plan.table)

    if plan.errors:
        console.print(
            f"[bold red]x[/bold red] {table}: {len(plan.errors)} introspection error(s)"
        )
        for error in plan.errors:
            console.print(f"    - {escape(error)}", soft_wrap=True)
        return

    if not plan.steps:
        console.print(f"[bold green]v[/bold green] {table}: up to date")
        return

    console.print(f"[bold]{table}[/bold]: {len(plan.steps)} step(s)")
    for step in plan.steps:
        if not step.unsafe:
            console.print(f"    {escape(step.sql)};", soft_wrap=True)
        elif not safe_only:
            console.print(
                f"  [bold red]![/bold red] [red]{escape(step.sql)};[/red]", soft_wrap=True
            )

    if safe_only and plan.has_unsafe:
        console.print(
            f"  [yellow]{len(plan.unsafe_steps)} unsafe step(s) hidden[/yellow]"
        )


def _summary_table(plans: list[MigrationPlan]) -> Table:
    summary = Table(title="Migration Plan", show_header=True, header_style="bold")
    summary.add_column("Table")
    summary.add_column("Steps", justify="right")
    summary.add_column("Unsafe", justify="right")
    summary.add_column("Status")

    for plan in plans:
        if plan.errors:
            status = "[bold red]ERRORS[/bold red]"
        elif plan.has_unsafe:
            status = "[bold yellow]UNSAFE[/bold yellow]"
        elif plan.steps:
            status = "[cyan]PENDING[/cyan]"
        else:
            status = "[green]UP TO DATE[/green]"
        summary.add_row(
            escape(plan.table),
            str(len(plan.steps)),
            str(len(plan.unsafe_steps)),
            status,
        )
    return summary


# ============================================================================
# Commands
# ============================================================================


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from db.toml.

    Reads only local TOML config -- no database calls.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 if db.toml is missing or malformed.
    """
    try:
        config = load_db_config()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return EXIT_ERROR

    try:
        current = get_active_profile_name(args.env_prefix)
    except ProfileNotFoundError:
        current = None

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        name_style = "bold cyan" if name == current else ""
        table.add_row(
            marker,
            f"[{name_style}]{escape(name)}[/{name_style}]" if name_style else escape(name),
            escape(profile.description or ""),
        )

    console.print(table)

    if current:
        console.print("\n[bold green]*[/bold green] = active profile")

    return EXIT_OK


def cmd_plan(args: argparse.Namespace) -> int:
    """Introspect the profile's database and print the migration plan.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 if nothing unsafe is pending, 2 if unsafe steps are pending,
        1 on errors.
    """
    entities = _load_entities(args)
    if entities is None:
        return EXIT_ERROR

    try:
        runner = get_runner(args.profile, env_prefix=args.env_prefix)
    except (ProfileNotFoundError, FileNotFoundError, ValueError, SQLAlchemyError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return EXIT_ERROR

    if not runner.database:
        console.print("[red]Error: the profile URL does not name a database[/red]")
        runner.close()
        return EXIT_ERROR

    console.print(f"Introspecting [bold]{escape(runner.database)}[/bold]...", style="dim")

    try:
        plans = migrate_all(entities, runner, runner.database)
    except (AmbiguousForeignKeyError, DefinitionError, SQLAlchemyError) as e:
        console.print(f"\n[red]Error: {escape(str(e))}[/red]")
        return EXIT_ERROR
    finally:
        runner.close()

    console.print()
    for plan in plans:
        _print_plan(plan, safe_only=args.safe_only)

    console.print()
    console.print(_summary_table(plans))

    if any(plan.errors for plan in plans):
        return EXIT_ERROR
    if any(plan.has_unsafe for plan in plans):
        console.print(
            "\n[bold yellow]Unsafe steps pending.[/bold yellow] "
            "Review the column drops before applying."
        )
        return EXIT_UNSAFE
    return EXIT_OK


def cmd_preview(args: argparse.Namespace) -> int:
    """Print the DDL that builds every table from nothing.

    Needs no database. Statements are printed in dependency order, one per
    line, so the output can be redirected to a file.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 on errors.
    """
    entities = _load_entities(args)
    if entities is None:
        return EXIT_ERROR

    try:
        plans = mock_migration(entities)
    except DefinitionError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return EXIT_ERROR

    for plan in plans:
        for step in plan.steps:
            console.print(f"{escape(step.sql)};", soft_wrap=True, highlight=False)

    return EXIT_OK


# ============================================================================
# Main entry point
# ============================================================================


def main() -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="db-migrate",
        description="MySQL schema migration planner",
    )

    # Global options
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE and APP_MYSQL_HOST)"
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log catalog queries and planning details",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # profiles command
    p_profiles = subparsers.add_parser(
        "profiles",
        help="List available profiles",
    )
    p_profiles.set_defaults(func=cmd_profiles)

    # plan command
    p_plan = subparsers.add_parser(
        "plan",
        help="Introspect a database and print its migration plan",
    )
    p_plan.add_argument(
        "--entities",
        help="Path to the TOML entities file (default: [schema] entities_file in db.toml)",
    )
    p_plan.add_argument(
        "--profile",
        "-p",
        help="Profile from db.toml (default: DB_PROFILE env var)",
    )
    p_plan.add_argument(
        "--safe-only",
        action="store_true",
        help="Hide unsafe steps (column drops) from the printed plan",
    )
    p_plan.set_defaults(func=cmd_plan)

    # preview command
    p_preview = subparsers.add_parser(
        "preview",
        help="Print the create-everything DDL without a database",
    )
    p_preview.add_argument(
        "--entities",
        help="Path to the TOML entities file (default: [schema] entities_file in db.toml)",
    )
    p_preview.set_defaults(func=cmd_preview)

    args = parser.parse_args()
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
