"""
Command-line interface for schema_lens.

Inspects a database (or a snapshot file) and prints the relationship hints
the analyzer derives: incoming foreign keys, pivot tables, junction tables.
"""

from __future__ import annotations

import functools
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from schema_lens import __version__
from schema_lens.analysis import SchemaAnalyzer
from schema_lens.catalog import write_snapshot
from schema_lens.config import AnalyzerConfig, ConfigError, build_analyzer, load_config

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with Rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def handle_errors(func):
    """Report failures in red and exit with status 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ConfigError as e:
            console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
            sys.exit(1)
        except Exception as e:
            logging.getLogger(__name__).debug("Command failed", exc_info=True)
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            sys.exit(1)
    return wrapper


def get_analyzer(ctx: click.Context) -> SchemaAnalyzer:
    """Build the analyzer once per invocation from the group options."""
    if "analyzer" not in ctx.obj:
        ctx.obj["analyzer"] = build_analyzer(ctx.obj["config"])
    return ctx.obj["analyzer"]


@click.group()
@click.version_option(version=__version__, prog_name="schema-lens")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option(
    "--config",
    "config_file",
    type=click.Path(path_type=Path),
    default=None,
    help="YAML configuration file",
)
@click.option(
    "--url",
    type=str,
    default=None,
    help="SQLAlchemy database URL",
)
@click.option(
    "--db_schema",
    type=str,
    default=None,
    help="Database schema to inspect (with --url)",
)
@click.option(
    "--oracle_conn",
    type=str,
    default=None,
    help="Oracle connection string (user/pwd@host:port/service)",
)
@click.option(
    "--owner",
    type=str,
    default=None,
    help="Oracle schema owner (defaults to the connecting user)",
)
@click.option(
    "--snapshot",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Schema snapshot file (YAML or JSON) to analyze offline",
)
@click.option(
    "--cache_dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Persist cache entries in this directory",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_file: Optional[Path],
    url: Optional[str],
    db_schema: Optional[str],
    oracle_conn: Optional[str],
    owner: Optional[str],
    snapshot: Optional[Path],
    cache_dir: Optional[Path],
) -> None:
    """
    Schema Lens - relationship hints from database catalogs

    Command-line options override values from --config.
    """
    setup_logging(verbose)

    config = load_config(config_file) if config_file else AnalyzerConfig()
    if url or oracle_conn or snapshot:
        config.url, config.oracle, config.snapshot = url, oracle_conn, snapshot
    if db_schema:
        config.db_schema = db_schema
    if owner:
        config.owner = owner
    if cache_dir:
        config.cache_backend = "file"
        config.cache_dir = cache_dir

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
@click.pass_context
@handle_errors
def namespace(ctx: click.Context) -> None:
    """Print the cache namespace of the connection."""
    console.print(get_analyzer(ctx).cache_namespace())


@cli.command()
@click.pass_context
@handle_errors
def tables(ctx: click.Context) -> None:
    """
    List tables with their primary key and foreign key count.

    Example:

        schema-lens --url sqlite:///shop.db tables
    """
    schema = get_analyzer(ctx).schema()

    tables_table = Table(title="Tables")
    tables_table.add_column("Table", style="cyan")
    tables_table.add_column("Columns", style="green", justify="right")
    tables_table.add_column("PK", style="yellow")
    tables_table.add_column("FKs", style="magenta", justify="right")

    for table in schema.get_tables():
        tables_table.add_row(
            table.name,
            str(len(table.columns)),
            ", ".join(table.primary_key) if table.primary_key else "-",
            str(len(table.foreign_keys)),
        )

    console.print(tables_table)


@cli.command()
@click.argument("table_name")
@click.pass_context
@handle_errors
def incoming(ctx: click.Context, table_name: str) -> None:
    """
    Show foreign keys pointing to TABLE_NAME.

    Foreign keys from junction tables and inheritance links are left out.
    """
    fks = get_analyzer(ctx).incoming_foreign_keys(table_name)

    if not fks:
        console.print(f"[yellow]No incoming foreign keys for {table_name}.[/yellow]")
        return

    fk_table = Table(title=f"Incoming foreign keys: {table_name}")
    fk_table.add_column("Name", style="cyan")
    fk_table.add_column("From", style="green")
    fk_table.add_column("To", style="yellow")

    for fk in fks:
        fk_table.add_row(
            fk.name or "-",
            f"{fk.local_table}.{','.join(fk.local_columns)}",
            f"{fk.foreign_table}.{','.join(fk.foreign_columns)}",
        )

    console.print(fk_table)


@cli.command()
@click.argument("table_name")
@click.pass_context
@handle_errors
def pivots(ctx: click.Context, table_name: str) -> None:
    """Show junction tables linked to TABLE_NAME."""
    pivot_tables = get_analyzer(ctx).pivot_tables_referencing(table_name)

    if not pivot_tables:
        console.print(f"[yellow]No pivot tables reference {table_name}.[/yellow]")
        return

    for name in pivot_tables:
        console.print(name)


@cli.command()
@click.pass_context
@handle_errors
def junctions(ctx: click.Context) -> None:
    """List detected junction (many-to-many) tables."""
    junction_tables = get_analyzer(ctx).detector.detect_junction_tables(True)

    if not junction_tables:
        console.print("[yellow]No junction tables detected.[/yellow]")
        return

    junction_table = Table(title="Junction Tables")
    junction_table.add_column("Table", style="cyan")
    junction_table.add_column("Links", style="green")

    for table in junction_tables:
        junction_table.add_row(
            table.name,
            " <-> ".join(fk.foreign_table for fk in table.foreign_keys),
        )

    console.print(junction_table)


@cli.command()
@click.argument("output", type=click.Path(path_type=Path))
@click.pass_context
@handle_errors
def snapshot(ctx: click.Context, output: Path) -> None:
    """
    Write the normalized schema snapshot to OUTPUT (YAML, or JSON for .json).

    Example:

        schema-lens --url postgresql://app@db/shop snapshot shop.yaml
    """
    schema = get_analyzer(ctx).schema()
    write_snapshot(schema, output)
    console.print(f"[green]Saved snapshot to: {output}[/green]")


if __name__ == "__main__":
    cli()
