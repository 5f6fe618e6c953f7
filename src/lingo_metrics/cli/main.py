"""CLI entry point for lingo_metrics.

This module provides the `lingo` command-line interface. It defines
global options and registers command groups.

Usage:
    lingo [OPTIONS] COMMAND [ARGS]...

Examples:
    lingo --help
    lingo query run TOTAL_STAKED_TREND --format table
    lingo metrics kpis
    lingo dashboard --no-analytics
"""

from __future__ import annotations

import signal
import sys
from pathlib import Path
from typing import Annotated

import typer

import lingo_metrics
from lingo_metrics.cli.utils import ExitCode, err_console, setup_logging

app = typer.Typer(
    name="lingo",
    help="LINGO staking metrics - Dune queries, user analytics, and dashboard aggregates.",
    epilog="""[dim]Data sources:[/dim]
  [cyan]Dune:[/cyan]     lingo query run, lingo metrics kpis (cached for 24h)
  [cyan]Mixpanel:[/cyan] lingo metrics users, lingo metrics events (via the proxy)

[dim]Operations:[/dim] lingo refresh, lingo serve, lingo cache clear""",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        print(f"lingo version {lingo_metrics.__version__}")
        raise typer.Exit()


def _handle_interrupt(_signum: int, _frame: object) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    err_console.print("\n[yellow]Interrupted[/yellow]")
    sys.exit(ExitCode.INTERRUPTED)


signal.signal(signal.SIGINT, _handle_interrupt)


@app.callback()
def main(
    ctx: typer.Context,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Config file to use (overrides LINGO_CONFIG_PATH).",
        ),
    ] = None,
    cache_path: Annotated[
        str | None,
        typer.Option(
            "--cache",
            help="Cache database file, or :memory: to skip the persistent cache.",
        ),
    ] = None,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress progress output.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable debug output.",
        ),
    ] = False,
    _version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """LINGO staking metrics CLI.

    Reads Dune query results and product-analytics metrics, caches them
    locally for 24 hours, and computes the dashboard's KPIs and rollups.
    """
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["cache_path"] = cache_path
    ctx.obj["quiet"] = quiet
    ctx.obj["verbose"] = verbose
    ctx.obj["config"] = None
    ctx.obj["settings"] = None
    ctx.obj["dashboard"] = None


# Import and register command groups
# These imports are done here to avoid circular imports
def _register_commands() -> None:
    """Register all command groups with the main app."""
    from lingo_metrics.cli.commands.cache import cache_app
    from lingo_metrics.cli.commands.config import config_app
    from lingo_metrics.cli.commands.dashboard import dashboard_command
    from lingo_metrics.cli.commands.metrics import metrics_app
    from lingo_metrics.cli.commands.query import query_app
    from lingo_metrics.cli.commands.refresh import refresh_command
    from lingo_metrics.cli.commands.serve import serve_command

    app.add_typer(query_app, name="query", help="Read Dune query results.")
    app.add_typer(metrics_app, name="metrics", help="Compute dashboard aggregates.")
    app.add_typer(cache_app, name="cache", help="Inspect and clear the local cache.")
    app.add_typer(config_app, name="config", help="Manage configuration.")
    app.command("dashboard")(dashboard_command)
    app.command("refresh")(refresh_command)
    app.command("serve")(serve_command)


_register_commands()


if __name__ == "__main__":
    app()
