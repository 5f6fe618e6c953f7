"""Cache management commands.

This module provides commands for the local 24h cache:
- list: Show cached entries with age and validity
- clear: Remove entries (all, or by key prefix)
"""

from __future__ import annotations

from typing import Annotated

import typer

from lingo_metrics._internal.cache import TimedCache
from lingo_metrics.cli.options import FormatOption
from lingo_metrics.cli.utils import (
    err_console,
    get_settings,
    handle_errors,
    output_result,
)

cache_app = typer.Typer(
    name="cache",
    help="Inspect and clear the local cache.",
    no_args_is_help=True,
    rich_markup_mode="markdown",
)


@cache_app.command("list")
@handle_errors
def list_entries(
    ctx: typer.Context,
    format: FormatOption = "json",
) -> None:
    """List cached entries.

    Shows each key, when it was stored, its age in seconds, and whether it
    is still within the 24h lifetime.

    Examples:

        lingo cache list --format table
    """
    settings = get_settings(ctx)
    with TimedCache(settings.cache_path) as cache:
        entries = cache.entries()
    output_result(ctx, entries, format=format)


@cache_app.command("clear")
@handle_errors
def clear(
    ctx: typer.Context,
    prefix: Annotated[
        str | None,
        typer.Option("--prefix", "-p", help="Only remove keys starting with this."),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove cached entries.

    Examples:

        lingo cache clear --force
        lingo cache clear --prefix dune_cache_
    """
    if not force:
        target = f"entries starting with '{prefix}'" if prefix else "all cached entries"
        if not typer.confirm(f"Remove {target}?"):
            err_console.print("Cancelled.")
            raise typer.Exit(0)

    settings = get_settings(ctx)
    with TimedCache(settings.cache_path) as cache:
        removed = cache.clear(prefix)
    err_console.print(f"[green]Removed {removed} cache entries.[/green]")
