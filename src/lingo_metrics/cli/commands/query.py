"""Query commands for Dune queries.

This module provides commands for working with the query registry:
- list: Show registered query names and ids
- run: Read the latest results of a query (cached for 24h)
"""

from __future__ import annotations

from typing import Annotated

import typer

from lingo_metrics.cli.options import FormatOption, RefreshOption
from lingo_metrics.cli.utils import (
    err_console,
    get_dashboard,
    get_settings,
    handle_errors,
    output_result,
    status_spinner,
)
from lingo_metrics.queries import REFRESHABLE_QUERIES

query_app = typer.Typer(
    name="query",
    help="Read Dune query results.",
    no_args_is_help=True,
    rich_markup_mode="markdown",
)


@query_app.command("list")
@handle_errors
def list_queries(
    ctx: typer.Context,
    format: FormatOption = "json",
) -> None:
    """List registered queries.

    Shows each query's name, Dune id, and whether the scheduled refresh
    re-executes it.

    Examples:

        lingo query list
        lingo query list --format table
    """
    settings = get_settings(ctx)
    data = [
        {"name": name, "query_id": query_id, "refreshed": name in REFRESHABLE_QUERIES}
        for name, query_id in settings.queries.items()
    ]
    output_result(ctx, data, format=format)


@query_app.command("run")
@handle_errors
def run_query(
    ctx: typer.Context,
    query: Annotated[
        str,
        typer.Argument(help="Query name (e.g. WEEKLY_STATS) or numeric Dune id."),
    ],
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-l", help="Maximum rows to read.", min=1),
    ] = None,
    refresh: RefreshOption = False,
    format: FormatOption = "json",
) -> None:
    """Read the latest results of a query.

    Results are served from the local cache when younger than 24 hours;
    use --refresh to read them from Dune and overwrite the cache.

    Examples:

        lingo query run TOTAL_STAKED_TREND
        lingo query run 6632385 --limit 10 --format table
        lingo query run WEEKLY_STATS --refresh
    """
    dashboard = get_dashboard(ctx)
    with status_spinner(ctx, f"Reading {query}..."):
        result = dashboard.queries.fetch_result(query, limit, force_refresh=refresh)
    if result.from_cache:
        err_console.print("[dim]Served from cache[/dim]")
    output_result(ctx, result.rows, format=format)
