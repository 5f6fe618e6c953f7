"""Dashboard command: load every source at once."""

from __future__ import annotations

from typing import Annotated

import typer

from lingo_metrics.cli.formatters import format_kpi_value, kpi_rows
from lingo_metrics.cli.options import FormatOption, RefreshOption
from lingo_metrics.cli.utils import (
    ExitCode,
    console,
    err_console,
    get_dashboard,
    handle_errors,
    output_result,
    status_spinner,
)


@handle_errors
def dashboard_command(
    ctx: typer.Context,
    no_analytics: Annotated[
        bool,
        typer.Option("--no-analytics", help="Skip the product-analytics metrics."),
    ] = False,
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Exit non-zero if any source failed."),
    ] = False,
    refresh: RefreshOption = False,
    format: FormatOption = "json",
) -> None:
    """Load every query and the user metrics in parallel.

    Sources fail independently: failures are listed under "errors" while
    everything else is still shown.

    Examples:

        lingo dashboard
        lingo dashboard --format table --no-analytics
    """
    dashboard = get_dashboard(ctx)
    with status_spinner(ctx, "Loading dashboard..."):
        snapshot = dashboard.load(
            force_refresh=refresh, include_analytics=not no_analytics
        )

    if format == "table":
        output_result(ctx, kpi_rows(snapshot.kpis()), format=format)
        summary = snapshot.to_dict()
        fees = summary["total_fees"]
        console.print(
            f"Total fees ${fees['total']:,.2f} "
            f"(trading ${fees['trading']:,.2f}, LP ${fees['lp']:,.2f})"
        )
        console.print(f"Overall retention {summary['overall_retention']}%")
        if snapshot.user_metrics is not None:
            m = snapshot.user_metrics
            console.print(
                f"DAU {m.current_dau}  WAU {m.current_wau}  MAU {m.current_mau}"
            )
    elif format == "plain":
        for kpi in snapshot.kpis():
            console.print(f"{kpi.label}: {format_kpi_value(kpi)}", highlight=False)
    else:
        output_result(ctx, snapshot.to_dict(), format=format)

    for source, message in snapshot.errors.items():
        err_console.print(f"[yellow]{source}:[/yellow] {message}")
    if strict and snapshot.errors:
        raise typer.Exit(ExitCode.GENERAL_ERROR)
