"""Metrics commands for dashboard aggregates.

This module provides one command per dashboard panel:
- kpis: Headline KPIs with trend
- trend: Daily total staked
- tvl: Weekly TVL and active stakers
- stakers-growth: Weekly new vs returning stakers
- monthly: Month-over-month comparison
- retention: Monthly cohort retention
- fees: Trading and LP fees
- claims: APY reward claims
- flow: Monthly staking flow
- leaderboard: Top stakers
- users: DAU/WAU/MAU from product analytics
- events: Monthly event counts from product analytics
"""

from __future__ import annotations

from typing import Annotated

import typer

from lingo_metrics.cli.formatters import kpi_rows
from lingo_metrics.cli.options import FormatOption, RefreshOption
from lingo_metrics.cli.utils import (
    console,
    get_dashboard,
    handle_errors,
    output_result,
    status_spinner,
)

metrics_app = typer.Typer(
    name="metrics",
    help="Compute dashboard aggregates.",
    no_args_is_help=True,
    rich_markup_mode="markdown",
)


@metrics_app.command("kpis")
@handle_errors
def kpis(
    ctx: typer.Context,
    refresh: RefreshOption = False,
    format: FormatOption = "json",
) -> None:
    """Show the headline KPIs.

    Total LINGO staked, active stakers, new stakers this week, and the
    weighted retention of the last eight cohorts, each with its trend.

    Examples:

        lingo metrics kpis
        lingo metrics kpis --format table
    """
    dashboard = get_dashboard(ctx)
    with status_spinner(ctx, "Computing KPIs..."):
        result = dashboard.kpis(force_refresh=refresh)
    if format == "table":
        output_result(ctx, kpi_rows(result), format=format)
    else:
        output_result(ctx, [k.to_dict() for k in result], format=format)


@metrics_app.command("trend")
@handle_errors
def trend(
    ctx: typer.Context,
    refresh: RefreshOption = False,
    format: FormatOption = "json",
) -> None:
    """Show total LINGO staked per day."""
    dashboard = get_dashboard(ctx)
    with status_spinner(ctx, "Loading staking trend..."):
        points = dashboard.staking_trend(force_refresh=refresh)
    output_result(ctx, [p.to_dict() for p in points], format=format)


@metrics_app.command("tvl")
@handle_errors
def tvl(
    ctx: typer.Context,
    refresh: RefreshOption = False,
    format: FormatOption = "json",
) -> None:
    """Show weekly TVL and active stakers."""
    dashboard = get_dashboard(ctx)
    with status_spinner(ctx, "Loading weekly TVL..."):
        points = dashboard.weekly_tvl(force_refresh=refresh)
    output_result(ctx, [p.to_dict() for p in points], format=format)


@metrics_app.command("stakers-growth")
@handle_errors
def stakers_growth(
    ctx: typer.Context,
    refresh: RefreshOption = False,
    format: FormatOption = "json",
) -> None:
    """Show new vs returning stakers per week."""
    dashboard = get_dashboard(ctx)
    with status_spinner(ctx, "Loading stakers..."):
        points = dashboard.new_vs_returning(force_refresh=refresh)
    output_result(ctx, [p.to_dict() for p in points], format=format)


@metrics_app.command("monthly")
@handle_errors
def monthly(
    ctx: typer.Context,
    months: Annotated[
        int,
        typer.Option("--months", "-m", help="Number of recent months to show.", min=1),
    ] = 6,
    refresh: RefreshOption = False,
    format: FormatOption = "json",
) -> None:
    """Compare month-end total staked month over month.

    Examples:

        lingo metrics monthly
        lingo metrics monthly --months 12 --format table
    """
    dashboard = get_dashboard(ctx)
    with status_spinner(ctx, "Comparing months..."):
        points = dashboard.monthly_comparison(months, force_refresh=refresh)
    output_result(ctx, [p.to_dict() for p in points], format=format)


@metrics_app.command("retention")
@handle_errors
def retention(
    ctx: typer.Context,
    refresh: RefreshOption = False,
    format: FormatOption = "json",
) -> None:
    """Show weighted cohort retention per calendar month."""
    from lingo_metrics._internal.transforms import overall_retention

    dashboard = get_dashboard(ctx)
    with status_spinner(ctx, "Loading cohorts..."):
        rollups = dashboard.retention(force_refresh=refresh)
    if format == "json":
        output_result(
            ctx,
            {
                "months": [r.to_dict() for r in rollups],
                "overall_retention_pct": overall_retention(rollups),
            },
            format=format,
        )
    else:
        output_result(ctx, [r.to_dict() for r in rollups], format=format)


@metrics_app.command("fees")
@handle_errors
def fees(
    ctx: typer.Context,
    monthly: Annotated[
        bool,
        typer.Option("--monthly", help="Show the monthly breakdown instead of totals."),
    ] = False,
    refresh: RefreshOption = False,
    format: FormatOption = "json",
) -> None:
    """Show protocol fee totals (trading + LP) or the monthly breakdown.

    Examples:

        lingo metrics fees
        lingo metrics fees --monthly --format table
    """
    dashboard = get_dashboard(ctx)
    with status_spinner(ctx, "Loading fees..."):
        if monthly:
            points = dashboard.monthly_fees(force_refresh=refresh)
            output_result(ctx, [p.to_dict() for p in points], format=format)
        else:
            totals = dashboard.total_fees(force_refresh=refresh)
            output_result(ctx, totals.to_dict(), format=format)


@metrics_app.command("claims")
@handle_errors
def claims(
    ctx: typer.Context,
    totals: Annotated[
        bool,
        typer.Option("--totals", help="Show totals across all months."),
    ] = False,
    refresh: RefreshOption = False,
    format: FormatOption = "json",
) -> None:
    """Show APY reward claims per month, or their totals."""
    dashboard = get_dashboard(ctx)
    with status_spinner(ctx, "Loading claims..."):
        if totals:
            data = dashboard.apy_claims_totals(force_refresh=refresh).to_dict()
            output_result(ctx, data, format=format)
        else:
            points = dashboard.apy_claims(force_refresh=refresh)
            output_result(ctx, [p.to_dict() for p in points], format=format)


@metrics_app.command("flow")
@handle_errors
def flow(
    ctx: typer.Context,
    refresh: RefreshOption = False,
    format: FormatOption = "json",
) -> None:
    """Show LINGO staked and unstaked per month."""
    dashboard = get_dashboard(ctx)
    with status_spinner(ctx, "Loading staking flow..."):
        points = dashboard.staking_flow(force_refresh=refresh)
    output_result(ctx, [p.to_dict() for p in points], format=format)


@metrics_app.command("leaderboard")
@handle_errors
def leaderboard(
    ctx: typer.Context,
    top: Annotated[
        int | None,
        typer.Option("--top", "-n", help="Only show the first N stakers.", min=1),
    ] = None,
    refresh: RefreshOption = False,
    format: FormatOption = "json",
) -> None:
    """Show the top stakers leaderboard.

    Examples:

        lingo metrics leaderboard --top 10 --format table
    """
    dashboard = get_dashboard(ctx)
    with status_spinner(ctx, "Loading leaderboard..."):
        stakers = dashboard.top_stakers(force_refresh=refresh)
    if top is not None:
        stakers = stakers[:top]
    columns = (
        ["rank", "display_wallet", "lingo_staked", "usd_value", "pct_of_total"]
        if format == "table"
        else None
    )
    output_result(ctx, [s.to_dict() for s in stakers], columns, format=format)


@metrics_app.command("users")
@handle_errors
def users(
    ctx: typer.Context,
    refresh: RefreshOption = False,
    format: FormatOption = "json",
) -> None:
    """Show DAU trend plus current DAU, WAU and MAU.

    WAU and MAU sum per-bucket unique counts over trailing windows, so
    they approximate (and may overcount) true unique users.
    """
    dashboard = get_dashboard(ctx)
    with status_spinner(ctx, "Loading user metrics..."):
        metrics = dashboard.user_metrics(force_refresh=refresh)
    if format == "table":
        console.print(
            f"DAU {metrics.current_dau}  WAU {metrics.current_wau}  "
            f"MAU {metrics.current_mau}  avg DAU {metrics.avg_dau}"
        )
        trend = [p.to_dict() for p in metrics.dau_trend]
        output_result(ctx, trend, ["date", "value"], format=format)
    else:
        output_result(ctx, metrics.to_dict(), format=format)


@metrics_app.command("events")
@handle_errors
def events(
    ctx: typer.Context,
    refresh: RefreshOption = False,
    format: FormatOption = "json",
) -> None:
    """Show monthly counts of the configured event groups."""
    dashboard = get_dashboard(ctx)
    with status_spinner(ctx, "Loading event counts..."):
        result = dashboard.event_counts(force_refresh=refresh)
    if format == "table":
        rows = [{"month": m.month, **m.counts} for m in result.months]
        output_result(ctx, rows, ["month", *result.events], format=format)
    else:
        output_result(ctx, result.to_dict(), format=format)
