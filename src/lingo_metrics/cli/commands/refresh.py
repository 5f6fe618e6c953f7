"""Refresh command: re-execute the refreshable Dune queries."""

from __future__ import annotations

import typer

from lingo_metrics._internal.services.refresh_service import RefreshService
from lingo_metrics.cli.options import FormatOption
from lingo_metrics.cli.utils import (
    ExitCode,
    err_console,
    get_settings,
    handle_errors,
    output_result,
    status_spinner,
)


@handle_errors
def refresh_command(
    ctx: typer.Context,
    format: FormatOption = "json",
) -> None:
    """Trigger fresh executions of every refreshable query.

    Same as calling the proxy's /api/refresh-queries endpoint, but runs
    locally with your own API key. Exits with code 1 if any query could
    not be triggered.

    Examples:

        lingo refresh
        lingo refresh --format table
    """
    service = RefreshService(get_settings(ctx))
    try:
        with status_spinner(ctx, "Triggering query executions..."):
            summary = service.refresh_all()
    finally:
        service.close()

    if format == "table":
        output_result(ctx, [r.to_dict() for r in summary.results], format=format)
    else:
        output_result(ctx, summary.to_dict(), format=format)
    err_console.print(summary.message)
    if summary.failed:
        raise typer.Exit(ExitCode.GENERAL_ERROR)
