"""CLI utility functions and error handling.

This module provides shared utilities for the CLI:
- ExitCode enum for standardized exit codes
- handle_errors decorator for exception-to-exit-code mapping
- Console instances for stdout/stderr separation
- Lazy settings/dashboard initialization helpers
- status_spinner context manager for long-running operations
"""

from __future__ import annotations

import functools
import logging
import os
import sys
from collections.abc import Callable, Generator
from contextlib import contextmanager
from enum import IntEnum
from typing import TYPE_CHECKING, Any, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler

from lingo_metrics.exceptions import (
    AuthenticationError,
    ConfigError,
    LingoMetricsError,
    NetworkError,
    QueryExecutionError,
    QueryNotFinishedError,
    UnknownQueryError,
)

if TYPE_CHECKING:
    from lingo_metrics._internal.config import ConfigManager, Settings
    from lingo_metrics.dashboard import Dashboard

# Console instances for stdout/stderr separation
# Data output goes to stdout; progress/errors go to stderr
console = Console()
err_console = Console(stderr=True, no_color=bool(os.environ.get("NO_COLOR")))


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands.

    Exit codes follow Unix conventions:
    - 0: Success
    - 1-5: Application-specific errors
    - 130: Interrupted by SIGINT (Ctrl+C)
    """

    SUCCESS = 0
    GENERAL_ERROR = 1
    AUTH_ERROR = 2
    INVALID_ARGS = 3
    NOT_FOUND = 4
    NETWORK_ERROR = 5
    INTERRUPTED = 130


F = TypeVar("F", bound=Callable[..., Any])


def handle_errors(func: F) -> F:
    """Decorator to convert library exceptions to CLI exit codes.

    Maps LingoMetricsError subclasses to appropriate exit codes and
    displays formatted error messages to stderr.

    Usage:
        @handle_errors
        def my_command(ctx: typer.Context):
            dashboard = get_dashboard(ctx)
            output_result(ctx, [k.to_dict() for k in dashboard.kpis()])
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except AuthenticationError as e:
            err_console.print(f"[red]Authentication error:[/red] {e.message}")
            if e.request_url:
                err_console.print(f"[dim]URL: {e.request_url}[/dim]")
            raise typer.Exit(ExitCode.AUTH_ERROR) from None
        except UnknownQueryError as e:
            err_console.print(f"[red]Unknown query:[/red] {e.name}")
            err_console.print("Run 'lingo query list' to see registered queries.")
            raise typer.Exit(ExitCode.NOT_FOUND) from None
        except ConfigError as e:
            err_console.print(f"[red]Configuration error:[/red] {e.message}")
            err_console.print(
                "[yellow]Hint:[/yellow] Set DUNE_API_KEY or run 'lingo config init'."
            )
            raise typer.Exit(ExitCode.GENERAL_ERROR) from None
        except NetworkError as e:
            err_console.print(f"[red]Network error:[/red] {e.message}")
            if e.request_url:
                endpoint = e.request_url.split("?")[0]
                err_console.print(f"[dim]Endpoint: {endpoint}[/dim]")
            raise typer.Exit(ExitCode.NETWORK_ERROR) from None
        except QueryNotFinishedError as e:
            err_console.print(f"[yellow]Query {e.query_id}:[/yellow] {e.message}")
            err_console.print(
                "[yellow]Hint:[/yellow] Wait for the execution or set max_wait "
                "to poll until it finishes."
            )
            raise typer.Exit(ExitCode.GENERAL_ERROR) from None
        except QueryExecutionError as e:
            err_console.print(f"[red]Query {e.query_id} failed:[/red] {e.message}")
            raise typer.Exit(ExitCode.GENERAL_ERROR) from None
        except LingoMetricsError as e:
            err_console.print(f"[red]Error:[/red] {e.message}")
            raise typer.Exit(ExitCode.GENERAL_ERROR) from None
        except ValueError as e:
            err_console.print(f"[red]Invalid argument:[/red] {e}")
            raise typer.Exit(ExitCode.INVALID_ARGS) from None

    return wrapper  # type: ignore[return-value]


def setup_logging(verbose: bool) -> None:
    """Route library logs to stderr through rich when --verbose is set."""
    if not verbose:
        return
    handler = RichHandler(console=err_console, show_path=False, rich_tracebacks=True)
    logger = logging.getLogger("lingo_metrics")
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)


def get_config(ctx: typer.Context) -> ConfigManager:
    """Get or create ConfigManager from context.

    Respects the --config global option. The instance is cached in the
    context for reuse.
    """
    from lingo_metrics._internal.config import ConfigManager

    if ctx.obj.get("config") is None:
        ctx.obj["config"] = ConfigManager(ctx.obj.get("config_path"))
    config: ConfigManager = ctx.obj["config"]
    return config


def get_settings(ctx: typer.Context) -> Settings:
    """Resolve settings once per invocation.

    Raises:
        ConfigError: If the config file or a value is invalid.
    """
    if ctx.obj.get("settings") is None:
        overrides: dict[str, Any] = {}
        if ctx.obj.get("cache_path") is not None:
            overrides["cache_path"] = ctx.obj["cache_path"]
        ctx.obj["settings"] = get_config(ctx).load(**overrides)
    settings: Settings = ctx.obj["settings"]
    return settings


def get_dashboard(ctx: typer.Context) -> Dashboard:
    """Get or create the Dashboard for this invocation.

    The dashboard is closed when the command finishes.
    """
    from lingo_metrics.dashboard import Dashboard

    if ctx.obj.get("dashboard") is None:
        dashboard = Dashboard(get_settings(ctx))
        ctx.obj["dashboard"] = dashboard
        ctx.call_on_close(dashboard.close)
    result: Dashboard = ctx.obj["dashboard"]
    return result


def output_result(
    ctx: typer.Context,
    data: dict[str, Any] | list[Any],
    columns: list[str] | None = None,
    *,
    format: str | None = None,
) -> None:
    """Output data in the requested format.

    Routes data to the appropriate formatter based on the --format
    option. Supports json, table, and plain formats.

    Args:
        ctx: Typer context with global options in obj dict.
        data: Data to output (dict or list).
        columns: Column names for table format (auto-detected if None).
        format: Output format. If None, falls back to ctx.obj["format"] or "json".
    """
    from lingo_metrics.cli.formatters import format_json, format_plain, format_table

    fmt = format if format is not None else ctx.obj.get("format", "json")

    if fmt == "table":
        console.print(format_table(data, columns))
    elif fmt == "plain":
        console.print(format_plain(data), highlight=False)
    else:
        console.print(format_json(data), highlight=False)


@contextmanager
def status_spinner(ctx: typer.Context, message: str) -> Generator[None, None, None]:
    """Context manager to show a spinner for long-running operations.

    Shows an animated spinner on stderr while the wrapped operation runs.
    Skipped with --quiet and in non-TTY environments.

    Example:
        with status_spinner(ctx, "Loading dashboard..."):
            snapshot = dashboard.load()
    """
    quiet = ctx.obj.get("quiet", False) if ctx.obj else False

    if quiet or not sys.stderr.isatty():
        yield
    else:
        with err_console.status(message):
            yield
