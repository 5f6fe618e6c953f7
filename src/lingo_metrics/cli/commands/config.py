"""Configuration commands.

This module provides commands for the config file:
- init: Write a config file with defaults
- show: Display resolved settings (secrets redacted)
- set: Store a single value
"""

from __future__ import annotations

from typing import Annotated

import typer

from lingo_metrics.cli.options import FormatOption
from lingo_metrics.cli.utils import (
    err_console,
    get_config,
    get_settings,
    handle_errors,
    output_result,
)

config_app = typer.Typer(
    name="config",
    help="Manage configuration.",
    no_args_is_help=True,
    rich_markup_mode="markdown",
)


@config_app.command("init")
@handle_errors
def init(
    ctx: typer.Context,
    dune_api_key: Annotated[
        str | None,
        typer.Option("--dune-api-key", help="Dune API key to store."),
    ] = None,
    proxy_url: Annotated[
        str | None,
        typer.Option("--proxy-url", help="Base URL of the analytics proxy."),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite an existing config file."),
    ] = False,
) -> None:
    """Write a config file populated with defaults.

    Secrets can also come from the environment (DUNE_API_KEY,
    MIXPANEL_API_SECRET, CRON_SECRET), which is preferred over storing
    them on disk.

    Examples:

        lingo config init
        lingo config init --proxy-url https://dashboard.example.com --force
    """
    path = get_config(ctx).init(
        force=force, dune_api_key=dune_api_key, proxy_url=proxy_url
    )
    err_console.print(f"[green]Wrote config to {path}[/green]")


@config_app.command("show")
@handle_errors
def show(
    ctx: typer.Context,
    format: FormatOption = "json",
) -> None:
    """Show the resolved settings with secrets redacted.

    Examples:

        lingo config show
        lingo --config ./dev.toml config show
    """
    settings = get_settings(ctx)
    data = settings.to_dict()
    if format == "table":
        rows = [{"setting": k, "value": v} for k, v in data.items()]
        output_result(ctx, rows, format=format)
    else:
        output_result(ctx, data, format=format)


@config_app.command("set")
@handle_errors
def set_value(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Setting name, e.g. proxy_url.")],
    value: Annotated[str, typer.Argument(help="Value to store.")],
) -> None:
    """Store a single setting in the config file.

    Examples:

        lingo config set proxy_url https://dashboard.example.com
        lingo config set max_wait 60
    """
    config = get_config(ctx)
    config.load(**{key: value})
    config.set_value(key, value)
    err_console.print(f"[green]Set {key} in {config.config_path}[/green]")
