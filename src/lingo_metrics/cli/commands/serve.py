"""Serve command: run the analytics proxy locally."""

from __future__ import annotations

from typing import Annotated

import typer

from lingo_metrics.cli.utils import err_console, get_settings, handle_errors


@handle_errors
def serve_command(
    ctx: typer.Context,
    host: Annotated[
        str,
        typer.Option("--host", help="Interface to bind."),
    ] = "127.0.0.1",
    port: Annotated[
        int,
        typer.Option("--port", "-p", help="Port to listen on."),
    ] = 3000,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable the Flask debugger and reloader."),
    ] = False,
) -> None:
    """Run the analytics proxy and refresh endpoints.

    Serves /api/analytics and /api/refresh-queries with Flask's development
    server. Use a WSGI server with lingo_metrics.proxy:create_app in
    production.

    Examples:

        lingo serve
        lingo serve --port 8080
    """
    from lingo_metrics.proxy import create_app

    app = create_app(get_settings(ctx))
    err_console.print(f"[green]Serving proxy on http://{host}:{port}[/green]")
    app.run(host=host, port=port, debug=debug)
