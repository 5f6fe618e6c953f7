"""Shared CLI option definitions.

Provides reusable Annotated type aliases for common CLI options
to avoid duplication across commands.
"""

from __future__ import annotations

from typing import Annotated, Literal

import typer

# Output format type for formatting command output
OutputFormat = Literal["json", "table", "plain"]

FormatOption = Annotated[
    OutputFormat,
    typer.Option(
        "--format",
        "-f",
        help="Output format: json, table, plain.",
    ),
]

RefreshOption = Annotated[
    bool,
    typer.Option(
        "--refresh",
        "-r",
        help="Bypass the 24h cache and read fresh results.",
    ),
]
