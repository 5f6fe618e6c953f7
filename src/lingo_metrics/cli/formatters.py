"""Output formatters for CLI commands.

This module provides formatting functions for different output formats:
- JSON: Pretty-printed JSON
- Table: Rich ASCII table
- Plain: Minimal text output (one item per line)

plus display helpers that render KPI values the way the dashboard does.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any

from rich.table import Table

from lingo_metrics._internal.formatting import (
    format_currency,
    format_number,
    format_percent,
    format_with_commas,
)
from lingo_metrics.types import KPI

# Columns rendered as abbreviated USD amounts in tables
_CURRENCY_COLUMNS = frozenset({"usd", "usd_value", "total_usd", "cumulative"})


def _json_serializer(obj: Any) -> str:
    """Custom JSON serializer for non-standard types."""
    if isinstance(obj, datetime | date):
        return obj.isoformat()
    return str(obj)


def format_json(data: dict[str, Any] | list[Any]) -> str:
    """Format data as pretty-printed JSON with 2-space indentation."""
    return json.dumps(data, indent=2, default=_json_serializer, ensure_ascii=False)


def format_table(
    data: dict[str, Any] | list[Any],
    columns: list[str] | None = None,
) -> Table:
    """Format data as a Rich ASCII table.

    Args:
        data: Data to format (dict or list of dicts).
        columns: Column names to display. If None, auto-detected from data.

    Returns:
        Rich Table object ready for printing.
    """
    table = Table(show_header=True, header_style="bold")

    if isinstance(data, dict):
        data = [data]

    if not data:
        return table

    if columns is None:
        first_item = data[0]
        columns = list(first_item.keys()) if isinstance(first_item, dict) else ["value"]

    for col in columns:
        table.add_column(col.upper().replace("_", " "))

    for item in data:
        if isinstance(item, dict):
            row = [_format_cell(item.get(col, ""), col) for col in columns]
        else:
            row = [_format_cell(item)]
        table.add_row(*row)

    return table


def _format_cell(value: Any, column: str | None = None) -> str:
    """Format a single cell value for table display."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if column in _CURRENCY_COLUMNS and isinstance(value, int | float):
        return format_currency(value)
    if isinstance(value, float):
        return format_with_commas(round(value, 2))
    if isinstance(value, int):
        return format_with_commas(value)
    if isinstance(value, list | dict):
        return json.dumps(value, default=_json_serializer, ensure_ascii=False)
    return str(value)


def format_plain(data: dict[str, Any] | list[Any]) -> str:
    """Format data as minimal plain text.

    For lists, outputs one item per line (the "label", "month", "date" or
    "name" field when present). For dicts, outputs key=value pairs.
    """
    if isinstance(data, list):
        lines = []
        for item in data:
            if isinstance(item, dict):
                for key in ("label", "name", "month", "week", "date"):
                    if key in item:
                        lines.append(str(item[key]))
                        break
                else:
                    lines.append(str(next(iter(item.values()))) if item else "")
            else:
                lines.append(str(item))
        return "\n".join(lines)

    return "\n".join(f"{k}={v}" for k, v in data.items())


def format_kpi_value(kpi: KPI) -> str:
    """Render a KPI value with its prefix and suffix, e.g. "1.5M LINGO"."""
    if kpi.format == "percent":
        body = format_percent(kpi.value)
    elif kpi.format == "currency":
        body = format_number(kpi.value, 2)
    elif abs(kpi.value) >= 1_000:
        body = format_number(kpi.value)
    else:
        body = format_with_commas(kpi.value)
    return f"{kpi.prefix}{body}{kpi.suffix}"


def format_kpi_trend(kpi: KPI) -> str:
    """Render a KPI trend as an arrow and percent change, e.g. "▲ 4.2%"."""
    arrow = {"up": "[green]▲[/green]", "down": "[red]▼[/red]"}.get(kpi.trend, "•")
    return f"{arrow} {format_percent(abs(kpi.trend_value))}"


def kpi_rows(kpis: list[KPI]) -> list[dict[str, str]]:
    """KPIs as display rows for table output."""
    return [
        {"kpi": k.label, "value": format_kpi_value(k), "trend": format_kpi_trend(k)}
        for k in kpis
    ]
