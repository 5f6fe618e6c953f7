"""Shared Literal type aliases.

These types are exported from the public API and can be used by library
consumers for their own type hints.
"""

from __future__ import annotations

from typing import Literal

# Execution states reported by the Dune API
QueryState = Literal[
    "QUERY_STATE_PENDING",
    "QUERY_STATE_EXECUTING",
    "QUERY_STATE_COMPLETED",
    "QUERY_STATE_FAILED",
]

# KPI trend direction
Trend = Literal["up", "down", "neutral"]

# KPI display format
KPIFormat = Literal["number", "currency", "percent"]

# Report types served by the analytics proxy
AnalyticsReportType = Literal["dau", "wau", "mau", "events"]

# Lifecycle of a fetch target (query handle or analytics handle)
FetchStatus = Literal["absent", "loading", "loaded", "error"]

__all__ = ["AnalyticsReportType", "FetchStatus", "KPIFormat", "QueryState", "Trend"]
