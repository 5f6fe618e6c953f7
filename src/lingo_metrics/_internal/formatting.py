"""Display formatting for numbers, dates, and wallet addresses.

Missing values (None or NaN) render as an em dash so tables line up
without special-casing empty cells.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime

from lingo_metrics._internal.date_utils import short_date_label

MISSING = "—"

_LEADING_ZERO_PADDING = re.compile(r"^0x0+")


def _abbreviate(num: float, decimals: int) -> str:
    abs_num = abs(num)
    if abs_num >= 1_000_000_000:
        return f"{num / 1_000_000_000:.{decimals}f}B"
    if abs_num >= 1_000_000:
        return f"{num / 1_000_000:.{decimals}f}M"
    if abs_num >= 1_000:
        return f"{num / 1_000:.{decimals}f}K"
    return f"{num:.{decimals}f}"


def format_number(num: float | None, decimals: int = 1) -> str:
    """Abbreviate large numbers: 1500 -> "1.5K", 2_000_000 -> "2.0M"."""
    if num is None or math.isnan(num):
        return MISSING
    return _abbreviate(num, decimals)


def format_currency(num: float | None, decimals: int = 2) -> str:
    """Abbreviated USD amount: 1500 -> "$1.50K"."""
    if num is None or math.isnan(num):
        return MISSING
    return "$" + _abbreviate(num, decimals)


def format_with_commas(num: float | None) -> str:
    """Group thousands: 1234567 -> "1,234,567"."""
    if num is None or math.isnan(num):
        return MISSING
    if float(num).is_integer():
        return f"{int(num):,}"
    return f"{num:,.3f}".rstrip("0").rstrip(".")


def format_percent(num: float | None, decimals: int = 1) -> str:
    """Format a percentage value: 12.345 -> "12.3%"."""
    if num is None or math.isnan(num):
        return MISSING
    return f"{num:.{decimals}f}%"


def _coerce_date(value: str | date) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).date()
    except ValueError:
        return None


def format_chart_date(value: str | date) -> str:
    """Short chart label, e.g. "Jan 5". Unparseable input is returned as-is."""
    d = _coerce_date(value)
    if d is None:
        return str(value)
    return short_date_label(d.isoformat())


def format_week_date(value: str | date) -> str:
    """Week label, e.g. "Week of Jan 5"."""
    d = _coerce_date(value)
    if d is None:
        return str(value)
    return "Week of " + short_date_label(d.isoformat())


def normalize_wallet(wallet: str) -> str:
    """Strip the zero padding Dune adds after the 0x prefix.

    Example:
        ```python
        normalize_wallet("0x000000000000000000000000000000000000dEaD")  # "0xdEaD"
        ```
    """
    return _LEADING_ZERO_PADDING.sub("0x", wallet)


def truncate_wallet(wallet: str | None) -> str:
    """Normalize a wallet and keep the first 6 and last 4 characters if longer than 13."""
    if not wallet:
        return MISSING
    clean = normalize_wallet(wallet)
    if len(clean) <= 13:
        return clean
    return f"{clean[:6]}...{clean[-4:]}"


def calculate_change(current: float, previous: float) -> float:
    """Percent change from previous to current.

    A zero baseline yields 100 for any positive current value, else 0.
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100
