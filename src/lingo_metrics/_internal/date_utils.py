"""Date parsing and labelling helpers.

Dune renders timestamps as "2024-12-11 00:00:00.000 UTC"; Mixpanel uses
plain ISO dates or datetimes. These helpers normalise both and produce the
month keys and labels used by the monthly rollups.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

_MONTH_ABBR = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)


def parse_dune_date(date_str: str) -> str:
    """Return the date portion of a Dune timestamp.

    Example:
        ```python
        parse_dune_date("2024-12-11 00:00:00.000 UTC")  # "2024-12-11"
        parse_dune_date("2024-12-11")                   # "2024-12-11"
        ```
    """
    return date_str.strip().split(" ")[0].split("T")[0]


def to_date(value: str) -> date:
    """Parse a Dune or ISO date/datetime string into a date.

    Raises:
        ValueError: If the string holds no YYYY-MM-DD date.
    """
    return date.fromisoformat(parse_dune_date(value))


def month_key(value: str) -> str:
    """Return the calendar month of a date string as "YYYY-MM"."""
    d = to_date(value)
    return f"{d.year:04d}-{d.month:02d}"


def month_label_from_key(key: str) -> str:
    """Turn "2024-01" into "Jan 2024"."""
    year, month = key.split("-")[:2]
    return f"{_MONTH_ABBR[int(month) - 1]} {int(year)}"


def month_label(value: str) -> str:
    """Label the month containing a date string, e.g. "Jan 2024"."""
    return month_label_from_key(month_key(value))


def short_date_label(value: str) -> str:
    """Label a date as "Jan 5"."""
    d = to_date(value)
    return f"{_MONTH_ABBR[d.month - 1]} {d.day}"


def trailing_window(days: int, *, today: date | None = None) -> tuple[str, str]:
    """Return (from_date, to_date) covering the last ``days`` days.

    Args:
        days: Window length; from_date is ``today - days``.
        today: Reference date. Defaults to the current UTC date.

    Returns:
        Tuple of YYYY-MM-DD strings.
    """
    end = today or datetime.now(UTC).date()
    start = end - timedelta(days=days)
    return start.isoformat(), end.isoformat()
