"""Transform functions for staking and user-activity data.

Pure functions that reshape Dune rows and Mixpanel responses into the
aggregates the dashboard renders. None of them perform I/O or mutate their
inputs, and every one of them accepts ``None`` (a source that has not
loaded or failed) and returns an empty list or a zero value for it.

Rows may be given either as typed row models or as raw dicts straight
from the API; raw dicts are validated into the query's row model first.

Conventions:
    - Source rows are assumed to be in ascending date order. "Latest" and
      "previous" values are taken positionally from the end.
    - Percentages are rounded half-up to one decimal; a zero denominator
      yields 0.
    - Cohort retention is aggregated as a weighted average: cohort sizes
      and retained counts are summed before dividing.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from typing import Any, TypeVar

from lingo_metrics._internal.date_utils import (
    month_key,
    month_label,
    month_label_from_key,
    parse_dune_date,
    short_date_label,
    to_date,
)
from lingo_metrics._internal.formatting import normalize_wallet, truncate_wallet
from lingo_metrics._literal_types import KPIFormat, Trend
from lingo_metrics.rows import (
    APYClaimsRow,
    CohortRetentionRow,
    DuneRow,
    LPFeesRow,
    MonthlyStakingFlowRow,
    TopStakerRow,
    TotalStakedRow,
    TradingFeesRow,
    WeeklyNewStakersRow,
    WeeklyStatsRow,
    parse_rows,
)
from lingo_metrics.types import (
    KPI,
    APYClaimsPoint,
    APYClaimsTotals,
    CumulativeFeesPoint,
    DailyMetric,
    MonthlyComparison,
    MonthlyEventCount,
    MonthlyFeesPoint,
    MonthlyRetention,
    NewVsReturningPoint,
    StakingFlowPoint,
    StakingTrendPoint,
    TopStakerView,
    TotalFees,
    UserMetrics,
    WeeklyTVLPoint,
)

_logger = logging.getLogger(__name__)

RowT = TypeVar("RowT", bound=DuneRow)

# Number of most recent cohorts averaged for the retention KPI
RETENTION_KPI_WINDOW = 8

# Series name of the DAU line in the saved Insights report
DAU_SERIES_NAME = "A. DAU"


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with halves going up, e.g. 0.05 -> 0.1 at one digit.

    Python's ``round`` uses banker's rounding; dashboards expect 2.5 -> 3.
    """
    if not math.isfinite(value):
        return value
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def _typed(model: type[RowT], rows: Sequence[RowT | Mapping[str, Any]] | None) -> list[RowT]:
    if not rows:
        return []
    if all(isinstance(r, model) for r in rows):
        return list(rows)  # type: ignore[arg-type]
    return parse_rows(
        model, [r.model_dump() if isinstance(r, DuneRow) else dict(r) for r in rows]
    )


def _safe_month_label(value: str) -> str:
    try:
        return month_label(value)
    except ValueError:
        return value


def _trend(current: float, previous: float | None) -> Trend:
    if previous is None or current == previous:
        return "neutral"
    return "up" if current > previous else "down"


def _pct_delta(current: float, previous: float | None) -> float:
    if previous is None or previous == 0:
        return 0.0
    return (current - previous) / previous * 100


# =============================================================================
# KPIs
# =============================================================================


def calculate_kpi(
    label: str,
    values: Sequence[float],
    *,
    format: KPIFormat = "number",
    prefix: str = "",
    suffix: str = "",
) -> KPI:
    """Build a KPI from a chronological series.

    The last element is compared to the one before it. With fewer than two
    points the trend is neutral and the delta 0.

    Args:
        label: KPI label.
        values: Series in ascending time order.
        format: Display format hint.
        prefix: Display prefix (e.g. "$").
        suffix: Display suffix (e.g. " LINGO").

    Returns:
        KPI with value, previous value, trend and percent delta.
    """
    if not values:
        return KPI(label=label, value=0, format=format, prefix=prefix, suffix=suffix)
    current = values[-1]
    previous = values[-2] if len(values) >= 2 else None
    return KPI(
        label=label,
        value=current,
        previous_value=previous,
        trend=_trend(current, previous),
        trend_value=_pct_delta(current, previous),
        format=format,
        prefix=prefix,
        suffix=suffix,
    )


def calculate_kpis(
    total_staked: Sequence[TotalStakedRow | Mapping[str, Any]] | None,
    weekly_stats: Sequence[WeeklyStatsRow | Mapping[str, Any]] | None,
    weekly_new_stakers: Sequence[WeeklyNewStakersRow | Mapping[str, Any]] | None,
    cohort_retention: Sequence[CohortRetentionRow | Mapping[str, Any]] | None,
) -> list[KPI]:
    """Compute the four headline KPIs.

    Returns, in order: total LINGO staked (day over day), active stakers
    (week over week), new stakers this week (week over week) and retention
    rate (weighted retention of the last eight cohorts against the eight
    before them; the previous value defaults to the current one when there
    is no earlier window).
    """
    staked = _typed(TotalStakedRow, total_staked)
    stats = _typed(WeeklyStatsRow, weekly_stats)
    new = _typed(WeeklyNewStakersRow, weekly_new_stakers)
    cohorts = _typed(CohortRetentionRow, cohort_retention)

    recent = cohorts[-RETENTION_KPI_WINDOW:]
    earlier = cohorts[-2 * RETENTION_KPI_WINDOW : -RETENTION_KPI_WINDOW]
    retention = weighted_retention(recent)
    previous_retention = weighted_retention(earlier) if earlier else retention

    return [
        calculate_kpi(
            "Total LINGO Staked",
            [r.total_staked for r in staked],
            suffix=" LINGO",
        ),
        calculate_kpi("Active Stakers", [r.active_stakers for r in stats]),
        calculate_kpi("New This Week", [r.new_stakers for r in new]),
        KPI(
            label="Retention Rate",
            value=retention,
            previous_value=previous_retention if recent else None,
            trend=_trend(retention, previous_retention),
            trend_value=_pct_delta(retention, previous_retention),
            format="percent",
        ),
    ]


# =============================================================================
# Retention
# =============================================================================


def _retained_users(row: CohortRetentionRow) -> int:
    return int(round_half_up(row.cohort_size * row.pct_retained / 100))


def weighted_retention(
    cohorts: Sequence[CohortRetentionRow | Mapping[str, Any]] | None,
) -> float:
    """Retention % across cohorts, weighting each cohort by its size.

    Returns:
        sum(retained) / sum(cohort_size) * 100, rounded to one decimal,
        or 0 when there are no users.
    """
    rows = _typed(CohortRetentionRow, cohorts)
    total = sum(r.cohort_size for r in rows)
    retained = sum(_retained_users(r) for r in rows)
    return retention_pct(retained, total)


def retention_pct(retained: float, cohort_size: float) -> float:
    """``retained / cohort_size * 100`` rounded to one decimal; 0 if size is 0."""
    if cohort_size <= 0:
        return 0.0
    return round_half_up(retained / cohort_size * 100, 1)


def transform_retention_data(
    rows: Sequence[CohortRetentionRow | Mapping[str, Any]] | None,
) -> list[MonthlyRetention]:
    """Roll weekly cohorts up into calendar months.

    Cohort sizes and retained users are summed per month before dividing,
    so large cohorts weigh more than small ones. Each cohort's retained
    count is ``cohort_size * pct_retained / 100`` rounded half-up.

    Returns:
        One entry per month, ascending, labelled like "Jan 2024".
    """
    cohorts = _typed(CohortRetentionRow, rows)
    monthly: dict[str, list[int]] = {}

    for row in cohorts:
        try:
            key = month_key(row.cohort_week)
        except ValueError:
            _logger.debug("Skipping cohort with unparseable week %r", row.cohort_week)
            continue
        totals = monthly.setdefault(key, [0, 0])
        totals[0] += row.cohort_size
        totals[1] += _retained_users(row)

    return [
        MonthlyRetention(
            month=month_label_from_key(key),
            new_stakers=total,
            still_staking=retained,
            retention_pct=retention_pct(retained, total),
        )
        for key, (total, retained) in sorted(monthly.items())
    ]


def overall_retention(rollups: Sequence[MonthlyRetention]) -> float:
    """Weighted retention across monthly rollups (0 when empty)."""
    total = sum(r.new_stakers for r in rollups)
    retained = sum(r.still_staking for r in rollups)
    return retention_pct(retained, total)


# =============================================================================
# Time Series
# =============================================================================


def transform_staking_trend_data(
    rows: Sequence[TotalStakedRow | Mapping[str, Any]] | None,
) -> list[StakingTrendPoint]:
    """Daily total staked series for the area chart."""
    return [
        StakingTrendPoint(
            date=parse_dune_date(r.day),
            volume=r.total_staked,
            change=r.change_from_yesterday,
        )
        for r in _typed(TotalStakedRow, rows)
    ]


def transform_weekly_tvl_data(
    rows: Sequence[WeeklyStatsRow | Mapping[str, Any]] | None,
) -> list[WeeklyTVLPoint]:
    """Weekly TVL and active-staker series."""
    return [
        WeeklyTVLPoint(
            week=parse_dune_date(r.week), tvl=r.total_tvl, stakers=r.active_stakers
        )
        for r in _typed(WeeklyStatsRow, rows)
    ]


def transform_new_stakers_data(
    weekly_new_stakers: Sequence[WeeklyNewStakersRow | Mapping[str, Any]] | None,
    weekly_stats: Sequence[WeeklyStatsRow | Mapping[str, Any]] | None,
) -> list[NewVsReturningPoint]:
    """Split each week's active stakers into new and returning.

    Both inputs are required. Weeks missing from the stats count only their
    new stakers; returning stakers never go below zero.
    """
    new_rows = _typed(WeeklyNewStakersRow, weekly_new_stakers)
    stats_rows = _typed(WeeklyStatsRow, weekly_stats)
    if not new_rows or not stats_rows:
        return []

    stats_by_week = {parse_dune_date(s.week): s for s in stats_rows}
    points: list[NewVsReturningPoint] = []
    for row in new_rows:
        week = parse_dune_date(row.week)
        stats = stats_by_week.get(week)
        total = stats.active_stakers if stats is not None else row.new_stakers
        points.append(
            NewVsReturningPoint(
                week=week,
                new_stakers=row.new_stakers,
                returning_stakers=max(0, total - row.new_stakers),
            )
        )
    return points


def calculate_monthly_comparison(
    rows: Sequence[TotalStakedRow | Mapping[str, Any]] | None,
    months: int | None = 6,
) -> list[MonthlyComparison]:
    """Month-over-month comparison of total staked.

    Rows are bucketed by calendar month. A bucket holds the value of the
    last row seen for that month (the month-end balance, given ascending
    input), not a sum. Growth compares each bucket to the one before it and
    is 0 for the first bucket or when the previous value is 0.

    Args:
        rows: Daily total-staked rows in ascending order.
        months: Keep only the most recent N months. None keeps all.

    Returns:
        Entries sorted by month, e.g.
        ``[MonthlyComparison("Jan 2024", 100, 0), MonthlyComparison("Feb 2024", 150, 50)]``.
    """
    staked = _typed(TotalStakedRow, rows)
    buckets: dict[str, float] = {}
    for row in staked:
        try:
            key = month_key(row.day)
        except ValueError:
            _logger.debug("Skipping row with unparseable day %r", row.day)
            continue
        buckets[key] = row.total_staked

    ordered = sorted(buckets.items())
    if months is not None:
        ordered = ordered[-months:] if months > 0 else []

    result: list[MonthlyComparison] = []
    for index, (key, volume) in enumerate(ordered):
        previous = ordered[index - 1][1] if index > 0 else volume
        growth = (volume - previous) / previous * 100 if previous > 0 else 0.0
        result.append(
            MonthlyComparison(
                month=month_label_from_key(key),
                volume=volume,
                growth=round_half_up(growth, 1),
            )
        )
    return result


# =============================================================================
# Fees and Claims
# =============================================================================


def transform_monthly_fees_data(
    rows: Sequence[TradingFeesRow | Mapping[str, Any]] | None,
) -> list[MonthlyFeesPoint]:
    """Monthly trading fees in USD and LINGO."""
    return [
        MonthlyFeesPoint(
            month=_safe_month_label(r.month), fees=r.usd_value, lingo=r.total_lingo
        )
        for r in _typed(TradingFeesRow, rows)
    ]


def transform_cumulative_fees_data(
    rows: Sequence[TradingFeesRow | Mapping[str, Any]] | None,
) -> list[CumulativeFeesPoint]:
    """Running total of trading fees in USD."""
    return [
        CumulativeFeesPoint(month=_safe_month_label(r.month), cumulative=r.cumulative_usd)
        for r in _typed(TradingFeesRow, rows)
    ]


def get_total_fees(
    rows: Sequence[TradingFeesRow | LPFeesRow | Mapping[str, Any]] | None,
) -> float:
    """Latest cumulative USD value, or 0 for no data."""
    if not rows:
        return 0.0
    last = rows[-1]
    if isinstance(last, Mapping):
        return float(last.get("cumulative_usd") or 0)
    return last.cumulative_usd


def calculate_total_fees(
    trading: Sequence[TradingFeesRow | Mapping[str, Any]] | None,
    lp: Sequence[LPFeesRow | Mapping[str, Any]] | None,
) -> TotalFees:
    """Combine trading and liquidity-pool fee totals."""
    trading_total = get_total_fees(trading)
    lp_total = get_total_fees(lp)
    return TotalFees(trading=trading_total, lp=lp_total, total=trading_total + lp_total)


def transform_apy_claims_data(
    rows: Sequence[APYClaimsRow | Mapping[str, Any]] | None,
) -> list[APYClaimsPoint]:
    """Monthly reward claims for the claims chart."""
    return [
        APYClaimsPoint(
            month=_safe_month_label(r.month),
            claims=r.num_transfers,
            lingo=r.lingo_out,
            usd=r.usd_value,
            avg_claim=r.avg_transfer_size,
        )
        for r in _typed(APYClaimsRow, rows)
    ]


def get_apy_claims_totals(
    rows: Sequence[APYClaimsRow | Mapping[str, Any]] | None,
) -> APYClaimsTotals:
    """Sum claims, LINGO and USD over all months."""
    claims = _typed(APYClaimsRow, rows)
    return APYClaimsTotals(
        total_claims=sum(r.num_transfers for r in claims),
        total_lingo=sum(r.lingo_out for r in claims),
        total_usd=sum(r.usd_value for r in claims),
    )


def transform_monthly_staking_flow(
    rows: Sequence[MonthlyStakingFlowRow | Mapping[str, Any]] | None,
) -> list[StakingFlowPoint]:
    """Monthly staked/unstaked volumes; net flow is derived when absent."""
    return [
        StakingFlowPoint(
            month=_safe_month_label(r.month),
            staked=r.lingo_staked,
            unstaked=r.lingo_unstaked,
            net_flow=(
                r.net_flow if r.net_flow is not None else r.lingo_staked - r.lingo_unstaked
            ),
        )
        for r in _typed(MonthlyStakingFlowRow, rows)
    ]


def transform_top_stakers(
    rows: Sequence[TopStakerRow | Mapping[str, Any]] | None,
) -> list[TopStakerView]:
    """Prepare leaderboard rows for display.

    ``pct_of_total`` is passed through unchanged; only the bar width is
    scaled (x10) and capped at 100.
    """
    return [
        TopStakerView(
            rank=r.rank,
            wallet=normalize_wallet(r.wallet),
            display_wallet=truncate_wallet(r.wallet),
            lingo_staked=r.lingo_staked,
            usd_value=r.usd_value,
            pct_of_total=r.pct_of_total,
            bar_width=min(r.pct_of_total * 10, 100.0),
        )
        for r in _typed(TopStakerRow, rows)
    ]


# =============================================================================
# Product Analytics
# =============================================================================


def transform_dau_data(report: Mapping[str, Any] | None) -> list[DailyMetric]:
    """Extract the DAU series from a saved Insights report.

    The report holds ``{"series": {"A. DAU": {date: value}}}``. Points are
    labelled like "Jan 5" and sorted by their actual date, whatever order
    the source used.
    """
    if not report:
        return []
    series = (report.get("series") or {}).get(DAU_SERIES_NAME) or {}
    points: list[DailyMetric] = []
    for raw_date, value in series.items():
        try:
            day = to_date(raw_date)
        except ValueError:
            _logger.debug("Skipping DAU point with unparseable date %r", raw_date)
            continue
        try:
            count = int(value or 0)
        except (TypeError, ValueError):
            _logger.debug("Skipping DAU point %s with non-numeric value %r", raw_date, value)
            continue
        points.append(
            DailyMetric(
                date=short_date_label(day.isoformat()),
                value=count,
                iso_date=day.isoformat(),
            )
        )
    return sorted(points, key=lambda p: p.iso_date)


def sum_event_values(response: Mapping[str, Any] | None, event: str) -> int:
    """Sum every bucket value reported for ``event`` in an events response.

    Summing unique counts across buckets approximates, and may overcount,
    the true unique total for the window.
    """
    if not response:
        return 0
    values = ((response.get("data") or {}).get("values") or {}).get(event) or {}
    return int(sum(v or 0 for v in values.values()))


def summarize_user_metrics(
    dau_trend: Sequence[DailyMetric], wau: int, mau: int
) -> UserMetrics:
    """Derive current/average DAU and bundle them with WAU and MAU.

    Current DAU is the last point (0 when empty); average DAU is the mean
    rounded half-up to an integer.
    """
    current = dau_trend[-1].value if dau_trend else 0
    average = (
        int(round_half_up(sum(p.value for p in dau_trend) / len(dau_trend)))
        if dau_trend
        else 0
    )
    return UserMetrics(
        dau_trend=list(dau_trend),
        current_dau=current,
        current_wau=wau,
        current_mau=mau,
        avg_dau=average,
    )


def transform_event_counts(
    responses: Sequence[Mapping[str, Any]],
) -> list[MonthlyEventCount]:
    """Merge events responses into per-month counts for every event.

    Buckets are grouped by calendar month, so daily or weekly units are
    folded into their month as well.
    """
    monthly: dict[str, dict[str, int]] = {}
    for response in responses:
        values = (response.get("data") or {}).get("values") or {}
        for event, buckets in values.items():
            for raw_date, count in (buckets or {}).items():
                try:
                    key = month_key(raw_date)
                except ValueError:
                    _logger.debug("Skipping bucket with unparseable date %r", raw_date)
                    continue
                counts = monthly.setdefault(key, {})
                counts[event] = counts.get(event, 0) + int(count or 0)

    return [
        MonthlyEventCount(month=month_label_from_key(key), month_key=key, counts=counts)
        for key, counts in sorted(monthly.items())
    ]
