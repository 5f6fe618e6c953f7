"""Result types for lingo_metrics operations.

All result types are immutable frozen dataclasses with:
- JSON serialization via ``to_dict()`` (all values JSON-serializable)
- Lazy DataFrame conversion via ``df`` where the result is tabular

Derived aggregates (KPIs, rollups, chart points) are produced by the
transformers in ``lingo_metrics._internal.transforms``; fetch results are
produced by the query and analytics services.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

import pandas as pd

from lingo_metrics._literal_types import KPIFormat, QueryState, Trend

# =============================================================================
# Fetch Results
# =============================================================================


@dataclass(frozen=True)
class QueryResult:
    """Result of reading a Dune query's latest execution.

    Only Completed results carry rows and are cached; Failed results carry
    the upstream error message.
    """

    execution_id: str
    """Dune execution identifier."""

    query_id: str
    """Dune query identifier."""

    state: QueryState
    """Execution state reported by Dune."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    """Result rows (empty unless state is Completed)."""

    error: str | None = None
    """Upstream error message for Failed executions."""

    from_cache: bool = False
    """Whether the rows were served from the local cache."""

    _df_cache: pd.DataFrame | None = field(default=None, repr=False, compare=False)

    @property
    def is_terminal(self) -> bool:
        """Whether the execution finished (successfully or not)."""
        return self.state in ("QUERY_STATE_COMPLETED", "QUERY_STATE_FAILED")

    @property
    def df(self) -> pd.DataFrame:
        """Rows as a DataFrame (computed once, then cached)."""
        if self._df_cache is not None:
            return self._df_cache
        result_df = pd.DataFrame(self.rows) if self.rows else pd.DataFrame()
        object.__setattr__(self, "_df_cache", result_df)
        return result_df

    def to_dict(self) -> dict[str, Any]:
        """Serialize result for JSON output."""
        return {
            "execution_id": self.execution_id,
            "query_id": self.query_id,
            "state": self.state,
            "row_count": len(self.rows),
            "rows": self.rows,
            "error": self.error,
            "from_cache": self.from_cache,
        }


@dataclass(frozen=True)
class DailyMetric:
    """One point of the daily-active-users series."""

    date: str
    """Display label, e.g. "Jan 5"."""

    value: int
    """Users active that day."""

    iso_date: str
    """Source date (YYYY-MM-DD), used for ordering."""

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return asdict(self)


@dataclass(frozen=True)
class UserMetrics:
    """Aggregated product-analytics user activity.

    ``current_wau`` and ``current_mau`` are sums of per-bucket counts over a
    trailing window, not deduplicated unique counts.
    """

    dau_trend: list[DailyMetric]
    current_dau: int
    current_wau: int
    current_mau: int
    avg_dau: int

    _df_cache: pd.DataFrame | None = field(default=None, repr=False, compare=False)

    @property
    def df(self) -> pd.DataFrame:
        """DAU series as a DataFrame with columns: date, iso_date, value."""
        if self._df_cache is not None:
            return self._df_cache
        result_df = (
            pd.DataFrame([asdict(p) for p in self.dau_trend])
            if self.dau_trend
            else pd.DataFrame(columns=["date", "value", "iso_date"])
        )
        object.__setattr__(self, "_df_cache", result_df)
        return result_df

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output and caching."""
        return {
            "dau_trend": [p.to_dict() for p in self.dau_trend],
            "current_dau": self.current_dau,
            "current_wau": self.current_wau,
            "current_mau": self.current_mau,
            "avg_dau": self.avg_dau,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserMetrics:
        """Rebuild metrics from ``to_dict()`` output (e.g. a cache entry)."""
        return cls(
            dau_trend=[DailyMetric(**p) for p in data.get("dau_trend", [])],
            current_dau=int(data.get("current_dau", 0)),
            current_wau=int(data.get("current_wau", 0)),
            current_mau=int(data.get("current_mau", 0)),
            avg_dau=int(data.get("avg_dau", 0)),
        )


@dataclass(frozen=True)
class MonthlyEventCount:
    """Counts of each tracked event within one calendar month."""

    month: str
    """Display label, e.g. "Jan 2025"."""

    month_key: str
    """Sortable key, YYYY-MM."""

    counts: dict[str, int]
    """Event name to count."""

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {"month": self.month, "month_key": self.month_key, "counts": self.counts}


@dataclass(frozen=True)
class EventCountsResult:
    """Monthly event counts over a fixed window."""

    from_date: str
    to_date: str
    events: list[str]
    months: list[MonthlyEventCount]

    _df_cache: pd.DataFrame | None = field(default=None, repr=False, compare=False)

    @property
    def df(self) -> pd.DataFrame:
        """Long-format DataFrame with columns: month, event, count."""
        if self._df_cache is not None:
            return self._df_cache
        rows = [
            {"month": m.month, "event": event, "count": count}
            for m in self.months
            for event, count in m.counts.items()
        ]
        result_df = (
            pd.DataFrame(rows) if rows else pd.DataFrame(columns=["month", "event", "count"])
        )
        object.__setattr__(self, "_df_cache", result_df)
        return result_df

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output and caching."""
        return {
            "from_date": self.from_date,
            "to_date": self.to_date,
            "events": self.events,
            "months": [m.to_dict() for m in self.months],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EventCountsResult:
        """Rebuild from ``to_dict()`` output."""
        return cls(
            from_date=data["from_date"],
            to_date=data["to_date"],
            events=list(data.get("events", [])),
            months=[MonthlyEventCount(**m) for m in data.get("months", [])],
        )


# =============================================================================
# Derived Aggregates
# =============================================================================


@dataclass(frozen=True)
class KPI:
    """Headline metric with its change against the previous period."""

    label: str
    value: float
    previous_value: float | None = None
    trend: Trend = "neutral"
    trend_value: float = 0.0
    """Percent change from previous_value (0 when undefined)."""
    format: KPIFormat = "number"
    prefix: str = ""
    suffix: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return asdict(self)


@dataclass(frozen=True)
class StakingTrendPoint:
    date: str
    volume: float
    change: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class WeeklyTVLPoint:
    week: str
    tvl: float
    stakers: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class NewVsReturningPoint:
    """Weekly split of active stakers into first-time and returning."""

    week: str
    new_stakers: int
    returning_stakers: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MonthlyRetention:
    """Weighted retention of all cohorts that started in one month."""

    month: str
    new_stakers: int
    still_staking: int
    retention_pct: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MonthlyComparison:
    """Month-end value and growth against the previous month."""

    month: str
    volume: float
    growth: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MonthlyFeesPoint:
    month: str
    fees: float
    lingo: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CumulativeFeesPoint:
    month: str
    cumulative: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TotalFees:
    """Fee totals across trading and liquidity pools (USD)."""

    trading: float
    lp: float
    total: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class APYClaimsPoint:
    month: str
    claims: int
    lingo: float
    usd: float
    avg_claim: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class APYClaimsTotals:
    total_claims: int
    total_lingo: float
    total_usd: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class StakingFlowPoint:
    month: str
    staked: float
    unstaked: float
    net_flow: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TopStakerView:
    """Leaderboard row prepared for display."""

    rank: int
    wallet: str
    """Normalized address (zero padding removed)."""
    display_wallet: str
    """Truncated address for narrow columns."""
    lingo_staked: float
    usd_value: float
    pct_of_total: float
    """Share of all staked LINGO, passed through from the source."""
    bar_width: float
    """Visual bar width in percent, capped at 100."""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# Refresh Results
# =============================================================================


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of triggering one query execution."""

    query_id: str
    success: bool
    error: str | None = None
    execution_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize, omitting absent optional fields."""
        data: dict[str, Any] = {"query_id": self.query_id, "success": self.success}
        if self.error is not None:
            data["error"] = self.error
        if self.execution_id is not None:
            data["execution_id"] = self.execution_id
        return data


@dataclass(frozen=True)
class RefreshSummary:
    """Outcome of a refresh run across all refreshable queries."""

    message: str
    results: list[RefreshResult]
    timestamp: str
    """ISO-8601 completion time (UTC)."""

    @property
    def succeeded(self) -> int:
        """Number of queries whose execution was triggered."""
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> list[RefreshResult]:
        """Results for queries that could not be triggered."""
        return [r for r in self.results if not r.success]

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "results": [r.to_dict() for r in self.results],
            "timestamp": self.timestamp,
        }
