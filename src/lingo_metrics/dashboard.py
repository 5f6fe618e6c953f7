"""Dashboard facade for LINGO staking metrics.

The Dashboard class is the unified entry point for the library. It wires
settings, the 24 hour cache and the query and analytics services together,
and exposes every dashboard aggregate as a method.

Example:
    Load everything once and read the aggregates:

    ```python
    with Dashboard() as dash:
        snapshot = dash.load()
        for kpi in snapshot.kpis():
            print(kpi.label, kpi.value, kpi.trend)
        print(snapshot.errors)  # {query name: message} for sources that failed
    ```

    Read a single aggregate (errors propagate):

    ```python
    with Dashboard.memory() as dash:
        fees = dash.total_fees()
    ```
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from lingo_metrics._internal import transforms
from lingo_metrics._internal.cache import TimedCache
from lingo_metrics._internal.config import ConfigManager, Settings
from lingo_metrics._internal.services.analytics_service import AnalyticsService
from lingo_metrics._internal.services.query_service import QueryService
from lingo_metrics.exceptions import UnknownQueryError
from lingo_metrics.rows import ROW_MODELS, DuneRow, parse_rows
from lingo_metrics.types import (
    KPI,
    APYClaimsPoint,
    APYClaimsTotals,
    CumulativeFeesPoint,
    EventCountsResult,
    MonthlyComparison,
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

if TYPE_CHECKING:
    from types import TracebackType

    import httpx

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardSnapshot:
    """Everything the dashboard shows, loaded in one pass.

    Sources fail independently: a failed query leaves its rows absent and
    records its message in ``errors``, and every aggregate built from it
    degrades to an empty or zero value.
    """

    rows: dict[str, list[dict[str, Any]]]
    """Raw rows per query name, for queries that loaded."""

    errors: dict[str, str]
    """Error message per source name ("analytics" for the user metrics)."""

    user_metrics: UserMetrics | None = None
    loaded_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def rows_for(self, name: str) -> list[dict[str, Any]] | None:
        """Raw rows of a query, or None if it failed or was not loaded."""
        return self.rows.get(name)

    def kpis(self) -> list[KPI]:
        return transforms.calculate_kpis(
            self.rows_for("TOTAL_STAKED_TREND"),
            self.rows_for("WEEKLY_STATS"),
            self.rows_for("WEEKLY_NEW_STAKERS"),
            self.rows_for("COHORT_RETENTION"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize every aggregate for JSON output."""
        trading = self.rows_for("TRADING_FEES")
        claims = self.rows_for("APY_CLAIMS")
        retention = transforms.transform_retention_data(self.rows_for("COHORT_RETENTION"))
        return {
            "loaded_at": self.loaded_at,
            "errors": self.errors,
            "kpis": [k.to_dict() for k in self.kpis()],
            "staking_trend": [
                p.to_dict()
                for p in transforms.transform_staking_trend_data(
                    self.rows_for("TOTAL_STAKED_TREND")
                )
            ],
            "weekly_tvl": [
                p.to_dict()
                for p in transforms.transform_weekly_tvl_data(self.rows_for("WEEKLY_STATS"))
            ],
            "new_vs_returning": [
                p.to_dict()
                for p in transforms.transform_new_stakers_data(
                    self.rows_for("WEEKLY_NEW_STAKERS"), self.rows_for("WEEKLY_STATS")
                )
            ],
            "monthly_comparison": [
                p.to_dict()
                for p in transforms.calculate_monthly_comparison(
                    self.rows_for("TOTAL_STAKED_TREND")
                )
            ],
            "retention": [p.to_dict() for p in retention],
            "overall_retention": transforms.overall_retention(retention),
            "total_fees": transforms.calculate_total_fees(
                trading, self.rows_for("LP_FEES")
            ).to_dict(),
            "monthly_fees": [
                p.to_dict() for p in transforms.transform_monthly_fees_data(trading)
            ],
            "cumulative_fees": [
                p.to_dict() for p in transforms.transform_cumulative_fees_data(trading)
            ],
            "apy_claims": [p.to_dict() for p in transforms.transform_apy_claims_data(claims)],
            "apy_claims_totals": transforms.get_apy_claims_totals(claims).to_dict(),
            "staking_flow": [
                p.to_dict()
                for p in transforms.transform_monthly_staking_flow(
                    self.rows_for("MONTHLY_STAKING_FLOW")
                )
            ],
            "top_stakers": [
                p.to_dict()
                for p in transforms.transform_top_stakers(self.rows_for("TOP_STAKERS"))
            ],
            "user_metrics": self.user_metrics.to_dict() if self.user_metrics else None,
        }


class Dashboard:
    """Unified entry point for LINGO staking metrics."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        cache: TimedCache | None = None,
        # Dependency injection for testing
        _config_manager: ConfigManager | None = None,
        _dune_transport: httpx.BaseTransport | None = None,
        _analytics_transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Create a Dashboard.

        Args:
            settings: Resolved settings. Loaded from config/env when omitted.
            cache: Cache to use. Opened at ``settings.cache_path`` when omitted.
            _config_manager: Injected ConfigManager for testing.
            _dune_transport: Injected transport for Dune requests.
            _analytics_transport: Injected transport for proxy requests.

        Raises:
            ConfigError: If the configuration cannot be loaded.
        """
        self._settings = settings or (_config_manager or ConfigManager()).load()
        self._owns_cache = cache is None
        self._cache = cache if cache is not None else TimedCache(self._settings.cache_path)
        self._queries = QueryService(
            self._settings, cache=self._cache, _transport=_dune_transport
        )
        self._analytics = AnalyticsService(
            self._settings, cache=self._cache, _transport=_analytics_transport
        )

    @classmethod
    def memory(cls, settings: Settings | None = None, **kwargs: Any) -> Dashboard:
        """Create a Dashboard whose cache lives in memory only."""
        dashboard = cls(settings, cache=TimedCache.memory(), **kwargs)
        dashboard._owns_cache = True
        return dashboard

    def __enter__(self) -> Dashboard:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close HTTP clients and, if the Dashboard opened it, the cache."""
        self._queries.close()
        self._analytics.close()
        if self._owns_cache:
            self._cache.close()

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def cache(self) -> TimedCache:
        return self._cache

    @property
    def queries(self) -> QueryService:
        return self._queries

    @property
    def analytics(self) -> AnalyticsService:
        return self._analytics

    # =========================================================================
    # Loading
    # =========================================================================

    def load(
        self,
        *,
        force_refresh: bool = False,
        include_analytics: bool = True,
    ) -> DashboardSnapshot:
        """Load every registered query (and the user metrics) in parallel.

        Failures are isolated per source and reported in the snapshot's
        ``errors`` instead of raising.

        Args:
            force_refresh: Bypass the cache for every source.
            include_analytics: Also load the user metrics via the proxy.

        Returns:
            DashboardSnapshot with rows, user metrics and per-source errors.
        """
        handles = {name: self._queries.track(name) for name in self._settings.queries}
        analytics_handle = self._analytics.track() if include_analytics else None

        def run(handle: Any) -> Any:
            return handle.refetch() if force_refresh else handle.load()

        targets: list[Any] = list(handles.values())
        if analytics_handle is not None:
            targets.append(analytics_handle)

        with ThreadPoolExecutor(max_workers=len(targets) or 1) as executor:
            list(executor.map(run, targets))

        rows = {name: h.data for name, h in handles.items() if h.data is not None}
        errors = {name: h.error for name, h in handles.items() if h.error}
        user_metrics: UserMetrics | None = None
        if analytics_handle is not None:
            if analytics_handle.error:
                errors["analytics"] = analytics_handle.error
            elif isinstance(analytics_handle.data, UserMetrics):
                user_metrics = analytics_handle.data

        if errors:
            _logger.info("Dashboard loaded with %d failed sources", len(errors))
        return DashboardSnapshot(rows=rows, errors=errors, user_metrics=user_metrics)

    def rows(
        self,
        query: str | int,
        *,
        limit: int | None = None,
        force_refresh: bool = False,
    ) -> list[dict[str, Any]]:
        """Raw rows of one query. Errors propagate."""
        return self._queries.fetch_rows(query, limit, force_refresh=force_refresh)

    def typed_rows(self, name: str, *, force_refresh: bool = False) -> list[DuneRow]:
        """Rows of a registered query parsed into its row model."""
        key = name.upper()
        model = ROW_MODELS.get(key)
        if model is None:
            raise UnknownQueryError(name, sorted(ROW_MODELS))
        return parse_rows(model, self.rows(key, force_refresh=force_refresh))

    def _named(self, name: str, force_refresh: bool) -> list[dict[str, Any]]:
        return self._queries.fetch_rows(name, force_refresh=force_refresh)

    def _parallel(self, names: list[str], force_refresh: bool) -> list[list[dict[str, Any]]]:
        with ThreadPoolExecutor(max_workers=len(names)) as executor:
            futures = [executor.submit(self._named, n, force_refresh) for n in names]
            return [f.result() for f in futures]

    # =========================================================================
    # Aggregates
    # =========================================================================

    def kpis(self, *, force_refresh: bool = False) -> list[KPI]:
        """Headline KPIs: total staked, active stakers, new stakers, retention."""
        staked, stats, new, cohorts = self._parallel(
            ["TOTAL_STAKED_TREND", "WEEKLY_STATS", "WEEKLY_NEW_STAKERS", "COHORT_RETENTION"],
            force_refresh,
        )
        return transforms.calculate_kpis(staked, stats, new, cohorts)

    def staking_trend(self, *, force_refresh: bool = False) -> list[StakingTrendPoint]:
        return transforms.transform_staking_trend_data(
            self._named("TOTAL_STAKED_TREND", force_refresh)
        )

    def weekly_tvl(self, *, force_refresh: bool = False) -> list[WeeklyTVLPoint]:
        return transforms.transform_weekly_tvl_data(self._named("WEEKLY_STATS", force_refresh))

    def new_vs_returning(self, *, force_refresh: bool = False) -> list[NewVsReturningPoint]:
        new, stats = self._parallel(["WEEKLY_NEW_STAKERS", "WEEKLY_STATS"], force_refresh)
        return transforms.transform_new_stakers_data(new, stats)

    def monthly_comparison(
        self, months: int | None = 6, *, force_refresh: bool = False
    ) -> list[MonthlyComparison]:
        return transforms.calculate_monthly_comparison(
            self._named("TOTAL_STAKED_TREND", force_refresh), months
        )

    def retention(self, *, force_refresh: bool = False) -> list[MonthlyRetention]:
        return transforms.transform_retention_data(
            self._named("COHORT_RETENTION", force_refresh)
        )

    def total_fees(self, *, force_refresh: bool = False) -> TotalFees:
        trading, lp = self._parallel(["TRADING_FEES", "LP_FEES"], force_refresh)
        return transforms.calculate_total_fees(trading, lp)

    def monthly_fees(self, *, force_refresh: bool = False) -> list[MonthlyFeesPoint]:
        return transforms.transform_monthly_fees_data(self._named("TRADING_FEES", force_refresh))

    def cumulative_fees(self, *, force_refresh: bool = False) -> list[CumulativeFeesPoint]:
        return transforms.transform_cumulative_fees_data(
            self._named("TRADING_FEES", force_refresh)
        )

    def apy_claims(self, *, force_refresh: bool = False) -> list[APYClaimsPoint]:
        return transforms.transform_apy_claims_data(self._named("APY_CLAIMS", force_refresh))

    def apy_claims_totals(self, *, force_refresh: bool = False) -> APYClaimsTotals:
        return transforms.get_apy_claims_totals(self._named("APY_CLAIMS", force_refresh))

    def staking_flow(self, *, force_refresh: bool = False) -> list[StakingFlowPoint]:
        return transforms.transform_monthly_staking_flow(
            self._named("MONTHLY_STAKING_FLOW", force_refresh)
        )

    def top_stakers(self, *, force_refresh: bool = False) -> list[TopStakerView]:
        return transforms.transform_top_stakers(self._named("TOP_STAKERS", force_refresh))

    def user_metrics(self, *, force_refresh: bool = False) -> UserMetrics:
        """DAU trend with current/average DAU, WAU and MAU."""
        return self._analytics.fetch_metrics(force_refresh=force_refresh)

    def event_counts(self, *, force_refresh: bool = False) -> EventCountsResult:
        """Monthly counts of the configured event groups."""
        return self._analytics.fetch_event_counts(force_refresh=force_refresh)
