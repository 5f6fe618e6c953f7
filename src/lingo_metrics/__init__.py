"""
lingo_metrics - Data layer for the LINGO staking analytics dashboard.

Fetches staking metrics from Dune and user activity from Mixpanel (through
a small proxy), caches raw rows for 24 hours in DuckDB, and reshapes them
into KPIs, chart series and monthly rollups.
"""

from lingo_metrics._internal.cache import CACHE_TTL_SECONDS, TimedCache
from lingo_metrics._internal.config import ConfigManager, Settings
from lingo_metrics._internal.formatting import (
    calculate_change,
    format_chart_date,
    format_currency,
    format_number,
    format_percent,
    format_week_date,
    format_with_commas,
    normalize_wallet,
    truncate_wallet,
)
from lingo_metrics._internal.services import (
    AnalyticsHandle,
    AnalyticsService,
    QueryHandle,
    QueryService,
    RefreshService,
)
from lingo_metrics._literal_types import (
    AnalyticsReportType,
    FetchStatus,
    KPIFormat,
    QueryState,
    Trend,
)
from lingo_metrics.dashboard import Dashboard, DashboardSnapshot
from lingo_metrics.exceptions import (
    APIError,
    AuthenticationError,
    ConfigError,
    InvalidResponseError,
    LingoMetricsError,
    NetworkError,
    QueryError,
    QueryExecutionError,
    QueryNotFinishedError,
    ServerError,
    UnknownQueryError,
)
from lingo_metrics.queries import DUNE_QUERIES, QUERY_LIMITS, REFRESHABLE_QUERIES
from lingo_metrics.types import (
    KPI,
    APYClaimsPoint,
    APYClaimsTotals,
    CumulativeFeesPoint,
    DailyMetric,
    EventCountsResult,
    MonthlyComparison,
    MonthlyEventCount,
    MonthlyFeesPoint,
    MonthlyRetention,
    NewVsReturningPoint,
    QueryResult,
    RefreshResult,
    RefreshSummary,
    StakingFlowPoint,
    StakingTrendPoint,
    TopStakerView,
    TotalFees,
    UserMetrics,
    WeeklyTVLPoint,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    "Dashboard",
    "DashboardSnapshot",
    "ConfigManager",
    "Settings",
    "TimedCache",
    "CACHE_TTL_SECONDS",
    # Services
    "AnalyticsHandle",
    "AnalyticsService",
    "QueryHandle",
    "QueryService",
    "RefreshService",
    # Query registry
    "DUNE_QUERIES",
    "QUERY_LIMITS",
    "REFRESHABLE_QUERIES",
    # Exceptions
    "LingoMetricsError",
    "ConfigError",
    "UnknownQueryError",
    "APIError",
    "NetworkError",
    "AuthenticationError",
    "ServerError",
    "InvalidResponseError",
    "QueryError",
    "QueryExecutionError",
    "QueryNotFinishedError",
    # Display formatting
    "calculate_change",
    "format_chart_date",
    "format_currency",
    "format_number",
    "format_percent",
    "format_week_date",
    "format_with_commas",
    "normalize_wallet",
    "truncate_wallet",
    # Literal types
    "AnalyticsReportType",
    "FetchStatus",
    "KPIFormat",
    "QueryState",
    "Trend",
    # Result types
    "QueryResult",
    "DailyMetric",
    "UserMetrics",
    "MonthlyEventCount",
    "EventCountsResult",
    "KPI",
    "StakingTrendPoint",
    "WeeklyTVLPoint",
    "NewVsReturningPoint",
    "MonthlyRetention",
    "MonthlyComparison",
    "MonthlyFeesPoint",
    "CumulativeFeesPoint",
    "TotalFees",
    "APYClaimsPoint",
    "APYClaimsTotals",
    "StakingFlowPoint",
    "TopStakerView",
    "RefreshResult",
    "RefreshSummary",
]
