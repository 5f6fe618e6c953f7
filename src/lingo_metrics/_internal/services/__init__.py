"""Service layer for lingo_metrics.

This package contains the service classes that combine the HTTP clients
with the cache: cached query reads, aggregated analytics, and the
scheduled query refresh.
"""

from lingo_metrics._internal.services.analytics_service import (
    AnalyticsHandle,
    AnalyticsService,
)
from lingo_metrics._internal.services.query_service import QueryHandle, QueryService
from lingo_metrics._internal.services.refresh_service import RefreshService

__all__ = [
    "AnalyticsHandle",
    "AnalyticsService",
    "QueryHandle",
    "QueryService",
    "RefreshService",
]
