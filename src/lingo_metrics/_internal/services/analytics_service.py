"""Analytics Service for product-analytics user metrics.

Aggregates several proxy reports into a single result:

- **metrics mode**: the daily-active-users report plus trailing 7- and
  30-day counts of the tracked event, fetched as three parallel requests.
- **events mode**: monthly counts of each configured event group over a
  fixed window, one parallel request per group.

Either aggregate is all-or-nothing: if any request fails the whole fetch
fails and nothing is cached. Successful aggregates are cached for 24 hours
under a fixed key.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any, Literal

from lingo_metrics._internal.analytics_client import AnalyticsClient
from lingo_metrics._internal.cache import MIXPANEL_EVENTS_KEY, MIXPANEL_METRICS_KEY
from lingo_metrics._internal.transforms import (
    summarize_user_metrics,
    sum_event_values,
    transform_dau_data,
    transform_event_counts,
)
from lingo_metrics.exceptions import InvalidResponseError, LingoMetricsError
from lingo_metrics.types import EventCountsResult, UserMetrics

if TYPE_CHECKING:
    import httpx

    from lingo_metrics._internal.cache import TimedCache
    from lingo_metrics._internal.config import Settings
    from lingo_metrics._literal_types import FetchStatus

_logger = logging.getLogger(__name__)

AnalyticsMode = Literal["metrics", "events"]


class AnalyticsService:
    """Cached, parallel access to user-activity metrics via the proxy.

    Example:
        ```python
        service = AnalyticsService(settings, cache=cache)
        metrics = service.fetch_metrics()
        print(metrics.current_dau, metrics.avg_dau)
        ```
    """

    def __init__(
        self,
        settings: Settings,
        *,
        cache: TimedCache,
        client: AnalyticsClient | None = None,
        today: Callable[[], date] | None = None,
        _transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            settings: Resolved settings (proxy URL, tracked event, groups).
            cache: Cache holding the aggregated results.
            client: Proxy client. Created from settings when omitted.
            today: Returns the current date; closes the events window when
                no end date is configured.
            _transport: Internal parameter for testing with MockTransport.
        """
        self._settings = settings
        self._cache = cache
        self._client = client or AnalyticsClient(settings, _transport=_transport)
        self._today = today or (lambda: datetime.now(UTC).date())

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def fetch_metrics(self, *, force_refresh: bool = False) -> UserMetrics:
        """Return DAU series with current/average DAU, WAU and MAU.

        Args:
            force_refresh: Skip the cache read.

        Raises:
            NetworkError: If any of the three proxy requests fails.
            InvalidResponseError: If a report does not have the expected shape.
        """
        if not force_refresh:
            cached = self._cache.get(MIXPANEL_METRICS_KEY)
            if isinstance(cached, dict):
                try:
                    return UserMetrics.from_dict(cached)
                except (KeyError, TypeError, ValueError) as e:
                    _logger.debug("Ignoring malformed metrics cache entry: %s", e)

        with ThreadPoolExecutor(max_workers=3) as executor:
            dau_future = executor.submit(self._client.fetch, "dau")
            wau_future = executor.submit(self._client.fetch, "wau")
            mau_future = executor.submit(self._client.fetch, "mau")
            dau_report = dau_future.result()
            wau_report = wau_future.result()
            mau_report = mau_future.result()

        event = self._settings.tracked_event
        try:
            metrics = summarize_user_metrics(
                transform_dau_data(dau_report),
                wau=sum_event_values(wau_report, event),
                mau=sum_event_values(mau_report, event),
            )
        except (AttributeError, TypeError, ValueError) as e:
            raise InvalidResponseError(
                f"Unexpected analytics response: {e}", source="metrics"
            ) from e
        self._cache.set(MIXPANEL_METRICS_KEY, metrics.to_dict())
        return metrics

    def event_window(self) -> tuple[str, str]:
        """Date window (from, to) of the events mode."""
        to_date = self._settings.event_to_date or self._today().isoformat()
        return self._settings.event_from_date, to_date

    def fetch_event_counts(self, *, force_refresh: bool = False) -> EventCountsResult:
        """Return monthly counts for every configured event group.

        Args:
            force_refresh: Skip the cache read.

        Raises:
            NetworkError: If any group's request fails.
            InvalidResponseError: If a response does not have the expected shape.
        """
        if not force_refresh:
            cached = self._cache.get(MIXPANEL_EVENTS_KEY)
            if isinstance(cached, dict):
                try:
                    return EventCountsResult.from_dict(cached)
                except (KeyError, TypeError, ValueError) as e:
                    _logger.debug("Ignoring malformed events cache entry: %s", e)

        from_date, to_date = self.event_window()
        groups = [list(group) for group in self._settings.event_groups]

        def fetch_group(events: list[str]) -> dict[str, Any]:
            return self._client.fetch(
                "events",
                {
                    "event": json.dumps(events),
                    "from_date": from_date,
                    "to_date": to_date,
                    "unit": "month",
                },
            )

        with ThreadPoolExecutor(max_workers=max(len(groups), 1)) as executor:
            futures = [executor.submit(fetch_group, group) for group in groups]
            responses = [future.result() for future in futures]

        try:
            months = transform_event_counts(responses)
        except (AttributeError, TypeError, ValueError) as e:
            raise InvalidResponseError(
                f"Unexpected analytics response: {e}", source="events"
            ) from e
        result = EventCountsResult(
            from_date=from_date,
            to_date=to_date,
            events=[event for group in groups for event in group],
            months=months,
        )
        self._cache.set(MIXPANEL_EVENTS_KEY, result.to_dict())
        return result

    def track(self, mode: AnalyticsMode = "metrics") -> AnalyticsHandle:
        """Create a handle over one of the two aggregates."""
        return AnalyticsHandle(self, mode)


class AnalyticsHandle:
    """Fetch state of the analytics aggregate: data, loading flag and error.

    ``data`` is a UserMetrics in metrics mode and an EventCountsResult in
    events mode.
    """

    def __init__(self, service: AnalyticsService, mode: AnalyticsMode = "metrics") -> None:
        self._service = service
        self._mode = mode
        self._lock = threading.Lock()
        self._status: FetchStatus = "absent"
        self._data: UserMetrics | EventCountsResult | None = None
        self._error: str | None = None

    @property
    def mode(self) -> AnalyticsMode:
        return self._mode

    @property
    def status(self) -> FetchStatus:
        return self._status

    @property
    def is_loading(self) -> bool:
        return self._status == "loading"

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def data(self) -> UserMetrics | EventCountsResult | None:
        return self._data

    def load(self) -> AnalyticsHandle:
        """Fetch the aggregate, serving it from the cache when fresh."""
        return self._run(force_refresh=False)

    def refetch(self) -> AnalyticsHandle:
        """Fetch the aggregate from the proxy and overwrite the cache."""
        return self._run(force_refresh=True)

    def _run(self, *, force_refresh: bool) -> AnalyticsHandle:
        with self._lock:
            self._status = "loading"
            self._error = None

        try:
            data: UserMetrics | EventCountsResult
            if self._mode == "events":
                data = self._service.fetch_event_counts(force_refresh=force_refresh)
            else:
                data = self._service.fetch_metrics(force_refresh=force_refresh)
        except LingoMetricsError as e:
            _logger.warning("Analytics fetch failed: %s", e.message)
            with self._lock:
                self._status = "error"
                self._error = e.message or "Failed to fetch Mixpanel data"
                self._data = None
            return self

        with self._lock:
            self._status = "loaded"
            self._data = data
        return self
