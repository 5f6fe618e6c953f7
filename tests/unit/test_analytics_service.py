"""Unit tests for AnalyticsService and AnalyticsHandle."""

from __future__ import annotations

import json
import threading
from collections.abc import Callable
from datetime import date
from typing import Any

import httpx
import pytest

from lingo_metrics._internal.cache import (
    MIXPANEL_EVENTS_KEY,
    MIXPANEL_METRICS_KEY,
    TimedCache,
)
from lingo_metrics._internal.config import Settings
from lingo_metrics._internal.services.analytics_service import AnalyticsService
from lingo_metrics.exceptions import InvalidResponseError, NetworkError
from lingo_metrics.types import EventCountsResult, UserMetrics

EventsResponse = Callable[[str, dict[str, int]], dict[str, Any]]


class ProxyStub:
    """Transport handler answering /api/analytics by report type."""

    def __init__(self, responses: dict[str, Any], failing: set[str] | None = None) -> None:
        self.responses = responses
        self.failing = failing or set()
        self.requests: list[httpx.Request] = []
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        report_type = request.url.params["type"]
        if report_type == "events":
            events = json.loads(request.url.params["event"])
            key = events[0]
        else:
            key = report_type
        if key in self.failing:
            return httpx.Response(500, json={"error": "Failed to fetch Mixpanel data"})
        return httpx.Response(200, json=self.responses.get(key, {}))


@pytest.fixture
def metrics_stub(dau_report: dict[str, Any], events_response: EventsResponse) -> ProxyStub:
    return ProxyStub(
        {
            "dau": dau_report,
            "wau": events_response("Wallet Connected", {"2025-03-08": 30, "2025-03-15": 40}),
            "mau": events_response("Wallet Connected", {"2025-02-01": 100, "2025-03-01": 200}),
        }
    )


def make_service(
    settings: Settings,
    cache: TimedCache,
    stub: ProxyStub,
    today: date | None = None,
) -> AnalyticsService:
    return AnalyticsService(
        settings,
        cache=cache,
        today=(lambda: today) if today else None,
        _transport=httpx.MockTransport(stub),
    )


class TestFetchMetrics:
    def test_aggregates_three_reports(
        self, test_settings: Settings, memory_cache: TimedCache, metrics_stub: ProxyStub
    ) -> None:
        metrics = make_service(test_settings, memory_cache, metrics_stub).fetch_metrics()

        assert [p.date for p in metrics.dau_trend] == ["Jan 5", "Jan 6", "Jan 7"]
        assert metrics.current_dau == 30
        assert metrics.avg_dau == 20
        assert metrics.current_wau == 70
        assert metrics.current_mau == 300
        assert sorted(r.url.params["type"] for r in metrics_stub.requests) == ["dau", "mau", "wau"]

    def test_result_cached(
        self, test_settings: Settings, memory_cache: TimedCache, metrics_stub: ProxyStub
    ) -> None:
        service = make_service(test_settings, memory_cache, metrics_stub)
        first = service.fetch_metrics()
        second = service.fetch_metrics()

        assert second == first
        assert len(metrics_stub.requests) == 3
        assert UserMetrics.from_dict(memory_cache.get(MIXPANEL_METRICS_KEY)) == first

    def test_force_refresh(
        self, test_settings: Settings, memory_cache: TimedCache, metrics_stub: ProxyStub
    ) -> None:
        service = make_service(test_settings, memory_cache, metrics_stub)
        service.fetch_metrics()
        service.fetch_metrics(force_refresh=True)
        assert len(metrics_stub.requests) == 6

    def test_any_failure_fails_all(
        self, test_settings: Settings, memory_cache: TimedCache, metrics_stub: ProxyStub
    ) -> None:
        metrics_stub.failing = {"mau"}
        service = make_service(test_settings, memory_cache, metrics_stub)

        with pytest.raises(NetworkError, match="API error: 500"):
            service.fetch_metrics()
        assert memory_cache.get(MIXPANEL_METRICS_KEY) is None

    def test_malformed_cache_entry_ignored(
        self, test_settings: Settings, memory_cache: TimedCache, metrics_stub: ProxyStub
    ) -> None:
        memory_cache.set(MIXPANEL_METRICS_KEY, {"dau_trend": [{"bogus": 1}]})
        metrics = make_service(test_settings, memory_cache, metrics_stub).fetch_metrics()
        assert metrics.current_dau == 30


class TestFetchEventCounts:
    @pytest.fixture
    def events_stub(self, events_response: EventsResponse) -> ProxyStub:
        return ProxyStub(
            {
                "Wallet Connected": events_response("Wallet Connected", {"2025-01-01": 5, "2025-02-01": 7}),
                "Unstake Completed": events_response("Unstake Completed", {"2025-01-01": 2}),
            }
        )

    def test_one_request_per_group(
        self,
        test_settings: Settings,
        memory_cache: TimedCache,
        events_stub: ProxyStub,
        today: date,
    ) -> None:
        result = make_service(test_settings, memory_cache, events_stub, today).fetch_event_counts()

        assert len(events_stub.requests) == 2
        for request in events_stub.requests:
            assert request.url.params["from_date"] == "2024-11-01"
            assert request.url.params["to_date"] == "2025-03-15"
            assert request.url.params["unit"] == "month"
        assert result.events == [
            "Wallet Connected",
            "Stake Initiated",
            "Stake Completed",
            "Unstake Completed",
            "Rewards Claimed",
        ]
        assert [m.month for m in result.months] == ["Jan 2025", "Feb 2025"]
        assert result.months[0].counts == {"Wallet Connected": 5, "Unstake Completed": 2}

    def test_cached(
        self,
        test_settings: Settings,
        memory_cache: TimedCache,
        events_stub: ProxyStub,
        today: date,
    ) -> None:
        service = make_service(test_settings, memory_cache, events_stub, today)
        first = service.fetch_event_counts()
        assert service.fetch_event_counts() == first
        assert len(events_stub.requests) == 2
        assert EventCountsResult.from_dict(memory_cache.get(MIXPANEL_EVENTS_KEY)) == first

    def test_second_group_failure(
        self,
        test_settings: Settings,
        memory_cache: TimedCache,
        events_stub: ProxyStub,
        today: date,
    ) -> None:
        events_stub.failing = {"Unstake Completed"}
        handle = make_service(test_settings, memory_cache, events_stub, today).track("events").load()

        assert handle.status == "error"
        assert handle.error == "API error: 500"
        assert handle.data is None
        assert memory_cache.get(MIXPANEL_EVENTS_KEY) is None

    def test_configured_end_date(self, memory_cache: TimedCache, events_stub: ProxyStub) -> None:
        settings = Settings(
            proxy_url="http://proxy.test",
            event_to_date="2025-01-31",
            cache_path=None,
        )
        service = make_service(settings, memory_cache, events_stub)
        assert service.event_window() == ("2024-11-01", "2025-01-31")


class TestAnalyticsHandle:
    def test_metrics_mode(
        self, test_settings: Settings, memory_cache: TimedCache, metrics_stub: ProxyStub
    ) -> None:
        handle = make_service(test_settings, memory_cache, metrics_stub).track()
        assert handle.mode == "metrics"
        assert handle.status == "absent"

        handle.load()
        assert handle.status == "loaded"
        assert isinstance(handle.data, UserMetrics)
        assert handle.error is None

    def test_refetch_after_error(
        self, test_settings: Settings, memory_cache: TimedCache, metrics_stub: ProxyStub
    ) -> None:
        metrics_stub.failing = {"dau"}
        handle = make_service(test_settings, memory_cache, metrics_stub).track().load()
        assert handle.error == "API error: 500"

        metrics_stub.failing = set()
        handle.refetch()
        assert handle.error is None
        assert handle.status == "loaded"

    def test_non_numeric_dau_point_skipped(
        self, test_settings: Settings, memory_cache: TimedCache, metrics_stub: ProxyStub
    ) -> None:
        metrics_stub.responses["dau"] = {
            "series": {"A. DAU": {"2025-03-01": "n/a", "2025-03-02": 12}}
        }
        handle = make_service(test_settings, memory_cache, metrics_stub).track().load()

        assert handle.status == "loaded"
        assert isinstance(handle.data, UserMetrics)
        assert [p.value for p in handle.data.dau_trend] == [12]

    def test_unexpected_report_shape_sets_error(
        self, test_settings: Settings, memory_cache: TimedCache, metrics_stub: ProxyStub
    ) -> None:
        metrics_stub.responses["dau"] = ["not", "a", "report"]
        handle = make_service(test_settings, memory_cache, metrics_stub).track().load()

        assert handle.status == "error"
        assert handle.error is not None
        assert handle.error.startswith("Unexpected analytics response")
        assert handle.data is None
        assert memory_cache.get(MIXPANEL_METRICS_KEY) is None

    def test_unexpected_event_counts_set_error(
        self,
        test_settings: Settings,
        memory_cache: TimedCache,
        today: date,
    ) -> None:
        stub = ProxyStub(
            {"Wallet Connected": {"data": {"values": {"Wallet Connected": {"2025-01-01": "many"}}}}}
        )
        handle = make_service(test_settings, memory_cache, stub, today).track("events").load()

        assert handle.status == "error"
        assert handle.error is not None
        assert handle.error.startswith("Unexpected analytics response")
        assert memory_cache.get(MIXPANEL_EVENTS_KEY) is None


class TestInvalidResponses:
    def test_metrics_raise_invalid_response(
        self, test_settings: Settings, memory_cache: TimedCache, metrics_stub: ProxyStub
    ) -> None:
        metrics_stub.responses["wau"] = {"data": {"values": {"Wallet Connected": {"a": "x"}}}}
        service = make_service(test_settings, memory_cache, metrics_stub)

        with pytest.raises(InvalidResponseError) as exc_info:
            service.fetch_metrics()
        assert exc_info.value.code == "INVALID_RESPONSE"
        assert exc_info.value.details == {"source": "metrics"}
