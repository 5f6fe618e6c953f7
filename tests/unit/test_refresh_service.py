"""Unit tests for RefreshService."""

from __future__ import annotations

import threading

import httpx

from lingo_metrics._internal.config import Settings
from lingo_metrics._internal.services.refresh_service import RefreshService
from lingo_metrics.queries import DUNE_QUERIES, REFRESHABLE_QUERIES


def make_service(
    settings: Settings, handler: httpx.MockTransport | None = None, **kwargs: object
) -> RefreshService:
    return RefreshService(settings, _transport=handler, **kwargs)  # type: ignore[arg-type]


class TestRefreshAll:
    def test_executes_every_refreshable_query(self, test_settings: Settings) -> None:
        seen: list[str] = []
        lock = threading.Lock()

        def handler(request: httpx.Request) -> httpx.Response:
            with lock:
                seen.append(request.url.path)
            assert request.method == "POST"
            return httpx.Response(200, json={"execution_id": "01HX", "state": "QUERY_STATE_PENDING"})

        summary = make_service(test_settings, httpx.MockTransport(handler)).refresh_all()

        expected_ids = [DUNE_QUERIES[name] for name in REFRESHABLE_QUERIES]
        assert sorted(seen) == sorted(f"/api/v1/query/{qid}/execute" for qid in expected_ids)
        assert summary.message == "Refreshed 10/10 Dune queries"
        assert [r.query_id for r in summary.results] == expected_ids
        assert all(r.success and r.execution_id == "01HX" for r in summary.results)
        assert summary.timestamp.endswith("Z")

    def test_staking_tiers_and_unlocks_not_refreshed(self, test_settings: Settings) -> None:
        service = make_service(test_settings)
        assert DUNE_QUERIES["STAKING_TIERS"] not in service.query_ids
        assert DUNE_QUERIES["UNLOCK_SCHEDULE"] not in service.query_ids

    def test_failures_do_not_abort_others(self, test_settings: Settings) -> None:
        failing_id = DUNE_QUERIES["TOP_STAKERS"]

        def handler(request: httpx.Request) -> httpx.Response:
            if f"/query/{failing_id}/" in request.url.path:
                return httpx.Response(429, text="rate limited")
            return httpx.Response(200, json={"execution_id": "ok"})

        summary = make_service(test_settings, httpx.MockTransport(handler)).refresh_all()

        assert summary.message == "Refreshed 9/10 Dune queries"
        assert summary.succeeded == 9
        [failure] = summary.failed
        assert failure.query_id == failing_id
        assert failure.error == "HTTP 429: rate limited"
        assert failure.to_dict() == {
            "query_id": failing_id,
            "success": False,
            "error": "HTTP 429: rate limited",
        }

    def test_transport_failure_uses_error_message(self, test_settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("no route to host", request=request)

        summary = make_service(test_settings, httpx.MockTransport(handler)).refresh_all()

        assert summary.message == "Refreshed 0/10 Dune queries"
        assert all("no route to host" in (r.error or "") for r in summary.results)

    def test_custom_query_names(self, test_settings: Settings) -> None:
        def handler(_request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={})

        summary = make_service(
            test_settings,
            httpx.MockTransport(handler),
            query_names=("WEEKLY_STATS",),
        ).refresh_all()
        assert summary.message == "Refreshed 1/1 Dune queries"
        assert summary.results[0].execution_id is None

    def test_missing_api_key_fails_every_query(self, keyless_settings: Settings) -> None:
        service = RefreshService(keyless_settings)
        summary = service.refresh_all()
        service.close()

        assert summary.message == "Refreshed 0/10 Dune queries"
        assert len(summary.failed) == 10
        assert {r.error for r in summary.results} == {"Dune API key not configured"}
