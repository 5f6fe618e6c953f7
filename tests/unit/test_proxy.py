"""Unit tests for the analytics proxy and refresh endpoints."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import date
from typing import Any

import httpx
import pytest
from flask import Flask
from flask.testing import FlaskClient

from lingo_metrics._internal.config import Settings
from lingo_metrics.proxy import create_app, is_authorized

Handler = Callable[[httpx.Request], httpx.Response]


class Upstream:
    """Records upstream requests and answers them with a fixed response."""

    def __init__(self, status: int = 200, body: Any = None) -> None:
        self.status = status
        self.body = body if body is not None else {"ok": True}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body)


def build_app(
    settings: Settings,
    today: date,
    mixpanel: Upstream | None = None,
    dune: Handler | None = None,
) -> Flask:
    app = create_app(
        settings,
        today=lambda: today,
        mixpanel_transport=httpx.MockTransport(mixpanel or Upstream()),
        dune_transport=httpx.MockTransport(dune) if dune else None,
    )
    app.testing = True
    return app


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
def client(test_settings: Settings, today: date, upstream: Upstream) -> FlaskClient:
    return build_app(test_settings, today, upstream).test_client()


class TestAnalyticsEndpoint:
    @pytest.mark.parametrize("query", ["", "?type=yau", "?type=DAU"])
    def test_invalid_type(self, client: FlaskClient, upstream: Upstream, query: str) -> None:
        response = client.get(f"/api/analytics{query}")
        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid type. Use: dau, wau, mau, or events"}
        assert upstream.requests == []

    def test_dau_passes_report_through(self, test_settings: Settings, today: date) -> None:
        report = {"series": {"A. DAU": {"2025-03-14": 12}}}
        upstream = Upstream(body=report)
        client = build_app(test_settings, today, upstream).test_client()

        response = client.get("/api/analytics?type=dau")

        assert response.status_code == 200
        assert response.get_json() == report
        [request] = upstream.requests
        assert request.url.path == "/api/2.0/insights"
        assert request.url.params["bookmark_id"] == "75454495"
        assert request.url.params["project_id"] == "3623820"

    def test_wau_trailing_week(self, client: FlaskClient, upstream: Upstream) -> None:
        assert client.get("/api/analytics?type=wau").status_code == 200
        params = upstream.requests[0].url.params
        assert upstream.requests[0].url.path == "/api/2.0/events"
        assert json.loads(params["event"]) == ["Wallet Connected"]
        assert params["type"] == "unique"
        assert params["unit"] == "week"
        assert (params["from_date"], params["to_date"]) == ("2025-03-08", "2025-03-15")

    def test_mau_trailing_month(self, client: FlaskClient, upstream: Upstream) -> None:
        assert client.get("/api/analytics?type=mau").status_code == 200
        params = upstream.requests[0].url.params
        assert params["unit"] == "month"
        assert (params["from_date"], params["to_date"]) == ("2025-02-13", "2025-03-15")

    def test_events_forwards_parameters(self, client: FlaskClient, upstream: Upstream) -> None:
        events = json.dumps(["Stake Completed", "Rewards Claimed"])
        response = client.get(
            "/api/analytics",
            query_string={
                "type": "events",
                "event": events,
                "from_date": "2025-01-01",
                "to_date": "2025-02-28",
                "unit": "week",
            },
        )
        assert response.status_code == 200
        params = upstream.requests[0].url.params
        assert json.loads(params["event"]) == ["Stake Completed", "Rewards Claimed"]
        assert params["type"] == "general"
        assert (params["from_date"], params["to_date"], params["unit"]) == (
            "2025-01-01",
            "2025-02-28",
            "week",
        )

    def test_events_defaults(self, client: FlaskClient, upstream: Upstream) -> None:
        response = client.get(
            "/api/analytics", query_string={"type": "events", "event": '["Stake Completed"]'}
        )
        assert response.status_code == 200
        params = upstream.requests[0].url.params
        assert (params["from_date"], params["to_date"], params["unit"]) == (
            "2024-11-01",
            "2025-03-15",
            "month",
        )

    @pytest.mark.parametrize(
        "query_string",
        [
            {"type": "events"},
            {"type": "events", "event": "Stake Completed"},
            {"type": "events", "event": '{"a": 1}'},
            {"type": "events", "event": '["A"]', "unit": "year"},
        ],
    )
    def test_events_bad_parameters(
        self, client: FlaskClient, upstream: Upstream, query_string: dict[str, str]
    ) -> None:
        response = client.get("/api/analytics", query_string=query_string)
        assert response.status_code == 400
        assert "error" in response.get_json()
        assert upstream.requests == []

    def test_upstream_failure(self, test_settings: Settings, today: date) -> None:
        client = build_app(test_settings, today, Upstream(status=500)).test_client()
        response = client.get("/api/analytics?type=dau")
        assert response.status_code == 500
        assert response.get_json() == {"error": "Failed to fetch Mixpanel data"}

    def test_missing_secret(self, keyless_settings: Settings, today: date) -> None:
        upstream = Upstream()
        client = build_app(keyless_settings, today, upstream).test_client()
        response = client.get("/api/analytics?type=dau")
        assert response.status_code == 500
        assert response.get_json() == {"error": "Failed to fetch Mixpanel data"}
        assert upstream.requests == []

    def test_cors_headers(self, client: FlaskClient) -> None:
        response = client.get("/api/analytics?type=dau", headers={"Origin": "https://dash.example"})
        assert response.headers["Access-Control-Allow-Origin"] == "*"

    def test_cors_preflight(self, client: FlaskClient) -> None:
        response = client.options(
            "/api/analytics",
            headers={
                "Origin": "https://dash.example",
                "Access-Control-Request-Method": "GET",
            },
        )
        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == "*"
        assert "GET" in response.headers["Access-Control-Allow-Methods"]


class TestRefreshEndpoint:
    @pytest.fixture
    def dune_ok(self) -> Handler:
        def handler(_request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"execution_id": "01HX"})

        return handler

    def test_unauthorized(self, test_settings: Settings, today: date, dune_ok: Handler) -> None:
        client = build_app(test_settings, today, dune=dune_ok).test_client()
        response = client.get("/api/refresh-queries")
        assert response.status_code == 401
        assert response.get_json() == {"error": "Unauthorized"}

    def test_wrong_bearer(self, test_settings: Settings, today: date, dune_ok: Handler) -> None:
        client = build_app(test_settings, today, dune=dune_ok).test_client()
        response = client.post(
            "/api/refresh-queries", headers={"Authorization": "Bearer wrong"}
        )
        assert response.status_code == 401

    @pytest.mark.parametrize(
        "headers",
        [
            {"Authorization": "Bearer cron_test_secret"},
            {"x-vercel-cron": "1"},
        ],
    )
    def test_authorized(
        self,
        test_settings: Settings,
        today: date,
        dune_ok: Handler,
        headers: dict[str, str],
    ) -> None:
        client = build_app(test_settings, today, dune=dune_ok).test_client()
        response = client.post("/api/refresh-queries", headers=headers)

        assert response.status_code == 200
        body = response.get_json()
        assert body["message"] == "Refreshed 10/10 Dune queries"
        assert len(body["results"]) == 10
        assert body["results"][0] == {
            "query_id": "6590984",
            "success": True,
            "execution_id": "01HX",
        }
        assert body["timestamp"].endswith("Z")

    def test_open_without_secret(self, today: date, dune_ok: Handler) -> None:
        settings = Settings(dune_api_key="k", cache_path=None)  # type: ignore[arg-type]
        client = build_app(settings, today, dune=dune_ok).test_client()
        assert client.get("/api/refresh-queries").status_code == 200

    def test_partial_failure_still_200(self, test_settings: Settings, today: date) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if "6632385" in request.url.path:
                return httpx.Response(500, text="upstream down")
            return httpx.Response(200, json={"execution_id": "x"})

        client = build_app(test_settings, today, dune=handler).test_client()
        response = client.get(
            "/api/refresh-queries", headers={"Authorization": "Bearer cron_test_secret"}
        )
        body = response.get_json()
        assert response.status_code == 200
        assert body["message"] == "Refreshed 9/10 Dune queries"
        failed = [r for r in body["results"] if not r["success"]]
        assert failed == [
            {"query_id": "6632385", "success": False, "error": "HTTP 500: upstream down"}
        ]

    def test_missing_dune_key(self, today: date) -> None:
        client = build_app(Settings(cache_path=None), today).test_client()
        response = client.get("/api/refresh-queries")
        assert response.status_code == 200
        body = response.get_json()
        assert body["message"] == "Refreshed 0/10 Dune queries"
        assert {r["error"] for r in body["results"]} == {"Dune API key not configured"}
        assert not any(r["success"] for r in body["results"])


class TestIsAuthorized:
    def test_no_secret_allows_everything(self) -> None:
        assert is_authorized({}, Settings())

    def test_bearer(self, test_settings: Settings) -> None:
        assert is_authorized({"Authorization": "Bearer cron_test_secret"}, test_settings)
        assert not is_authorized({"Authorization": "cron_test_secret"}, test_settings)
        assert not is_authorized({"Authorization": "Bearer crön"}, test_settings)

    def test_scheduler_header(self, test_settings: Settings) -> None:
        assert is_authorized({"x-vercel-cron": "1"}, test_settings)
        assert not is_authorized({"x-vercel-cron": "0"}, test_settings)


def test_health(client: FlaskClient) -> None:
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "healthy"}
