"""Unit tests for DuneAPIClient."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from lingo_metrics._internal.config import Settings
from lingo_metrics._internal.dune_client import API_KEY_HEADER, DuneAPIClient
from lingo_metrics.exceptions import (
    AuthenticationError,
    ConfigError,
    LingoMetricsError,
    NetworkError,
    ServerError,
)

Handler = Callable[[httpx.Request], httpx.Response]


def make_client(settings: Settings, handler: Handler) -> DuneAPIClient:
    return DuneAPIClient(settings, _transport=httpx.MockTransport(handler))


class TestConstruction:
    def test_requires_api_key(self, keyless_settings: Settings) -> None:
        with pytest.raises(ConfigError, match="Dune API key not configured"):
            DuneAPIClient(keyless_settings)


class TestRequests:
    def test_get_query_results(self, test_settings: Settings) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"state": "QUERY_STATE_COMPLETED"})

        with make_client(test_settings, handler) as client:
            result = client.get_query_results("6590984", limit=50)

        assert result == {"state": "QUERY_STATE_COMPLETED"}
        [request] = seen
        assert request.method == "GET"
        assert request.url.path == "/api/v1/query/6590984/results"
        assert request.url.params["limit"] == "50"
        assert request.headers[API_KEY_HEADER] == "dune_test_key"

    def test_default_limit(self, test_settings: Settings) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        with make_client(test_settings, handler) as client:
            client.get_query_results("1")
        assert seen[0].url.params["limit"] == "1000"

    def test_execute_query(self, test_settings: Settings) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"execution_id": "01HX", "state": "QUERY_STATE_PENDING"})

        with make_client(test_settings, handler) as client:
            result = client.execute_query("6632385")

        assert result["execution_id"] == "01HX"
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/api/v1/query/6632385/execute"
        assert seen[0].headers[API_KEY_HEADER] == "dune_test_key"

    def test_custom_base_url(self) -> None:
        settings = Settings(
            dune_api_key="k",  # type: ignore[arg-type]
            dune_base_url="https://dune.internal/v1/",
        )
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json={})

        with make_client(settings, handler) as client:
            client.execute_query("7")
        assert seen == ["https://dune.internal/v1/query/7/execute"]


class TestErrors:
    @pytest.mark.parametrize(
        ("status", "error_type"),
        [
            (400, NetworkError),
            (401, AuthenticationError),
            (403, AuthenticationError),
            (404, NetworkError),
            (429, NetworkError),
            (500, ServerError),
            (503, ServerError),
        ],
    )
    def test_status_mapping(
        self, test_settings: Settings, status: int, error_type: type[Exception]
    ) -> None:
        def handler(_request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json={"error": "nope"})

        with make_client(test_settings, handler) as client, pytest.raises(error_type) as exc_info:
            client.get_query_results("1")

        error: Any = exc_info.value
        assert isinstance(error, NetworkError)
        assert error.message == f"HTTP error! status: {status}"
        assert error.status_code == status
        assert error.response_body == {"error": "nope"}
        assert error.request_method == "GET"

    def test_text_body_kept(self, test_settings: Settings) -> None:
        def handler(_request: httpx.Request) -> httpx.Response:
            return httpx.Response(402, text="payment required")

        with make_client(test_settings, handler) as client, pytest.raises(NetworkError) as exc_info:
            client.execute_query("1")
        assert exc_info.value.response_body == "payment required"

    def test_transport_error(self, test_settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with make_client(test_settings, handler) as client, pytest.raises(NetworkError) as exc_info:
            client.get_query_results("1")
        assert exc_info.value.status_code == 0
        assert "connection refused" in exc_info.value.message

    def test_invalid_json(self, test_settings: Settings) -> None:
        def handler(_request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        with make_client(test_settings, handler) as client, pytest.raises(LingoMetricsError) as exc_info:
            client.get_query_results("1")
        assert exc_info.value.code == "INVALID_RESPONSE"
