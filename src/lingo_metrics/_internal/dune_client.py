"""Dune API Client.

Low-level HTTP client for the Dune query API. Handles:
- API key authentication via the X-Dune-API-Key header
- Reading the latest execution results of a saved query
- Triggering a fresh execution of a saved query

Responses are returned as parsed JSON; interpreting execution state is left
to the query service.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from lingo_metrics.exceptions import (
    AuthenticationError,
    LingoMetricsError,
    NetworkError,
    ServerError,
)

if TYPE_CHECKING:
    from types import TracebackType

    from lingo_metrics._internal.config import Settings

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-Dune-API-Key"


class DuneAPIClient:
    """Low-level HTTP client for the Dune API.

    Example:
        ```python
        from lingo_metrics._internal.config import ConfigManager
        from lingo_metrics._internal.dune_client import DuneAPIClient

        settings = ConfigManager().load()

        with DuneAPIClient(settings) as client:
            payload = client.get_query_results("6590984", limit=100)
            print(payload["state"])
        ```
    """

    def __init__(
        self,
        settings: Settings,
        *,
        _transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the API client.

        The API key is resolved here, so a client can only exist when a key
        is configured.

        Args:
            settings: Resolved settings holding the API key and base URL.
            _transport: Internal parameter for testing with MockTransport.

        Raises:
            ConfigError: If no Dune API key is configured.
        """
        self._api_key = settings.require_dune_api_key()
        self._base_url = settings.dune_base_url.rstrip("/")
        self._timeout = settings.timeout
        self._client: httpx.Client | None = None
        self._transport = _transport

    def _build_url(self, path: str) -> str:
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self._base_url}{path}"

    def _ensure_client(self) -> httpx.Client:
        """Ensure HTTP client is initialized.

        Returns:
            The httpx.Client instance.
        """
        if self._client is None:
            self._client = httpx.Client(
                timeout=self._timeout,
                transport=self._transport,
                headers={API_KEY_HEADER: self._api_key},
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> DuneAPIClient:
        """Enter context manager."""
        self._ensure_client()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit context manager, closing client."""
        self.close()

    def _handle_response(
        self,
        response: httpx.Response,
        *,
        request_method: str | None = None,
        request_url: str | None = None,
        request_params: dict[str, Any] | None = None,
    ) -> Any:
        """Handle API response, raising NetworkError for any non-2xx status.

        Status code handling:
            - 200-299: Parse and return JSON response
            - 401, 403: AuthenticationError
            - 5xx: ServerError
            - anything else: NetworkError

        The message always reads "HTTP error! status: N" so callers can show
        it as-is.

        Args:
            response: The HTTP response to handle.
            request_method: HTTP method used.
            request_url: Full request URL.
            request_params: Query parameters sent.

        Returns:
            Parsed JSON response for successful requests.

        Raises:
            AuthenticationError: On 401/403 response.
            ServerError: On 5xx response.
            NetworkError: On any other non-2xx response.
        """
        if response.is_success:
            return response.json()

        response_body: str | dict[str, Any] | None = None
        try:
            response_body = response.json()
        except json.JSONDecodeError:
            response_body = response.text[:500] if response.text else None

        status = response.status_code
        message = f"HTTP error! status: {status}"
        context: dict[str, Any] = {
            "status_code": status,
            "response_body": response_body,
            "request_method": request_method,
            "request_url": request_url,
        }
        if status in (401, 403):
            raise AuthenticationError(message, **context)
        if status >= 500:
            raise ServerError(message, **context)
        raise NetworkError(message, request_params=request_params, **context)

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Make an authenticated request.

        Transport failures (DNS, connection reset, timeout) surface as
        NetworkError with status code 0.

        Raises:
            NetworkError: On non-2xx responses or transport failures.
            LingoMetricsError: If a 2xx body is not valid JSON.
        """
        url = self._build_url(path)
        client = self._ensure_client()
        logger.debug("%s %s params=%s", method, url, params)

        try:
            response = client.request(method, url, params=params)
        except httpx.HTTPError as e:
            raise NetworkError(
                f"HTTP error: {e}",
                status_code=0,
                request_method=method,
                request_url=url,
                request_params=params,
            ) from e

        try:
            return self._handle_response(
                response,
                request_method=method,
                request_url=url,
                request_params=params,
            )
        except json.JSONDecodeError as e:
            raise LingoMetricsError(
                "Invalid JSON in response",
                code="INVALID_RESPONSE",
                details={"request_url": url, "error": str(e)},
            ) from e

    def get_query_results(self, query_id: str, limit: int = 1000) -> dict[str, Any]:
        """Read the latest execution results of a saved query.

        Args:
            query_id: Dune query identifier.
            limit: Maximum number of rows to return.

        Returns:
            Raw response with execution_id, state, is_execution_finished,
            result.rows and, for failed executions, error.

        Raises:
            NetworkError: On non-2xx responses.
        """
        result: dict[str, Any] = self._request(
            "GET", f"/query/{query_id}/results", params={"limit": limit}
        )
        return result

    def execute_query(self, query_id: str) -> dict[str, Any]:
        """Trigger a new execution of a saved query.

        Dune responds immediately with the execution id; results become
        readable through ``get_query_results`` once it finishes.

        Args:
            query_id: Dune query identifier.

        Returns:
            Raw response holding execution_id and state.

        Raises:
            NetworkError: On non-2xx responses.
        """
        result: dict[str, Any] = self._request("POST", f"/query/{query_id}/execute")
        return result
