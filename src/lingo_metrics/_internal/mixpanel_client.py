"""Mixpanel API Client.

Low-level HTTP client for the Mixpanel Query API, used by the analytics
proxy. Handles:
- API secret authentication via HTTP Basic auth (secret as username)
- Regional endpoint routing (US, EU, India)
- The two report shapes the dashboard needs: saved Insights reports and
  per-event counts

Browsers never talk to Mixpanel directly; the secret stays server-side.
"""

from __future__ import annotations

import base64
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

# Regional Query API base URLs
ENDPOINTS: dict[str, str] = {
    "us": "https://mixpanel.com/api/2.0",
    "eu": "https://eu.mixpanel.com/api/2.0",
    "in": "https://in.mixpanel.com/api/2.0",
}


class MixpanelAPIClient:
    """Low-level HTTP client for Mixpanel reports.

    Example:
        ```python
        settings = ConfigManager().load()

        with MixpanelAPIClient(settings) as client:
            report = client.query_saved_report(settings.mixpanel_report_id)
            print(report["series"]["A. DAU"])
        ```
    """

    def __init__(
        self,
        settings: Settings,
        *,
        _transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the API client.

        Args:
            settings: Resolved settings holding secret, project and region.
            _transport: Internal parameter for testing with MockTransport.

        Raises:
            ConfigError: If no Mixpanel secret is configured.
        """
        self._secret = settings.require_mixpanel_secret()
        self._project_id = settings.mixpanel_project_id
        self._region = settings.mixpanel_region
        self._timeout = settings.timeout
        self._client: httpx.Client | None = None
        self._transport = _transport

    @property
    def project_id(self) -> str:
        """Mixpanel project identifier."""
        return self._project_id

    @property
    def region(self) -> str:
        """Data residency region."""
        return self._region

    def _get_auth_header(self) -> str:
        """Generate HTTP Basic auth header value.

        Returns:
            Base64-encoded "secret:" prefixed with "Basic ".
        """
        encoded = base64.b64encode(f"{self._secret}:".encode()).decode()
        return f"Basic {encoded}"

    def _build_url(self, path: str) -> str:
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{ENDPOINTS[self._region]}{path}"

    def _ensure_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> MixpanelAPIClient:
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
        """Handle API response, raising appropriate exceptions with full context.

        Status code handling:
            - 200-299: Parse and return JSON response
            - 401, 403: AuthenticationError
            - 5xx: ServerError with error details from the body
            - other: NetworkError

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
        if status in (401, 403):
            raise AuthenticationError(
                "Invalid credentials. Check the Mixpanel API secret and project_id.",
                status_code=status,
                response_body=response_body,
                request_method=request_method,
                request_url=request_url,
            )
        if status >= 500:
            error_msg = f"Server error: {status}"
            if isinstance(response_body, dict) and "error" in response_body:
                error_msg = f"Server error: {response_body['error']}"
            raise ServerError(
                error_msg,
                status_code=status,
                response_body=response_body,
                request_method=request_method,
                request_url=request_url,
            )
        error_msg = None
        if isinstance(response_body, dict) and "error" in response_body:
            error_msg = str(response_body["error"])
        raise NetworkError(
            error_msg,
            status_code=status,
            response_body=response_body,
            request_method=request_method,
            request_url=request_url,
            request_params=request_params,
        )

    def _request(self, method: str, path: str, *, params: dict[str, Any]) -> Any:
        """Make an authenticated request with the project_id injected.

        Raises:
            NetworkError: On non-2xx responses or transport failures.
            LingoMetricsError: If a 2xx body is not valid JSON.
        """
        url = self._build_url(path)
        params = {"project_id": self._project_id, **params}
        logger.debug("%s %s params=%s", method, url, params)

        try:
            response = self._ensure_client().request(
                method,
                url,
                params=params,
                headers={
                    "Accept": "application/json",
                    "Authorization": self._get_auth_header(),
                },
            )
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
                response, request_method=method, request_url=url, request_params=params
            )
        except json.JSONDecodeError as e:
            raise LingoMetricsError(
                "Invalid JSON in response",
                code="INVALID_RESPONSE",
                details={"request_url": url, "error": str(e)},
            ) from e

    def query_saved_report(self, bookmark_id: int) -> dict[str, Any]:
        """Query a saved Insights report.

        Args:
            bookmark_id: Saved report identifier (from the Mixpanel URL).

        Returns:
            Raw API response with ``series`` ({series name: {date: value}})
            and ``date_range``.

        Raises:
            AuthenticationError: Invalid credentials.
            NetworkError: Invalid bookmark_id or other non-2xx response.
        """
        result: dict[str, Any] = self._request(
            "GET", "/insights", params={"bookmark_id": bookmark_id}
        )
        return result

    def event_counts(
        self,
        events: list[str],
        from_date: str,
        to_date: str,
        *,
        type: str = "general",
        unit: str = "day",
    ) -> dict[str, Any]:
        """Get aggregate counts for multiple events over time.

        Args:
            events: List of event names to query.
            from_date: Start date (YYYY-MM-DD).
            to_date: End date (YYYY-MM-DD).
            type: Counting method - "general", "unique", or "average".
            unit: Time unit - "day", "week", or "month".

        Returns:
            Dictionary with keys:
            - data.series: list of date strings
            - data.values: {event_name: {date: count}}

        Raises:
            AuthenticationError: Invalid credentials.
            NetworkError: Invalid parameters or other non-2xx response.
        """
        params: dict[str, Any] = {
            "event": json.dumps(events),
            "type": type,
            "unit": unit,
            "from_date": from_date,
            "to_date": to_date,
        }
        result: dict[str, Any] = self._request("GET", "/events", params=params)
        return result
