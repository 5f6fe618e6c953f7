"""HTTP client for the analytics proxy.

The proxy (``lingo_metrics.proxy``) holds the Mixpanel secret and exposes
``GET /api/analytics?type=...``. This client only knows the proxy, never
Mixpanel itself.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from lingo_metrics.exceptions import LingoMetricsError, NetworkError

if TYPE_CHECKING:
    from types import TracebackType

    from lingo_metrics._internal.config import Settings
    from lingo_metrics._literal_types import AnalyticsReportType

logger = logging.getLogger(__name__)

ANALYTICS_PATH = "/api/analytics"


class AnalyticsClient:
    """Reads analytics reports through the proxy.

    Example:
        ```python
        with AnalyticsClient(settings) as client:
            report = client.fetch("dau")
        ```
    """

    def __init__(
        self,
        settings: Settings,
        *,
        _transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Settings holding the proxy URL and timeout.
            _transport: Internal parameter for testing with MockTransport.
        """
        self._base_url = settings.proxy_url.rstrip("/")
        self._timeout = settings.timeout
        self._transport = _transport
        self._client: httpx.Client | None = None

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

    def __enter__(self) -> AnalyticsClient:
        self._ensure_client()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def fetch(
        self,
        report_type: AnalyticsReportType,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Fetch one report from the proxy.

        Args:
            report_type: dau, wau, mau or events.
            params: Extra query parameters (events mode only).

        Returns:
            The upstream response body, passed through by the proxy.

        Raises:
            NetworkError: On a non-2xx response or a transport failure.
            LingoMetricsError: If the body is not valid JSON.
        """
        url = f"{self._base_url}{ANALYTICS_PATH}"
        query: dict[str, Any] = {"type": report_type, **(params or {})}
        logger.debug("GET %s params=%s", url, query)

        try:
            response = self._ensure_client().get(url, params=query)
        except httpx.HTTPError as e:
            raise NetworkError(
                f"HTTP error: {e}",
                status_code=0,
                request_method="GET",
                request_url=url,
                request_params=query,
            ) from e

        if not response.is_success:
            raise NetworkError(
                f"API error: {response.status_code}",
                status_code=response.status_code,
                response_body=response.text[:500] or None,
                request_method="GET",
                request_url=url,
                request_params=query,
            )

        try:
            result: dict[str, Any] = response.json()
        except json.JSONDecodeError as e:
            raise LingoMetricsError(
                "Invalid JSON in response",
                code="INVALID_RESPONSE",
                details={"request_url": url, "error": str(e)},
            ) from e
        return result
