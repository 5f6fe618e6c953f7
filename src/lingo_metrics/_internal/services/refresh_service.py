"""Refresh Service that re-executes the dashboard's Dune queries.

Dune serves the results of a query's latest execution. Triggering fresh
executions once a day keeps those results current; the dashboard's 24 hour
cache then picks them up on its next miss.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from lingo_metrics._internal.dune_client import DuneAPIClient
from lingo_metrics.exceptions import APIError, LingoMetricsError
from lingo_metrics.queries import REFRESHABLE_QUERIES
from lingo_metrics.types import RefreshResult, RefreshSummary

if TYPE_CHECKING:
    import httpx

    from lingo_metrics._internal.config import Settings

_logger = logging.getLogger(__name__)


def _failure_message(error: LingoMetricsError) -> str:
    """Format a failure as "HTTP {status}: {body}" when a response exists."""
    if isinstance(error, APIError) and error.status_code:
        body = error.response_body
        text = body if isinstance(body, str) else (str(body) if body else "")
        return f"HTTP {error.status_code}: {text}"
    return error.message


class RefreshService:
    """Triggers executions of every refreshable query in parallel."""

    def __init__(
        self,
        settings: Settings,
        *,
        client: DuneAPIClient | None = None,
        query_names: tuple[str, ...] = REFRESHABLE_QUERIES,
        max_workers: int = 10,
        _transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the service.

        A missing Dune API key does not raise here: every query of the
        run is reported as failed with the configuration error.

        Args:
            settings: Settings holding the API key and query registry.
            client: Dune client. Created from settings when omitted.
            query_names: Registry names of the queries to execute.
            max_workers: Maximum parallel execute requests.
            _transport: Internal parameter for testing with MockTransport.
        """
        self._settings = settings
        self._client = client
        self._transport = _transport
        self._lock = threading.Lock()
        self._query_ids = [settings.resolve_query(name) for name in query_names]
        self._max_workers = max_workers

    @property
    def query_ids(self) -> list[str]:
        return list(self._query_ids)

    def _get_client(self) -> DuneAPIClient:
        with self._lock:
            if self._client is None:
                self._client = DuneAPIClient(self._settings, _transport=self._transport)
            return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    def _execute(self, query_id: str) -> RefreshResult:
        try:
            payload = self._get_client().execute_query(query_id)
        except LingoMetricsError as e:
            return RefreshResult(query_id=query_id, success=False, error=_failure_message(e))
        execution_id = payload.get("execution_id") if isinstance(payload, dict) else None
        return RefreshResult(
            query_id=query_id,
            success=True,
            execution_id=str(execution_id) if execution_id else None,
        )

    def refresh_all(self) -> RefreshSummary:
        """Execute all queries; individual failures never abort the rest.

        Returns:
            Summary with one result per query, in registry order, and the
            message "Refreshed {succeeded}/{total} Dune queries".
        """
        _logger.info("Starting Dune query refresh...")
        workers = max(1, min(self._max_workers, len(self._query_ids)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(self._execute, self._query_ids))

        succeeded = sum(1 for r in results if r.success)
        total = len(self._query_ids)
        _logger.info("Dune refresh complete: %d/%d queries executed", succeeded, total)
        for failure in (r for r in results if not r.success):
            _logger.warning("Refresh of query %s failed: %s", failure.query_id, failure.error)

        return RefreshSummary(
            message=f"Refreshed {succeeded}/{total} Dune queries",
            results=results,
            timestamp=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        )
