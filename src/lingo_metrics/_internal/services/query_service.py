"""Query Service for Dune query results.

Reads the latest execution results of saved Dune queries, caching rows for
24 hours so repeated reads within a day never touch the network. Network
reads of the same query and limit that overlap in time share a single
request.

Handles returned by ``QueryService.track`` wrap one query in the
``{rows, is_loading, error, refetch}`` shape the dashboard consumes: errors
are captured as strings instead of propagating.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from lingo_metrics._internal.cache import dune_cache_key
from lingo_metrics._internal.dune_client import DuneAPIClient
from lingo_metrics.exceptions import (
    ConfigError,
    InvalidResponseError,
    LingoMetricsError,
    QueryExecutionError,
    QueryNotFinishedError,
)
from lingo_metrics.queries import QUERY_LIMITS
from lingo_metrics.rows import ROW_MODELS, DuneRow, parse_rows
from lingo_metrics.types import QueryResult

if TYPE_CHECKING:
    import httpx

    from lingo_metrics._internal.cache import TimedCache
    from lingo_metrics._internal.config import Settings
    from lingo_metrics._literal_types import FetchStatus, QueryState

_logger = logging.getLogger(__name__)

RowT = TypeVar("RowT", bound=DuneRow)

_PENDING: QueryState = "QUERY_STATE_PENDING"
_COMPLETED: QueryState = "QUERY_STATE_COMPLETED"
_FAILED: QueryState = "QUERY_STATE_FAILED"


def _error_message(error: Any) -> str | None:
    """Extract the upstream message from Dune's error field (string or object)."""
    if isinstance(error, dict):
        message = error.get("message")
        return str(message) if message else None
    if error:
        return str(error)
    return None


def _parse_payload(payload: Any, query_id: str) -> tuple[QueryResult, bool]:
    """Turn a results response into a QueryResult and a finished flag.

    An execution counts as finished only when ``is_execution_finished``
    says so.

    Raises:
        InvalidResponseError: If the body is not a results object.
        QueryExecutionError: If Dune reports the execution as failed.
    """
    if not isinstance(payload, dict):
        raise InvalidResponseError(
            f"Unexpected results body for query {query_id}", source=query_id
        )
    finished = bool(payload.get("is_execution_finished", False))
    state = payload.get("state") or (_COMPLETED if finished else _PENDING)
    execution_id = str(payload.get("execution_id") or "")

    if state == _FAILED:
        raise QueryExecutionError(
            _error_message(payload.get("error")),
            query_id=query_id,
            execution_id=execution_id or None,
            state=state,
        )

    result = payload.get("result")
    rows = (result.get("rows") if isinstance(result, dict) else None) or []
    if not isinstance(rows, list):
        raise InvalidResponseError(
            f"Unexpected rows in results of query {query_id}", source=query_id
        )
    return (
        QueryResult(
            execution_id=execution_id,
            query_id=query_id,
            state=state,
            rows=list(rows) if finished else [],
        ),
        finished,
    )


class QueryService:
    """Cached access to Dune query results.

    Example:
        ```python
        settings = ConfigManager().load()
        with TimedCache(settings.cache_path) as cache:
            service = QueryService(settings, cache=cache)
            rows = service.fetch_rows("TOTAL_STAKED_TREND")
        ```
    """

    def __init__(
        self,
        settings: Settings,
        *,
        cache: TimedCache,
        client: DuneAPIClient | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        _transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            settings: Resolved settings (API key, limits, polling).
            cache: Cache that stores completed rows.
            client: Dune client to use. Created lazily from settings when
                omitted, so a missing API key only fails on first fetch.
            clock: Monotonic clock used for the polling deadline.
            sleep: Sleep function used between polls.
            _transport: Internal parameter for testing with MockTransport.
        """
        self._settings = settings
        self._cache = cache
        self._client = client
        self._clock = clock
        self._sleep = sleep
        self._transport = _transport
        self._lock = threading.Lock()
        self._in_flight: dict[tuple[str, int], Future[QueryResult]] = {}

    @property
    def settings(self) -> Settings:
        """Settings the service was built with."""
        return self._settings

    def _get_client(self) -> DuneAPIClient:
        with self._lock:
            if self._client is None:
                self._client = DuneAPIClient(self._settings, _transport=self._transport)
            return self._client

    def close(self) -> None:
        """Close the underlying HTTP client, if one was created."""
        if self._client is not None:
            self._client.close()

    def resolve_limit(self, query_id: str, limit: int | None = None) -> int:
        """Row limit for a query: explicit, per-query default, or global default."""
        if limit is not None:
            return limit
        name = self._settings.query_name(query_id)
        return QUERY_LIMITS.get(name or "", self._settings.query_limit)

    def fetch_result(
        self,
        query: str | int,
        limit: int | None = None,
        *,
        force_refresh: bool = False,
    ) -> QueryResult:
        """Return the latest completed result of a query.

        The cache is consulted first unless ``force_refresh`` is set. On a
        miss the results endpoint is read and, if the execution completed,
        the rows are written to the cache (overwriting any previous entry).

        Args:
            query: Query name from the registry or a numeric query id.
            limit: Maximum rows to read. Defaults per query.
            force_refresh: Skip the cache read.

        Returns:
            Completed QueryResult. ``from_cache`` tells where the rows came from.

        Raises:
            ConfigError: If the API key is missing or the name is unknown.
            NetworkError: On a non-2xx response.
            QueryExecutionError: If Dune reports the execution failed.
            QueryNotFinishedError: If the execution has not finished (after
                polling, when ``max_wait`` is positive).
        """
        query_id = self._settings.resolve_query(query)
        row_limit = self.resolve_limit(query_id, limit)
        self._settings.require_dune_api_key()

        if not force_refresh:
            cached = self._cache.get(dune_cache_key(query_id))
            if isinstance(cached, list):
                _logger.debug("Serving query %s from cache", query_id)
                return QueryResult(
                    execution_id="",
                    query_id=query_id,
                    state=_COMPLETED,
                    rows=cached,
                    from_cache=True,
                )

        return self._fetch_shared(query_id, row_limit)

    def fetch_rows(
        self,
        query: str | int,
        limit: int | None = None,
        *,
        force_refresh: bool = False,
    ) -> list[dict[str, Any]]:
        """Shorthand for ``fetch_result(...).rows``."""
        return self.fetch_result(query, limit, force_refresh=force_refresh).rows

    def _fetch_shared(self, query_id: str, limit: int) -> QueryResult:
        """Fetch from the network, joining an identical request in flight."""
        key = (query_id, limit)
        with self._lock:
            future = self._in_flight.get(key)
            owner = future is None
            if future is None:
                future = Future()
                self._in_flight[key] = future

        if not owner:
            _logger.debug("Joining in-flight fetch of query %s", query_id)
            return future.result()

        try:
            result = self._fetch_from_network(query_id, limit)
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                self._in_flight.pop(key, None)

    def _fetch_from_network(self, query_id: str, limit: int) -> QueryResult:
        client = self._get_client()
        deadline = self._clock() + self._settings.max_wait

        while True:
            payload = client.get_query_results(query_id, limit=limit)
            result, finished = _parse_payload(payload, query_id)
            if finished:
                self._cache.set(dune_cache_key(query_id), result.rows)
                _logger.debug("Fetched %d rows for query %s", len(result.rows), query_id)
                return result

            if self._clock() >= deadline:
                raise QueryNotFinishedError(
                    query_id=query_id,
                    execution_id=result.execution_id or None,
                    state=result.state,
                )
            _logger.debug(
                "Query %s is %s, polling again in %.1fs",
                query_id,
                result.state,
                self._settings.poll_interval,
            )
            self._sleep(self._settings.poll_interval)

    def track(
        self,
        query: str | int,
        *,
        limit: int | None = None,
        model: type[RowT] | None = None,
    ) -> QueryHandle[Any]:
        """Create a handle for one query.

        The handle starts absent; call ``load()`` or ``refetch()`` to fetch.
        Rows are parsed into the registered row model for named queries
        unless ``model`` is given.

        Raises:
            UnknownQueryError: If ``query`` is an unregistered name.
        """
        query_id = self._settings.resolve_query(query)
        if model is None:
            name = self._settings.query_name(query_id)
            model = ROW_MODELS.get(name or "")  # type: ignore[assignment]
        return QueryHandle(self, query_id, limit=limit, model=model)


class QueryHandle(Generic[RowT]):
    """Fetch state of a single query: rows, loading flag and error message.

    Example:
        ```python
        handle = service.track("WEEKLY_STATS").load()
        if handle.error:
            print("failed:", handle.error)
        else:
            latest = handle.rows[-1]
        ```
    """

    def __init__(
        self,
        service: QueryService,
        query_id: str,
        *,
        limit: int | None = None,
        model: type[RowT] | None = None,
    ) -> None:
        self._service = service
        self._query_id = query_id
        self._limit = limit
        self._model = model
        self._lock = threading.Lock()
        self._status: FetchStatus = "absent"
        self._data: list[dict[str, Any]] | None = None
        self._error: str | None = None
        self._from_cache = False

    @property
    def query_id(self) -> str:
        return self._query_id

    @property
    def status(self) -> FetchStatus:
        """One of absent, loading, loaded, error."""
        return self._status

    @property
    def is_loading(self) -> bool:
        return self._status == "loading"

    @property
    def error(self) -> str | None:
        """Message of the last failure, cleared when a new fetch starts."""
        return self._error

    @property
    def data(self) -> list[dict[str, Any]] | None:
        """Raw rows of the last successful fetch, None otherwise."""
        return self._data

    @property
    def from_cache(self) -> bool:
        return self._from_cache

    @property
    def rows(self) -> list[RowT] | list[dict[str, Any]] | None:
        """Rows parsed into the query's row model (raw dicts when it has none)."""
        if self._data is None:
            return None
        if self._model is None:
            return self._data
        return parse_rows(self._model, self._data)

    def load(self) -> QueryHandle[RowT]:
        """Fetch rows, serving them from the cache when fresh."""
        return self._run(force_refresh=False)

    def refetch(self) -> QueryHandle[RowT]:
        """Fetch rows from the network and overwrite the cache on success."""
        return self._run(force_refresh=True)

    def _run(self, *, force_refresh: bool) -> QueryHandle[RowT]:
        try:
            self._service.settings.require_dune_api_key()
        except ConfigError as e:
            with self._lock:
                self._status = "error"
                self._error = e.message
                self._data = None
            return self

        with self._lock:
            self._status = "loading"
            self._error = None

        try:
            result = self._service.fetch_result(
                self._query_id, self._limit, force_refresh=force_refresh
            )
        except LingoMetricsError as e:
            _logger.warning("Query %s failed: %s", self._query_id, e.message)
            with self._lock:
                self._status = "error"
                self._error = e.message
                self._data = None
            return self

        with self._lock:
            self._status = "loaded"
            self._data = result.rows
            self._from_cache = result.from_cache
        return self
