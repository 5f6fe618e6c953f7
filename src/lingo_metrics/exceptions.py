"""Exception hierarchy for lingo_metrics.

All library exceptions inherit from LingoMetricsError, so callers can catch
every library error with one except clause and still handle specific
failures (missing configuration, HTTP errors, failed Dune executions)
individually.

Cache I/O problems have no exception type: the cache degrades to a miss or
a no-op write and never raises.
"""

from __future__ import annotations

from typing import Any


class LingoMetricsError(Exception):
    """Base exception for all lingo_metrics errors.

    Provides a machine-readable code and structured details alongside the
    human-readable message, and can be serialized with ``to_dict()``.
    """

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Human-readable error message.
            code: Machine-readable error code for programmatic handling.
            details: Additional structured data about the error.
        """
        super().__init__(message)
        self._message = message
        self._code = code
        self._details = details or {}

    @property
    def code(self) -> str:
        """Machine-readable error code."""
        return self._code

    @property
    def message(self) -> str:
        """Human-readable error message."""
        return self._message

    @property
    def details(self) -> dict[str, Any]:
        """Additional structured error data."""
        return self._details

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for logging/JSON output.

        Returns:
            Dictionary with keys: code, message, details.
        """
        return {
            "code": self._code,
            "message": self._message,
            "details": self._details,
        }

    def __str__(self) -> str:
        """Return human-readable error message."""
        return self._message

    def __repr__(self) -> str:
        """Return detailed string representation."""
        return (
            f"{self.__class__.__name__}(message={self._message!r}, code={self._code!r})"
        )


# Configuration Exceptions


class ConfigError(LingoMetricsError):
    """Configuration is missing or invalid.

    Raised before any network attempt, e.g. when the Dune API key is not
    set or the config file cannot be parsed.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize ConfigError.

        Args:
            message: Human-readable error message.
            details: Additional structured data.
        """
        super().__init__(message, code="CONFIG_ERROR", details=details)


class UnknownQueryError(ConfigError):
    """A query name is not present in the configured query registry."""

    def __init__(self, name: str, available: list[str] | None = None) -> None:
        """Initialize UnknownQueryError.

        Args:
            name: The requested query name.
            available: Known query names, for suggestions.
        """
        available = available or []
        message = f"Unknown query '{name}'."
        if available:
            message += f" Known queries: {', '.join(available)}"
        super().__init__(message, details={"name": name, "available": available})
        self._code = "UNKNOWN_QUERY"

    @property
    def name(self) -> str:
        """The requested query name."""
        return str(self._details.get("name", ""))


# API Exceptions


class APIError(LingoMetricsError):
    """Base class for HTTP errors from Dune, Mixpanel or the proxy.

    Carries the status code, the (possibly truncated) response body and
    the request that produced it.

    Example:
        ```python
        try:
            service.fetch_rows("6590984")
        except APIError as e:
            print(e.status_code, e.request_url)
        ```
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        response_body: str | dict[str, Any] | None = None,
        request_method: str | None = None,
        request_url: str | None = None,
        request_params: dict[str, Any] | None = None,
        code: str = "API_ERROR",
    ) -> None:
        """Initialize APIError.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code from response.
            response_body: Raw response body (string or parsed dict).
            request_method: HTTP method used.
            request_url: Full request URL.
            request_params: Query parameters sent.
            code: Machine-readable error code.
        """
        self._status_code = status_code
        self._response_body = response_body
        self._request_method = request_method
        self._request_url = request_url
        self._request_params = request_params

        details: dict[str, Any] = {"status_code": status_code}
        if response_body is not None:
            details["response_body"] = response_body
        if request_method is not None:
            details["request_method"] = request_method
        if request_url is not None:
            details["request_url"] = request_url
        if request_params is not None:
            details["request_params"] = request_params

        super().__init__(message, code=code, details=details)

    @property
    def status_code(self) -> int:
        """HTTP status code from response."""
        return self._status_code

    @property
    def response_body(self) -> str | dict[str, Any] | None:
        """Raw response body (string or parsed dict)."""
        return self._response_body

    @property
    def request_method(self) -> str | None:
        """HTTP method used."""
        return self._request_method

    @property
    def request_url(self) -> str | None:
        """Full request URL."""
        return self._request_url

    @property
    def request_params(self) -> dict[str, Any] | None:
        """Query parameters sent."""
        return self._request_params


class NetworkError(APIError):
    """Non-2xx HTTP response, or a transport failure (status code 0).

    Never retried; the caller decides whether to refresh again.
    """

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int,
        response_body: str | dict[str, Any] | None = None,
        request_method: str | None = None,
        request_url: str | None = None,
        request_params: dict[str, Any] | None = None,
    ) -> None:
        """Initialize NetworkError.

        Args:
            message: Human-readable message. Defaults to one naming the status.
            status_code: HTTP status code (0 for transport failures).
            response_body: Raw response body.
            request_method: HTTP method used.
            request_url: Full request URL.
            request_params: Query parameters sent.
        """
        super().__init__(
            message or f"HTTP error! status: {status_code}",
            status_code=status_code,
            response_body=response_body,
            request_method=request_method,
            request_url=request_url,
            request_params=request_params,
            code="NETWORK_ERROR",
        )


class AuthenticationError(NetworkError):
    """The upstream rejected our credentials (HTTP 401 or 403)."""

    def __init__(
        self,
        message: str = "Authentication failed",
        *,
        status_code: int = 401,
        response_body: str | dict[str, Any] | None = None,
        request_method: str | None = None,
        request_url: str | None = None,
    ) -> None:
        """Initialize AuthenticationError.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code (default 401).
            response_body: Raw response body.
            request_method: HTTP method used.
            request_url: Full request URL.
        """
        super().__init__(
            message,
            status_code=status_code,
            response_body=response_body,
            request_method=request_method,
            request_url=request_url,
        )
        self._code = "AUTH_ERROR"


class ServerError(NetworkError):
    """The upstream failed with a 5xx status."""

    def __init__(
        self,
        message: str = "Server error",
        *,
        status_code: int = 500,
        response_body: str | dict[str, Any] | None = None,
        request_method: str | None = None,
        request_url: str | None = None,
    ) -> None:
        """Initialize ServerError.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code (5xx).
            response_body: Raw response body.
            request_method: HTTP method used.
            request_url: Full request URL.
        """
        super().__init__(
            message,
            status_code=status_code,
            response_body=response_body,
            request_method=request_method,
            request_url=request_url,
        )
        self._code = "SERVER_ERROR"


class InvalidResponseError(LingoMetricsError):
    """A 2xx response whose body does not have the expected shape."""

    def __init__(self, message: str, *, source: str | None = None) -> None:
        """Initialize InvalidResponseError.

        Args:
            message: What could not be read from the response.
            source: Query id or report the response belongs to.
        """
        details = {"source": source} if source is not None else None
        super().__init__(message, code="INVALID_RESPONSE", details=details)


# Query Exceptions


class QueryError(LingoMetricsError):
    """Base for upstream query failures reported inside a 2xx response."""

    def __init__(
        self,
        message: str,
        *,
        query_id: str | None = None,
        execution_id: str | None = None,
        state: str | None = None,
        code: str = "QUERY_ERROR",
    ) -> None:
        """Initialize QueryError.

        Args:
            message: Human-readable error message.
            query_id: Dune query identifier.
            execution_id: Dune execution identifier, when known.
            state: Execution state reported by Dune.
            code: Machine-readable error code.
        """
        details: dict[str, Any] = {}
        if query_id is not None:
            details["query_id"] = query_id
        if execution_id is not None:
            details["execution_id"] = execution_id
        if state is not None:
            details["state"] = state
        super().__init__(message, code=code, details=details)

    @property
    def query_id(self) -> str | None:
        """Dune query identifier."""
        value = self._details.get("query_id")
        return str(value) if value is not None else None

    @property
    def state(self) -> str | None:
        """Execution state reported by Dune."""
        value = self._details.get("state")
        return str(value) if value is not None else None


class QueryExecutionError(QueryError):
    """Dune reported the execution as failed."""

    def __init__(
        self,
        message: str | None = None,
        *,
        query_id: str | None = None,
        execution_id: str | None = None,
        state: str | None = "QUERY_STATE_FAILED",
    ) -> None:
        """Initialize QueryExecutionError.

        Args:
            message: Upstream error message; falls back to "Query failed".
            query_id: Dune query identifier.
            execution_id: Dune execution identifier.
            state: Execution state reported by Dune.
        """
        super().__init__(
            message or "Query failed",
            query_id=query_id,
            execution_id=execution_id,
            state=state,
            code="QUERY_FAILED",
        )


class QueryNotFinishedError(QueryError):
    """The latest execution of a query has not finished yet."""

    def __init__(
        self,
        message: str = "Query execution not finished",
        *,
        query_id: str | None = None,
        execution_id: str | None = None,
        state: str | None = None,
    ) -> None:
        """Initialize QueryNotFinishedError.

        Args:
            message: Human-readable error message.
            query_id: Dune query identifier.
            execution_id: Dune execution identifier.
            state: Execution state reported by Dune.
        """
        super().__init__(
            message,
            query_id=query_id,
            execution_id=execution_id,
            state=state,
            code="QUERY_NOT_FINISHED",
        )
