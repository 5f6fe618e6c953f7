"""Time-bounded key/value cache persisted in DuckDB.

Entries are stored as JSON documents ``{"data": ..., "timestamp": ms}`` in a
single ``cache_entries`` table. Every entry expires 24 hours after it was
written; expired, missing and unreadable entries all read as a miss.

The cache is advisory. Storage and serialization failures are logged and
swallowed: ``get`` degrades to a miss and ``set`` to a no-op, so callers
never have to handle cache errors.
"""

from __future__ import annotations

import json
import logging
import math
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

import duckdb

if TYPE_CHECKING:
    from types import TracebackType

_logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 24 * 60 * 60
"""Lifetime of every cache entry. Shared by all callers, no per-key override."""

DUNE_CACHE_PREFIX = "dune_cache_"
MIXPANEL_METRICS_KEY = "mixpanel_metrics_cache"
MIXPANEL_EVENTS_KEY = "mixpanel_events_cache"

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key VARCHAR PRIMARY KEY,
    value VARCHAR NOT NULL
)
"""


def dune_cache_key(query_id: str | int) -> str:
    """Return the cache key for a Dune query's rows."""
    return f"{DUNE_CACHE_PREFIX}{query_id}"


def _stored_at(entry: Any) -> float:
    """Read the timestamp of a decoded entry.

    Raises:
        KeyError: If the entry has no timestamp.
        ValueError: If the timestamp is not a finite number.
    """
    timestamp = float(entry["timestamp"])
    if not math.isfinite(timestamp):
        raise ValueError(f"non-finite timestamp {timestamp!r}")
    return timestamp


class TimedCache:
    """Key/value store with a fixed time-to-live.

    Example:
        ```python
        cache = TimedCache(Path("~/.lingo/cache.db").expanduser())
        cache.set("dune_cache_6590984", rows)
        rows = cache.get("dune_cache_6590984")  # None once 24h have passed
        ```
    """

    def __init__(
        self,
        path: Path | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Open (or create) the cache database.

        Args:
            path: DuckDB file. None keeps the cache in memory.
            clock: Returns the current time in seconds since the epoch.
        """
        self._path = path
        self._clock = clock
        self._lock = threading.Lock()
        self._conn: duckdb.DuckDBPyConnection | None = None
        try:
            if path is None:
                self._conn = duckdb.connect(":memory:")
            else:
                path.parent.mkdir(parents=True, exist_ok=True)
                self._conn = duckdb.connect(database=str(path))
            self._conn.execute(_CREATE_TABLE)
        except (duckdb.Error, OSError) as e:
            # Storage unavailable: behave as an always-empty cache.
            _logger.warning("Cache storage unavailable at %s: %s", path, e)
            self._conn = None

    @classmethod
    def memory(cls, *, clock: Callable[[], float] = time.time) -> TimedCache:
        """Create an in-memory cache (nothing persisted)."""
        return cls(None, clock=clock)

    @property
    def path(self) -> Path | None:
        """Database file, or None for an in-memory cache."""
        return self._path

    @property
    def available(self) -> bool:
        """Whether the underlying storage could be opened."""
        return self._conn is not None

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def get(self, key: str) -> Any | None:
        """Return the payload stored under key, or None.

        None is returned when the key is missing, the stored value cannot
        be parsed, the entry is older than the TTL, or storage fails.
        """
        if self._conn is None:
            return None
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT value FROM cache_entries WHERE key = ?", [key]
                ).fetchone()
        except duckdb.Error as e:
            _logger.warning("Cache read failed for %s: %s", key, e)
            return None
        if row is None:
            return None

        try:
            entry = json.loads(row[0])
            timestamp = _stored_at(entry)
            payload = entry["data"]
        except (ValueError, TypeError, KeyError) as e:
            _logger.debug("Ignoring corrupt cache entry %s: %s", key, e)
            return None

        age_ms = self._now_ms() - timestamp
        if age_ms >= CACHE_TTL_SECONDS * 1000:
            _logger.debug("Cache entry %s expired (%.0f s old)", key, age_ms / 1000)
            return None
        _logger.debug("Cache hit for %s", key)
        return payload

    def set(self, key: str, payload: Any) -> None:
        """Store payload under key, stamped with the current time.

        Failures are logged and ignored; callers must not rely on the write.
        """
        if self._conn is None:
            return
        try:
            value = json.dumps({"data": payload, "timestamp": self._now_ms()})
        except (TypeError, ValueError) as e:
            _logger.warning("Cannot serialize cache entry %s: %s", key, e)
            return
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT OR REPLACE INTO cache_entries (key, value) VALUES (?, ?)",
                    [key, value],
                )
        except duckdb.Error as e:
            _logger.warning("Cache write failed for %s: %s", key, e)

    def delete(self, key: str) -> None:
        """Remove a single entry, if present."""
        if self._conn is None:
            return
        try:
            with self._lock:
                self._conn.execute("DELETE FROM cache_entries WHERE key = ?", [key])
        except duckdb.Error as e:
            _logger.warning("Cache delete failed for %s: %s", key, e)

    def clear(self, prefix: str | None = None) -> int:
        """Remove all entries, or only those whose key starts with prefix.

        Returns:
            Number of entries removed (0 if storage failed).
        """
        if self._conn is None:
            return 0
        keys = self.keys()
        if prefix is not None:
            keys = [k for k in keys if k.startswith(prefix)]
        for key in keys:
            self.delete(key)
        return len(keys)

    def keys(self) -> list[str]:
        """List stored keys, including expired ones, in sorted order."""
        if self._conn is None:
            return []
        try:
            with self._lock:
                rows = self._conn.execute(
                    "SELECT key FROM cache_entries ORDER BY key"
                ).fetchall()
        except duckdb.Error as e:
            _logger.warning("Cache listing failed: %s", e)
            return []
        return [str(r[0]) for r in rows]

    def entries(self) -> list[dict[str, Any]]:
        """Describe stored entries: key, stored_at (ms), age and validity."""
        if self._conn is None:
            return []
        try:
            with self._lock:
                rows = self._conn.execute(
                    "SELECT key, value FROM cache_entries ORDER BY key"
                ).fetchall()
        except duckdb.Error as e:
            _logger.warning("Cache listing failed: %s", e)
            return []

        now = self._now_ms()
        result: list[dict[str, Any]] = []
        for key, value in rows:
            try:
                stored_at: float | None = _stored_at(json.loads(value))
            except (ValueError, TypeError, KeyError):
                stored_at = None
            age = (now - stored_at) / 1000 if stored_at is not None else None
            result.append(
                {
                    "key": key,
                    "stored_at": stored_at,
                    "age_seconds": age,
                    "valid": age is not None and age < CACHE_TTL_SECONDS,
                }
            )
        return result

    def close(self) -> None:
        """Close the underlying connection."""
        if self._conn is not None:
            try:
                self._conn.close()
            except duckdb.Error as e:
                _logger.debug("Error closing cache: %s", e)
            self._conn = None

    def __enter__(self) -> TimedCache:
        """Enter context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit context manager, closing the connection."""
        self.close()
