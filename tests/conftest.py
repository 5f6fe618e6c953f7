"""Shared fixtures for lingo_metrics tests."""

from __future__ import annotations

import os
from collections.abc import Callable, Generator
from datetime import date
from pathlib import Path
from typing import Any

import httpx
import pytest
from hypothesis import Phase, Verbosity, settings

from lingo_metrics._internal.cache import TimedCache
from lingo_metrics._internal.config import ENV_VARS, Settings

# =============================================================================
# Hypothesis Configuration
# =============================================================================

# Register Hypothesis profiles for different environments
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.target, Phase.shrink],
)

settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.normal,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.target, Phase.shrink],
    derandomize=True,  # Reproducible in CI
)

settings.register_profile(
    "dev",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.target, Phase.shrink],
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.target, Phase.shrink],
    report_multiple_bugs=False,
)

# Load profile from HYPOTHESIS_PROFILE env var, default to "default"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep real credentials and config paths out of every test."""
    for name in (*ENV_VARS, "LINGO_CONFIG_PATH"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """Return path for a temporary config file."""
    return tmp_path / "config.toml"


@pytest.fixture
def test_settings() -> Settings:
    """Settings with every secret configured and an in-memory cache."""
    return Settings(
        dune_api_key="dune_test_key",  # type: ignore[arg-type]
        mixpanel_secret="mp_test_secret",  # type: ignore[arg-type]
        cron_secret="cron_test_secret",  # type: ignore[arg-type]
        proxy_url="http://proxy.test",
        cache_path=None,
    )


@pytest.fixture
def keyless_settings() -> Settings:
    """Settings without any secrets."""
    return Settings(cache_path=None)


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_cache(clock: FakeClock) -> Generator[TimedCache, None, None]:
    """In-memory cache driven by the fake clock."""
    cache = TimedCache.memory(clock=clock)
    yield cache
    cache.close()


def _dune_payload(
    rows: list[dict[str, Any]] | None = None,
    *,
    state: str = "QUERY_STATE_COMPLETED",
    execution_id: str = "01HEXEC",
    finished: bool | None = None,
    error: Any = None,
) -> dict[str, Any]:
    """Build a Dune results response."""
    payload: dict[str, Any] = {
        "execution_id": execution_id,
        "query_id": 0,
        "state": state,
        "is_execution_finished": (
            finished if finished is not None else state == "QUERY_STATE_COMPLETED"
        ),
        "result": {"rows": rows or [], "metadata": {}},
    }
    if error is not None:
        payload["error"] = error
    return payload


def _query_id_from(request: httpx.Request) -> str:
    """Extract the query id from a /query/{id}/... URL."""
    parts = request.url.path.split("/")
    return parts[parts.index("query") + 1]


@pytest.fixture
def sample_rows() -> dict[str, list[dict[str, Any]]]:
    """Small but realistic row sets per query name."""
    return {
        "TOTAL_STAKED_TREND": [
            {"day": "2024-01-30 00:00:00.000 UTC", "total_staked": 90, "change_from_yesterday": 0},
            {"day": "2024-01-31 00:00:00.000 UTC", "total_staked": 100, "change_from_yesterday": 10},
            {"day": "2024-02-29 00:00:00.000 UTC", "total_staked": 150, "change_from_yesterday": 50},
        ],
        "WEEKLY_STATS": [
            {"week": "2024-02-19 00:00:00.000 UTC", "active_stakers": 80, "total_tvl": 4000.0},
            {"week": "2024-02-26 00:00:00.000 UTC", "active_stakers": 100, "total_tvl": 5000.0},
        ],
        "WEEKLY_NEW_STAKERS": [
            {"week": "2024-02-19 00:00:00.000 UTC", "new_stakers": 10},
            {"week": "2024-02-26 00:00:00.000 UTC", "new_stakers": 20},
        ],
        "COHORT_RETENTION": [
            {"cohort_week": "2024-01-01", "cohort_size": 100, "pct_retained": "50"},
            {"cohort_week": "2024-01-08", "cohort_size": 300, "pct_retained": "20"},
            {"cohort_week": "2024-02-05", "cohort_size": 50, "pct_retained": "40.0"},
        ],
        "TOP_STAKERS": [
            {
                "rank": 1,
                "wallet": "0x000000000000000000000000000000000000dEaD",
                "lingo_staked": 500000,
                "usd_value": 12000,
                "pct_of_total": 12.5,
            },
            {
                "rank": 2,
                "wallet": "0x1234567890abcdef1234567890abcdef12345678",
                "lingo_staked": 100000,
                "usd_value": 2400,
                "pct_of_total": 2.5,
            },
        ],
        "TRADING_FEES": [
            {"month": "2024-01-01", "total_lingo": 1000, "usd_value": 50, "cumulative_usd": 50},
            {"month": "2024-02-01", "total_lingo": 2000, "usd_value": 100, "cumulative_usd": 150},
        ],
        "LP_FEES": [
            {"month": "2024-01-01", "usd_value": 20, "cumulative_usd": 20},
            {"month": "2024-02-01", "usd_value": 30, "cumulative_usd": 50},
        ],
        "APY_CLAIMS": [
            {"month": "2024-01-01", "num_transfers": 3, "lingo_out": 300, "usd_value": 6, "avg_transfer_size": 100},
            {"month": "2024-02-01", "num_transfers": 2, "lingo_out": 100, "usd_value": 2.5, "avg_transfer_size": 50},
        ],
        "MONTHLY_STAKING_FLOW": [
            {"month": "2024-01-01", "lingo_staked": 1000, "lingo_unstaked": 400},
            {"month": "2024-02-01", "lingo_staked": 500, "lingo_unstaked": 700, "net_flow": -200},
        ],
    }


@pytest.fixture
def dune_handler(sample_rows: dict[str, list[dict[str, Any]]]) -> Handler:
    """Dune transport handler serving sample_rows by query id."""
    from lingo_metrics.queries import DUNE_QUERIES

    rows_by_id = {DUNE_QUERIES[name]: rows for name, rows in sample_rows.items()}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json=_dune_payload(rows_by_id.get(_query_id_from(request), []))
        )

    return handler


def _dau_report() -> dict[str, Any]:
    """Saved Insights report holding a three-day DAU series (unordered)."""
    return {
        "series": {
            "A. DAU": {
                "2025-01-07T00:00:00-08:00": 30,
                "2025-01-05T00:00:00-08:00": 10,
                "2025-01-06T00:00:00-08:00": 21,
            }
        }
    }


def _events_response(event: str, buckets: dict[str, int]) -> dict[str, Any]:
    """Mixpanel /events response for a single event."""
    return {"data": {"series": list(buckets), "values": {event: buckets}}, "legend_size": 1}


@pytest.fixture
def dune_payload() -> Callable[..., dict[str, Any]]:
    """Factory for Dune results responses."""
    return _dune_payload


@pytest.fixture
def query_id_from() -> Callable[[httpx.Request], str]:
    return _query_id_from


@pytest.fixture
def dau_report() -> dict[str, Any]:
    return _dau_report()


@pytest.fixture
def events_response() -> Callable[[str, dict[str, int]], dict[str, Any]]:
    """Factory for Mixpanel /events responses."""
    return _events_response


@pytest.fixture
def today() -> date:
    """Fixed reference date for trailing windows."""
    return date(2025, 3, 15)
