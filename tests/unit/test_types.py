"""Unit tests for result types."""

from __future__ import annotations

import dataclasses
import json

import pandas as pd
import pytest

from lingo_metrics.types import (
    KPI,
    DailyMetric,
    EventCountsResult,
    MonthlyEventCount,
    QueryResult,
    RefreshResult,
    UserMetrics,
)


@pytest.fixture
def user_metrics() -> UserMetrics:
    return UserMetrics(
        dau_trend=[
            DailyMetric(date="Jan 5", value=10, iso_date="2025-01-05"),
            DailyMetric(date="Jan 6", value=30, iso_date="2025-01-06"),
        ],
        current_dau=30,
        current_wau=70,
        current_mau=300,
        avg_dau=20,
    )


class TestQueryResult:
    def test_immutable(self) -> None:
        result = QueryResult(execution_id="e", query_id="1", state="QUERY_STATE_COMPLETED")
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.query_id = "2"  # type: ignore[misc]

    def test_df_is_cached(self) -> None:
        result = QueryResult(
            execution_id="e",
            query_id="1",
            state="QUERY_STATE_COMPLETED",
            rows=[{"week": "2024-02-19", "active_stakers": 80}],
        )
        df = result.df
        assert list(df.columns) == ["week", "active_stakers"]
        assert result.df is df

    def test_empty_df(self) -> None:
        result = QueryResult(execution_id="e", query_id="1", state="QUERY_STATE_EXECUTING")
        assert result.df.empty
        assert not result.is_terminal

    def test_to_dict(self) -> None:
        result = QueryResult(
            execution_id="e",
            query_id="1",
            state="QUERY_STATE_FAILED",
            error="syntax error",
        )
        data = json.loads(json.dumps(result.to_dict()))
        assert data["row_count"] == 0
        assert data["error"] == "syntax error"
        assert result.is_terminal


class TestUserMetrics:
    def test_round_trip_through_dict(self, user_metrics: UserMetrics) -> None:
        assert UserMetrics.from_dict(user_metrics.to_dict()) == user_metrics

    def test_df(self, user_metrics: UserMetrics) -> None:
        df = user_metrics.df
        assert isinstance(df, pd.DataFrame)
        assert df["value"].tolist() == [10, 30]

    def test_from_partial_dict(self) -> None:
        metrics = UserMetrics.from_dict({"current_dau": "4"})
        assert metrics.current_dau == 4
        assert metrics.dau_trend == []


class TestEventCountsResult:
    def test_long_format_df(self) -> None:
        result = EventCountsResult(
            from_date="2024-11-01",
            to_date="2025-03-15",
            events=["Wallet Connected", "Stake Completed"],
            months=[
                MonthlyEventCount(
                    month="Jan 2025",
                    month_key="2025-01",
                    counts={"Wallet Connected": 5, "Stake Completed": 2},
                )
            ],
        )
        assert len(result.df) == 2
        assert set(result.df.columns) == {"month", "event", "count"}
        assert EventCountsResult.from_dict(result.to_dict()) == result

    def test_empty_df_has_columns(self) -> None:
        result = EventCountsResult(from_date="a", to_date="b", events=[], months=[])
        assert list(result.df.columns) == ["month", "event", "count"]


def test_kpi_defaults() -> None:
    kpi = KPI(label="Active Stakers", value=100)
    assert kpi.to_dict() == {
        "label": "Active Stakers",
        "value": 100,
        "previous_value": None,
        "trend": "neutral",
        "trend_value": 0.0,
        "format": "number",
        "prefix": "",
        "suffix": "",
    }


def test_refresh_result_omits_absent_fields() -> None:
    assert RefreshResult(query_id="1", success=True).to_dict() == {
        "query_id": "1",
        "success": True,
    }
