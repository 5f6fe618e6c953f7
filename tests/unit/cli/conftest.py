"""Shared fixtures for CLI tests."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from lingo_metrics.types import (
    KPI,
    APYClaimsTotals,
    DailyMetric,
    TotalFees,
    UserMetrics,
)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a CLI runner for testing commands."""
    return CliRunner()


@pytest.fixture
def cli_config(tmp_path: Path) -> list[str]:
    """Global options pointing at an empty config and an in-memory cache."""
    return ["--config", str(tmp_path / "config.toml"), "--cache", ":memory:"]


@pytest.fixture
def mock_dashboard() -> MagicMock:
    """Create a mock Dashboard for testing commands."""
    dashboard = MagicMock()

    dashboard.kpis.return_value = [
        KPI(
            label="Total LINGO Staked",
            value=1_500_000,
            previous_value=1_000_000,
            trend="up",
            trend_value=50.0,
            suffix=" LINGO",
        ),
        KPI(label="Active Stakers", value=100, previous_value=80, trend="up", trend_value=25.0),
        KPI(
            label="Retention Rate",
            value=28.9,
            previous_value=28.9,
            format="percent",
        ),
    ]
    dashboard.total_fees.return_value = TotalFees(trading=150.0, lp=50.0, total=200.0)
    dashboard.apy_claims_totals.return_value = APYClaimsTotals(
        total_claims=5, total_lingo=400.0, total_usd=8.5
    )
    dashboard.user_metrics.return_value = UserMetrics(
        dau_trend=[
            DailyMetric(date="Jan 5", value=10, iso_date="2025-01-05"),
            DailyMetric(date="Jan 6", value=30, iso_date="2025-01-06"),
        ],
        current_dau=30,
        current_wau=70,
        current_mau=300,
        avg_dau=20,
    )
    dashboard.top_stakers.return_value = []
    return dashboard
