"""Named Dune queries backing the staking dashboard.

The mapping is the default for ``Settings.queries``; deployments can
override individual ids in the config file without touching code.
"""

from __future__ import annotations

DUNE_QUERIES: dict[str, str] = {
    # Total LINGO staked over time (daily)
    "TOTAL_STAKED_TREND": "6590984",
    # Weekly stats: active_stakers, total_tvl
    "WEEKLY_STATS": "6534908",
    "WEEKLY_NEW_STAKERS": "6535206",
    "COHORT_RETENTION": "6528806",
    "STAKING_TIERS": "6560698",
    "UNLOCK_SCHEDULE": "6543709",
    # Top 50 stakers
    "TOP_STAKERS": "6632385",
    # Trading fees per month
    "TRADING_FEES": "6288543",
    "APY_CLAIMS": "6606898",
    "MONTHLY_STAKING_FLOW": "6535334",
    "WEEKLY_STAKES": "6693660",
    "LP_FEES": "6693715",
}

# Queries re-executed by the scheduled refresh endpoint.
REFRESHABLE_QUERIES: tuple[str, ...] = (
    "TOTAL_STAKED_TREND",
    "WEEKLY_STATS",
    "WEEKLY_NEW_STAKERS",
    "COHORT_RETENTION",
    "TOP_STAKERS",
    "TRADING_FEES",
    "APY_CLAIMS",
    "MONTHLY_STAKING_FLOW",
    "WEEKLY_STAKES",
    "LP_FEES",
)

# Per-query row limits that differ from Settings.query_limit.
QUERY_LIMITS: dict[str, int] = {
    "TOP_STAKERS": 50,
}

__all__ = ["DUNE_QUERIES", "QUERY_LIMITS", "REFRESHABLE_QUERIES"]
