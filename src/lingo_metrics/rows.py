"""Typed row models for each Dune query.

Dune returns flat JSON rows whose shape depends on the query. Each query
gets its own frozen model so transformers work against named fields rather
than loosely-typed dicts. Unknown columns are ignored and numeric strings
(Dune renders some percentages as text) are coerced.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

_logger = logging.getLogger(__name__)


class DuneRow(BaseModel):
    """Base for all query row models."""

    model_config = ConfigDict(frozen=True, extra="ignore")


class TotalStakedRow(DuneRow):
    """Daily total LINGO staked."""

    day: str
    total_staked: float
    change_from_yesterday: float = 0.0
    change_pct: float | None = None


class WeeklyStatsRow(DuneRow):
    """Weekly active stakers and TVL."""

    week: str
    active_stakers: int
    total_tvl: float


class WeeklyNewStakersRow(DuneRow):
    """Wallets staking for the first time in a week."""

    week: str
    new_stakers: int


class CohortRetentionRow(DuneRow):
    """Retention breakdown of one weekly staking cohort.

    Percentages arrive as strings such as "45.2".
    """

    cohort_week: str
    cohort_size: int
    never_unstaked: int = 0
    partial: int = 0
    fully_exited: int = 0
    pct_diamond_hands: float = 0.0
    pct_partial: float = 0.0
    pct_churned: float = 0.0
    pct_retained: float = 0.0

    @field_validator(
        "pct_diamond_hands", "pct_partial", "pct_churned", "pct_retained", mode="before"
    )
    @classmethod
    def _blank_pct_is_zero(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return 0.0
        return v


class StakingTierRow(DuneRow):
    tier: str
    lock_type: str
    users: int
    avg_usd: float
    total_usd: float


class UnlockScheduleRow(DuneRow):
    unlock_day: str
    daily_unlock_lingo: float
    cumulative_unlock_lingo: float


class TopStakerRow(DuneRow):
    """Leaderboard entry. ``pct_of_total`` is computed upstream."""

    rank: int
    wallet: str
    lingo_staked: float
    usd_value: float
    pct_of_total: float


class TradingFeesRow(DuneRow):
    """Monthly trading fees collected by the protocol."""

    month: str
    total_lingo: float
    avg_price_usd: float = 0.0
    usd_value: float
    cumulative_lingo: float = 0.0
    cumulative_usd: float


class LPFeesRow(DuneRow):
    """Monthly liquidity-pool fees."""

    month: str
    total_lingo: float = 0.0
    usd_value: float
    cumulative_usd: float


class APYClaimsRow(DuneRow):
    """Monthly staking reward claims."""

    month: str
    num_transfers: int
    lingo_out: float
    usd_value: float
    avg_transfer_size: float = 0.0


class MonthlyStakingFlowRow(DuneRow):
    """LINGO moved into and out of staking in a month."""

    month: str
    lingo_staked: float
    lingo_unstaked: float
    net_flow: float | None = None


class WeeklyStakesRow(DuneRow):
    week: str
    num_stakes: int
    lingo_staked: float


# Row model for each registered query name
ROW_MODELS: dict[str, type[DuneRow]] = {
    "TOTAL_STAKED_TREND": TotalStakedRow,
    "WEEKLY_STATS": WeeklyStatsRow,
    "WEEKLY_NEW_STAKERS": WeeklyNewStakersRow,
    "COHORT_RETENTION": CohortRetentionRow,
    "STAKING_TIERS": StakingTierRow,
    "UNLOCK_SCHEDULE": UnlockScheduleRow,
    "TOP_STAKERS": TopStakerRow,
    "TRADING_FEES": TradingFeesRow,
    "APY_CLAIMS": APYClaimsRow,
    "MONTHLY_STAKING_FLOW": MonthlyStakingFlowRow,
    "WEEKLY_STAKES": WeeklyStakesRow,
    "LP_FEES": LPFeesRow,
}

RowT = TypeVar("RowT", bound=DuneRow)


def parse_rows(model: type[RowT], rows: Iterable[dict[str, Any]] | None) -> list[RowT]:
    """Validate raw rows into model instances.

    Rows that do not match the model are logged and skipped, so one bad row
    never hides the rest of a result set.

    Args:
        model: Row model class.
        rows: Raw rows from the Dune API (None is treated as empty).

    Returns:
        Parsed rows in input order.
    """
    if not rows:
        return []
    parsed: list[RowT] = []
    for index, raw in enumerate(rows):
        try:
            parsed.append(model.model_validate(raw))
        except ValidationError as e:
            _logger.warning(
                "Skipping %s row %d: %s", model.__name__, index, e.errors()[0]["msg"]
            )
    return parsed
