"""
APY math for Compound V2-style markets.

Rates are per block, already divided down to a plain fraction (raw / 1e18).
Division by zero follows float semantics (inf / NaN) instead of raising, so
a market with no supply yields a NaN reward APY rather than aborting the run.
"""

from __future__ import annotations

import math
from typing import Optional

DAYS_PER_YEAR = 365
BLOCKS_PER_DAY = 86400 / 12
MANTISSA = 10 ** 18


def _div(num: float, denom: float) -> float:
    if denom == 0:
        if num == 0 or math.isnan(num):
            return math.nan
        return math.copysign(math.inf, num)
    return num / denom


def calculate_apy(
    rate_per_block: float,
    blocks_per_day: float = BLOCKS_PER_DAY,
    days_per_year: int = DAYS_PER_YEAR,
) -> float:
    """Compound the per-block rate daily over a year, as a percentage; inf past float range."""
    try:
        growth = math.pow(rate_per_block * blocks_per_day + 1, days_per_year)
    except OverflowError:
        return math.inf
    return (growth - 1) * 100


def calculate_reward_apy(
    speed_raw: int | str,
    reward_decimals: int,
    reward_price: Optional[float],
    denom_usd: float,
    blocks_per_day: float = BLOCKS_PER_DAY,
    days_per_year: int = DAYS_PER_YEAR,
) -> float:
    """
    Annual USD value of reward emissions over a USD base, as a percentage.

    An unknown reward price gives NaN. May return NaN or inf when denom_usd is 0.
    """
    price = math.nan if reward_price is None else float(reward_price)
    yearly_usd = int(speed_raw) / 10 ** reward_decimals * blocks_per_day * days_per_year * price
    return _div(yearly_usd, denom_usd) * 100


def borrow_reward_apy(
    speed_raw: int | str,
    reward_decimals: int,
    reward_price: Optional[float],
    denom_usd: float,
    blocks_per_day: float = BLOCKS_PER_DAY,
    days_per_year: int = DAYS_PER_YEAR,
) -> float:
    """Borrow side of calculate_reward_apy; degenerate results resolve to 0."""
    if denom_usd == 0:
        return 0.0
    apy = calculate_reward_apy(
        speed_raw, reward_decimals, reward_price, denom_usd, blocks_per_day, days_per_year
    )
    return apy if math.isfinite(apy) else 0.0
