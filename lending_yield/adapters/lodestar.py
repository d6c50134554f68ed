"""
Lodestar v1 Pool Adapter (Compound V2 Fork, Arbitrum)

Joins raw market state, token prices and APY math into one pool record per
market:

    pool, chain, project, symbol, tvlUsd, apyBase, apyReward,
    underlyingTokens, rewardTokens
    + totalSupplyUsd, totalBorrowUsd, apyBaseBorrow, apyRewardBorrow, ltv
      (only when mintGuardianPaused(market) is exactly False)

Pricing fallbacks:
- no underlying() (native market) -> native token address/symbol/decimals
- no price quote -> 1 if the symbol contains "usd", else 0
"""

from __future__ import annotations

import math
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from web3 import Web3

from ..apy import MANTISSA, borrow_reward_apy, calculate_apy, calculate_reward_apy
from ..config.settings import ProtocolConfig
from ..pricing.llama_prices import coin_id, get_prices
from .market_reader import CompoundStyleMarketReader, MarketSnapshot

CHAIN_DISPLAY_NAMES = {
    "bsc": "Binance",
    "avax": "Avalanche",
    "xdai": "xDai",
    "era": "zkSync Era",
}

CONDITIONAL_FIELDS = ("totalSupplyUsd", "totalBorrowUsd", "apyBaseBorrow", "apyRewardBorrow", "ltv")


def format_chain(chain: str) -> str:
    chain = chain.lower()
    if chain in CHAIN_DISPLAY_NAMES:
        return CHAIN_DISPLAY_NAMES[chain]
    return chain[:1].upper() + chain[1:]


@dataclass
class PoolRecord:
    pool: str
    chain: str
    project: str
    symbol: str
    tvlUsd: float
    apyBase: float
    apyReward: float
    underlyingTokens: List[str]
    rewardTokens: List[str] = field(default_factory=list)
    totalSupplyUsd: Optional[float] = None
    totalBorrowUsd: Optional[float] = None
    apyBaseBorrow: Optional[float] = None
    apyRewardBorrow: Optional[float] = None
    ltv: Optional[float] = None
    # set only for unpaused markets; decides whether borrow fields are emitted
    borrowable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        borrowable = d.pop("borrowable")
        if not borrowable:
            for k in CONDITIONAL_FIELDS:
                d.pop(k)
        return d


def resolve_price(token: str, symbol: str, prices: Dict[str, float]) -> float:
    price = prices.get(token.lower())
    if price is None:
        price = 1 if "usd" in symbol.lower() else 0
    return price


def build_pool_record(
    snapshot: MarketSnapshot,
    prices: Dict[str, float],
    reward_price: Optional[float],
    config: ProtocolConfig,
) -> PoolRecord:
    native = config.native_token
    reward = config.protocol_token

    token = (snapshot.underlying or native.address).lower()
    symbol = config.display_symbol(snapshot.underlying, snapshot.symbol)
    decimals = int(snapshot.decimals or 0) or native.decimals
    price = resolve_price(token, symbol, prices)

    scale = 10 ** decimals
    tvl_usd = snapshot.cash / scale * price
    total_supply_usd = (snapshot.cash + snapshot.total_borrows) / scale * price
    total_borrow_usd = snapshot.total_borrows / scale * price

    bpd, days = config.blocks_per_day, config.days_per_year
    apy_base = calculate_apy(snapshot.supply_rate / MANTISSA, bpd, days)
    apy_base_borrow = calculate_apy(snapshot.borrow_rate / MANTISSA, bpd, days)

    # supply side may surface NaN (no supply); borrow side is coerced to 0
    apy_reward = calculate_reward_apy(
        snapshot.supply_speed, reward.decimals, reward_price, total_supply_usd, bpd, days
    )
    apy_reward_borrow = borrow_reward_apy(
        snapshot.borrow_speed, reward.decimals, reward_price, total_borrow_usd, bpd, days
    )

    record = PoolRecord(
        pool=snapshot.market.lower(),
        chain=format_chain(config.chain),
        project=config.project,
        symbol=symbol,
        tvlUsd=tvl_usd,
        apyBase=apy_base,
        apyReward=apy_reward,
        underlyingTokens=[token],
        rewardTokens=[reward.address] if apy_reward and not math.isnan(apy_reward) else [],
    )
    if snapshot.paused is False:
        record.borrowable = True
        record.totalSupplyUsd = total_supply_usd
        record.totalBorrowUsd = total_borrow_usd
        record.apyBaseBorrow = apy_base_borrow
        record.apyRewardBorrow = apy_reward_borrow
        record.ltv = snapshot.collateral_factor_mantissa / MANTISSA
    return record


def get_pools(web3: Web3, config: ProtocolConfig) -> List[Dict[str, Any]]:
    """
    One full pass: read markets, price them, return pool dicts in market order.

    Any RPC or HTTP failure aborts the pass.
    The two price queries run on separate threads, each with its own HTTP connection.
    """
    reader = CompoundStyleMarketReader(web3, config.comptroller, max_workers=config.max_workers)
    chain = config.chain

    with ThreadPoolExecutor(max_workers=2) as price_pool:
        price_futures: Dict[str, Future] = {}

        def _start_price_queries(underlyings: List[Optional[str]]) -> None:
            tokens = [u.lower() for u in underlyings if u] + [config.native_token.address]
            price_futures["underlying"] = price_pool.submit(
                get_prices,
                [coin_id(chain, t) for t in tokens],
                config.price_api,
                config.request_timeout,
            )
            price_futures["reward"] = price_pool.submit(
                get_prices,
                [coin_id(chain, config.protocol_token.address)],
                config.price_api,
                config.request_timeout,
            )

        snapshots = reader.read_markets(on_underlyings=_start_price_queries)
        print(f"[{config.project}] markets found: {len(snapshots)}")

        prices = price_futures["underlying"].result()
        reward_prices = price_futures["reward"].result()

    reward_price = reward_prices.get(config.protocol_token.address)
    if reward_price is None:
        print(f"[prices] no quote for reward token {config.protocol_token.symbol} ({config.protocol_token.address})")
    missing = sorted({(s.underlying or config.native_token.address).lower() for s in snapshots} - set(prices))
    if missing:
        print(f"[prices] {len(missing)} underlying token(s) without a quote: {', '.join(missing)}")

    return [build_pool_record(s, prices, reward_price, config).to_dict() for s in snapshots]


def get_protocol_metadata(config: ProtocolConfig) -> Dict[str, Any]:
    return {
        "project": config.project,
        "url": config.url,
        "chain": format_chain(config.chain),
        "timetravel": False,
    }
