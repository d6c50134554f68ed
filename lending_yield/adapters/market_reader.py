"""
Compound V2-Style Market Reader

Works for any protocol following the Compound V2 pattern:
- Comptroller with getAllMarkets(), markets(), comp{Supply,Borrow}Speeds(),
  mintGuardianPaused()
- cTokens with supplyRatePerBlock(), borrowRatePerBlock(), getCash(),
  totalBorrows(), underlying() (reverts for the native-asset market)

Reads are fanned out per field across all markets on a thread pool and
joined back by the market order returned from getAllMarkets(). Values are
returned raw; no unit conversion happens here.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from ..config.abi import COMPTROLLER_ABI, CTOKEN_ABI

# field name -> comptroller method taking the market address
COMPTROLLER_FIELDS = {
    "market_info": "markets",
    "supply_speed": "compSupplySpeeds",
    "borrow_speed": "compBorrowSpeeds",
    "paused": "mintGuardianPaused",
}

# field name -> no-arg cToken method
MARKET_TOKEN_FIELDS = {
    "supply_rate": "supplyRatePerBlock",
    "borrow_rate": "borrowRatePerBlock",
    "cash": "getCash",
    "total_borrows": "totalBorrows",
    "underlying": "underlying",
}

# field name -> no-arg method on the underlying ERC20
UNDERLYING_FIELDS = {
    "symbol": "symbol",
    "decimals": "decimals",
}


@dataclass(frozen=True)
class MarketSnapshot:
    market: str
    underlying: Optional[str]
    symbol: Optional[str]
    decimals: Optional[int]
    collateral_factor_mantissa: int
    cash: int
    total_borrows: int
    supply_rate: int
    borrow_rate: int
    supply_speed: int
    borrow_speed: int
    paused: Any


def _call_or_none(fn) -> Any:
    """Run a bound contract call; a revert or undecodable output becomes None. Transport errors propagate."""
    try:
        return fn.call()
    except (BadFunctionCallOutput, ContractLogicError):
        return None


def _as_int(value: Any) -> int:
    return int(value) if value is not None else 0


def _collateral_factor(market_info: Any) -> int:
    # markets(address) -> (isListed, collateralFactorMantissa, isComped)
    if not market_info:
        return 0
    if isinstance(market_info, dict):
        return _as_int(market_info.get("collateralFactorMantissa"))
    return _as_int(market_info[1])


def _collect(futures: List[Optional[Future]]) -> List[Any]:
    """Results in submission order; the first worker exception is re-raised."""
    return [f.result() if f is not None else None for f in futures]


class CompoundStyleMarketReader:
    def __init__(self, web3: Web3, comptroller_address: str, max_workers: int = 8):
        self.web3 = web3
        self.comptroller_address = Web3.to_checksum_address(comptroller_address)
        self.max_workers = max_workers
        self._comptroller = web3.eth.contract(address=self.comptroller_address, abi=COMPTROLLER_ABI)

    def _token(self, address: str):
        return self.web3.eth.contract(address=Web3.to_checksum_address(address), abi=CTOKEN_ABI)

    def get_all_markets(self) -> List[str]:
        """Ordered market list; this order indexes every other read."""
        markets = self._comptroller.functions.getAllMarkets().call()
        return [Web3.to_checksum_address(m) for m in markets]

    def submit_comptroller_field(
        self, executor: ThreadPoolExecutor, method: str, markets: List[str]
    ) -> List[Future]:
        fn = getattr(self._comptroller.functions, method)
        return [executor.submit(_call_or_none, fn(Web3.to_checksum_address(m))) for m in markets]

    def submit_token_field(
        self, executor: ThreadPoolExecutor, method: str, targets: List[Optional[str]]
    ) -> List[Optional[Future]]:
        futures: List[Optional[Future]] = []
        for target in targets:
            if not target:
                futures.append(None)
                continue
            fn = getattr(self._token(target).functions, method)
            futures.append(executor.submit(_call_or_none, fn()))
        return futures

    def read_comptroller_field(self, method: str, markets: List[str]) -> List[Any]:
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return _collect(self.submit_comptroller_field(executor, method, markets))

    def read_token_field(self, method: str, targets: List[Optional[str]]) -> List[Any]:
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return _collect(self.submit_token_field(executor, method, targets))

    def read_markets(
        self,
        on_underlyings: Optional[Callable[[List[Optional[str]]], None]] = None,
    ) -> List[MarketSnapshot]:
        """
        Read every market's raw state.

        Args:
            on_underlyings: called with the underlying address list (None for the
                native market) as soon as it is known, before symbol/decimals
                reads finish; lets the caller start price lookups early.

        Returns:
            One MarketSnapshot per market, in getAllMarkets() order
        """
        markets = self.get_all_markets()

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            pending: Dict[str, List[Optional[Future]]] = {}
            for name, method in COMPTROLLER_FIELDS.items():
                pending[name] = self.submit_comptroller_field(executor, method, markets)
            for name, method in MARKET_TOKEN_FIELDS.items():
                pending[name] = self.submit_token_field(executor, method, markets)

            underlyings = [
                Web3.to_checksum_address(u) if u else None
                for u in _collect(pending.pop("underlying"))
            ]
            if on_underlyings is not None:
                on_underlyings(underlyings)

            for name, method in UNDERLYING_FIELDS.items():
                pending[name] = self.submit_token_field(executor, method, underlyings)

            fields = {name: _collect(futures) for name, futures in pending.items()}

        snapshots = []
        for i, market in enumerate(markets):
            decimals = fields["decimals"][i]
            snapshots.append(
                MarketSnapshot(
                    market=market,
                    underlying=underlyings[i],
                    symbol=fields["symbol"][i],
                    decimals=int(decimals) if decimals is not None else None,
                    collateral_factor_mantissa=_collateral_factor(fields["market_info"][i]),
                    cash=_as_int(fields["cash"][i]),
                    total_borrows=_as_int(fields["total_borrows"][i]),
                    supply_rate=_as_int(fields["supply_rate"][i]),
                    borrow_rate=_as_int(fields["borrow_rate"][i]),
                    supply_speed=_as_int(fields["supply_speed"][i]),
                    borrow_speed=_as_int(fields["borrow_speed"][i]),
                    paused=fields["paused"][i],
                )
            )
        return snapshots
