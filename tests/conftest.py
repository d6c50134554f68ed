"""Shared test fixtures: protocol config and an in-memory web3 stand-in."""
from __future__ import annotations

from typing import Any, Dict

import pytest

from lending_yield.config.settings import ProtocolConfig, TokenConfig

COMPTROLLER = "0xa86DD95c210dd186Fa7639F93E4177E97d057576"
NATIVE = "0x82af49447d8a07e3bd95bd0d56f35241523fbab1"
LODE = "0xf19547f9ed24aa66b03c3a552d181ae334fbb8db"
MKR = "0x9f8f72aa9304c8b593d555f12ef6589cc3a579a2"

MARKET_USDC = "0x" + "11" * 20
MARKET_ETH = "0x" + "22" * 20
MARKET_MKR = "0x" + "33" * 20
USDC = "0x" + "aa" * 20


# ---------------------------------------------------------------------------
# web3 stand-in
# ---------------------------------------------------------------------------


class FakeCall:
    def __init__(self, value: Any):
        self.value = value

    def call(self, **kwargs):
        if isinstance(self.value, Exception):
            raise self.value
        return self.value


class FakeFunctions:
    """Attribute access returns a contract-function factory, like contract.functions."""

    def __init__(self, values: Dict[str, Any]):
        self._values = values

    def __getattr__(self, name: str):
        try:
            value = self._values[name]
        except KeyError:
            raise AttributeError(name)

        def bound(*args):
            return FakeCall(value(*args) if callable(value) else value)

        return bound


class FakeContract:
    def __init__(self, values: Dict[str, Any]):
        self.functions = FakeFunctions(values)


class FakeEth:
    def __init__(self, contracts: Dict[str, Dict[str, Any]]):
        self._contracts = {addr.lower(): FakeContract(v) for addr, v in contracts.items()}
        self.requested = []

    def contract(self, address: str, abi=None):
        self.requested.append(address)
        return self._contracts[address.lower()]


class FakeWeb3:
    def __init__(self, contracts: Dict[str, Dict[str, Any]]):
        self.eth = FakeEth(contracts)


def by_address(table: Dict[str, Any]):
    """Comptroller per-market getter keyed by lower-cased address."""
    return lambda addr: table[addr.lower()]


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def protocol_config() -> ProtocolConfig:
    return ProtocolConfig(
        project="lodestar-v1",
        chain="arbitrum",
        comptroller=COMPTROLLER,
        native_token=TokenConfig(address=NATIVE, symbol="WETH", decimals=18),
        protocol_token=TokenConfig(address=LODE, symbol="LODE", decimals=18),
        url="https://app.lodestarfinance.io/",
        symbol_overrides={MKR: "MKR"},
    )
