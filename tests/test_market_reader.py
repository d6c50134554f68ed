"""Unit tests for the Compound V2-style market reader."""
from __future__ import annotations

import pytest
import requests
from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError
from web3.providers.base import BaseProvider

from conftest import (
    COMPTROLLER,
    MARKET_ETH,
    MARKET_MKR,
    MARKET_USDC,
    MKR,
    USDC,
    FakeWeb3,
    by_address,
)
from lending_yield.adapters.market_reader import CompoundStyleMarketReader


def _contracts(overrides=None):
    contracts = {
        COMPTROLLER: {
            "getAllMarkets": [MARKET_USDC, MARKET_ETH, MARKET_MKR],
            "markets": by_address(
                {
                    MARKET_USDC: (True, 800000000000000000, False),
                    MARKET_ETH: (True, 750000000000000000, False),
                    MARKET_MKR: (True, 0, False),
                }
            ),
            "compSupplySpeeds": by_address({MARKET_USDC: 10**16, MARKET_ETH: 0, MARKET_MKR: 5}),
            "compBorrowSpeeds": by_address({MARKET_USDC: 2 * 10**16, MARKET_ETH: 0, MARKET_MKR: 6}),
            "mintGuardianPaused": by_address({MARKET_USDC: False, MARKET_ETH: False, MARKET_MKR: True}),
        },
        MARKET_USDC: {
            "supplyRatePerBlock": 1000,
            "borrowRatePerBlock": 2000,
            "getCash": 1_000_000,
            "totalBorrows": 500_000,
            "underlying": USDC,
        },
        MARKET_ETH: {
            "supplyRatePerBlock": 3000,
            "borrowRatePerBlock": 4000,
            "getCash": 10**18,
            "totalBorrows": 0,
            "underlying": ContractLogicError("execution reverted"),
        },
        MARKET_MKR: {
            "supplyRatePerBlock": 0,
            "borrowRatePerBlock": 0,
            "getCash": 7,
            "totalBorrows": 8,
            "underlying": MKR,
        },
        USDC: {"symbol": "USDC", "decimals": 6},
        # MKR's symbol() is bytes32 and does not decode as string
        MKR: {"symbol": BadFunctionCallOutput("Could not decode contract function call to symbol()"), "decimals": 18},
    }
    for addr, values in (overrides or {}).items():
        contracts[addr].update(values)
    return contracts


@pytest.fixture()
def reader() -> CompoundStyleMarketReader:
    return CompoundStyleMarketReader(FakeWeb3(_contracts()), COMPTROLLER, max_workers=4)


class TestGetAllMarkets:
    def test_preserves_registry_order(self, reader: CompoundStyleMarketReader) -> None:
        markets = reader.get_all_markets()
        assert [m.lower() for m in markets] == [MARKET_USDC, MARKET_ETH, MARKET_MKR]


class TestFieldReads:
    def test_comptroller_field_in_input_order(self, reader: CompoundStyleMarketReader) -> None:
        speeds = reader.read_comptroller_field("compSupplySpeeds", [MARKET_MKR, MARKET_USDC, MARKET_ETH])
        assert speeds == [5, 10**16, 0]

    def test_token_field_in_input_order(self, reader: CompoundStyleMarketReader) -> None:
        cash = reader.read_token_field("getCash", [MARKET_ETH, MARKET_MKR, MARKET_USDC])
        assert cash == [10**18, 7, 1_000_000]

    def test_none_target_yields_none(self, reader: CompoundStyleMarketReader) -> None:
        assert reader.read_token_field("decimals", [USDC, None]) == [6, None]

    def test_revert_yields_none(self, reader: CompoundStyleMarketReader) -> None:
        underlying = reader.read_token_field("underlying", [MARKET_USDC, MARKET_ETH])
        assert underlying == [USDC, None]


class TestReadMarkets:
    def test_snapshots_follow_market_order(self, reader: CompoundStyleMarketReader) -> None:
        snapshots = reader.read_markets()
        assert [s.market.lower() for s in snapshots] == [MARKET_USDC, MARKET_ETH, MARKET_MKR]

    def test_usdc_market_fields(self, reader: CompoundStyleMarketReader) -> None:
        usdc = reader.read_markets()[0]
        assert usdc.underlying.lower() == USDC
        assert usdc.symbol == "USDC"
        assert usdc.decimals == 6
        assert usdc.collateral_factor_mantissa == 800000000000000000
        assert usdc.cash == 1_000_000
        assert usdc.total_borrows == 500_000
        assert usdc.supply_rate == 1000
        assert usdc.borrow_rate == 2000
        assert usdc.supply_speed == 10**16
        assert usdc.borrow_speed == 2 * 10**16
        assert usdc.paused is False

    def test_native_market_has_no_underlying(self, reader: CompoundStyleMarketReader) -> None:
        eth = reader.read_markets()[1]
        assert eth.underlying is None
        assert eth.symbol is None
        assert eth.decimals is None

    def test_undecodable_symbol_is_none(self, reader: CompoundStyleMarketReader) -> None:
        mkr = reader.read_markets()[2]
        assert mkr.symbol is None
        assert mkr.paused is True

    def test_reports_underlyings_before_token_reads(self) -> None:
        seen = []
        reader = CompoundStyleMarketReader(FakeWeb3(_contracts()), COMPTROLLER)
        reader.read_markets(on_underlyings=seen.append)
        assert len(seen) == 1
        assert [u.lower() if u else None for u in seen[0]] == [USDC, None, MKR]

    def test_transport_failure_aborts(self) -> None:
        contracts = _contracts({MARKET_ETH: {"totalBorrows": requests.ConnectionError("rpc down")}})
        reader = CompoundStyleMarketReader(FakeWeb3(contracts), COMPTROLLER)
        with pytest.raises(requests.ConnectionError):
            reader.read_markets()


class Bytes32SymbolProvider(BaseProvider):
    """Answers every eth_call with MKR's bytes32-encoded symbol."""

    def make_request(self, method, params):
        if method == "eth_chainId":
            return {"jsonrpc": "2.0", "id": 1, "result": "0xa4b1"}
        if method == "eth_call":
            return {"jsonrpc": "2.0", "id": 1, "result": "0x" + b"MKR".hex() + "00" * 29}
        raise NotImplementedError(method)

    def is_connected(self, show_traceback: bool = False) -> bool:
        return True


class TestAbiDecoding:
    def test_bytes32_symbol_decodes_to_none(self) -> None:
        w3 = Web3(Bytes32SymbolProvider())
        reader = CompoundStyleMarketReader(w3, COMPTROLLER)
        assert reader.read_token_field("symbol", [MKR]) == [None]
