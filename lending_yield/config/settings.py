"""
Protocol configuration for a single Compound V2-style deployment.

Everything that used to be a module constant (comptroller, chain, native and
reward token metadata, display overrides) lives in ProtocolConfig and is
loaded once per run from YAML.

Precedence:
  1) Explicit arguments (CLI flags)
  2) Environment variables (LENDING_YIELD_CONFIG, LENDING_YIELD_RPC_URL)
  3) YAML values
  4) Hardcoded defaults
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "lodestar.yaml"

SECONDS_PER_DAY = 86400

REQUIRED_KEYS = ["project", "chain", "comptroller", "native_token", "protocol_token"]


@dataclass(frozen=True)
class TokenConfig:
    address: str
    symbol: str
    decimals: int = 18

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "TokenConfig":
        if not d.get("address"):
            raise ValueError(f"token entry missing 'address': {d}")
        return TokenConfig(
            address=str(d["address"]).lower(),
            symbol=str(d.get("symbol") or ""),
            decimals=int(d.get("decimals", 18)),
        )


@dataclass(frozen=True)
class ProtocolConfig:
    project: str
    chain: str
    comptroller: str
    native_token: TokenConfig
    protocol_token: TokenConfig
    url: str = ""
    block_time_sec: float = 12
    days_per_year: int = 365
    symbol_overrides: Dict[str, str] = field(default_factory=dict)
    price_api: str = "https://coins.llama.fi"
    rpc_url: Optional[str] = None
    max_workers: int = 8
    request_timeout: float = 30

    @property
    def blocks_per_day(self) -> float:
        return SECONDS_PER_DAY / self.block_time_sec

    def display_symbol(self, underlying: Optional[str], onchain_symbol: Optional[str]) -> str:
        """Override table first, then on-chain symbol, then the native token symbol."""
        if underlying:
            override = self.symbol_overrides.get(underlying.lower())
            if override:
                return override
        return onchain_symbol or self.native_token.symbol

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "ProtocolConfig":
        missing = [k for k in REQUIRED_KEYS if not d.get(k)]
        if missing:
            raise ValueError(f"Missing keys in protocol config: {missing}")

        block_time = float(d.get("block_time_sec") or 12)
        if block_time <= 0:
            raise ValueError(f"block_time_sec must be positive, got {block_time}")

        overrides = d.get("symbol_overrides") or {}
        return ProtocolConfig(
            project=str(d["project"]),
            chain=str(d["chain"]).lower(),
            comptroller=str(d["comptroller"]),
            native_token=TokenConfig.from_dict(d["native_token"]),
            protocol_token=TokenConfig.from_dict(d["protocol_token"]),
            url=str(d.get("url") or ""),
            block_time_sec=block_time,
            days_per_year=int(d.get("days_per_year") or 365),
            # Keys -> lowercase strings so lookups are case-insensitive
            symbol_overrides={str(k).lower(): str(v) for k, v in overrides.items()},
            price_api=str(d.get("price_api") or "https://coins.llama.fi").rstrip("/"),
            rpc_url=d.get("rpc_url") or None,
            max_workers=int(d.get("max_workers") or 8),
            request_timeout=float(d.get("request_timeout") or 30),
        )


def load_config(path: Optional[str | Path] = None) -> ProtocolConfig:
    """
    Load a ProtocolConfig from YAML.

    Args:
        path: YAML file (falls back to LENDING_YIELD_CONFIG, then the bundled lodestar.yaml)

    Returns:
        ProtocolConfig, with rpc_url taken from LENDING_YIELD_RPC_URL when set
    """
    path = Path(path or os.getenv("LENDING_YIELD_CONFIG") or DEFAULT_CONFIG_PATH)
    if not path.exists():
        raise ValueError(f"Config file not found: {path}")

    with path.open("r") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    env_rpc = os.getenv("LENDING_YIELD_RPC_URL", "").strip()
    if env_rpc:
        raw["rpc_url"] = env_rpc

    return ProtocolConfig.from_dict(raw)
