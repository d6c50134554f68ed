"""
DefiLlama coins API - current USD prices for chain-qualified token ids.

    GET {base}/prices/current/{chain:addr,chain:addr,...}
    -> {"coins": {"arbitrum:0x..": {"price": 1.0, ...}}}

No batching limit is enforced here; callers keep the id list within what
the API accepts. HTTP errors propagate.
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional

import requests

LLAMA_COINS_BASE = "https://coins.llama.fi"


def coin_id(chain: str, address: str) -> str:
    return f"{chain}:{address}"


def get_prices(
    coins: Iterable[str],
    base_url: str = LLAMA_COINS_BASE,
    timeout: float = 30,
    session: Optional[requests.Session] = None,
) -> Dict[str, float]:
    """
    Fetch current prices in one request.

    Args:
        coins: ids like "arbitrum:0xabc..."
        base_url: coins API root
        timeout: request timeout in seconds
        session: optional requests.Session to reuse

    Returns:
        {lower-cased bare address: price}; addresses the API does not know are absent
    """
    coins = [c.lower() for c in coins]
    if not coins:
        return {}

    url = f"{base_url.rstrip('/')}/prices/current/{','.join(coins)}"
    http = session or requests
    r = http.get(url, timeout=timeout)
    r.raise_for_status()
    data = r.json() or {}

    prices: Dict[str, float] = {}
    for name, quote in (data.get("coins") or {}).items():
        if not isinstance(quote, dict) or quote.get("price") is None:
            continue
        addr = name.split(":", 1)[1] if ":" in name else name
        prices[addr.lower()] = float(quote["price"])
    return prices
