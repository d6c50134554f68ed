"""
RPC URL resolution and connection - auto-generates Alchemy URLs from API key,
falls back to public endpoints when no key is set.
"""

import os
from typing import Optional

from web3 import Web3

# Alchemy URL patterns
ALCHEMY_PATTERNS = {
    'ethereum': 'https://eth-mainnet.g.alchemy.com/v2/{key}',
    'arbitrum': 'https://arb-mainnet.g.alchemy.com/v2/{key}',
    'optimism': 'https://opt-mainnet.g.alchemy.com/v2/{key}',
    'base': 'https://base-mainnet.g.alchemy.com/v2/{key}',
    'polygon': 'https://polygon-mainnet.g.alchemy.com/v2/{key}',
}

# Public RPCs (no auth needed)
PUBLIC_RPCS = {
    'ethereum': 'https://eth.llamarpc.com',
    'arbitrum': 'https://arb1.arbitrum.io/rpc',
    'optimism': 'https://mainnet.optimism.io',
    'base': 'https://mainnet.base.org',
    'polygon': 'https://polygon-rpc.com',
}


def get_rpc_url(chain: str, rpc_url: Optional[str] = None, api_key: Optional[str] = None) -> str:
    """
    Get RPC URL for a chain.

    Args:
        chain: Chain name (e.g., 'arbitrum')
        rpc_url: Explicit URL, returned as-is when given
        api_key: Alchemy API key (uses ALCHEMY_API_KEY env var if not provided)

    Returns:
        Complete RPC URL
    """
    if rpc_url:
        return rpc_url

    chain = chain.lower()

    key = api_key or os.getenv('ALCHEMY_API_KEY')
    if key and chain in ALCHEMY_PATTERNS:
        return ALCHEMY_PATTERNS[chain].format(key=key)

    if chain in PUBLIC_RPCS:
        return PUBLIC_RPCS[chain]

    raise ValueError(
        f"No RPC URL for chain '{chain}'. "
        "Set rpc_url in the config or LENDING_YIELD_RPC_URL."
    )


def connect_rpc(rpc_url: str, timeout: float = 60) -> Web3:
    w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
    if not w3.is_connected():
        raise ConnectionError(f"RPC connection failed: {rpc_url}")
    return w3
