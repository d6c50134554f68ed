"""lending yield package: read Compound V2-style markets, price them, and export pool APY/TVL records."""
__all__ = [
    "config",
    "apy",
    "pricing",
    "adapters",
    "main",
]
