import argparse
import math
import sys
from datetime import datetime, timezone
from pathlib import Path

import pandas as pd

from .adapters.lodestar import get_pools, get_protocol_metadata
from .config.rpc_config import connect_rpc, get_rpc_url
from .config.settings import load_config


def die(msg: str, code: int = 1):
    print(f"[ERROR] {msg}", file=sys.stderr)
    sys.exit(code)


def write_pools(pools, out_root: str, project: str, chain: str, fmt: str = "csv") -> Path:
    """Write pool records to <out_root>/pools/<project>_<chain>/pools_<date>.<fmt>."""
    date_str = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    out_dir = Path(out_root) / "pools" / f"{project}_{chain}"
    out_dir.mkdir(parents=True, exist_ok=True)

    df = pd.DataFrame(pools)
    out = out_dir / f"pools_{date_str}.{fmt}"
    if fmt == "json":
        df.to_json(out, orient="records", indent=2)
    else:
        # list columns as comma-joined addresses
        for col in ("underlyingTokens", "rewardTokens"):
            if col in df.columns:
                df[col] = df[col].apply(lambda v: ",".join(v) if isinstance(v, list) else v)
        df.to_csv(out, index=False)
    return out


def main(argv=None):
    p = argparse.ArgumentParser(description="Collect pool APY/TVL for a Compound V2-style lending market")
    p.add_argument("--config", default=None, help="Protocol YAML (default: bundled lodestar.yaml)")
    p.add_argument("--rpc-url", default=None, help="RPC endpoint (overrides config and env)")
    p.add_argument("--out-root", default="data/out", help="Root directory for output files")
    p.add_argument("--format", default="csv", choices=["csv", "json"])
    p.add_argument("--no-write", action="store_true", help="Do not write files; just print")
    args = p.parse_args(argv)

    try:
        cfg = load_config(args.config)
        rpc_url = get_rpc_url(cfg.chain, args.rpc_url or cfg.rpc_url)
        w3 = connect_rpc(rpc_url)
    except (ValueError, ConnectionError) as e:
        die(str(e))

    meta = get_protocol_metadata(cfg)
    print(f"🔹 {meta['chain'].upper()}: project={meta['project']} comptroller={cfg.comptroller}")

    pools = get_pools(w3, cfg)

    tvl = sum(pl["tvlUsd"] for pl in pools if not math.isnan(pl["tvlUsd"]))
    n_borrow = sum(1 for pl in pools if "ltv" in pl)
    print(f"✅ {meta['chain']}: {len(pools)} pools | TVL ${tvl:,.2f} | {n_borrow} borrowable")
    for pl in pools:
        print(f"   - {pl['symbol']:<10} tvl=${pl['tvlUsd']:,.2f} apyBase={pl['apyBase']:.2f}% apyReward={pl['apyReward']:.2f}%")

    if not args.no_write:
        out = write_pools(pools, args.out_root, cfg.project, cfg.chain, args.format)
        print(f"💾 Wrote pools → {out}")

    return pools


if __name__ == "__main__":
    main()
