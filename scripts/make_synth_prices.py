"""
Script: Synthetic Price Generator
Purpose: Creates a deterministic daily close series for local runs.

Description:
    Geometric random walk with a slow cycle on top, so RSI and the bands
    both reach their thresholds. Lets the CLI run without an API key.

Usage:
    python scripts/make_synth_prices.py --out data/sample/sol_synth.csv --days 365
"""

from __future__ import annotations
import argparse
from pathlib import Path
import numpy as np
import pandas as pd

from sol_backtester.data_io import write_price_csv


def make_synth_daily(start_date: str, n_days: int, seed: int, start_price: float = 100.0) -> pd.Series:
    rng = np.random.default_rng(seed)
    idx = pd.date_range(start_date, periods=n_days, freq="D", tz="UTC")

    log_ret = rng.normal(0.0, 0.035, size=n_days)
    cycle = 0.15 * np.sin(2 * np.pi * np.arange(n_days) / 45.0)
    close = start_price * np.exp(np.cumsum(log_ret) + cycle)

    return pd.Series(close, index=idx, name="close")


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--out", required=True, help="Output CSV path")
    ap.add_argument("--start-date", default="2024-01-01")
    ap.add_argument("--days", type=int, default=365)
    ap.add_argument("--seed", type=int, default=123)
    args = ap.parse_args()

    out = Path(args.out).expanduser().resolve()
    series = make_synth_daily(args.start_date, args.days, args.seed)
    print(str(write_price_csv(series, out)))


if __name__ == "__main__":
    main()
