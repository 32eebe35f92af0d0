from __future__ import annotations

from typing import Sequence

import pandas as pd

from sol_backtester.models import Trade


def make_daily_series(closes: Sequence[float], start: str = "2024-01-01") -> pd.Series:
    idx = pd.date_range(start=start, periods=len(closes), freq="D", tz="UTC")
    return pd.Series(list(closes), index=idx, dtype="float64", name="close")


def make_trade(
    net_pnl: float,
    *,
    entry_price: float = 100.0,
    size: float = 1.0,
    day: int = 0,
) -> Trade:
    """A closed trade with no commission whose exit price yields *net_pnl*."""
    entry = pd.Timestamp("2024-01-01", tz="UTC") + pd.Timedelta(days=2 * day)
    exit_price = entry_price + net_pnl / size
    return Trade(
        entry_time=entry,
        exit_time=entry + pd.Timedelta(days=1),
        entry_price=entry_price,
        exit_price=exit_price,
        size=size,
        gross_pnl=net_pnl,
        commission_entry=0.0,
        commission_exit=0.0,
        net_pnl=net_pnl,
    )
