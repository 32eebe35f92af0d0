"""
Engine Records
--------------
Immutable records flowing out of the trade simulator and metrics calculator.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Literal

import pandas as pd

Side = Literal["long"]


@dataclass(frozen=True)
class PricePoint:
    timestamp: datetime
    close: float


@dataclass(frozen=True)
class Position:
    """An open long position. Only ever held by the InPosition state."""

    entry_time: pd.Timestamp
    entry_price: float
    size: float
    commission_entry: float
    side: Side = "long"

    @property
    def notional(self) -> float:
        return self.entry_price * self.size


@dataclass(frozen=True)
class Trade:
    """A closed round trip."""

    entry_time: pd.Timestamp
    exit_time: pd.Timestamp
    entry_price: float
    exit_price: float
    size: float
    gross_pnl: float
    commission_entry: float
    commission_exit: float
    net_pnl: float
    exit_reason: str = "signal"
    side: Side = "long"

    @property
    def entry_notional(self) -> float:
        return self.entry_price * self.size

    @property
    def return_pct(self) -> float:
        """Net PnL relative to the capital committed at entry."""
        notional = self.entry_notional
        return self.net_pnl / notional if notional > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["entry_time"] = _iso(self.entry_time)
        d["exit_time"] = _iso(self.exit_time)
        return d


@dataclass(frozen=True)
class EquityPoint:
    timestamp: pd.Timestamp
    cumulative_pnl: float

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": _iso(self.timestamp), "cumulative_pnl": self.cumulative_pnl}


@dataclass(frozen=True)
class PerformanceMetrics:
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    total_pnl: float
    sharpe_ratio: float
    max_drawdown: float
    average_win: float
    average_loss: float
    largest_win: float
    largest_loss: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _iso(ts: Any) -> str:
    if isinstance(ts, (pd.Timestamp, datetime)):
        return ts.isoformat()
    return str(ts)
