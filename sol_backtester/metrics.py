"""
Performance Metrics
-------------------
Pure reductions of the closed-trade list and the equity curve:
win rate, total PnL, average/largest win and loss, Sharpe ratio and
maximum drawdown.

Undefined ratios are mapped to 0.0 (no trades, fewer than two returns,
zero variance, empty curve) so a run never fails on a numeric edge case.
"""

from __future__ import annotations

import math
from typing import Any, Sequence

import numpy as np

from .models import EquityPoint, PerformanceMetrics, Trade

_ZERO_STD = 1e-12


def _net(trades: Sequence[Trade]) -> np.ndarray:
    return np.asarray([t.net_pnl for t in trades], dtype=float)


def win_rate(trades: Sequence[Trade]) -> float:
    """Share of trades with net_pnl > 0; 0.0 when there are no trades."""
    pnl = _net(trades)
    if pnl.size == 0:
        return 0.0
    return float((pnl > 0.0).sum() / pnl.size)


def total_pnl(trades: Sequence[Trade]) -> float:
    return float(_net(trades).sum())


def average_win(trades: Sequence[Trade]) -> float:
    pnl = _net(trades)
    wins = pnl[pnl > 0.0]
    return float(wins.mean()) if wins.size else 0.0


def average_loss(trades: Sequence[Trade]) -> float:
    """Mean net PnL of non-winning trades (<= 0), 0.0 when there are none."""
    pnl = _net(trades)
    losses = pnl[pnl <= 0.0]
    return float(losses.mean()) if losses.size else 0.0


def largest_win(trades: Sequence[Trade]) -> float:
    pnl = _net(trades)
    wins = pnl[pnl > 0.0]
    return float(wins.max()) if wins.size else 0.0


def largest_loss(trades: Sequence[Trade]) -> float:
    pnl = _net(trades)
    losses = pnl[pnl <= 0.0]
    return float(losses.min()) if losses.size else 0.0


def trade_returns(trades: Sequence[Trade]) -> np.ndarray:
    """Per-trade returns: net PnL over entry notional."""
    return np.asarray([t.return_pct for t in trades], dtype=float)


def sharpe_ratio(
    returns: Any,
    *,
    periods_per_year: float = 252.0,
    risk_free_rate: float = 0.0,
) -> float:
    """
    Annualized Sharpe ratio of per-period returns.

    (mean - rf / periods_per_year) / population std * sqrt(periods_per_year)

    Returns 0.0 with fewer than 2 observations or zero variance.
    """
    r = np.asarray(returns, dtype=float)
    if r.size < 2:
        return 0.0
    std = float(r.std(ddof=0))
    # identical returns can leave float residue instead of an exact zero
    if not math.isfinite(std) or std <= _ZERO_STD:
        return 0.0
    excess = float(r.mean()) - risk_free_rate / periods_per_year
    return excess / std * math.sqrt(periods_per_year)


def max_drawdown(equity_curve: Sequence[EquityPoint], initial_capital: float) -> float:
    """
    Largest peak-to-trough decline as a fraction of the running peak equity.

    Equity = initial_capital + cumulative PnL; the running peak starts at
    initial_capital, so a first losing trade is already a drawdown.
    """
    if not equity_curve:
        return 0.0

    cum = np.asarray([p.cumulative_pnl for p in equity_curve], dtype=float)
    equity = np.concatenate(([initial_capital], initial_capital + cum))

    peak = np.maximum.accumulate(equity)
    with np.errstate(divide="ignore", invalid="ignore"):
        dd = np.where(peak > 0.0, (peak - equity) / peak, 0.0)

    mdd = float(np.nanmax(dd)) if dd.size else 0.0
    if not math.isfinite(mdd):
        return 0.0
    return max(0.0, mdd)


def compute_metrics(
    trades: Sequence[Trade], equity_curve: Sequence[EquityPoint], cfg: Any
) -> PerformanceMetrics:
    """Builds the full metrics record; recomputed from scratch on every call."""
    pnl = _net(trades)
    metrics_cfg = cfg.metrics

    return PerformanceMetrics(
        total_trades=int(pnl.size),
        winning_trades=int((pnl > 0.0).sum()),
        losing_trades=int((pnl <= 0.0).sum()),
        win_rate=win_rate(trades),
        total_pnl=total_pnl(trades),
        sharpe_ratio=sharpe_ratio(
            trade_returns(trades),
            periods_per_year=float(metrics_cfg.periods_per_year),
            risk_free_rate=float(metrics_cfg.risk_free_rate),
        ),
        max_drawdown=max_drawdown(equity_curve, float(cfg.initial_capital)),
        average_win=average_win(trades),
        average_loss=average_loss(trades),
        largest_win=largest_win(trades),
        largest_loss=largest_loss(trades),
    )
