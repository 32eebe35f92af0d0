"""
Core Backtest Engine
--------------------
Orchestrates one backtest run: input validation, signal generation, the
trade-simulation state machine, and metrics.

The simulator has exactly two states, Flat and InPosition. It walks the series
in time order, opens a single long position on Buy, closes it on Sell, and
force-closes any position still open on the last bar. No I/O, no clock, no
randomness: identical inputs give identical results.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Union, cast

import pandas as pd

from .config import BacktestConfig, SizingCfg, StrategyMode
from .data_io import validate_price_series
from .errors import DataError, MALFORMED
from .metrics import compute_metrics
from .models import EquityPoint, PerformanceMetrics, Position, Trade
from .signals import Signal, build_strategy, generate_signals

logger = logging.getLogger(__name__)

_TRADE_COLS = [
    "entry_time",
    "exit_time",
    "side",
    "entry_price",
    "exit_price",
    "size",
    "gross_pnl",
    "commission_entry",
    "commission_exit",
    "net_pnl",
    "exit_reason",
]


@dataclass(frozen=True)
class Flat:
    pass


@dataclass(frozen=True)
class InPosition:
    position: Position


SimState = Union[Flat, InPosition]


@dataclass(frozen=True)
class BacktestResult:
    """Plain-data output handed to the report collaborator."""

    mode: StrategyMode
    metrics: PerformanceMetrics
    trades: list[Trade] = field(default_factory=list)
    equity_curve: list[EquityPoint] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "metrics": self.metrics.to_dict(),
            "trades": [t.to_dict() for t in self.trades],
            "equity_curve": [p.to_dict() for p in self.equity_curve],
        }


def position_size(price: float, equity: float, sizing: SizingCfg) -> float:
    """Units to buy at *price* under the configured sizing policy."""
    if sizing.policy == "fixed_units":
        return float(sizing.units)
    if sizing.policy == "fixed_notional":
        return float(sizing.notional) / price
    # fixed_fractional: a share of realized equity, nothing when equity is gone
    if equity <= 0.0:
        return 0.0
    return float(sizing.fraction) * equity / price


def _close(position: Position, ts: pd.Timestamp, price: float, rate: float, reason: str) -> Trade:
    commission_exit = rate * price * position.size
    gross = (price - position.entry_price) * position.size
    return Trade(
        entry_time=position.entry_time,
        exit_time=ts,
        entry_price=position.entry_price,
        exit_price=price,
        size=position.size,
        gross_pnl=gross,
        commission_entry=position.commission_entry,
        commission_exit=commission_exit,
        net_pnl=gross - position.commission_entry - commission_exit,
        exit_reason=reason,
    )


def simulate_trades(
    closes: pd.Series, signals: pd.Series, cfg: BacktestConfig
) -> tuple[list[Trade], list[EquityPoint]]:
    """
    Runs the Flat/InPosition state machine over aligned closes and signals.

    Flat + Buy         -> open at close (entry commission charged)
    Flat + Sell/Hold   -> stay Flat (no shorting)
    InPosition + Sell  -> close at close (exit commission charged)
    InPosition + other -> hold (no pyramiding)
    End of data while InPosition -> forced close at the last close.
    """
    if len(closes) != len(signals) or not closes.index.equals(signals.index):
        raise DataError(MALFORMED, "signals are not aligned with the price series")

    rate = float(cfg.commission_rate)
    capital = float(cfg.initial_capital)

    state: SimState = Flat()
    trades: list[Trade] = []
    equity_curve: list[EquityPoint] = []
    realized = 0.0

    prices = closes.to_numpy(dtype=float)
    sigs = signals.to_numpy(dtype=object)
    stamps = closes.index

    for i in range(len(prices)):
        price = float(prices[i])
        sig = sigs[i]
        ts = cast(pd.Timestamp, stamps[i])

        if isinstance(state, Flat):
            if sig != Signal.BUY:
                continue
            size = position_size(price, capital + realized, cfg.sizing)
            if size <= 0.0:
                logger.debug("Buy at %s skipped: no equity left to size a position", ts)
                continue
            position = Position(
                entry_time=ts,
                entry_price=price,
                size=size,
                commission_entry=rate * price * size,
            )
            state = InPosition(position)
            logger.debug("Opened long %.6f @ %.4f at %s", size, price, ts)

        elif sig == Signal.SELL:
            trade = _close(state.position, ts, price, rate, "signal")
            realized += trade.net_pnl
            trades.append(trade)
            equity_curve.append(EquityPoint(ts, realized))
            state = Flat()
            logger.debug("Closed long @ %.4f at %s, net %.4f", price, ts, trade.net_pnl)

    if isinstance(state, InPosition):
        ts = cast(pd.Timestamp, stamps[-1])
        price = float(prices[-1])
        trade = _close(state.position, ts, price, rate, "end_of_data")
        realized += trade.net_pnl
        trades.append(trade)
        equity_curve.append(EquityPoint(ts, realized))
        logger.debug("Force-closed long @ %.4f at end of data, net %.4f", price, trade.net_pnl)

    return trades, equity_curve


def run_backtest(
    prices: Any, cfg: BacktestConfig, mode: StrategyMode | str | None = None
) -> BacktestResult:
    """
    Executes one full backtest for a single strategy mode.

    Args:
        prices: Ordered, de-duplicated close series (Series, DataFrame with a
            close column, or an iterable of PricePoint).
        cfg: Validated run configuration.
        mode: Overrides ``cfg.strategy_mode`` for this run only.

    Raises:
        DataError: The series is empty, too short for the strategy warm-up,
            or malformed.
    """
    run_mode = StrategyMode.parse(mode if mode is not None else cfg.strategy_mode)
    strategy = build_strategy(cfg, run_mode)
    closes = validate_price_series(prices, warmup=strategy.warmup)

    signals = generate_signals(strategy, closes)
    trades, equity_curve = simulate_trades(closes, signals, cfg)
    metrics = compute_metrics(trades, equity_curve, cfg)

    logger.info(
        "%s: %d trades, win rate %.2f%%, total PnL %.2f",
        run_mode.value,
        metrics.total_trades,
        metrics.win_rate * 100.0,
        metrics.total_pnl,
    )
    return BacktestResult(
        mode=run_mode, metrics=metrics, trades=trades, equity_curve=equity_curve
    )


def run_all_modes(prices: Any, cfg: BacktestConfig) -> dict[StrategyMode, BacktestResult]:
    """Runs every strategy mode on the same series; each run has its own state."""
    return {mode: run_backtest(prices, cfg, mode) for mode in StrategyMode}


def trades_to_frame(trades: list[Trade]) -> pd.DataFrame:
    """Tabular view of the trade list."""
    if not trades:
        return pd.DataFrame(columns=_TRADE_COLS)
    records = [
        {col: getattr(t, col) for col in _TRADE_COLS}
        for t in trades
    ]
    return pd.DataFrame.from_records(records, columns=_TRADE_COLS)
