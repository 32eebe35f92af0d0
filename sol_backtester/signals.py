"""
Signal Generator
----------------
Maps indicator readings to directional signals (Buy / Sell / Hold).

Strategy modes are a tagged variant: each strategy is a frozen dataclass
carrying only its own parameters, and ``generate_signals`` dispatches on the
variant type. All signals are edge-triggered (a signal fires on the bar where
a threshold is crossed, not on every bar spent beyond it) and causal: the
signal at bar t only reads bars <= t.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import singledispatch
from typing import Any, Union

import pandas as pd

from .config import BacktestConfig, StrategyMode
from .indicators import (
    as_close_series,
    bollinger_bands,
    bollinger_warmup,
    rsi,
    rsi_warmup,
)


class Signal(str, Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


@dataclass(frozen=True)
class RsiStrategy:
    """Buy on an upward cross of *oversold*, sell on a downward cross of *overbought*."""

    period: int = 14
    oversold: float = 30.0
    overbought: float = 70.0
    smoothing: str = "simple"

    @property
    def warmup(self) -> int:
        return rsi_warmup(self.period)


@dataclass(frozen=True)
class BollingerStrategy:
    """
    Mean reversion: buy when close crosses below the lower band,
    exit when close crosses above the upper band.
    """

    period: int = 20
    num_std: float = 2.0

    @property
    def warmup(self) -> int:
        return bollinger_warmup(self.period)


@dataclass(frozen=True)
class CombinedStrategy:
    """Acts only when RSI and Bollinger emit the same signal on the same bar."""

    rsi: RsiStrategy = field(default_factory=RsiStrategy)
    bollinger: BollingerStrategy = field(default_factory=BollingerStrategy)

    @property
    def warmup(self) -> int:
        return max(self.rsi.warmup, self.bollinger.warmup)


Strategy = Union[RsiStrategy, BollingerStrategy, CombinedStrategy]

BOLLINGER_EXIT_RULE = "close crosses above the upper band"
COMBINED_EXIT_RULE = (
    "RSI and Bollinger exits on the same bar; they rarely coincide, so most "
    "combined positions close at end of data"
)


def build_strategy(cfg: BacktestConfig, mode: StrategyMode | str | None = None) -> Strategy:
    """Builds the strategy variant for *mode* (defaults to ``cfg.strategy_mode``)."""
    mode = StrategyMode.parse(mode if mode is not None else cfg.strategy_mode)

    rsi_s = RsiStrategy(
        period=cfg.rsi.period,
        oversold=float(cfg.rsi.oversold),
        overbought=float(cfg.rsi.overbought),
        smoothing=cfg.rsi.smoothing,
    )
    bb_s = BollingerStrategy(period=cfg.bollinger.period, num_std=float(cfg.bollinger.std_dev))

    if mode is StrategyMode.RSI:
        return rsi_s
    if mode is StrategyMode.BOLLINGER_BANDS:
        return bb_s
    return CombinedStrategy(rsi=rsi_s, bollinger=bb_s)


def _to_signals(buy: pd.Series, sell: pd.Series, index: pd.Index) -> pd.Series:
    out = pd.Series(Signal.HOLD, index=index, dtype=object, name="signal")
    out[buy.to_numpy(dtype=bool)] = Signal.BUY
    out[sell.to_numpy(dtype=bool)] = Signal.SELL
    return out


def rsi_crossings(values: pd.Series, oversold: float, overbought: float) -> pd.Series:
    """Edge-triggered RSI signals; a missing previous reading never counts as a cross."""
    prev = values.shift(1)
    buy = (prev < oversold) & (values >= oversold)
    sell = (prev > overbought) & (values <= overbought)
    return _to_signals(buy, sell, values.index)


def band_crossings(close: pd.Series, bands: pd.DataFrame) -> pd.Series:
    """Edge-triggered Bollinger signals (lower-band entry, upper-band exit)."""
    prev_close = close.shift(1)
    lower = bands["bb_lower"]
    upper = bands["bb_upper"]

    buy = (prev_close >= lower.shift(1)) & (close < lower)
    sell = (prev_close <= upper.shift(1)) & (close > upper)
    return _to_signals(buy, sell, close.index)


@singledispatch
def generate_signals(strategy: Any, closes: Any) -> pd.Series:
    """Computes one Signal per price point for the given strategy variant."""
    raise TypeError(f"unsupported strategy type: {type(strategy).__name__}")


@generate_signals.register(RsiStrategy)
def _rsi_signals(strategy: RsiStrategy, closes: Any) -> pd.Series:
    close = as_close_series(closes)
    values = rsi(close, strategy.period, strategy.smoothing)
    return rsi_crossings(values, strategy.oversold, strategy.overbought)


@generate_signals.register(BollingerStrategy)
def _bollinger_signals(strategy: BollingerStrategy, closes: Any) -> pd.Series:
    close = as_close_series(closes)
    bands = bollinger_bands(close, strategy.period, strategy.num_std)
    return band_crossings(close, bands)


@generate_signals.register(CombinedStrategy)
def _combined_signals(strategy: CombinedStrategy, closes: Any) -> pd.Series:
    close = as_close_series(closes)
    r = generate_signals(strategy.rsi, close)
    b = generate_signals(strategy.bollinger, close)

    buy = (r == Signal.BUY) & (b == Signal.BUY)
    sell = (r == Signal.SELL) & (b == Signal.SELL)
    return _to_signals(buy, sell, close.index)
