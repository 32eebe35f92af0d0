"""
Indicator Library
-----------------
Pure, deterministic indicator functions over a close-price series:
- RSI (simple rolling, Wilder-smoothed or window-local EMA averages)
- Bollinger Bands (SMA mid, population standard deviation width)
- Moving averages, rolling volatility and z-score outlier flags

Every output is aligned to the input index. Rows inside an indicator's
warm-up window are NaN (absent), never zero.
"""

from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd
from numpy.lib.stride_tricks import sliding_window_view

INDICATOR_COLS = [
    "close",
    "rsi",
    "bb_upper",
    "bb_mid",
    "bb_lower",
    "ma_5",
    "ma_20",
    "volatility",
    "is_outlier",
]
RSI_SMOOTHING = ("simple", "wilder", "ema")
VOLATILITY_PERIOD = 20
OUTLIER_Z = 4.0


def as_close_series(closes: Any) -> pd.Series:
    if isinstance(closes, pd.Series):
        return closes.astype("float64")
    return pd.Series(np.asarray(closes, dtype=float), dtype="float64")


def rsi_warmup(period: int) -> int:
    """Number of leading closes needed for the first RSI reading."""
    return int(period) + 1


def bollinger_warmup(period: int) -> int:
    """Number of leading closes needed for the first band reading."""
    return int(period)


def _rsi_from_averages(avg_gain: np.ndarray, avg_loss: np.ndarray) -> np.ndarray:
    """RSI = 100 - 100 / (1 + RS); a zero average loss is defined as 100."""
    out = np.full(avg_gain.shape, np.nan)
    ready = ~(np.isnan(avg_gain) | np.isnan(avg_loss))
    flat = ready & (avg_loss == 0.0)
    live = ready & (avg_loss != 0.0)
    out[flat] = 100.0
    rs = avg_gain[live] / avg_loss[live]
    out[live] = 100.0 - 100.0 / (1.0 + rs)
    return out


def _ema_window_weights(period: int) -> np.ndarray:
    """
    Weights (oldest delta first) equivalent to seeding an EMA with the newest
    delta of a window and folding in the older deltas one by one.
    Sums to 1.
    """
    alpha = 2.0 / (period + 1.0)
    decay = 1.0 - alpha
    w = alpha * decay ** np.arange(period, dtype=float)
    w[-1] = decay ** (period - 1)
    return w


def rsi(closes: Any, period: int = 14, smoothing: str = "simple") -> pd.Series:
    """
    Relative Strength Index.

    Algorithm:
        1. delta[i] = close[i] - close[i-1]
        2. gains = max(delta, 0), losses = max(-delta, 0)
        3. simple: mean of the trailing *period* gains/losses
           wilder: seed with the simple mean of the first *period* deltas,
                   then avg = (prev * (period - 1) + current) / period
           ema:    per window, seed with the newest delta and fold in the
                   older ones with alpha = 2 / (period + 1)
        4. RSI = 100 - 100 / (1 + avg_gain / avg_loss)

    Rows with index < period are NaN.
    """
    if period <= 0:
        raise ValueError(f"rsi period must be > 0, got {period}")
    if smoothing not in RSI_SMOOTHING:
        raise ValueError(f"unknown RSI smoothing {smoothing!r}")

    close = as_close_series(closes)
    values = close.to_numpy(dtype=float)
    n = values.size

    avg_gain = np.full(n, np.nan)
    avg_loss = np.full(n, np.nan)

    if n >= period + 1:
        deltas = np.diff(values)
        gains = np.where(deltas > 0.0, deltas, 0.0)
        losses = np.where(deltas < 0.0, -deltas, 0.0)

        if smoothing == "simple":
            # each window sums its own deltas, no running-sum drift
            avg_gain[period:] = sliding_window_view(gains, period).mean(axis=1)
            avg_loss[period:] = sliding_window_view(losses, period).mean(axis=1)
        elif smoothing == "ema":
            weights = _ema_window_weights(period)
            avg_gain[period:] = sliding_window_view(gains, period) @ weights
            avg_loss[period:] = sliding_window_view(losses, period) @ weights
        else:
            ag = float(gains[:period].mean())
            al = float(losses[:period].mean())
            avg_gain[period] = ag
            avg_loss[period] = al
            for i in range(period, deltas.size):
                ag = (ag * (period - 1) + gains[i]) / period
                al = (al * (period - 1) + losses[i]) / period
                # deltas are offset by one against closes
                avg_gain[i + 1] = ag
                avg_loss[i + 1] = al

    out = pd.Series(_rsi_from_averages(avg_gain, avg_loss), index=close.index)
    out.name = "rsi"
    return out


def bollinger_bands(closes: Any, period: int = 20, num_std: float = 2.0) -> pd.DataFrame:
    """
    Bollinger Bands over the trailing *period* closes.

    mid   = simple moving average
    width = num_std * population standard deviation (ddof=0) of the same window
    upper = mid + width, lower = mid - width

    The first full window ends at index period - 1; earlier rows are NaN.
    """
    if period <= 0:
        raise ValueError(f"bollinger period must be > 0, got {period}")
    if num_std <= 0:
        raise ValueError(f"bollinger num_std must be > 0, got {num_std}")

    close = as_close_series(closes)
    values = close.to_numpy(dtype=float)
    n = values.size

    mid = np.full(n, np.nan)
    sd = np.full(n, np.nan)
    if n >= period:
        windows = sliding_window_view(values, period)
        mid[period - 1 :] = windows.mean(axis=1)
        sd[period - 1 :] = windows.std(axis=1, ddof=0)

    width = float(num_std) * sd
    return pd.DataFrame(
        {"bb_upper": mid + width, "bb_mid": mid, "bb_lower": mid - width},
        index=close.index,
    )


def moving_average(closes: Any, period: int) -> pd.Series:
    """Simple moving average of the trailing *period* closes; NaN before index period - 1."""
    if period <= 0:
        raise ValueError(f"moving average period must be > 0, got {period}")
    close = as_close_series(closes)
    values = close.to_numpy(dtype=float)
    out = np.full(values.size, np.nan)
    if values.size >= period:
        out[period - 1 :] = sliding_window_view(values, period).mean(axis=1)
    return pd.Series(out, index=close.index, name=f"ma_{period}")


def volatility(closes: Any, period: int = VOLATILITY_PERIOD) -> pd.Series:
    """Sample standard deviation (ddof=1) of the trailing *period* closes."""
    if period <= 1:
        raise ValueError(f"volatility period must be > 1, got {period}")
    close = as_close_series(closes)
    values = close.to_numpy(dtype=float)
    out = np.full(values.size, np.nan)
    if values.size >= period:
        out[period - 1 :] = sliding_window_view(values, period).std(axis=1, ddof=1)
    return pd.Series(out, index=close.index, name="volatility")


def outlier_flags(
    closes: Any, period: int = VOLATILITY_PERIOD, z: float = OUTLIER_Z
) -> pd.Series:
    """
    Flags closes more than *z* sample standard deviations away from the mean
    of their own trailing *period* window (the close itself included).

    False while the window is incomplete or has zero spread.
    """
    close = as_close_series(closes)
    mean = moving_average(close, period).to_numpy()
    vol = volatility(close, period).to_numpy()
    values = close.to_numpy(dtype=float)

    flags = np.zeros(values.size, dtype=bool)
    ready = ~np.isnan(vol) & (vol > 0.0)
    flags[ready] = np.abs(values[ready] - mean[ready]) / vol[ready] > z
    return pd.Series(flags, index=close.index, name="is_outlier")


def compute_indicators(closes: Any, cfg: Any) -> pd.DataFrame:
    """
    Builds the indicator-reading frame (one row per price point).
    Columns: close, rsi, bb_upper, bb_mid, bb_lower, ma_5, ma_20,
    volatility, is_outlier.
    """
    close = as_close_series(closes)
    rsi_cfg = cfg.rsi
    bb_cfg = cfg.bollinger

    out = pd.DataFrame({"close": close})
    out["rsi"] = rsi(close, rsi_cfg.period, rsi_cfg.smoothing)
    bands = bollinger_bands(close, bb_cfg.period, bb_cfg.std_dev)
    for col in bands.columns:
        out[col] = bands[col]
    out["ma_5"] = moving_average(close, 5)
    out["ma_20"] = moving_average(close, 20)
    out["volatility"] = volatility(close)
    out["is_outlier"] = outlier_flags(close)
    return out[INDICATOR_COLS]


def market_snapshot(closes: Any, rsi_period: int = 14) -> dict[str, Any]:
    """
    Latest readings of a close series: price, RSI, 20-bar MA, volatility and
    the outlier flag. Readings still inside their warm-up are None.
    """
    close = as_close_series(closes)
    if close.empty:
        raise ValueError("market_snapshot needs at least one close")

    def _last(s: pd.Series) -> float | None:
        v = s.iloc[-1]
        return None if pd.isna(v) else float(v)

    return {
        "timestamp": close.index[-1],
        "price": float(close.iloc[-1]),
        "rsi": _last(rsi(close, rsi_period)),
        "rsi_period": int(rsi_period),
        "ma_20": _last(moving_average(close, 20)),
        "volatility": _last(volatility(close)),
        "is_outlier": bool(outlier_flags(close).iloc[-1]),
    }
