"""
Tests for sol_backtester.indicators
-----------------------------------
Coverage:
- RSI values (simple, Wilder and window-local EMA smoothing) and warm-up NaNs.
- RSI zero-loss edge case (defined as 100).
- Bollinger mid/upper/lower with population standard deviation.
- Moving averages, sample volatility, z-score outlier flags, market snapshot.
- Index alignment and input immutability.
"""

import numpy as np
import pandas as pd
import pytest

from sol_backtester.config import BacktestConfig, BollingerCfg, RsiCfg
from sol_backtester.indicators import (
    bollinger_bands,
    bollinger_warmup,
    compute_indicators,
    market_snapshot,
    moving_average,
    outlier_flags,
    rsi,
    rsi_warmup,
    volatility,
)
from tests.utils import make_daily_series


def test_rsi_simple_scenario_values(scenario_prices):
    r = rsi(scenario_prices, period=2)

    assert r.index.equals(scenario_prices.index)
    assert r.iloc[:2].isna().all()
    assert list(r.iloc[2:6]) == [0.0, 0.0, 0.0, 0.0]
    assert r.iloc[6] == pytest.approx(100.0 - 100.0 / 3.0)
    assert r.iloc[7] == 100.0
    assert r.iloc[8] == 100.0


def test_rsi_wilder_smoothing():
    closes = make_daily_series([100, 95, 90, 85, 80, 78, 82, 90, 95])
    r = rsi(closes, period=2, smoothing="wilder")

    assert r.iloc[:2].isna().all()
    # avg_gain 2.0, avg_loss 1.75 after the first up move
    assert r.iloc[6] == pytest.approx(100.0 - 100.0 / (1.0 + 2.0 / 1.75))
    assert (r.iloc[7:] > 80.0).all()


def test_rsi_flat_prices_is_100_not_nan():
    r = rsi(make_daily_series([50.0] * 10), period=3)
    assert r.iloc[3:].eq(100.0).all()
    assert not np.isinf(r.to_numpy()).any()


def test_rsi_bounds_and_short_input():
    rng = np.random.default_rng(1)
    closes = make_daily_series(100 + rng.standard_normal(200).cumsum())
    r = rsi(closes, period=14).dropna()
    assert ((r >= 0.0) & (r <= 100.0)).all()

    short = rsi(make_daily_series([1.0, 2.0, 3.0]), period=5)
    assert short.isna().all()


def test_bollinger_population_std():
    closes = make_daily_series([10, 10, 10, 10, 7, 13])
    bands = bollinger_bands(closes, period=3, num_std=1.0)

    assert bands.iloc[:2].isna().all().all()
    assert bands["bb_mid"].iloc[2] == 10.0
    assert bands["bb_upper"].iloc[2] == bands["bb_lower"].iloc[2] == 10.0

    # window [10, 10, 7]: mean 9, population std sqrt(2)
    assert bands["bb_mid"].iloc[4] == pytest.approx(9.0)
    assert bands["bb_upper"].iloc[4] == pytest.approx(9.0 + np.sqrt(2.0))
    assert bands["bb_lower"].iloc[4] == pytest.approx(9.0 - np.sqrt(2.0))


def test_bollinger_width_scales_with_num_std():
    closes = make_daily_series([1, 3, 2, 5, 4, 6, 8, 7])
    one = bollinger_bands(closes, period=4, num_std=1.0)
    two = bollinger_bands(closes, period=4, num_std=2.0)
    w1 = (one["bb_upper"] - one["bb_mid"]).dropna()
    w2 = (two["bb_upper"] - two["bb_mid"]).dropna()
    np.testing.assert_allclose(w2.to_numpy(), 2.0 * w1.to_numpy())


def test_warmup_lengths():
    assert rsi_warmup(14) == 15
    assert bollinger_warmup(20) == 20


def test_compute_indicators_frame_does_not_mutate_input(wave_prices):
    before = wave_prices.copy()
    cfg = BacktestConfig(rsi=RsiCfg(period=5), bollinger=BollingerCfg(period=10))
    frame = compute_indicators(wave_prices, cfg)

    assert list(frame.columns) == [
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
    assert frame["ma_20"].iloc[:19].isna().all()
    assert frame["is_outlier"].dtype == bool
    assert frame.index.equals(wave_prices.index)
    assert frame["rsi"].iloc[:5].isna().all()
    assert frame["bb_mid"].iloc[:9].isna().all()
    assert frame["bb_mid"].iloc[9:].notna().all()
    pd.testing.assert_series_equal(wave_prices, before)


def test_invalid_periods_raise():
    closes = make_daily_series([1.0, 2.0, 3.0])
    with pytest.raises(ValueError):
        rsi(closes, period=0)
    with pytest.raises(ValueError):
        bollinger_bands(closes, period=2, num_std=0.0)


def test_rsi_ema_scenario_values(scenario_prices):
    r = rsi(scenario_prices, period=2, smoothing="ema")

    assert r.iloc[:2].isna().all()
    assert list(r.iloc[2:6]) == [0.0, 0.0, 0.0, 0.0]
    # window (-2, +4), alpha = 2/3: newest gain weighs 1/3, older loss 2/3
    assert r.iloc[6] == pytest.approx(50.0)
    assert r.iloc[7] == 100.0


def _ema_rsi_loop(values, period):
    """Newest-first EMA over each trailing window, one bar at a time."""
    alpha = 2.0 / (period + 1.0)
    out = []
    for i in range(period, len(values)):
        deltas = [values[i - k] - values[i - k - 1] for k in range(period)]
        ag = max(deltas[0], 0.0)
        al = max(-deltas[0], 0.0)
        for d in deltas[1:]:
            ag = max(d, 0.0) * alpha + ag * (1.0 - alpha)
            al = max(-d, 0.0) * alpha + al * (1.0 - alpha)
        out.append(100.0 if al == 0.0 else 100.0 - 100.0 / (1.0 + ag / al))
    return out


def test_rsi_ema_matches_bar_by_bar_loop(wave_prices):
    r = rsi(wave_prices, period=14, smoothing="ema")
    expected = _ema_rsi_loop(wave_prices.to_numpy().tolist(), 14)
    assert r.iloc[14:].tolist() == pytest.approx(expected)


def test_moving_average_and_volatility():
    closes = make_daily_series([1.0, 2.0, 3.0, 4.0, 5.0, 6.0])

    ma = moving_average(closes, 5)
    assert ma.iloc[:4].isna().all()
    assert list(ma.iloc[4:]) == [3.0, 4.0]

    vol = volatility(closes, 5)
    assert vol.iloc[:4].isna().all()
    assert vol.iloc[4] == pytest.approx(np.std([1, 2, 3, 4, 5], ddof=1))


def test_outlier_flags_spike():
    closes = make_daily_series([100.0] * 19 + [130.0])
    flags = outlier_flags(closes)

    assert flags.dtype == bool
    assert not flags.iloc[:-1].any()
    # a lone spike in a 20-bar window sits 19/sqrt(20) ~ 4.25 std from the mean
    assert flags.iloc[-1]


def test_market_snapshot(wave_prices):
    snap = market_snapshot(wave_prices)

    assert snap["timestamp"] == wave_prices.index[-1]
    assert snap["price"] == wave_prices.iloc[-1]
    assert snap["rsi"] == pytest.approx(rsi(wave_prices, 14).iloc[-1])
    assert snap["ma_20"] == pytest.approx(wave_prices.iloc[-20:].mean())
    assert snap["volatility"] == pytest.approx(wave_prices.iloc[-20:].std(ddof=1))
    assert isinstance(snap["is_outlier"], bool)


def test_market_snapshot_short_history():
    snap = market_snapshot(make_daily_series([10.0, 11.0, 12.0]))
    assert snap["price"] == 12.0
    assert snap["rsi"] is None
    assert snap["ma_20"] is None
    assert snap["volatility"] is None
