"""
Tests for sol_backtester.metrics
--------------------------------
Coverage:
- Win rate and win/loss aggregates (breakeven counts as a loss).
- Sharpe ratio formula and its zero cases.
- Max drawdown from initial capital plus cumulative PnL.
"""

import math

import numpy as np
import pandas as pd
import pytest

from sol_backtester.config import BacktestConfig, MetricsCfg
from sol_backtester.metrics import (
    average_loss,
    average_win,
    compute_metrics,
    largest_loss,
    largest_win,
    max_drawdown,
    sharpe_ratio,
    total_pnl,
    trade_returns,
    win_rate,
)
from sol_backtester.models import EquityPoint
from tests.utils import make_trade


def _curve(cum):
    t0 = pd.Timestamp("2024-01-01", tz="UTC")
    return [EquityPoint(t0 + pd.Timedelta(days=i), float(v)) for i, v in enumerate(cum)]


def test_trade_aggregates():
    trades = [make_trade(10.0, day=0), make_trade(-4.0, day=1), make_trade(-6.0, day=2), make_trade(0.0, day=3)]

    assert win_rate(trades) == 0.25
    assert total_pnl(trades) == pytest.approx(0.0)
    assert average_win(trades) == pytest.approx(10.0)
    assert average_loss(trades) == pytest.approx(-10.0 / 3.0)
    assert largest_win(trades) == pytest.approx(10.0)
    assert largest_loss(trades) == pytest.approx(-6.0)


def test_no_trades_gives_zeros():
    assert win_rate([]) == 0.0
    assert total_pnl([]) == 0.0
    assert average_win([]) == 0.0
    assert average_loss([]) == 0.0
    assert sharpe_ratio([]) == 0.0

    m = compute_metrics([], [], BacktestConfig())
    assert m.total_trades == 0
    assert m.max_drawdown == 0.0
    assert m.sharpe_ratio == 0.0


def test_sharpe_matches_formula():
    r = np.array([0.02, -0.01, 0.03, 0.005, -0.02])
    expected = r.mean() / r.std(ddof=0) * math.sqrt(252.0)
    assert sharpe_ratio(r) == pytest.approx(expected)

    rf = 0.0252
    expected_rf = (r.mean() - rf / 365.0) / r.std(ddof=0) * math.sqrt(365.0)
    assert sharpe_ratio(r, periods_per_year=365.0, risk_free_rate=rf) == pytest.approx(expected_rf)


@pytest.mark.parametrize("returns", [[0.01], [0.01, 0.01, 0.01], [0.1] * 7])
def test_sharpe_degenerate_is_zero(returns):
    assert sharpe_ratio(returns) == 0.0


def test_trade_returns_use_entry_notional():
    trades = [make_trade(5.0, entry_price=50.0, size=2.0), make_trade(-1.0, entry_price=10.0, size=1.0)]
    assert trade_returns(trades).tolist() == pytest.approx([0.05, -0.1])


def test_max_drawdown_from_running_peak():
    # equity: 1000 -> 1100 -> 880 -> 930
    assert max_drawdown(_curve([100.0, -120.0, -70.0]), 1000.0) == pytest.approx(0.2)


def test_first_loss_is_a_drawdown():
    assert max_drawdown(_curve([-50.0]), 1000.0) == pytest.approx(0.05)


def test_max_drawdown_monotonic_and_empty():
    assert max_drawdown(_curve([10.0, 20.0, 20.0, 35.0]), 1000.0) == 0.0
    assert max_drawdown([], 1000.0) == 0.0


def test_compute_metrics_uses_configured_convention():
    trades = [make_trade(v, day=i) for i, v in enumerate([4.0, -2.0, 3.0])]
    curve = _curve(np.cumsum([4.0, -2.0, 3.0]))
    cfg = BacktestConfig(initial_capital=100.0, metrics=MetricsCfg(periods_per_year=12.0))

    m = compute_metrics(trades, curve, cfg)

    assert m.total_trades == 3
    assert m.winning_trades == 2
    assert m.losing_trades == 1
    assert m.win_rate == pytest.approx(2.0 / 3.0)
    assert m.total_pnl == pytest.approx(5.0)
    assert m.sharpe_ratio == pytest.approx(sharpe_ratio(trade_returns(trades), periods_per_year=12.0))
    # peak 104, trough 102
    assert m.max_drawdown == pytest.approx(2.0 / 104.0)
    assert set(m.to_dict()) >= {"win_rate", "sharpe_ratio", "max_drawdown"}
