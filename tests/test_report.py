"""
Tests for sol_backtester.report
-------------------------------
Coverage:
- Per-mode result block.
- Individual vs combined comparison block.
- Current market status block.
"""

import pandas as pd

from sol_backtester.config import BacktestConfig, StrategyMode
from sol_backtester.engine import run_all_modes, run_backtest
from sol_backtester.report import format_comparison, format_result, format_status
from sol_backtester.signals import BOLLINGER_EXIT_RULE, COMBINED_EXIT_RULE


def test_format_result_scenario(scenario_prices, scenario_cfg):
    text = format_result(run_backtest(scenario_prices, scenario_cfg))
    lines = text.splitlines()

    assert lines[0] == "RSI Strategy Results:"
    assert "Total Trades: 1" in lines
    assert "Win Rate: 100.00%" in lines
    assert "Total PnL: $13.00" in lines
    assert "Max Drawdown: 0.00%" in lines
    assert "Forced end-of-data closes: 1" in lines
    assert BOLLINGER_EXIT_RULE not in text


def test_format_result_custom_name(scenario_prices, scenario_cfg):
    text = format_result(run_backtest(scenario_prices, scenario_cfg), name="Dip Buyer")
    assert text.startswith("Dip Buyer Results:")


def test_bollinger_blocks_state_exit_rule(wave_prices):
    results = run_all_modes(wave_prices, BacktestConfig())
    for mode in (StrategyMode.BOLLINGER_BANDS, StrategyMode.COMBINED):
        assert f"Bollinger exit rule: {BOLLINGER_EXIT_RULE}" in format_result(results[mode])
    assert f"Combined exit rule: {COMBINED_EXIT_RULE}" in format_result(
        results[StrategyMode.COMBINED]
    )
    assert "Combined exit rule" not in format_result(results[StrategyMode.BOLLINGER_BANDS])


def test_format_comparison(wave_prices):
    results = run_all_modes(wave_prices, BacktestConfig())
    rsi_res = results[StrategyMode.RSI]
    combined = results[StrategyMode.COMBINED]

    lines = format_comparison(rsi_res, combined).splitlines()

    assert lines[0] == "Strategy Comparison (RSI Strategy vs Combined Strategy):"
    assert lines[1] == (
        f"Trade Count: {rsi_res.metrics.total_trades} vs {combined.metrics.total_trades}"
    )
    assert [ln.split(":")[0] for ln in lines[1:]] == [
        "Trade Count",
        "Win Rate",
        "Total PnL",
        "Sharpe Ratio",
        "Max Drawdown",
    ]


def test_format_status():
    snap = {
        "timestamp": pd.Timestamp("2024-06-30", tz="UTC"),
        "price": 142.123456,
        "rsi": 55.5678,
        "rsi_period": 14,
        "ma_20": 140.5,
        "volatility": 3.21,
        "is_outlier": False,
    }
    lines = format_status(snap).splitlines()

    assert lines[0] == "Current Market Status:"
    assert "Time: 2024-06-30T00:00:00+00:00" in lines
    assert "Symbol: SOL" in lines
    assert "Price: $142.1235" in lines
    assert "RSI (14): 55.57" in lines
    assert "20-day MA: $140.5000" in lines
    assert "Volatility: 3.2100" in lines
    assert not any(ln.startswith("Outlier") for ln in lines)


def test_format_status_skips_warmup_readings():
    snap = {
        "timestamp": pd.Timestamp("2024-06-30", tz="UTC"),
        "price": 10.0,
        "rsi": None,
        "rsi_period": 14,
        "ma_20": None,
        "volatility": None,
        "is_outlier": False,
    }
    assert format_status(snap, "ETH").splitlines()[1:] == [
        "Time: 2024-06-30T00:00:00+00:00",
        "Symbol: ETH",
        "Price: $10.0000",
    ]
