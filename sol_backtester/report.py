"""
Report Formatting
-----------------
Turns engine results and market snapshots into human-readable text.
Read-only consumer; nothing here feeds back into the engine.
"""

from __future__ import annotations

from typing import Any

from .config import StrategyMode
from .engine import BacktestResult
from .signals import BOLLINGER_EXIT_RULE, COMBINED_EXIT_RULE

MODE_TITLES = {
    StrategyMode.RSI: "RSI Strategy",
    StrategyMode.BOLLINGER_BANDS: "Bollinger Bands Strategy",
    StrategyMode.COMBINED: "Combined Strategy",
}


def title_for(result: BacktestResult) -> str:
    return MODE_TITLES.get(result.mode, result.mode.value)


def format_result(result: BacktestResult, name: str | None = None) -> str:
    m = result.metrics
    lines = [
        f"{name or title_for(result)} Results:",
        f"Total Trades: {m.total_trades}",
        f"Win Rate: {m.win_rate * 100.0:.2f}%",
        f"Total PnL: ${m.total_pnl:.2f}",
        f"Sharpe Ratio: {m.sharpe_ratio:.2f}",
        f"Max Drawdown: {m.max_drawdown * 100.0:.2f}%",
        f"Average Win: ${m.average_win:.2f}",
        f"Average Loss: ${m.average_loss:.2f}",
        f"Largest Win: ${m.largest_win:.2f}",
        f"Largest Loss: ${m.largest_loss:.2f}",
    ]
    if result.mode is not StrategyMode.RSI:
        lines.append(f"Bollinger exit rule: {BOLLINGER_EXIT_RULE}")
    if result.mode is StrategyMode.COMBINED:
        lines.append(f"Combined exit rule: {COMBINED_EXIT_RULE}")
    forced = sum(1 for t in result.trades if t.exit_reason == "end_of_data")
    if forced:
        lines.append(f"Forced end-of-data closes: {forced}")
    return "\n".join(lines)


def format_comparison(individual: BacktestResult, combined: BacktestResult) -> str:
    """Side-by-side headline metrics, individual first."""
    a = individual.metrics
    b = combined.metrics
    return "\n".join(
        [
            f"Strategy Comparison ({title_for(individual)} vs {title_for(combined)}):",
            f"Trade Count: {a.total_trades} vs {b.total_trades}",
            f"Win Rate: {a.win_rate * 100.0:.2f}% vs {b.win_rate * 100.0:.2f}%",
            f"Total PnL: ${a.total_pnl:.2f} vs ${b.total_pnl:.2f}",
            f"Sharpe Ratio: {a.sharpe_ratio:.2f} vs {b.sharpe_ratio:.2f}",
            f"Max Drawdown: {a.max_drawdown * 100.0:.2f}% vs {b.max_drawdown * 100.0:.2f}%",
        ]
    )


def format_status(snapshot: dict[str, Any], symbol: str = "SOL") -> str:
    """Current-market block; readings still in warm-up are left out."""
    ts = snapshot["timestamp"]
    lines = [
        "Current Market Status:",
        f"Time: {ts.isoformat() if hasattr(ts, 'isoformat') else ts}",
        f"Symbol: {symbol}",
        f"Price: ${snapshot['price']:.4f}",
    ]
    if snapshot.get("rsi") is not None:
        lines.append(f"RSI ({snapshot['rsi_period']}): {snapshot['rsi']:.2f}")
    if snapshot.get("ma_20") is not None:
        lines.append(f"20-day MA: ${snapshot['ma_20']:.4f}")
    if snapshot.get("volatility") is not None:
        lines.append(f"Volatility: {snapshot['volatility']:.4f}")
    if snapshot.get("is_outlier"):
        lines.append("Outlier: latest close is more than 4 std from its 20-bar mean")
    return "\n".join(lines)
