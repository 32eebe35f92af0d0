"""
SOL Backtester
--------------
A batch backtesting engine for technical-analysis strategies.
Evaluates RSI, Bollinger Bands and Combined (confirmation) signals on a single
price series and reduces the simulated trades to standard performance metrics.
"""

from .config import BacktestConfig, StrategyMode, load_config
from .engine import BacktestResult, run_all_modes, run_backtest
from .errors import BacktestError, ConfigError, DataError, FetchError

__all__ = [
    "BacktestConfig",
    "BacktestError",
    "BacktestResult",
    "ConfigError",
    "DataError",
    "FetchError",
    "StrategyMode",
    "load_config",
    "run_all_modes",
    "run_backtest",
]
