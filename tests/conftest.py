"""
Pytest Fixtures
---------------
Shared resources for testing.
- scenario_prices: the nine-bar dip-and-recovery series used for RSI checks.
- wave_prices: deterministic oscillating daily series long enough for every mode.
- price_csv: wave_prices written as a (timestamp, close) CSV file.
- config_yaml: a small valid YAML config on disk.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from sol_backtester.config import BacktestConfig, RsiCfg, SizingCfg
from tests.utils import make_daily_series


@pytest.fixture
def scenario_prices() -> pd.Series:
    return make_daily_series([100, 95, 90, 85, 80, 78, 82, 90, 95])


@pytest.fixture
def scenario_cfg() -> BacktestConfig:
    """RSI(2), 30/70, no commission, one unit per trade."""
    return BacktestConfig(
        strategy_mode="rsi",
        commission_rate=0.0,
        rsi=RsiCfg(period=2, oversold=30.0, overbought=70.0),
        sizing=SizingCfg(policy="fixed_units", units=1.0),
    )


@pytest.fixture
def wave_prices() -> pd.Series:
    """
    300 daily closes: a 40-bar sine cycle around 100 with mild noise and
    occasional shocks, so RSI and the bands both cross their thresholds.
    """
    n = 300
    i = np.arange(n)
    rng = np.random.default_rng(42)
    close = 100.0 + 20.0 * np.sin(2 * np.pi * i / 40.0) + rng.normal(0.0, 1.0, n)
    shocks = rng.choice(n, size=12, replace=False)
    close[shocks] += rng.choice([-12.0, 12.0], size=12)
    return make_daily_series(close)


@pytest.fixture
def price_csv(tmp_path: Path, wave_prices: pd.Series) -> Path:
    p = tmp_path / "sol_daily.csv"
    pd.DataFrame(
        {"timestamp": wave_prices.index, "close": wave_prices.to_numpy()}
    ).to_csv(p, index=False)
    return p


@pytest.fixture
def config_yaml(tmp_path: Path) -> Path:
    p = tmp_path / "config.yaml"
    p.write_text(
        """
strategy_mode: combined
initial_capital: 10000.0
commission_rate: 0.001
rsi:
  period: 14
  oversold: 30
  overbought: 70
bollinger:
  period: 20
  std_dev: 2.0
sizing:
  policy: fixed_notional
  notional: 500.0
""",
        encoding="utf-8",
    )
    return p
