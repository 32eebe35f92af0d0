"""
Configuration Schemas
---------------------
Defines the frozen dataclasses used to validate and structure the YAML
configuration. A config is built once per run and never mutated; every
invalid parameter combination is rejected in ``__post_init__`` before any
simulation starts.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, is_dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, get_type_hints

import yaml

from .errors import ConfigError
from .indicators import RSI_SMOOTHING
from .validator import validate_keys


class StrategyMode(str, Enum):
    """Which signal source drives the trade simulator."""

    RSI = "rsi"
    BOLLINGER_BANDS = "bollinger_bands"
    COMBINED = "combined"

    @classmethod
    def parse(cls, value: Any) -> "StrategyMode":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_").replace(" ", "_")
        aliases = {"bollinger": "bollinger_bands", "bb": "bollinger_bands"}
        key = aliases.get(key, key)
        try:
            return cls(key)
        except ValueError:
            allowed = [m.value for m in cls]
            raise ConfigError(
                f"Configuration Error: unknown strategy_mode {value!r}; "
                f"allowed: {allowed}"
            ) from None


SIZING_POLICIES = ("fixed_units", "fixed_notional", "fixed_fractional")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_positive_int(name: str, value: Any) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ConfigError(f"Configuration Error: {name} must be an integer > 0, got {value!r}")


def _check_number(name: str, value: Any, *, low: float | None = None,
                  high: float | None = None, low_inclusive: bool = True) -> None:
    if not _is_number(value) or not math.isfinite(value):
        raise ConfigError(f"Configuration Error: {name} must be a finite number, got {value!r}")
    if low is not None:
        too_low = value < low if low_inclusive else value <= low
        if too_low:
            op = ">=" if low_inclusive else ">"
            raise ConfigError(f"Configuration Error: {name} must be {op} {low}, got {value!r}")
    if high is not None and value > high:
        raise ConfigError(f"Configuration Error: {name} must be <= {high}, got {value!r}")


@dataclass(frozen=True)
class RsiCfg:
    """RSI indicator and crossing thresholds."""

    period: int = 14
    oversold: float = 30.0
    overbought: float = 70.0
    smoothing: str = "simple"

    def __post_init__(self) -> None:
        _check_positive_int("rsi.period", self.period)
        _check_number("rsi.oversold", self.oversold, low=0.0, high=100.0)
        _check_number("rsi.overbought", self.overbought, low=0.0, high=100.0)
        if self.oversold >= self.overbought:
            raise ConfigError(
                "Configuration Error: rsi.oversold must be below rsi.overbought "
                f"(got {self.oversold} >= {self.overbought})"
            )
        if self.smoothing not in RSI_SMOOTHING:
            raise ConfigError(
                f"Configuration Error: rsi.smoothing must be one of {RSI_SMOOTHING}, "
                f"got {self.smoothing!r}"
            )


@dataclass(frozen=True)
class BollingerCfg:
    """Bollinger Bands window and band width."""

    period: int = 20
    std_dev: float = 2.0

    def __post_init__(self) -> None:
        _check_positive_int("bollinger.period", self.period)
        _check_number("bollinger.std_dev", self.std_dev, low=0.0, low_inclusive=False)


@dataclass(frozen=True)
class SizingCfg:
    """
    Position sizing policy.

    fixed_units:      buy ``units`` of the asset.
    fixed_notional:   spend ``notional`` quote currency per entry.
    fixed_fractional: spend ``fraction`` of current realized equity per entry.
    """

    policy: str = "fixed_notional"
    units: float = 1.0
    notional: float = 500.0
    fraction: float = 0.05

    def __post_init__(self) -> None:
        if self.policy not in SIZING_POLICIES:
            raise ConfigError(
                f"Configuration Error: sizing.policy must be one of {SIZING_POLICIES}, "
                f"got {self.policy!r}"
            )
        _check_number("sizing.units", self.units, low=0.0, low_inclusive=False)
        _check_number("sizing.notional", self.notional, low=0.0, low_inclusive=False)
        _check_number("sizing.fraction", self.fraction, low=0.0, high=1.0, low_inclusive=False)


@dataclass(frozen=True)
class MetricsCfg:
    """Sharpe annualization convention, shared by every mode in a run."""

    periods_per_year: float = 252.0
    risk_free_rate: float = 0.0

    def __post_init__(self) -> None:
        _check_number("metrics.periods_per_year", self.periods_per_year, low=0.0, low_inclusive=False)
        _check_number("metrics.risk_free_rate", self.risk_free_rate)


@dataclass(frozen=True)
class BacktestConfig:
    """Root configuration object."""

    strategy_mode: StrategyMode = StrategyMode.COMBINED
    symbol: str = "SOL"
    initial_capital: float = 10_000.0
    commission_rate: float = 0.001
    rsi: RsiCfg = field(default_factory=RsiCfg)
    bollinger: BollingerCfg = field(default_factory=BollingerCfg)
    sizing: SizingCfg = field(default_factory=SizingCfg)
    metrics: MetricsCfg = field(default_factory=MetricsCfg)

    def __post_init__(self) -> None:
        object.__setattr__(self, "strategy_mode", StrategyMode.parse(self.strategy_mode))
        _check_number("initial_capital", self.initial_capital, low=0.0, low_inclusive=False)
        _check_number("commission_rate", self.commission_rate, low=0.0)

    def with_mode(self, mode: StrategyMode | str) -> "BacktestConfig":
        """Returns a copy of this config running a different strategy mode."""
        return replace(self, strategy_mode=StrategyMode.parse(mode))


def _build_dc(cls: Any, data: dict[str, Any]) -> Any:
    """Recursively builds a frozen dataclass tree from a validated dictionary."""
    hints = get_type_hints(cls)
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        ftype = hints.get(f.name, f.type)
        if is_dataclass(ftype) and isinstance(value, dict):
            value = _build_dc(ftype, value)
        kwargs[f.name] = value
    try:
        return cls(**kwargs)
    except TypeError as exc:
        raise ConfigError(f"Configuration Error: {exc}") from exc


def config_from_dict(data: dict[str, Any] | None) -> BacktestConfig:
    """Validates keys, then builds the config (fails fast on any bad value)."""
    data = data or {}
    validate_keys(data, BacktestConfig)
    return _build_dc(BacktestConfig, data)


def load_config(path: str | Path) -> BacktestConfig:
    """
    Loads configuration from a YAML file.
    Unknown keys and invalid values raise ConfigError before anything runs.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(p, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return config_from_dict(data)
