"""
Error Taxonomy
--------------
Typed failures surfaced to callers. Input and configuration problems are
always raised; numeric edge cases inside the engine are mapped to defined
values instead (see metrics/indicators).
"""

from __future__ import annotations

INSUFFICIENT_DATA = "insufficient data"
MALFORMED = "malformed series"


class BacktestError(Exception):
    """Base class for all backtester errors."""


class DataError(BacktestError, ValueError):
    """The price series cannot support a meaningful backtest."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(f"{kind}: {message}")
        self.kind = kind


class ConfigError(BacktestError, ValueError):
    """Invalid parameter or parameter combination."""


class FetchError(BacktestError):
    """The price provider returned an error or an unusable payload."""
