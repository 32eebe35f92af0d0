"""
Data IO Layer
-------------
Loading, normalization and validation of close-price series.

The loader (CSV/Parquet) is the collaborator that cleans raw files: it sorts,
de-duplicates and localizes timestamps. ``validate_price_series`` is the
engine's input contract: it never repairs anything, it only rejects series
that would produce misleading metrics.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, cast

import numpy as np
import pandas as pd
from pandas.api.types import DatetimeTZDtype

from .errors import INSUFFICIENT_DATA, MALFORMED, DataError
from .indicators import outlier_flags
from .models import PricePoint

logger = logging.getLogger(__name__)

TIME_COLS = ("timestamp", "datetime", "date", "time", "ts_event")
CLOSE_COLS = ("close", "price", "4a. close (usd)", "4. close")


def _pick(columns: Iterable[str], candidates: tuple[str, ...]) -> str | None:
    cols = list(columns)
    for c in candidates:
        if c in cols:
            return c
    return None


def _parse_stamps(values: list[Any], label: str) -> pd.DatetimeIndex:
    idx = pd.DatetimeIndex(pd.to_datetime(values, errors="coerce", utc=True))
    if bool(pd.isna(idx).any()):
        raise DataError(MALFORMED, f"datetime parse failed for {label!r}")
    return idx


def to_price_series(prices: Any) -> pd.Series:
    """
    Converts accepted input shapes to a float close Series indexed by time.

    Accepts a Series, a DataFrame with a close column (indexed by time or
    carrying a timestamp column), or an iterable of PricePoint /
    (timestamp, close) pairs. Other shapes raise DataError("malformed series").
    Order and duplicates are kept as-is; ``validate_price_series`` decides
    whether they are acceptable.
    """
    if isinstance(prices, pd.Series):
        out = prices.astype("float64")
    elif isinstance(prices, pd.DataFrame):
        cols = {str(c).strip().lower(): c for c in prices.columns}
        close_col = _pick(cols.keys(), CLOSE_COLS)
        if close_col is None:
            raise DataError(
                MALFORMED, f"no close column found; got columns={list(prices.columns)}"
            )
        out = prices[cols[close_col]].astype("float64")
        if not isinstance(prices.index, pd.DatetimeIndex):
            time_col = _pick(cols.keys(), TIME_COLS)
            if time_col is None:
                raise DataError(
                    MALFORMED,
                    "price frame needs a DatetimeIndex or a timestamp column; "
                    f"got columns={list(prices.columns)}",
                )
            out.index = _parse_stamps(prices[cols[time_col]].tolist(), time_col)
    else:
        stamps: list[Any] = []
        closes: list[float] = []
        for row in prices:
            if isinstance(row, PricePoint):
                stamps.append(row.timestamp)
                closes.append(float(row.close))
                continue
            try:
                ts, close = row
                closes.append(float(close))
            except (TypeError, ValueError) as exc:
                raise DataError(
                    MALFORMED,
                    f"expected PricePoint or (timestamp, close) pairs, got {row!r}",
                ) from exc
            stamps.append(ts)
        index = _parse_stamps(stamps, "timestamp") if stamps else pd.DatetimeIndex([], tz="UTC")
        out = pd.Series(closes, index=index, dtype="float64")

    out.name = "close"
    return out


def validate_price_series(prices: Any, *, warmup: int = 1) -> pd.Series:
    """
    Enforces the engine's input contract and returns the close Series.

    Raises:
        DataError(kind="insufficient data"): empty, or fewer than *warmup* points.
        DataError(kind="malformed series"): no timestamp index, duplicate or
            decreasing timestamps, non-finite or non-positive closes.
    """
    series = to_price_series(prices)
    n = len(series)

    if n == 0:
        raise DataError(INSUFFICIENT_DATA, "price series is empty")
    if n < warmup:
        raise DataError(
            INSUFFICIENT_DATA,
            f"price series has {n} points; the strategy needs at least {warmup} "
            "to produce a first indicator reading",
        )

    values = series.to_numpy(dtype=float)
    if not np.isfinite(values).all():
        bad = int((~np.isfinite(values)).sum())
        raise DataError(MALFORMED, f"{bad} close value(s) are NaN or infinite")
    if (values <= 0.0).any():
        raise DataError(MALFORMED, "close prices must be strictly positive")

    idx = series.index
    if not isinstance(idx, pd.DatetimeIndex):
        raise DataError(
            MALFORMED, f"price series must be indexed by timestamp, got {type(idx).__name__}"
        )
    if idx.has_duplicates:
        raise DataError(MALFORMED, "duplicate timestamps in price series")
    if not idx.is_monotonic_increasing:
        raise DataError(MALFORMED, "timestamps are not strictly increasing")

    return series


def check_spacing(series: pd.Series) -> int:
    """
    Logs a warning when bar spacing is irregular (gaps are allowed, only reported).
    Returns the number of gaps larger than the modal spacing.
    """
    if len(series) < 3 or not isinstance(series.index, pd.DatetimeIndex):
        return 0

    steps = series.index.to_series().diff().dropna()
    modal = steps.mode().iloc[0]
    gaps = steps[steps > modal]
    if len(gaps):
        first = cast(pd.Timestamp, gaps.index[0])
        logger.warning(
            "Data Integrity Warning: %d gap(s) wider than %s; first at %s",
            len(gaps),
            modal,
            first.isoformat(),
        )
    return int(len(gaps))


def check_outliers(series: pd.Series) -> int:
    """
    Logs a warning for closes far outside their trailing 20-bar range
    (z-score above 4). Outliers are kept, only reported.
    """
    flags = outlier_flags(series)
    count = int(flags.sum())
    if count:
        first = cast(pd.Timestamp, flags.index[flags.to_numpy()][0])
        logger.warning(
            "Data Integrity Warning: %d outlier close(s) (z > 4); first at %s",
            count,
            first.isoformat(),
        )
    return count


def load_price_series(
    path: str | Path,
    *,
    tz: str = "UTC",
    date_from: str | None = None,
    date_to: str | None = None,
) -> pd.Series:
    """Loads a close-price file (CSV or Parquet) into a clean, sorted Series."""
    path = str(path)
    if path.lower().endswith(".parquet"):
        df = pd.read_parquet(path)
    else:
        df = pd.read_csv(path)

    df.columns = [str(c).strip().lower() for c in df.columns]

    if isinstance(df.index, pd.DatetimeIndex):
        idx = df.index
    else:
        dt_col = _pick(df.columns, TIME_COLS)
        if dt_col is None:
            raise DataError(
                MALFORMED,
                f"could not find datetime column in {path!r}; "
                f"got columns={list(df.columns)}",
            )

        s = df[dt_col]
        if isinstance(s.dtype, DatetimeTZDtype):
            idx = pd.DatetimeIndex(s)
        else:
            idx = pd.DatetimeIndex(pd.to_datetime(s, errors="coerce", utc=True))

        if bool(pd.isna(idx).any()):
            raise DataError(MALFORMED, f"datetime parse failed for {dt_col!r} in {path!r}")

        df = df.drop(columns=[dt_col])

    if idx.tz is None:
        idx = idx.tz_localize(tz)
    else:
        idx = idx.tz_convert(tz)
    df.index = idx

    close_col = _pick(df.columns, CLOSE_COLS)
    if close_col is None:
        raise DataError(
            MALFORMED,
            f"missing close column in {path!r}; got columns={list(df.columns)}",
        )

    series = pd.to_numeric(df[close_col], errors="coerce").astype("float64")
    series.name = "close"

    dupes = int(series.index.duplicated(keep="last").sum())
    if dupes:
        logger.warning("Dropping %d duplicate timestamp(s) from %s", dupes, path)
    series = series[~series.index.duplicated(keep="last")].sort_index()

    series = slice_dates(series, date_from, date_to, tz=tz)
    check_spacing(series)
    check_outliers(series)
    logger.info("Loaded %d price points from %s", len(series), path)
    return series


def slice_dates(
    series: pd.Series, date_from: str | None, date_to: str | None, *, tz: str = "UTC"
) -> pd.Series:
    """Slices by calendar date range [date_from, date_to] inclusive."""
    if series.empty or (date_from is None and date_to is None):
        return series

    def _ts(s: str) -> pd.Timestamp:
        ts = pd.Timestamp(s)
        return ts.tz_localize(tz) if ts.tzinfo is None else ts.tz_convert(tz)

    start = _ts(date_from).normalize() if date_from else series.index.min()
    end = (
        _ts(date_to).normalize() + pd.Timedelta(days=1) - pd.Timedelta(nanoseconds=1)
        if date_to
        else series.index.max()
    )
    return series.loc[(series.index >= start) & (series.index <= end)]


def write_price_csv(series: pd.Series, path: str | Path) -> Path:
    """Writes a close Series as a two-column (timestamp, close) CSV."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    frame = pd.DataFrame({"timestamp": series.index, "close": series.to_numpy()})
    frame.to_csv(p, index=False)
    return p

