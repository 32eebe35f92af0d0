"""
Price Fetching
--------------
Alpha Vantage ``DIGITAL_CURRENCY_DAILY`` client. Runs once, before the
engine, and hands over a plain close Series; the engine itself never touches
the network.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Optional

import httpx
import pandas as pd
from dotenv import load_dotenv

from .errors import ConfigError, FetchError

logger = logging.getLogger(__name__)

BASE_URL = "https://www.alphavantage.co/query"
API_KEY_VAR = "ALPHA_VANTAGE_API_KEY"
SERIES_KEY = "Time Series (Digital Currency Daily)"

_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 2.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {429, 502, 503, 504}


def api_key_from_env(env_path: str | None = None) -> str:
    """Reads the API key from the environment (``.env`` is loaded first)."""
    load_dotenv(dotenv_path=env_path)
    key = os.environ.get(API_KEY_VAR)
    if not key:
        raise ConfigError(f"Missing required environment variable: {API_KEY_VAR}")
    return key


def _close_field(row: dict[str, Any], market: str) -> Any:
    for name in (f"4a. close ({market})", "4. close"):
        if name in row:
            return row[name]
    return None


def parse_daily_payload(payload: dict[str, Any], market: str = "USD") -> pd.Series:
    """
    Maps an Alpha Vantage daily payload to a close Series (UTC midnight stamps).

    Raises:
        FetchError: API error / rate-limit / information responses, a missing
            time series, or a row without a parseable close.
    """
    if "Error Message" in payload:
        raise FetchError(f"Alpha Vantage API error: {payload['Error Message']}")

    series = payload.get(SERIES_KEY)
    if series is None:
        for key in ("Note", "Information"):
            if key in payload:
                raise FetchError(f"Alpha Vantage API {key.lower()}: {payload[key]}")
        raise FetchError(
            "Time series not found in response; check the API key, rate limits "
            "and symbol."
        )
    if not isinstance(series, dict):
        raise FetchError("Invalid response format: time series is not an object")

    stamps: list[pd.Timestamp] = []
    closes: list[float] = []
    for day, row in series.items():
        if not isinstance(row, dict):
            raise FetchError(f"Invalid data format for {day}")
        raw = _close_field(row, market)
        if raw is None:
            raise FetchError(f"Close price not found for {day}")
        try:
            closes.append(float(raw))
            stamps.append(pd.Timestamp(day, tz="UTC"))
        except (TypeError, ValueError) as exc:
            raise FetchError(f"Unparseable row for {day}: {exc}") from exc

    out = pd.Series(closes, index=pd.DatetimeIndex(stamps), dtype="float64", name="close")
    out = out[~out.index.duplicated(keep="last")].sort_index()
    return out


class AlphaVantageClient:
    """Synchronous client for daily crypto closes."""

    def __init__(
        self,
        api_key: str,
        *,
        market: str = "USD",
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
        retry_delay: float = _RETRY_BASE_DELAY,
    ) -> None:
        self._api_key = api_key
        self._market = market
        self._client = client or httpx.Client(timeout=timeout)
        self._retry_delay = retry_delay

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "AlphaVantageClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _get(self, params: dict[str, str]) -> dict[str, Any]:
        """GET with exponential-backoff retry on transient failures."""
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            try:
                resp = self._client.get(BASE_URL, params=params)
                resp.raise_for_status()
                try:
                    return resp.json()
                except ValueError as exc:
                    raise FetchError("Alpha Vantage returned a non-JSON body") from exc
            except httpx.HTTPStatusError as exc:
                if exc.response.status_code not in _RETRYABLE_STATUS_CODES:
                    raise FetchError(f"HTTP {exc.response.status_code} from Alpha Vantage") from exc
                last_exc = exc
            except httpx.TransportError as exc:
                last_exc = exc

            if attempt < _MAX_RETRIES - 1:
                delay = self._retry_delay * (2 ** attempt)
                logger.warning(
                    "Alpha Vantage request failed (attempt %d/%d): %s; retrying in %.1fs",
                    attempt + 1,
                    _MAX_RETRIES,
                    last_exc,
                    delay,
                )
                time.sleep(delay)

        raise FetchError(f"Alpha Vantage request failed after {_MAX_RETRIES} attempts") from last_exc

    def fetch_daily(self, symbol: str) -> pd.Series:
        """Full daily close history for *symbol* against the client's market."""
        payload = self._get(
            {
                "function": "DIGITAL_CURRENCY_DAILY",
                "symbol": symbol,
                "market": self._market,
                "apikey": self._api_key,
            }
        )
        series = parse_daily_payload(payload, self._market)
        logger.info("Fetched %d daily closes for %s/%s", len(series), symbol, self._market)
        return series

    def fetch_history(
        self,
        symbol: str,
        start: pd.Timestamp | str,
        end: pd.Timestamp | str,
    ) -> pd.Series:
        """Daily closes for *symbol* within [start, end]."""
        start_ts = as_utc(start)
        end_ts = as_utc(end)
        series = self.fetch_daily(symbol)
        return series.loc[(series.index >= start_ts) & (series.index <= end_ts)]


def as_utc(ts: pd.Timestamp | str) -> pd.Timestamp:
    """Parses *ts*; naive stamps are taken as UTC, aware ones are converted."""
    t = pd.Timestamp(ts)
    return t.tz_localize("UTC") if t.tzinfo is None else t.tz_convert("UTC")
