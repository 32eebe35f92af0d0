"""
SOL Backtester CLI

Glue layer: config -> prices -> engine -> summary/report outputs.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd

from .config import StrategyMode, load_config
from .data_io import load_price_series, write_price_csv
from .engine import run_all_modes, run_backtest
from .fetch import AlphaVantageClient, api_key_from_env, as_utc
from .indicators import market_snapshot
from .report import format_comparison, format_result, format_status
from .repro import stable_json_dumps
from .run_meta import build_run_meta, write_run_meta

logger = logging.getLogger(__name__)


# -----------------------------
# Helpers
# -----------------------------
def _now_run_id() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def _write_json(path: Path, obj: Any) -> None:
    path.write_text(json.dumps(json.loads(stable_json_dumps(obj)), indent=2), encoding="utf-8")


def _print_compact_json(obj: Any) -> None:
    print(stable_json_dumps(obj))


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


# -----------------------------
# Commands
# -----------------------------
def cmd_backtest(
    config_path: str,
    data_path: str,
    *,
    mode: str | None = None,
    out_dir: str = "outputs/backtest",
    run_id: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    quiet: bool = False,
    hash_data: bool = False,
    argv: list[str] | None = None,
) -> dict[str, Any]:
    cfg = load_config(config_path)
    if mode is not None:
        cfg = cfg.with_mode(mode)

    prices = load_price_series(data_path, date_from=date_from, date_to=date_to)
    result = run_backtest(prices, cfg)

    summary = {"mode": result.mode.value, **result.metrics.to_dict()}

    run_id = run_id or _now_run_id()
    root = Path(out_dir) / run_id
    root.mkdir(parents=True, exist_ok=True)
    _write_json(root / "summary.json", summary)

    meta = build_run_meta(
        cmd="backtest",
        argv=argv or [],
        run_id=run_id,
        outputs_dir=root,
        config_path=config_path,
        config_obj=cfg,
        data_path=data_path,
        hash_data=hash_data,
    )
    meta.update({"date_from": date_from, "date_to": date_to, "mode": result.mode.value})
    write_run_meta(root, meta)

    if not quiet:
        print(format_result(result))
    _print_compact_json({"run_id": run_id, "artifacts_dir": str(root), **summary})
    return summary


def cmd_compare(
    config_path: str,
    data_path: str,
    *,
    out_dir: str = "outputs/compare",
    run_id: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    quiet: bool = False,
    hash_data: bool = False,
    argv: list[str] | None = None,
) -> dict[str, Any]:
    cfg = load_config(config_path)
    prices = load_price_series(data_path, date_from=date_from, date_to=date_to)

    results = run_all_modes(prices, cfg)
    summary = {mode.value: res.metrics.to_dict() for mode, res in results.items()}

    run_id = run_id or _now_run_id()
    root = Path(out_dir) / run_id
    root.mkdir(parents=True, exist_ok=True)
    _write_json(root / "summary.json", summary)

    meta = build_run_meta(
        cmd="compare",
        argv=argv or [],
        run_id=run_id,
        outputs_dir=root,
        config_path=config_path,
        config_obj=cfg,
        data_path=data_path,
        hash_data=hash_data,
    )
    meta.update({"date_from": date_from, "date_to": date_to})
    write_run_meta(root, meta)

    if not quiet:
        combined = results[StrategyMode.COMBINED]
        blocks = [format_result(res) for res in results.values()]
        blocks.append(format_comparison(results[StrategyMode.RSI], combined))
        blocks.append(format_comparison(results[StrategyMode.BOLLINGER_BANDS], combined))
        print("\n\n".join(blocks))

    _print_compact_json({"run_id": run_id, "artifacts_dir": str(root)})
    return summary


def cmd_fetch(
    symbol: str,
    out_path: str,
    *,
    days: int = 180,
    market: str = "USD",
    end: str | None = None,
    env_path: str | None = None,
) -> Path:
    api_key = api_key_from_env(env_path)
    end_ts = as_utc(end) if end else pd.Timestamp.now(tz="UTC").normalize()
    start_ts = end_ts - pd.Timedelta(days=days)

    with AlphaVantageClient(api_key, market=market) as client:
        series = client.fetch_history(symbol, start_ts, end_ts)

    path = write_price_csv(series, out_path)
    logger.info("Wrote %d closes to %s", len(series), path)
    return path


def cmd_status(
    data_path: str | None = None,
    *,
    symbol: str = "SOL",
    market: str = "USD",
    rsi_period: int = 14,
    env_path: str | None = None,
) -> dict[str, Any]:
    """Latest price, RSI, 20-bar MA and volatility from a file or a fresh fetch."""
    if data_path:
        closes = load_price_series(data_path)
    else:
        api_key = api_key_from_env(env_path)
        with AlphaVantageClient(api_key, market=market) as client:
            closes = client.fetch_daily(symbol)

    if closes.empty:
        print("No current market data available")
        return {}

    snapshot = market_snapshot(closes, rsi_period)
    print(format_status(snapshot, symbol))
    return snapshot


def _add_run_args(p: argparse.ArgumentParser, default_out: str) -> None:
    p.add_argument("--config", required=True)
    p.add_argument("--data", required=True)
    p.add_argument("--from", dest="date_from", default=None)
    p.add_argument("--to", dest="date_to", default=None)
    p.add_argument("--out-dir", default=default_out)
    p.add_argument("--run-id", default=None)
    p.add_argument("--quiet", action="store_true", help="Skip the text report.")
    p.add_argument(
        "--hash-data",
        action="store_true",
        help="Compute SHA256 of the price file.",
    )


def main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="SOL strategy backtester")
    p.add_argument("--log-level", default="WARNING")
    sub = p.add_subparsers(dest="cmd", required=True)

    # ---------------- backtest ----------------
    p_bt = sub.add_parser("backtest", help="Run a single strategy mode")
    _add_run_args(p_bt, "outputs/backtest")
    p_bt.add_argument(
        "--mode",
        choices=[m.value for m in StrategyMode],
        default=None,
        help="Override strategy_mode from the config.",
    )

    # ---------------- compare ----------------
    p_cmp = sub.add_parser("compare", help="Run RSI, Bollinger and Combined on one series")
    _add_run_args(p_cmp, "outputs/compare")

    # ---------------- fetch ----------------
    p_f = sub.add_parser("fetch", help="Download daily closes from Alpha Vantage")
    p_f.add_argument("--symbol", default="SOL")
    p_f.add_argument("--market", default="USD")
    p_f.add_argument("--days", type=int, default=180)
    p_f.add_argument("--end", default=None)
    p_f.add_argument("--env-file", default=None)
    p_f.add_argument("--out", required=True)

    # ---------------- status ----------------
    p_s = sub.add_parser("status", help="Print the latest price and indicator readings")
    p_s.add_argument("--data", default=None, help="Price file; fetches from Alpha Vantage if omitted.")
    p_s.add_argument("--symbol", default="SOL")
    p_s.add_argument("--market", default="USD")
    p_s.add_argument("--rsi-period", type=int, default=14)
    p_s.add_argument("--env-file", default=None)

    args = p.parse_args(argv)
    _setup_logging(args.log_level)

    argv_list = list(argv) if argv is not None else sys.argv[1:]

    if args.cmd == "backtest":
        cmd_backtest(
            args.config,
            args.data,
            mode=args.mode,
            out_dir=args.out_dir,
            run_id=args.run_id,
            date_from=args.date_from,
            date_to=args.date_to,
            quiet=bool(args.quiet),
            hash_data=bool(args.hash_data),
            argv=argv_list,
        )
        return

    if args.cmd == "compare":
        cmd_compare(
            args.config,
            args.data,
            out_dir=args.out_dir,
            run_id=args.run_id,
            date_from=args.date_from,
            date_to=args.date_to,
            quiet=bool(args.quiet),
            hash_data=bool(args.hash_data),
            argv=argv_list,
        )
        return

    if args.cmd == "fetch":
        cmd_fetch(
            args.symbol,
            args.out,
            days=int(args.days),
            market=args.market,
            end=args.end,
            env_path=args.env_file,
        )
        return

    if args.cmd == "status":
        cmd_status(
            args.data,
            symbol=args.symbol,
            market=args.market,
            rsi_period=int(args.rsi_period),
            env_path=args.env_file,
        )
        return


if __name__ == "__main__":
    main()
