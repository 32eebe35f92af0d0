# Script to verify the determinism
from __future__ import annotations

import json
import sys
from pathlib import Path

from sol_backtester.cli import main as cli_main


def read_json(p: Path) -> dict:
    return json.loads(p.read_text(encoding="utf-8"))


def main() -> None:
    data_file = sys.argv[1] if len(sys.argv) > 1 else "data/sample/sol_synth.csv"
    base = "determinism_cmp"
    out_dir = Path("outputs") / "compare"

    for run_id in (base + "_a", base + "_b"):
        cli_main(
            [
                "compare",
                "--config",
                "configs/base.yaml",
                "--data",
                data_file,
                "--out-dir",
                str(out_dir),
                "--run-id",
                run_id,
                "--quiet",
            ]
        )

    s1 = read_json(out_dir / (base + "_a") / "summary.json")
    s2 = read_json(out_dir / (base + "_b") / "summary.json")

    if s1 != s2:
        raise SystemExit("FAIL: summary.json differs across identical runs")

    print("PASS: compare determinism verified (all three modes match).")


if __name__ == "__main__":
    main()
