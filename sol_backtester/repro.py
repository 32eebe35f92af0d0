"""
Reproducibility Helpers
-----------------------
Hashing, git versioning and deterministic serialization, so every run's
summary can be tied back to the exact code, config and data it came from.
"""

from __future__ import annotations

import hashlib
import json
import platform
import subprocess
import sys
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, cast

import numpy as np
import pandas as pd


def utc_now_iso() -> str:
    """Return current UTC timestamp in ISO 8601 format."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _json_default(x: Any) -> Any:
    if isinstance(x, Enum):
        return x.value
    if isinstance(x, (pd.Timestamp, datetime)):
        return x.isoformat()
    if isinstance(x, np.generic):
        return x.item()
    return str(x)


def stable_json_dumps(obj: Any) -> str:
    """Stable, sorted JSON string for hashing and comparison."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=_json_default
    )


def sha256_text(text: str) -> str:
    """SHA256 of a UTF-8 string."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def sha256_file(path: str | Path, *, chunk_size: int = 1024 * 1024) -> str:
    """SHA256 of a file, read in chunks."""
    h = hashlib.sha256()
    with Path(path).open("rb") as f:
        while True:
            b = f.read(chunk_size)
            if not b:
                break
            h.update(b)
    return h.hexdigest()


def try_git_sha() -> Optional[str]:
    """Current Git commit SHA, or None outside a work tree."""
    try:
        out = subprocess.check_output(
            ["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL
        )
        return out.decode("utf-8").strip()
    except (OSError, subprocess.CalledProcessError):
        return None


def env_info() -> Dict[str, Any]:
    """Interpreter and numeric-stack versions; results depend on these."""
    return {
        "python": sys.version.split()[0],
        "platform": platform.platform(),
        "numpy": np.__version__,
        "pandas": pd.__version__,
    }


def config_to_dict(cfg: Any) -> Dict[str, Any]:
    """JSON-ready dict of a config dataclass (enums as their values)."""
    if not is_dataclass(cfg):
        raise TypeError("config_to_dict expected a dataclass instance")
    return cast(Dict[str, Any], json.loads(stable_json_dumps(asdict(cast(Any, cfg)))))
