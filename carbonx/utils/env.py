from __future__ import annotations

import os
from typing import List, Optional

from dotenv import load_dotenv

# Load .env once on import so every entrypoint sees the same values.
load_dotenv()


def _env_str(name: str, default: str = "") -> str:
    """Read a string env var, stripping whitespace."""
    return (os.getenv(name, default) or "").strip()


def _env_int(name: str, default: int = 0) -> int:
    v = _env_str(name, str(default))
    try:
        return int(v)
    except ValueError:
        raise SystemExit(f"[carbonx] {name} must be an integer. Got: {v!r}")


def _env_opt_int(name: str) -> Optional[int]:
    """Read an optional int env var; unset or empty means ``None``."""
    if not _env_str(name, ""):
        return None
    return _env_int(name)


def _env_float(name: str, default: float = 0.0) -> float:
    v = _env_str(name, str(default))
    try:
        return float(v)
    except ValueError:
        raise SystemExit(f"[carbonx] {name} must be a number. Got: {v!r}")


def _env_csv(name: str) -> List[str]:
    """Read a comma separated env var into a list of non-empty items."""
    raw = _env_str(name, "")
    if not raw:
        return []
    return [x.strip() for x in raw.split(",") if x.strip()]
