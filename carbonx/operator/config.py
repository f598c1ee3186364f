from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from carbonx.protocol import TASK_CATEGORIES, checksum
from carbonx.utils.env import _env_csv, _env_float, _env_int, _env_opt_int, _env_str


_PRIVATE_KEY_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


@dataclass(frozen=True)
class OperatorEnvConfig:
    private_key: str
    ledger_url: str
    poll_interval_s: float
    max_block_range: int
    task_timeout_s: float
    http_timeout_s: float
    start_position: Optional[int]
    categories: Tuple[str, ...]
    decision_delay_s: float
    denylist: Tuple[str, ...]
    shutdown_grace_s: float


def _die(msg: str) -> None:
    raise SystemExit(f"[carbonx] {msg}")


def load_operator_env() -> OperatorEnvConfig:
    """
    Load operator configuration from env/.env with strict validation.

    OPERATOR_PRIVATE_KEY is required; everything else has a default suited to
    a local ledger node.
    """
    private_key = _env_str("OPERATOR_PRIVATE_KEY", "")
    if not private_key:
        _die("OPERATOR_PRIVATE_KEY is required.")
    if not _PRIVATE_KEY_RE.match(private_key):
        _die("OPERATOR_PRIVATE_KEY must be 32 bytes of hex.")
    if not private_key.startswith("0x"):
        private_key = "0x" + private_key

    ledger_url = _env_str("CARBONX_LEDGER_URL", "http://127.0.0.1:8545")
    if not ledger_url.startswith(("http://", "https://")):
        _die(f"CARBONX_LEDGER_URL must be an http(s) URL. Got: {ledger_url!r}")

    poll_interval_s = _env_float("OPERATOR_POLL_INTERVAL_S", 10.0)
    if poll_interval_s <= 0:
        _die(f"OPERATOR_POLL_INTERVAL_S must be > 0. Got: {poll_interval_s}")

    max_block_range = _env_int("OPERATOR_MAX_BLOCK_RANGE", 100)
    if max_block_range < 1:
        _die(f"OPERATOR_MAX_BLOCK_RANGE must be >= 1. Got: {max_block_range}")

    task_timeout_s = _env_float("OPERATOR_TASK_TIMEOUT_S", 30.0)
    if task_timeout_s <= 0:
        _die(f"OPERATOR_TASK_TIMEOUT_S must be > 0. Got: {task_timeout_s}")

    start_position = _env_opt_int("OPERATOR_START_POSITION")
    if start_position is not None and start_position < 0:
        _die(f"OPERATOR_START_POSITION must be >= 0. Got: {start_position}")

    categories = tuple(c.lower() for c in _env_csv("OPERATOR_CATEGORIES")) or TASK_CATEGORIES
    unknown = [c for c in categories if c not in TASK_CATEGORIES]
    if unknown:
        _die(f"OPERATOR_CATEGORIES has unknown entries {unknown} (expected {', '.join(TASK_CATEGORIES)}).")

    denylist = []
    for raw in _env_csv("OPERATOR_DENYLIST"):
        try:
            denylist.append(checksum(raw))
        except ValueError:
            _die(f"OPERATOR_DENYLIST contains an invalid address: {raw!r}")

    return OperatorEnvConfig(
        private_key=private_key,
        ledger_url=ledger_url.rstrip("/"),
        poll_interval_s=float(poll_interval_s),
        max_block_range=int(max_block_range),
        task_timeout_s=float(task_timeout_s),
        http_timeout_s=max(0.5, _env_float("OPERATOR_HTTP_TIMEOUT_S", 5.0)),
        start_position=start_position,
        categories=tuple(dict.fromkeys(categories)),
        decision_delay_s=max(0.0, _env_float("OPERATOR_DECISION_DELAY_S", 0.0)),
        denylist=tuple(denylist),
        shutdown_grace_s=max(0.0, _env_float("OPERATOR_SHUTDOWN_GRACE_S", 10.0)),
    )
