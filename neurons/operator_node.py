"""
Run a CarbonX operator: watch the ledger, verify new tasks, sign and respond.

SIGINT/SIGTERM stop the watchers; submissions already in flight get
OPERATOR_SHUTDOWN_GRACE_S seconds to settle before the process exits.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Allow running as a script without requiring `PYTHONPATH=.`.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import asyncio
import dataclasses
import signal

import bittensor as bt

from carbonx.bittensor_config import config as build_config
from carbonx.client import LedgerClient
from carbonx.operator.categories import build_categories
from carbonx.operator.config import OperatorEnvConfig, load_operator_env
from carbonx.operator.watcher import Operator
from carbonx.signing import OperatorSigner


def _apply_overrides(env: OperatorEnvConfig, cfg) -> OperatorEnvConfig:
    overrides = {}
    if cfg.ledger.url:
        overrides["ledger_url"] = cfg.ledger.url.rstrip("/")
    if cfg.operator.categories:
        overrides["categories"] = tuple(dict.fromkeys(c.lower() for c in cfg.operator.categories))
    if cfg.operator.start_position is not None:
        overrides["start_position"] = int(cfg.operator.start_position)
    if cfg.operator.poll_interval_s:
        overrides["poll_interval_s"] = float(cfg.operator.poll_interval_s)
    return dataclasses.replace(env, **overrides) if overrides else env


async def run(env: OperatorEnvConfig) -> int:
    signer = OperatorSigner(env.private_key)
    ledger = LedgerClient(env.ledger_url, timeout_s=env.http_timeout_s)
    try:
        categories = build_categories(
            env.categories,
            decision_delay_s=env.decision_delay_s,
            denylist=env.denylist,
        )
    except ValueError as exc:
        raise SystemExit(f"[carbonx] {exc}")

    operator = Operator(
        ledger,
        signer,
        categories,
        poll_interval_s=env.poll_interval_s,
        max_block_range=env.max_block_range,
        task_timeout_s=env.task_timeout_s,
        start_position=env.start_position,
        shutdown_grace_s=env.shutdown_grace_s,
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, operator.stop)
        except NotImplementedError:
            # Windows event loops have no signal handler support.
            pass

    await operator.run()

    bt.logging.info(f"Operator outcomes: {dict(operator.counts)}")
    return 0


def main() -> int:
    cfg = build_config(role="operator")
    bt.logging(config=cfg)
    env = _apply_overrides(load_operator_env(), cfg)
    return asyncio.run(run(env))


if __name__ == "__main__":
    raise SystemExit(main())
