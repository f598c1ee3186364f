"""
Run a CarbonX ledger node: the task state machines behind a FastAPI app.

Configuration comes from env/.env (see ``carbonx.ledger.config``); the
``--ledger.host`` and ``--ledger.port`` flags override the bind address.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Allow running as a script without requiring `PYTHONPATH=.`.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import bittensor as bt
import uvicorn

from carbonx.bittensor_config import config as build_config
from carbonx.ledger.app import create_app
from carbonx.ledger.config import load_ledger_env
from carbonx.ledger.node import LedgerNode


def main() -> int:
    cfg = build_config(role="ledger")
    bt.logging(config=cfg)

    env = load_ledger_env()
    host = cfg.ledger.host or env.host
    port = int(cfg.ledger.port or env.port)

    node = LedgerNode.from_config(env)
    app = create_app(node, admin_token=env.admin_token)

    bt.logging.info(
        f"Ledger {node.address} listening on {host}:{port} "
        f"(expiry={env.expiry_blocks} blocks, operators={len(env.operators)}, requesters={len(env.requesters)})"
    )
    if not env.admin_token:
        bt.logging.warning("CARBONX_ADMIN_TOKEN is empty; admin endpoints are disabled")

    uvicorn.run(app, host=host, port=port, log_level="warning")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
