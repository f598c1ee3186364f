"""
Manually answer one pending task with the mock verification decision.

    python scripts/respond_to_task.py kyc 3
    python scripts/respond_to_task.py project 1

Useful when no operator service is running. Signs with OPERATOR_PRIVATE_KEY;
the key's address must be a registered operator.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Allow running as a script without requiring `PYTHONPATH=.`.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import argparse
import asyncio

from carbonx.client import LedgerClient
from carbonx.errors import LedgerError, VerificationDeclined
from carbonx.operator.categories import build_categories
from carbonx.operator.proofs import MockProofStore
from carbonx.protocol import TASK_CATEGORIES, TaskStatus
from carbonx.signing import OperatorSigner
from carbonx.utils.env import _env_str


async def respond(ledger: LedgerClient, signer: OperatorSigner, kind: str, task_id: int) -> int:
    category = build_categories([kind])[0]

    task = ledger.get_task(kind, task_id)
    if task.status != TaskStatus.PENDING:
        print(f"[respond] {kind} task {task_id} is {TaskStatus(task.status).name}; nothing to do")
        return 1
    if not ledger.is_operator(signer.address):
        print(f"[respond] warning: {signer.address} is not a registered operator")

    try:
        verdict = await category.decide(task)
    except VerificationDeclined as exc:
        print(f"[respond] declined: {exc}")
        return 1

    proof_ref = MockProofStore().upload(verdict.evidence)
    response = category.build_response(task, verdict, proof_ref)
    digest = category.digest(task, response, ledger.ledger_address())
    body = category.response_body(response, signer.address, signer.sign(digest))

    result = ledger.respond(kind, task_id, body)
    print(f"[respond] {kind} task {task_id} completed: {result}")
    return 0


def main() -> int:
    p = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    p.add_argument("kind", choices=TASK_CATEGORIES)
    p.add_argument("task_id", type=int)
    p.add_argument("--ledger-url", default=_env_str("CARBONX_LEDGER_URL", "http://127.0.0.1:8545"))
    args = p.parse_args()

    private_key = _env_str("OPERATOR_PRIVATE_KEY", "")
    if not private_key:
        print("Missing OPERATOR_PRIVATE_KEY")
        return 2

    ledger = LedgerClient(args.ledger_url)
    try:
        return asyncio.run(respond(ledger, OperatorSigner(private_key), args.kind, args.task_id))
    except LedgerError as exc:
        print(f"[respond] rejected by ledger: {exc.kind}: {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
