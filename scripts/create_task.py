"""
Create a KYC or project verification task on a running ledger node.

    python scripts/create_task.py kyc --level 2
    python scripts/create_task.py project --name "Mangrove Restoration" --credits 50000

The task is signed with REQUESTER_PRIVATE_KEY (falls back to
OPERATOR_PRIVATE_KEY for local demos). For KYC the signer requests
verification of itself unless ``--user`` names someone else, which requires
the signer to be an authorized requester.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Allow running as a script without requiring `PYTHONPATH=.`.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import argparse
import secrets

from carbonx.client import LedgerClient
from carbonx.errors import LedgerError
from carbonx.protocol import KYCLevel, ProjectCategory
from carbonx.signing import OperatorSigner, kyc_request_digest, project_request_digest
from carbonx.utils.env import _env_str


def _parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    p.add_argument("--ledger-url", default=_env_str("CARBONX_LEDGER_URL", "http://127.0.0.1:8545"))
    sub = p.add_subparsers(dest="kind", required=True)

    kyc = sub.add_parser("kyc", help="request identity verification")
    kyc.add_argument("--level", type=int, default=int(KYCLevel.INTERMEDIATE), help="required KYC level (1-4)")
    kyc.add_argument("--user", default=None, help="subject address (defaults to the signer)")

    project = sub.add_parser("project", help="submit a carbon project for verification")
    project.add_argument("--name", required=True)
    project.add_argument("--credits", type=int, required=True, help="estimated credits")
    project.add_argument("--category", choices=[c.name for c in ProjectCategory], default="FOREST")
    project.add_argument("--methodology", default="VM0007")
    project.add_argument("--registry", default="Verra")
    project.add_argument("--registry-id", default="")
    project.add_argument("--location", default="")
    project.add_argument("--vintage", type=int, default=2024)
    project.add_argument("--documentation-uri", default="")
    return p


def main() -> int:
    args = _parser().parse_args()

    private_key = _env_str("REQUESTER_PRIVATE_KEY", "") or _env_str("OPERATOR_PRIVATE_KEY", "")
    if not private_key:
        print("Missing REQUESTER_PRIVATE_KEY (or OPERATOR_PRIVATE_KEY)")
        return 2

    signer = OperatorSigner(private_key)
    ledger = LedgerClient(args.ledger_url)
    request_id = "0x" + secrets.token_hex(32)

    try:
        ledger_address = ledger.ledger_address()
        if args.kind == "kyc":
            user = args.user or signer.address
            digest = kyc_request_digest(signer.address, user, args.level, request_id, ledger_address)
            created = ledger.create_kyc_task(
                {
                    "user": user,
                    "required_level": args.level,
                    "request_id": request_id,
                    "requester": signer.address,
                    "signature": signer.sign(digest),
                }
            )
        else:
            digest = project_request_digest(
                signer.address, args.name, args.registry_id, args.credits, request_id, ledger_address
            )
            created = ledger.submit_project(
                {
                    "owner": signer.address,
                    "name": args.name,
                    "methodology": args.methodology,
                    "registry": args.registry,
                    "registry_id": args.registry_id,
                    "location": args.location,
                    "category": int(ProjectCategory[args.category]),
                    "vintage": args.vintage,
                    "estimated_credits": args.credits,
                    "documentation_uri": args.documentation_uri,
                    "request_id": request_id,
                    "signature": signer.sign(digest),
                }
            )
    except LedgerError as exc:
        print(f"[task] rejected by ledger: {exc.kind}: {exc}")
        return 1

    print(f"[task] {created['category']} task {created['task_id']} created at block {created['position']}")
    print(f"[task] request id {created['request_id']}")
    print("[task] a running operator should pick this up and respond.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
