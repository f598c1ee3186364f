"""Per-category plumbing for the shared watch/decide/sign/submit skeleton.

A :class:`TaskCategory` tells the watcher how to turn a ledger task plus a
decision into the exact payload the ledger will hash, and how to ship it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel

from carbonx.operator.decision import DecisionFn, MockKYCVerifier, MockProjectVerifier, Verdict
from carbonx.protocol import (
    KYCLevel,
    KYCResponse,
    KYCTask,
    ProjectResponse,
    ProjectSubmission,
    TaskCategoryName,
    VerificationStatus,
)
from carbonx.signing import kyc_response_digest, project_response_digest


@dataclass(frozen=True)
class TaskCategory:
    name: TaskCategoryName
    decide: DecisionFn
    build_response: Callable[[Any, Verdict, str], BaseModel]
    digest: Callable[[Any, BaseModel, str], bytes]

    def response_body(self, response: BaseModel, operator: str, signature: str) -> Dict[str, Any]:
        body = response.model_dump(mode="json")
        body["operator"] = operator
        body["signature"] = signature
        return body


def _kyc_response(task: KYCTask, verdict: Verdict, proof_ref: str) -> KYCResponse:
    return KYCResponse(achieved_level=KYCLevel(verdict.achieved), ipfs_hash=proof_ref)


def _kyc_digest(task: KYCTask, response: KYCResponse, ledger_address: str) -> bytes:
    return kyc_response_digest(task.task_id, task.user, response, ledger_address)


def _project_response(task: ProjectSubmission, verdict: Verdict, proof_ref: str) -> ProjectResponse:
    return ProjectResponse(
        status=VerificationStatus(verdict.achieved),
        quality_score=verdict.quality_score,
        verified_credits=verdict.quantified_outcome,
        verification_uri=f"ipfs://{proof_ref}",
    )


def _project_digest(task: ProjectSubmission, response: ProjectResponse, ledger_address: str) -> bytes:
    return project_response_digest(task.task_id, task.owner, response, ledger_address)


def kyc_category(decide: Optional[DecisionFn] = None) -> TaskCategory:
    return TaskCategory(
        name="kyc",
        decide=decide or MockKYCVerifier(),
        build_response=_kyc_response,
        digest=_kyc_digest,
    )


def project_category(decide: Optional[DecisionFn] = None) -> TaskCategory:
    return TaskCategory(
        name="project",
        decide=decide or MockProjectVerifier(),
        build_response=_project_response,
        digest=_project_digest,
    )


def build_categories(
    names: Iterable[str],
    *,
    decision_delay_s: float = 0.0,
    denylist: Iterable[str] = (),
) -> List[TaskCategory]:
    deny = tuple(denylist)
    out: List[TaskCategory] = []
    for name in names:
        if name == "kyc":
            out.append(kyc_category(MockKYCVerifier(delay_s=decision_delay_s, denylist=deny)))
        elif name == "project":
            out.append(project_category(MockProjectVerifier(delay_s=decision_delay_s, denylist=deny)))
        else:
            raise ValueError(f"unknown task category {name!r}")
    return out
