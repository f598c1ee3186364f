"""
Mock verification decisions.

Real deployments plug an identity provider or a registry audit in here. The
mocks approve deterministically (KYC at the requested level, projects at
STANDARD with 95% of the estimated credits) unless the subject is on a deny
list, which exercises the decline path.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

import bittensor as bt

from carbonx.errors import VerificationDeclined
from carbonx.protocol import (
    KYCLevel,
    KYCTask,
    ProjectCategory,
    ProjectSubmission,
    VerificationStatus,
    checksum,
)


@dataclass(frozen=True)
class Verdict:
    # KYCLevel for identity tasks, VerificationStatus for projects.
    achieved: int
    quality_score: int = 0
    quantified_outcome: int = 0
    evidence: Dict[str, Any] = field(default_factory=dict)


DecisionFn = Callable[[Any], Awaitable[Verdict]]


class _MockVerifier:
    def __init__(
        self,
        *,
        delay_s: float = 0.0,
        denylist: Iterable[str] = (),
        clock: Optional[Callable[[], float]] = None,
    ):
        self.delay_s = max(0.0, float(delay_s))
        self.denylist = frozenset(checksum(a) for a in denylist)
        self.clock = clock or time.time

    async def _simulate_work(self) -> None:
        if self.delay_s > 0:
            await asyncio.sleep(self.delay_s)


class MockKYCVerifier(_MockVerifier):
    async def __call__(self, task: KYCTask) -> Verdict:
        level = KYCLevel(task.required_level)
        bt.logging.info(f"[KYC] Verifying user {task.user} at {level.name}")
        await self._simulate_work()

        if task.user in self.denylist:
            raise VerificationDeclined(f"{task.user} is on the deny list")

        evidence = {
            "timestamp": int(self.clock() * 1000),
            "provider": "CarbonX Mock KYC",
            "task_id": task.task_id,
            "level": level.name,
            "user": task.user,
            "verified": True,
            "documents": ["id_verification", "address_proof"],
        }
        bt.logging.info(f"[KYC] Verification complete: APPROVED at {level.name}")
        return Verdict(achieved=int(level), quality_score=100, evidence=evidence)


class MockProjectVerifier(_MockVerifier):
    status = VerificationStatus.STANDARD
    quality_score = 90
    credit_ratio_pct = 95

    async def __call__(self, task: ProjectSubmission) -> Verdict:
        bt.logging.info(
            f"[Project] Verifying '{task.name}' ({ProjectCategory(task.category).name}, "
            f"{task.registry} {task.registry_id}) for {task.owner}"
        )
        await self._simulate_work()

        if task.owner in self.denylist:
            raise VerificationDeclined(f"{task.owner} is on the deny list")

        verified_credits = int(task.estimated_credits) * self.credit_ratio_pct // 100
        evidence = {
            "timestamp": int(self.clock() * 1000),
            "provider": "CarbonX Mock Registry Audit",
            "task_id": task.task_id,
            "project": task.name,
            "registry": task.registry,
            "registry_id": task.registry_id,
            "vintage": task.vintage,
            "estimated_credits": str(task.estimated_credits),
            "verified_credits": str(verified_credits),
            "status": self.status.name,
        }
        bt.logging.info(
            f"[Project] Verification complete: {self.status.name}, score={self.quality_score}, "
            f"credits={verified_credits}"
        )
        return Verdict(
            achieved=int(self.status),
            quality_score=self.quality_score,
            quantified_outcome=verified_credits,
            evidence=evidence,
        )
