from __future__ import annotations

from typing import Optional

from carbonx.errors import InvalidRequirement
from carbonx.ledger.state_machine import TaskStateMachine
from carbonx.protocol import (
    MINTABLE_STATUSES,
    UINT256_MAX,
    ProjectCategory,
    ProjectResponse,
    ProjectResult,
    ProjectSubmission,
    VerificationStatus,
    checksum,
)
from carbonx.signing import project_response_digest


class ProjectVerificationManager(TaskStateMachine[ProjectSubmission, ProjectResponse, ProjectResult]):
    """Carbon-credit project verification. One result per task."""

    category = "project"
    created_event = "ProjectSubmitted"
    responded_event = "ProjectVerified"
    expired_event = "ProjectTaskExpired"

    def submit_project(
        self,
        owner: str,
        *,
        name: str,
        estimated_credits: int,
        category: int = ProjectCategory.FOREST,
        methodology: str = "",
        registry: str = "",
        registry_id: str = "",
        location: str = "",
        vintage: int = 0,
        documentation_uri: str = "",
        request_id: Optional[str] = None,
    ) -> int:
        owner = checksum(owner)

        with self.store.transaction() as position:
            if not (name or "").strip():
                raise InvalidRequirement("project name is required")
            if not 0 < int(estimated_credits) <= UINT256_MAX:
                raise InvalidRequirement("estimated credits must be positive and fit in uint256")
            try:
                project_category = ProjectCategory(int(category))
            except ValueError:
                raise InvalidRequirement(f"unknown project category {category!r}")

            task = self._open_task(
                position=position,
                subject=owner,
                requester=owner,
                requirement=int(estimated_credits),
                request_id=request_id,
                build=lambda task_id, rid: ProjectSubmission(
                    task_id=task_id,
                    owner=owner,
                    name=name.strip(),
                    methodology=methodology,
                    registry=registry,
                    registry_id=registry_id,
                    location=location,
                    category=project_category,
                    vintage=int(vintage),
                    estimated_credits=int(estimated_credits),
                    documentation_uri=documentation_uri,
                    submitted_block=position,
                    request_id=rid,
                ),
                project_name=name.strip(),
                project_category=int(project_category),
                vintage=int(vintage),
                registry_id=registry_id,
            )
            return task.task_id

    def response_digest(self, task: ProjectSubmission, response: ProjectResponse) -> bytes:
        return project_response_digest(task.task_id, task.owner, response, self.store.ledger_address)

    def build_result(self, task: ProjectSubmission, response: ProjectResponse, operator: str) -> ProjectResult:
        status = VerificationStatus(response.status)
        return ProjectResult(
            task_id=task.task_id,
            status=status,
            quality_score=response.quality_score,
            verified_credits=response.verified_credits,
            verified_at=self.store.clock(),
            verified_by=operator,
            verification_uri=response.verification_uri,
            can_mint=status in MINTABLE_STATUSES,
        )

    def result_key(self, task: ProjectSubmission) -> object:
        return task.task_id

    def responded_event_data(self, result: ProjectResult) -> dict:
        return {
            "status": int(result.status),
            "quality_score": result.quality_score,
            "verified_credits": str(result.verified_credits),
        }
