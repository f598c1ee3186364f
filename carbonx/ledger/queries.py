"""Read-only accessors consumed by downstream collaborators (access gates,
token minters). Nothing here mutates ledger state or moves the position."""

from __future__ import annotations

from typing import Optional

from carbonx.errors import TaskNotFound
from carbonx.ledger.store import LedgerStore
from carbonx.protocol import (
    KYCLevel,
    KYCResult,
    KYCTask,
    ProjectResult,
    ProjectSubmission,
    TaskCategoryName,
    checksum,
)


def kyc_result_valid(result: Optional[KYCResult], minimum_level: int, now: int) -> bool:
    if result is None:
        return False
    return bool(result.active and result.expires_at > now and int(result.level) >= int(minimum_level))


class ResultQueries:
    def __init__(self, store: LedgerStore):
        self.store = store

    def is_operator(self, address: str) -> bool:
        return self.store.is_operator(address)

    def get_task(self, category: TaskCategoryName, task_id: int):
        task = self.store.get_task(category, task_id)
        if task is None:
            raise TaskNotFound(f"{category} task {task_id} does not exist")
        return task

    def latest_task_num(self, category: TaskCategoryName) -> int:
        return self.store.latest_task_id(category)

    # -- identity ----------------------------------------------------------

    def get_result(self, subject: str) -> Optional[KYCResult]:
        return self.store.get_result("kyc", checksum(subject))  # type: ignore[return-value]

    def has_valid(self, subject: str, minimum_level: int) -> bool:
        return kyc_result_valid(self.get_result(subject), minimum_level, self.store.clock())

    def current_level(self, subject: str) -> KYCLevel:
        """Achieved level, or NONE when the result is missing, revoked or stale."""
        result = self.get_result(subject)
        if not kyc_result_valid(result, KYCLevel.NONE, self.store.clock()):
            return KYCLevel.NONE
        return KYCLevel(result.level)

    def get_kyc_task(self, task_id: int) -> KYCTask:
        return self.get_task("kyc", task_id)

    # -- projects ----------------------------------------------------------

    def get_submission(self, task_id: int) -> ProjectSubmission:
        return self.get_task("project", task_id)

    def get_verification_result(self, task_id: int) -> Optional[ProjectResult]:
        return self.store.get_result("project", int(task_id))  # type: ignore[return-value]

    def can_mint_tokens(self, task_id: int) -> bool:
        result = self.get_verification_result(task_id)
        return bool(result is not None and result.can_mint)
