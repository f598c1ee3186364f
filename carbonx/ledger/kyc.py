from __future__ import annotations

from typing import Optional

import bittensor as bt

from carbonx.errors import (
    AlreadySatisfied,
    InvalidRequirement,
    ResultNotFound,
    UnauthorizedRequester,
)
from carbonx.ledger.queries import kyc_result_valid
from carbonx.ledger.state_machine import TaskStateMachine
from carbonx.ledger.store import LedgerStore
from carbonx.protocol import KYCLevel, KYCResponse, KYCResult, KYCTask, checksum
from carbonx.signing import kyc_response_digest


class KYCTaskManager(TaskStateMachine[KYCTask, KYCResponse, KYCResult]):
    """Identity verification tasks. Results are keyed by user, latest wins."""

    category = "kyc"
    created_event = "KYCTaskCreated"
    responded_event = "KYCTaskResponded"
    expired_event = "KYCTaskExpired"

    def __init__(self, store: LedgerStore, *, validity_s: int):
        super().__init__(store)
        self.validity_s = int(validity_s)

    def create_task(
        self,
        user: str,
        required_level: int,
        request_id: Optional[str] = None,
        *,
        requester: Optional[str] = None,
    ) -> int:
        user = checksum(user)
        requester = checksum(requester) if requester else user

        with self.store.transaction() as position:
            if requester != user and not self.store.is_requester(requester):
                raise UnauthorizedRequester(f"{requester} may not request KYC for {user}")

            try:
                level = KYCLevel(int(required_level))
            except ValueError:
                raise InvalidRequirement(f"unknown KYC level {required_level!r}")
            if level == KYCLevel.NONE:
                raise InvalidRequirement("required level must be above NONE")

            existing = self.store.get_result(self.category, user)
            if kyc_result_valid(existing, level, self.store.clock()):
                raise AlreadySatisfied(f"{user} already holds a valid {KYCLevel(existing.level).name} result")

            task = self._open_task(
                position=position,
                subject=user,
                requester=requester,
                requirement=int(level),
                request_id=request_id,
                build=lambda task_id, rid: KYCTask(
                    task_id=task_id,
                    user=user,
                    required_level=level,
                    task_created_block=position,
                    request_id=rid,
                    requester=requester,
                ),
                required_level=int(level),
            )
            return task.task_id

    def response_digest(self, task: KYCTask, response: KYCResponse) -> bytes:
        return kyc_response_digest(task.task_id, task.user, response, self.store.ledger_address)

    def build_result(self, task: KYCTask, response: KYCResponse, operator: str) -> KYCResult:
        now = self.store.clock()
        return KYCResult(
            task_id=task.task_id,
            level=response.achieved_level,
            verified_at=now,
            expires_at=now + self.validity_s,
            verified_by=operator,
            ipfs_hash=response.ipfs_hash,
            active=True,
        )

    def result_key(self, task: KYCTask) -> object:
        return task.user

    def responded_event_data(self, result: KYCResult) -> dict:
        return {"level": int(result.level), "ipfs_hash": result.ipfs_hash}

    def revoke(self, user: str, reason: str = "") -> KYCResult:
        user = checksum(user)
        with self.store.transaction() as position:
            result = self.store.get_result(self.category, user)
            if result is None:
                raise ResultNotFound(f"{user} has no KYC result")
            result.active = False
            self.store.emit("KYCRevoked", self.category, position, task_id=result.task_id, user=user, reason=reason)
            bt.logging.info(f"[ledger] KYC revoked for {user} ({reason or 'no reason'})")
            return result
