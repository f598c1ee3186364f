"""Generic task lifecycle shared by every task category.

A category supplies its requirement/result encoding through a handful of
hooks; creation bookkeeping and the response validation sequence live here
so both categories enforce the same rules in the same order:

    PENDING --respond(valid)---> COMPLETED
    PENDING --respond(expired)-> EXPIRED      (persisted, call still fails)
"""

from __future__ import annotations

from typing import Any, Callable, ClassVar, Generic, Optional, TypeVar

import bittensor as bt
from eth_abi.exceptions import EncodingError
from pydantic import BaseModel

from carbonx.errors import (
    DuplicateRequest,
    InvalidSignature,
    NotOperator,
    TaskExpired,
    TaskNotFound,
    TaskNotPending,
)
from carbonx.ledger.store import LedgerStore
from carbonx.protocol import TaskCategoryName, TaskStatus, checksum
from carbonx.signing import packed_keccak, verify_signer


TaskT = TypeVar("TaskT", bound=BaseModel)
ResponseT = TypeVar("ResponseT", bound=BaseModel)
ResultT = TypeVar("ResultT", bound=BaseModel)


def derive_request_id(subject: str, requirement: int, position: int) -> str:
    digest = packed_keccak(("address", "uint256", "uint256"), [checksum(subject), int(requirement), int(position)])
    return "0x" + digest.hex()


class TaskStateMachine(Generic[TaskT, ResponseT, ResultT]):
    category: ClassVar[TaskCategoryName]
    created_event: ClassVar[str]
    responded_event: ClassVar[str]
    expired_event: ClassVar[str]

    def __init__(self, store: LedgerStore):
        self.store = store

    # -- category hooks ----------------------------------------------------

    def response_digest(self, task: TaskT, response: ResponseT) -> bytes:
        raise NotImplementedError

    def build_result(self, task: TaskT, response: ResponseT, operator: str) -> ResultT:
        raise NotImplementedError

    def result_key(self, task: TaskT) -> object:
        raise NotImplementedError

    def responded_event_data(self, result: ResultT) -> dict:
        return {}

    # -- reads -------------------------------------------------------------

    def get_task(self, task_id: int) -> TaskT:
        task = self.store.get_task(self.category, task_id)
        if task is None:
            raise TaskNotFound(f"{self.category} task {task_id} does not exist")
        return task  # type: ignore[return-value]

    def latest_task_num(self) -> int:
        return self.store.latest_task_id(self.category)

    # -- writes ------------------------------------------------------------

    def _open_task(
        self,
        *,
        position: int,
        subject: str,
        requester: str,
        requirement: int,
        request_id: Optional[str],
        build: Callable[[int, str], TaskT],
        **event_data: Any,
    ) -> TaskT:
        """Allocate the next id, store the task PENDING and publish creation.

        Must be called inside ``store.transaction()``.
        """
        rid = request_id or derive_request_id(subject, requirement, position)
        if self.store.request_id_used(self.category, requester, rid):
            raise DuplicateRequest(f"request {rid} from {requester} was already submitted")

        # Build first; a rejected record must not claim a request id or task id.
        task_id = self.store.latest_task_id(self.category) + 1
        task = build(task_id, rid)

        self.store.claim_request_id(self.category, requester, rid)
        self.store.next_task_id(self.category)
        self.store.put_task(self.category, task_id, task)
        self.store.emit(
            self.created_event,
            self.category,
            position,
            task_id=task_id,
            subject=subject,
            request_id=rid,
            **event_data,
        )
        bt.logging.info(f"[ledger] {self.created_event} task={task_id} subject={subject} block={position}")
        return task

    def respond_to_task(self, task_id: int, operator: str, response: ResponseT, signature: str) -> ResultT:
        with self.store.transaction() as position:
            task = self.get_task(task_id)

            if task.status != TaskStatus.PENDING:
                raise TaskNotPending(
                    f"{self.category} task {task_id} is {TaskStatus(task.status).name}, not PENDING"
                )

            age = position - task.created_at
            if age > self.store.expiry_blocks:
                task.status = TaskStatus.EXPIRED
                self.store.emit(self.expired_event, self.category, position, task_id=int(task_id), age=age)
                bt.logging.info(f"[ledger] {self.category} task {task_id} expired (age={age} blocks)")
                raise TaskExpired(
                    f"{self.category} task {task_id} is {age} blocks old (limit {self.store.expiry_blocks})"
                )

            try:
                digest = self.response_digest(task, response)
            except EncodingError as exc:
                raise InvalidSignature(f"response cannot be encoded for signing: {exc}") from exc
            verify_signer(digest, signature, operator)

            operator = checksum(operator)
            if not self.store.is_operator(operator):
                raise NotOperator(f"{operator} is not a registered operator")

            task.status = TaskStatus.COMPLETED
            result = self.build_result(task, response, operator)
            self.store.put_result(self.category, self.result_key(task), result)
            self.store.emit(
                self.responded_event,
                self.category,
                position,
                task_id=int(task_id),
                operator=operator,
                **self.responded_event_data(result),
            )
            bt.logging.info(f"[ledger] {self.responded_event} task={task_id} operator={operator} block={position}")
            return result
