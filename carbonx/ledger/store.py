from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from pydantic import BaseModel

from carbonx.protocol import LedgerEvent, TASK_CATEGORIES, TaskCategoryName, checksum


Clock = Callable[[], int]


def _wall_clock() -> int:
    return int(time.time())


class LedgerStore:
    """
    Authoritative single-writer state for the attestation ledger.

    Every submitted transaction runs inside :meth:`transaction`, which holds
    the writer lock and includes the call in a fresh block (the position is
    bumped whether the call succeeds or fails, like an auto-mining dev chain).
    Reads never move the position.
    """

    def __init__(
        self,
        *,
        ledger_address: str,
        expiry_blocks: int,
        start_position: int = 0,
        clock: Optional[Clock] = None,
    ):
        self.ledger_address = checksum(ledger_address)
        self.expiry_blocks = int(expiry_blocks)
        self.clock: Clock = clock or _wall_clock

        self._lock = threading.RLock()
        self._position = int(start_position)
        self._events: List[LedgerEvent] = []
        self._operators: Set[str] = set()
        self._requesters: Set[str] = set()

        self._tasks: Dict[str, Dict[int, BaseModel]] = {c: {} for c in TASK_CATEGORIES}
        self._latest_task: Dict[str, int] = {c: 0 for c in TASK_CATEGORIES}
        self._request_ids: Dict[str, Set[Tuple[str, str]]] = {c: set() for c in TASK_CATEGORIES}
        # KYC results are keyed by subject address, project results by task id.
        self._results: Dict[str, Dict[object, BaseModel]] = {c: {} for c in TASK_CATEGORIES}

    # -- positions ---------------------------------------------------------

    @property
    def position(self) -> int:
        return self._position

    @contextmanager
    def transaction(self) -> Iterator[int]:
        """Serialize one state transition and yield the block it lands in."""
        with self._lock:
            self._position += 1
            yield self._position

    def mine(self, blocks: int = 1) -> int:
        with self._lock:
            self._position += max(0, int(blocks))
            return self._position

    # -- events ------------------------------------------------------------

    def emit(
        self, name: str, category: TaskCategoryName, position: int, /, *, task_id: Optional[int] = None, **data
    ) -> LedgerEvent:
        ev = LedgerEvent(name=name, category=category, task_id=task_id, position=position, data=data)
        self._events.append(ev)
        return ev

    def events(
        self,
        *,
        category: Optional[str] = None,
        name: Optional[str] = None,
        from_position: int = 0,
        to_position: Optional[int] = None,
    ) -> List[LedgerEvent]:
        """Events with ``from_position <= position <= to_position``, in log order."""
        hi = self._position if to_position is None else int(to_position)
        lo = int(from_position)
        with self._lock:
            snapshot = list(self._events)
        return [
            ev
            for ev in snapshot
            if lo <= ev.position <= hi
            and (category is None or ev.category == category)
            and (name is None or ev.name == name)
        ]

    # -- tasks -------------------------------------------------------------

    def next_task_id(self, category: TaskCategoryName) -> int:
        self._latest_task[category] += 1
        return self._latest_task[category]

    def latest_task_id(self, category: TaskCategoryName) -> int:
        return self._latest_task[category]

    def put_task(self, category: TaskCategoryName, task_id: int, task: BaseModel) -> None:
        self._tasks[category][int(task_id)] = task

    def get_task(self, category: TaskCategoryName, task_id: int) -> Optional[BaseModel]:
        return self._tasks[category].get(int(task_id))

    def request_id_used(self, category: TaskCategoryName, requester: str, request_id: str) -> bool:
        return (checksum(requester), request_id.lower()) in self._request_ids[category]

    def claim_request_id(self, category: TaskCategoryName, requester: str, request_id: str) -> bool:
        """Record ``(requester, request_id)``; False when it was already used."""
        if self.request_id_used(category, requester, request_id):
            return False
        self._request_ids[category].add((checksum(requester), request_id.lower()))
        return True

    # -- results -----------------------------------------------------------

    def put_result(self, category: TaskCategoryName, key: object, result: BaseModel) -> None:
        self._results[category][key] = result

    def get_result(self, category: TaskCategoryName, key: object) -> Optional[BaseModel]:
        return self._results[category].get(key)

    # -- registries --------------------------------------------------------

    def is_operator(self, address: str) -> bool:
        try:
            return checksum(address) in self._operators
        except ValueError:
            return False

    def set_operator(self, address: str, enabled: bool) -> None:
        with self._lock:
            if enabled:
                self._operators.add(checksum(address))
            else:
                self._operators.discard(checksum(address))

    def is_requester(self, address: str) -> bool:
        try:
            return checksum(address) in self._requesters
        except ValueError:
            return False

    def set_requester(self, address: str, enabled: bool) -> None:
        with self._lock:
            if enabled:
                self._requesters.add(checksum(address))
            else:
                self._requesters.discard(checksum(address))

    def set_expiry_blocks(self, blocks: int) -> None:
        with self._lock:
            self.expiry_blocks = int(blocks)
