from __future__ import annotations

import asyncio
import traceback
from collections import Counter, deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Iterable, List, Literal, Optional, Set, Tuple

import bittensor as bt

from carbonx.client import LedgerClient
from carbonx.errors import LedgerError, ProofStorageError, VerificationDeclined
from carbonx.operator.categories import TaskCategory
from carbonx.operator.proofs import MockProofStore
from carbonx.protocol import TaskStatus
from carbonx.signing import OperatorSigner


OutcomeStatus = Literal["submitted", "declined", "skipped", "failed", "incomplete"]


@dataclass(frozen=True)
class TaskOutcome:
    category: str
    task_id: int
    status: OutcomeStatus
    detail: str = ""


class ProcessedTaskMemory:
    """Tasks this process has already picked up. Lost on restart."""

    def __init__(self) -> None:
        self._seen: Set[Tuple[str, int]] = set()

    def mark(self, category: str, task_id: int) -> bool:
        """Record the task; False if it was already recorded."""
        key = (category, int(task_id))
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    def __contains__(self, key: Tuple[str, int]) -> bool:
        return (key[0], int(key[1])) in self._seen

    def __len__(self) -> int:
        return len(self._seen)


class CategoryWatcher:
    """
    Polls one task category and answers each new task once.

    The scan cursor only moves past a block window after the event query for
    that window succeeded, so a failed poll retries the same window next tick.
    """

    def __init__(
        self,
        category: TaskCategory,
        ledger: LedgerClient,
        signer: OperatorSigner,
        proofs: Optional[MockProofStore] = None,
        *,
        poll_interval_s: float = 10.0,
        max_block_range: int = 100,
        task_timeout_s: float = 30.0,
        start_position: Optional[int] = None,
        history_size: int = 1000,
    ) -> None:
        self.category = category
        self.ledger = ledger
        self.signer = signer
        self.proofs = proofs or MockProofStore()
        self.poll_interval_s = float(poll_interval_s)
        self.max_block_range = max(1, int(max_block_range))
        self.task_timeout_s = float(task_timeout_s)

        self.cursor: Optional[int] = start_position
        self.memory = ProcessedTaskMemory()
        # Recent outcomes only; lifetime totals live in ``counts``.
        self.outcomes: Deque[TaskOutcome] = deque(maxlen=max(1, int(history_size)))
        self.counts: Counter = Counter()
        self._inflight: Dict[int, asyncio.Future] = {}
        self._stop = asyncio.Event()
        self._cycle = asyncio.Lock()

    @property
    def name(self) -> str:
        return self.category.name

    def stop(self) -> None:
        self._stop.set()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    @property
    def in_flight(self) -> int:
        return len(self._inflight)

    # -- scanning ----------------------------------------------------------

    async def poll_once(self) -> List[TaskOutcome]:
        """Scan the next block window and process every unseen task in it."""
        if self._cycle.locked():
            bt.logging.debug(f"[{self.name}] previous cycle still running; tick skipped")
            return []

        async with self._cycle:
            try:
                if self.cursor is None:
                    self.cursor = await asyncio.to_thread(self.ledger.current_position)
                    bt.logging.info(f"[{self.name}] watching from block {self.cursor}")
                current = await asyncio.to_thread(self.ledger.current_position)
                if current <= self.cursor:
                    return []
                from_pos = self.cursor + 1
                to_pos = min(self.cursor + self.max_block_range, current)
                task_ids = await asyncio.to_thread(self.ledger.created_task_ids, self.name, from_pos, to_pos)
            except Exception as exc:
                bt.logging.warning(f"[{self.name}] poll failed, window will be retried: {exc}")
                return []

            if task_ids:
                bt.logging.info(f"[{self.name}] {len(task_ids)} new task(s) in blocks {from_pos}-{to_pos}")

            outcomes: List[TaskOutcome] = []
            for task_id in task_ids:
                if self.stopping:
                    bt.logging.info(f"[{self.name}] shutdown requested; leaving blocks {from_pos}-{to_pos} unfinished")
                    return outcomes
                if not self.memory.mark(self.name, task_id):
                    continue
                outcomes.append(await self._process(task_id))

            self.cursor = to_pos
            return outcomes

    async def _start_at_head(self) -> None:
        """Pin the cursor to the ledger head before the first tick, retrying until it answers."""
        while self.cursor is None and not self.stopping:
            try:
                self.cursor = await asyncio.to_thread(self.ledger.current_position)
                bt.logging.info(f"[{self.name}] watching from block {self.cursor}")
                return
            except Exception as exc:
                bt.logging.warning(f"[{self.name}] could not read ledger head, retrying: {exc}")
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.poll_interval_s)
            except asyncio.TimeoutError:
                pass

    async def run(self) -> None:
        await self._start_at_head()
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while not self.stopping:
            try:
                await self.poll_once()
            except Exception as exc:
                bt.logging.error(f"[{self.name}] unexpected error in poll cycle: {exc}")
                bt.logging.debug(traceback.format_exc())

            next_tick += self.poll_interval_s
            now = loop.time()
            if next_tick <= now:
                missed = int((now - next_tick) // self.poll_interval_s) + 1
                bt.logging.debug(f"[{self.name}] cycle overran; skipping {missed} tick(s)")
                next_tick += missed * self.poll_interval_s
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=next_tick - now)
            except asyncio.TimeoutError:
                pass
        bt.logging.info(f"[{self.name}] watcher stopped at block {self.cursor}")

    # -- per-task pipeline -------------------------------------------------

    def _record(self, task_id: int, status: OutcomeStatus, detail: str = "") -> TaskOutcome:
        outcome = TaskOutcome(category=self.name, task_id=int(task_id), status=status, detail=detail)
        self.outcomes.append(outcome)
        self.counts[status] += 1
        return outcome

    def _resolve(self, task_id: int, status: OutcomeStatus, detail: str = "") -> TaskOutcome:
        """Replace the ``incomplete`` record of a submission settled after shutdown."""
        outcome = TaskOutcome(category=self.name, task_id=int(task_id), status=status, detail=detail)
        for i in range(len(self.outcomes) - 1, -1, -1):
            prior = self.outcomes[i]
            if prior.task_id == outcome.task_id and prior.status == "incomplete":
                self.outcomes[i] = outcome
                break
        else:
            self.outcomes.append(outcome)
        self.counts["incomplete"] -= 1
        self.counts[status] += 1
        return outcome

    async def _prepare(self, task: Any) -> Dict[str, Any]:
        verdict = await self.category.decide(task)
        proof_ref = await asyncio.to_thread(self.proofs.upload, verdict.evidence)
        response = self.category.build_response(task, verdict, proof_ref)
        ledger_address = await asyncio.to_thread(self.ledger.ledger_address)
        digest = self.category.digest(task, response, ledger_address)
        signature = self.signer.sign(digest)
        return self.category.response_body(response, self.signer.address, signature)

    async def _process(self, task_id: int) -> TaskOutcome:
        bt.logging.info(f"[{self.name}] processing task {task_id}")
        try:
            task = await asyncio.to_thread(self.ledger.get_task, self.name, task_id)
            if task.status != TaskStatus.PENDING:
                bt.logging.info(f"[{self.name}] task {task_id} is {TaskStatus(task.status).name}; skipping")
                return self._record(task_id, "skipped", f"ledger status {TaskStatus(task.status).name}")
            body = await asyncio.wait_for(self._prepare(task), timeout=self.task_timeout_s)
        except VerificationDeclined as exc:
            bt.logging.info(f"[{self.name}] task {task_id} declined: {exc}")
            return self._record(task_id, "declined", str(exc))
        except asyncio.TimeoutError:
            bt.logging.warning(f"[{self.name}] task {task_id} decision timed out after {self.task_timeout_s}s")
            return self._record(task_id, "failed", "decision timed out")
        except ProofStorageError as exc:
            bt.logging.warning(f"[{self.name}] task {task_id} proof upload failed: {exc}")
            return self._record(task_id, "failed", f"proof upload failed: {exc}")
        except Exception as exc:
            bt.logging.error(f"[{self.name}] task {task_id} failed before submission: {exc}")
            bt.logging.debug(traceback.format_exc())
            return self._record(task_id, "failed", str(exc))

        if self.stopping:
            return self._record(task_id, "incomplete", "shutdown requested before submission")
        return await self._submit(task_id, body)

    async def _submit(self, task_id: int, body: Dict[str, Any]) -> TaskOutcome:
        fut = asyncio.ensure_future(asyncio.to_thread(self.ledger.respond, self.name, task_id, body))
        self._inflight[task_id] = fut

        stopper = asyncio.ensure_future(self._stop.wait())
        try:
            done, _ = await asyncio.wait({fut, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopper.cancel()

        if fut not in done:
            bt.logging.warning(f"[{self.name}] shutdown while task {task_id} submission is in flight")
            return self._record(task_id, "incomplete", "submission in flight at shutdown")

        del self._inflight[task_id]
        return self._settle(task_id, fut, self._record)

    def _settle(self, task_id: int, fut: asyncio.Future, record) -> TaskOutcome:
        exc = fut.exception()
        if exc is None:
            bt.logging.success(f"[{self.name}] task {task_id} response accepted")
            return record(task_id, "submitted")
        if isinstance(exc, LedgerError):
            bt.logging.warning(f"[{self.name}] task {task_id} rejected by ledger: {exc.kind}: {exc}")
            return record(task_id, "failed", f"{exc.kind}: {exc}")
        bt.logging.error(f"[{self.name}] task {task_id} submission failed: {exc}")
        return record(task_id, "failed", f"submission failed: {exc}")

    async def drain(self, grace_s: float) -> List[TaskOutcome]:
        """Wait up to ``grace_s`` for submissions still in flight and settle them."""
        pending = dict(self._inflight)
        self._inflight.clear()
        if not pending:
            return []

        bt.logging.info(f"[{self.name}] waiting up to {grace_s}s for {len(pending)} in-flight submission(s)")
        await asyncio.wait(list(pending.values()), timeout=max(0.0, grace_s))

        settled: List[TaskOutcome] = []
        for task_id, fut in pending.items():
            if fut.done():
                settled.append(self._settle(task_id, fut, self._resolve))
            else:
                bt.logging.error(
                    f"[{self.name}] task {task_id} submission unresolved at shutdown; "
                    "check the ledger for its final status"
                )
        return settled


class Operator:
    """Runs one watcher per configured category against a single ledger."""

    def __init__(
        self,
        ledger: LedgerClient,
        signer: OperatorSigner,
        categories: Iterable[TaskCategory],
        *,
        proofs: Optional[MockProofStore] = None,
        poll_interval_s: float = 10.0,
        max_block_range: int = 100,
        task_timeout_s: float = 30.0,
        start_position: Optional[int] = None,
        shutdown_grace_s: float = 10.0,
        history_size: int = 1000,
    ) -> None:
        self.ledger = ledger
        self.signer = signer
        self.proofs = proofs or MockProofStore()
        self.shutdown_grace_s = float(shutdown_grace_s)
        self.watchers: Dict[str, CategoryWatcher] = {}
        for category in categories:
            self.watchers[category.name] = CategoryWatcher(
                category,
                ledger,
                signer,
                self.proofs,
                poll_interval_s=poll_interval_s,
                max_block_range=max_block_range,
                task_timeout_s=task_timeout_s,
                start_position=start_position,
                history_size=history_size,
            )

    @property
    def outcomes(self) -> List[TaskOutcome]:
        out: List[TaskOutcome] = []
        for watcher in self.watchers.values():
            out.extend(watcher.outcomes)
        return out

    @property
    def counts(self) -> Counter:
        total: Counter = Counter()
        for watcher in self.watchers.values():
            total.update(watcher.counts)
        return +total

    async def check_registration(self) -> bool:
        try:
            registered = await asyncio.to_thread(self.ledger.is_operator, self.signer.address)
        except Exception as exc:
            bt.logging.warning(f"Could not check operator registration: {exc}")
            return False
        if registered:
            bt.logging.info(f"Operator {self.signer.address} is registered")
        else:
            bt.logging.warning(
                f"Operator {self.signer.address} is NOT registered; responses will be rejected with NotOperator"
            )
        return registered

    def stop(self) -> None:
        for watcher in self.watchers.values():
            watcher.stop()

    async def run(self) -> None:
        bt.logging.info(
            f"Operator {self.signer.address} starting; categories={','.join(self.watchers)} "
            f"ledger={self.ledger.ledger_url}"
        )
        await self.check_registration()
        try:
            await asyncio.gather(*(w.run() for w in self.watchers.values()))
        finally:
            await asyncio.gather(*(w.drain(self.shutdown_grace_s) for w in self.watchers.values()))
            bt.logging.info("Operator stopped")
