from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests

from carbonx.errors import LEDGER_ERRORS, LedgerError
from carbonx.protocol import (
    CREATED_EVENTS,
    KYCResult,
    KYCTask,
    LedgerEvent,
    ProjectResult,
    ProjectSubmission,
    TaskCategoryName,
)


class LedgerHTTPError(RuntimeError):
    """Non-ledger HTTP failure (proxy error, 5xx, malformed body)."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"ledger returned HTTP {status_code}: {body[:200]}")
        self.status_code = status_code


class LedgerClient:
    """
    Blocking client for a ledger node's HTTP API.

    ``http`` defaults to the ``requests`` module; anything with the same
    ``get``/``post`` call shape works (a ``requests.Session`` or a FastAPI
    ``TestClient``). Ledger errors come back as the same exception class the
    node raised.
    """

    def __init__(
        self,
        ledger_url: str,
        *,
        timeout_s: float = 5.0,
        admin_token: str = "",
        http: Any = None,
    ) -> None:
        self.ledger_url = ledger_url.rstrip("/")
        self.timeout_s = timeout_s
        self.admin_token = admin_token
        self.http = http if http is not None else requests
        self._address: Optional[str] = None

    # -- transport ---------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self.ledger_url}{path}"

    def _unwrap(self, r) -> Any:
        if r.status_code < 400:
            return r.json()
        try:
            body = r.json()
        except ValueError:
            body = None
        detail = body.get("detail") if isinstance(body, dict) else None
        if isinstance(detail, dict) and detail.get("error") in LEDGER_ERRORS:
            raise LEDGER_ERRORS[detail["error"]](detail.get("message", ""))
        raise LedgerHTTPError(r.status_code, r.text)

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        r = self.http.get(self._url(path), params=params or {}, timeout=self.timeout_s)
        return self._unwrap(r)

    def _post(self, path: str, body: Dict[str, Any], *, admin: bool = False) -> Any:
        headers = {"x-ledger-admin-token": self.admin_token} if admin else {}
        r = self.http.post(self._url(path), json=body, headers=headers, timeout=self.timeout_s)
        return self._unwrap(r)

    # -- chain -------------------------------------------------------------

    def ledger_address(self) -> str:
        if self._address is None:
            self._address = str(self._get("/ledger")["address"])
        return self._address

    def current_position(self) -> int:
        return int(self._get("/ledger")["position"])

    def events(
        self,
        *,
        category: Optional[TaskCategoryName] = None,
        name: Optional[str] = None,
        from_position: int = 0,
        to_position: Optional[int] = None,
    ) -> List[LedgerEvent]:
        params: Dict[str, Any] = {"from_position": int(from_position)}
        if category:
            params["category"] = category
        if name:
            params["name"] = name
        if to_position is not None:
            params["to_position"] = int(to_position)
        data = self._get("/events", params)
        return [LedgerEvent(**item) for item in data] if isinstance(data, list) else []

    def created_task_ids(self, category: TaskCategoryName, from_position: int, to_position: int) -> List[int]:
        """Task ids announced by creation events in ``[from_position, to_position]``."""
        evs = self.events(
            category=category,
            name=CREATED_EVENTS[category],
            from_position=from_position,
            to_position=to_position,
        )
        return [int(ev.task_id) for ev in evs if ev.task_id is not None]

    def is_operator(self, address: str) -> bool:
        return bool(self._get(f"/operators/{address}")["is_operator"])

    # -- tasks -------------------------------------------------------------

    def create_kyc_task(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return self._post("/kyc/tasks", body)

    def submit_project(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return self._post("/projects/tasks", body)

    def get_kyc_task(self, task_id: int) -> KYCTask:
        return KYCTask(**self._get(f"/kyc/tasks/{int(task_id)}"))

    def get_submission(self, task_id: int) -> ProjectSubmission:
        return ProjectSubmission(**self._get(f"/projects/tasks/{int(task_id)}"))

    def get_task(self, category: TaskCategoryName, task_id: int):
        if category == "kyc":
            return self.get_kyc_task(task_id)
        return self.get_submission(task_id)

    def respond(self, category: TaskCategoryName, task_id: int, body: Dict[str, Any]) -> Dict[str, Any]:
        prefix = "/kyc" if category == "kyc" else "/projects"
        return self._post(f"{prefix}/tasks/{int(task_id)}/respond", body)

    def latest_task_num(self, category: TaskCategoryName) -> int:
        prefix = "/kyc" if category == "kyc" else "/projects"
        return int(self._get(f"{prefix}/latest")["latest_task_num"])

    # -- result queries ----------------------------------------------------

    def get_result(self, subject: str) -> Optional[KYCResult]:
        try:
            return KYCResult(**self._get(f"/kyc/results/{subject}"))
        except LedgerError as exc:
            if exc.kind == "ResultNotFound":
                return None
            raise

    def has_valid(self, subject: str, min_level: int) -> bool:
        return bool(self._get(f"/kyc/results/{subject}/valid", {"min_level": int(min_level)})["valid"])

    def current_level(self, subject: str) -> int:
        return int(self._get(f"/kyc/results/{subject}/level")["level"])

    def get_verification_result(self, task_id: int) -> Optional[ProjectResult]:
        try:
            return ProjectResult(**self._get(f"/projects/results/{int(task_id)}"))
        except LedgerError as exc:
            if exc.kind == "ResultNotFound":
                return None
            raise

    def can_mint_tokens(self, task_id: int) -> bool:
        return bool(self._get(f"/projects/results/{int(task_id)}/can-mint")["can_mint"])

    # -- owner policy ------------------------------------------------------

    def set_operator(self, address: str, enabled: bool = True) -> None:
        self._post("/admin/operators", {"address": address, "enabled": enabled}, admin=True)

    def set_requester(self, address: str, enabled: bool = True) -> None:
        self._post("/admin/requesters", {"address": address, "enabled": enabled}, admin=True)

    def set_expiry_blocks(self, blocks: int) -> None:
        self._post("/admin/expiry", {"blocks": int(blocks)}, admin=True)

    def revoke(self, user: str, reason: str = "") -> KYCResult:
        return KYCResult(**self._post("/admin/revoke", {"user": user, "reason": reason}, admin=True))

    def mine(self, blocks: int = 1) -> int:
        return int(self._post("/admin/mine", {"blocks": int(blocks)}, admin=True)["position"])
