from __future__ import annotations

from typing import Any, Dict, List, Tuple

import pytest
from fastapi.testclient import TestClient

from carbonx.client import LedgerClient, LedgerHTTPError
from carbonx.errors import TaskExpired, TaskNotPending
from carbonx.ledger.app import create_app
from carbonx.protocol import KYCLevel, TaskStatus
from carbonx.signing import kyc_request_digest


class _Resp:
    def __init__(self, status_code: int, body: Any, text: str = ""):
        self.status_code = status_code
        self._body = body
        self.text = text or str(body)

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


def test_client_maps_error_kind_to_exception(monkeypatch):
    calls: List[Tuple[str, Dict[str, Any], float]] = []

    def fake_post(url: str, *, json: Dict[str, Any], headers: Dict[str, str], timeout: float):  # noqa: A002 - match requests API
        calls.append((url, json, timeout))
        return _Resp(409, {"detail": {"error": "TaskExpired", "message": "task 3 is 7301 blocks old"}})

    import carbonx.client as mod

    monkeypatch.setattr(mod.requests, "post", fake_post)

    client = LedgerClient("http://ledger/", timeout_s=2.5)
    with pytest.raises(TaskExpired, match="7301 blocks old"):
        client.respond("kyc", 3, {"signature": "0x"})

    url, _body, timeout = calls[0]
    assert url == "http://ledger/kyc/tasks/3/respond"
    assert timeout == 2.5


def test_client_raises_http_error_for_unknown_failures(monkeypatch):
    import carbonx.client as mod

    monkeypatch.setattr(mod.requests, "get", lambda url, *, params, timeout: _Resp(502, ValueError("no json"), "bad gateway"))

    with pytest.raises(LedgerHTTPError) as exc:
        LedgerClient("http://ledger").current_position()
    assert exc.value.status_code == 502


def test_client_sends_admin_token(monkeypatch):
    seen: Dict[str, Any] = {}

    def fake_post(url, *, json, headers, timeout):  # noqa: A002 - match requests API
        seen.update(url=url, json=json, headers=headers)
        return _Resp(200, {"ok": True, "position": 12})

    import carbonx.client as mod

    monkeypatch.setattr(mod.requests, "post", fake_post)
    assert LedgerClient("http://ledger", admin_token="s3cret").mine(3) == 12
    assert seen["headers"] == {"x-ledger-admin-token": "s3cret"}
    assert seen["json"] == {"blocks": 3}


def test_client_against_ledger_app(node, user):
    ledger = LedgerClient("http://testserver", http=TestClient(create_app(node)))
    assert ledger.ledger_address() == node.address

    rid = "0x" + "0a" * 32
    created = ledger.create_kyc_task(
        {
            "user": user.address,
            "required_level": 1,
            "request_id": rid,
            "signature": user.sign(kyc_request_digest(user.address, user.address, 1, rid, node.address)),
        }
    )
    assert created["task_id"] == 1
    assert ledger.current_position() == 100
    assert ledger.created_task_ids("kyc", 100, 100) == [1]
    assert ledger.created_task_ids("project", 100, 100) == []
    assert ledger.get_task("kyc", 1).required_level == KYCLevel.BASIC
    assert ledger.get_result(user.address) is None
    assert ledger.get_verification_result(1) is None
    assert ledger.has_valid(user.address, 1) is False
    assert ledger.current_level(user.address) == 0
    assert ledger.latest_task_num("kyc") == 1


def test_client_surfaces_task_not_pending(node, operator, user):
    ledger = LedgerClient("http://testserver", http=TestClient(create_app(node)))
    node.kyc.create_task(user.address, KYCLevel.BASIC)
    node.kyc.get_task(1).status = TaskStatus.EXPIRED

    with pytest.raises(TaskNotPending):
        ledger.respond(
            "kyc",
            1,
            {"operator": operator.address, "achieved_level": 1, "ipfs_hash": "Qm", "signature": "0x" + "00" * 65},
        )
