from __future__ import annotations

from fastapi.testclient import TestClient

from carbonx.ledger.app import create_app
from carbonx.protocol import KYCLevel, KYCResponse
from carbonx.signing import kyc_request_digest, kyc_response_digest, project_request_digest

ADMIN = "admin-secret"


def _kyc_request(client_node, signer, level=2, rid="0x" + "01" * 32, user=None):
    user = user or signer.address
    digest = kyc_request_digest(signer.address, user, level, rid, client_node.address)
    return {
        "user": user,
        "required_level": level,
        "request_id": rid,
        "requester": signer.address,
        "signature": signer.sign(digest),
    }


def test_kyc_flow_over_http(node, operator, user):
    client = TestClient(create_app(node, admin_token=ADMIN))

    r = client.post("/kyc/tasks", json=_kyc_request(node, user))
    assert r.status_code == 200
    created = r.json()
    assert created == {"category": "kyc", "task_id": 1, "request_id": "0x" + "01" * 32, "position": 100}

    task = client.get("/kyc/tasks/1").json()
    assert task["status"] == 0
    assert task["required_level"] == 2

    resp = KYCResponse(achieved_level=KYCLevel.INTERMEDIATE, ipfs_hash="QmProof")
    sig = operator.sign(kyc_response_digest(1, user.address, resp, node.address))
    r = client.post(
        "/kyc/tasks/1/respond",
        json={"operator": operator.address, "achieved_level": 2, "ipfs_hash": "QmProof", "signature": sig},
    )
    assert r.status_code == 200
    assert r.json()["verified_by"] == operator.address

    assert client.get(f"/kyc/results/{user.address}/valid", params={"min_level": 2}).json()["valid"] is True
    assert client.get(f"/kyc/results/{user.address}/level").json() == {
        "subject": user.address,
        "level": 2,
        "name": "INTERMEDIATE",
    }
    assert client.get("/kyc/latest").json() == {"latest_task_num": 1}

    evs = client.get("/events", params={"category": "kyc", "from_position": 100, "to_position": 100}).json()
    assert [e["name"] for e in evs] == ["KYCTaskCreated"]


def test_ledger_errors_carry_their_kind(node, operator, user):
    client = TestClient(create_app(node))

    r = client.get("/kyc/tasks/9")
    assert r.status_code == 404
    assert r.json()["detail"]["error"] == "TaskNotFound"

    client.post("/kyc/tasks", json=_kyc_request(node, user))
    r = client.post(
        "/kyc/tasks/1/respond",
        json={"operator": operator.address, "achieved_level": 2, "ipfs_hash": "Qm", "signature": "0x" + "00" * 65},
    )
    assert r.status_code == 401
    assert r.json()["detail"]["error"] == "InvalidSignature"

    r = client.get(f"/kyc/results/{user.address}")
    assert r.status_code == 404
    assert r.json()["detail"]["error"] == "ResultNotFound"


def test_create_requires_requester_signature(node, user, outsider):
    client = TestClient(create_app(node))
    body = _kyc_request(node, user)
    body["signature"] = outsider.sign(b"\x11" * 32)

    before = node.position
    r = client.post("/kyc/tasks", json=body)
    assert r.status_code == 401
    assert r.json()["detail"]["error"] == "InvalidSignature"
    # Rejected before reaching the ledger: no block consumed.
    assert node.position == before


def test_project_submission_over_http(node, user):
    client = TestClient(create_app(node))
    rid = "0x" + "02" * 32
    digest = project_request_digest(user.address, "Kelp Forest", "GS-77", 1200, rid, node.address)
    r = client.post(
        "/projects/tasks",
        json={
            "owner": user.address,
            "name": "Kelp Forest",
            "registry": "Gold Standard",
            "registry_id": "GS-77",
            "category": 1,
            "vintage": 2025,
            "estimated_credits": 1200,
            "request_id": rid,
            "signature": user.sign(digest),
        },
    )
    assert r.status_code == 200
    assert r.json()["category"] == "project"

    sub = client.get("/projects/tasks/1").json()
    assert sub["name"] == "Kelp Forest"
    assert sub["estimated_credits"] == 1200
    assert client.get("/projects/results/1/can-mint").json() == {"task_id": 1, "can_mint": False}
    assert client.get("/projects/results/1").status_code == 404


def test_admin_endpoints_require_token(node, outsider):
    client = TestClient(create_app(node, admin_token=ADMIN))

    r = client.post("/admin/operators", json={"address": outsider.address})
    assert r.status_code == 401
    r = client.post("/admin/operators", json={"address": outsider.address}, headers={"x-ledger-admin-token": "nope"})
    assert r.status_code == 401

    r = client.post("/admin/operators", json={"address": outsider.address}, headers={"x-ledger-admin-token": ADMIN})
    assert r.status_code == 200
    assert client.get(f"/operators/{outsider.address}").json()["is_operator"] is True

    r = client.post("/admin/expiry", json={"blocks": 10}, headers={"x-ledger-admin-token": ADMIN})
    assert r.json() == {"ok": True, "expiry_blocks": 10}

    pos = node.position
    r = client.post("/admin/mine", json={"blocks": 5}, headers={"x-ledger-admin-token": ADMIN})
    assert r.json()["position"] == pos + 5


def test_admin_disabled_without_token(node, outsider):
    client = TestClient(create_app(node))
    r = client.post("/admin/mine", json={"blocks": 1}, headers={"x-ledger-admin-token": ""})
    assert r.status_code == 401


def test_ledger_info(node):
    client = TestClient(create_app(node))
    info = client.get("/ledger").json()
    assert info["address"] == node.address
    assert info["position"] == 99
    assert info["expiry_blocks"] == 7200
    assert client.get("/healthz").json()["ok"] is True


def test_credits_beyond_uint256_are_rejected_over_http(node, operator, user):
    client = TestClient(create_app(node))
    rid = "0x" + "03" * 32
    too_big = 2**256
    r = client.post(
        "/projects/tasks",
        json={
            "owner": user.address,
            "name": "Kelp Forest",
            "estimated_credits": too_big,
            "request_id": rid,
            "signature": "0x" + "00" * 65,
        },
    )
    assert r.status_code == 422
    assert node.projects.latest_task_num() == 0

    node.projects.submit_project(user.address, name="Kelp Forest", estimated_credits=1200)
    r = client.post(
        "/projects/tasks/1/respond",
        json={
            "operator": operator.address,
            "status": 2,
            "quality_score": 90,
            "verified_credits": too_big,
            "verification_uri": "ipfs://QmAudit",
            "signature": "0x" + "00" * 65,
        },
    )
    assert r.status_code == 422
    assert client.get("/projects/tasks/1").json()["status"] == 0
