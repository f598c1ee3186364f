import asyncio

import pytest

from carbonx.errors import ProofStorageError, VerificationDeclined
from carbonx.operator.categories import build_categories, kyc_category, project_category
from carbonx.operator.decision import MockKYCVerifier, MockProjectVerifier
from carbonx.operator.proofs import MockProofStore
from carbonx.protocol import (
    KYCLevel,
    KYCTask,
    ProjectCategory,
    ProjectSubmission,
    VerificationStatus,
)
from carbonx.signing import recover_signer

LEDGER = "0x" + "42" * 20
RID = "0x" + "00" * 32


def _kyc_task(user, level=KYCLevel.ADVANCED):
    return KYCTask(task_id=7, user=user, required_level=level, task_created_block=5, request_id=RID, requester=user)


def _project(owner, credits=1000):
    return ProjectSubmission(
        task_id=3,
        owner=owner,
        name="Biochar Kilns",
        category=ProjectCategory.WASTE,
        registry="Puro",
        registry_id="PURO-9",
        vintage=2023,
        estimated_credits=credits,
        submitted_block=9,
        request_id=RID,
    )


def test_mock_kyc_approves_requested_level(user):
    verdict = asyncio.run(MockKYCVerifier(clock=lambda: 1.5)(_kyc_task(user.address)))
    assert verdict.achieved == KYCLevel.ADVANCED
    assert verdict.evidence["user"] == user.address
    assert verdict.evidence["timestamp"] == 1500


def test_mock_project_standard_at_95_percent(user):
    verdict = asyncio.run(MockProjectVerifier()(_project(user.address, credits=1001)))
    assert verdict.achieved == VerificationStatus.STANDARD
    assert verdict.quality_score == 90
    assert verdict.quantified_outcome == 950


def test_mock_verifiers_decline_denylisted_subjects(user):
    with pytest.raises(VerificationDeclined):
        asyncio.run(MockKYCVerifier(denylist=[user.address.lower()])(_kyc_task(user.address)))
    with pytest.raises(VerificationDeclined):
        asyncio.run(MockProjectVerifier(denylist=[user.address])(_project(user.address)))


def test_proof_store_is_content_addressed():
    store = MockProofStore()
    a = store.upload({"b": 1, "a": 2})
    b = store.upload({"a": 2, "b": 1})
    c = store.upload({"a": 3})
    assert a == b != c
    assert a.startswith("Qm") and len(a) == 46
    assert store.blobs[a] == b'{"a":2,"b":1}'


def test_proof_store_rejects_unserializable_evidence():
    with pytest.raises(ProofStorageError):
        MockProofStore().upload({"when": object()})


def test_kyc_category_builds_signed_body(operator, user):
    category = kyc_category()
    task = _kyc_task(user.address, KYCLevel.BASIC)
    verdict = asyncio.run(category.decide(task))
    response = category.build_response(task, verdict, "QmRef")
    digest = category.digest(task, response, LEDGER)
    body = category.response_body(response, operator.address, operator.sign(digest))

    assert body["achieved_level"] == 1
    assert body["ipfs_hash"] == "QmRef"
    assert body["operator"] == operator.address
    assert recover_signer(digest, body["signature"]) == operator.address


def test_project_category_response(user):
    category = project_category()
    task = _project(user.address)
    verdict = asyncio.run(category.decide(task))
    response = category.build_response(task, verdict, "QmRef")
    assert response.status == VerificationStatus.STANDARD
    assert response.verified_credits == 950
    assert response.verification_uri == "ipfs://QmRef"


def test_build_categories_rejects_unknown_names():
    assert [c.name for c in build_categories(["project", "kyc"])] == ["project", "kyc"]
    with pytest.raises(ValueError):
        build_categories(["carbon"])


def test_proof_store_keeps_only_recent_blobs():
    store = MockProofStore(max_blobs=2)
    refs = [store.upload({"n": n}) for n in range(3)]
    assert list(store.blobs) == refs[1:]
