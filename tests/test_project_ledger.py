import pytest
from pydantic import ValidationError

from carbonx.errors import InvalidRequirement, InvalidSignature, TaskExpired, TaskNotPending
from carbonx.protocol import ProjectCategory, ProjectResponse, TaskStatus, VerificationStatus
from carbonx.signing import project_response_digest


def _submit(node, owner, **overrides):
    kwargs = dict(
        name="Mangrove Restoration",
        estimated_credits=50_000,
        category=ProjectCategory.OCEAN,
        methodology="VM0033",
        registry="Verra",
        registry_id="VCS-2291",
        location="Sundarbans, BD",
        vintage=2024,
        documentation_uri="ipfs://QmDocs",
    )
    kwargs.update(overrides)
    return node.projects.submit_project(owner, **kwargs)


def _signed(node, signer, task_id, owner, status=VerificationStatus.STANDARD, credits=47_500, uri="ipfs://QmAudit"):
    resp = ProjectResponse(status=status, quality_score=90, verified_credits=credits, verification_uri=uri)
    return resp, signer.sign(project_response_digest(task_id, owner, resp, node.address))


def test_submit_and_verify_project(node, operator, user):
    task_id = _submit(node, user.address)
    sub = node.queries.get_submission(task_id)
    assert sub.owner == user.address
    assert sub.submitted_block == 100
    assert sub.category == ProjectCategory.OCEAN
    assert sub.status == TaskStatus.PENDING

    resp, sig = _signed(node, operator, task_id, user.address)
    result = node.projects.respond_to_task(task_id, operator.address, resp, sig)

    assert result.status == VerificationStatus.STANDARD
    assert result.verified_credits == 47_500
    assert result.can_mint is True
    assert node.queries.can_mint_tokens(task_id)
    assert node.queries.get_verification_result(task_id).verification_uri == "ipfs://QmAudit"
    assert node.queries.get_submission(task_id).status == TaskStatus.COMPLETED


def test_rejected_project_completes_without_minting(node, operator, user):
    task_id = _submit(node, user.address)
    resp, sig = _signed(node, operator, task_id, user.address, status=VerificationStatus.REJECTED, credits=0)
    result = node.projects.respond_to_task(task_id, operator.address, resp, sig)

    assert result.can_mint is False
    assert not node.queries.can_mint_tokens(task_id)
    assert node.queries.get_submission(task_id).status == TaskStatus.COMPLETED


def test_can_mint_false_without_result(node, user):
    task_id = _submit(node, user.address)
    assert node.queries.get_verification_result(task_id) is None
    assert node.queries.can_mint_tokens(task_id) is False


def test_project_ids_are_independent_from_kyc(node, user):
    node.kyc.create_task(user.address, 1)
    assert _submit(node, user.address) == 1
    assert _submit(node, user.address, name="Solar Farm", category=ProjectCategory.ENERGY) == 2
    assert node.projects.latest_task_num() == 2
    assert node.kyc.latest_task_num() == 1


@pytest.mark.parametrize(
    "overrides",
    [{"name": "  "}, {"estimated_credits": 0}, {"estimated_credits": 2**256}, {"category": 17}],
)
def test_submit_rejects_invalid_projects(node, user, overrides):
    with pytest.raises(InvalidRequirement):
        _submit(node, user.address, **overrides)


def test_project_lifecycle_rules_match_kyc(node, operator, outsider, user):
    first = _submit(node, user.address)
    second = _submit(node, user.address, name="Peatland")

    resp, sig = _signed(node, operator, first, user.address)
    with pytest.raises(InvalidSignature):
        node.projects.respond_to_task(first, operator.address, resp, outsider.sign(b"\x00" * 32))
    node.projects.respond_to_task(first, operator.address, resp, sig)
    with pytest.raises(TaskNotPending):
        node.projects.respond_to_task(first, operator.address, resp, sig)

    node.mine(7300)
    resp2, sig2 = _signed(node, operator, second, user.address)
    with pytest.raises(TaskExpired):
        node.projects.respond_to_task(second, operator.address, resp2, sig2)
    assert node.queries.get_submission(second).status == TaskStatus.EXPIRED
    assert node.store.events(name="ProjectTaskExpired")[0].task_id == second


def test_submission_event_carries_project_fields(node, user):
    task_id = _submit(node, user.address)
    [created] = node.store.events(category="project", name="ProjectSubmitted")
    assert created.task_id == task_id
    assert created.position == 100
    assert created.data["subject"] == user.address
    assert created.data["project_name"] == "Mangrove Restoration"
    assert created.data["project_category"] == int(ProjectCategory.OCEAN)
    assert created.data["registry_id"] == "VCS-2291"


def test_rejected_record_does_not_burn_request_id(node, user):
    rid = "0x" + "cd" * 32
    with pytest.raises(ValidationError):
        _submit(node, user.address, documentation_uri=None, request_id=rid)
    assert node.projects.latest_task_num() == 0
    assert node.store.events(category="project") == []

    assert _submit(node, user.address, request_id=rid) == 1
    assert node.queries.get_submission(1).request_id == rid


def test_credits_beyond_uint256_are_refused(node, operator, user):
    with pytest.raises(ValidationError):
        ProjectResponse(status=VerificationStatus.STANDARD, quality_score=90, verified_credits=2**256, verification_uri="u")

    task_id = _submit(node, user.address)
    oversized = ProjectResponse.model_construct(
        status=VerificationStatus.STANDARD, quality_score=90, verified_credits=2**256, verification_uri="ipfs://QmAudit"
    )
    with pytest.raises(InvalidSignature):
        node.projects.respond_to_task(task_id, operator.address, oversized, operator.sign(b"\x00" * 32))
    assert node.queries.get_submission(task_id).status == TaskStatus.PENDING
