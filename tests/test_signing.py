import pytest

from carbonx.errors import InvalidSignature
from carbonx.ledger.config import default_ledger_address
from carbonx.protocol import KYCLevel, KYCResponse, ProjectResponse, VerificationStatus
from carbonx.signing import (
    kyc_request_digest,
    kyc_response_digest,
    project_response_digest,
    recover_signer,
    sign_digest,
    verify_signer,
)

from conftest import OPERATOR_KEY

LEDGER = default_ledger_address()


def test_sign_and_recover_operator(operator, user):
    resp = KYCResponse(achieved_level=KYCLevel.INTERMEDIATE, ipfs_hash="QmProof")
    digest = kyc_response_digest(1, user.address, resp, LEDGER)
    sig = operator.sign(digest)

    assert sig.startswith("0x") and len(sig) == 2 + 130
    assert recover_signer(digest, sig) == operator.address
    assert sign_digest(digest, private_key=OPERATOR_KEY) == sig
    verify_signer(digest, sig, operator.address.lower())


def test_signature_is_bound_to_every_result_field(operator, user):
    base = KYCResponse(achieved_level=KYCLevel.INTERMEDIATE, ipfs_hash="QmProof")
    digest = kyc_response_digest(1, user.address, base, LEDGER)

    assert digest != kyc_response_digest(2, user.address, base, LEDGER)
    assert digest != kyc_response_digest(1, operator.address, base, LEDGER)
    assert digest != kyc_response_digest(1, user.address, base.model_copy(update={"achieved_level": KYCLevel.ADVANCED}), LEDGER)
    assert digest != kyc_response_digest(1, user.address, base.model_copy(update={"ipfs_hash": "QmOther"}), LEDGER)
    assert digest != kyc_response_digest(1, user.address, base, default_ledger_address("other-deployment"))


def test_project_digest_covers_verification_uri(user):
    resp = ProjectResponse(
        status=VerificationStatus.STANDARD,
        quality_score=90,
        verified_credits=47_500,
        verification_uri="ipfs://QmA",
    )
    a = project_response_digest(1, user.address, resp, LEDGER)
    b = project_response_digest(1, user.address, resp.model_copy(update={"verification_uri": "ipfs://QmB"}), LEDGER)
    assert a != b


def test_request_digest_depends_on_requester(user, requester):
    rid = "0x" + "11" * 32
    assert kyc_request_digest(user.address, user.address, 2, rid, LEDGER) != kyc_request_digest(
        requester.address, user.address, 2, rid, LEDGER
    )


def test_verify_signer_rejects_other_signer(operator, outsider, user):
    digest = kyc_response_digest(1, user.address, KYCResponse(achieved_level=1, ipfs_hash="Qm"), LEDGER)
    sig = outsider.sign(digest)
    with pytest.raises(InvalidSignature):
        verify_signer(digest, sig, operator.address)


@pytest.mark.parametrize("bad", ["", "0x", "0xzz", "0x" + "00" * 64, "0x" + "ab" * 66])
def test_recover_rejects_malformed_signatures(bad):
    with pytest.raises(InvalidSignature):
        recover_signer(b"\x00" * 32, bad)
