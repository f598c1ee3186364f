"""Canonical message encoding, signing and signer recovery.

Every signed message is ``keccak256(abi.encodePacked(...))`` over a fixed
field list that always ends with the verifying ledger's address, so a
signature produced for one ledger deployment never validates on another.
Digests are signed as EIP-191 personal messages.
"""

from __future__ import annotations

from typing import Any, Sequence

from eth_abi.packed import encode_packed
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import keccak

from carbonx.errors import InvalidSignature
from carbonx.protocol import KYCResponse, ProjectResponse, checksum


KYC_RESPONSE_TYPES = ("uint32", "address", "uint8", "string", "address")
PROJECT_RESPONSE_TYPES = ("uint32", "address", "uint8", "uint8", "uint256", "string", "address")
KYC_REQUEST_TYPES = ("string", "address", "address", "uint8", "bytes32", "address")
PROJECT_REQUEST_TYPES = ("string", "address", "string", "string", "uint256", "bytes32", "address")

KYC_REQUEST_TAG = "carbonx.kyc.request"
PROJECT_REQUEST_TAG = "carbonx.project.request"


def packed_keccak(types: Sequence[str], values: Sequence[Any]) -> bytes:
    return keccak(encode_packed(list(types), list(values)))


def kyc_response_digest(task_id: int, user: str, response: KYCResponse, ledger_address: str) -> bytes:
    return packed_keccak(
        KYC_RESPONSE_TYPES,
        [
            int(task_id),
            checksum(user),
            int(response.achieved_level),
            response.ipfs_hash,
            checksum(ledger_address),
        ],
    )


def project_response_digest(task_id: int, owner: str, response: ProjectResponse, ledger_address: str) -> bytes:
    return packed_keccak(
        PROJECT_RESPONSE_TYPES,
        [
            int(task_id),
            checksum(owner),
            int(response.status),
            int(response.quality_score),
            int(response.verified_credits),
            response.verification_uri,
            checksum(ledger_address),
        ],
    )


def kyc_request_digest(
    requester: str, user: str, required_level: int, request_id: str, ledger_address: str
) -> bytes:
    return packed_keccak(
        KYC_REQUEST_TYPES,
        [
            KYC_REQUEST_TAG,
            checksum(requester),
            checksum(user),
            int(required_level),
            _bytes32(request_id),
            checksum(ledger_address),
        ],
    )


def project_request_digest(
    owner: str,
    name: str,
    registry_id: str,
    estimated_credits: int,
    request_id: str,
    ledger_address: str,
) -> bytes:
    return packed_keccak(
        PROJECT_REQUEST_TYPES,
        [
            PROJECT_REQUEST_TAG,
            checksum(owner),
            name,
            registry_id,
            int(estimated_credits),
            _bytes32(request_id),
            checksum(ledger_address),
        ],
    )


def _bytes32(value: str) -> bytes:
    raw = bytes.fromhex(value[2:] if value.startswith("0x") else value)
    if len(raw) != 32:
        raise ValueError("expected 32 bytes")
    return raw


def sign_digest(digest: bytes, *, private_key: str) -> str:
    signed = Account.sign_message(encode_defunct(primitive=digest), private_key=private_key)
    return "0x" + bytes(signed.signature).hex()


def recover_signer(digest: bytes, signature: str) -> str:
    """Recover the checksum address that produced ``signature`` over ``digest``.

    Any malformed input is reported as :class:`InvalidSignature`.
    """
    try:
        raw = bytes.fromhex(signature[2:] if signature.startswith("0x") else signature)
    except (AttributeError, TypeError, ValueError) as exc:
        raise InvalidSignature("signature is not hex") from exc
    if len(raw) != 65:
        raise InvalidSignature(f"signature must be 65 bytes, got {len(raw)}")
    try:
        recovered = Account.recover_message(encode_defunct(primitive=digest), signature=raw)
    except Exception as exc:
        raise InvalidSignature(f"signature could not be recovered: {exc}") from exc
    return checksum(recovered)


def verify_signer(digest: bytes, signature: str, expected: str) -> None:
    recovered = recover_signer(digest, signature)
    if recovered != checksum(expected):
        raise InvalidSignature(f"signature recovers to {recovered}, not {checksum(expected)}")


class OperatorSigner:
    """Holds an operator key and signs canonical digests with it."""

    def __init__(self, private_key: str):
        account = Account.from_key(private_key)
        self._private_key = private_key
        self.address: str = checksum(account.address)

    def sign(self, digest: bytes) -> str:
        return sign_digest(digest, private_key=self._private_key)
