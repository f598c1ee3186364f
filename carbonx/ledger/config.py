from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from eth_utils import keccak, to_checksum_address

from carbonx.protocol import checksum
from carbonx.utils.env import _env_csv, _env_int, _env_str


DEFAULT_EXPIRY_BLOCKS = 7200
DEFAULT_KYC_VALIDITY_S = 365 * 24 * 60 * 60


def default_ledger_address(name: str = "carbonx-ledger") -> str:
    """Deterministic ledger identity used when no address is configured."""
    return to_checksum_address(keccak(text=name)[-20:])


@dataclass(frozen=True)
class LedgerEnvConfig:
    ledger_address: str
    expiry_blocks: int
    kyc_validity_s: int
    admin_token: str
    operators: Tuple[str, ...]
    requesters: Tuple[str, ...]
    host: str
    port: int


def _die(msg: str) -> None:
    raise SystemExit(f"[carbonx] {msg}")


def _addresses(name: str) -> Tuple[str, ...]:
    out = []
    for raw in _env_csv(name):
        try:
            out.append(checksum(raw))
        except ValueError:
            _die(f"{name} contains an invalid address: {raw!r}")
    return tuple(out)


def load_ledger_env() -> LedgerEnvConfig:
    """
    Load ledger node configuration from env/.env with strict validation.

    The admin token guards policy endpoints (expiry, revocation, operator and
    requester management). Leaving it empty disables those endpoints.
    """
    raw_address = _env_str("CARBONX_LEDGER_ADDRESS", "")
    if raw_address:
        try:
            ledger_address = checksum(raw_address)
        except ValueError:
            _die(f"CARBONX_LEDGER_ADDRESS is not an address. Got: {raw_address!r}")
    else:
        ledger_address = default_ledger_address()

    expiry_blocks = _env_int("CARBONX_EXPIRY_BLOCKS", DEFAULT_EXPIRY_BLOCKS)
    if expiry_blocks < 1:
        _die(f"CARBONX_EXPIRY_BLOCKS must be >= 1. Got: {expiry_blocks}")

    kyc_validity_s = _env_int("CARBONX_KYC_VALIDITY_S", DEFAULT_KYC_VALIDITY_S)
    if kyc_validity_s < 1:
        _die(f"CARBONX_KYC_VALIDITY_S must be >= 1. Got: {kyc_validity_s}")

    port = _env_int("CARBONX_LEDGER_PORT", 8545)
    if not 0 < port < 65536:
        _die(f"CARBONX_LEDGER_PORT out of range. Got: {port}")

    return LedgerEnvConfig(
        ledger_address=ledger_address,
        expiry_blocks=int(expiry_blocks),
        kyc_validity_s=int(kyc_validity_s),
        admin_token=_env_str("CARBONX_ADMIN_TOKEN", ""),
        operators=_addresses("CARBONX_OPERATORS"),
        requesters=_addresses("CARBONX_REQUESTERS"),
        host=_env_str("CARBONX_LEDGER_HOST", "127.0.0.1") or "127.0.0.1",
        port=int(port),
    )
