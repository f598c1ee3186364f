from __future__ import annotations

from typing import Iterable, Optional

import bittensor as bt

from carbonx.ledger.config import LedgerEnvConfig, default_ledger_address, DEFAULT_EXPIRY_BLOCKS, DEFAULT_KYC_VALIDITY_S
from carbonx.ledger.kyc import KYCTaskManager
from carbonx.ledger.project import ProjectVerificationManager
from carbonx.ledger.queries import ResultQueries
from carbonx.ledger.store import Clock, LedgerStore
from carbonx.protocol import KYCResult


class LedgerNode:
    """One ledger deployment: state, both task categories and owner policy."""

    def __init__(
        self,
        *,
        ledger_address: Optional[str] = None,
        expiry_blocks: int = DEFAULT_EXPIRY_BLOCKS,
        kyc_validity_s: int = DEFAULT_KYC_VALIDITY_S,
        operators: Iterable[str] = (),
        requesters: Iterable[str] = (),
        start_position: int = 0,
        clock: Optional[Clock] = None,
    ):
        self.store = LedgerStore(
            ledger_address=ledger_address or default_ledger_address(),
            expiry_blocks=expiry_blocks,
            start_position=start_position,
            clock=clock,
        )
        self.kyc = KYCTaskManager(self.store, validity_s=kyc_validity_s)
        self.projects = ProjectVerificationManager(self.store)
        self.queries = ResultQueries(self.store)

        for op in operators:
            self.store.set_operator(op, True)
        for req in requesters:
            self.store.set_requester(req, True)

    @classmethod
    def from_config(cls, cfg: LedgerEnvConfig) -> "LedgerNode":
        return cls(
            ledger_address=cfg.ledger_address,
            expiry_blocks=cfg.expiry_blocks,
            kyc_validity_s=cfg.kyc_validity_s,
            operators=cfg.operators,
            requesters=cfg.requesters,
        )

    @property
    def address(self) -> str:
        return self.store.ledger_address

    @property
    def position(self) -> int:
        return self.store.position

    # -- owner policy ------------------------------------------------------

    def set_expiry_blocks(self, blocks: int) -> None:
        if int(blocks) < 1:
            raise ValueError("expiry threshold must be at least one block")
        self.store.set_expiry_blocks(blocks)
        bt.logging.info(f"[ledger] expiry threshold set to {int(blocks)} blocks")

    def set_operator(self, address: str, enabled: bool = True) -> None:
        self.store.set_operator(address, enabled)
        bt.logging.info(f"[ledger] operator {address} {'registered' if enabled else 'deregistered'}")

    def set_requester(self, address: str, enabled: bool = True) -> None:
        self.store.set_requester(address, enabled)
        bt.logging.info(f"[ledger] requester {address} {'authorized' if enabled else 'deauthorized'}")

    def revoke(self, user: str, reason: str = "") -> KYCResult:
        return self.kyc.revoke(user, reason)

    def mine(self, blocks: int = 1) -> int:
        return self.store.mine(blocks)
