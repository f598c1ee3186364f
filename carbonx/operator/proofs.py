from __future__ import annotations

import base64
import hashlib
import json
from collections import OrderedDict
from typing import Any, Mapping

import bittensor as bt

from carbonx.errors import ProofStorageError


def canon_json(obj: Mapping[str, Any]) -> bytes:
    # Stable canonical encoding so equal evidence always maps to one reference.
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True).encode("utf-8")


class MockProofStore:
    """
    Content-addressed evidence store standing in for IPFS.

    References look like CIDv0 strings ("Qm" + 44 chars) and are derived from
    the evidence digest, so uploads are idempotent. The most recent
    ``max_blobs`` uploads are kept in memory for inspection.
    """

    def __init__(self, max_blobs: int = 256) -> None:
        self.max_blobs = max(0, int(max_blobs))
        self.blobs: OrderedDict[str, bytes] = OrderedDict()

    def upload(self, evidence: Mapping[str, Any]) -> str:
        try:
            raw = canon_json(evidence)
        except (TypeError, ValueError) as exc:
            raise ProofStorageError(f"evidence is not JSON serializable: {exc}") from exc

        digest = hashlib.sha256(raw).digest()
        ref = "Qm" + base64.b32encode(digest).decode("ascii").rstrip("=").lower()[:44]
        self.blobs[ref] = raw
        self.blobs.move_to_end(ref)
        while len(self.blobs) > self.max_blobs:
            self.blobs.popitem(last=False)
        bt.logging.info(f"[IPFS] Uploaded proof: {ref}")
        return ref
