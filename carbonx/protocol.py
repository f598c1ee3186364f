"""Wire types shared by the ledger and the operator.

This module is the canonical home for task/result records and the enums that
define requirement levels. Both sides import from here so the ledger and the
operator agree on field order and numeric values:

  from carbonx.protocol import KYCLevel, KYCTask, TaskStatus
"""

from __future__ import annotations

from enum import IntEnum
from typing import Annotated, Any, Dict, Literal, Optional

from eth_utils import is_address, to_checksum_address
from pydantic import AfterValidator, BaseModel, Field


TaskCategoryName = Literal["kyc", "project"]
TASK_CATEGORIES: tuple[TaskCategoryName, ...] = ("kyc", "project")
UINT256_MAX = 2**256 - 1


def checksum(value: str) -> str:
    """Normalize an address to EIP-55 checksum form, rejecting garbage."""
    if not isinstance(value, str) or not is_address(value.lower()):
        raise ValueError(f"not an address: {value!r}")
    return to_checksum_address(value.lower())


def _request_id(value: str) -> str:
    raw = value[2:] if value.startswith("0x") else value
    if len(raw) != 64:
        raise ValueError("request_id must be 32 bytes of hex")
    bytes.fromhex(raw)
    return "0x" + raw.lower()


Address = Annotated[str, AfterValidator(checksum)]
RequestId = Annotated[str, AfterValidator(_request_id)]


class TaskStatus(IntEnum):
    PENDING = 0
    COMPLETED = 1
    EXPIRED = 2
    REJECTED = 3


class KYCLevel(IntEnum):
    NONE = 0
    BASIC = 1
    INTERMEDIATE = 2
    ADVANCED = 3
    ACCREDITED = 4


class ProjectCategory(IntEnum):
    FOREST = 0
    OCEAN = 1
    ENERGY = 2
    WASTE = 3
    COMMUNITY = 4
    TECH = 5


class VerificationStatus(IntEnum):
    PENDING = 0
    BASIC = 1
    STANDARD = 2
    PREMIUM = 3
    REJECTED = 4


MINTABLE_STATUSES = frozenset(
    {VerificationStatus.BASIC, VerificationStatus.STANDARD, VerificationStatus.PREMIUM}
)


class KYCTask(BaseModel):
    task_id: int
    user: Address
    required_level: KYCLevel
    task_created_block: int
    status: TaskStatus = TaskStatus.PENDING
    request_id: RequestId
    requester: Address

    @property
    def created_at(self) -> int:
        return self.task_created_block


class KYCResult(BaseModel):
    task_id: int
    level: KYCLevel
    verified_at: int
    expires_at: int
    verified_by: Address
    ipfs_hash: str
    active: bool = True


class KYCResponse(BaseModel):
    """Result payload an operator signs for a KYC task."""

    achieved_level: KYCLevel
    ipfs_hash: str


class ProjectSubmission(BaseModel):
    task_id: int
    owner: Address
    name: str
    methodology: str = ""
    registry: str = ""
    registry_id: str = ""
    location: str = ""
    category: ProjectCategory = ProjectCategory.FOREST
    vintage: int = 0
    # uint256 on the wire; tonnes scaled by 1e18 like the token it backs.
    estimated_credits: int = Field(ge=0, le=UINT256_MAX)
    documentation_uri: str = ""
    submitted_block: int
    status: TaskStatus = TaskStatus.PENDING
    request_id: RequestId

    @property
    def created_at(self) -> int:
        return self.submitted_block


class ProjectResult(BaseModel):
    task_id: int
    status: VerificationStatus
    quality_score: int = Field(ge=0, le=100)
    verified_credits: int = Field(ge=0, le=UINT256_MAX)
    verified_at: int
    verified_by: Address
    verification_uri: str
    can_mint: bool


class ProjectResponse(BaseModel):
    """Result payload an operator signs for a project verification task."""

    status: VerificationStatus
    quality_score: int = Field(ge=0, le=100)
    verified_credits: int = Field(ge=0, le=UINT256_MAX)
    verification_uri: str


class LedgerEvent(BaseModel):
    name: str
    category: TaskCategoryName
    task_id: Optional[int] = None
    position: int
    data: Dict[str, Any] = Field(default_factory=dict)


CREATED_EVENTS: Dict[str, str] = {
    "kyc": "KYCTaskCreated",
    "project": "ProjectSubmitted",
}
