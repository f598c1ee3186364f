from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from carbonx.protocol import (
    Address,
    KYCLevel,
    ProjectCategory,
    RequestId,
    TaskCategoryName,
    UINT256_MAX,
    VerificationStatus,
)


class LedgerInfo(BaseModel):
    address: Address
    position: int
    expiry_blocks: int
    latest_kyc_task: int
    latest_project_task: int


class KYCTaskRequest(BaseModel):
    user: Address
    required_level: int = Field(ge=0, le=255)
    request_id: RequestId
    # Defaults to the user (self-request). Any other requester must be authorized.
    requester: Optional[Address] = None

    # Requester's personal-message signature over the KYC request digest.
    signature: str


class ProjectSubmitRequest(BaseModel):
    owner: Address
    name: str
    methodology: str = ""
    registry: str = ""
    registry_id: str = ""
    location: str = ""
    category: ProjectCategory = ProjectCategory.FOREST
    vintage: int = 0
    estimated_credits: int = Field(ge=0, le=UINT256_MAX)
    documentation_uri: str = ""
    request_id: RequestId

    # Owner's personal-message signature over the project request digest.
    signature: str


class KYCRespondRequest(BaseModel):
    operator: Address
    achieved_level: KYCLevel
    ipfs_hash: str
    signature: str


class ProjectRespondRequest(BaseModel):
    operator: Address
    status: VerificationStatus
    quality_score: int = Field(ge=0, le=100)
    verified_credits: int = Field(ge=0, le=UINT256_MAX)
    verification_uri: str
    signature: str


class TaskCreated(BaseModel):
    category: TaskCategoryName
    task_id: int
    request_id: str
    position: int


class ExpiryUpdate(BaseModel):
    blocks: int = Field(ge=1)


class RevokeRequest(BaseModel):
    user: Address
    reason: str = ""


class RegistryUpdate(BaseModel):
    address: Address
    enabled: bool = True


class MineRequest(BaseModel):
    blocks: int = Field(default=1, ge=1, le=1_000_000)
