"""HTTP surface of a ledger node.

Write endpoints correspond to ledger transactions; every one of them lands in
its own block. Ledger errors are reported as
``{"detail": {"error": <kind>, "message": ...}}`` so clients can tell a
``TaskNotPending`` from a ``TaskExpired`` without parsing prose.
"""

from __future__ import annotations

import hmac
from typing import List, Optional

from eth_abi.exceptions import EncodingError
from fastapi import FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from carbonx import __version__
from carbonx.errors import InvalidRequirement, LedgerError, ResultNotFound, Unauthorized
from carbonx.ledger.node import LedgerNode
from carbonx.ledger.schemas import (
    ExpiryUpdate,
    KYCRespondRequest,
    KYCTaskRequest,
    LedgerInfo,
    MineRequest,
    ProjectRespondRequest,
    ProjectSubmitRequest,
    RegistryUpdate,
    RevokeRequest,
    TaskCreated,
)
from carbonx.protocol import (
    Address,
    KYCLevel,
    KYCResponse,
    KYCResult,
    KYCTask,
    LedgerEvent,
    ProjectResponse,
    ProjectResult,
    ProjectSubmission,
    TaskCategoryName,
)
from carbonx.signing import kyc_request_digest, project_request_digest, verify_signer


def create_app(node: LedgerNode, *, admin_token: str = "", cors_origins: Optional[List[str]] = None) -> FastAPI:
    app = FastAPI(title="CarbonX Ledger", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.node = node

    @app.exception_handler(LedgerError)
    async def _ledger_error(_request: Request, exc: LedgerError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})

    def _require_admin(token: Optional[str]) -> None:
        if not admin_token:
            raise Unauthorized("admin endpoints are disabled (no admin token configured)")
        if not token or not hmac.compare_digest(token, admin_token):
            raise Unauthorized("invalid admin token")

    # -- chain info --------------------------------------------------------

    @app.get("/healthz")
    def healthz():
        return {"ok": True, "address": node.address, "position": node.position}

    @app.get("/ledger", response_model=LedgerInfo)
    def ledger_info():
        return LedgerInfo(
            address=node.address,
            position=node.position,
            expiry_blocks=node.store.expiry_blocks,
            latest_kyc_task=node.kyc.latest_task_num(),
            latest_project_task=node.projects.latest_task_num(),
        )

    @app.get("/events", response_model=list[LedgerEvent])
    def events(
        category: Optional[TaskCategoryName] = None,
        name: Optional[str] = None,
        from_position: int = 0,
        to_position: Optional[int] = None,
    ):
        return node.store.events(
            category=category,
            name=name,
            from_position=from_position,
            to_position=to_position,
        )

    @app.get("/operators/{address}")
    def is_operator(address: Address):
        return {"address": address, "is_operator": node.queries.is_operator(address)}

    # -- identity tasks ----------------------------------------------------

    @app.post("/kyc/tasks", response_model=TaskCreated)
    def create_kyc_task(req: KYCTaskRequest):
        requester = req.requester or req.user
        try:
            digest = kyc_request_digest(requester, req.user, req.required_level, req.request_id, node.address)
        except EncodingError as exc:
            raise InvalidRequirement(f"request cannot be encoded: {exc}") from exc
        verify_signer(digest, req.signature, requester)

        task_id = node.kyc.create_task(req.user, req.required_level, req.request_id, requester=requester)
        task = node.kyc.get_task(task_id)
        return TaskCreated(category="kyc", task_id=task_id, request_id=task.request_id, position=task.created_at)

    @app.get("/kyc/tasks/{task_id}", response_model=KYCTask)
    def get_kyc_task(task_id: int):
        return node.kyc.get_task(task_id)

    @app.post("/kyc/tasks/{task_id}/respond", response_model=KYCResult)
    def respond_kyc_task(task_id: int, req: KYCRespondRequest):
        response = KYCResponse(achieved_level=req.achieved_level, ipfs_hash=req.ipfs_hash)
        return node.kyc.respond_to_task(task_id, req.operator, response, req.signature)

    @app.get("/kyc/latest")
    def latest_kyc_task():
        return {"latest_task_num": node.kyc.latest_task_num()}

    @app.get("/kyc/results/{subject}", response_model=KYCResult)
    def get_kyc_result(subject: Address):
        result = node.queries.get_result(subject)
        if result is None:
            raise ResultNotFound(f"{subject} has no KYC result")
        return result

    @app.get("/kyc/results/{subject}/valid")
    def has_valid_kyc(subject: Address, min_level: int = Query(default=int(KYCLevel.BASIC), ge=0, le=4)):
        return {"subject": subject, "min_level": int(min_level), "valid": node.queries.has_valid(subject, min_level)}

    @app.get("/kyc/results/{subject}/level")
    def current_kyc_level(subject: Address):
        level = node.queries.current_level(subject)
        return {"subject": subject, "level": int(level), "name": level.name}

    # -- project tasks -----------------------------------------------------

    @app.post("/projects/tasks", response_model=TaskCreated)
    def submit_project(req: ProjectSubmitRequest):
        try:
            digest = project_request_digest(
                req.owner, req.name, req.registry_id, req.estimated_credits, req.request_id, node.address
            )
        except EncodingError as exc:
            raise InvalidRequirement(f"request cannot be encoded: {exc}") from exc
        verify_signer(digest, req.signature, req.owner)

        task_id = node.projects.submit_project(
            req.owner,
            name=req.name,
            estimated_credits=req.estimated_credits,
            category=req.category,
            methodology=req.methodology,
            registry=req.registry,
            registry_id=req.registry_id,
            location=req.location,
            vintage=req.vintage,
            documentation_uri=req.documentation_uri,
            request_id=req.request_id,
        )
        task = node.projects.get_task(task_id)
        return TaskCreated(category="project", task_id=task_id, request_id=task.request_id, position=task.created_at)

    @app.get("/projects/tasks/{task_id}", response_model=ProjectSubmission)
    def get_submission(task_id: int):
        return node.queries.get_submission(task_id)

    @app.post("/projects/tasks/{task_id}/respond", response_model=ProjectResult)
    def respond_project_task(task_id: int, req: ProjectRespondRequest):
        response = ProjectResponse(
            status=req.status,
            quality_score=req.quality_score,
            verified_credits=req.verified_credits,
            verification_uri=req.verification_uri,
        )
        return node.projects.respond_to_task(task_id, req.operator, response, req.signature)

    @app.get("/projects/latest")
    def latest_project_task():
        return {"latest_task_num": node.projects.latest_task_num()}

    @app.get("/projects/results/{task_id}", response_model=ProjectResult)
    def get_verification_result(task_id: int):
        result = node.queries.get_verification_result(task_id)
        if result is None:
            raise ResultNotFound(f"project task {task_id} has no verification result")
        return result

    @app.get("/projects/results/{task_id}/can-mint")
    def can_mint_tokens(task_id: int):
        return {"task_id": task_id, "can_mint": node.queries.can_mint_tokens(task_id)}

    # -- owner policy ------------------------------------------------------

    @app.post("/admin/expiry")
    def set_expiry(req: ExpiryUpdate, x_ledger_admin_token: Optional[str] = Header(default=None)):
        _require_admin(x_ledger_admin_token)
        node.set_expiry_blocks(req.blocks)
        return {"ok": True, "expiry_blocks": node.store.expiry_blocks}

    @app.post("/admin/revoke", response_model=KYCResult)
    def revoke(req: RevokeRequest, x_ledger_admin_token: Optional[str] = Header(default=None)):
        _require_admin(x_ledger_admin_token)
        return node.revoke(req.user, req.reason)

    @app.post("/admin/requesters")
    def set_requester(req: RegistryUpdate, x_ledger_admin_token: Optional[str] = Header(default=None)):
        _require_admin(x_ledger_admin_token)
        node.set_requester(req.address, req.enabled)
        return {"ok": True, "address": req.address, "enabled": req.enabled}

    @app.post("/admin/operators")
    def set_operator(req: RegistryUpdate, x_ledger_admin_token: Optional[str] = Header(default=None)):
        _require_admin(x_ledger_admin_token)
        node.set_operator(req.address, req.enabled)
        return {"ok": True, "address": req.address, "enabled": req.enabled}

    @app.post("/admin/mine")
    def mine(req: MineRequest, x_ledger_admin_token: Optional[str] = Header(default=None)):
        _require_admin(x_ledger_admin_token)
        return {"ok": True, "position": node.mine(req.blocks)}

    return app
