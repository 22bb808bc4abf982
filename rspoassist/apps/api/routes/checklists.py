from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.apps.api.deps import commit_or_raise, get_db, get_llm, require_premium
from rspoassist.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from rspoassist.apps.api.response import SuccessEnvelope, get_request_id, html_export, success_response
from rspoassist.domain.catalog import Standard, get_standard
from rspoassist.domain.models import ChecklistDraft, SavedAudit, User
from rspoassist.persistence.repos import checklists as checklists_repo
from rspoassist.providers.llm.base import LLMProvider
from rspoassist.services.checklists import (
    STATUS_PENDING,
    apply_audit_items,
    compute_stats,
    finalize_draft,
    generate_checklist,
    require_audit,
    require_draft,
    set_item_notes,
    set_item_status,
    suggested_audit_name,
)
from rspoassist.services.entitlements import FEATURE_CHECKLIST
from rspoassist.services.reports import render_audit_report


router = APIRouter(prefix="/checklists", tags=["checklists"], responses=DEFAULT_ERROR_RESPONSES)

_premium_user = require_premium(FEATURE_CHECKLIST)


class ChecklistItem(BaseModel):
    id: str
    clause_id: str
    checkpoint: str
    status: str = STATUS_PENDING
    notes: str = ""


class ChecklistStatsResponse(BaseModel):
    total: int
    compliant: int
    non_compliant: int
    pending: int
    score: int
    completion: int


class DraftResponse(BaseModel):
    standard_id: str
    audit_prompt: str | None
    items: list[ChecklistItem]
    saved_at: str
    stats: ChecklistStatsResponse


class GenerateRequest(BaseModel):
    audit_prompt: str
    # Defaults to the user's active standard.
    standard_id: str | None = None

    model_config = {
        "extra": "forbid",
        "json_schema_extra": {
            "examples": [{"audit_prompt": "Peatland drainage and fire prevention", "standard_id": "pc2018"}]
        },
    }


class GenerateResponse(BaseModel):
    draft: DraftResponse
    suggested_name: str


class DraftSaveRequest(BaseModel):
    items: list[ChecklistItem]
    audit_prompt: str | None = None


class ItemStatusRequest(BaseModel):
    status: str


class ItemNotesRequest(BaseModel):
    notes: str = ""


class FinalizeRequest(BaseModel):
    name: str


class AuditResponse(BaseModel):
    id: str
    name: str
    standard_id: str
    standard_short_name: str
    items: list[ChecklistItem]
    score: int
    completion: int
    stats: ChecklistStatsResponse
    created_at: str
    updated_at: str


class AuditSummary(BaseModel):
    id: str
    name: str
    standard_short_name: str
    score: int
    completion: int
    created_at: str


class AuditUpdateRequest(BaseModel):
    name: str | None = None
    items: list[ChecklistItem] | None = None

    model_config = {"extra": "forbid"}


class DeletedResponse(BaseModel):
    id: str
    deleted: bool


def _stats(items: list[dict[str, Any]]) -> ChecklistStatsResponse:
    return ChecklistStatsResponse(**compute_stats(items).as_payload())


def _draft_response(draft: ChecklistDraft) -> DraftResponse:
    items = list(draft.items_json or [])
    return DraftResponse(
        standard_id=draft.standard_id,
        audit_prompt=draft.audit_prompt,
        items=[ChecklistItem(**item) for item in items],
        saved_at=draft.saved_at.isoformat(),
        stats=_stats(items),
    )


def _audit_response(audit: SavedAudit) -> AuditResponse:
    items = list(audit.items_json or [])
    return AuditResponse(
        id=audit.id,
        name=audit.name,
        standard_id=audit.standard_id,
        standard_short_name=audit.standard_short_name,
        items=[ChecklistItem(**item) for item in items],
        score=audit.score,
        completion=audit.completion,
        stats=_stats(items),
        created_at=audit.created_at.isoformat(),
        updated_at=audit.updated_at.isoformat(),
    )


def _require_standard(standard_id: str) -> Standard:
    standard = get_standard(standard_id)
    if standard is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "NOT_FOUND", "message": f"Unknown standard: {standard_id}"},
        )
    return standard


async def _save_draft_items(
    db: AsyncSession, user: User, draft: ChecklistDraft, items: list[dict[str, Any]]
) -> ChecklistDraft:
    return await checklists_repo.upsert_draft(
        db,
        user_id=user.id,
        standard_id=draft.standard_id,
        items=items,
        audit_prompt=draft.audit_prompt,
    )


@router.post("/generate", response_model=SuccessEnvelope[GenerateResponse])
async def generate(
    request: Request,
    payload: GenerateRequest,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
    provider: LLMProvider = Depends(get_llm),
) -> dict:
    standard = _require_standard(payload.standard_id or user.active_standard_id)
    draft, suggested_name = await generate_checklist(
        db,
        user,
        provider,
        standard,
        payload.audit_prompt,
        request_id=get_request_id(request),
    )
    await commit_or_raise(db, action="saving generated checklist")
    data = GenerateResponse(draft=_draft_response(draft), suggested_name=suggested_name)
    return success_response(request=request, data=data)


@router.get("/drafts/{standard_id}", response_model=SuccessEnvelope[DraftResponse])
async def get_draft(
    request: Request,
    standard_id: str,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    _require_standard(standard_id)
    draft = await require_draft(db, user, standard_id)
    return success_response(request=request, data=_draft_response(draft))


@router.put("/drafts/{standard_id}", response_model=SuccessEnvelope[DraftResponse])
async def save_draft(
    request: Request,
    standard_id: str,
    payload: DraftSaveRequest,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    _require_standard(standard_id)
    draft = await checklists_repo.upsert_draft(
        db,
        user_id=user.id,
        standard_id=standard_id,
        items=[item.model_dump() for item in payload.items],
        audit_prompt=payload.audit_prompt,
    )
    await commit_or_raise(db, action="saving checklist draft")
    return success_response(request=request, data=_draft_response(draft))


@router.delete("/drafts/{standard_id}", response_model=SuccessEnvelope[DeletedResponse])
async def reset_draft(
    request: Request,
    standard_id: str,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    _require_standard(standard_id)
    await checklists_repo.delete_draft(db, user.id, standard_id)
    await commit_or_raise(db, action="resetting checklist draft")
    return success_response(request=request, data=DeletedResponse(id=standard_id, deleted=True))


@router.post(
    "/drafts/{standard_id}/items/{item_id}/status",
    response_model=SuccessEnvelope[DraftResponse],
)
async def set_draft_item_status(
    request: Request,
    standard_id: str,
    item_id: str,
    payload: ItemStatusRequest,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    draft = await require_draft(db, user, standard_id)
    items = set_item_status(draft.items_json or [], item_id, payload.status)
    draft = await _save_draft_items(db, user, draft, items)
    await commit_or_raise(db, action="updating checklist item")
    return success_response(request=request, data=_draft_response(draft))


@router.put(
    "/drafts/{standard_id}/items/{item_id}/notes",
    response_model=SuccessEnvelope[DraftResponse],
)
async def set_draft_item_notes(
    request: Request,
    standard_id: str,
    item_id: str,
    payload: ItemNotesRequest,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    draft = await require_draft(db, user, standard_id)
    items = set_item_notes(draft.items_json or [], item_id, payload.notes)
    draft = await _save_draft_items(db, user, draft, items)
    await commit_or_raise(db, action="updating checklist notes")
    return success_response(request=request, data=_draft_response(draft))


@router.post(
    "/drafts/{standard_id}/finalize",
    status_code=201,
    response_model=SuccessEnvelope[AuditResponse],
)
async def finalize(
    request: Request,
    standard_id: str,
    payload: FinalizeRequest,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    standard = _require_standard(standard_id)
    audit = await finalize_draft(db, user, standard, payload.name)
    await commit_or_raise(db, action="finalizing audit")
    return success_response(request=request, data=_audit_response(audit))


@router.get("/drafts/{standard_id}/report", response_class=HTMLResponse)
async def draft_report(
    standard_id: str,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> HTMLResponse:
    standard = _require_standard(standard_id)
    draft = await require_draft(db, user, standard_id)
    items = list(draft.items_json or [])
    stats = compute_stats(items)
    content = render_audit_report(
        name=suggested_audit_name(standard, draft.audit_prompt or ""),
        standard_short_name=standard.short_name,
        items=items,
        score=stats.score,
        completion=stats.completion,
        lead_auditor=user.name,
        generated_at=datetime.now(timezone.utc),
    )
    return html_export(content=content, filename=f"checklist-{standard_id}.html")


@router.get("/audits", response_model=SuccessEnvelope[list[AuditSummary]])
async def list_audits(
    request: Request,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    audits = await checklists_repo.list_audits(db, user.id)
    data = [
        AuditSummary(
            id=audit.id,
            name=audit.name,
            standard_short_name=audit.standard_short_name,
            score=audit.score,
            completion=audit.completion,
            created_at=audit.created_at.isoformat(),
        )
        for audit in audits
    ]
    return success_response(request=request, data=data)


@router.get("/audits/{audit_id}", response_model=SuccessEnvelope[AuditResponse])
async def get_audit(
    request: Request,
    audit_id: str,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    audit = await require_audit(db, user, audit_id)
    return success_response(request=request, data=_audit_response(audit))


@router.patch("/audits/{audit_id}", response_model=SuccessEnvelope[AuditResponse])
async def update_audit(
    request: Request,
    audit_id: str,
    payload: AuditUpdateRequest,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    audit = await require_audit(db, user, audit_id)
    if payload.name is not None:
        if not payload.name.strip():
            raise HTTPException(
                status_code=400,
                detail={"code": "INVALID_INPUT", "message": "Audit name cannot be empty"},
            )
        audit.name = payload.name.strip()
    if payload.items is not None:
        apply_audit_items(audit, [item.model_dump() for item in payload.items])
    await commit_or_raise(db, action="updating audit")
    return success_response(request=request, data=_audit_response(audit))


@router.post(
    "/audits/{audit_id}/items/{item_id}/status",
    response_model=SuccessEnvelope[AuditResponse],
)
async def set_audit_item_status(
    request: Request,
    audit_id: str,
    item_id: str,
    payload: ItemStatusRequest,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    audit = await require_audit(db, user, audit_id)
    apply_audit_items(audit, set_item_status(audit.items_json or [], item_id, payload.status))
    await commit_or_raise(db, action="updating audit item")
    return success_response(request=request, data=_audit_response(audit))


@router.put(
    "/audits/{audit_id}/items/{item_id}/notes",
    response_model=SuccessEnvelope[AuditResponse],
)
async def set_audit_item_notes(
    request: Request,
    audit_id: str,
    item_id: str,
    payload: ItemNotesRequest,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    audit = await require_audit(db, user, audit_id)
    apply_audit_items(audit, set_item_notes(audit.items_json or [], item_id, payload.notes))
    await commit_or_raise(db, action="updating audit notes")
    return success_response(request=request, data=_audit_response(audit))


@router.delete("/audits/{audit_id}", response_model=SuccessEnvelope[DeletedResponse])
async def delete_audit(
    request: Request,
    audit_id: str,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    deleted = await checklists_repo.delete_audit(db, user.id, audit_id)
    if not deleted:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": f"Audit not found: {audit_id}"})
    await commit_or_raise(db, action="deleting audit")
    return success_response(request=request, data=DeletedResponse(id=audit_id, deleted=True))


@router.get("/audits/{audit_id}/report", response_class=HTMLResponse)
async def audit_report(
    audit_id: str,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> HTMLResponse:
    audit = await require_audit(db, user, audit_id)
    content = render_audit_report(
        name=audit.name,
        standard_short_name=audit.standard_short_name,
        items=list(audit.items_json or []),
        score=audit.score,
        completion=audit.completion,
        lead_auditor=user.name,
        generated_at=datetime.now(timezone.utc),
    )
    return html_export(content=content, filename=f"{audit.id}.html")
