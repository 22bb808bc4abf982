from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.apps.api.deps import commit_or_raise, get_db, get_llm, require_premium
from rspoassist.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from rspoassist.apps.api.response import SuccessEnvelope, get_request_id, html_export, success_response
from rspoassist.domain.catalog import DEFAULT_STANDARD_ID, get_standard
from rspoassist.domain.models import NcDraft, User
from rspoassist.persistence.repos import nc_drafts as nc_drafts_repo
from rspoassist.providers.llm.base import LLMProvider
from rspoassist.services.entitlements import FEATURE_NC_DRAFTER
from rspoassist.services.nc_drafts import STATUS_FINALIZED, generate_nc_draft, save_nc_draft
from rspoassist.services.reports import render_nc_report


router = APIRouter(prefix="/nc-drafts", tags=["nc-drafts"], responses=DEFAULT_ERROR_RESPONSES)

_premium_user = require_premium(FEATURE_NC_DRAFTER)


class NcDraftResponse(BaseModel):
    id: str
    original_finding: str
    standard_short_name: str
    observation: str
    requirement: str
    root_cause: str
    corrective_action: str
    prevention_plan: str
    status: str
    created_at: str
    updated_at: str | None = None


class GenerateRequest(BaseModel):
    finding: str
    standard_id: str | None = None

    model_config = {
        "extra": "forbid",
        "json_schema_extra": {
            "examples": [
                {
                    "finding": "Drainage canals were observed on peat areas planted in 2019.",
                    "standard_id": "pc2018",
                }
            ]
        },
    }


class NcDraftRecord(BaseModel):
    id: str
    original_finding: str | None = None
    standard_short_name: str | None = None
    observation: str | None = None
    requirement: str | None = None
    root_cause: str | None = None
    corrective_action: str | None = None
    prevention_plan: str | None = None

    model_config = {"extra": "forbid"}


class NcDraftUpdate(BaseModel):
    original_finding: str | None = None
    observation: str | None = None
    requirement: str | None = None
    root_cause: str | None = None
    corrective_action: str | None = None
    prevention_plan: str | None = None

    model_config = {"extra": "forbid"}


class DeletedResponse(BaseModel):
    id: str
    deleted: bool


def _to_response(draft: NcDraft) -> NcDraftResponse:
    return NcDraftResponse(
        id=draft.id,
        original_finding=draft.original_finding,
        standard_short_name=draft.standard_short_name,
        observation=draft.observation,
        requirement=draft.requirement,
        root_cause=draft.root_cause,
        corrective_action=draft.corrective_action,
        prevention_plan=draft.prevention_plan,
        status=draft.status,
        created_at=draft.created_at.isoformat(),
        updated_at=draft.updated_at.isoformat() if draft.updated_at else None,
    )


async def _require_nc_draft(db: AsyncSession, user: User, draft_id: str) -> NcDraft:
    draft = await nc_drafts_repo.get_nc_draft(db, user.id, draft_id)
    if draft is None:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": "NC draft not found"})
    return draft


@router.post("/generate", response_model=SuccessEnvelope[NcDraftResponse])
async def generate(
    request: Request,
    payload: GenerateRequest,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
    provider: LLMProvider = Depends(get_llm),
) -> dict:
    standard_id = payload.standard_id or user.active_standard_id
    standard = get_standard(standard_id) or get_standard(DEFAULT_STANDARD_ID)
    # Generation returns an unsaved draft; clients save or finalize it explicitly.
    generated = await generate_nc_draft(
        db,
        user,
        provider,
        standard,
        payload.finding,
        request_id=get_request_id(request),
    )
    data = NcDraftResponse(
        id=generated.id,
        original_finding=generated.original_finding,
        standard_short_name=generated.standard_short_name,
        observation=generated.observation,
        requirement=generated.requirement,
        root_cause=generated.root_cause,
        corrective_action=generated.corrective_action,
        prevention_plan=generated.prevention_plan,
        status=generated.status,
        created_at=generated.created_at.isoformat(),
    )
    return success_response(request=request, data=data)


@router.post("", response_model=SuccessEnvelope[NcDraftResponse])
async def save(
    request: Request,
    payload: NcDraftRecord,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    draft = await save_nc_draft(db, user, payload.model_dump())
    await commit_or_raise(db, action="saving NC draft")
    return success_response(request=request, data=_to_response(draft))


@router.post("/finalize", response_model=SuccessEnvelope[NcDraftResponse])
async def finalize(
    request: Request,
    payload: NcDraftRecord,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    draft = await save_nc_draft(db, user, payload.model_dump(), finalize=True)
    await commit_or_raise(db, action="finalizing NC draft")
    return success_response(request=request, data=_to_response(draft))


@router.get("", response_model=SuccessEnvelope[list[NcDraftResponse]])
async def list_drafts(
    request: Request,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    drafts = await nc_drafts_repo.list_nc_drafts(db, user.id)
    return success_response(request=request, data=[_to_response(draft) for draft in drafts])


@router.get("/{draft_id}", response_model=SuccessEnvelope[NcDraftResponse])
async def get_draft(
    request: Request,
    draft_id: str,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    draft = await _require_nc_draft(db, user, draft_id)
    return success_response(request=request, data=_to_response(draft))


@router.patch("/{draft_id}", response_model=SuccessEnvelope[NcDraftResponse])
async def update_draft(
    request: Request,
    draft_id: str,
    payload: NcDraftUpdate,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    existing = await _require_nc_draft(db, user, draft_id)
    record = {"id": draft_id, **payload.model_dump(exclude_unset=True)}
    # Editing keeps the record's current status.
    draft = await save_nc_draft(db, user, record, finalize=existing.status == STATUS_FINALIZED)
    await commit_or_raise(db, action="updating NC draft")
    return success_response(request=request, data=_to_response(draft))


@router.delete("/{draft_id}", response_model=SuccessEnvelope[DeletedResponse])
async def delete_draft(
    request: Request,
    draft_id: str,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    deleted = await nc_drafts_repo.delete_nc_draft(db, user.id, draft_id)
    if not deleted:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": "NC draft not found"})
    await commit_or_raise(db, action="deleting NC draft")
    return success_response(request=request, data=DeletedResponse(id=draft_id, deleted=True))


@router.get("/{draft_id}/report", response_class=HTMLResponse)
async def draft_report(
    draft_id: str,
    user: User = Depends(_premium_user),
    db: AsyncSession = Depends(get_db),
) -> HTMLResponse:
    draft = await _require_nc_draft(db, user, draft_id)
    content = render_nc_report(
        draft,
        auditee=user.organization or user.name,
        generated_at=datetime.now(timezone.utc),
    )
    return html_export(content=content, filename=f"{draft.id}.html")
