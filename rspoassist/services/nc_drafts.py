from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json
import logging
from uuid import uuid4

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.agent.prompts import NC_DRAFT_SCHEMA, build_nc_draft_prompt
from rspoassist.core.config import get_settings
from rspoassist.core.errors import GenerationError, RspoAssistError
from rspoassist.domain.catalog import Standard
from rspoassist.domain.models import NcDraft, User
from rspoassist.persistence.repos import documents as documents_repo
from rspoassist.persistence.repos import nc_drafts as nc_drafts_repo
from rspoassist.providers.llm.base import GenerationRequest, LLMProvider, run_generation


logger = logging.getLogger(__name__)

STATUS_DRAFT = "Draft"
STATUS_FINALIZED = "Finalized"
NC_DRAFT_FAILURE_MESSAGE = "Failed to generate professional NC draft."

# Model JSON keys mapped onto record columns.
_FIELD_COLUMNS = {
    "observation": "observation",
    "requirement": "requirement",
    "rootCause": "root_cause",
    "correctiveAction": "corrective_action",
    "preventionPlan": "prevention_plan",
}
EDITABLE_FIELDS = ("original_finding", *_FIELD_COLUMNS.values())


@dataclass(frozen=True)
class GeneratedNcDraft:
    id: str
    original_finding: str
    standard_short_name: str
    observation: str
    requirement: str
    root_cause: str
    corrective_action: str
    prevention_plan: str
    created_at: datetime
    status: str = STATUS_DRAFT


def _bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": "INVALID_INPUT", "message": message},
    )


async def generate_nc_draft(
    session: AsyncSession,
    user: User,
    provider: LLMProvider,
    standard: Standard,
    finding: str,
    *,
    now: datetime | None = None,
    request_id: str | None = None,
) -> GeneratedNcDraft:
    if not finding or not finding.strip():
        raise _bad_request("Audit finding text is required")
    settings = get_settings()
    policies = await documents_repo.list_documents(session, user.id)
    language_code = (user.preferences_json or {}).get("language", "en")
    request = GenerationRequest(
        purpose="nc_draft",
        prompt=build_nc_draft_prompt(finding, standard, language_code, policies),
        model=settings.gemini_model,
        response_schema=NC_DRAFT_SCHEMA,
        request_id=request_id,
    )
    try:
        result = await run_generation(provider, request, settings.vertex_timeout_s)
        payload = json.loads(result.text or "{}")
        if not isinstance(payload, dict):
            raise ValueError("expected a JSON object")
    except (RspoAssistError, ValueError) as exc:
        logger.warning("nc_draft_failed request_id=%s user_id=%s error=%s", request_id, user.id, exc)
        raise GenerationError(NC_DRAFT_FAILURE_MESSAGE) from exc

    created = now or datetime.now(timezone.utc)
    logger.info("nc_draft_generated request_id=%s user_id=%s standard=%s", request_id, user.id, standard.id)
    return GeneratedNcDraft(
        id=f"nc-{int(created.timestamp() * 1000)}-{uuid4().hex[:6]}",
        original_finding=finding,
        standard_short_name=standard.short_name,
        created_at=created,
        **{column: str(payload.get(key) or "") for key, column in _FIELD_COLUMNS.items()},
    )


async def save_nc_draft(
    session: AsyncSession,
    user: User,
    record: dict[str, str],
    *,
    finalize: bool = False,
) -> NcDraft:
    """Insert or update a draft record; ``finalize`` marks it Finalized."""
    draft_id = record.get("id")
    if not draft_id:
        raise _bad_request("Draft id is required")
    draft = await nc_drafts_repo.get_nc_draft(session, user.id, draft_id)
    if draft is None:
        draft = NcDraft(
            id=draft_id,
            user_id=user.id,
            standard_short_name=record.get("standard_short_name") or "",
        )
        await nc_drafts_repo.add_nc_draft(session, draft)
    for field in EDITABLE_FIELDS:
        if field in record and record[field] is not None:
            setattr(draft, field, record[field])
    for field in EDITABLE_FIELDS:
        if getattr(draft, field, None) is None:
            setattr(draft, field, "")
    if record.get("standard_short_name"):
        draft.standard_short_name = record["standard_short_name"]
    draft.status = STATUS_FINALIZED if finalize else STATUS_DRAFT
    draft.updated_at = datetime.now(timezone.utc)
    logger.info("nc_draft_saved user_id=%s draft_id=%s status=%s", user.id, draft.id, draft.status)
    return draft

