from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
import json
import logging
from typing import Any, Sequence

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.agent.prompts import (
    CHECKLIST_SCHEMA,
    CLAUSE_SELECTION_SCHEMA,
    MAX_SELECTED_CLAUSES,
    build_checklist_prompt,
    build_clause_selection_prompt,
)
from rspoassist.core.config import get_settings
from rspoassist.core.errors import RspoAssistError
from rspoassist.domain.catalog import Clause, Standard, clauses_for_standard
from rspoassist.domain.models import ChecklistDraft, SavedAudit, User
from rspoassist.persistence.repos import checklists as checklists_repo
from rspoassist.providers.llm.base import GenerationRequest, LLMProvider, run_generation


logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_COMPLIANT = "compliant"
STATUS_NON_COMPLIANT = "non-compliant"
ITEM_STATUSES = (STATUS_PENDING, STATUS_COMPLIANT, STATUS_NON_COMPLIANT)
_NAME_PROMPT_CHARS = 30


@dataclass(frozen=True)
class ChecklistStats:
    total: int
    compliant: int
    non_compliant: int
    pending: int
    score: int
    completion: int

    def as_payload(self) -> dict[str, int]:
        return asdict(self)


def _round_half_up(value: float) -> int:
    # Match the usual percentage rounding (0.5 rounds up) instead of banker's rounding.
    return int(value + 0.5)


def compute_stats(items: Sequence[dict[str, Any]]) -> ChecklistStats:
    total = len(items)
    compliant = sum(1 for item in items if item.get("status") == STATUS_COMPLIANT)
    non_compliant = sum(1 for item in items if item.get("status") == STATUS_NON_COMPLIANT)
    pending = sum(1 for item in items if item.get("status") == STATUS_PENDING)
    audited = compliant + non_compliant
    score = _round_half_up(compliant / audited * 100) if audited else 0
    completion = _round_half_up(audited / total * 100) if total else 0
    return ChecklistStats(
        total=total,
        compliant=compliant,
        non_compliant=non_compliant,
        pending=pending,
        score=score,
        completion=completion,
    )


def _not_found(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "NOT_FOUND", "message": message},
    )


def _bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": "INVALID_INPUT", "message": message},
    )


def set_item_status(items: Sequence[dict[str, Any]], item_id: str, new_status: str) -> list[dict[str, Any]]:
    """Return a copy of ``items`` with one item's status applied.

    Choosing the status an item already has toggles it back to pending.
    """
    if new_status not in ITEM_STATUSES:
        raise _bad_request(f"Unsupported status: {new_status}")
    updated = []
    found = False
    for item in items:
        if item.get("id") == item_id:
            found = True
            current = item.get("status", STATUS_PENDING)
            item = {**item, "status": STATUS_PENDING if current == new_status else new_status}
        updated.append(item)
    if not found:
        raise _not_found(f"Checklist item not found: {item_id}")
    return updated


def set_item_notes(items: Sequence[dict[str, Any]], item_id: str, notes: str) -> list[dict[str, Any]]:
    updated = []
    found = False
    for item in items:
        if item.get("id") == item_id:
            found = True
            item = {**item, "notes": notes}
        updated.append(item)
    if not found:
        raise _not_found(f"Checklist item not found: {item_id}")
    return updated


def suggested_audit_name(standard: Standard, audit_prompt: str) -> str:
    suffix = "..." if len(audit_prompt) > _NAME_PROMPT_CHARS else ""
    return f"Audit: {standard.short_name} - {audit_prompt[:_NAME_PROMPT_CHARS]}{suffix}"


def _parse_json_list(text: str) -> list[Any]:
    parsed = json.loads(text or "[]")
    if not isinstance(parsed, list):
        raise ValueError("expected a JSON array")
    return parsed


async def select_relevant_clause_ids(
    provider: LLMProvider,
    audit_prompt: str,
    standard_id: str,
    *,
    request_id: str | None = None,
) -> list[str]:
    settings = get_settings()
    available = clauses_for_standard(standard_id)
    request = GenerationRequest(
        purpose="clause_selection",
        prompt=build_clause_selection_prompt(audit_prompt, available),
        model=settings.gemini_model,
        response_schema=CLAUSE_SELECTION_SCHEMA,
        request_id=request_id,
    )
    try:
        result = await run_generation(provider, request, settings.vertex_timeout_s)
        selected = [str(item) for item in _parse_json_list(result.text)]
    except (RspoAssistError, ValueError) as exc:
        # Fall back to the head of the standard so generation can still proceed.
        logger.warning("clause_selection_fallback request_id=%s error=%s", request_id, exc)
        return [clause.id for clause in available[:MAX_SELECTED_CLAUSES]]
    return selected[:MAX_SELECTED_CLAUSES]


async def generate_checkpoints(
    provider: LLMProvider,
    clauses: Sequence[Clause],
    language_code: str,
    audit_prompt: str | None,
    *,
    request_id: str | None = None,
) -> list[dict[str, str]]:
    settings = get_settings()
    request = GenerationRequest(
        purpose="checklist",
        prompt=build_checklist_prompt(clauses, language_code, audit_prompt),
        model=settings.gemini_model,
        response_schema=CHECKLIST_SCHEMA,
        request_id=request_id,
    )
    try:
        result = await run_generation(provider, request, settings.vertex_timeout_s)
        points = [
            {"clauseId": str(point["clauseId"]), "checkpoint": str(point["checkpoint"])}
            for point in _parse_json_list(result.text)
        ]
    except (RspoAssistError, ValueError, KeyError, TypeError) as exc:
        logger.warning("checklist_generation_fallback request_id=%s error=%s", request_id, exc)
        return [
            {"clauseId": clause.id, "checkpoint": f"Verify compliance with {clause.id}: {clause.title}"}
            for clause in clauses
        ]
    return points


async def generate_checklist(
    session: AsyncSession,
    user: User,
    provider: LLMProvider,
    standard: Standard,
    audit_prompt: str,
    *,
    now: datetime | None = None,
    request_id: str | None = None,
) -> tuple[ChecklistDraft, str]:
    if not audit_prompt or not audit_prompt.strip():
        raise _bad_request("Please describe your audit focus first.")

    selected_ids = await select_relevant_clause_ids(provider, audit_prompt, standard.id, request_id=request_id)
    relevant = [clause for clause in clauses_for_standard(standard.id) if clause.id in selected_ids]
    if not relevant:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "code": "NO_MATCHING_INDICATORS",
                "message": "No matching indicators found for this focus. Please try a different description.",
            },
        )

    language_code = (user.preferences_json or {}).get("language", "en")
    points = await generate_checkpoints(provider, relevant, language_code, audit_prompt, request_id=request_id)
    stamp = int((now or datetime.now(timezone.utc)).timestamp() * 1000)
    items = [
        {
            "id": f"chk-{stamp}-{idx}",
            "clause_id": point["clauseId"],
            "checkpoint": point["checkpoint"],
            "status": STATUS_PENDING,
            "notes": "",
        }
        for idx, point in enumerate(points)
    ]
    # The generated list becomes the working draft for this standard.
    draft = await checklists_repo.upsert_draft(
        session,
        user_id=user.id,
        standard_id=standard.id,
        items=items,
        audit_prompt=audit_prompt,
    )
    logger.info(
        "checklist_generated request_id=%s user_id=%s standard=%s clauses=%s items=%s",
        request_id,
        user.id,
        standard.id,
        len(relevant),
        len(items),
    )
    return draft, suggested_audit_name(standard, audit_prompt)


async def require_draft(session: AsyncSession, user: User, standard_id: str) -> ChecklistDraft:
    draft = await checklists_repo.get_draft(session, user.id, standard_id)
    if draft is None:
        raise _not_found(f"No checklist draft saved for standard {standard_id}")
    return draft


async def require_audit(session: AsyncSession, user: User, audit_id: str) -> SavedAudit:
    audit = await checklists_repo.get_audit(session, user.id, audit_id)
    if audit is None:
        raise _not_found(f"Audit not found: {audit_id}")
    return audit


async def finalize_draft(
    session: AsyncSession,
    user: User,
    standard: Standard,
    name: str,
) -> SavedAudit:
    if not name or not name.strip():
        raise _bad_request("Please provide a name for this audit record.")
    draft = await require_draft(session, user, standard.id)
    items = list(draft.items_json or [])
    stats = compute_stats(items)
    audit = await checklists_repo.create_audit(
        session,
        user_id=user.id,
        name=name.strip(),
        standard_id=standard.id,
        standard_short_name=standard.short_name,
        items=items,
        score=stats.score,
        completion=stats.completion,
    )
    await checklists_repo.delete_draft(session, user.id, standard.id)
    logger.info(
        "audit_finalized user_id=%s audit_id=%s score=%s completion=%s",
        user.id,
        audit.id,
        stats.score,
        stats.completion,
    )
    return audit


def apply_audit_items(audit: SavedAudit, items: list[dict[str, Any]]) -> SavedAudit:
    # Saved audits keep score and completion in sync with their items.
    stats = compute_stats(items)
    audit.items_json = items
    audit.score = stats.score
    audit.completion = stats.completion
    return audit
