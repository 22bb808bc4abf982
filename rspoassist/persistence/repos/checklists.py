from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.domain.models import ChecklistDraft, SavedAudit


async def get_draft(session: AsyncSession, user_id: str, standard_id: str) -> ChecklistDraft | None:
    result = await session.execute(
        select(ChecklistDraft).where(
            ChecklistDraft.user_id == user_id, ChecklistDraft.standard_id == standard_id
        )
    )
    return result.scalar_one_or_none()


async def upsert_draft(
    session: AsyncSession,
    *,
    user_id: str,
    standard_id: str,
    items: list[dict[str, Any]],
    audit_prompt: str | None,
) -> ChecklistDraft:
    # One autosave slot per standard; saving again overwrites it.
    draft = await get_draft(session, user_id, standard_id)
    if draft is None:
        draft = ChecklistDraft(id=uuid4().hex, user_id=user_id, standard_id=standard_id)
        session.add(draft)
    draft.items_json = items
    draft.audit_prompt = audit_prompt
    draft.saved_at = datetime.now(timezone.utc)
    return draft


async def delete_draft(session: AsyncSession, user_id: str, standard_id: str) -> None:
    await session.execute(
        delete(ChecklistDraft).where(
            ChecklistDraft.user_id == user_id, ChecklistDraft.standard_id == standard_id
        )
    )


async def create_audit(
    session: AsyncSession,
    *,
    user_id: str,
    name: str,
    standard_id: str,
    standard_short_name: str,
    items: list[dict[str, Any]],
    score: int,
    completion: int,
) -> SavedAudit:
    audit = SavedAudit(
        id=f"audit-{uuid4().hex}",
        user_id=user_id,
        name=name,
        standard_id=standard_id,
        standard_short_name=standard_short_name,
        items_json=items,
        score=score,
        completion=completion,
    )
    session.add(audit)
    return audit


async def list_audits(session: AsyncSession, user_id: str) -> list[SavedAudit]:
    result = await session.execute(
        select(SavedAudit)
        .where(SavedAudit.user_id == user_id)
        .order_by(SavedAudit.created_at.desc(), SavedAudit.id.desc())
    )
    return list(result.scalars().all())


async def get_audit(session: AsyncSession, user_id: str, audit_id: str) -> SavedAudit | None:
    result = await session.execute(
        select(SavedAudit).where(SavedAudit.id == audit_id, SavedAudit.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def delete_audit(session: AsyncSession, user_id: str, audit_id: str) -> bool:
    result = await session.execute(
        delete(SavedAudit).where(SavedAudit.id == audit_id, SavedAudit.user_id == user_id)
    )
    return bool(result.rowcount)
