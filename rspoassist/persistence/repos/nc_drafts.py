from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.domain.models import NcDraft


async def get_nc_draft(session: AsyncSession, user_id: str, draft_id: str) -> NcDraft | None:
    result = await session.execute(
        select(NcDraft).where(NcDraft.id == draft_id, NcDraft.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def add_nc_draft(session: AsyncSession, draft: NcDraft) -> NcDraft:
    session.add(draft)
    return draft


async def list_nc_drafts(session: AsyncSession, user_id: str) -> list[NcDraft]:
    # Most recently saved first, like the drafter history view.
    result = await session.execute(
        select(NcDraft)
        .where(NcDraft.user_id == user_id)
        .order_by(NcDraft.updated_at.desc(), NcDraft.id.desc())
    )
    return list(result.scalars().all())


async def delete_nc_draft(session: AsyncSession, user_id: str, draft_id: str) -> bool:
    result = await session.execute(
        delete(NcDraft).where(NcDraft.id == draft_id, NcDraft.user_id == user_id)
    )
    return bool(result.rowcount)
