from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.domain.models import Message


async def list_messages(session: AsyncSession, user_id: str) -> list[Message]:
    result = await session.execute(
        select(Message).where(Message.user_id == user_id).order_by(Message.seq.asc())
    )
    return list(result.scalars().all())


async def _next_seq(session: AsyncSession, user_id: str) -> int:
    # Autoflush makes pending messages visible, so appends in one transaction stay ordered.
    result = await session.execute(
        select(func.max(Message.seq)).where(Message.user_id == user_id)
    )
    current = result.scalar()
    return 0 if current is None else int(current) + 1


async def add_message(
    session: AsyncSession,
    *,
    user_id: str,
    role: str,
    content: str,
    options: list[dict[str, Any]] | None = None,
    is_nc_draft: bool = False,
    show_nc_draft_link: bool = False,
    grounding_urls: list[str] | None = None,
    created_at: datetime | None = None,
    message_id: str | None = None,
) -> Message:
    message = Message(
        id=message_id or uuid4().hex,
        user_id=user_id,
        seq=await _next_seq(session, user_id),
        role=role,
        content=content,
        options_json=options,
        is_nc_draft=is_nc_draft,
        show_nc_draft_link=show_nc_draft_link,
        grounding_urls_json=grounding_urls,
    )
    if created_at is not None:
        message.created_at = created_at
    session.add(message)
    await session.flush()
    return message


async def clear_last_options(session: AsyncSession, user_id: str) -> None:
    # Quick replies are only actionable on the newest message.
    result = await session.execute(
        select(Message)
        .where(Message.user_id == user_id)
        .order_by(Message.seq.desc())
        .limit(1)
    )
    last = result.scalar_one_or_none()
    if last is not None and last.options_json is not None:
        last.options_json = None


async def delete_messages(session: AsyncSession, user_id: str) -> None:
    await session.execute(delete(Message).where(Message.user_id == user_id))
