from __future__ import annotations

from typing import Any
from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.domain.models import ChatSession


async def create_chat_session(
    session: AsyncSession,
    *,
    user_id: str,
    title: str,
    standard_short_name: str,
    messages: list[dict[str, Any]],
) -> ChatSession:
    chat_session = ChatSession(
        id=uuid4().hex,
        user_id=user_id,
        title=title,
        standard_short_name=standard_short_name,
        messages_json=messages,
    )
    session.add(chat_session)
    return chat_session


async def list_chat_sessions(session: AsyncSession, user_id: str) -> list[ChatSession]:
    # Newest first, matching the history drawer ordering.
    result = await session.execute(
        select(ChatSession)
        .where(ChatSession.user_id == user_id)
        .order_by(ChatSession.created_at.desc(), ChatSession.id.desc())
    )
    return list(result.scalars().all())


async def get_chat_session(session: AsyncSession, user_id: str, session_id: str) -> ChatSession | None:
    # Return None for other users' sessions to keep 404 semantics.
    result = await session.execute(
        select(ChatSession).where(ChatSession.id == session_id, ChatSession.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def delete_chat_sessions(session: AsyncSession, user_id: str) -> None:
    await session.execute(delete(ChatSession).where(ChatSession.user_id == user_id))
