from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.domain.models import (
    ChatSession,
    ChecklistDraft,
    Checkout,
    Invoice,
    Message,
    NcDraft,
    PolicyDocument,
    SavedAudit,
    User,
)


# Every table keyed by user_id; logout removes the user's rows from each.
_OWNED_MODELS = (
    Message,
    ChatSession,
    PolicyDocument,
    ChecklistDraft,
    SavedAudit,
    NcDraft,
    Checkout,
    Invoice,
)


async def add_user(session: AsyncSession, user: User) -> User:
    session.add(user)
    return user


async def get_user(session: AsyncSession, user_id: str) -> User | None:
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_token_hash(session: AsyncSession, token_hash: str) -> User | None:
    result = await session.execute(select(User).where(User.token_hash == token_hash))
    return result.scalar_one_or_none()


async def delete_user_data(session: AsyncSession, user_id: str) -> None:
    # Delete owned rows explicitly; SQLite does not enforce FK cascades by default.
    for model in _OWNED_MODELS:
        await session.execute(delete(model).where(model.user_id == user_id))
    await session.execute(delete(User).where(User.id == user_id))
