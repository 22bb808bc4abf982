from __future__ import annotations

from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.domain.models import PolicyDocument


async def create_document(
    session: AsyncSession,
    *,
    user_id: str,
    name: str,
    doc_type: str,
    content: str,
    file_preview: str | None = None,
) -> PolicyDocument:
    doc = PolicyDocument(
        id=uuid4().hex,
        user_id=user_id,
        name=name,
        doc_type=doc_type,
        content=content,
        file_preview=file_preview,
    )
    session.add(doc)
    return doc


async def list_documents(session: AsyncSession, user_id: str) -> list[PolicyDocument]:
    result = await session.execute(
        select(PolicyDocument)
        .where(PolicyDocument.user_id == user_id)
        .order_by(PolicyDocument.upload_date, PolicyDocument.id)
    )
    return list(result.scalars().all())


async def get_document(session: AsyncSession, user_id: str, document_id: str) -> PolicyDocument | None:
    result = await session.execute(
        select(PolicyDocument).where(
            PolicyDocument.id == document_id, PolicyDocument.user_id == user_id
        )
    )
    return result.scalar_one_or_none()


async def delete_document(session: AsyncSession, user_id: str, document_id: str) -> bool:
    result = await session.execute(
        delete(PolicyDocument).where(
            PolicyDocument.id == document_id, PolicyDocument.user_id == user_id
        )
    )
    return bool(result.rowcount)
