from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.apps.api.deps import commit_or_raise, get_current_user, get_db
from rspoassist.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from rspoassist.apps.api.response import SuccessEnvelope, success_response
from rspoassist.apps.api.routes.chat import TranscriptResponse, to_message_response
from rspoassist.domain.models import ChatSession, User
from rspoassist.persistence.repos import chat_sessions as chat_sessions_repo
from rspoassist.services.conversation import ConversationService


router = APIRouter(prefix="/history", tags=["history"], responses=DEFAULT_ERROR_RESPONSES)


class ChatSessionSummary(BaseModel):
    id: str
    title: str
    standard_short_name: str
    created_at: str
    message_count: int


class ChatSessionResponse(ChatSessionSummary):
    messages: list[dict[str, Any]]


class ClearHistoryResponse(BaseModel):
    status: str


def _summary(chat_session: ChatSession) -> ChatSessionSummary:
    return ChatSessionSummary(
        id=chat_session.id,
        title=chat_session.title,
        standard_short_name=chat_session.standard_short_name,
        created_at=chat_session.created_at.isoformat(),
        message_count=len(chat_session.messages_json or []),
    )


async def _require_session(db: AsyncSession, user: User, session_id: str) -> ChatSession:
    chat_session = await chat_sessions_repo.get_chat_session(db, user.id, session_id)
    if chat_session is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "NOT_FOUND", "message": "Chat session not found"},
        )
    return chat_session


@router.get("", response_model=SuccessEnvelope[list[ChatSessionSummary]])
async def list_history(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    sessions = await chat_sessions_repo.list_chat_sessions(db, user.id)
    return success_response(request=request, data=[_summary(item) for item in sessions])


@router.get("/{session_id}", response_model=SuccessEnvelope[ChatSessionResponse])
async def get_history_session(
    request: Request,
    session_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    chat_session = await _require_session(db, user, session_id)
    payload = ChatSessionResponse(
        **_summary(chat_session).model_dump(),
        messages=list(chat_session.messages_json or []),
    )
    return success_response(request=request, data=payload)


@router.post("/{session_id}/load", response_model=SuccessEnvelope[TranscriptResponse])
async def load_history_session(
    request: Request,
    session_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    # Loading replaces the active transcript; the archived snapshot is left untouched.
    chat_session = await _require_session(db, user, session_id)
    restored = await ConversationService().load_session(db, user, chat_session)
    await commit_or_raise(db, action="loading chat session")
    payload = TranscriptResponse(
        active_mode=user.active_mode,
        active_standard_id=user.active_standard_id,
        messages=[to_message_response(message) for message in restored],
    )
    return success_response(request=request, data=payload)


@router.delete("", response_model=SuccessEnvelope[ClearHistoryResponse])
async def clear_history(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await chat_sessions_repo.delete_chat_sessions(db, user.id)
    await commit_or_raise(db, action="clearing history")
    return success_response(request=request, data=ClearHistoryResponse(status="cleared"))
