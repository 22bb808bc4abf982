from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, File, Request, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.apps.api.deps import commit_or_raise, get_current_user, get_db, get_llm
from rspoassist.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from rspoassist.apps.api.response import SuccessEnvelope, get_request_id, success_response
from rspoassist.apps.api.routes.usage import UsageResponse
from rspoassist.domain.models import Message, User
from rspoassist.providers.llm.base import LLMProvider
from rspoassist.services.conversation import ConversationService, SendOutcome, message_to_payload
from rspoassist.services.usage import get_usage_service
from rspoassist.services.vault import attach_for_chat


router = APIRouter(prefix="/chat", tags=["chat"], responses=DEFAULT_ERROR_RESPONSES)


class MessageResponse(BaseModel):
    id: str
    role: str
    content: str
    created_at: str | None
    options: list[dict[str, Any]] | None = None
    is_nc_draft: bool = False
    show_nc_draft_link: bool = False
    grounding_urls: list[str] = Field(default_factory=list)


class TranscriptResponse(BaseModel):
    active_mode: str
    active_standard_id: str
    messages: list[MessageResponse]


class SendRequest(BaseModel):
    text: str
    is_nc: bool = False
    # Context returned by the attachment endpoint for the next message.
    attachment_context: str | None = None

    model_config = {
        "extra": "forbid",
        "json_schema_extra": {
            "examples": [
                {"text": "What evidence is needed for indicator 7.3.1?", "is_nc": False},
            ]
        },
    }


class SendResponse(BaseModel):
    outcome: str
    user_message: MessageResponse | None = None
    assistant_message: MessageResponse | None = None
    cost: int = 0
    archived_session_id: str | None = None
    usage: UsageResponse


class ModeRequest(BaseModel):
    mode: str


class LanguageRequest(BaseModel):
    language: str


class StandardRequest(BaseModel):
    standard_id: str


class NewChatResponse(BaseModel):
    archived_session_id: str | None
    messages: list[MessageResponse]


class AttachmentResponse(BaseModel):
    file_name: str
    context: str


def to_message_response(message: Message) -> MessageResponse:
    return MessageResponse(**message_to_payload(message))


def _usage(user: User) -> UsageResponse:
    return UsageResponse(**get_usage_service().snapshot(user).as_payload())


def _send_response(user: User, outcome: SendOutcome) -> SendResponse:
    return SendResponse(
        outcome=outcome.outcome,
        user_message=to_message_response(outcome.user_message) if outcome.user_message else None,
        assistant_message=to_message_response(outcome.assistant_message) if outcome.assistant_message else None,
        cost=outcome.cost,
        archived_session_id=outcome.archived.id if outcome.archived else None,
        usage=_usage(user),
    )


async def _transcript(db: AsyncSession, user: User) -> TranscriptResponse:
    messages = await ConversationService().transcript(db, user)
    return TranscriptResponse(
        active_mode=user.active_mode,
        active_standard_id=user.active_standard_id,
        messages=[to_message_response(message) for message in messages],
    )


@router.get("/messages", response_model=SuccessEnvelope[TranscriptResponse])
async def get_transcript(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    payload = await _transcript(db, user)
    await commit_or_raise(db, action="loading transcript")
    return success_response(request=request, data=payload)


@router.post("/messages", response_model=SuccessEnvelope[SendResponse])
async def send_message(
    request: Request,
    payload: SendRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    provider: LLMProvider = Depends(get_llm),
) -> dict:
    outcome = await ConversationService().send(
        db,
        user,
        provider,
        payload.text,
        is_nc=payload.is_nc,
        attachment_context=payload.attachment_context,
        request_id=get_request_id(request),
    )
    await commit_or_raise(db, action="sending message")
    return success_response(request=request, data=_send_response(user, outcome))


@router.delete("/messages", response_model=SuccessEnvelope[TranscriptResponse])
async def clear_transcript(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await ConversationService().clear(db, user)
    payload = await _transcript(db, user)
    await commit_or_raise(db, action="clearing transcript")
    return success_response(request=request, data=payload)


@router.post("/mode", response_model=SuccessEnvelope[MessageResponse])
async def switch_mode(
    request: Request,
    payload: ModeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    message = await ConversationService().switch_mode(db, user, payload.mode)
    await commit_or_raise(db, action="switching mode")
    return success_response(request=request, data=to_message_response(message))


@router.post("/language", response_model=SuccessEnvelope[SendResponse])
async def change_language(
    request: Request,
    payload: LanguageRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    provider: LLMProvider = Depends(get_llm),
) -> dict:
    outcome = await ConversationService().change_language(
        db,
        user,
        provider,
        payload.language,
        request_id=get_request_id(request),
    )
    await commit_or_raise(db, action="changing language")
    return success_response(request=request, data=_send_response(user, outcome))


@router.put("/standard", response_model=SuccessEnvelope[StandardRequest])
async def change_standard(
    request: Request,
    payload: StandardRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await ConversationService().change_standard(user, payload.standard_id)
    await commit_or_raise(db, action="changing standard")
    return success_response(request=request, data=StandardRequest(standard_id=user.active_standard_id))


@router.post("/new", response_model=SuccessEnvelope[NewChatResponse])
async def new_chat(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    service = ConversationService()
    archived = await service.new_chat(db, user)
    messages = await service.transcript(db, user)
    await commit_or_raise(db, action="starting a new chat")
    payload = NewChatResponse(
        archived_session_id=archived.id if archived else None,
        messages=[to_message_response(message) for message in messages],
    )
    return success_response(request=request, data=payload)


@router.post("/attachments", response_model=SuccessEnvelope[AttachmentResponse])
async def attach_file(
    request: Request,
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    provider: LLMProvider = Depends(get_llm),
) -> dict:
    data = await file.read()
    attachment = await attach_for_chat(
        provider,
        file_name=file.filename or "upload",
        mime_type=file.content_type,
        data=data,
        request_id=get_request_id(request),
    )
    payload = AttachmentResponse(file_name=attachment.file_name, context=attachment.context)
    return success_response(request=request, data=payload)
