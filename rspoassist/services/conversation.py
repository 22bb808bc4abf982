from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.agent.prompts import (
    FALLBACK_ANSWER,
    SYSTEM_INSTRUCTION,
    build_chat_prompt,
    parse_mode,
    select_chat_model,
)
from rspoassist.core.config import get_settings
from rspoassist.core.errors import RspoAssistError
from rspoassist.domain.catalog import (
    DEFAULT_MODE,
    DEFAULT_STANDARD_ID,
    MODE_ARGUMENTATIVE,
    ONBOARDING_OPTIONS,
    PRIMING_MESSAGES,
    LANGUAGE_MAP,
    get_mode_option,
    get_standard,
)
from rspoassist.domain.models import ChatSession, Message, User
from rspoassist.persistence.repos import chat_sessions as chat_sessions_repo
from rspoassist.persistence.repos import documents as documents_repo
from rspoassist.persistence.repos import messages as messages_repo
from rspoassist.providers.llm.base import GenerationRequest, LLMProvider, run_generation
from rspoassist.services.usage import UsageService, get_usage_service, is_system_message


logger = logging.getLogger(__name__)

INTRO_MESSAGE = (
    "Hello! I am your **RSPO Assistant**. To ensure I provide the correct level of technical detail, "
    "please select your intended operation:\n\n"
    "1️⃣ **RSPO Indicator Verification** (Audit-style evidence check)\n"
    "2️⃣ **Activity Compliance Check** (Ensuring site activities follow rules)\n"
    "3️⃣ **Findings Justification** (Drafting responses to audit findings/NCs)\n"
    "4️⃣ **General RSPO Enquiry** (Quick questions & general summaries)\n\n"
    "💡 **Pro Tip**: For maximum accuracy with technical indicators, you can upload the official RSPO "
    "Standard PDF into the **Document Vault** from the Toolbox below! I also verify text directly from "
    "**rspo.org** via Google Search."
)
CONNECTION_ERROR_MESSAGE = "⚠️ Connection error. Please verify your connection."
NC_REQUEST_PREFIX = "🚨 NC DRAFT REQUEST: "
RESET_COMMANDS = frozenset({"/restart", "/mode", "change mode"})
ARCHIVE_TITLE_CHARS = 40

OUTCOME_ANSWERED = "answered"
OUTCOME_FAILED = "failed"
OUTCOME_NEW_CHAT = "new_chat"


@dataclass
class SendOutcome:
    outcome: str
    user_message: Message | None = None
    assistant_message: Message | None = None
    cost: int = 0
    archived: ChatSession | None = None


def _bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": "INVALID_INPUT", "message": message},
    )


def is_reset_command(text: str) -> bool:
    return text.strip().lower() in RESET_COMMANDS


def onboarding_options_payload() -> list[dict[str, Any]]:
    return [{"label": option.label, "value": option.value, "icon": option.icon} for option in ONBOARDING_OPTIONS]


def message_to_payload(message: Message) -> dict[str, Any]:
    created_at = message.created_at
    if created_at is not None and created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return {
        "id": message.id,
        "role": message.role,
        "content": message.content,
        "created_at": created_at.isoformat() if created_at else None,
        "options": message.options_json,
        "is_nc_draft": bool(message.is_nc_draft),
        "show_nc_draft_link": bool(message.show_nc_draft_link),
        "grounding_urls": message.grounding_urls_json or [],
    }


def archive_title(messages: list[Message], now: datetime) -> str:
    first_user = next((message for message in messages if message.role == "user"), None)
    if first_user is not None:
        return first_user.content[:ARCHIVE_TITLE_CHARS] + "..."
    return f"Conversation {now.strftime('%Y-%m-%d')}"


def build_final_query(text: str, mode: str, attachment_context: str | None = None) -> str:
    """Compose the text sent to the model.

    Attachment context is placed ahead of the user's question, and the active
    mode is encoded as a ``MODE_X:`` prefix unless the caller already supplied
    one or the text is a ``System:`` instruction.
    """
    full_query = f"{attachment_context}\n\nUSER QUESTION: {text}" if attachment_context else text
    if is_system_message(text) or text.startswith("MODE_"):
        return full_query
    return f"MODE_{mode}: {full_query}"


def _archived_timestamp(value: str | None) -> datetime | None:
    # Archived payloads carry ISO timestamps; restore them as written.
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def display_content(text: str, is_nc: bool) -> str:
    # Queries that already carry a MODE_ prefix are shown without it.
    content = parse_mode(text)[1] if text.startswith("MODE_") else text
    return f"{NC_REQUEST_PREFIX}{content}" if is_nc else content


class ConversationService:
    def __init__(self, *, usage: UsageService | None = None) -> None:
        self._usage = usage
        self._settings = get_settings()

    @property
    def usage(self) -> UsageService:
        return self._usage or get_usage_service()

    async def start(self, session: AsyncSession, user: User) -> Message:
        return await messages_repo.add_message(
            session,
            user_id=user.id,
            role="assistant",
            content=INTRO_MESSAGE,
            options=onboarding_options_payload(),
        )

    async def transcript(self, session: AsyncSession, user: User) -> list[Message]:
        # An empty transcript is seeded with the onboarding menu on first read.
        messages = await messages_repo.list_messages(session, user.id)
        if not messages:
            messages = [await self.start(session, user)]
        return messages

    async def new_chat(self, session: AsyncSession, user: User) -> ChatSession | None:
        messages = await messages_repo.list_messages(session, user.id)
        archived = None
        if len(messages) > 1:
            standard = get_standard(user.active_standard_id) or get_standard(DEFAULT_STANDARD_ID)
            archived = await chat_sessions_repo.create_chat_session(
                session,
                user_id=user.id,
                title=archive_title(messages, self.usage.now()),
                standard_short_name=standard.short_name,
                messages=[message_to_payload(message) for message in messages],
            )
            logger.info(
                "chat_archived user_id=%s session_id=%s messages=%s",
                user.id,
                archived.id,
                len(messages),
            )
        user.active_mode = DEFAULT_MODE
        await messages_repo.delete_messages(session, user.id)
        await self.start(session, user)
        return archived

    async def switch_mode(self, session: AsyncSession, user: User, mode: str) -> Message:
        option = get_mode_option(mode)
        if option is None:
            raise _bad_request(f"Unknown mode: {mode}")
        await self.transcript(session, user)
        user.active_mode = option.value
        await messages_repo.clear_last_options(session, user.id)
        logger.info("chat_mode_switched user_id=%s mode=%s", user.id, option.value)
        return await messages_repo.add_message(
            session,
            user_id=user.id,
            role="assistant",
            content=f"Framework switched to **{option.label}**. {PRIMING_MESSAGES[option.value]}",
        )

    async def change_standard(self, user: User, standard_id: str) -> None:
        if get_standard(standard_id) is None:
            raise _bad_request(f"Unknown standard: {standard_id}")
        user.active_standard_id = standard_id

    async def clear(self, session: AsyncSession, user: User) -> None:
        # Dropping the transcript does not archive it.
        await messages_repo.delete_messages(session, user.id)
        await self.start(session, user)

    async def load_session(self, session: AsyncSession, user: User, chat_session: ChatSession) -> list[Message]:
        await messages_repo.delete_messages(session, user.id)
        restored = []
        for item in chat_session.messages_json:
            restored.append(
                await messages_repo.add_message(
                    session,
                    user_id=user.id,
                    role=item["role"],
                    content=item["content"],
                    options=item.get("options"),
                    is_nc_draft=bool(item.get("is_nc_draft")),
                    show_nc_draft_link=bool(item.get("show_nc_draft_link")),
                    grounding_urls=item.get("grounding_urls") or None,
                    created_at=_archived_timestamp(item.get("created_at")),
                )
            )
        return restored

    async def change_language(
        self,
        session: AsyncSession,
        user: User,
        provider: LLMProvider,
        language_code: str,
        *,
        request_id: str | None = None,
    ) -> SendOutcome:
        if language_code not in LANGUAGE_MAP:
            raise _bad_request(f"Unsupported language: {language_code}")
        preferences = dict(user.preferences_json or {})
        preferences["language"] = language_code
        user.preferences_json = preferences
        return await self.send(
            session,
            user,
            provider,
            f"System: Language switched to {LANGUAGE_MAP[language_code]}. Please acknowledge.",
            request_id=request_id,
        )

    async def send(
        self,
        session: AsyncSession,
        user: User,
        provider: LLMProvider,
        text: str,
        *,
        is_nc: bool = False,
        attachment_context: str | None = None,
        request_id: str | None = None,
    ) -> SendOutcome:
        if not text or not text.strip():
            raise _bad_request("Message text is required")

        if is_reset_command(text):
            archived = await self.new_chat(session, user)
            return SendOutcome(outcome=OUTCOME_NEW_CHAT, archived=archived)

        # The intro menu always opens a conversation, even when the client posts first.
        await self.transcript(session, user)
        self.usage.ensure_can_send(user, text)

        history = [
            {"role": message.role, "content": message.content}
            for message in await messages_repo.list_messages(session, user.id)
        ]
        final_query = build_final_query(text, user.active_mode, attachment_context)

        user_message = None
        if not is_system_message(text):
            user_message = await messages_repo.add_message(
                session,
                user_id=user.id,
                role="user",
                content=display_content(text, is_nc),
                is_nc_draft=is_nc,
            )

        standard = get_standard(user.active_standard_id) or get_standard(DEFAULT_STANDARD_ID)
        language_code = (user.preferences_json or {}).get("language", "en")
        policies = await documents_repo.list_documents(session, user.id)
        request = GenerationRequest(
            purpose="chat",
            prompt=build_chat_prompt(
                final_query,
                standard,
                language_code,
                policies=policies,
                history=history,
                national_interpretations=user.national_interpretations_json or [],
            ),
            model=select_chat_model(user.tier, self._settings),
            system_instruction=SYSTEM_INSTRUCTION,
            temperature=self._settings.gemini_temperature,
            use_search=self._settings.gemini_search_grounding,
            request_id=request_id,
        )

        logger.info(
            "chat_send request_id=%s user_id=%s mode=%s standard=%s model=%s",
            request_id,
            user.id,
            user.active_mode,
            standard.id,
            request.model,
        )
        try:
            result = await run_generation(provider, request, self._settings.vertex_timeout_s)
        except RspoAssistError as exc:
            # Failures surface as a chat bubble; the user is not charged.
            logger.warning("chat_send_failed request_id=%s user_id=%s error=%s", request_id, user.id, exc)
            failure = await messages_repo.add_message(
                session,
                user_id=user.id,
                role="assistant",
                content=CONNECTION_ERROR_MESSAGE,
            )
            return SendOutcome(outcome=OUTCOME_FAILED, user_message=user_message, assistant_message=failure)

        answer = result.text or FALLBACK_ANSWER
        assistant_message = await messages_repo.add_message(
            session,
            user_id=user.id,
            role="assistant",
            content=answer,
            show_nc_draft_link=user.active_mode == MODE_ARGUMENTATIVE,
            grounding_urls=result.grounding_urls or None,
        )
        cost = self.usage.charge(user, final_query, answer)
        return SendOutcome(
            outcome=OUTCOME_ANSWERED,
            user_message=user_message,
            assistant_message=assistant_message,
            cost=cost,
        )
