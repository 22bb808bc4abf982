from __future__ import annotations

from datetime import datetime, timedelta, timezone

from httpx import ASGITransport, AsyncClient
import pytest

from rspoassist.core.errors import VertexTimeoutError
from rspoassist.providers.llm.fake import FakeLLMProvider
from rspoassist.tests.utils.accounts import create_test_app, create_test_user, load_user


@pytest.mark.asyncio
async def test_first_read_seeds_onboarding_message() -> None:
    _, headers = await create_test_user()
    app, _ = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        first = await client.get("/v1/chat/messages", headers=headers)
        second = await client.get("/v1/chat/messages", headers=headers)

    data = first.json()["data"]
    assert data["active_mode"] == "CONCISE"
    assert data["active_standard_id"] == "pc2018"
    assert len(data["messages"]) == 1
    intro = data["messages"][0]
    assert intro["role"] == "assistant"
    assert "RSPO Assistant" in intro["content"]
    assert [option["value"] for option in intro["options"]] == ["TECHNICAL", "ACTIVITY", "ARGUMENTATIVE", "CONCISE"]
    assert len(second.json()["data"]["messages"]) == 1


@pytest.mark.asyncio
async def test_send_charges_by_text_length() -> None:
    user_id, headers = await create_test_user()
    app, fake = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.get("/v1/chat/messages", headers=headers)
        response = await client.post("/v1/chat/messages", json={"text": "hi"}, headers=headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["outcome"] == "answered"
    assert data["user_message"]["content"] == "hi"
    assert data["assistant_message"]["content"] == "This is a fake response."
    # "MODE_CONCISE: hi" plus the answer is 40 characters.
    assert data["cost"] == 10
    assert data["usage"]["used"] == 10
    assert fake.calls[0].model == "gemini-2.0-flash-lite-001"
    assert "User Question: hi" in fake.calls[0].prompt
    assert (await load_user(user_id)).tokens_used == 10


@pytest.mark.asyncio
async def test_overshoot_is_allowed_once_then_payment_is_required() -> None:
    user_id, headers = await create_test_user(tokens_used=999)
    app, fake = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        allowed = await client.post("/v1/chat/messages", json={"text": "hi"}, headers=headers)
        blocked = await client.post("/v1/chat/messages", json={"text": "again"}, headers=headers)
        usage = await client.get("/v1/usage", headers=headers)

    assert allowed.status_code == 200
    assert blocked.status_code == 402
    error = blocked.json()["error"]
    assert error["code"] == "TOKEN_LIMIT_REACHED"
    assert error["details"]["action"] == "show_payment"
    assert error["details"]["usage"]["reason"] == "budget_depleted"
    assert len(fake.calls) == 1
    snapshot = usage.json()["data"]
    assert snapshot["used"] == 1009
    assert snapshot["remaining"] == -9
    assert snapshot["remaining_display"] == 0
    assert (await load_user(user_id)).tokens_used == 1009


@pytest.mark.asyncio
async def test_expired_trial_blocks_free_accounts() -> None:
    _, headers = await create_test_user(created_at=datetime.now(timezone.utc) - timedelta(days=31))
    app, _ = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/v1/chat/messages", json={"text": "hi"}, headers=headers)
        usage = await client.get("/v1/usage", headers=headers)

    assert response.status_code == 402
    assert response.json()["error"]["details"]["usage"]["reason"] == "trial_expired"
    # The stale weekly window is rolled forward on read.
    assert usage.json()["data"]["used"] == 0
    assert usage.json()["data"]["trial_expired"] is True


@pytest.mark.asyncio
async def test_mode_switch_primes_and_prefixes_queries() -> None:
    _, headers = await create_test_user()
    app, fake = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.get("/v1/chat/messages", headers=headers)
        switched = await client.post("/v1/chat/mode", json={"mode": "TECHNICAL"}, headers=headers)
        sent = await client.post("/v1/chat/messages", json={"text": "hi"}, headers=headers)
        transcript = await client.get("/v1/chat/messages", headers=headers)
        unknown = await client.post("/v1/chat/mode", json={"mode": "POETRY"}, headers=headers)

    assert switched.json()["data"]["content"].startswith("Framework switched to **Indicator Verification**.")
    assert "OPERATIONAL_MODE: TECHNICAL" in fake.calls[0].prompt
    # "MODE_TECHNICAL: hi" is 18 characters.
    assert sent.json()["data"]["cost"] == 11
    messages = transcript.json()["data"]["messages"]
    assert transcript.json()["data"]["active_mode"] == "TECHNICAL"
    assert messages[0]["options"] is None
    assert unknown.status_code == 400


@pytest.mark.asyncio
async def test_findings_mode_offers_nc_drafter_link() -> None:
    _, headers = await create_test_user()
    app, _ = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.post("/v1/chat/mode", json={"mode": "ARGUMENTATIVE"}, headers=headers)
        sent = await client.post(
            "/v1/chat/messages",
            json={"text": "No buffer zone near the river", "is_nc": True},
            headers=headers,
        )

    data = sent.json()["data"]
    assert data["user_message"]["content"] == "🚨 NC DRAFT REQUEST: No buffer zone near the river"
    assert data["user_message"]["is_nc_draft"] is True
    assert data["assistant_message"]["show_nc_draft_link"] is True


@pytest.mark.asyncio
async def test_reset_command_archives_and_restarts() -> None:
    _, headers = await create_test_user()
    app, fake = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.get("/v1/chat/messages", headers=headers)
        await client.post("/v1/chat/mode", json={"mode": "ACTIVITY"}, headers=headers)
        await client.post("/v1/chat/messages", json={"text": "hi"}, headers=headers)
        reset = await client.post("/v1/chat/messages", json={"text": "/restart"}, headers=headers)
        transcript = await client.get("/v1/chat/messages", headers=headers)
        history = await client.get("/v1/history", headers=headers)

    data = reset.json()["data"]
    assert data["outcome"] == "new_chat"
    assert data["cost"] == 0
    assert data["archived_session_id"] == history.json()["data"][0]["id"]
    assert len(fake.calls) == 1
    assert transcript.json()["data"]["active_mode"] == "CONCISE"
    assert len(transcript.json()["data"]["messages"]) == 1


@pytest.mark.asyncio
async def test_ai_failure_is_a_chat_bubble_without_charge() -> None:
    user_id, headers = await create_test_user()
    app, _ = create_test_app(FakeLLMProvider(errors={"chat": VertexTimeoutError("timed out")}))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/v1/chat/messages", json={"text": "hi"}, headers=headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["outcome"] == "failed"
    assert data["cost"] == 0
    assert data["assistant_message"]["content"].startswith("⚠️ Connection error")
    assert data["user_message"]["content"] == "hi"
    assert (await load_user(user_id)).tokens_used == 0


@pytest.mark.asyncio
async def test_language_switch_sends_system_acknowledgement() -> None:
    user_id, headers = await create_test_user(tokens_used=5000)
    app, fake = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/v1/chat/language", json={"language": "tp"}, headers=headers)
        bad = await client.post("/v1/chat/language", json={"language": "fr"}, headers=headers)

    # System instructions bypass the budget gate and add no user bubble.
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user_message"] is None
    assert data["assistant_message"]["role"] == "assistant"
    assert "RESPOND ONLY IN TOK PISIN" in fake.calls[0].prompt
    assert "Language switched to Tok Pisin" in fake.calls[0].prompt
    assert bad.status_code == 400
    user = await load_user(user_id)
    assert user.preferences_json["language"] == "tp"


@pytest.mark.asyncio
async def test_standard_switch_and_attachment_context() -> None:
    _, headers = await create_test_user()
    app, fake = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        switched = await client.put("/v1/chat/standard", json={"standard_id": "ish2019"}, headers=headers)
        unknown = await client.put("/v1/chat/standard", json={"standard_id": "rspo1999"}, headers=headers)
        attachment = await client.post(
            "/v1/chat/attachments",
            files={"file": ("sop.png", b"\x89PNG", "image/png")},
            headers=headers,
        )
        context = attachment.json()["data"]["context"]
        await client.post(
            "/v1/chat/messages",
            json={"text": "Is this enough?", "attachment_context": context},
            headers=headers,
        )

    assert switched.json()["data"]["standard_id"] == "ish2019"
    assert unknown.status_code == 400
    assert context == "FILE CONTEXT (sop.png):\nFAKE EXTRACTED TEXT"
    chat_prompt = fake.calls[-1].prompt
    assert "Independent Smallholder (2019)" in chat_prompt
    assert "USER QUESTION: Is this enough?" in chat_prompt


@pytest.mark.asyncio
async def test_clear_drops_transcript_without_archiving() -> None:
    _, headers = await create_test_user()
    app, _ = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.post("/v1/chat/messages", json={"text": "hi"}, headers=headers)
        cleared = await client.delete("/v1/chat/messages", headers=headers)
        history = await client.get("/v1/history", headers=headers)

    assert len(cleared.json()["data"]["messages"]) == 1
    assert history.json()["data"] == []


@pytest.mark.asyncio
async def test_first_mode_pick_without_reading_keeps_intro_first() -> None:
    _, headers = await create_test_user()
    app, _ = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        switched = await client.post("/v1/chat/mode", json={"mode": "TECHNICAL"}, headers=headers)
        transcript = await client.get("/v1/chat/messages", headers=headers)

    assert switched.status_code == 200
    messages = transcript.json()["data"]["messages"]
    assert len(messages) == 2
    assert messages[0]["content"].startswith("Hello! I am your **RSPO Assistant**.")
    assert messages[0]["options"] is None
    assert messages[1]["content"].startswith("Framework switched to **Indicator Verification**.")


@pytest.mark.asyncio
async def test_first_send_without_reading_is_archived_with_intro() -> None:
    _, headers = await create_test_user()
    app, _ = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.post("/v1/chat/messages", json={"text": "hi"}, headers=headers)
        new_chat = await client.post("/v1/chat/new", headers=headers)
        session_id = new_chat.json()["data"]["archived_session_id"]
        detail = await client.get(f"/v1/history/{session_id}", headers=headers)

    messages = detail.json()["data"]["messages"]
    assert [item["role"] for item in messages] == ["assistant", "user", "assistant"]
    assert messages[0]["content"].startswith("Hello! I am your **RSPO Assistant**.")
