from __future__ import annotations

from httpx import ASGITransport, AsyncClient
import pytest

from rspoassist.tests.utils.accounts import create_test_app, create_test_user


@pytest.mark.asyncio
async def test_new_chat_archives_and_history_can_be_restored() -> None:
    _, headers = await create_test_user()
    app, _ = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.get("/v1/chat/messages", headers=headers)
        await client.post("/v1/chat/messages", json={"text": "hi"}, headers=headers)
        new_chat = await client.post("/v1/chat/new", headers=headers)
        listing = await client.get("/v1/history", headers=headers)
        session_id = listing.json()["data"][0]["id"]
        detail = await client.get(f"/v1/history/{session_id}", headers=headers)
        restored = await client.post(f"/v1/history/{session_id}/load", headers=headers)
        transcript = await client.get("/v1/chat/messages", headers=headers)

    assert new_chat.json()["data"]["archived_session_id"] == session_id
    assert len(new_chat.json()["data"]["messages"]) == 1
    summary = listing.json()["data"][0]
    assert summary["title"] == "hi..."
    assert summary["standard_short_name"] == "P&C 2018"
    assert summary["message_count"] == 3
    assert [item["role"] for item in detail.json()["data"]["messages"]] == ["assistant", "user", "assistant"]
    assert [item["content"] for item in restored.json()["data"]["messages"]][1:] == [
        "hi",
        "This is a fake response.",
    ]
    assert len(transcript.json()["data"]["messages"]) == 3


@pytest.mark.asyncio
async def test_new_chat_with_only_intro_is_not_archived() -> None:
    _, headers = await create_test_user()
    app, _ = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.get("/v1/chat/messages", headers=headers)
        new_chat = await client.post("/v1/chat/new", headers=headers)
        listing = await client.get("/v1/history", headers=headers)

    assert new_chat.json()["data"]["archived_session_id"] is None
    assert listing.json()["data"] == []


@pytest.mark.asyncio
async def test_history_is_private_and_clearable() -> None:
    _, owner = await create_test_user()
    _, other = await create_test_user()
    app, _ = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.post("/v1/chat/messages", json={"text": "hello there"}, headers=owner)
        await client.post("/v1/chat/new", headers=owner)
        session_id = (await client.get("/v1/history", headers=owner)).json()["data"][0]["id"]

        foreign = await client.get(f"/v1/history/{session_id}", headers=other)
        cleared = await client.delete("/v1/history", headers=owner)
        after = await client.get("/v1/history", headers=owner)
        missing = await client.post(f"/v1/history/{session_id}/load", headers=owner)

    assert foreign.status_code == 404
    assert cleared.json()["data"]["status"] == "cleared"
    assert after.json()["data"] == []
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_loading_a_session_keeps_original_timestamps() -> None:
    _, headers = await create_test_user()
    app, _ = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.post("/v1/chat/messages", json={"text": "hi"}, headers=headers)
        new_chat = await client.post("/v1/chat/new", headers=headers)
        session_id = new_chat.json()["data"]["archived_session_id"]
        detail = await client.get(f"/v1/history/{session_id}", headers=headers)
        restored = await client.post(f"/v1/history/{session_id}/load", headers=headers)
        transcript = await client.get("/v1/chat/messages", headers=headers)

    archived = [item["created_at"] for item in detail.json()["data"]["messages"]]
    assert len(archived) == 3
    assert [item["created_at"] for item in restored.json()["data"]["messages"]] == archived
    assert [item["created_at"] for item in transcript.json()["data"]["messages"]] == archived
