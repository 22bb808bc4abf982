from __future__ import annotations

from httpx import ASGITransport, AsyncClient
import pytest

from rspoassist.providers.llm.fake import FakeLLMProvider
from rspoassist.tests.utils.accounts import create_test_app, create_test_user


@pytest.mark.asyncio
async def test_checklist_requires_premium_tier() -> None:
    _, headers = await create_test_user()
    app, fake = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/v1/checklists/generate", json={"audit_prompt": "peat"}, headers=headers)

    assert response.status_code == 403
    assert response.json()["error"]["details"]["feature_key"] == "checklist"
    assert fake.calls == []


@pytest.mark.asyncio
async def test_generate_toggle_finalize_and_report() -> None:
    _, headers = await create_test_user(tier="Professional")
    app, fake = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        generated = await client.post(
            "/v1/checklists/generate",
            json={"audit_prompt": "Peatland drainage", "standard_id": "pc2018"},
            headers=headers,
        )
        data = generated.json()["data"]
        items = data["draft"]["items"]
        first, second = items[0]["id"], items[1]["id"]

        await client.post(
            f"/v1/checklists/drafts/pc2018/items/{first}/status", json={"status": "compliant"}, headers=headers
        )
        toggled = await client.post(
            f"/v1/checklists/drafts/pc2018/items/{second}/status", json={"status": "non-compliant"}, headers=headers
        )
        noted = await client.put(
            f"/v1/checklists/drafts/pc2018/items/{second}/notes",
            json={"notes": "Canal blocks missing"},
            headers=headers,
        )
        draft_report = await client.get("/v1/checklists/drafts/pc2018/report", headers=headers)
        finalized = await client.post(
            "/v1/checklists/drafts/pc2018/finalize", json={"name": "Estate A peat audit"}, headers=headers
        )
        draft_after = await client.get("/v1/checklists/drafts/pc2018", headers=headers)
        audits = await client.get("/v1/checklists/audits", headers=headers)
        audit_id = finalized.json()["data"]["id"]
        report = await client.get(f"/v1/checklists/audits/{audit_id}/report", headers=headers)

    assert generated.status_code == 200
    assert data["suggested_name"] == "Audit: P&C 2018 - Peatland drainage"
    assert [item["clause_id"] for item in items] == ["RSPO P&C 7.3.1", "RSPO P&C 2.1.1"]
    assert items[0]["checkpoint"] == "Check evidence for New plantings and peatland"
    assert all(item["status"] == "pending" for item in items)
    assert data["draft"]["stats"]["completion"] == 0
    assert [call.purpose for call in fake.calls] == ["clause_selection", "checklist"]

    stats = toggled.json()["data"]["stats"]
    assert stats == {"total": 2, "compliant": 1, "non_compliant": 1, "pending": 0, "score": 50, "completion": 100}
    assert noted.json()["data"]["items"][1]["notes"] == "Canal blocks missing"
    assert draft_report.status_code == 200
    assert draft_report.headers["content-type"].startswith("text/html")
    assert "Audit: P&amp;C 2018 - Peatland drainage" in draft_report.text

    assert finalized.status_code == 201
    audit = finalized.json()["data"]
    assert audit["name"] == "Estate A peat audit"
    assert (audit["score"], audit["completion"]) == (50, 100)
    assert draft_after.status_code == 404
    assert [item["id"] for item in audits.json()["data"]] == [audit_id]
    assert "Canal blocks missing" in report.text
    assert "Lead Auditor: Demo Auditor" in report.text


@pytest.mark.asyncio
async def test_toggling_same_status_returns_to_pending() -> None:
    _, headers = await create_test_user(tier="Enterprise")
    app, _ = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        generated = await client.post("/v1/checklists/generate", json={"audit_prompt": "laws"}, headers=headers)
        item_id = generated.json()["data"]["draft"]["items"][0]["id"]
        path = f"/v1/checklists/drafts/pc2018/items/{item_id}/status"
        await client.post(path, json={"status": "compliant"}, headers=headers)
        again = await client.post(path, json={"status": "compliant"}, headers=headers)
        invalid = await client.post(path, json={"status": "partial"}, headers=headers)

    assert again.json()["data"]["items"][0]["status"] == "pending"
    assert invalid.status_code == 400


@pytest.mark.asyncio
async def test_standard_without_indicators_is_rejected() -> None:
    _, headers = await create_test_user(tier="Professional")
    app, _ = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        empty = await client.post(
            "/v1/checklists/generate", json={"audit_prompt": "traceability", "standard_id": "scc2020"}, headers=headers
        )
        unknown = await client.post(
            "/v1/checklists/generate", json={"audit_prompt": "x", "standard_id": "rspo1999"}, headers=headers
        )
        blank = await client.post("/v1/checklists/generate", json={"audit_prompt": "  "}, headers=headers)

    assert empty.status_code == 422
    assert empty.json()["error"]["code"] == "NO_MATCHING_INDICATORS"
    assert unknown.status_code == 404
    assert blank.status_code == 400


@pytest.mark.asyncio
async def test_failed_generation_falls_back_to_clause_text() -> None:
    _, headers = await create_test_user(tier="Professional")
    app, _ = create_test_app(FakeLLMProvider(responses={"checklist": "not json"}))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        generated = await client.post("/v1/checklists/generate", json={"audit_prompt": "smallholder", "standard_id": "ish2019"}, headers=headers)

    items = generated.json()["data"]["draft"]["items"]
    assert [item["checkpoint"] for item in items] == [
        "Verify compliance with RSPO ISH 1.1.1: Smallholder Legal Compliance"
    ]


@pytest.mark.asyncio
async def test_saved_audit_edits_recompute_scores() -> None:
    _, headers = await create_test_user(tier="Professional")
    app, _ = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.post("/v1/checklists/generate", json={"audit_prompt": "peat"}, headers=headers)
        finalized = await client.post("/v1/checklists/drafts/pc2018/finalize", json={"name": "Audit 1"}, headers=headers)
        audit_id = finalized.json()["data"]["id"]
        item_id = finalized.json()["data"]["items"][0]["id"]

        updated = await client.post(
            f"/v1/checklists/audits/{audit_id}/items/{item_id}/status", json={"status": "compliant"}, headers=headers
        )
        renamed = await client.patch(f"/v1/checklists/audits/{audit_id}", json={"name": "Audit 1b"}, headers=headers)
        empty_name = await client.patch(f"/v1/checklists/audits/{audit_id}", json={"name": " "}, headers=headers)
        deleted = await client.delete(f"/v1/checklists/audits/{audit_id}", headers=headers)
        missing = await client.get(f"/v1/checklists/audits/{audit_id}", headers=headers)
        unnamed = await client.post("/v1/checklists/drafts/pc2018/finalize", json={"name": "x"}, headers=headers)

    assert (updated.json()["data"]["score"], updated.json()["data"]["completion"]) == (100, 50)
    assert renamed.json()["data"]["name"] == "Audit 1b"
    assert empty_name.status_code == 400
    assert deleted.json()["data"]["deleted"] is True
    assert missing.status_code == 404
    # The draft was consumed by the first finalize.
    assert unnamed.status_code == 404
