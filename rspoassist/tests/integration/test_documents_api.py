from __future__ import annotations

from httpx import ASGITransport, AsyncClient
import pytest

from rspoassist.core.config import get_settings
from rspoassist.providers.llm.fake import FakeLLMProvider
from rspoassist.tests.utils.accounts import create_test_app, create_test_user


@pytest.mark.asyncio
async def test_vault_requires_premium_tier() -> None:
    _, headers = await create_test_user(tier="Starter")
    app, _ = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/v1/documents", headers=headers)

    assert response.status_code == 403
    error = response.json()["error"]
    assert error["code"] == "FEATURE_NOT_ENABLED"
    assert error["details"]["feature_key"] == "vault"
    assert error["details"]["action"] == "show_payment"


@pytest.mark.asyncio
async def test_document_crud() -> None:
    _, headers = await create_test_user(tier="Professional")
    app, fake = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        created = await client.post(
            "/v1/documents",
            json={"name": "Peat SOP", "content": "No planting on peat.", "type": "Policy"},
            headers=headers,
        )
        doc_id = created.json()["data"]["id"]
        listing = await client.get("/v1/documents", headers=headers)
        fetched = await client.get(f"/v1/documents/{doc_id}", headers=headers)
        await client.post("/v1/chat/messages", json={"text": "hi"}, headers=headers)
        deleted = await client.delete(f"/v1/documents/{doc_id}", headers=headers)
        missing = await client.get(f"/v1/documents/{doc_id}", headers=headers)
        blank = await client.post("/v1/documents", json={"name": " ", "content": "x"}, headers=headers)
        bad_type = await client.post(
            "/v1/documents", json={"name": "A", "content": "x", "type": "Memo"}, headers=headers
        )

    assert created.status_code == 201
    assert created.json()["data"]["type"] == "Policy"
    assert [doc["id"] for doc in listing.json()["data"]] == [doc_id]
    assert fetched.json()["data"]["content"] == "No planting on peat."
    # Vault documents ground chat answers.
    assert "Peat SOP (Policy): No planting on peat." in fake.calls[0].prompt
    assert deleted.json()["data"] == {"id": doc_id, "deleted": True}
    assert missing.status_code == 404
    assert blank.status_code == 400
    assert bad_type.status_code == 400


@pytest.mark.asyncio
async def test_scan_image_and_pdf() -> None:
    _, headers = await create_test_user(tier="Enterprise")
    app, fake = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        image = await client.post(
            "/v1/documents/scan",
            files={"file": ("sop.jpg", b"\xff\xd8\xff", "image/jpeg")},
            headers=headers,
        )
        pdf = await client.post(
            "/v1/documents/scan",
            files={"file": ("Fire Policy.pdf", b"%PDF-1.7", "application/pdf")},
            headers=headers,
        )

    assert image.status_code == 201
    assert image.json()["data"]["content"] == "FAKE EXTRACTED TEXT"
    assert image.json()["data"]["type"] == "SOP"
    assert image.json()["data"]["file_preview"].startswith("data:image/jpeg;base64,")
    assert pdf.json()["data"]["name"] == "Fire Policy"
    assert pdf.json()["data"]["file_preview"] == "pdf-placeholder"
    assert [call.purpose for call in fake.calls] == ["ocr"]


@pytest.mark.asyncio
async def test_scan_rejects_large_uploads_before_ocr(monkeypatch) -> None:
    monkeypatch.setenv("MAX_UPLOAD_BYTES", "4")
    get_settings.cache_clear()
    _, headers = await create_test_user(tier="Professional")
    app, fake = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post(
            "/v1/documents/scan",
            files={"file": ("big.png", b"0123456789", "image/png")},
            headers=headers,
        )

    assert response.status_code == 413
    assert response.json()["error"]["code"] == "UPLOAD_TOO_LARGE"
    assert fake.calls == []


@pytest.mark.asyncio
async def test_unreadable_scan_returns_ocr_failed() -> None:
    _, headers = await create_test_user(tier="Professional")
    app, _ = create_test_app(FakeLLMProvider(responses={"ocr": "ERROR: UNREADABLE_DOCUMENT"}))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post(
            "/v1/documents/scan",
            files={"file": ("blur.png", b"\x89PNG", "image/png")},
            headers=headers,
        )
        listing = await client.get("/v1/documents", headers=headers)

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "OCR_FAILED"
    assert listing.json()["data"] == []
