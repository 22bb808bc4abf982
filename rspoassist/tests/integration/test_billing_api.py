from __future__ import annotations

from httpx import ASGITransport, AsyncClient
import pytest

from rspoassist.tests.utils.accounts import create_test_app, create_test_user, load_user


CARD = {"card_name": "ana lim", "card_number": "4111 1111 1111 4242", "expiry": "08/29", "cvv": "123"}


@pytest.mark.asyncio
async def test_pricing_is_public() -> None:
    app, _ = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/v1/billing/plans")

    data = response.json()["data"]
    assert [(quote["tier"], quote["amount"]) for quote in data["quotes"]] == [
        ("Starter", "$9.00"),
        ("Professional", "$29.00"),
        ("Enterprise", "$50.00"),
    ]
    assert data["payment_methods"] == ["visa", "mastercard", "paypal", "credit"]
    assert data["enterprise_token_options"][-1] == 10_000_000
    assert data["enterprise_price_per_million_usd"] == 50


@pytest.mark.asyncio
async def test_card_checkout_upgrades_plan_and_issues_invoice() -> None:
    user_id, headers = await create_test_user(tokens_used=900)
    app, _ = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        started = await client.post(
            "/v1/billing/checkouts", json={"tier": "Professional", "method": "visa"}, headers=headers
        )
        checkout_id = started.json()["data"]["id"]
        details = await client.post(f"/v1/billing/checkouts/{checkout_id}/advance", json={}, headers=headers)
        bad_card = await client.post(
            f"/v1/billing/checkouts/{checkout_id}/advance", json={**CARD, "cvv": "1"}, headers=headers
        )
        redirect = await client.post(f"/v1/billing/checkouts/{checkout_id}/advance", json=CARD, headers=headers)
        completed = await client.post(f"/v1/billing/checkouts/{checkout_id}/complete", json={}, headers=headers)
        again = await client.post(f"/v1/billing/checkouts/{checkout_id}/complete", json={}, headers=headers)
        invoice_id = completed.json()["data"]["invoice"]["id"]
        invoices = await client.get("/v1/billing/invoices", headers=headers)
        invoice_html = await client.get(f"/v1/billing/invoices/{invoice_id}/html", headers=headers)
        documents = await client.get("/v1/documents", headers=headers)

    assert started.status_code == 201
    assert started.json()["data"]["step"] == "method"
    assert started.json()["data"]["amount"] == "$29.00"
    assert details.json()["data"]["step"] == "details"
    assert bad_card.status_code == 400
    assert "cvv" in bad_card.json()["error"]["details"]["fields"]
    assert redirect.json()["data"]["step"] == "bank_redirect"
    assert redirect.json()["data"]["card_last4"] == "4242"
    assert "card_number" not in redirect.json()["data"]

    result = completed.json()["data"]
    assert result["checkout"]["step"] == "success"
    assert result["checkout"]["invoice_id"] == invoice_id
    assert invoice_id.startswith("INV-")
    assert result["invoice"]["amount"] == "$29.00"
    assert result["invoice"]["status"] == "Paid"
    assert result["invoice"]["payment_method"] == "VISA"
    assert result["usage"]["limit"] == 250_000
    assert result["usage"]["used"] == 0
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "CHECKOUT_STEP_INVALID"

    assert [item["id"] for item in invoices.json()["data"]] == [invoice_id]
    assert "INVOICE" in invoice_html.text
    # The upgraded tier unlocks the Digital Toolbox.
    assert documents.status_code == 200
    user = await load_user(user_id)
    assert (user.tier, user.token_limit, user.subscription_status) == ("Professional", 250_000, "Active")


@pytest.mark.asyncio
async def test_paypal_checkout_defaults_to_account_email() -> None:
    _, headers = await create_test_user()
    app, _ = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        started = await client.post(
            "/v1/billing/checkouts",
            json={"tier": "Enterprise", "method": "paypal", "tokens": 3_000_000},
            headers=headers,
        )
        checkout_id = started.json()["data"]["id"]
        portal = await client.post(f"/v1/billing/checkouts/{checkout_id}/advance", json={}, headers=headers)
        bad_email = await client.post(
            f"/v1/billing/checkouts/{checkout_id}/complete",
            json={"paypal_email": "nope"},
            headers=headers,
        )
        completed = await client.post(f"/v1/billing/checkouts/{checkout_id}/complete", json={}, headers=headers)
        zero = await client.post(
            "/v1/billing/checkouts",
            json={"tier": "Enterprise", "method": "paypal", "tokens": 0},
            headers=headers,
        )

    assert started.json()["data"]["amount"] == "$150.00"
    assert portal.json()["data"]["step"] == "paypal_portal"
    assert bad_email.status_code == 400
    data = completed.json()["data"]
    assert data["checkout"]["paypal_email"] == "auditor@demo.rspo.org"
    invoice = data["invoice"]
    assert invoice["payment_method"] == "PAYPAL"
    assert invoice["tokens"] == 3_000_000
    assert data["usage"]["tier"] == "Enterprise"
    assert zero.status_code == 400


@pytest.mark.asyncio
async def test_checkout_step_rules() -> None:
    _, headers = await create_test_user()
    _, other = await create_test_user()
    app, _ = create_test_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        started = await client.post(
            "/v1/billing/checkouts", json={"tier": "Starter", "method": "mastercard"}, headers=headers
        )
        checkout_id = started.json()["data"]["id"]
        early = await client.post(f"/v1/billing/checkouts/{checkout_id}/complete", json={}, headers=headers)
        await client.post(f"/v1/billing/checkouts/{checkout_id}/advance", json={}, headers=headers)
        back = await client.post(f"/v1/billing/checkouts/{checkout_id}/back", headers=headers)
        foreign = await client.get(f"/v1/billing/checkouts/{checkout_id}", headers=other)
        free = await client.post("/v1/billing/checkouts", json={"tier": "Free", "method": "visa"}, headers=headers)
        odd = await client.post(
            "/v1/billing/checkouts",
            json={"tier": "Enterprise", "method": "visa", "tokens": 2_500_000},
            headers=headers,
        )
        bad_method = await client.post(
            "/v1/billing/checkouts", json={"tier": "Starter", "method": "bitcoin"}, headers=headers
        )

    assert early.status_code == 409
    assert back.json()["data"]["step"] == "method"
    assert foreign.status_code == 404
    assert free.status_code == 400
    assert odd.status_code == 400
    assert bad_method.status_code == 400
