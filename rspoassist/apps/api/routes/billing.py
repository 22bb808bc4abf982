from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.apps.api.deps import commit_or_raise, get_current_user, get_db
from rspoassist.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from rspoassist.apps.api.response import SuccessEnvelope, html_export, success_response
from rspoassist.apps.api.routes.usage import UsageResponse
from rspoassist.domain.catalog import ENTERPRISE_PRICE_PER_MILLION_USD, ENTERPRISE_TOKEN_OPTIONS
from rspoassist.domain.models import Checkout, Invoice, User
from rspoassist.persistence.repos import billing as billing_repo
from rspoassist.services.payments import (
    PAYMENT_METHODS,
    advance_checkout,
    checkout_url,
    complete_checkout,
    purchasable_quotes,
    rewind_checkout,
    start_checkout,
)
from rspoassist.services.reports import render_invoice
from rspoassist.services.usage import get_usage_service


router = APIRouter(prefix="/billing", tags=["billing"], responses=DEFAULT_ERROR_RESPONSES)


class QuoteResponse(BaseModel):
    tier: str
    tokens: int
    amount: str
    checkout_url: str | None = None


class PricingResponse(BaseModel):
    quotes: list[QuoteResponse]
    payment_methods: list[str]
    enterprise_token_options: list[int]
    enterprise_price_per_million_usd: int


class CheckoutStartRequest(BaseModel):
    tier: str
    method: str
    # Enterprise only; whole millions from 1M to 10M.
    tokens: int | None = None

    model_config = {
        "extra": "forbid",
        "json_schema_extra": {"examples": [{"tier": "Professional", "method": "visa"}]},
    }


class CheckoutAdvanceRequest(BaseModel):
    method: str | None = None
    card_name: str | None = None
    card_number: str | None = None
    expiry: str | None = None
    cvv: str | None = None

    model_config = {"extra": "forbid"}


class CheckoutCompleteRequest(BaseModel):
    paypal_email: str | None = None

    model_config = {"extra": "forbid"}


class CheckoutResponse(BaseModel):
    id: str
    tier: str
    tokens: int
    amount: str
    method: str
    step: str
    card_name: str | None = None
    card_last4: str | None = None
    paypal_email: str | None = None
    invoice_id: str | None = None


class InvoiceResponse(BaseModel):
    id: str
    date: str
    amount: str
    status: str
    billing_period: str
    tokens: int
    payment_method: str


class CheckoutCompleteResponse(BaseModel):
    checkout: CheckoutResponse
    invoice: InvoiceResponse
    usage: UsageResponse


def _checkout_response(checkout: Checkout) -> CheckoutResponse:
    return CheckoutResponse(
        id=checkout.id,
        tier=checkout.tier,
        tokens=checkout.tokens,
        amount=checkout.amount,
        method=checkout.method,
        step=checkout.step,
        card_name=checkout.card_name,
        card_last4=checkout.card_last4,
        paypal_email=checkout.paypal_email,
        invoice_id=checkout.invoice_id,
    )


def _invoice_response(invoice: Invoice) -> InvoiceResponse:
    return InvoiceResponse(
        id=invoice.id,
        date=invoice.date,
        amount=invoice.amount,
        status=invoice.status,
        billing_period=invoice.billing_period,
        tokens=invoice.tokens,
        payment_method=invoice.payment_method,
    )


async def _require_checkout(db: AsyncSession, user: User, checkout_id: str) -> Checkout:
    checkout = await billing_repo.get_checkout(db, user.id, checkout_id)
    if checkout is None:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": "Checkout not found"})
    return checkout


async def _require_invoice(db: AsyncSession, user: User, invoice_id: str) -> Invoice:
    invoice = await billing_repo.get_invoice(db, user.id, invoice_id)
    if invoice is None:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": "Invoice not found"})
    return invoice


@router.get("/plans", response_model=SuccessEnvelope[PricingResponse])
async def list_quotes(request: Request) -> dict:
    quotes = [
        QuoteResponse(tier=item.tier, tokens=item.tokens, amount=item.amount, checkout_url=checkout_url(item.tier))
        for item in purchasable_quotes()
    ]
    payload = PricingResponse(
        quotes=quotes,
        payment_methods=list(PAYMENT_METHODS),
        enterprise_token_options=list(ENTERPRISE_TOKEN_OPTIONS),
        enterprise_price_per_million_usd=ENTERPRISE_PRICE_PER_MILLION_USD,
    )
    return success_response(request=request, data=payload)


@router.post("/checkouts", status_code=201, response_model=SuccessEnvelope[CheckoutResponse])
async def create_checkout(
    request: Request,
    payload: CheckoutStartRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    checkout = await start_checkout(db, user, tier=payload.tier, method=payload.method, tokens=payload.tokens)
    await commit_or_raise(db, action="starting checkout")
    return success_response(request=request, data=_checkout_response(checkout))


@router.get("/checkouts/{checkout_id}", response_model=SuccessEnvelope[CheckoutResponse])
async def get_checkout(
    request: Request,
    checkout_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    checkout = await _require_checkout(db, user, checkout_id)
    return success_response(request=request, data=_checkout_response(checkout))


@router.post(
    "/checkouts/{checkout_id}/advance",
    response_model=SuccessEnvelope[CheckoutResponse],
)
async def advance(
    request: Request,
    checkout_id: str,
    payload: CheckoutAdvanceRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    checkout = await _require_checkout(db, user, checkout_id)
    advance_checkout(checkout, **payload.model_dump())
    await commit_or_raise(db, action="advancing checkout")
    return success_response(request=request, data=_checkout_response(checkout))


@router.post(
    "/checkouts/{checkout_id}/back",
    response_model=SuccessEnvelope[CheckoutResponse],
)
async def back(
    request: Request,
    checkout_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    checkout = await _require_checkout(db, user, checkout_id)
    rewind_checkout(checkout)
    await commit_or_raise(db, action="rewinding checkout")
    return success_response(request=request, data=_checkout_response(checkout))


@router.post(
    "/checkouts/{checkout_id}/complete",
    response_model=SuccessEnvelope[CheckoutCompleteResponse],
)
async def complete(
    request: Request,
    checkout_id: str,
    payload: CheckoutCompleteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    checkout = await _require_checkout(db, user, checkout_id)
    invoice = await complete_checkout(db, user, checkout, paypal_email=payload.paypal_email)
    await commit_or_raise(db, action="completing checkout")
    data = CheckoutCompleteResponse(
        checkout=_checkout_response(checkout),
        invoice=_invoice_response(invoice),
        usage=UsageResponse(**get_usage_service().snapshot(user).as_payload()),
    )
    return success_response(request=request, data=data)


@router.get("/invoices", response_model=SuccessEnvelope[list[InvoiceResponse]])
async def list_invoices(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    invoices = await billing_repo.list_invoices(db, user.id)
    return success_response(request=request, data=[_invoice_response(invoice) for invoice in invoices])


@router.get("/invoices/{invoice_id}", response_model=SuccessEnvelope[InvoiceResponse])
async def get_invoice(
    request: Request,
    invoice_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    invoice = await _require_invoice(db, user, invoice_id)
    return success_response(request=request, data=_invoice_response(invoice))


@router.get("/invoices/{invoice_id}/html", response_class=HTMLResponse)
async def invoice_html(
    invoice_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> HTMLResponse:
    invoice = await _require_invoice(db, user, invoice_id)
    content = render_invoice(invoice, billed_to=user.name, organization=user.organization, address=user.address)
    return html_export(content=content, filename=f"{invoice.id}.html")
