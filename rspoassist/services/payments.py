from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import re
import secrets
from uuid import uuid4

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.core.config import get_settings
from rspoassist.domain.catalog import (
    ENTERPRISE_PRICE_PER_MILLION_USD,
    ENTERPRISE_TOKEN_OPTIONS,
    PLANS,
    TIER_ENTERPRISE,
    TIER_FREE,
    get_plan,
)
from rspoassist.domain.models import Checkout, Invoice, User
from rspoassist.persistence.repos import billing as billing_repo


logger = logging.getLogger(__name__)

METHOD_VISA = "visa"
METHOD_MASTERCARD = "mastercard"
METHOD_PAYPAL = "paypal"
METHOD_CREDIT = "credit"
PAYMENT_METHODS = (METHOD_VISA, METHOD_MASTERCARD, METHOD_PAYPAL, METHOD_CREDIT)

STEP_METHOD = "method"
STEP_DETAILS = "details"
STEP_BANK_REDIRECT = "bank_redirect"
STEP_PAYPAL_PORTAL = "paypal_portal"
STEP_PROCESSING = "processing"
STEP_SUCCESS = "success"

SUBSCRIPTION_ACTIVE = "Active"
INVOICE_STATUS_PAID = "Paid"

_CARD_DIGITS = 16
_EXPIRY = re.compile(r"^(0[1-9]|1[0-2])/\d{2}$")
_CVV = re.compile(r"^\d{3,4}$")
_INVOICE_ID_ATTEMPTS = 10


@dataclass(frozen=True)
class Quote:
    tier: str
    tokens: int
    amount: str


def _bad_request(message: str, **extra: object) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": "INVALID_INPUT", "message": message, **extra},
    )


def _conflict(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"code": "CHECKOUT_STEP_INVALID", "message": message},
    )


def enterprise_price(tokens: int) -> str:
    return f"${tokens // 1_000_000 * ENTERPRISE_PRICE_PER_MILLION_USD}.00"


def quote(tier: str, tokens: int | None = None) -> Quote:
    plan = get_plan(tier)
    if plan is None or tier == TIER_FREE:
        raise _bad_request(f"Plan is not purchasable: {tier}")
    if tier == TIER_ENTERPRISE:
        resolved = ENTERPRISE_TOKEN_OPTIONS[0] if tokens is None else tokens
        if resolved not in ENTERPRISE_TOKEN_OPTIONS:
            raise _bad_request(
                "Enterprise allowances are sold in whole millions from 1M to 10M",
                options=list(ENTERPRISE_TOKEN_OPTIONS),
            )
        return Quote(tier=tier, tokens=resolved, amount=enterprise_price(resolved))
    return Quote(tier=tier, tokens=plan.tokens, amount=plan.price)


def purchasable_quotes() -> list[Quote]:
    return [quote(plan.tier) for plan in PLANS if plan.tier != TIER_FREE]


def checkout_url(tier: str) -> str | None:
    template = get_settings().checkout_url_template
    if not template:
        return None
    return template.format(tier=tier.lower())


def format_card_number(raw: str) -> str:
    digits = re.sub(r"\D", "", raw or "")[:_CARD_DIGITS]
    return " ".join(digits[i : i + 4] for i in range(0, len(digits), 4))


def validate_card(*, card_name: str | None, card_number: str | None, expiry: str | None, cvv: str | None) -> str:
    """Validate card details and return the formatted card number."""
    errors: dict[str, str] = {}
    if not card_name or not card_name.strip():
        errors["card_name"] = "Cardholder name is required"
    formatted = format_card_number(card_number or "")
    if len(re.sub(r"\D", "", card_number or "")) != _CARD_DIGITS or len(formatted) != 19:
        errors["card_number"] = "Card number must have 16 digits"
    if not expiry or not _EXPIRY.match(expiry):
        errors["expiry"] = "Expiry must be MM/YY"
    if not cvv or not _CVV.match(cvv):
        errors["cvv"] = "CVV must be 3 or 4 digits"
    if errors:
        raise _bad_request("Invalid card details", fields=errors)
    return formatted


def validate_paypal_email(email: str | None) -> str:
    if not email or "@" not in email:
        raise _bad_request("Please enter a valid PayPal account email.")
    return email.strip()


def billing_period(now: datetime) -> str:
    return now.strftime("%B %Y")


async def _new_invoice_id(session: AsyncSession) -> str:
    for _ in range(_INVOICE_ID_ATTEMPTS):
        candidate = f"INV-{100000 + secrets.randbelow(900000)}"
        if not await billing_repo.invoice_id_exists(session, candidate):
            return candidate
    # Fall back to a longer id if the six-digit space is crowded.
    return f"INV-{uuid4().hex[:12].upper()}"


async def start_checkout(
    session: AsyncSession,
    user: User,
    *,
    tier: str,
    method: str,
    tokens: int | None = None,
) -> Checkout:
    if method not in PAYMENT_METHODS:
        raise _bad_request(f"Unsupported payment method: {method}")
    selected = quote(tier, tokens)
    checkout = Checkout(
        id=uuid4().hex,
        user_id=user.id,
        tier=selected.tier,
        tokens=selected.tokens,
        amount=selected.amount,
        method=method,
        step=STEP_METHOD,
    )
    await billing_repo.add_checkout(session, checkout)
    logger.info(
        "checkout_started user_id=%s checkout_id=%s tier=%s tokens=%s method=%s",
        user.id,
        checkout.id,
        selected.tier,
        selected.tokens,
        method,
    )
    return checkout


def advance_checkout(
    checkout: Checkout,
    *,
    method: str | None = None,
    card_name: str | None = None,
    card_number: str | None = None,
    expiry: str | None = None,
    cvv: str | None = None,
) -> Checkout:
    """Move a checkout one step forward.

    From ``method`` the flow goes to ``paypal_portal`` for PayPal and to
    ``details`` for cards. Card details are validated before the
    ``bank_redirect`` step; only the last four digits are kept.
    """
    if checkout.step == STEP_METHOD:
        if method is not None:
            if method not in PAYMENT_METHODS:
                raise _bad_request(f"Unsupported payment method: {method}")
            checkout.method = method
        checkout.step = STEP_PAYPAL_PORTAL if checkout.method == METHOD_PAYPAL else STEP_DETAILS
        return checkout
    if checkout.step == STEP_DETAILS:
        formatted = validate_card(card_name=card_name, card_number=card_number, expiry=expiry, cvv=cvv)
        checkout.card_name = card_name.strip().upper()
        checkout.card_last4 = formatted[-4:]
        checkout.step = STEP_BANK_REDIRECT
        return checkout
    raise _conflict(f"Checkout cannot advance from step {checkout.step}")


def rewind_checkout(checkout: Checkout) -> Checkout:
    if checkout.step in (STEP_PROCESSING, STEP_SUCCESS):
        raise _conflict("Completed checkouts cannot be changed")
    checkout.step = STEP_METHOD
    checkout.card_name = None
    checkout.card_last4 = None
    return checkout


async def complete_checkout(
    session: AsyncSession,
    user: User,
    checkout: Checkout,
    *,
    paypal_email: str | None = None,
    now: datetime | None = None,
) -> Invoice:
    if checkout.step not in (STEP_BANK_REDIRECT, STEP_PAYPAL_PORTAL):
        raise _conflict(f"Checkout cannot complete from step {checkout.step}")
    if checkout.method == METHOD_PAYPAL:
        # The account email pre-fills the PayPal login.
        checkout.paypal_email = validate_paypal_email(paypal_email or user.email)
    checkout.step = STEP_PROCESSING

    paid_at = now or datetime.now(timezone.utc)
    invoice = Invoice(
        id=await _new_invoice_id(session),
        user_id=user.id,
        date=paid_at.strftime("%Y-%m-%d"),
        amount=checkout.amount,
        status=INVOICE_STATUS_PAID,
        billing_period=billing_period(paid_at),
        tokens=checkout.tokens,
        payment_method=checkout.method.upper(),
        created_at=paid_at,
    )
    await billing_repo.add_invoice(session, invoice)

    # A successful purchase replaces the allowance and opens a fresh window.
    user.tier = checkout.tier
    user.token_limit = checkout.tokens
    user.tokens_used = 0
    user.week_start = paid_at
    user.subscription_status = SUBSCRIPTION_ACTIVE

    checkout.step = STEP_SUCCESS
    checkout.invoice_id = invoice.id
    checkout.completed_at = paid_at
    logger.info(
        "checkout_completed user_id=%s checkout_id=%s invoice_id=%s tier=%s tokens=%s",
        user.id,
        checkout.id,
        invoice.id,
        checkout.tier,
        checkout.tokens,
    )
    return invoice
