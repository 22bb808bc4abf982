from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.domain.models import Checkout, Invoice


async def add_checkout(session: AsyncSession, checkout: Checkout) -> Checkout:
    session.add(checkout)
    return checkout


async def get_checkout(session: AsyncSession, user_id: str, checkout_id: str) -> Checkout | None:
    result = await session.execute(
        select(Checkout).where(Checkout.id == checkout_id, Checkout.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def add_invoice(session: AsyncSession, invoice: Invoice) -> Invoice:
    session.add(invoice)
    return invoice


async def invoice_id_exists(session: AsyncSession, invoice_id: str) -> bool:
    result = await session.execute(select(Invoice.id).where(Invoice.id == invoice_id))
    return result.scalar_one_or_none() is not None


async def list_invoices(session: AsyncSession, user_id: str) -> list[Invoice]:
    # Newest invoice first, as prepended to the user's billing history.
    result = await session.execute(
        select(Invoice)
        .where(Invoice.user_id == user_id)
        .order_by(Invoice.created_at.desc(), Invoice.id.desc())
    )
    return list(result.scalars().all())


async def get_invoice(session: AsyncSession, user_id: str, invoice_id: str) -> Invoice | None:
    result = await session.execute(
        select(Invoice).where(Invoice.id == invoice_id, Invoice.user_id == user_id)
    )
    return result.scalar_one_or_none()
