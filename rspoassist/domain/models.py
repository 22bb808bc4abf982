from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Use JSONB on Postgres and plain JSON elsewhere (SQLite for local runs and tests).
JsonType = JSON().with_variant(JSONB(), "postgresql")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String)
    email: Mapped[str] = mapped_column(String, index=True)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    organization: Mapped[str | None] = mapped_column(String, nullable=True)
    avatar: Mapped[str | None] = mapped_column(String, nullable=True)
    # Free-text job role shown on reports (e.g. "Auditor").
    role: Mapped[str] = mapped_column(String)
    tier: Mapped[str] = mapped_column(String, default="Free")
    token_limit: Mapped[int] = mapped_column(Integer)
    tokens_used: Mapped[int] = mapped_column(Integer, default=0)
    # Start of the current weekly usage window.
    week_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)
    subscription_status: Mapped[str | None] = mapped_column(String, nullable=True)
    preferences_json: Mapped[dict[str, Any]] = mapped_column(JsonType, default=dict)
    notifications_json: Mapped[dict[str, Any]] = mapped_column(JsonType, default=dict)
    national_interpretations_json: Mapped[list[str]] = mapped_column(JsonType, default=list)
    active_standard_id: Mapped[str] = mapped_column(String, default="pc2018")
    active_mode: Mapped[str] = mapped_column(String, default="CONCISE")
    # Store only the hashed session token to avoid plaintext credentials at rest.
    token_hash: Mapped[str] = mapped_column(String, unique=True, index=True)
    # Anchor for the Free tier trial window.
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_user_seq", "user_id", "seq"),)

    # Rows here form the active transcript; archived transcripts live in chat_sessions.
    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    seq: Mapped[int] = mapped_column(Integer)
    role: Mapped[str] = mapped_column(String)
    content: Mapped[str] = mapped_column(Text)
    is_nc_draft: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    show_nc_draft_link: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    options_json: Mapped[list[dict[str, Any]] | None] = mapped_column(JsonType, nullable=True)
    grounding_urls_json: Mapped[list[str] | None] = mapped_column(JsonType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)


class ChatSession(Base):
    __tablename__ = "chat_sessions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    title: Mapped[str] = mapped_column(String)
    standard_short_name: Mapped[str] = mapped_column(String)
    # Frozen message snapshot; never mutated after archiving.
    messages_json: Mapped[list[dict[str, Any]]] = mapped_column(JsonType)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)


class PolicyDocument(Base):
    __tablename__ = "policy_documents"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    name: Mapped[str] = mapped_column(String)
    doc_type: Mapped[str] = mapped_column(String)
    content: Mapped[str] = mapped_column(Text)
    file_preview: Mapped[str | None] = mapped_column(Text, nullable=True)
    upload_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)


class ChecklistDraft(Base):
    __tablename__ = "checklist_drafts"
    __table_args__ = (
        UniqueConstraint("user_id", "standard_id", name="uq_checklist_drafts_user_standard"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    standard_id: Mapped[str] = mapped_column(String)
    audit_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    items_json: Mapped[list[dict[str, Any]]] = mapped_column(JsonType)
    saved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)


class SavedAudit(Base):
    __tablename__ = "saved_audits"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    name: Mapped[str] = mapped_column(String)
    standard_id: Mapped[str] = mapped_column(String)
    standard_short_name: Mapped[str] = mapped_column(String)
    items_json: Mapped[list[dict[str, Any]]] = mapped_column(JsonType)
    score: Mapped[int] = mapped_column(Integer, default=0)
    completion: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )


class NcDraft(Base):
    __tablename__ = "nc_drafts"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    original_finding: Mapped[str] = mapped_column(Text)
    standard_short_name: Mapped[str] = mapped_column(String)
    observation: Mapped[str] = mapped_column(Text)
    requirement: Mapped[str] = mapped_column(Text)
    root_cause: Mapped[str] = mapped_column(Text)
    corrective_action: Mapped[str] = mapped_column(Text)
    prevention_plan: Mapped[str] = mapped_column(Text)
    # Draft or Finalized.
    status: Mapped[str] = mapped_column(String, default="Draft")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )


class Checkout(Base):
    __tablename__ = "checkouts"

    # Simulated payment session; no processor is contacted.
    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    tier: Mapped[str] = mapped_column(String)
    tokens: Mapped[int] = mapped_column(Integer)
    amount: Mapped[str] = mapped_column(String)
    method: Mapped[str] = mapped_column(String)
    step: Mapped[str] = mapped_column(String)
    card_name: Mapped[str | None] = mapped_column(String, nullable=True)
    # Never persist the full card number or CVV.
    card_last4: Mapped[str | None] = mapped_column(String, nullable=True)
    paypal_email: Mapped[str | None] = mapped_column(String, nullable=True)
    invoice_id: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    date: Mapped[str] = mapped_column(String)
    amount: Mapped[str] = mapped_column(String)
    status: Mapped[str] = mapped_column(String)
    billing_period: Mapped[str] = mapped_column(String)
    tokens: Mapped[int] = mapped_column(Integer)
    payment_method: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)
