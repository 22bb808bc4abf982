from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Any
from uuid import uuid4

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.domain.catalog import (
    DEFAULT_MODE,
    DEFAULT_STANDARD_ID,
    LANGUAGE_MAP,
    TIER_FREE,
    get_national_interpretation,
    get_plan,
)
from rspoassist.domain.models import User
from rspoassist.persistence.repos import users as users_repo
from rspoassist.services.auth.tokens import generate_session_token


logger = logging.getLogger(__name__)

PROVIDER_DEMO = "demo"
PROVIDER_GOOGLE = "google"
PROVIDER_EMAIL = "email"
LOGIN_PROVIDERS = (PROVIDER_DEMO, PROVIDER_GOOGLE, PROVIDER_EMAIL)

DEFAULT_PREFERENCES: dict[str, Any] = {"theme": "light", "language": "en", "auto_save": True}
DEFAULT_NOTIFICATIONS: dict[str, bool] = {"billing": True, "compliance": True, "system": True}
THEMES = ("light", "dark")

# Canned identities used by the demo and Google sign-in buttons.
_CANNED_PROFILES: dict[str, dict[str, str]] = {
    PROVIDER_DEMO: {
        "name": "Demo Auditor",
        "email": "auditor@demo.rspo.org",
        "phone": "+60 3-2302 1500",
        "address": (
            "Level 13A, Menara UAC, No. 12, Jalan PJU 7/5, Mutiara Damansara, "
            "47810 Petaling Jaya, Selangor, Malaysia"
        ),
        "role": "Auditor",
        "avatar": "https://api.dicebear.com/7.x/avataaars/svg?seed=Felix",
    },
    PROVIDER_GOOGLE: {
        "name": "John Doe",
        "email": "john.doe@gmail.com",
        "phone": "+62 21 2345 6789",
        "address": "Jl. Jend. Sudirman No.1, Jakarta, Indonesia",
        "role": "Compliance Manager",
        "avatar": "https://api.dicebear.com/7.x/avataaars/svg?seed=John",
    },
}


@dataclass(frozen=True)
class LoginRequest:
    provider: str
    accepted_terms: bool
    national_interpretation_id: str | None
    name: str | None = None
    email: str | None = None
    organization: str | None = None


def _bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": "INVALID_INPUT", "message": message},
    )


def _profile_for(request: LoginRequest) -> dict[str, str | None]:
    if request.provider in _CANNED_PROFILES:
        return dict(_CANNED_PROFILES[request.provider])
    name = (request.name or "").strip()
    email = (request.email or "").strip()
    if not name or not email or "@" not in email:
        raise _bad_request("Name and a valid email are required for email sign-in")
    return {
        "name": name,
        "email": email,
        "phone": None,
        "address": None,
        "role": "Auditor",
        "avatar": f"https://api.dicebear.com/7.x/avataaars/svg?seed={name.replace(' ', '')}",
    }


async def login(session: AsyncSession, request: LoginRequest, *, now: datetime | None = None) -> tuple[User, str]:
    if request.provider not in LOGIN_PROVIDERS:
        raise _bad_request(f"Unsupported login provider: {request.provider}")
    if not request.accepted_terms:
        raise _bad_request("Please accept the Terms of Service to continue.")
    if not request.national_interpretation_id:
        raise _bad_request("Please select a National Interpretation to proceed with your audit context.")
    if get_national_interpretation(request.national_interpretation_id) is None:
        raise _bad_request(f"Unknown national interpretation: {request.national_interpretation_id}")

    profile = _profile_for(request)
    created = now or datetime.now(timezone.utc)
    free_plan = get_plan(TIER_FREE)
    raw_token, token_hash = generate_session_token()
    user = User(
        id=uuid4().hex,
        name=profile["name"],
        email=profile["email"],
        phone=profile["phone"],
        address=profile["address"],
        organization=request.organization,
        avatar=profile["avatar"],
        role=profile["role"],
        tier=TIER_FREE,
        token_limit=free_plan.tokens,
        tokens_used=0,
        week_start=created,
        subscription_status=None,
        preferences_json=dict(DEFAULT_PREFERENCES),
        notifications_json=dict(DEFAULT_NOTIFICATIONS),
        national_interpretations_json=[request.national_interpretation_id],
        active_standard_id=DEFAULT_STANDARD_ID,
        active_mode=DEFAULT_MODE,
        token_hash=token_hash,
        created_at=created,
    )
    await users_repo.add_user(session, user)
    logger.info("user_login user_id=%s provider=%s ni=%s", user.id, request.provider, request.national_interpretation_id)
    return user, raw_token


async def logout(session: AsyncSession, user: User) -> None:
    # Sign-out wipes the account and all of its stored state.
    await users_repo.delete_user_data(session, user.id)
    logger.info("user_logout user_id=%s", user.id)


def update_profile(user: User, changes: dict[str, Any]) -> User:
    """Apply a partial profile update.

    Only keys present in ``changes`` are touched. Preferences and notifications
    are merged into the stored dictionaries rather than replacing them.
    """
    for field in ("name", "organization", "address", "phone", "avatar"):
        if field in changes and changes[field] is not None:
            value = changes[field]
            if field == "name" and not str(value).strip():
                raise _bad_request("Name cannot be empty")
            setattr(user, field, value)

    preferences = changes.get("preferences")
    if preferences:
        merged = {**DEFAULT_PREFERENCES, **(user.preferences_json or {})}
        if "theme" in preferences and preferences["theme"] is not None:
            if preferences["theme"] not in THEMES:
                raise _bad_request(f"Unsupported theme: {preferences['theme']}")
            merged["theme"] = preferences["theme"]
        if "language" in preferences and preferences["language"] is not None:
            if preferences["language"] not in LANGUAGE_MAP:
                raise _bad_request(f"Unsupported language: {preferences['language']}")
            merged["language"] = preferences["language"]
        if "auto_save" in preferences and preferences["auto_save"] is not None:
            merged["auto_save"] = bool(preferences["auto_save"])
        user.preferences_json = merged

    notifications = changes.get("notifications")
    if notifications:
        merged_notifications = {**DEFAULT_NOTIFICATIONS, **(user.notifications_json or {})}
        for key in DEFAULT_NOTIFICATIONS:
            if key in notifications and notifications[key] is not None:
                merged_notifications[key] = bool(notifications[key])
        user.notifications_json = merged_notifications

    national_interpretations = changes.get("national_interpretations")
    if national_interpretations is not None:
        unknown = [ni_id for ni_id in national_interpretations if get_national_interpretation(ni_id) is None]
        if unknown:
            raise _bad_request(f"Unknown national interpretation: {', '.join(unknown)}")
        user.national_interpretations_json = list(dict.fromkeys(national_interpretations))
    return user
