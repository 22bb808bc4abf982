from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.apps.api.deps import commit_or_raise, get_current_user, get_db
from rspoassist.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from rspoassist.apps.api.response import SuccessEnvelope, success_response
from rspoassist.domain.models import User
from rspoassist.services.accounts import update_profile
from rspoassist.services.entitlements import entitlements_for, has_premium_access
from rspoassist.services.usage import get_usage_service


router = APIRouter(prefix="/users", tags=["users"], responses=DEFAULT_ERROR_RESPONSES)


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    phone: str | None
    address: str | None
    organization: str | None
    avatar: str | None
    role: str
    tier: str
    token_limit: int
    tokens_used: int
    week_start: str
    created_at: str
    subscription_status: str | None
    preferences: dict[str, Any]
    notifications: dict[str, bool]
    national_interpretations: list[str]
    active_standard_id: str
    active_mode: str


class PreferencesUpdate(BaseModel):
    theme: str | None = None
    language: str | None = None
    auto_save: bool | None = None


class NotificationsUpdate(BaseModel):
    billing: bool | None = None
    compliance: bool | None = None
    system: bool | None = None


class ProfileUpdateRequest(BaseModel):
    name: str | None = None
    organization: str | None = None
    address: str | None = None
    phone: str | None = None
    avatar: str | None = None
    preferences: PreferencesUpdate | None = None
    notifications: NotificationsUpdate | None = None
    national_interpretations: list[str] | None = Field(default=None)

    model_config = {"extra": "forbid"}


class EntitlementsResponse(BaseModel):
    tier: str
    premium: bool
    features: dict[str, bool]


def user_to_response(user: User) -> UserResponse:
    week_start = user.week_start
    created_at = user.created_at
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        phone=user.phone,
        address=user.address,
        organization=user.organization,
        avatar=user.avatar,
        role=user.role,
        tier=user.tier,
        token_limit=user.token_limit,
        tokens_used=user.tokens_used,
        week_start=week_start.isoformat(),
        created_at=created_at.isoformat(),
        subscription_status=user.subscription_status,
        preferences=dict(user.preferences_json or {}),
        notifications=dict(user.notifications_json or {}),
        national_interpretations=list(user.national_interpretations_json or []),
        active_standard_id=user.active_standard_id,
        active_mode=user.active_mode,
    )


@router.get("/me", response_model=SuccessEnvelope[UserResponse])
async def get_me(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    # Reading the profile also rolls the usage window forward.
    get_usage_service().tick(user)
    await commit_or_raise(db, action="reading profile")
    return success_response(request=request, data=user_to_response(user))


@router.patch("/me", response_model=SuccessEnvelope[UserResponse])
async def patch_me(
    request: Request,
    payload: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    update_profile(user, payload.model_dump(exclude_unset=True))
    await commit_or_raise(db, action="updating profile")
    return success_response(request=request, data=user_to_response(user))


@router.get("/me/entitlements", response_model=SuccessEnvelope[EntitlementsResponse])
async def get_entitlements(request: Request, user: User = Depends(get_current_user)) -> dict:
    payload = EntitlementsResponse(
        tier=user.tier,
        premium=has_premium_access(user.tier),
        features=entitlements_for(user.tier),
    )
    return success_response(request=request, data=payload)
