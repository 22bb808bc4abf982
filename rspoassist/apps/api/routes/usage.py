from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.apps.api.deps import commit_or_raise, get_current_user, get_db
from rspoassist.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from rspoassist.apps.api.response import SuccessEnvelope, success_response
from rspoassist.domain.models import User
from rspoassist.services.usage import get_usage_service


router = APIRouter(prefix="/usage", tags=["usage"], responses=DEFAULT_ERROR_RESPONSES)


class UsageResponse(BaseModel):
    tier: str
    used: int
    limit: int
    remaining: int
    remaining_display: int
    week_start: str
    next_reset_at: str
    time_to_recharge: str
    trial_expired: bool
    limit_reached: bool
    reason: str | None


@router.get("", response_model=SuccessEnvelope[UsageResponse])
async def get_usage(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    snapshot = get_usage_service().tick(user)
    # Persist a window reset triggered by this read.
    await commit_or_raise(db, action="reading usage")
    return success_response(request=request, data=UsageResponse(**snapshot.as_payload()))
