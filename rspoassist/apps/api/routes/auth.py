from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.apps.api.deps import commit_or_raise, get_current_user, get_db
from rspoassist.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from rspoassist.apps.api.response import SuccessEnvelope, success_response
from rspoassist.apps.api.routes.users import UserResponse, user_to_response
from rspoassist.domain.models import User
from rspoassist.services.accounts import LoginRequest, login, logout


router = APIRouter(prefix="/auth", tags=["auth"], responses=DEFAULT_ERROR_RESPONSES)


class LoginBody(BaseModel):
    provider: str
    accepted_terms: bool = False
    national_interpretation_id: str | None = None
    name: str | None = None
    email: str | None = None
    organization: str | None = None

    model_config = {
        "extra": "forbid",
        "json_schema_extra": {
            "examples": [
                {
                    "provider": "demo",
                    "accepted_terms": True,
                    "national_interpretation_id": "ni-malaysia",
                }
            ]
        },
    }


class LoginResponse(BaseModel):
    access_token: str
    token_type: str
    user: UserResponse


class LogoutResponse(BaseModel):
    status: str


@router.post("/login", response_model=SuccessEnvelope[LoginResponse])
async def login_route(
    request: Request,
    payload: LoginBody,
    db: AsyncSession = Depends(get_db),
) -> dict:
    user, raw_token = await login(db, LoginRequest(**payload.model_dump()))
    await commit_or_raise(db, action="creating session")
    # The raw token is only returned here; storage keeps its hash.
    data = LoginResponse(access_token=raw_token, token_type="bearer", user=user_to_response(user))
    return success_response(request=request, data=data)


@router.post("/logout", response_model=SuccessEnvelope[LogoutResponse])
async def logout_route(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await logout(db, user)
    await commit_or_raise(db, action="signing out")
    return success_response(request=request, data=LogoutResponse(status="signed_out"))
