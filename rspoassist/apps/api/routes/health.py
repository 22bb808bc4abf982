from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

from rspoassist.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from rspoassist.apps.api.response import SuccessEnvelope, success_response
from rspoassist.core.config import get_settings


router = APIRouter(tags=["health"], responses=DEFAULT_ERROR_RESPONSES)


class HealthResponse(BaseModel):
    status: str
    llm_provider: str


@router.get("/health", response_model=SuccessEnvelope[HealthResponse])
async def health(request: Request) -> dict:
    payload = HealthResponse(status="ok", llm_provider=get_settings().llm_provider)
    return success_response(request=request, data=payload)
