from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from rspoassist.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from rspoassist.apps.api.response import SuccessEnvelope, success_response
from rspoassist.domain.catalog import (
    DISCLAIMER,
    LANGUAGES,
    NATIONAL_INTERPRETATIONS,
    ONBOARDING_OPTIONS,
    PLANS,
    PRIMING_MESSAGES,
    STANDARDS,
    Clause,
    clauses_for_standard,
    get_standard,
)


router = APIRouter(prefix="/reference", tags=["reference"], responses=DEFAULT_ERROR_RESPONSES)


class StandardResponse(BaseModel):
    id: str
    name: str
    year: str
    short_name: str


class ClauseResponse(BaseModel):
    id: str
    standard_id: str
    title: str
    description: str
    principle: str
    criterion: str
    indicator: str
    # Ready-made chat question for the indicator.
    suggested_query: str


class PlanResponse(BaseModel):
    tier: str
    price: str
    tokens: int
    features: list[str]


class ModeResponse(BaseModel):
    label: str
    value: str
    icon: str
    priming_message: str


class LanguageResponse(BaseModel):
    code: str
    name: str
    flag: str


class NationalInterpretationResponse(BaseModel):
    id: str
    name: str
    country: str


class DisclaimerResponse(BaseModel):
    text: str


def clause_matches(clause: Clause, query: str) -> bool:
    needle = query.strip().lower()
    if not needle:
        return True
    return any(
        needle in value.lower()
        for value in (clause.id, clause.title, clause.description, clause.indicator)
    )


def _clause_response(clause: Clause, short_name: str) -> ClauseResponse:
    return ClauseResponse(
        id=clause.id,
        standard_id=clause.standard_id,
        title=clause.title,
        description=clause.description,
        principle=clause.principle,
        criterion=clause.criterion,
        indicator=clause.indicator,
        suggested_query=f"Explain indicator {clause.indicator} from {short_name}: {clause.title}",
    )


@router.get("/standards", response_model=SuccessEnvelope[list[StandardResponse]])
async def list_standards(request: Request) -> dict:
    data = [
        StandardResponse(id=item.id, name=item.name, year=item.year, short_name=item.short_name)
        for item in STANDARDS
    ]
    return success_response(request=request, data=data)


@router.get(
    "/standards/{standard_id}/clauses",
    response_model=SuccessEnvelope[list[ClauseResponse]],
)
async def list_clauses(
    request: Request,
    standard_id: str,
    q: str | None = Query(default=None, description="Case-insensitive match on id, title, description or indicator"),
) -> dict:
    standard = get_standard(standard_id)
    if standard is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "NOT_FOUND", "message": f"Unknown standard: {standard_id}"},
        )
    clauses = [clause for clause in clauses_for_standard(standard_id) if clause_matches(clause, q or "")]
    data = [_clause_response(clause, standard.short_name) for clause in clauses]
    return success_response(request=request, data=data)


@router.get("/plans", response_model=SuccessEnvelope[list[PlanResponse]])
async def list_plans(request: Request) -> dict:
    data = [
        PlanResponse(tier=plan.tier, price=plan.price, tokens=plan.tokens, features=list(plan.features))
        for plan in PLANS
    ]
    return success_response(request=request, data=data)


@router.get("/modes", response_model=SuccessEnvelope[list[ModeResponse]])
async def list_modes(request: Request) -> dict:
    data = [
        ModeResponse(
            label=option.label,
            value=option.value,
            icon=option.icon,
            priming_message=PRIMING_MESSAGES[option.value],
        )
        for option in ONBOARDING_OPTIONS
    ]
    return success_response(request=request, data=data)


@router.get("/languages", response_model=SuccessEnvelope[list[LanguageResponse]])
async def list_languages(request: Request) -> dict:
    data = [LanguageResponse(code=item.code, name=item.name, flag=item.flag) for item in LANGUAGES]
    return success_response(request=request, data=data)


@router.get(
    "/national-interpretations",
    response_model=SuccessEnvelope[list[NationalInterpretationResponse]],
)
async def list_national_interpretations(request: Request) -> dict:
    data = [
        NationalInterpretationResponse(id=item.id, name=item.name, country=item.country)
        for item in NATIONAL_INTERPRETATIONS
    ]
    return success_response(request=request, data=data)


@router.get("/disclaimer", response_model=SuccessEnvelope[DisclaimerResponse])
async def get_disclaimer(request: Request) -> dict:
    return success_response(request=request, data=DisclaimerResponse(text=DISCLAIMER))
