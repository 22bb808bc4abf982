from __future__ import annotations

from fastapi import HTTPException
import pytest

from rspoassist.domain.models import User
from rspoassist.persistence.db import SessionLocal
from rspoassist.persistence.repos import users as users_repo
from rspoassist.services.accounts import (
    PROVIDER_DEMO,
    PROVIDER_EMAIL,
    LoginRequest,
    login,
    update_profile,
)
from rspoassist.services.auth.tokens import SESSION_TOKEN_PREFIX, hash_session_token


def _profile_user() -> User:
    return User(
        id="u-profile",
        name="Demo Auditor",
        preferences_json={"theme": "light", "language": "en", "auto_save": True},
        notifications_json={"billing": True, "compliance": True, "system": True},
        national_interpretations_json=["ni-malaysia"],
    )


@pytest.mark.asyncio
async def test_demo_login_creates_free_account() -> None:
    async with SessionLocal() as session:
        user, raw_token = await login(
            session,
            LoginRequest(provider=PROVIDER_DEMO, accepted_terms=True, national_interpretation_id="ni-png"),
        )
        await session.commit()

    assert raw_token.startswith(SESSION_TOKEN_PREFIX)
    async with SessionLocal() as session:
        stored = await users_repo.get_user_by_token_hash(session, hash_session_token(raw_token))
    assert stored is not None
    assert stored.id == user.id
    assert stored.name == "Demo Auditor"
    assert stored.tier == "Free"
    assert stored.token_limit == 1000
    assert stored.tokens_used == 0
    assert stored.national_interpretations_json == ["ni-png"]
    assert stored.active_mode == "CONCISE"
    assert stored.token_hash != raw_token


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "request_kwargs",
    [
        {"provider": PROVIDER_DEMO, "accepted_terms": False, "national_interpretation_id": "ni-malaysia"},
        {"provider": PROVIDER_DEMO, "accepted_terms": True, "national_interpretation_id": None},
        {"provider": PROVIDER_DEMO, "accepted_terms": True, "national_interpretation_id": "ni-atlantis"},
        {"provider": "facebook", "accepted_terms": True, "national_interpretation_id": "ni-malaysia"},
        {"provider": PROVIDER_EMAIL, "accepted_terms": True, "national_interpretation_id": "ni-malaysia", "email": "x"},
    ],
)
async def test_login_validation(request_kwargs) -> None:
    async with SessionLocal() as session:
        with pytest.raises(HTTPException) as excinfo:
            await login(session, LoginRequest(**request_kwargs))
    assert excinfo.value.status_code == 400
    assert excinfo.value.detail["code"] == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_email_login_uses_supplied_identity() -> None:
    async with SessionLocal() as session:
        user, _ = await login(
            session,
            LoginRequest(
                provider=PROVIDER_EMAIL,
                accepted_terms=True,
                national_interpretation_id="ni-ghana",
                name="Ama Mensah",
                email="ama@estate.gh",
                organization="Gold Coast Palm",
            ),
        )
    assert user.name == "Ama Mensah"
    assert user.organization == "Gold Coast Palm"
    assert "AmaMensah" in user.avatar


def test_update_profile_merges_preferences() -> None:
    user = update_profile(
        _profile_user(),
        {"organization": "Sawit Estate", "preferences": {"theme": "dark"}, "notifications": {"billing": False}},
    )
    assert user.organization == "Sawit Estate"
    assert user.preferences_json == {"theme": "dark", "language": "en", "auto_save": True}
    assert user.notifications_json["billing"] is False
    assert user.notifications_json["system"] is True


def test_update_profile_dedupes_interpretations() -> None:
    user = update_profile(_profile_user(), {"national_interpretations": ["ni-png", "ni-png", "ni-thailand"]})
    assert user.national_interpretations_json == ["ni-png", "ni-thailand"]


@pytest.mark.parametrize(
    "changes",
    [
        {"name": "  "},
        {"preferences": {"theme": "neon"}},
        {"preferences": {"language": "fr"}},
        {"national_interpretations": ["ni-mars"]},
    ],
)
def test_update_profile_rejects_invalid_values(changes) -> None:
    with pytest.raises(HTTPException) as excinfo:
        update_profile(_profile_user(), changes)
    assert excinfo.value.status_code == 400
