from __future__ import annotations

from datetime import datetime

from fastapi import FastAPI

from rspoassist.apps.api.deps import get_llm
from rspoassist.apps.api.main import create_app
from rspoassist.domain.catalog import get_plan
from rspoassist.persistence.db import SessionLocal
from rspoassist.persistence.repos import users as users_repo
from rspoassist.providers.llm.fake import FakeLLMProvider
from rspoassist.services.accounts import PROVIDER_DEMO, LoginRequest, login


async def create_test_user(
    *,
    tier: str = "Free",
    tokens_used: int = 0,
    token_limit: int | None = None,
    created_at: datetime | None = None,
    national_interpretation_id: str = "ni-malaysia",
) -> tuple[str, dict[str, str]]:
    # Provision a signed-in user directly in the database for API tests.
    async with SessionLocal() as session:
        user, raw_token = await login(
            session,
            LoginRequest(
                provider=PROVIDER_DEMO,
                accepted_terms=True,
                national_interpretation_id=national_interpretation_id,
            ),
            now=created_at,
        )
        user.tier = tier
        user.token_limit = token_limit if token_limit is not None else get_plan(tier).tokens
        user.tokens_used = tokens_used
        await session.commit()
        return user.id, {"Authorization": f"Bearer {raw_token}"}


async def load_user(user_id: str):
    async with SessionLocal() as session:
        return await users_repo.get_user(session, user_id)


def create_test_app(provider: FakeLLMProvider | None = None) -> tuple[FastAPI, FakeLLMProvider]:
    # Inject the fake provider through the dependency so no Vertex call is made.
    fake = provider or FakeLLMProvider()
    app = create_app()
    app.dependency_overrides[get_llm] = lambda: fake
    return app, fake
