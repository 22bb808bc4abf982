from __future__ import annotations

import logging
from typing import AsyncGenerator, Awaitable, Callable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.apps.api.response import get_request_id
from rspoassist.core.config import get_settings
from rspoassist.domain.models import User
from rspoassist.persistence.db import get_session
from rspoassist.persistence.repos import users as users_repo
from rspoassist.providers.llm.base import LLMProvider
from rspoassist.providers.llm.factory import get_llm_provider
from rspoassist.services.auth.tokens import hash_session_token
from rspoassist.services.entitlements import require_feature


logger = logging.getLogger(__name__)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with get_session() as session:
        yield session


async def commit_or_raise(db: AsyncSession, *, action: str) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("db_commit_failed action=%s", action)
        # Return a generic 500 to avoid leaking database details.
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "DB_ERROR", "message": f"Database error while {action}"},
        ) from exc


def _auth_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "AUTH_UNAUTHORIZED", "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _parse_bearer_token(header_value: str | None) -> str | None:
    # Missing header returns None; a malformed one is rejected outright.
    if not header_value:
        return None
    scheme, _, token = header_value.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _auth_error("Authorization header must be 'Bearer <token>'")
    return token.strip()


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    settings = get_settings()
    raw_token = _parse_bearer_token(request.headers.get(settings.auth_token_header))
    if raw_token is None:
        raise _auth_error("Missing bearer token")
    user = await users_repo.get_user_by_token_hash(db, hash_session_token(raw_token))
    if user is None:
        logger.info("auth_rejected request_id=%s path=%s", get_request_id(request), request.url.path)
        raise _auth_error("Invalid or expired session token")
    request.state.user_id = user.id
    return user


def get_llm(request: Request) -> LLMProvider:
    # Tests override this dependency with the fake provider.
    return get_llm_provider(get_request_id(request))


def require_premium(feature_key: str) -> Callable[..., Awaitable[User]]:
    # Gate Digital Toolbox routes behind Professional/Enterprise tiers.
    async def _dependency(user: User = Depends(get_current_user)) -> User:
        require_feature(user, feature_key)
        return user

    return _dependency
