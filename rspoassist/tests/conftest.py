from __future__ import annotations

import os

# Point settings at a throwaway SQLite file and the fake LLM before any app import.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./rspoassist_test.db")
os.environ["LLM_PROVIDER"] = "fake"
os.environ["DB_AUTO_CREATE"] = "false"

import pytest

from rspoassist.core.config import get_settings
from rspoassist.persistence.db import create_schema, drop_schema, engine
from rspoassist.services.usage import reset_usage_service


@pytest.fixture(autouse=True)
async def fresh_schema_between_tests() -> None:
    # Every test starts from empty tables so per-user state never leaks.
    await drop_schema()
    await create_schema()
    yield
    # Dispose the async engine to prevent cross-loop connection reuse between tests.
    await engine.dispose()


@pytest.fixture(autouse=True)
def reset_singletons() -> None:
    reset_usage_service()
    yield
    reset_usage_service()
    get_settings.cache_clear()
