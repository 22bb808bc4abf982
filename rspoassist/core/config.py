from __future__ import annotations

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    app_name: str = "rspoassist"
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./rspoassist.db"
    # Pool sizing only applies to server databases; SQLite uses the default pool.
    api_db_pool_size: int = 10
    api_db_max_overflow: int = 10
    api_db_statement_timeout_ms: int = 0
    # Create tables on startup for local SQLite runs; use Alembic for Postgres.
    db_auto_create: bool = True

    # Header used to carry the bearer session token issued at login.
    auth_token_header: str = "Authorization"

    # Weekly rolling usage window shared by every tier.
    usage_window_days: int = 7
    # Free accounts are blocked once the trial window since signup has elapsed.
    trial_days: int = 30
    # Billing units are estimated from text length.
    chars_per_token: int = 4

    # Uploads above this size are rejected before any OCR call.
    max_upload_bytes: int = 5 * 1024 * 1024
    # Optional JSON file with extra knowledge base clauses.
    knowledge_base_path: str | None = None
    # Hosted checkout link rendered next to each paid plan; {tier} is substituted.
    checkout_url_template: str | None = None

    google_cloud_project: str | None = None
    google_cloud_location: str | None = None
    gemini_model: str = "gemini-2.0-flash-001"
    # Free tier requests go to the cheaper model.
    gemini_lite_model: str = "gemini-2.0-flash-lite-001"
    gemini_ocr_model: str = "gemini-2.0-flash-001"
    gemini_temperature: float = 0.2
    # Ground chat answers with Google Search results when enabled.
    gemini_search_grounding: bool = False
    # Bound a single generation call so a stalled provider cannot hang a request.
    vertex_timeout_s: int = 90
    # Select the LLM provider for dev/test (vertex or fake).
    llm_provider: str = "vertex"


@lru_cache
def get_settings() -> Settings:
    return Settings()
