from __future__ import annotations

import hashlib
import secrets


SESSION_TOKEN_PREFIX = "rspo_"


def hash_session_token(raw_token: str) -> str:
    # Use SHA-256 for deterministic, non-reversible token storage.
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def generate_session_token() -> tuple[str, str]:
    # Prefixed so tokens are recognizable in logs.
    raw_token = f"{SESSION_TOKEN_PREFIX}{secrets.token_urlsafe(32)}"
    return raw_token, hash_session_token(raw_token)
