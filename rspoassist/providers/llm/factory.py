from __future__ import annotations

from rspoassist.core.config import get_settings
from rspoassist.providers.llm.base import LLMProvider
from rspoassist.providers.llm.fake import FakeLLMProvider
from rspoassist.providers.llm.gemini_vertex import GeminiVertexProvider


def get_llm_provider(request_id: str | None = None) -> LLMProvider:
    settings = get_settings()
    provider = (settings.llm_provider or "vertex").lower()

    if provider == "fake":
        return FakeLLMProvider()
    return GeminiVertexProvider(request_id=request_id)
