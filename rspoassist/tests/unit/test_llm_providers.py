from __future__ import annotations

import json
import time

import pytest

from rspoassist.core.config import get_settings
from rspoassist.core.errors import GenerationError, ProviderConfigError, VertexTimeoutError
from rspoassist.providers.llm.base import GenerationRequest, GenerationResult, run_generation
from rspoassist.providers.llm.factory import get_llm_provider
from rspoassist.providers.llm.fake import FakeLLMProvider
from rspoassist.providers.llm.gemini_vertex import GeminiVertexProvider


class SlowProvider:
    def generate(self, request: GenerationRequest) -> GenerationResult:
        time.sleep(0.5)
        return GenerationResult(text="late")


@pytest.mark.asyncio
async def test_fake_provider_records_calls() -> None:
    provider = FakeLLMProvider()
    result = await run_generation(provider, GenerationRequest(purpose="chat", prompt="hi"), 5)
    assert result.text == "This is a fake response."
    assert [call.purpose for call in provider.calls] == ["chat"]


def test_fake_provider_structured_outputs() -> None:
    provider = FakeLLMProvider()
    selection = provider.generate(
        GenerationRequest(purpose="clause_selection", prompt="ID: RSPO P&C 7.3.1, Title: New plantings")
    )
    assert json.loads(selection.text) == ["RSPO P&C 7.3.1"]
    stub = provider.generate(
        GenerationRequest(
            purpose="nc_draft",
            prompt="finding",
            response_schema={"type": "object", "properties": {"observation": {"type": "string"}}},
        )
    )
    assert json.loads(stub.text) == {"observation": "fake"}


def test_fake_provider_raises_configured_errors() -> None:
    provider = FakeLLMProvider(errors={"ocr": GenerationError("boom")})
    with pytest.raises(GenerationError):
        provider.generate(GenerationRequest(purpose="ocr", prompt="scan"))


@pytest.mark.asyncio
async def test_run_generation_times_out() -> None:
    with pytest.raises(VertexTimeoutError):
        await run_generation(SlowProvider(), GenerationRequest(purpose="chat", prompt="hi"), 0.05)


def test_factory_selects_fake(monkeypatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "fake")
    get_settings.cache_clear()
    assert isinstance(get_llm_provider(), FakeLLMProvider)


def test_vertex_provider_requires_project_and_location(monkeypatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "vertex")
    monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "")
    monkeypatch.setenv("GOOGLE_CLOUD_LOCATION", "")
    get_settings.cache_clear()
    provider = get_llm_provider(request_id="req-1")
    assert isinstance(provider, GeminiVertexProvider)
    with pytest.raises(ProviderConfigError) as excinfo:
        provider.generate(GenerationRequest(purpose="chat", prompt="hi"))
    assert "GOOGLE_CLOUD_PROJECT" in str(excinfo.value)
