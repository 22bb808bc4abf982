from __future__ import annotations

import types

import pytest

from rspoassist.core.errors import ProviderConfigError, VertexAuthError
from rspoassist.providers.llm.base import GenerationResult
import scripts.provider_smoke as provider_smoke


class ConfigFailingProvider:
    def generate(self, _request):
        # Trigger a controlled error to validate mapping in the smoke script.
        raise ProviderConfigError("Vertex config missing")


class AuthFailingProvider:
    def generate(self, _request):
        raise VertexAuthError("no creds")


class EchoProvider:
    def __init__(self) -> None:
        self.requests = []

    def generate(self, request):
        self.requests.append(request)
        return GenerationResult(text=f"echo: {request.prompt}", grounding_urls=["https://rspo.org/a"])


def _args(**overrides) -> types.SimpleNamespace:
    values = {"prompt": "What is HCV?", "model": None, "search": False}
    values.update(overrides)
    return types.SimpleNamespace(**values)


@pytest.mark.asyncio
async def test_provider_smoke_returns_config_error(monkeypatch) -> None:
    monkeypatch.setattr(provider_smoke, "get_llm_provider", lambda request_id=None: ConfigFailingProvider())

    with pytest.raises(ProviderConfigError):
        # _run should surface the underlying error for main() to map.
        await provider_smoke._run(_args())

    code, message = provider_smoke._format_error(ProviderConfigError("bad"))
    assert code == 2
    assert "VERTEX_CONFIG_MISSING" in message


@pytest.mark.asyncio
async def test_provider_smoke_returns_auth_error(monkeypatch) -> None:
    monkeypatch.setattr(provider_smoke, "get_llm_provider", lambda request_id=None: AuthFailingProvider())

    with pytest.raises(VertexAuthError):
        await provider_smoke._run(_args())

    code, message = provider_smoke._format_error(VertexAuthError("no creds"))
    assert code == 3
    assert "VERTEX_AUTH_ERROR" in message


@pytest.mark.asyncio
async def test_provider_smoke_prints_answer_and_sources(monkeypatch, capsys) -> None:
    provider = EchoProvider()
    monkeypatch.setattr(provider_smoke, "get_llm_provider", lambda request_id=None: provider)

    code = await provider_smoke._run(_args(model="gemini-test", search=True))

    assert code == 0
    out = capsys.readouterr().out
    assert "echo: What is HCV?" in out
    assert "- source=https://rspo.org/a" in out
    assert provider.requests[0].model == "gemini-test"
    assert provider.requests[0].use_search is True


def test_unknown_errors_exit_one() -> None:
    assert provider_smoke._format_error(RuntimeError("boom")) == (1, "UNKNOWN_ERROR: boom")
