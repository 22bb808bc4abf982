from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Protocol

from rspoassist.core.errors import VertexTimeoutError


@dataclass(frozen=True)
class GenerationRequest:
    # purpose drives logging and the fake provider's canned output.
    purpose: str
    prompt: str
    model: str | None = None
    system_instruction: str | None = None
    temperature: float | None = None
    # JSON schema for structured output; None means free text.
    response_schema: dict[str, Any] | None = None
    image_bytes: bytes | None = None
    image_mime_type: str | None = None
    use_search: bool = False
    request_id: str | None = None


@dataclass(frozen=True)
class GenerationResult:
    text: str
    grounding_urls: list[str] = field(default_factory=list)


class LLMProvider(Protocol):
    def generate(self, request: GenerationRequest) -> GenerationResult:
        ...


async def run_generation(provider: LLMProvider, request: GenerationRequest, timeout_s: float) -> GenerationResult:
    # SDK calls block; run them off the event loop and bound their wall time.
    try:
        return await asyncio.wait_for(asyncio.to_thread(provider.generate, request), timeout=timeout_s)
    except asyncio.TimeoutError as exc:
        raise VertexTimeoutError("Vertex generation timed out.") from exc
