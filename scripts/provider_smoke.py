from __future__ import annotations

import argparse
import asyncio
import sys

from rspoassist.agent.prompts import SYSTEM_INSTRUCTION
from rspoassist.core.config import get_settings
from rspoassist.core.errors import (
    GenerationError,
    ProviderConfigError,
    VertexAuthError,
    VertexTimeoutError,
)
from rspoassist.providers.llm.base import GenerationRequest, run_generation
from rspoassist.providers.llm.factory import get_llm_provider


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Send one prompt to the configured LLM provider and print the answer."
    )
    parser.add_argument("--prompt", required=True, help="Prompt text")
    parser.add_argument("--model", default=None, help="Override the configured Gemini model")
    parser.add_argument("--search", action="store_true", help="Enable Google Search grounding")
    return parser


def _format_error(exc: Exception) -> tuple[int, str]:
    # Map known provider failures to stable, actionable messages.
    if isinstance(exc, ProviderConfigError):
        return 2, f"VERTEX_CONFIG_MISSING: {exc}"
    if isinstance(exc, VertexAuthError):
        return 3, f"VERTEX_AUTH_ERROR: {exc}"
    if isinstance(exc, VertexTimeoutError):
        return 4, f"VERTEX_TIMEOUT: {exc}"
    if isinstance(exc, GenerationError):
        return 5, f"AI_SERVICE_ERROR: {exc}"
    return 1, f"UNKNOWN_ERROR: {exc}"


async def _run(args: argparse.Namespace) -> int:
    settings = get_settings()
    provider = get_llm_provider(request_id="provider-smoke")
    request = GenerationRequest(
        purpose="chat",
        prompt=args.prompt,
        model=args.model or settings.gemini_model,
        system_instruction=SYSTEM_INSTRUCTION,
        temperature=settings.gemini_temperature,
        use_search=args.search,
        request_id="provider-smoke",
    )
    result = await run_generation(provider, request, settings.vertex_timeout_s)
    print(result.text)
    for url in result.grounding_urls:
        print(f"- source={url}")
    return 0


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    try:
        return asyncio.run(_run(args))
    except Exception as exc:  # noqa: BLE001 - surface actionable errors
        code, message = _format_error(exc)
        print(message, file=sys.stderr)
        return code


if __name__ == "__main__":
    raise SystemExit(main())
