from __future__ import annotations

import json
import re
from typing import Any

from rspoassist.providers.llm.base import GenerationRequest, GenerationResult


_SELECTION_LINE = re.compile(r"^\s*ID: (?P<id>.+?), Title: ", re.MULTILINE)
_CHECKLIST_LINE = re.compile(r"^\s*\[(?P<id>[^\]]+)\] (?P<title>[^:]+):", re.MULTILINE)


def _stub_from_schema(schema: dict[str, Any]) -> Any:
    kind = str(schema.get("type", "string")).lower()
    if kind == "object":
        return {key: _stub_from_schema(value) for key, value in schema.get("properties", {}).items()}
    if kind == "array":
        return []
    return "fake"


class FakeLLMProvider:
    def __init__(
        self,
        response: str = "This is a fake response.",
        *,
        responses: dict[str, str] | None = None,
        errors: dict[str, Exception] | None = None,
        grounding_urls: list[str] | None = None,
    ) -> None:
        # Deterministic responses keep tests stable without external calls.
        self._response = response
        self._responses = dict(responses or {})
        self._errors = dict(errors or {})
        self._grounding_urls = list(grounding_urls or [])
        self.calls: list[GenerationRequest] = []

    def generate(self, request: GenerationRequest) -> GenerationResult:
        self.calls.append(request)
        error = self._errors.get(request.purpose)
        if error is not None:
            raise error
        if request.purpose in self._responses:
            return GenerationResult(text=self._responses[request.purpose])
        if request.purpose == "chat":
            return GenerationResult(text=self._response, grounding_urls=list(self._grounding_urls))
        if request.purpose == "ocr":
            return GenerationResult(text="FAKE EXTRACTED TEXT")
        if request.purpose == "clause_selection":
            # Echo every offered indicator so checklist generation sees the full standard.
            ids = [match.group("id") for match in _SELECTION_LINE.finditer(request.prompt)]
            return GenerationResult(text=json.dumps(ids[:10]))
        if request.purpose == "checklist":
            items = [
                {"clauseId": match.group("id"), "checkpoint": f"Check evidence for {match.group('title')}"}
                for match in _CHECKLIST_LINE.finditer(request.prompt)
            ]
            return GenerationResult(text=json.dumps(items))
        if request.response_schema is not None:
            return GenerationResult(text=json.dumps(_stub_from_schema(request.response_schema)))
        return GenerationResult(text=self._response)
