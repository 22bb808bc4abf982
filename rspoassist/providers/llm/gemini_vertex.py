from __future__ import annotations

import logging
from typing import Any

from rspoassist.core.config import get_settings
from rspoassist.core.errors import GenerationError, ProviderConfigError, VertexAuthError
from rspoassist.providers.llm.base import GenerationRequest, GenerationResult

logger = logging.getLogger(__name__)


def _grounding_urls(response: Any) -> list[str]:
    # Search grounding attaches cited web sources to the first candidate.
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []
    urls: list[str] = []
    for chunk in chunks:
        uri = getattr(getattr(chunk, "web", None), "uri", None)
        if uri and uri not in urls:
            urls.append(uri)
    return urls


class GeminiVertexProvider:
    def __init__(self, request_id: str | None = None) -> None:
        self._settings = get_settings()
        self._request_id = request_id

    def _validate_config(self) -> tuple[str, str]:
        # Fail fast to avoid confusing downstream SDK errors.
        project = self._settings.google_cloud_project
        location = self._settings.google_cloud_location
        missing = []
        if not project:
            missing.append("GOOGLE_CLOUD_PROJECT")
        if not location:
            missing.append("GOOGLE_CLOUD_LOCATION")
        if missing:
            raise ProviderConfigError(
                f"Vertex config missing: set {', '.join(missing)} in .env."
            )
        return project, location

    def generate(self, request: GenerationRequest) -> GenerationResult:
        project, location = self._validate_config()
        model_name = request.model or self._settings.gemini_model

        try:
            from vertexai import init
            from vertexai.generative_models import (
                GenerationConfig,
                GenerativeModel,
                Part,
                Tool,
                grounding,
            )
            from google.auth.exceptions import DefaultCredentialsError, RefreshError
            from google.api_core.exceptions import PermissionDenied, Unauthenticated
        except Exception as exc:  # pragma: no cover - import errors are environment-specific
            raise ProviderConfigError(
                "Vertex AI SDK not available. Install google-cloud-aiplatform."
            ) from exc

        config_kwargs: dict[str, Any] = {}
        if request.temperature is not None:
            config_kwargs["temperature"] = request.temperature
        if request.response_schema is not None:
            config_kwargs["response_mime_type"] = "application/json"
            config_kwargs["response_schema"] = request.response_schema

        contents: list[Any] = []
        if request.image_bytes is not None:
            contents.append(Part.from_data(data=request.image_bytes, mime_type=request.image_mime_type or "image/png"))
        contents.append(request.prompt)

        tools = None
        if request.use_search:
            tools = [Tool.from_google_search_retrieval(grounding.GoogleSearchRetrieval())]

        try:
            logger.info(
                "vertex_generate_start request_id=%s purpose=%s model=%s",
                self._request_id,
                request.purpose,
                model_name,
            )
            init(project=project, location=location)
            model = GenerativeModel(
                model_name,
                system_instruction=request.system_instruction,
            )
            response = model.generate_content(
                contents,
                generation_config=GenerationConfig(**config_kwargs) if config_kwargs else None,
                tools=tools,
            )
            text = getattr(response, "text", None) or ""
            return GenerationResult(text=text, grounding_urls=_grounding_urls(response))
        except ProviderConfigError:
            raise
        except (DefaultCredentialsError, RefreshError, PermissionDenied, Unauthenticated) as exc:
            logger.warning("vertex_generate_auth_error request_id=%s", self._request_id)
            raise VertexAuthError(
                "Vertex auth error: run `gcloud auth application-default login`."
            ) from exc
        except Exception as exc:
            logger.error(
                "vertex_generate_error request_id=%s purpose=%s",
                self._request_id,
                request.purpose,
            )
            raise GenerationError(
                "Vertex AI request failed. Check credentials and model access."
            ) from exc
