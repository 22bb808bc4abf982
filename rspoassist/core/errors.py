from __future__ import annotations


class RspoAssistError(Exception):
    """Base error for the RSPO assistant."""


class ProviderConfigError(RspoAssistError):
    """Missing or invalid provider configuration."""


class VertexAuthError(RspoAssistError):
    """Vertex authentication/authorization failure."""


class VertexTimeoutError(RspoAssistError):
    """Vertex generation request timed out."""


class GenerationError(RspoAssistError):
    """The model call failed or returned an unusable payload."""


class OcrError(GenerationError):
    """Text extraction from an uploaded image failed."""


class DatabaseError(RspoAssistError):
    """Database layer failure."""
