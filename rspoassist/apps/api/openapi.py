from __future__ import annotations

from typing import Any

from rspoassist.apps.api.response import API_VERSION, ErrorEnvelope


def _error_example(*, code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "error": {"code": code, "message": message},
        "meta": {"request_id": "req_example", "api_version": API_VERSION},
    }
    if details:
        payload["error"]["details"] = details
    return payload


def _error_response(description: str, code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    return {
        "model": ErrorEnvelope,
        "description": description,
        "content": {
            "application/json": {
                "example": _error_example(code=code, message=message, details=details),
            }
        },
    }


DEFAULT_ERROR_RESPONSES: dict[int, dict[str, Any]] = {
    400: _error_response("Bad request", "INVALID_INPUT", "Message text is required"),
    401: _error_response("Unauthorized", "AUTH_UNAUTHORIZED", "Missing or invalid bearer token"),
    402: _error_response(
        "Token budget exhausted",
        "TOKEN_LIMIT_REACHED",
        "Intelligence budget depleted. Upgrade or wait for the weekly reset.",
        details={
            "action": "show_payment",
            "usage": {"tier": "Free", "used": 1001, "limit": 1000, "reason": "budget_depleted"},
        },
    ),
    403: _error_response(
        "Feature not enabled for the current plan",
        "FEATURE_NOT_ENABLED",
        "The Digital Toolbox is exclusive to Professional & Enterprise plans.",
        details={"feature_key": "vault", "action": "show_payment"},
    ),
    404: _error_response("Not found", "NOT_FOUND", "Resource not found"),
    409: _error_response("Conflict", "CHECKOUT_STEP_INVALID", "Checkout cannot complete from step method"),
    413: _error_response("Upload too large", "UPLOAD_TOO_LARGE", "Document too large. Please limit uploads to 5MB."),
    422: _error_response("Validation error", "REQUEST_VALIDATION_ERROR", "Validation error"),
    500: _error_response("Internal server error", "INTERNAL_ERROR", "Internal server error"),
    502: _error_response("AI service error", "AI_SERVICE_ERROR", "Failed to generate professional NC draft."),
    503: _error_response("Service unavailable", "VERTEX_CONFIG_MISSING", "Vertex config missing"),
}
