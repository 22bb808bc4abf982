from __future__ import annotations

from sqlalchemy.exc import OperationalError

from rspoassist.apps.api.errors import map_domain_error
from rspoassist.core.errors import (
    DatabaseError,
    GenerationError,
    OcrError,
    ProviderConfigError,
    VertexAuthError,
    VertexTimeoutError,
)


def test_provider_errors_map_to_stable_codes() -> None:
    assert map_domain_error(ProviderConfigError("missing"))[:2] == (503, "VERTEX_CONFIG_MISSING")
    assert map_domain_error(VertexAuthError("denied"))[:2] == (502, "VERTEX_AUTH_ERROR")
    assert map_domain_error(VertexTimeoutError("slow"))[:2] == (504, "VERTEX_TIMEOUT")
    assert map_domain_error(GenerationError("bad json"))[:2] == (502, "AI_SERVICE_ERROR")


def test_ocr_error_wins_over_generation_error() -> None:
    status_code, code, message = map_domain_error(OcrError("unreadable"))
    assert (status_code, code) == (422, "OCR_FAILED")
    assert message == "unreadable"


def test_database_errors_hide_details() -> None:
    status_code, code, message = map_domain_error(OperationalError("select 1", {}, Exception("locked")))
    assert (status_code, code) == (500, "DB_ERROR")
    assert "locked" not in message
    assert map_domain_error(DatabaseError("x"))[1] == "DB_ERROR"


def test_unknown_errors() -> None:
    assert map_domain_error(RuntimeError("x")) == (500, "UNKNOWN_ERROR", "Internal error.")
