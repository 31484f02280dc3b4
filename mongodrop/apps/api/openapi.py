from __future__ import annotations

from typing import Any

from mongodrop.apps.api.errors import ErrorEnvelope


def _error_example(*, code: str, message: str) -> dict[str, Any]:
    # Build a consistent error envelope example for OpenAPI docs.
    return {
        "error": {"code": code, "message": message},
        "meta": {"request_id": "req_example"},
    }


def _error_response(description: str, *, code: str, message: str) -> dict[str, Any]:
    return {
        "model": ErrorEnvelope,
        "description": description,
        "content": {"application/json": {"example": _error_example(code=code, message=message)}},
    }


DEFAULT_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    401: _error_response("Unauthorized", code="AUTH_UNAUTHORIZED", message="Missing bearer token"),
    403: _error_response(
        "Forbidden", code="AUTH_FORBIDDEN", message="Insufficient role for this operation"
    ),
    500: _error_response("Backup pipeline failure", code="DUMP_FAILED", message="Backup dump failed"),
}
