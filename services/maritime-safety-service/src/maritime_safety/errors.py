"""API error primitives and the error envelope."""

from __future__ import annotations

from typing import Any
from uuid import uuid4

from fastapi.responses import JSONResponse


HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    409: "CONFLICT",
    422: "UNPROCESSABLE_ENTITY",
}


class ApiError(Exception):
    """Structured API error rendered with the standard envelope."""

    def __init__(self, *, status_code: int, code: str, message: str, trace_id: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.trace_id = trace_id


def error_response(
    *,
    status_code: int,
    code: str,
    message: str,
    trace_id: str | None,
    details: list[dict[str, Any]] | None = None,
) -> JSONResponse:
    """Build standard error envelope response."""

    payload: dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
            "trace_id": trace_id or f"trc_{uuid4().hex[:8]}",
        }
    }
    if details:
        payload["error"]["details"] = details
    return JSONResponse(status_code=status_code, content=payload)
