from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: list[dict[str, Any]] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details


def field_error(field: str, message: str, *, code: str = "VALIDATION_ERROR") -> ApiError:
    return ApiError(
        status_code=422,
        code=code,
        message="Input validation failed.",
        details=[{"field": field, "message": message}],
    )


def parse_path_id(raw: str, *, label: str) -> int:
    """Parse a numeric path segment; non-numeric input is a 400, not a 404."""
    value = raw.strip()
    if not value.isdigit():
        raise ApiError(status_code=400, code="INVALID_PARAMETER", message=f"Invalid {label} id.")
    return int(value)


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: list[dict[str, Any]] | None = None,
) -> JSONResponse:
    error: dict[str, Any] = {
        "code": code,
        "message": message,
        "request_id": get_request_id(request),
    }
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error})


class PageRedirect(Exception):
    """Raised by page handlers to send the browser elsewhere instead of rendering."""

    def __init__(self, location: str):
        super().__init__(location)
        self.location = location


class PageNotFound(Exception):
    pass
