import asyncio
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from salesreport.db import engine
from salesreport.errors import ApiError, PageNotFound, PageRedirect, error_response
from salesreport.guard import resolve_redirect
from salesreport.logging_utils import setup_json_logging
from salesreport.routers import auth, comments, customers, daily_reports, dashboard, employees, pages
from salesreport.security import extract_session_token, resolve_session_user
from salesreport.services.schema_guard import SchemaGuardResult, verify_runtime_schema
from salesreport.settings import get_cors_origins, get_settings

settings = get_settings()
setup_json_logging(settings.app_name, settings.log_level)
logger = logging.getLogger("salesreport.request")
startup_logger = logging.getLogger("salesreport.startup")
STATIC_DIR = Path(__file__).resolve().parent / "static"

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _is_api_path(path: str) -> bool:
    return path == "/api" or path.startswith("/api/")


@app.middleware("http")
async def route_guard_middleware(request: Request, call_next):
    user = resolve_session_user(extract_session_token(request))
    request.state.session_user = user
    location = resolve_redirect(request.url.path, user)
    if location is not None:
        return RedirectResponse(url=location, status_code=307)
    return await call_next(request)


# Registered last so it wraps the guard and logs redirects as well.
@app.middleware("http")
async def request_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or str(uuid4())
    request.state.request_id = request_id
    request.state.actor = "system"
    request.state.actor_id = "system"

    start = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers["X-Request-Id"] = request_id
        return response
    finally:
        user = getattr(request.state, "session_user", None)
        logger.info(
            "request_complete",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                "employee_id": user.employee_id if user is not None else None,
                "role": user.role.value if user is not None else None,
                "actor": request.state.actor,
                "actor_id": request.state.actor_id,
            },
        )


@app.exception_handler(ApiError)
async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


HTTP_ERROR_CODES = {
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    429: "TOO_MANY_ATTEMPTS",
}


# Starlette's base class also covers unmatched routes, which never reach a router.
@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and not _is_api_path(request.url.path):
        return pages.render_not_found(request, getattr(request.state, "session_user", None))
    return error_response(
        request,
        status_code=exc.status_code,
        code=HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
        message=str(exc.detail) if exc.detail else "Request failed.",
    )


def _validation_details(exc: RequestValidationError) -> list[dict[str, str]]:
    details: list[dict[str, str]] = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ())]
        if location and location[0] in {"body", "query", "path"}:
            location = location[1:]
        details.append({"field": ".".join(location), "message": str(error.get("msg", "Invalid value."))})
    return details


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        request,
        status_code=422,
        code="VALIDATION_ERROR",
        message="Input validation failed.",
        details=_validation_details(exc),
    )


@app.exception_handler(PageRedirect)
async def handle_page_redirect(request: Request, exc: PageRedirect) -> RedirectResponse:
    return RedirectResponse(url=exc.location, status_code=303)


@app.exception_handler(PageNotFound)
async def handle_page_not_found(request: Request, exc: PageNotFound):
    return pages.render_not_found(request, getattr(request.state, "session_user", None))


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_error",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "path": request.url.path,
            "method": request.method,
        },
    )
    return error_response(
        request,
        status_code=500,
        code="INTERNAL_ERROR",
        message="Unexpected server error.",
    )


app.include_router(auth.router)
app.include_router(customers.router)
app.include_router(employees.router)
app.include_router(daily_reports.router)
app.include_router(comments.router)
app.include_router(dashboard.router)
app.include_router(pages.router)
app.mount("/static", StaticFiles(directory=str(STATIC_DIR), check_dir=False), name="static")


def _default_schema_guard_result() -> SchemaGuardResult:
    return SchemaGuardResult(
        ok=False,
        checked_at_utc=datetime.now(timezone.utc),
        issues=["SCHEMA_GUARD_NOT_RUN"],
        warnings=[],
    )


@app.on_event("startup")
async def run_schema_guard() -> None:
    result = await asyncio.to_thread(verify_runtime_schema, engine)
    app.state.schema_guard_result = result
    if result.ok:
        startup_logger.info("schema_guard_ok", extra=result.to_dict())
        return

    startup_logger.error("schema_guard_failed", extra=result.to_dict())
    if settings.schema_guard_strict:
        joined_issues = "; ".join(result.issues)
        raise RuntimeError(f"Runtime schema guard failed: {joined_issues}")


@app.get("/health")
def health() -> dict[str, Any]:
    schema_guard_result: SchemaGuardResult = getattr(app.state, "schema_guard_result", _default_schema_guard_result())
    return {
        "status": "ok",
        "app_env": settings.app_env,
        "schema_guard": schema_guard_result.to_dict(),
    }
