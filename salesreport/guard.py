from __future__ import annotations

from salesreport.models import Role
from salesreport.security import SessionUser

LOGIN_PATH = "/login"
HOME_PATH = "/dashboard"

PROTECTED_PREFIXES: tuple[str, ...] = (
    "/dashboard",
    "/daily-reports",
    "/customers",
    "/employees",
    "/forbidden",
)
ADMIN_ONLY_PREFIXES: tuple[str, ...] = ("/employees",)
UNGUARDED_PREFIXES: tuple[str, ...] = ("/api", "/static", "/health", "/docs", "/openapi.json")


def _matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def resolve_redirect(path: str, user: SessionUser | None) -> str | None:
    """Return the location a page request must be redirected to, or None to pass."""
    if any(_matches(path, prefix) for prefix in UNGUARDED_PREFIXES):
        return None

    if path == "/":
        return HOME_PATH if user is not None else LOGIN_PATH

    if _matches(path, LOGIN_PATH):
        return HOME_PATH if user is not None else None

    if not any(_matches(path, prefix) for prefix in PROTECTED_PREFIXES):
        return None

    if user is None:
        return LOGIN_PATH

    if user.role != Role.ADMIN and any(_matches(path, prefix) for prefix in ADMIN_ONLY_PREFIXES):
        return HOME_PATH

    return None
