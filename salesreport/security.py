from __future__ import annotations

import threading
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping
from uuid import uuid4

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from passlib.exc import UnknownHashError
from sqlalchemy import select
from sqlalchemy.orm import Session

from salesreport.errors import ApiError
from salesreport.models import Employee, Role
from salesreport.settings import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)

_LOCK = threading.Lock()
_FAILED_ATTEMPTS: dict[str, deque[datetime]] = defaultdict(deque)
_MAX_ATTEMPTS = 10
_ATTEMPT_WINDOW = timedelta(minutes=10)
_TOKEN_TYPE = "session"


@dataclass(frozen=True)
class SessionUser:
    employee_id: int
    email: str
    name: str
    role: Role
    manager_id: int | None = None

    @classmethod
    def from_employee(cls, employee: Employee) -> SessionUser:
        return cls(
            employee_id=employee.id,
            email=employee.email,
            name=employee.name,
            role=Role(employee.role),
            manager_id=employee.manager_id,
        )

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> SessionUser:
        try:
            employee_id = int(claims["employee_id"])
            role = Role(str(claims["role"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token claims are invalid.") from exc
        raw_manager_id = claims.get("manager_id")
        return cls(
            employee_id=employee_id,
            email=str(claims.get("email") or ""),
            name=str(claims.get("name") or ""),
            role=role,
            manager_id=int(raw_manager_id) if raw_manager_id is not None else None,
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _cleanup_attempts(ip: str, now: datetime) -> None:
    queue = _FAILED_ATTEMPTS[ip]
    threshold = now - _ATTEMPT_WINDOW
    while queue and queue[0] < threshold:
        queue.popleft()
    if not queue:
        _FAILED_ATTEMPTS.pop(ip, None)


def ensure_login_attempt_allowed(ip: str) -> None:
    now = _utcnow()
    with _LOCK:
        _cleanup_attempts(ip, now)
        if len(_FAILED_ATTEMPTS.get(ip, ())) >= _MAX_ATTEMPTS:
            raise ApiError(
                status_code=429,
                code="TOO_MANY_ATTEMPTS",
                message="Too many failed sign-in attempts. Please try again later.",
            )


def register_login_failure(ip: str) -> None:
    now = _utcnow()
    with _LOCK:
        _cleanup_attempts(ip, now)
        _FAILED_ATTEMPTS[ip].append(now)


def register_login_success(ip: str) -> None:
    with _LOCK:
        _FAILED_ATTEMPTS.pop(ip, None)


def reset_login_attempts() -> None:
    with _LOCK:
        _FAILED_ATTEMPTS.clear()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError, UnknownHashError):
        return False


def authenticate_employee(db: Session, email: str, password: str) -> Employee | None:
    employee = db.scalar(select(Employee).where(Employee.email == email.strip()))
    if employee is None:
        return None
    if not verify_password(password, employee.password_hash):
        return None
    return employee


def create_session_token(user: SessionUser) -> tuple[str, int, dict[str, Any]]:
    settings = get_settings()
    now = _utcnow()
    expires_in = settings.session_max_age_days * 24 * 60 * 60
    claims = {
        "sub": str(user.employee_id),
        "employee_id": user.employee_id,
        "email": user.email,
        "name": user.name,
        "role": user.role.value,
        "manager_id": user.manager_id,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        "jti": str(uuid4()),
        "typ": _TOKEN_TYPE,
    }
    token = jwt.encode(claims, settings.session_secret, algorithm="HS256")
    return token, expires_in, claims


def decode_session_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.session_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_iat": True, "require_exp": True},
        )
    except JWTError as exc:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token is invalid.") from exc

    if payload.get("typ") != _TOKEN_TYPE:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token type is invalid.")
    return payload


def extract_session_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = None,
) -> str | None:
    if credentials is not None and credentials.scheme.lower() == "bearer" and credentials.credentials:
        return credentials.credentials
    cookie_value = request.cookies.get(get_settings().session_cookie_name)
    return cookie_value or None


def resolve_session_user(token: str | None) -> SessionUser | None:
    """Decode a token into a user, treating any invalid token as signed out."""
    if not token:
        return None
    try:
        return SessionUser.from_claims(decode_session_token(token))
    except ApiError:
        return None


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> SessionUser:
    token = extract_session_token(request, credentials)
    if token is None:
        raise ApiError(status_code=401, code="UNAUTHORIZED", message="Authentication required.")

    user = SessionUser.from_claims(decode_session_token(token))
    request.state.actor = "employee"
    request.state.actor_id = str(user.employee_id)
    return user


def get_optional_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> SessionUser | None:
    user = resolve_session_user(extract_session_token(request, credentials))
    if user is not None:
        request.state.actor = "employee"
        request.state.actor_id = str(user.employee_id)
    return user


def require_role(*roles: Role) -> Callable[..., SessionUser]:
    allowed = frozenset(roles)

    def _dependency(user: SessionUser = Depends(get_current_user)) -> SessionUser:
        if user.role not in allowed:
            raise ApiError(status_code=403, code="FORBIDDEN", message="Insufficient permissions.")
        return user

    return _dependency
