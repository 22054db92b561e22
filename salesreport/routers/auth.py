from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from salesreport.audit import client_ip, log_audit
from salesreport.db import get_db
from salesreport.errors import ApiError
from salesreport.schemas import (
    SessionResponse,
    SessionUserRead,
    SignInRequest,
    SignInResponse,
    SignOutResponse,
)
from salesreport.security import (
    SessionUser,
    authenticate_employee,
    bearer_scheme,
    create_session_token,
    decode_session_token,
    ensure_login_attempt_allowed,
    extract_session_token,
    register_login_failure,
    register_login_success,
)
from salesreport.settings import get_settings, is_production

router = APIRouter(tags=["auth"])


def to_session_user_read(user: SessionUser) -> SessionUserRead:
    return SessionUserRead(
        employee_id=user.employee_id,
        email=user.email,
        name=user.name,
        role=user.role,
        manager_id=user.manager_id,
    )


def set_session_cookie(response: Response, token: str, max_age: int) -> None:
    response.set_cookie(
        key=get_settings().session_cookie_name,
        value=token,
        max_age=max_age,
        httponly=True,
        secure=is_production(),
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=get_settings().session_cookie_name, path="/")


def sign_in(db: Session, request: Request, email: str, password: str) -> tuple[SessionUser, str, int]:
    """Verify credentials under the per-IP throttle and issue a session token."""
    ip = client_ip(request)
    request.state.actor = "system"
    request.state.actor_id = "system"

    if ip:
        try:
            ensure_login_attempt_allowed(ip)
        except ApiError:
            log_audit(
                db,
                action="SIGN_IN_FAIL",
                success=False,
                request=request,
                details={"email": email, "reason": "TOO_MANY_ATTEMPTS"},
            )
            raise

    employee = authenticate_employee(db, email, password)
    if employee is None:
        if ip:
            register_login_failure(ip)
        log_audit(
            db,
            action="SIGN_IN_FAIL",
            success=False,
            request=request,
            details={"email": email, "reason": "INVALID_CREDENTIALS"},
        )
        raise ApiError(status_code=401, code="INVALID_CREDENTIALS", message="Invalid email or password.")

    if ip:
        register_login_success(ip)

    user = SessionUser.from_employee(employee)
    token, expires_in, claims = create_session_token(user)
    request.state.actor = "employee"
    request.state.actor_id = str(user.employee_id)
    log_audit(
        db,
        action="SIGN_IN_SUCCESS",
        success=True,
        actor_id=user.employee_id,
        request=request,
        details={"jti": claims["jti"], "role": user.role.value},
    )
    return user, token, expires_in


@router.post("/api/auth/signin", response_model=SignInResponse)
def signin(
    payload: SignInRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> SignInResponse:
    user, token, expires_in = sign_in(db, request, payload.email, payload.password)
    set_session_cookie(response, token, expires_in)
    return SignInResponse(
        access_token=token,
        expires_in=expires_in,
        user=to_session_user_read(user),
    )


@router.post("/api/auth/signout", response_model=SignOutResponse)
def signout(response: Response) -> SignOutResponse:
    clear_session_cookie(response)
    return SignOutResponse(ok=True)


@router.get("/api/auth/session", response_model=SessionResponse)
def session(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> SessionResponse:
    token = extract_session_token(request, credentials)
    if token is None:
        return SessionResponse()
    try:
        claims = decode_session_token(token)
        user = SessionUser.from_claims(claims)
    except ApiError:
        return SessionResponse()
    return SessionResponse(
        user=to_session_user_read(user),
        expires_at=datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc),
    )
