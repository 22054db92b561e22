from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from sqlalchemy.orm import Session

from salesreport.models import AuditActorType, AuditLog

logger = logging.getLogger("salesreport.audit")


def client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def user_agent(request: Request) -> str | None:
    return request.headers.get("user-agent")


def log_audit(
    db: Session,
    *,
    action: str,
    success: bool,
    actor_id: int | str | None = None,
    entity_type: str | None = None,
    entity_id: int | str | None = None,
    request: Request | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Persist one audit row and mirror it to the JSON log.

    Rows with no employee actor are recorded as SYSTEM. Write failures are
    logged and rolled back so the caller's response is not affected.
    """
    actor_type = AuditActorType.SYSTEM if actor_id is None else AuditActorType.EMPLOYEE
    actor = "system" if actor_id is None else str(actor_id)
    ip = client_ip(request) if request is not None else None
    agent = user_agent(request) if request is not None else None
    request_id = getattr(request.state, "request_id", None) if request is not None else None

    audit = AuditLog(
        ts_utc=datetime.now(timezone.utc),
        actor_type=actor_type,
        actor_id=actor,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        ip=ip,
        user_agent=agent,
        success=success,
        details=details or {},
    )
    db.add(audit)
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "audit_log_write_failed",
            extra={
                "request_id": request_id,
                "action": action,
                "actor_id": actor,
                "success": success,
            },
        )
        return

    logger.info(
        "audit_event",
        extra={
            "request_id": request_id,
            "action": action,
            "actor_type": actor_type.value,
            "actor_id": actor,
            "entity_type": entity_type,
            "entity_id": audit.entity_id,
            "ip": ip,
            "success": success,
            "details": details or {},
        },
    )
