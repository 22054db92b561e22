from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from salesreport.audit import log_audit
from salesreport.db import get_db
from salesreport.errors import parse_path_id
from salesreport.routers.daily_reports import to_comment_read
from salesreport.schemas import CommentCreate, CommentRead
from salesreport.security import SessionUser, get_current_user
from salesreport.services import comments as comment_service

router = APIRouter(tags=["comments"])


@router.post(
    "/api/daily-reports/{report_id}/comments",
    response_model=CommentRead,
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    report_id: str,
    payload: CommentCreate,
    user: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CommentRead:
    comment = comment_service.add_comment(db, user, parse_path_id(report_id, label="daily report"), payload)
    return to_comment_read(comment)


@router.delete("/api/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    comment_id: str,
    request: Request,
    user: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    comment = comment_service.delete_comment(db, user, parse_path_id(comment_id, label="comment"))
    log_audit(
        db,
        action="COMMENT_DELETED",
        success=True,
        actor_id=user.employee_id,
        entity_type="comment",
        entity_id=comment.id,
        request=request,
        details={"report_id": comment.daily_report_id},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
