from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from salesreport.errors import ApiError
from salesreport.models import Comment, DailyReport
from salesreport.schemas import CommentCreate
from salesreport.security import SessionUser
from salesreport.services.visibility import can_comment, can_view_report

logger = logging.getLogger("salesreport.comments")


def add_comment(db: Session, user: SessionUser, report_id: int, payload: CommentCreate) -> Comment:
    if not can_comment(user):
        raise ApiError(status_code=403, code="FORBIDDEN", message="Only managers and administrators can comment.")

    report = db.scalar(
        select(DailyReport).options(selectinload(DailyReport.employee)).where(DailyReport.id == report_id)
    )
    if report is None:
        raise ApiError(status_code=404, code="REPORT_NOT_FOUND", message="Daily report not found.")
    if not can_view_report(user, report.employee_id, report.employee.manager_id):
        raise ApiError(status_code=403, code="FORBIDDEN", message="You are not allowed to comment on this report.")

    comment = Comment(
        daily_report_id=report.id,
        commenter_id=user.employee_id,
        body=payload.comment_content,
    )
    db.add(comment)
    db.commit()
    logger.info(
        "comment_created",
        extra={"comment_id": comment.id, "report_id": report.id, "commenter_id": user.employee_id},
    )
    return get_comment(db, comment.id)


def get_comment(db: Session, comment_id: int) -> Comment:
    comment = db.scalar(select(Comment).options(selectinload(Comment.commenter)).where(Comment.id == comment_id))
    if comment is None:
        raise ApiError(status_code=404, code="COMMENT_NOT_FOUND", message="Comment not found.")
    return comment


def delete_comment(db: Session, user: SessionUser, comment_id: int) -> Comment:
    comment = get_comment(db, comment_id)
    if comment.commenter_id != user.employee_id:
        raise ApiError(status_code=403, code="FORBIDDEN", message="Only the commenter can delete this comment.")

    db.delete(comment)
    db.commit()
    logger.info("comment_deleted", extra={"comment_id": comment_id, "report_id": comment.daily_report_id})
    return comment
