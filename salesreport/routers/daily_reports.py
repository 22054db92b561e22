from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from salesreport.audit import log_audit
from salesreport.db import get_db
from salesreport.errors import parse_path_id
from salesreport.models import Comment, DailyReport
from salesreport.schemas import (
    CommentRead,
    DailyReportListResponse,
    DailyReportRead,
    DailyReportSummary,
    DailyReportWrite,
    VisitRead,
)
from salesreport.security import SessionUser, get_current_user
from salesreport.services import daily_reports as report_service
from salesreport.services.visibility import can_comment_on_report, can_edit_report

router = APIRouter(tags=["daily-reports"])


def to_comment_read(comment: Comment) -> CommentRead:
    return CommentRead(
        comment_id=comment.id,
        report_id=comment.daily_report_id,
        commenter_id=comment.commenter_id,
        commenter_name=comment.commenter.name,
        comment_content=comment.body,
        created_at=comment.created_at,
    )


def to_report_read(report: DailyReport, user: SessionUser) -> DailyReportRead:
    return DailyReportRead(
        report_id=report.id,
        employee_id=report.employee_id,
        employee_name=report.employee.name,
        report_date=report.report_date,
        problem=report.problem,
        plan=report.plan,
        visits=[
            VisitRead(
                visit_id=visit.id,
                customer_id=visit.customer_id,
                customer_name=visit.customer.name,
                visit_time=report_service.format_hhmm(visit.visit_time),
                visit_content=visit.visit_content,
                created_at=visit.created_at,
            )
            for visit in report.visit_records
        ],
        comments=[to_comment_read(comment) for comment in report.comments],
        can_edit=can_edit_report(user, report.employee_id),
        can_comment=can_comment_on_report(user, report.employee_id, report.employee.manager_id),
        created_at=report.created_at,
        updated_at=report.updated_at,
    )


def to_report_summary(report: DailyReport) -> DailyReportSummary:
    return DailyReportSummary(
        report_id=report.id,
        employee_id=report.employee_id,
        employee_name=report.employee.name,
        report_date=report.report_date,
        visit_count=len(report.visit_records),
        comment_count=len(report.comments),
        created_at=report.created_at,
        updated_at=report.updated_at,
    )


@router.get("/api/daily-reports", response_model=DailyReportListResponse)
def list_daily_reports(
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    employee_id: int | None = Query(default=None, ge=1),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DailyReportListResponse:
    items, meta = report_service.list_reports(
        db,
        user,
        page=page,
        limit=limit,
        date_from=date_from,
        date_to=date_to,
        employee_id=employee_id,
    )
    return DailyReportListResponse(data=[to_report_summary(item) for item in items], meta=meta)


@router.post("/api/daily-reports", response_model=DailyReportRead, status_code=status.HTTP_201_CREATED)
def create_daily_report(
    payload: DailyReportWrite,
    user: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DailyReportRead:
    return to_report_read(report_service.create_report(db, user, payload), user)


@router.get("/api/daily-reports/{report_id}", response_model=DailyReportRead)
def get_daily_report(
    report_id: str,
    user: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DailyReportRead:
    report = report_service.get_report_for_viewer(db, user, parse_path_id(report_id, label="daily report"))
    return to_report_read(report, user)


@router.put("/api/daily-reports/{report_id}", response_model=DailyReportRead)
def update_daily_report(
    report_id: str,
    payload: DailyReportWrite,
    user: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DailyReportRead:
    report = report_service.update_report(db, user, parse_path_id(report_id, label="daily report"), payload)
    return to_report_read(report, user)


@router.delete("/api/daily-reports/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_daily_report(
    report_id: str,
    request: Request,
    user: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    parsed_id = parse_path_id(report_id, label="daily report")
    report_service.delete_report(db, user, parsed_id)
    log_audit(
        db,
        action="DAILY_REPORT_DELETED",
        success=True,
        actor_id=user.employee_id,
        entity_type="daily_report",
        entity_id=parsed_id,
        request=request,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
