from __future__ import annotations

import logging
from datetime import date, datetime, time

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from salesreport.errors import ApiError, field_error
from salesreport.models import Comment, Customer, DailyReport, Role, VisitRecord
from salesreport.schemas import DailyReportWrite, PageMeta, VisitWrite
from salesreport.security import SessionUser
from salesreport.services.pagination import paginate
from salesreport.services.visibility import (
    can_create_report,
    can_edit_report,
    can_view_report,
    scope_query,
    viewable_employee_ids,
)

logger = logging.getLogger("salesreport.daily_reports")

_DETAIL_OPTIONS = (
    selectinload(DailyReport.employee),
    selectinload(DailyReport.visit_records).selectinload(VisitRecord.customer),
    selectinload(DailyReport.comments).selectinload(Comment.commenter),
)


def parse_hhmm(value: str) -> time:
    return datetime.strptime(value, "%H:%M").time()


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def _forbidden(message: str) -> ApiError:
    return ApiError(status_code=403, code="FORBIDDEN", message=message)


def _report_conflict() -> ApiError:
    return ApiError(
        status_code=409,
        code="REPORT_ALREADY_EXISTS",
        message="A daily report already exists for this date.",
    )


def _date_taken(db: Session, employee_id: int, report_date: date, *, exclude_id: int | None = None) -> bool:
    stmt = select(DailyReport.id).where(
        DailyReport.employee_id == employee_id,
        DailyReport.report_date == report_date,
    )
    if exclude_id is not None:
        stmt = stmt.where(DailyReport.id != exclude_id)
    return db.scalar(stmt) is not None


def _ensure_customers_exist(db: Session, visits: list[VisitWrite]) -> None:
    requested = {visit.customer_id for visit in visits}
    found = set(db.scalars(select(Customer.id).where(Customer.id.in_(requested))).all())
    missing = sorted(requested - found)
    if missing:
        raise ApiError(
            status_code=422,
            code="VALIDATION_ERROR",
            message="Visits reference customers that do not exist.",
            details=[{"field": "visits", "message": f"Unknown customer id {customer_id}."} for customer_id in missing],
        )


def find_report(db: Session, report_id: int) -> DailyReport | None:
    return db.scalar(select(DailyReport).options(*_DETAIL_OPTIONS).where(DailyReport.id == report_id))


def get_report(db: Session, report_id: int) -> DailyReport:
    report = find_report(db, report_id)
    if report is None:
        raise ApiError(status_code=404, code="REPORT_NOT_FOUND", message="Daily report not found.")
    return report


def get_report_for_viewer(db: Session, user: SessionUser, report_id: int) -> DailyReport:
    report = get_report(db, report_id)
    if not can_view_report(user, report.employee_id, report.employee.manager_id):
        raise _forbidden("You are not allowed to view this daily report.")
    return report


def list_reports(
    db: Session,
    user: SessionUser,
    *,
    page: int,
    limit: int,
    date_from: date | None = None,
    date_to: date | None = None,
    employee_id: int | None = None,
) -> tuple[list[DailyReport], PageMeta]:
    stmt = select(DailyReport).order_by(DailyReport.report_date.desc(), DailyReport.id.desc())
    if date_from is not None:
        stmt = stmt.where(DailyReport.report_date >= date_from)
    if date_to is not None:
        stmt = stmt.where(DailyReport.report_date <= date_to)

    if user.role == Role.SALES:
        # Sales staff always see their own reports, whatever filter was asked for.
        stmt = stmt.where(scope_query(db, user))
    elif user.role == Role.MANAGER:
        viewable = viewable_employee_ids(db, user) or []
        if employee_id is not None:
            if employee_id not in viewable:
                raise ApiError(
                    status_code=403,
                    code="PERMISSION_DENIED",
                    message="You are not allowed to view this employee's reports.",
                )
            stmt = stmt.where(DailyReport.employee_id == employee_id)
        else:
            stmt = stmt.where(DailyReport.employee_id.in_(viewable))
    elif employee_id is not None:
        stmt = stmt.where(DailyReport.employee_id == employee_id)

    return paginate(
        db,
        stmt,
        page=page,
        limit=limit,
        options=[
            selectinload(DailyReport.employee),
            selectinload(DailyReport.visit_records),
            selectinload(DailyReport.comments),
        ],
    )


def create_report(db: Session, user: SessionUser, payload: DailyReportWrite) -> DailyReport:
    if not can_create_report(user):
        raise ApiError(
            status_code=403,
            code="PERMISSION_DENIED",
            message="Administrators cannot create daily reports.",
        )

    report_date = payload.parsed_report_date
    if _date_taken(db, user.employee_id, report_date):
        raise _report_conflict()
    _ensure_customers_exist(db, payload.visits)

    report = DailyReport(
        employee_id=user.employee_id,
        report_date=report_date,
        problem=payload.problem or None,
        plan=payload.plan or None,
        visit_records=[
            VisitRecord(
                customer_id=visit.customer_id,
                visit_time=parse_hhmm(visit.visit_time),
                visit_content=visit.visit_content,
            )
            for visit in payload.visits
        ],
    )
    db.add(report)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _report_conflict()
    logger.info(
        "daily_report_created",
        extra={
            "report_id": report.id,
            "employee_id": user.employee_id,
            "report_date": report_date.isoformat(),
            "visit_count": len(payload.visits),
        },
    )
    db.expire_all()
    return get_report(db, report.id)


def update_report(db: Session, user: SessionUser, report_id: int, payload: DailyReportWrite) -> DailyReport:
    """Replace the report's fields and reconcile its visit records.

    Visits carrying a ``visit_id`` update that record, visits without one are
    created, and existing records missing from the payload are deleted.
    """
    report = get_report(db, report_id)
    if not can_edit_report(user, report.employee_id):
        raise _forbidden("Only the author can edit this daily report.")

    report_date = payload.parsed_report_date
    if report_date != report.report_date and _date_taken(
        db, report.employee_id, report_date, exclude_id=report.id
    ):
        raise _report_conflict()
    _ensure_customers_exist(db, payload.visits)

    existing = {visit.id: visit for visit in report.visit_records}
    for index, item in enumerate(payload.visits):
        if item.visit_id is not None and item.visit_id not in existing:
            raise field_error(f"visits.{index}.visit_id", "Visit record does not belong to this report.")

    kept_ids = {item.visit_id for item in payload.visits if item.visit_id is not None}
    for visit_id, visit in existing.items():
        if visit_id not in kept_ids:
            report.visit_records.remove(visit)

    for item in payload.visits:
        if item.visit_id is not None:
            visit = existing[item.visit_id]
            visit.customer_id = item.customer_id
            visit.visit_time = parse_hhmm(item.visit_time)
            visit.visit_content = item.visit_content
        else:
            report.visit_records.append(
                VisitRecord(
                    customer_id=item.customer_id,
                    visit_time=parse_hhmm(item.visit_time),
                    visit_content=item.visit_content,
                )
            )

    report.report_date = report_date
    report.problem = payload.problem or None
    report.plan = payload.plan or None
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _report_conflict()
    logger.info(
        "daily_report_updated",
        extra={
            "report_id": report.id,
            "employee_id": user.employee_id,
            "visit_count": len(payload.visits),
            "deleted_visit_ids": sorted(set(existing) - kept_ids),
        },
    )
    db.expire_all()
    return get_report(db, report.id)


def delete_report(db: Session, user: SessionUser, report_id: int) -> None:
    report = get_report(db, report_id)
    if not can_edit_report(user, report.employee_id):
        raise _forbidden("Only the author can delete this daily report.")

    db.delete(report)
    db.commit()
    logger.info("daily_report_deleted", extra={"report_id": report_id, "employee_id": user.employee_id})
