from __future__ import annotations

from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from salesreport.models import Comment, DailyReport, Employee, Role
from salesreport.schemas import DashboardStatsRead, SubordinateReportStatus, WeeklyReportStatus
from salesreport.security import SessionUser


def week_bounds(today: date) -> tuple[date, date]:
    """Monday through Sunday of the week containing ``today``."""
    start = today - timedelta(days=today.weekday())
    return start, start + timedelta(days=6)


def business_days(start: date, end: date) -> int:
    days = (end - start).days + 1
    return sum(1 for offset in range(max(days, 0)) if (start + timedelta(days=offset)).weekday() < 5)


def submission_percentage(submitted: int, total: int) -> int:
    if total <= 0:
        return 0
    ratio = Decimal(submitted * 100) / Decimal(total)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _report_status(submitted: int, total: int) -> WeeklyReportStatus:
    return WeeklyReportStatus(submitted=submitted, total=total, percentage=submission_percentage(submitted, total))


def _tracked_employees(db: Session, user: SessionUser) -> list[Employee] | None:
    if user.role == Role.MANAGER:
        stmt = select(Employee).where(Employee.manager_id == user.employee_id)
    elif user.role == Role.ADMIN:
        stmt = select(Employee).where(Employee.id != user.employee_id)
    else:
        return None
    return list(db.scalars(stmt.order_by(Employee.id.asc())).all())


def get_dashboard_stats(db: Session, user: SessionUser, *, today: date | None = None) -> DashboardStatsRead:
    week_start, week_end = week_bounds(today or date.today())
    total = business_days(week_start, week_end)
    in_week = (DailyReport.report_date >= week_start, DailyReport.report_date <= week_end)

    own_submitted = db.scalar(
        select(func.count(DailyReport.id)).where(DailyReport.employee_id == user.employee_id, *in_week)
    ) or 0
    comments_on_own_reports = db.scalar(
        select(func.count(Comment.id))
        .join(DailyReport, DailyReport.id == Comment.daily_report_id)
        .where(DailyReport.employee_id == user.employee_id)
    ) or 0

    subordinates_status: list[SubordinateReportStatus] | None = None
    tracked = _tracked_employees(db, user)
    if tracked is not None:
        counts: dict[int, int] = {}
        if tracked:
            rows = db.execute(
                select(DailyReport.employee_id, func.count(DailyReport.id))
                .where(DailyReport.employee_id.in_([employee.id for employee in tracked]), *in_week)
                .group_by(DailyReport.employee_id)
            ).all()
            counts = {employee_id: count for employee_id, count in rows}
        subordinates_status = [
            SubordinateReportStatus(
                employee_id=employee.id,
                employee_name=employee.name,
                submitted=counts.get(employee.id, 0),
                total=total,
                percentage=submission_percentage(counts.get(employee.id, 0), total),
            )
            for employee in tracked
        ]

    return DashboardStatsRead(
        week_start=week_start,
        week_end=week_end,
        weekly_report_status=_report_status(own_submitted, total),
        unread_comments_count=comments_on_own_reports,
        subordinates_report_status=subordinates_status,
    )
