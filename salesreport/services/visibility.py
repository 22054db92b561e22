"""Role-based visibility rules for daily reports and master data.

Every rule takes the caller as an explicit ``SessionUser``. Manager scope is
one level deep: a manager sees their own reports and those of employees whose
``manager_id`` is the manager, never the subordinates of those subordinates.
"""

from __future__ import annotations

from sqlalchemy import select, true
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from salesreport.models import DailyReport, Employee, Role
from salesreport.security import SessionUser

_COMMENTER_ROLES = frozenset({Role.MANAGER, Role.ADMIN})
_REPORT_AUTHOR_ROLES = frozenset({Role.SALES, Role.MANAGER})


def can_view_report(user: SessionUser, report_employee_id: int, report_manager_id: int | None) -> bool:
    if user.role == Role.ADMIN:
        return True
    if report_employee_id == user.employee_id:
        return True
    return user.role == Role.MANAGER and report_manager_id == user.employee_id


def can_edit_report(user: SessionUser, report_employee_id: int) -> bool:
    return report_employee_id == user.employee_id


def can_comment(user: SessionUser) -> bool:
    return user.role in _COMMENTER_ROLES


def can_comment_on_report(user: SessionUser, report_employee_id: int, report_manager_id: int | None) -> bool:
    return can_comment(user) and can_view_report(user, report_employee_id, report_manager_id)


def can_create_report(user: SessionUser) -> bool:
    return user.role in _REPORT_AUTHOR_ROLES


def can_access_employee_management(user: SessionUser) -> bool:
    return user.role == Role.ADMIN


def viewable_employee_ids(db: Session, user: SessionUser) -> list[int] | None:
    """Employee ids whose reports the user may see; None means unrestricted."""
    if user.role == Role.ADMIN:
        return None
    if user.role == Role.MANAGER:
        subordinate_ids = db.scalars(
            select(Employee.id).where(Employee.manager_id == user.employee_id).order_by(Employee.id)
        ).all()
        return [user.employee_id, *subordinate_ids]
    return [user.employee_id]


def scope_query(db: Session, user: SessionUser) -> ColumnElement[bool]:
    employee_ids = viewable_employee_ids(db, user)
    if employee_ids is None:
        return true()
    if len(employee_ids) == 1:
        return DailyReport.employee_id == employee_ids[0]
    return DailyReport.employee_id.in_(employee_ids)
