from __future__ import annotations

import logging

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from salesreport.errors import ApiError, field_error
from salesreport.models import Comment, Customer, DailyReport, Employee
from salesreport.schemas import EmployeeCreate, EmployeeUpdate, PageMeta
from salesreport.security import hash_password
from salesreport.services.pagination import paginate

logger = logging.getLogger("salesreport.employees")

NAME_FILTER_MAX_LENGTH = 50


def _email_taken(db: Session, email: str, *, exclude_id: int | None = None) -> bool:
    stmt = select(Employee.id).where(Employee.email == email)
    if exclude_id is not None:
        stmt = stmt.where(Employee.id != exclude_id)
    return db.scalar(stmt) is not None


def _email_conflict() -> ApiError:
    return ApiError(status_code=409, code="EMAIL_ALREADY_EXISTS", message="Email address is already in use.")


def _ensure_manager_exists(db: Session, manager_id: int | None) -> None:
    if manager_id is not None and db.get(Employee, manager_id) is None:
        raise field_error("manager_id", "Manager does not exist.")


def list_employees(
    db: Session,
    *,
    page: int,
    limit: int,
    name: str | None = None,
    department: str | None = None,
) -> tuple[list[Employee], PageMeta]:
    if name and len(name) > NAME_FILTER_MAX_LENGTH:
        raise ApiError(
            status_code=400,
            code="VALIDATION_ERROR",
            message=f"Name filter must be at most {NAME_FILTER_MAX_LENGTH} characters.",
        )

    stmt = select(Employee).order_by(Employee.id.asc())
    if name:
        stmt = stmt.where(Employee.name.ilike(f"%{name}%"))
    if department:
        stmt = stmt.where(Employee.department == department)
    return paginate(db, stmt, page=page, limit=limit, options=[selectinload(Employee.manager)])


def list_employee_options(db: Session) -> list[Employee]:
    return list(db.scalars(select(Employee).order_by(Employee.name.asc(), Employee.id.asc())).all())


def get_employee(db: Session, employee_id: int) -> Employee:
    employee = db.scalar(
        select(Employee).options(selectinload(Employee.manager)).where(Employee.id == employee_id)
    )
    if employee is None:
        raise ApiError(status_code=404, code="EMPLOYEE_NOT_FOUND", message="Employee not found.")
    return employee


def create_employee(db: Session, payload: EmployeeCreate) -> Employee:
    if _email_taken(db, payload.email):
        raise _email_conflict()
    _ensure_manager_exists(db, payload.manager_id)

    employee = Employee(
        name=payload.name,
        email=payload.email,
        department=payload.department,
        position=payload.position,
        manager_id=payload.manager_id,
        role=payload.role,
        password_hash=hash_password(payload.password),
    )
    db.add(employee)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _email_conflict()
    logger.info("employee_created", extra={"employee_id": employee.id, "role": employee.role.value})
    return get_employee(db, employee.id)


def update_employee(db: Session, employee_id: int, payload: EmployeeUpdate) -> Employee:
    employee = get_employee(db, employee_id)

    if payload.email != employee.email and _email_taken(db, payload.email, exclude_id=employee.id):
        raise _email_conflict()

    # An omitted manager_id keeps the current manager; an explicit null clears it.
    manager_id = payload.manager_id if "manager_id" in payload.model_fields_set else employee.manager_id
    if manager_id is not None and manager_id == employee.id:
        raise field_error("manager_id", "An employee cannot be their own manager.")
    _ensure_manager_exists(db, manager_id)
    if manager_id is not None and db.get(Employee, manager_id).manager_id == employee.id:
        raise field_error("manager_id", "The chosen manager reports to this employee.")

    employee.name = payload.name
    employee.email = payload.email
    employee.department = payload.department
    employee.position = payload.position
    employee.manager_id = manager_id
    if payload.role is not None:
        employee.role = payload.role
    if payload.password:
        employee.password_hash = hash_password(payload.password)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _email_conflict()
    db.expire(employee, ["manager"])
    return get_employee(db, employee.id)


def _employee_in_use() -> ApiError:
    return ApiError(
        status_code=409,
        code="EMPLOYEE_IN_USE",
        message="Employee is referenced by reports, customers, comments or subordinates.",
    )


def employee_references(db: Session, employee_id: int) -> list[str]:
    checks = (
        ("daily_reports", exists().where(DailyReport.employee_id == employee_id)),
        ("customers", exists().where(Customer.assigned_employee_id == employee_id)),
        ("comments", exists().where(Comment.commenter_id == employee_id)),
        ("subordinates", exists().where(Employee.manager_id == employee_id)),
    )
    return [label for label, clause in checks if db.scalar(select(clause))]


def delete_employee(db: Session, employee_id: int) -> None:
    employee = get_employee(db, employee_id)
    references = employee_references(db, employee.id)
    if references:
        logger.info(
            "employee_delete_blocked",
            extra={"employee_id": employee.id, "references": references},
        )
        raise _employee_in_use()

    db.delete(employee)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _employee_in_use()
    logger.info("employee_deleted", extra={"employee_id": employee_id})
