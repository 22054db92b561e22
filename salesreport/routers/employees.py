from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from salesreport.audit import log_audit
from salesreport.db import get_db
from salesreport.errors import parse_path_id
from salesreport.models import Employee, Role
from salesreport.schemas import (
    EmployeeCreate,
    EmployeeListResponse,
    EmployeeOption,
    EmployeeOptionsResponse,
    EmployeeRead,
    EmployeeUpdate,
)
from salesreport.security import SessionUser, get_current_user, require_role
from salesreport.services import employees as employee_service

router = APIRouter(tags=["employees"])

require_admin = require_role(Role.ADMIN)


def to_employee_read(employee: Employee) -> EmployeeRead:
    return EmployeeRead(
        employee_id=employee.id,
        name=employee.name,
        email=employee.email,
        department=employee.department,
        position=employee.position,
        role=employee.role,
        manager_id=employee.manager_id,
        manager_name=employee.manager.name if employee.manager is not None else None,
        created_at=employee.created_at,
        updated_at=employee.updated_at,
    )


# Registered before /api/employees/{employee_id} so "options" is not taken as an id.
@router.get(
    "/api/employees/options",
    response_model=EmployeeOptionsResponse,
    dependencies=[Depends(get_current_user)],
)
def list_employee_options(db: Session = Depends(get_db)) -> EmployeeOptionsResponse:
    return EmployeeOptionsResponse(
        data=[EmployeeOption(employee_id=item.id, name=item.name) for item in employee_service.list_employee_options(db)]
    )


@router.get(
    "/api/employees",
    response_model=EmployeeListResponse,
    dependencies=[Depends(require_admin)],
)
def list_employees(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    name: str | None = Query(default=None),
    department: str | None = Query(default=None, max_length=100),
    db: Session = Depends(get_db),
) -> EmployeeListResponse:
    items, meta = employee_service.list_employees(db, page=page, limit=limit, name=name, department=department)
    return EmployeeListResponse(data=[to_employee_read(item) for item in items], meta=meta)


@router.post(
    "/api/employees",
    response_model=EmployeeRead,
    status_code=status.HTTP_201_CREATED,
)
def create_employee(
    payload: EmployeeCreate,
    request: Request,
    admin: SessionUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> EmployeeRead:
    employee = employee_service.create_employee(db, payload)
    log_audit(
        db,
        action="EMPLOYEE_CREATED",
        success=True,
        actor_id=admin.employee_id,
        entity_type="employee",
        entity_id=employee.id,
        request=request,
        details={"role": employee.role.value},
    )
    return to_employee_read(employee)


@router.get(
    "/api/employees/{employee_id}",
    response_model=EmployeeRead,
    dependencies=[Depends(require_admin)],
)
def get_employee(employee_id: str, db: Session = Depends(get_db)) -> EmployeeRead:
    return to_employee_read(employee_service.get_employee(db, parse_path_id(employee_id, label="employee")))


@router.put(
    "/api/employees/{employee_id}",
    response_model=EmployeeRead,
    dependencies=[Depends(require_admin)],
)
def update_employee(employee_id: str, payload: EmployeeUpdate, db: Session = Depends(get_db)) -> EmployeeRead:
    employee = employee_service.update_employee(db, parse_path_id(employee_id, label="employee"), payload)
    return to_employee_read(employee)


@router.delete("/api/employees/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_employee(
    employee_id: str,
    request: Request,
    admin: SessionUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Response:
    parsed_id = parse_path_id(employee_id, label="employee")
    employee_service.delete_employee(db, parsed_id)
    log_audit(
        db,
        action="EMPLOYEE_DELETED",
        success=True,
        actor_id=admin.employee_id,
        entity_type="employee",
        entity_id=parsed_id,
        request=request,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
