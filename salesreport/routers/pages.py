from __future__ import annotations

from datetime import date
from pathlib import Path

from fastapi import APIRouter, Depends, Form, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from salesreport.db import get_db
from salesreport.errors import ApiError, PageNotFound, PageRedirect
from salesreport.guard import HOME_PATH, LOGIN_PATH
from salesreport.models import Customer, DailyReport, Employee, Role
from salesreport.routers.auth import clear_session_cookie, set_session_cookie, sign_in
from salesreport.security import SessionUser, get_optional_user
from salesreport.services import customers as customer_service
from salesreport.services import daily_reports as report_service
from salesreport.services import employees as employee_service
from salesreport.services.dashboard import get_dashboard_stats
from salesreport.services.visibility import (
    can_access_employee_management,
    can_comment_on_report,
    can_create_report,
    can_edit_report,
    can_view_report,
)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["hhmm"] = report_service.format_hhmm

router = APIRouter(tags=["pages"], include_in_schema=False)

PAGE_SIZE = 20


def require_page_user(user: SessionUser | None = Depends(get_optional_user)) -> SessionUser:
    if user is None:
        raise PageRedirect(LOGIN_PATH)
    return user


def require_page_admin(user: SessionUser = Depends(require_page_user)) -> SessionUser:
    if not can_access_employee_management(user):
        raise PageRedirect(HOME_PATH)
    return user


def _page_id(raw: str) -> int:
    value = raw.strip()
    if not value.isdigit():
        raise PageNotFound()
    return int(value)


def _load_viewable_report(db: Session, user: SessionUser, raw_id: str) -> DailyReport:
    report = report_service.find_report(db, _page_id(raw_id))
    if report is None:
        raise PageNotFound()
    if not can_view_report(user, report.employee_id, report.employee.manager_id):
        raise PageRedirect("/daily-reports")
    return report


def _render(request: Request, name: str, user: SessionUser | None, status_code: int = 200, **context) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        name,
        {"user": user, **context},
        status_code=status_code,
    )


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request) -> HTMLResponse:
    return _render(request, "login.html", None)


@router.post("/login")
def login_submit(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
):
    try:
        _, token, expires_in = sign_in(db, request, email, password)
    except ApiError as exc:
        return _render(request, "login.html", None, status_code=exc.status_code, error=exc.message, email=email)

    response = RedirectResponse(url=HOME_PATH, status_code=status.HTTP_303_SEE_OTHER)
    set_session_cookie(response, token, expires_in)
    return response


@router.post("/logout")
def logout() -> RedirectResponse:
    response = RedirectResponse(url=LOGIN_PATH, status_code=status.HTTP_303_SEE_OTHER)
    clear_session_cookie(response)
    return response


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard_page(
    request: Request,
    user: SessionUser = Depends(require_page_user),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    return _render(
        request,
        "dashboard.html",
        user,
        stats=get_dashboard_stats(db, user),
        can_create_report=can_create_report(user),
    )


@router.get("/daily-reports", response_class=HTMLResponse)
def daily_reports_page(
    request: Request,
    page: int = Query(default=1, ge=1),
    user: SessionUser = Depends(require_page_user),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    reports, meta = report_service.list_reports(db, user, page=page, limit=PAGE_SIZE)
    return _render(
        request,
        "daily_reports.html",
        user,
        reports=reports,
        meta=meta,
        can_create_report=can_create_report(user),
    )


@router.get("/daily-reports/new", response_class=HTMLResponse)
def daily_report_new_page(
    request: Request,
    user: SessionUser = Depends(require_page_user),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    if not can_create_report(user):
        raise PageRedirect("/daily-reports")
    return _render(
        request,
        "daily_report_edit.html",
        user,
        report=None,
        today=date.today().isoformat(),
        customers=customer_service.list_customers(db, page=1, limit=500)[0],
    )


@router.get("/daily-reports/{report_id}", response_class=HTMLResponse)
def daily_report_detail_page(
    report_id: str,
    request: Request,
    user: SessionUser = Depends(require_page_user),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    report = _load_viewable_report(db, user, report_id)
    return _render(
        request,
        "daily_report_detail.html",
        user,
        report=report,
        can_edit=can_edit_report(user, report.employee_id),
        can_comment=can_comment_on_report(user, report.employee_id, report.employee.manager_id),
    )


@router.get("/daily-reports/{report_id}/edit", response_class=HTMLResponse)
def daily_report_edit_page(
    report_id: str,
    request: Request,
    user: SessionUser = Depends(require_page_user),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    report = _load_viewable_report(db, user, report_id)
    if not can_edit_report(user, report.employee_id):
        raise PageRedirect(f"/daily-reports/{report.id}")
    return _render(
        request,
        "daily_report_edit.html",
        user,
        report=report,
        customers=customer_service.list_customers(db, page=1, limit=500)[0],
    )


@router.get("/customers", response_class=HTMLResponse)
def customers_page(
    request: Request,
    page: int = Query(default=1, ge=1),
    customer_name: str | None = Query(default=None, max_length=100),
    user: SessionUser = Depends(require_page_user),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    customers, meta = customer_service.list_customers(db, page=page, limit=100, customer_name=customer_name)
    return _render(
        request,
        "customers.html",
        user,
        customers=customers,
        meta=meta,
        customer_name=customer_name or "",
    )


def _customer_form(request: Request, user: SessionUser, db: Session, customer: Customer | None) -> HTMLResponse:
    return _render(
        request,
        "customer_edit.html",
        user,
        customer=customer,
        employees=employee_service.list_employee_options(db),
    )


@router.get("/customers/new", response_class=HTMLResponse)
def customer_new_page(
    request: Request,
    user: SessionUser = Depends(require_page_user),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    return _customer_form(request, user, db, None)


@router.get("/customers/{customer_id}/edit", response_class=HTMLResponse)
def customer_edit_page(
    customer_id: str,
    request: Request,
    user: SessionUser = Depends(require_page_user),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    customer = db.get(Customer, _page_id(customer_id))
    if customer is None:
        raise PageNotFound()
    return _customer_form(request, user, db, customer)


@router.get("/employees", response_class=HTMLResponse)
def employees_page(
    request: Request,
    page: int = Query(default=1, ge=1),
    user: SessionUser = Depends(require_page_admin),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    employees, meta = employee_service.list_employees(db, page=page, limit=PAGE_SIZE)
    return _render(request, "employees.html", user, employees=employees, meta=meta)


def _employee_form(request: Request, user: SessionUser, db: Session, employee: Employee | None) -> HTMLResponse:
    managers = [item for item in employee_service.list_employee_options(db) if employee is None or item.id != employee.id]
    return _render(
        request,
        "employee_edit.html",
        user,
        employee=employee,
        managers=managers,
        roles=list(Role),
    )


@router.get("/employees/new", response_class=HTMLResponse)
def employee_new_page(
    request: Request,
    user: SessionUser = Depends(require_page_admin),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    return _employee_form(request, user, db, None)


@router.get("/employees/{employee_id}/edit", response_class=HTMLResponse)
def employee_edit_page(
    employee_id: str,
    request: Request,
    user: SessionUser = Depends(require_page_admin),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    employee = db.get(Employee, _page_id(employee_id))
    if employee is None:
        raise PageNotFound()
    return _employee_form(request, user, db, employee)


@router.get("/forbidden", response_class=HTMLResponse)
def forbidden_page(request: Request, user: SessionUser = Depends(require_page_user)) -> HTMLResponse:
    return _render(request, "forbidden.html", user, status_code=status.HTTP_403_FORBIDDEN)


def render_not_found(request: Request, user: SessionUser | None) -> HTMLResponse:
    return _render(request, "not_found.html", user, status_code=status.HTTP_404_NOT_FOUND)
