from __future__ import annotations

import logging

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from salesreport.errors import ApiError, field_error
from salesreport.models import Customer, Employee, VisitRecord
from salesreport.schemas import CustomerWrite, PageMeta
from salesreport.services.pagination import paginate

logger = logging.getLogger("salesreport.customers")


def _ensure_employee_exists(db: Session, employee_id: int) -> None:
    if db.get(Employee, employee_id) is None:
        raise field_error("assigned_employee_id", "Assigned employee does not exist.")


def list_customers(
    db: Session,
    *,
    page: int,
    limit: int,
    customer_name: str | None = None,
    employee_id: int | None = None,
) -> tuple[list[Customer], PageMeta]:
    stmt = select(Customer).order_by(Customer.name.asc(), Customer.id.asc())
    if customer_name:
        stmt = stmt.where(Customer.name.ilike(f"%{customer_name}%"))
    if employee_id is not None:
        stmt = stmt.where(Customer.assigned_employee_id == employee_id)
    return paginate(
        db,
        stmt,
        page=page,
        limit=limit,
        options=[selectinload(Customer.assigned_employee)],
    )


def get_customer(db: Session, customer_id: int) -> Customer:
    customer = db.scalar(
        select(Customer)
        .options(selectinload(Customer.assigned_employee))
        .where(Customer.id == customer_id)
    )
    if customer is None:
        raise ApiError(status_code=404, code="CUSTOMER_NOT_FOUND", message="Customer not found.")
    return customer


def create_customer(db: Session, payload: CustomerWrite) -> Customer:
    _ensure_employee_exists(db, payload.assigned_employee_id)

    customer = Customer(
        name=payload.customer_name,
        address=payload.address,
        phone=payload.phone,
        email=payload.email,
        assigned_employee_id=payload.assigned_employee_id,
    )
    db.add(customer)
    db.commit()
    logger.info("customer_created", extra={"customer_id": customer.id})
    return get_customer(db, customer.id)


def update_customer(db: Session, customer_id: int, payload: CustomerWrite) -> Customer:
    customer = get_customer(db, customer_id)
    _ensure_employee_exists(db, payload.assigned_employee_id)

    customer.name = payload.customer_name
    customer.address = payload.address
    customer.phone = payload.phone
    customer.email = payload.email
    customer.assigned_employee_id = payload.assigned_employee_id
    db.commit()
    db.expire(customer, ["assigned_employee"])
    return get_customer(db, customer.id)


def _customer_in_use() -> ApiError:
    return ApiError(
        status_code=409,
        code="CUSTOMER_IN_USE",
        message="Customer is referenced by visit records and cannot be deleted.",
    )


def is_customer_in_use(db: Session, customer_id: int) -> bool:
    return bool(db.scalar(select(exists().where(VisitRecord.customer_id == customer_id))))


def delete_customer(db: Session, customer_id: int) -> None:
    customer = get_customer(db, customer_id)
    if is_customer_in_use(db, customer.id):
        logger.info("customer_delete_blocked", extra={"customer_id": customer.id})
        raise _customer_in_use()

    db.delete(customer)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _customer_in_use()
    logger.info("customer_deleted", extra={"customer_id": customer_id})
