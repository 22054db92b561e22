from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from salesreport.audit import log_audit
from salesreport.db import get_db
from salesreport.errors import parse_path_id
from salesreport.models import Customer
from salesreport.schemas import CustomerListResponse, CustomerRead, CustomerWrite
from salesreport.security import SessionUser, get_current_user
from salesreport.services import customers as customer_service

router = APIRouter(tags=["customers"], dependencies=[Depends(get_current_user)])


def to_customer_read(customer: Customer) -> CustomerRead:
    return CustomerRead(
        customer_id=customer.id,
        customer_name=customer.name,
        address=customer.address,
        phone=customer.phone,
        email=customer.email,
        assigned_employee_id=customer.assigned_employee_id,
        assigned_employee_name=customer.assigned_employee.name,
        created_at=customer.created_at,
        updated_at=customer.updated_at,
    )


@router.get("/api/customers", response_model=CustomerListResponse)
def list_customers(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=100, ge=1, le=500),
    customer_name: str | None = Query(default=None, max_length=100),
    employee_id: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
) -> CustomerListResponse:
    items, meta = customer_service.list_customers(
        db,
        page=page,
        limit=limit,
        customer_name=customer_name,
        employee_id=employee_id,
    )
    return CustomerListResponse(data=[to_customer_read(item) for item in items], meta=meta)


@router.post("/api/customers", response_model=CustomerRead, status_code=status.HTTP_201_CREATED)
def create_customer(payload: CustomerWrite, db: Session = Depends(get_db)) -> CustomerRead:
    return to_customer_read(customer_service.create_customer(db, payload))


@router.get("/api/customers/{customer_id}", response_model=CustomerRead)
def get_customer(customer_id: str, db: Session = Depends(get_db)) -> CustomerRead:
    return to_customer_read(customer_service.get_customer(db, parse_path_id(customer_id, label="customer")))


@router.put("/api/customers/{customer_id}", response_model=CustomerRead)
def update_customer(customer_id: str, payload: CustomerWrite, db: Session = Depends(get_db)) -> CustomerRead:
    customer = customer_service.update_customer(db, parse_path_id(customer_id, label="customer"), payload)
    return to_customer_read(customer)


@router.delete("/api/customers/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_customer(
    customer_id: str,
    request: Request,
    user: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    parsed_id = parse_path_id(customer_id, label="customer")
    customer_service.delete_customer(db, parsed_id)
    log_audit(
        db,
        action="CUSTOMER_DELETED",
        success=True,
        actor_id=user.employee_id,
        entity_type="customer",
        entity_id=parsed_id,
        request=request,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
