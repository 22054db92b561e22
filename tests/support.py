from __future__ import annotations

import unittest
from collections.abc import Generator
from datetime import date, time

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from salesreport.db import Base, get_db
from salesreport.main import app
from salesreport.models import Comment, Customer, DailyReport, Employee, Role, VisitRecord
from salesreport.security import SessionUser, create_session_token, reset_login_attempts
from salesreport.settings import get_settings


def session_user(employee: Employee) -> SessionUser:
    return SessionUser.from_employee(employee)


def token_for(employee: Employee) -> str:
    token, _, _ = create_session_token(session_user(employee))
    return token


def auth_headers(employee: Employee) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(employee)}"}


class DatabaseTestCase(unittest.TestCase):
    """Runs each test against a fresh in-memory SQLite schema wired into the app."""

    def setUp(self) -> None:
        self.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(self.engine)
        self.session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        self.db: Session = self.session_factory()

        def _override_get_db() -> Generator[Session, None, None]:
            db = self.session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _override_get_db
        reset_login_attempts()
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.client.close()
        self.db.close()
        Base.metadata.drop_all(self.engine)
        self.engine.dispose()

    def login_cookie(self, employee: Employee) -> None:
        self.client.cookies.set(get_settings().session_cookie_name, token_for(employee))

    def add_employee(
        self,
        name: str,
        *,
        role: Role = Role.SALES,
        manager: Employee | None = None,
        email: str | None = None,
        password_hash: str | None = None,
        department: str = "営業部",
    ) -> Employee:
        employee = Employee(
            name=name,
            email=email or f"{name.lower().replace(' ', '.')}@example.com",
            department=department,
            position="担当",
            role=role,
            manager_id=manager.id if manager is not None else None,
            password_hash=password_hash,
        )
        self.db.add(employee)
        self.db.commit()
        return employee

    def add_customer(self, name: str, owner: Employee, **fields: str) -> Customer:
        customer = Customer(name=name, assigned_employee_id=owner.id, **fields)
        self.db.add(customer)
        self.db.commit()
        return customer

    def add_report(
        self,
        author: Employee,
        report_date: date,
        customer: Customer,
        *,
        visit_time: time = time(10, 0),
        problem: str | None = None,
    ) -> DailyReport:
        report = DailyReport(
            employee_id=author.id,
            report_date=report_date,
            problem=problem,
            visit_records=[
                VisitRecord(customer_id=customer.id, visit_time=visit_time, visit_content="定期訪問"),
            ],
        )
        self.db.add(report)
        self.db.commit()
        return report

    def add_comment(self, report: DailyReport, commenter: Employee, body: str = "確認しました") -> Comment:
        comment = Comment(daily_report_id=report.id, commenter_id=commenter.id, body=body)
        self.db.add(comment)
        self.db.commit()
        return comment
