from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from salesreport.models import Role

PHONE_PATTERN = r"^[0-9-]+$"
PASSWORD_PATTERN = r"^[A-Za-z0-9]+$"
HHMM_PATTERN = r"^([01][0-9]|2[0-3]):[0-5][0-9]$"
YMD_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class PageMeta(BaseModel):
    current_page: int
    total_pages: int
    total_count: int
    limit: int


class SignInRequest(BaseModel):
    email: EmailStr = Field(max_length=255)
    password: str = Field(min_length=1)


class SessionUserRead(BaseModel):
    employee_id: int
    email: str
    name: str
    role: Role
    manager_id: int | None = None


class SignInResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: SessionUserRead


class SessionResponse(BaseModel):
    user: SessionUserRead | None = None
    expires_at: datetime | None = None


class SignOutResponse(BaseModel):
    ok: bool


class CustomerWrite(BaseModel):
    customer_name: str = Field(min_length=1, max_length=100)
    address: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=20, pattern=PHONE_PATTERN)
    email: EmailStr | None = Field(default=None, max_length=255)
    assigned_employee_id: int = Field(ge=1)

    @field_validator("address", "phone", "email", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class CustomerRead(BaseModel):
    customer_id: int
    customer_name: str
    address: str | None
    phone: str | None
    email: str | None
    assigned_employee_id: int
    assigned_employee_name: str
    created_at: datetime
    updated_at: datetime


class CustomerListResponse(BaseModel):
    data: list[CustomerRead]
    meta: PageMeta


class EmployeeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    email: EmailStr = Field(max_length=255)
    password: str = Field(min_length=8, max_length=100, pattern=PASSWORD_PATTERN)
    department: str = Field(min_length=1, max_length=100)
    position: str = Field(min_length=1, max_length=100)
    manager_id: int | None = Field(default=None, ge=1)
    role: Role = Role.SALES


class EmployeeUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    email: EmailStr = Field(max_length=255)
    password: str | None = Field(default=None, min_length=8, max_length=100, pattern=PASSWORD_PATTERN)
    department: str = Field(min_length=1, max_length=100)
    position: str = Field(min_length=1, max_length=100)
    manager_id: int | None = Field(default=None, ge=1)
    role: Role | None = None

    @field_validator("password", mode="before")
    @classmethod
    def _blank_password_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and value == "":
            return None
        return value


class EmployeeRead(BaseModel):
    employee_id: int
    name: str
    email: str
    department: str
    position: str
    role: Role
    manager_id: int | None
    manager_name: str | None
    created_at: datetime
    updated_at: datetime


class EmployeeListResponse(BaseModel):
    data: list[EmployeeRead]
    meta: PageMeta


class EmployeeOption(BaseModel):
    employee_id: int
    name: str


class EmployeeOptionsResponse(BaseModel):
    data: list[EmployeeOption]


class VisitWrite(BaseModel):
    visit_id: int | None = Field(default=None, ge=1)
    customer_id: int = Field(ge=1)
    visit_time: str = Field(pattern=HHMM_PATTERN)
    visit_content: str = Field(min_length=1, max_length=500)


class DailyReportWrite(BaseModel):
    report_date: str = Field(pattern=YMD_PATTERN)
    problem: str | None = Field(default=None, max_length=1000)
    plan: str | None = Field(default=None, max_length=1000)
    visits: list[VisitWrite] = Field(min_length=1)

    @model_validator(mode="after")
    def _validate_report(self) -> "DailyReportWrite":
        try:
            date.fromisoformat(self.report_date)
        except ValueError as exc:
            raise ValueError("report_date is not a valid calendar date.") from exc
        visit_ids = [item.visit_id for item in self.visits if item.visit_id is not None]
        if len(visit_ids) != len(set(visit_ids)):
            raise ValueError("visit_id values must be unique.")
        return self

    @property
    def parsed_report_date(self) -> date:
        return date.fromisoformat(self.report_date)


class VisitRead(BaseModel):
    visit_id: int
    customer_id: int
    customer_name: str
    visit_time: str
    visit_content: str
    created_at: datetime


class CommentRead(BaseModel):
    comment_id: int
    report_id: int
    commenter_id: int
    commenter_name: str
    comment_content: str
    created_at: datetime


class DailyReportRead(BaseModel):
    report_id: int
    employee_id: int
    employee_name: str
    report_date: date
    problem: str | None
    plan: str | None
    visits: list[VisitRead]
    comments: list[CommentRead]
    can_edit: bool
    can_comment: bool
    created_at: datetime
    updated_at: datetime


class DailyReportSummary(BaseModel):
    report_id: int
    employee_id: int
    employee_name: str
    report_date: date
    visit_count: int
    comment_count: int
    unread_comment_count: int = 0
    created_at: datetime
    updated_at: datetime


class DailyReportListResponse(BaseModel):
    data: list[DailyReportSummary]
    meta: PageMeta


class CommentCreate(BaseModel):
    comment_content: str = Field(min_length=1, max_length=500)


class WeeklyReportStatus(BaseModel):
    submitted: int
    total: int
    percentage: int


class SubordinateReportStatus(WeeklyReportStatus):
    employee_id: int
    employee_name: str


class DashboardStatsRead(BaseModel):
    week_start: date
    week_end: date
    weekly_report_status: WeeklyReportStatus
    unread_comments_count: int
    subordinates_report_status: list[SubordinateReportStatus] | None = None

    model_config = ConfigDict(from_attributes=True)
