"""Pydantic schemas for employees, departures and the archive."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from salon_api.models.enums import AttendanceStatus, SalaryStatus
from salon_api.schemas.common import UTCDateTime

# Written only by the attendance state machine
ATTENDANCE_OWNED_FIELDS = frozenset({"current_status", "last_punch_in", "last_punch_out"})


def _required_text(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be empty")
    return v


# ── Employee ────────────────────────────────────────────────────────
class EmployeeCreate(BaseModel):
    name: str
    email: str
    phone: str
    position: str
    department: str
    address: str | None = None
    date_of_birth: str | None = None
    emergency_contact: str | None = None
    salary: float = Field(default=0, ge=0)
    join_date: datetime | None = None

    @field_validator("name", "phone", "position", "department")
    @classmethod
    def _text(cls, v: str) -> str:
        return _required_text(v)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v


class EmployeeUpdate(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    position: str | None = None
    department: str | None = None
    address: str | None = None
    date_of_birth: str | None = None
    emergency_contact: str | None = None
    salary: float | None = Field(default=None, ge=0)
    join_date: datetime | None = None
    is_active: bool | None = None
    is_leaving: bool | None = None
    leaving_date: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _reject_attendance_fields(cls, data: Any) -> Any:
        if isinstance(data, dict):
            owned = sorted(ATTENDANCE_OWNED_FIELDS & data.keys())
            if owned:
                raise ValueError(
                    f"{', '.join(owned)} can only be changed by punching in or out"
                )
        return data

    @field_validator("name", "phone", "position", "department")
    @classmethod
    def _text(cls, v: str | None) -> str | None:
        return None if v is None else _required_text(v)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v


class SalaryRecordRead(BaseModel):
    id: int | None = None
    amount: float
    date: UTCDateTime
    month: str
    status: SalaryStatus

    model_config = {"from_attributes": True}


class AttendanceRollupRead(BaseModel):
    date: date
    punch_ins: list[UTCDateTime]
    punch_outs: list[UTCDateTime]
    total_hours: float
    total_sessions: int

    model_config = {"from_attributes": True}


class EmployeeBrief(BaseModel):
    id: int
    name: str
    email: str
    position: str
    department: str
    current_status: AttendanceStatus

    model_config = {"from_attributes": True}


class EmployeeRead(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    position: str
    department: str
    address: str | None
    date_of_birth: str | None
    emergency_contact: str | None
    salary: float
    join_date: UTCDateTime
    is_active: bool
    current_status: AttendanceStatus
    last_punch_in: UTCDateTime | None
    last_punch_out: UTCDateTime | None
    is_leaving: bool
    leaving_date: UTCDateTime | None
    leaving_reason: str | None
    salary_history: list[SalaryRecordRead] = []
    attendance_history: list[AttendanceRollupRead] = []
    created_at: UTCDateTime | None

    model_config = {"from_attributes": True}


class EmployeeData(BaseModel):
    employee: EmployeeRead


class EmployeeListData(BaseModel):
    employees: list[EmployeeRead]
    count: int


# ── Departure ───────────────────────────────────────────────────────
class MarkLeavingRequest(BaseModel):
    leaving_date: datetime | None = None
    reason_for_leaving: str | None = None


class LeavingStatus(BaseModel):
    id: int
    name: str
    email: str
    is_leaving: bool
    leaving_date: UTCDateTime | None

    model_config = {"from_attributes": True}


class LeavingData(BaseModel):
    employee: LeavingStatus


class SalaryUpdate(BaseModel):
    salary: float


class MoveToPreviousStaffRequest(BaseModel):
    reason_for_leaving: str | None = None
    performance_rating: int | None = Field(default=None, ge=1, le=5)


class IncomeData(BaseModel):
    total_income: float
    paid_income: float
    pending_income: float


class MoveToPreviousStaffData(BaseModel):
    moved_to_previous_staff: bool
    user_deleted: bool
    employee_deleted: bool
    salary_data: IncomeData


class ProcessedEmployee(BaseModel):
    name: str
    email: str
    leaving_date: UTCDateTime | None
    total_income: float
    paid_income: float
    pending_income: float


class FailedEmployee(BaseModel):
    employee_id: int
    name: str
    error: str


class CleanupData(BaseModel):
    processed_count: int
    processed_employees: list[ProcessedEmployee]
    failed_employees: list[FailedEmployee] = []


# ── Archive ─────────────────────────────────────────────────────────
class PreviousStaffRead(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    position: str
    department: str
    join_date: UTCDateTime
    leaving_date: UTCDateTime
    total_income: float
    paid_income: float
    pending_income: float
    salary_history: list[dict[str, Any]]
    last_position: str
    reason_for_leaving: str | None
    performance_rating: int | None
    created_at: UTCDateTime | None

    model_config = {"from_attributes": True}


class PreviousStaffListData(BaseModel):
    previous_staff: list[PreviousStaffRead]
    count: int
