"""Pydantic schemas for punches, attendance logs & live stats."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field, field_validator

from salon_api.models.enums import AttendanceAction
from salon_api.schemas.common import MAX_ID, UTCDateTime
from salon_api.schemas.employee import EmployeeBrief


# ── Punch ───────────────────────────────────────────────────────────
class Location(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class PunchRequest(BaseModel):
    employee_id: int = Field(gt=0, le=MAX_ID)
    action: AttendanceAction
    notes: str | None = Field(default=None, max_length=500)
    location: Location | None = None

    @field_validator("notes")
    @classmethod
    def _notes(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return v.strip() or None


class AttendanceRead(BaseModel):
    id: int
    employee_id: int
    action: AttendanceAction
    timestamp: UTCDateTime
    ip_address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    notes: str | None = None
    employee: EmployeeBrief | None = None

    model_config = {"from_attributes": True}


class PunchData(BaseModel):
    attendance: AttendanceRead


# ── Listings ────────────────────────────────────────────────────────
class Pagination(BaseModel):
    current: int
    total: int
    count: int
    total_records: int


class AttendancePage(BaseModel):
    attendance: list[AttendanceRead]
    pagination: Pagination


class AttendanceListData(BaseModel):
    attendance: list[AttendanceRead]
    count: int
    date: dt.date | None = None


# ── Stats ───────────────────────────────────────────────────────────
class AttendanceStats(BaseModel):
    total_employees: int
    present_employees: int
    currently_checked_in: int
    attendance_percentage: int
    date: dt.date


class CleanupResult(BaseModel):
    deleted_count: int
    cutoff: UTCDateTime
