"""Pydantic schemas for tasks, task stats and revenue."""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from salon_api.models.enums import TaskPriority, TaskStatus
from salon_api.schemas.common import MAX_ID, UTCDateTime

MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class TaskCreate(BaseModel):
    title: str
    description: str
    assigned_to: int = Field(gt=0, le=MAX_ID)
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: datetime
    price: float | None = Field(default=None, ge=0)

    @field_validator("title", "description")
    @classmethod
    def _text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v


class TaskUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    assigned_to: int | None = Field(default=None, gt=0, le=MAX_ID)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: datetime | None = None
    price: float | None = Field(default=None, ge=0)
    completed_at: datetime | None = None


class TaskEmployee(BaseModel):
    id: int
    name: str
    email: str
    position: str
    department: str

    model_config = {"from_attributes": True}


class TaskUser(BaseModel):
    id: int
    name: str | None
    email: str

    model_config = {"from_attributes": True}


class TaskRead(BaseModel):
    id: int
    title: str
    description: str
    assigned_to: TaskEmployee | None
    assigned_by: TaskUser | None
    status: TaskStatus
    priority: TaskPriority
    due_date: UTCDateTime
    price: float | None
    completed_at: UTCDateTime | None
    created_at: UTCDateTime | None
    updated_at: UTCDateTime | None

    model_config = {"from_attributes": True}


class TaskData(BaseModel):
    task: TaskRead


class TaskListData(BaseModel):
    tasks: list[TaskRead]
    count: int


class TaskStats(BaseModel):
    incomplete_tasks: int
    high_priority_tasks: int
    medium_priority_tasks: int
    low_priority_tasks: int


class RevenueData(BaseModel):
    month: str | None
    total_earned: float
    total_salary_given: float
    net_revenue: float
    completed_tasks_count: int
    total_salary_records: int
    employees_paid_this_month: int
    current_month_salary: float
    total_employees: int
    current_month: str
