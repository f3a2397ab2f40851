"""Pydantic schemas for the salary ledger."""

from __future__ import annotations

from pydantic import BaseModel

from salon_api.schemas.employee import SalaryRecordRead


class SalaryEmployee(BaseModel):
    id: int
    name: str
    position: str
    salary: float

    model_config = {"from_attributes": True}


class SalaryHistoryData(BaseModel):
    employee: SalaryEmployee
    pending_salary: SalaryRecordRead | None
    salary_history: list[SalaryRecordRead]


class SalaryPaymentData(BaseModel):
    salary_record: SalaryRecordRead


class SalaryStats(BaseModel):
    total_salary_given: float
    employees_paid: int
    total_employees: int
    current_month: str
