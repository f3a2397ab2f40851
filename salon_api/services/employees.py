"""
Employee registry: CRUD, departure flags and salary rate.

Attendance-owned fields (``current_status``, ``last_punch_in``,
``last_punch_out``) are never written here; see ``services.attendance``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from salon_api.core.exceptions import Conflict, NotFound, ValidationFailed
from salon_api.core.timeutils import ensure_utc, utcnow
from salon_api.models.employee import Attendance, Employee
from salon_api.models.enums import AttendanceStatus
from salon_api.models.task import Task
from salon_api.schemas.employee import ATTENDANCE_OWNED_FIELDS

logger = logging.getLogger(__name__)

_REQUIRED_TEXT = ("name", "email", "phone", "position", "department")


async def get_employee(db: AsyncSession, employee_id: int) -> Employee:
    employee = await db.get(Employee, employee_id)
    if employee is None:
        raise NotFound("Employee not found")
    return employee


async def find_employee_by_email(db: AsyncSession, email: str) -> Employee | None:
    result = await db.execute(select(Employee).where(Employee.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def list_employees(db: AsyncSession) -> list[Employee]:
    """Active employees, newest first."""
    result = await db.execute(
        select(Employee)
        .where(Employee.is_active.is_(True))
        .order_by(Employee.created_at.desc(), Employee.id.desc())
    )
    return list(result.scalars().all())


async def create_employee(
    db: AsyncSession, fields: dict[str, Any], now: datetime | None = None
) -> Employee:
    now = ensure_utc(now) or utcnow()
    for name in _REQUIRED_TEXT:
        if not str(fields.get(name) or "").strip():
            raise ValidationFailed(
                "Name, email, phone, position, and department are required"
            )
    if (fields.get("salary") or 0) < 0:
        raise ValidationFailed("Salary must not be negative")

    email = fields["email"].strip().lower()
    if await find_employee_by_email(db, email) is not None:
        raise Conflict("Employee already exists with this email")

    employee = Employee(
        **{k: v for k, v in fields.items() if k not in ATTENDANCE_OWNED_FIELDS},
    )
    employee.email = email
    employee.join_date = ensure_utc(fields.get("join_date")) or now
    employee.salary = fields.get("salary") or 0
    employee.current_status = AttendanceStatus.CHECKED_OUT.value
    employee.is_active = True
    employee.is_leaving = False
    employee.created_at = now
    employee.updated_at = now
    # New rows start with empty child collections
    employee.salary_history = []
    employee.attendance_history = []
    db.add(employee)
    await db.commit()
    logger.info("Created employee %s (%s)", employee.name, employee.email)
    return employee


async def update_employee(
    db: AsyncSession,
    employee_id: int,
    patch: dict[str, Any],
    now: datetime | None = None,
) -> Employee:
    owned = sorted(ATTENDANCE_OWNED_FIELDS & patch.keys())
    if owned:
        raise ValidationFailed(f"{', '.join(owned)} can only be changed by punching in or out")

    employee = await get_employee(db, employee_id)

    for name in _REQUIRED_TEXT:
        if name in patch and not str(patch[name] or "").strip():
            raise ValidationFailed(f"{name} must not be empty")
    if "salary" in patch and (patch["salary"] is None or patch["salary"] < 0):
        raise ValidationFailed("Salary must not be negative")

    if "email" in patch:
        email = patch["email"].strip().lower()
        if email != employee.email:
            other = await find_employee_by_email(db, email)
            if other is not None and other.id != employee.id:
                raise Conflict("Employee already exists with this email")
        patch["email"] = email

    is_leaving = patch.get("is_leaving", employee.is_leaving)
    if is_leaving is None:
        raise ValidationFailed("is_leaving must be true or false")
    leaving_date = patch.get("leaving_date", employee.leaving_date)
    if is_leaving is False:
        if patch.get("leaving_date") is not None:
            raise Conflict("leaving_date requires the employee to be marked as leaving")
        patch["leaving_date"] = None
        patch["leaving_reason"] = None
    elif leaving_date is not None:
        patch["leaving_date"] = ensure_utc(leaving_date)

    if "join_date" in patch:
        if patch["join_date"] is None:
            raise ValidationFailed("join_date must not be empty")
        patch["join_date"] = ensure_utc(patch["join_date"])

    for field, value in patch.items():
        setattr(employee, field, value)
    employee.updated_at = ensure_utc(now) or utcnow()

    await db.commit()
    logger.info("Updated employee %d", employee_id)
    return employee


async def mark_as_leaving(
    db: AsyncSession,
    employee_id: int,
    leaving_date: datetime | None = None,
    reason: str | None = None,
    now: datetime | None = None,
) -> Employee:
    """Flag only; archival happens at the next cleanup or an explicit move."""
    now = ensure_utc(now) or utcnow()
    employee = await get_employee(db, employee_id)
    employee.is_leaving = True
    employee.leaving_date = ensure_utc(leaving_date) or now
    if reason is not None:
        employee.leaving_reason = reason
    employee.updated_at = now
    await db.commit()
    logger.info("Employee %s marked as leaving on %s", employee.email, employee.leaving_date)
    return employee


async def update_salary(
    db: AsyncSession, employee_id: int, amount: float, now: datetime | None = None
) -> Employee:
    if amount is None or amount < 0:
        raise ValidationFailed("Invalid salary amount")
    employee = await get_employee(db, employee_id)
    employee.salary = amount
    employee.updated_at = ensure_utc(now) or utcnow()
    await db.commit()
    logger.info("Salary for employee %d set to %.2f", employee_id, amount)
    return employee


async def purge_employee(db: AsyncSession, employee: Employee) -> None:
    """Remove the live row plus punches, ledger and rollups. Does not commit.

    Tasks are kept and detached so completed revenue survives.
    """
    await db.execute(delete(Attendance).where(Attendance.employee_id == employee.id))
    await db.execute(
        update(Task)
        .where(Task.assigned_to_id == employee.id)
        .values(assigned_to_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.delete(employee)
    await db.flush()
