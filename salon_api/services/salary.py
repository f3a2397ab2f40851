"""
Salary ledger: monthly payments, history with a pending preview, stats.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from salon_api.core.exceptions import Conflict, NotFound, ValidationFailed
from salon_api.core.timeutils import ensure_utc, month_key, utcnow
from salon_api.models.employee import Employee, SalaryRecord
from salon_api.models.enums import SalaryStatus
from salon_api.schemas.employee import SalaryRecordRead

logger = logging.getLogger(__name__)


async def pay_salary(
    db: AsyncSession, employee_id: int, now: datetime | None = None
) -> SalaryRecord:
    """Record this month's payment at the employee's current rate.

    At most one ``paid`` record per employee per month, enforced by a
    unique index as well as the check below.
    """
    now = ensure_utc(now) or utcnow()
    result = await db.execute(
        select(Employee).where(Employee.id == employee_id).with_for_update()
    )
    employee = result.scalar_one_or_none()
    if employee is None:
        raise NotFound("Employee not found")
    if not employee.salary or employee.salary <= 0:
        raise ValidationFailed("Invalid salary amount")

    month = month_key(now)
    already_paid = await db.scalar(
        select(func.count())
        .select_from(SalaryRecord)
        .where(
            SalaryRecord.employee_id == employee.id,
            SalaryRecord.month == month,
            SalaryRecord.status == SalaryStatus.PAID.value,
        )
    )
    if already_paid:
        raise Conflict(f"Salary for {month} has already been paid")

    record = SalaryRecord(
        amount=employee.salary,
        date=now,
        month=month,
        status=SalaryStatus.PAID.value,
    )
    employee.salary_history.append(record)
    employee.updated_at = now
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent payment for the same month won the unique index
        await db.rollback()
        raise Conflict(f"Salary for {month} has already been paid") from None
    logger.info("Paid %.2f to %s for %s", record.amount, employee.email, month)
    return record


async def salary_history(
    db: AsyncSession, employee_id: int, now: datetime | None = None
) -> dict:
    """Ledger newest first, plus an unsaved ``pending_salary`` preview.

    The preview exists only while this month is unpaid and the rate is positive.
    """
    now = ensure_utc(now) or utcnow()
    employee = await db.get(Employee, employee_id)
    if employee is None:
        raise NotFound("Employee not found")

    history = sorted(
        employee.salary_history, key=lambda r: (ensure_utc(r.date), r.id or 0), reverse=True
    )
    month = month_key(now)
    paid_this_month = any(
        r.month == month and r.status == SalaryStatus.PAID.value for r in history
    )
    pending = None
    if not paid_this_month and employee.salary and employee.salary > 0:
        pending = SalaryRecordRead(
            amount=employee.salary,
            date=now,
            month=month,
            status=SalaryStatus.PENDING,
        )
    return {
        "employee": employee,
        "pending_salary": pending,
        "salary_history": history,
    }


async def salary_stats(db: AsyncSession, now: datetime | None = None) -> dict:
    month = month_key(now)
    result = await db.execute(
        select(SalaryRecord.employee_id, SalaryRecord.amount).where(
            SalaryRecord.month == month,
            SalaryRecord.status == SalaryStatus.PAID.value,
        )
    )
    rows = result.all()
    total_employees = await db.scalar(
        select(func.count()).select_from(Employee).where(Employee.is_active.is_(True))
    )
    return {
        "total_salary_given": sum(amount for _, amount in rows),
        "employees_paid": len({employee_id for employee_id, _ in rows}),
        "total_employees": total_employees or 0,
        "current_month": month,
    }
