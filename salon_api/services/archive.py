"""
Archive of departed staff.

An employee leaves in one transaction: snapshot into ``previous_staff``,
drop the matching login (matched by email), then purge the live rows.
If any step fails the whole thing rolls back and the employee stays.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_api.core.exceptions import Conflict
from salon_api.core.timeutils import ensure_utc, utcnow
from salon_api.models.employee import Employee, SalaryRecord
from salon_api.models.enums import SalaryStatus
from salon_api.models.previous_staff import PreviousStaff
from salon_api.models.user import User
from salon_api.services import employees as employee_service

logger = logging.getLogger(__name__)


@dataclass
class Income:
    total_income: float = 0.0
    paid_income: float = 0.0
    pending_income: float = 0.0


@dataclass
class RemovalOutcome:
    previous_staff: PreviousStaff
    user_deleted: bool
    income: Income


def compute_income(records: Iterable[SalaryRecord]) -> Income:
    income = Income()
    for record in records:
        amount = record.amount or 0
        income.total_income += amount
        if record.status == SalaryStatus.PAID.value:
            income.paid_income += amount
        elif record.status == SalaryStatus.PENDING.value:
            income.pending_income += amount
    return income


def _ledger_snapshot(records: Iterable[SalaryRecord]) -> list[dict]:
    return [
        {
            "amount": r.amount,
            "date": ensure_utc(r.date).isoformat() if r.date else None,
            "month": r.month,
            "status": r.status,
        }
        for r in records
    ]


async def delete_user_by_email(db: AsyncSession, email: str) -> bool:
    """Best-effort half of the cascade: no matching user is not an error."""
    result = await db.execute(delete(User).where(User.email == email.strip().lower()))
    return bool(result.rowcount)


async def archive_employee(
    db: AsyncSession,
    employee: Employee,
    reason: str | None = None,
    rating: int | None = None,
    now: datetime | None = None,
) -> tuple[PreviousStaff, bool, Income]:
    """Write the snapshot and drop the login. Does not commit."""
    now = ensure_utc(now) or utcnow()
    records = list(employee.salary_history)
    income = compute_income(records)
    staff = PreviousStaff(
        name=employee.name,
        email=employee.email,
        phone=employee.phone or "",
        position=employee.position,
        department=employee.department,
        address=employee.address,
        date_of_birth=employee.date_of_birth,
        emergency_contact=employee.emergency_contact,
        join_date=ensure_utc(employee.join_date) or now,
        leaving_date=ensure_utc(employee.leaving_date) or now,
        total_income=income.total_income,
        paid_income=income.paid_income,
        pending_income=income.pending_income,
        salary_history=_ledger_snapshot(records),
        last_position=employee.position,
        reason_for_leaving=reason if reason is not None else employee.leaving_reason,
        performance_rating=rating,
        created_at=now,
    )
    db.add(staff)
    await db.flush()
    user_deleted = await delete_user_by_email(db, employee.email)
    return staff, user_deleted, income


async def remove_employee(
    db: AsyncSession,
    employee: Employee,
    reason: str | None = None,
    rating: int | None = None,
    now: datetime | None = None,
) -> RemovalOutcome:
    email = employee.email
    try:
        staff, user_deleted, income = await archive_employee(db, employee, reason, rating, now)
        await employee_service.purge_employee(db, employee)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Archival of %s failed; employee left in place", email)
        raise
    logger.info(
        "Archived %s (total=%.2f paid=%.2f pending=%.2f, user deleted: %s)",
        email,
        income.total_income,
        income.paid_income,
        income.pending_income,
        user_deleted,
    )
    return RemovalOutcome(previous_staff=staff, user_deleted=user_deleted, income=income)


async def delete_employee(
    db: AsyncSession, employee_id: int, now: datetime | None = None
) -> RemovalOutcome:
    employee = await employee_service.get_employee(db, employee_id)
    return await remove_employee(db, employee, now=now)


async def move_to_previous_staff(
    db: AsyncSession,
    employee_id: int,
    reason: str | None = None,
    rating: int | None = None,
    now: datetime | None = None,
) -> RemovalOutcome:
    employee = await employee_service.get_employee(db, employee_id)
    if not employee.is_leaving:
        raise Conflict(
            "Employee is not marked as leaving. Please mark employee as leaving first."
        )
    return await remove_employee(db, employee, reason, rating, now)


async def cleanup_left_employees(db: AsyncSession, now: datetime | None = None) -> dict:
    """Archive every employee flagged as leaving, each on its own.

    One failure is reported and does not stop the rest.
    """
    result = await db.execute(
        select(Employee.id, Employee.name).where(Employee.is_leaving.is_(True)).order_by(Employee.id)
    )
    candidates = list(result.all())
    processed: list[dict] = []
    failed: list[dict] = []

    for employee_id, name in candidates:
        try:
            employee = await employee_service.get_employee(db, employee_id)
            leaving_date = ensure_utc(employee.leaving_date)
            outcome = await remove_employee(db, employee, now=now)
        except Exception as exc:
            failed.append({"employee_id": employee_id, "name": name, "error": str(exc)})
            continue
        processed.append(
            {
                "name": outcome.previous_staff.name,
                "email": outcome.previous_staff.email,
                "leaving_date": leaving_date,
                "total_income": outcome.income.total_income,
                "paid_income": outcome.income.paid_income,
                "pending_income": outcome.income.pending_income,
            }
        )

    logger.info(
        "Departure cleanup: %d archived, %d failed", len(processed), len(failed)
    )
    return {
        "processed_count": len(processed),
        "processed_employees": processed,
        "failed_employees": failed,
    }


async def list_previous_staff(db: AsyncSession) -> list[PreviousStaff]:
    result = await db.execute(
        select(PreviousStaff).order_by(PreviousStaff.leaving_date.desc(), PreviousStaff.id.desc())
    )
    return list(result.scalars().all())
