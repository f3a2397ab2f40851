"""
Attendance ledger: punch state machine, live stats, nightly rollup
and retention.

The only writer of ``Employee.current_status`` / ``last_punch_*``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from salon_api.core.exceptions import Conflict, Forbidden, NotFound
from salon_api.core.timeutils import (day_bounds, ensure_utc, local_date, local_midnight,
                                      next_day, utcnow)
from salon_api.models.employee import Attendance, AttendanceRollup, Employee
from salon_api.models.enums import AttendanceAction, AttendanceStatus
from salon_api.schemas.attendance import AttendanceRead, AttendanceStats

if TYPE_CHECKING:
    from salon_api.services.notifier import Notifier

logger = logging.getLogger(__name__)


def round_half_up(value: float, places: int = 0) -> float:
    """Round like a cashier: .5 always goes up (unlike ``round``)."""
    exp = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(exp, rounding=ROUND_HALF_UP))


# ── Punch ───────────────────────────────────────────────────────────
async def punch(
    db: AsyncSession,
    employee_id: int,
    action: AttendanceAction | str,
    *,
    notes: str | None = None,
    ip_address: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> Attendance:
    """Append a punch and flip the employee's status in one transaction.

    Rejected transitions (double punch-in, punch-out while out) raise
    ``Conflict`` and leave nothing behind.
    """
    now = ensure_utc(now) or utcnow()
    action = AttendanceAction(action)

    # Row lock serialises concurrent punches on PostgreSQL
    result = await db.execute(
        select(Employee).where(Employee.id == employee_id).with_for_update()
    )
    employee = result.scalar_one_or_none()
    if employee is None:
        raise NotFound("Employee not found")
    if not employee.is_active:
        raise Forbidden("Employee account is inactive")

    if action is AttendanceAction.PUNCH_IN:
        expected, target = AttendanceStatus.CHECKED_OUT, AttendanceStatus.CHECKED_IN
        stamp = {"last_punch_in": now}
        conflict = "Employee is already checked in"
    else:
        expected, target = AttendanceStatus.CHECKED_IN, AttendanceStatus.CHECKED_OUT
        stamp = {"last_punch_out": now}
        conflict = "Employee is already checked out"
    if employee.current_status != expected.value:
        raise Conflict(conflict)

    # Compare-and-set: a concurrent punch that already flipped the status
    # leaves no row to match
    flipped = await db.execute(
        update(Employee)
        .where(Employee.id == employee.id, Employee.current_status == expected.value)
        .values(current_status=target.value, updated_at=now, **stamp)
    )
    if flipped.rowcount != 1:
        await db.rollback()
        raise Conflict(conflict)

    record = Attendance(
        employee=employee,
        action=action.value,
        timestamp=now,
        ip_address=ip_address,
        latitude=latitude,
        longitude=longitude,
        notes=notes,
        created_at=now,
    )
    db.add(record)
    await db.commit()
    logger.info("%s %s (employee %d)", employee.name, action.value, employee.id)

    if notifier is not None:
        stats = await attendance_stats(db, now)
        notifier.attendance_update(AttendanceRead.model_validate(record))
        notifier.attendance_stats_update(stats)
    return record


# ── Stats ───────────────────────────────────────────────────────────
async def attendance_stats(db: AsyncSession, now: datetime | None = None) -> AttendanceStats:
    now = ensure_utc(now) or utcnow()
    today = local_date(now)
    start, end = day_bounds(today)

    total = await db.scalar(
        select(func.count()).select_from(Employee).where(Employee.is_active.is_(True))
    )
    checked_in = await db.scalar(
        select(func.count())
        .select_from(Employee)
        .where(
            Employee.is_active.is_(True),
            Employee.current_status == AttendanceStatus.CHECKED_IN.value,
        )
    )
    present = await db.scalar(
        select(func.count(func.distinct(Attendance.employee_id)))
        .select_from(Attendance)
        .join(Employee, Employee.id == Attendance.employee_id)
        .where(
            Attendance.action == AttendanceAction.PUNCH_IN.value,
            Attendance.timestamp >= start,
            Attendance.timestamp < end,
            Employee.is_active.is_(True),
        )
    )
    total = total or 0
    checked_in = checked_in or 0
    percentage = int(round_half_up(checked_in / total * 100)) if total else 0
    return AttendanceStats(
        total_employees=total,
        present_employees=present or 0,
        currently_checked_in=checked_in,
        attendance_percentage=percentage,
        date=today,
    )


# ── Queries ─────────────────────────────────────────────────────────
async def list_attendance(
    db: AsyncSession,
    *,
    page: int = 1,
    limit: int = 50,
    employee_id: int | None = None,
    day: date | None = None,
) -> tuple[list[Attendance], int]:
    filters = []
    if employee_id is not None:
        filters.append(Attendance.employee_id == employee_id)
    if day is not None:
        start, end = day_bounds(day)
        filters.extend([Attendance.timestamp >= start, Attendance.timestamp < end])

    total = await db.scalar(select(func.count()).select_from(Attendance).where(*filters))
    result = await db.execute(
        select(Attendance)
        .where(*filters)
        .order_by(Attendance.timestamp.desc(), Attendance.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total or 0


async def todays_attendance(
    db: AsyncSession, now: datetime | None = None
) -> tuple[list[Attendance], date]:
    today = local_date(now)
    records, _ = await list_attendance(db, day=today, limit=10_000)
    return records, today


async def employee_attendance(
    db: AsyncSession,
    employee_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[Attendance]:
    """Punches for one employee; ``end_date`` is inclusive."""
    query = select(Attendance).where(Attendance.employee_id == employee_id)
    if start_date is not None:
        query = query.where(Attendance.timestamp >= local_midnight(start_date))
    if end_date is not None:
        query = query.where(Attendance.timestamp < local_midnight(next_day(end_date)))
    result = await db.execute(query.order_by(Attendance.timestamp.desc(), Attendance.id.desc()))
    return list(result.scalars().all())


async def attendance_for_user(db: AsyncSession, email: str) -> list[Attendance]:
    """Punches of the employee whose email matches the logged-in user."""
    result = await db.execute(select(Employee.id).where(Employee.email == email.strip().lower()))
    employee_id = result.scalar_one_or_none()
    if employee_id is None:
        raise NotFound("Employee not found")
    return await employee_attendance(db, employee_id)


# ── Nightly rollup ──────────────────────────────────────────────────
def total_hours(punch_ins: list[datetime], punch_outs: list[datetime]) -> float:
    """Sum of closed sessions, pairing the i-th punch-in with the i-th punch-out."""
    seconds = sum(
        (out - in_).total_seconds() for in_, out in zip(sorted(punch_ins), sorted(punch_outs))
    )
    return round_half_up(seconds / 3600, 2)


async def rollup_attendance_day(db: AsyncSession, day: date) -> int:
    """Append one rollup per employee who punched on local *day*.

    Employees already rolled up for *day* are skipped, so reruns are safe.
    Returns the number of rollups written.
    """
    start, end = day_bounds(day)
    result = await db.execute(
        select(Attendance.employee_id, Attendance.action, Attendance.timestamp)
        .where(Attendance.timestamp >= start, Attendance.timestamp < end)
        .order_by(Attendance.timestamp)
    )
    grouped: dict[int, tuple[list[datetime], list[datetime]]] = defaultdict(lambda: ([], []))
    for employee_id, action, timestamp in result.all():
        ins, outs = grouped[employee_id]
        (ins if action == AttendanceAction.PUNCH_IN.value else outs).append(ensure_utc(timestamp))

    done = await db.execute(
        select(AttendanceRollup.employee_id).where(AttendanceRollup.date == day)
    )
    already = set(done.scalars().all())

    written = 0
    for employee_id, (ins, outs) in grouped.items():
        if employee_id in already:
            logger.info("Rollup for employee %d on %s already exists, skipping", employee_id, day)
            continue
        ins.sort()
        outs.sort()
        try:
            db.add(
                AttendanceRollup(
                    employee_id=employee_id,
                    date=day,
                    punch_ins=[t.isoformat() for t in ins],
                    punch_outs=[t.isoformat() for t in outs],
                    total_hours=total_hours(ins, outs),
                    total_sessions=min(len(ins), len(outs)),
                )
            )
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Rollup failed for employee %d on %s", employee_id, day)
            continue
        written += 1
        logger.info(
            "Rolled up employee %d on %s: %d sessions, %.2f hours",
            employee_id,
            day,
            min(len(ins), len(outs)),
            total_hours(ins, outs),
        )
    return written


# ── Retention ───────────────────────────────────────────────────────
def retention_cutoff(now: datetime | None = None, days_back: int = 0) -> datetime:
    """Local midnight ``days_back`` days before today, as a UTC instant."""
    return local_midnight(local_date(now) - timedelta(days=days_back))


async def prune_attendance(db: AsyncSession, cutoff: datetime) -> int:
    """Delete punches strictly older than *cutoff*; the cutoff instant survives."""
    result = await db.execute(
        delete(Attendance)
        .where(Attendance.timestamp < ensure_utc(cutoff))
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("Pruned %d attendance rows older than %s", result.rowcount, cutoff.isoformat())
    return result.rowcount or 0
