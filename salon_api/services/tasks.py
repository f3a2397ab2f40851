"""
Tasks: CRUD, age-based priority escalation, stats and revenue.

Escalation is recompute-and-persist-if-stale: every read path calls
``refresh_priorities`` and the scheduler sweeps open tasks periodically,
so both converge on the same stored value.  The rule always starts from
``base_priority`` (as created or last set by hand), never from an
already escalated value.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_api.core.exceptions import NotFound, ValidationFailed
from salon_api.core.timeutils import ensure_utc, month_bounds, month_key, utcnow
from salon_api.models.employee import Employee, SalaryRecord
from salon_api.models.enums import OPEN_TASK_STATUSES, SalaryStatus, TaskPriority, TaskStatus
from salon_api.models.task import Task
from salon_api.models.user import User

logger = logging.getLogger(__name__)

LOW_TO_MEDIUM = timedelta(minutes=5)
LOW_TO_HIGH = timedelta(minutes=25)
MEDIUM_TO_HIGH = timedelta(minutes=10)


# ── Escalation ──────────────────────────────────────────────────────
def escalate_priority(
    priority: TaskPriority | str, created_at: datetime, now: datetime
) -> TaskPriority:
    """Priority a task created at *priority* should have at *now*."""
    priority = TaskPriority(priority)
    age = ensure_utc(now) - ensure_utc(created_at)
    if priority is TaskPriority.LOW:
        if age >= LOW_TO_HIGH:
            return TaskPriority.HIGH
        if age >= LOW_TO_MEDIUM:
            return TaskPriority.MEDIUM
    elif priority is TaskPriority.MEDIUM and age >= MEDIUM_TO_HIGH:
        return TaskPriority.HIGH
    return priority


async def refresh_priorities(
    db: AsyncSession, tasks: Iterable[Task], now: datetime | None = None
) -> int:
    """Persist escalations for open tasks; returns how many changed."""
    now = ensure_utc(now) or utcnow()
    changed = 0
    for task in tasks:
        if task.status not in OPEN_TASK_STATUSES or task.created_at is None:
            continue
        base = task.base_priority or task.priority
        new_priority = escalate_priority(base, task.created_at, now)
        if new_priority.value != task.priority:
            logger.info("Task %d escalated %s -> %s", task.id, task.priority, new_priority.value)
            task.priority = new_priority.value
            task.updated_at = now
            changed += 1
    if changed:
        await db.commit()
    return changed


async def escalate_open_tasks(db: AsyncSession, now: datetime | None = None) -> int:
    result = await db.execute(
        select(Task).where(
            Task.status.in_(OPEN_TASK_STATUSES),
            Task.priority != TaskPriority.HIGH.value,
        )
    )
    return await refresh_priorities(db, result.scalars().all(), now)


# ── CRUD ────────────────────────────────────────────────────────────
async def _employee(db: AsyncSession, employee_id: int) -> Employee:
    employee = await db.get(Employee, employee_id)
    if employee is None:
        raise NotFound("Employee not found")
    return employee


async def create_task(
    db: AsyncSession,
    fields: dict[str, Any],
    assigned_by: User,
    now: datetime | None = None,
) -> Task:
    now = ensure_utc(now) or utcnow()
    for name in ("title", "description"):
        if not str(fields.get(name) or "").strip():
            raise ValidationFailed("Title, description, assignedTo, and dueDate are required")
    if fields.get("due_date") is None:
        raise ValidationFailed("Title, description, assignedTo, and dueDate are required")

    employee = await _employee(db, fields["assigned_to"])
    priority = TaskPriority(fields.get("priority") or TaskPriority.MEDIUM).value
    task = Task(
        title=fields["title"].strip(),
        description=fields["description"].strip(),
        assigned_to=employee,
        assigned_by=assigned_by,
        status=TaskStatus.ASSIGNED.value,
        priority=priority,
        base_priority=priority,
        due_date=ensure_utc(fields["due_date"]),
        price=fields.get("price"),
        created_at=now,
        updated_at=now,
    )
    db.add(task)
    await db.commit()
    logger.info("Task %d '%s' assigned to %s", task.id, task.title, employee.email)
    return task


async def get_task(db: AsyncSession, task_id: int, now: datetime | None = None) -> Task:
    task = await db.get(Task, task_id)
    if task is None:
        raise NotFound("Task not found")
    await refresh_priorities(db, [task], now)
    return task


async def update_task(
    db: AsyncSession,
    task_id: int,
    patch: dict[str, Any],
    now: datetime | None = None,
) -> Task:
    now = ensure_utc(now) or utcnow()
    task = await db.get(Task, task_id)
    if task is None:
        raise NotFound("Task not found")

    for name in ("title", "description"):
        if name in patch and not str(patch[name] or "").strip():
            raise ValidationFailed(f"{name} must not be empty")

    if "assigned_to" in patch:
        if patch["assigned_to"] is None:
            raise ValidationFailed("assigned_to must not be empty")
        task.assigned_to = await _employee(db, patch.pop("assigned_to"))

    status = patch.get("status")
    if status is not None:
        patch["status"] = TaskStatus(status).value
        if patch["status"] == TaskStatus.COMPLETED.value and not patch.get("completed_at"):
            patch["completed_at"] = now
    if patch.get("priority") is not None:
        patch["priority"] = patch["base_priority"] = TaskPriority(patch["priority"]).value
    for key in ("due_date", "completed_at"):
        if patch.get(key) is not None:
            patch[key] = ensure_utc(patch[key])

    for field, value in patch.items():
        setattr(task, field, value)
    task.updated_at = now
    await db.commit()
    logger.info("Task %d updated (%s)", task.id, ", ".join(sorted(patch)) or "no fields")
    return task


async def delete_task(db: AsyncSession, task_id: int) -> None:
    task = await db.get(Task, task_id)
    if task is None:
        raise NotFound("Task not found")
    await db.delete(task)
    await db.commit()
    logger.info("Task %d deleted", task_id)


async def list_tasks(db: AsyncSession, now: datetime | None = None) -> list[Task]:
    result = await db.execute(select(Task).order_by(Task.created_at.desc(), Task.id.desc()))
    tasks = list(result.scalars().all())
    await refresh_priorities(db, tasks, now)
    return tasks


async def tasks_for_employee(
    db: AsyncSession, employee_id: int, now: datetime | None = None
) -> list[Task]:
    result = await db.execute(
        select(Task)
        .where(Task.assigned_to_id == employee_id)
        .order_by(Task.created_at.desc(), Task.id.desc())
    )
    tasks = list(result.scalars().all())
    await refresh_priorities(db, tasks, now)
    return tasks


async def tasks_for_user(db: AsyncSession, email: str, now: datetime | None = None) -> list[Task]:
    result = await db.execute(select(Employee.id).where(Employee.email == email.strip().lower()))
    employee_id = result.scalar_one_or_none()
    if employee_id is None:
        raise NotFound("Employee not found")
    return await tasks_for_employee(db, employee_id, now)


# ── Stats & revenue ─────────────────────────────────────────────────
async def task_stats(db: AsyncSession) -> dict[str, int]:
    result = await db.execute(
        select(Task.priority, func.count())
        .where(Task.status.in_(OPEN_TASK_STATUSES))
        .group_by(Task.priority)
    )
    counts = dict(result.all())
    return {
        "incomplete_tasks": sum(counts.values()),
        "high_priority_tasks": counts.get(TaskPriority.HIGH.value, 0),
        "medium_priority_tasks": counts.get(TaskPriority.MEDIUM.value, 0),
        "low_priority_tasks": counts.get(TaskPriority.LOW.value, 0),
    }


async def revenue(
    db: AsyncSession, month: str | None = None, now: datetime | None = None
) -> dict[str, Any]:
    """Earnings from completed priced tasks minus salary paid out.

    With *month* (``YYYY-MM``) both sides are restricted to that month.
    """
    task_query = select(Task.price).where(
        Task.status == TaskStatus.COMPLETED.value,
        Task.price.is_not(None),
        Task.price > 0,
    )
    salary_query = select(SalaryRecord.employee_id, SalaryRecord.amount, SalaryRecord.month).where(
        SalaryRecord.status == SalaryStatus.PAID.value
    )
    if month is not None:
        start, end = month_bounds(month)
        task_query = task_query.where(Task.completed_at >= start, Task.completed_at < end)
        salary_query = salary_query.where(SalaryRecord.month == month)

    prices = (await db.execute(task_query)).scalars().all()
    paid = (await db.execute(salary_query)).all()
    total_earned = float(sum(prices))
    total_salary = float(sum(amount for _, amount, _ in paid))

    current = month_key(now)
    this_month = (
        await db.execute(
            select(SalaryRecord.employee_id, SalaryRecord.amount).where(
                SalaryRecord.status == SalaryStatus.PAID.value,
                SalaryRecord.month == current,
            )
        )
    ).all()
    total_employees = await db.scalar(select(func.count()).select_from(Employee))

    return {
        "month": month,
        "total_earned": total_earned,
        "total_salary_given": total_salary,
        "net_revenue": total_earned - total_salary,
        "completed_tasks_count": len(prices),
        "total_salary_records": len(paid),
        "employees_paid_this_month": len({employee_id for employee_id, _ in this_month}),
        "current_month_salary": float(sum(amount for _, amount in this_month)),
        "total_employees": total_employees or 0,
        "current_month": current,
    }
