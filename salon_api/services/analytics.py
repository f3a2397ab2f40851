"""
Read-only management analytics.

Each projection pulls its rows in one query and aggregates in Python;
nothing here writes.
"""

from __future__ import annotations

import calendar
import re
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_api.core.timeutils import ensure_utc, get_zone, utcnow
from salon_api.models.employee import Attendance, Employee
from salon_api.models.enums import AttendanceAction, TaskStatus
from salon_api.models.task import Task
from salon_api.services.attendance import round_half_up

PERIODS = ("day", "week", "month")

SALARY_RANGES = (
    ("0-20k", 0, 20_000),
    ("20k-40k", 20_000, 40_000),
    ("40k-60k", 40_000, 60_000),
    ("60k-80k", 60_000, 80_000),
    ("80k+", 80_000, float("inf")),
)

# First match wins
CATEGORIES = (
    ("Hair Services", re.compile(r"hair|styling|cut|color", re.I)),
    ("Beauty Services", re.compile(r"makeup|facial|beauty", re.I)),
    ("Nail Services", re.compile(r"manicure|pedicure|nail", re.I)),
    ("Spa Services", re.compile(r"massage|spa|treatment", re.I)),
    ("Eyebrow Services", re.compile(r"eyebrow|threading", re.I)),
)
OTHER_CATEGORY = "Other Services"

RECENT_WINDOW = timedelta(days=30)


def categorize(title: str) -> str:
    for name, pattern in CATEGORIES:
        if pattern.search(title or ""):
            return name
    return OTHER_CATEGORY


def _month_label(year: int, month: int) -> str:
    return f"{calendar.month_abbr[month]} {year}"


def _period_key(ts: datetime, period: str) -> tuple[tuple[int, ...], str]:
    local = ensure_utc(ts).astimezone(get_zone())
    if period == "day":
        return (local.year, local.month, local.day), f"{local.day}/{local.month}/{local.year}"
    if period == "week":
        year, week, _ = local.isocalendar()
        return (year, week), f"Week {week}, {year}"
    return (local.year, local.month), _month_label(local.year, local.month)


async def _completed_tasks(db: AsyncSession) -> list[Task]:
    result = await db.execute(select(Task).where(Task.status == TaskStatus.COMPLETED.value))
    return list(result.scalars().all())


# ── Revenue ─────────────────────────────────────────────────────────
async def revenue_trends(db: AsyncSession, period: str = "month") -> dict[str, Any]:
    if period not in PERIODS:
        period = "month"
    buckets: dict[tuple[int, ...], dict[str, Any]] = {}
    for task in await _completed_tasks(db):
        if not task.price or task.price <= 0 or task.completed_at is None:
            continue
        key, label = _period_key(task.completed_at, period)
        bucket = buckets.setdefault(key, {"period": label, "revenue": 0.0, "tasks": 0})
        bucket["revenue"] += task.price
        bucket["tasks"] += 1

    trends = []
    for key in sorted(buckets):
        bucket = buckets[key]
        bucket["avg_revenue"] = round_half_up(bucket["revenue"] / bucket["tasks"], 2)
        trends.append(bucket)
    return {"trends": trends, "period": period}


# ── Salary ──────────────────────────────────────────────────────────
async def salary_distribution(db: AsyncSession) -> dict[str, Any]:
    result = await db.execute(select(Employee).where(Employee.is_active.is_(True)))
    employees = list(result.scalars().all())

    ranges = [
        {"range": label, "min": low, "max": high, "count": 0, "total_salary": 0.0}
        for label, low, high in SALARY_RANGES
    ]
    departments: dict[str, dict[str, float]] = defaultdict(lambda: {"count": 0, "total": 0.0})
    total_paid = 0.0

    for employee in employees:
        salary = employee.salary or 0
        for bucket in ranges:
            if bucket["min"] <= salary < bucket["max"]:
                bucket["count"] += 1
                bucket["total_salary"] += salary
                break
        dept = departments[employee.department or "Unknown"]
        dept["count"] += 1
        dept["total"] += salary
        total_paid += sum(r.amount or 0 for r in employee.salary_history)

    return {
        "salary_ranges": [
            {"range": b["range"], "count": b["count"], "total_salary": b["total_salary"]}
            for b in ranges
            if b["count"]
        ],
        "department_salaries": [
            {
                "department": name,
                "employee_count": int(d["count"]),
                "total_salary": d["total"],
                "avg_salary": int(round_half_up(d["total"] / d["count"])),
            }
            for name, d in departments.items()
        ],
        "total_salary_paid": total_paid,
        "total_employees": len(employees),
    }


# ── Tasks ───────────────────────────────────────────────────────────
async def task_analytics(db: AsyncSession) -> dict[str, Any]:
    result = await db.execute(select(Task))
    all_tasks = list(result.scalars().all())

    status: dict[str, dict[str, Any]] = {}
    priority: dict[str, dict[str, Any]] = {}
    category: dict[str, dict[str, Any]] = {}
    completion: dict[tuple[int, ...], dict[str, Any]] = {}

    for task in all_tasks:
        done = task.status == TaskStatus.COMPLETED.value
        price = task.price or 0

        s = status.setdefault(task.status, {"status": task.status, "count": 0, "total_value": 0.0})
        s["count"] += 1
        s["total_value"] += price

        p = priority.setdefault(task.priority, {"priority": task.priority, "count": 0, "completed": 0})
        p["count"] += 1
        p["completed"] += int(done)

        name = categorize(task.title)
        c = category.setdefault(name, {"category": name, "total": 0, "completed": 0, "revenue": 0.0})
        c["total"] += 1
        if done:
            c["completed"] += 1
            c["revenue"] += price

        if done and task.completed_at is not None:
            key, label = _period_key(task.completed_at, "month")
            t = completion.setdefault(key, {"period": label, "completed": 0, "revenue": 0.0})
            t["completed"] += 1
            t["revenue"] += price

    return {
        "status_distribution": list(status.values()),
        "priority_distribution": list(priority.values()),
        "category_analysis": sorted(category.values(), key=lambda c: c["total"], reverse=True),
        "completion_trends": [completion[k] for k in sorted(completion)],
    }


# ── Employees ───────────────────────────────────────────────────────
async def employee_performance(db: AsyncSession, now: datetime | None = None) -> dict[str, Any]:
    now = ensure_utc(now) or utcnow()
    recent_since = now - RECENT_WINDOW

    performers: dict[int, dict[str, Any]] = {}
    departments: dict[str, dict[str, Any]] = {}
    for task in await _completed_tasks(db):
        employee = task.assigned_to
        if employee is None:
            continue
        price = task.price or 0
        entry = performers.setdefault(
            employee.id,
            {
                "employee_id": employee.id,
                "employee_name": employee.name,
                "employee_position": employee.position,
                "employee_department": employee.department,
                "completed_tasks": 0,
                "total_revenue": 0.0,
            },
        )
        entry["completed_tasks"] += 1
        entry["total_revenue"] += price

        dept = departments.setdefault(
            employee.department,
            {"department": employee.department, "completed_tasks": 0, "total_revenue": 0.0, "members": set()},
        )
        dept["completed_tasks"] += 1
        dept["total_revenue"] += price
        dept["members"].add(employee.id)

    for entry in performers.values():
        entry["avg_revenue_per_task"] = round_half_up(
            entry["total_revenue"] / entry["completed_tasks"], 2
        )
    top = sorted(performers.values(), key=lambda e: e["completed_tasks"], reverse=True)

    result = await db.execute(select(Employee).where(Employee.is_active.is_(True)))
    employees = list(result.scalars().all())
    punches = await db.execute(
        select(Attendance.employee_id, Attendance.timestamp).where(
            Attendance.action == AttendanceAction.PUNCH_IN.value
        )
    )
    total_ins: dict[int, int] = defaultdict(int)
    recent_ins: dict[int, int] = defaultdict(int)
    for employee_id, timestamp in punches.all():
        total_ins[employee_id] += 1
        if ensure_utc(timestamp) >= recent_since:
            recent_ins[employee_id] += 1

    leaders = sorted(
        (
            {
                "employee_id": e.id,
                "name": e.name,
                "position": e.position,
                "department": e.department,
                "current_status": e.current_status,
                "total_punch_ins": total_ins[e.id],
                "recent_attendance": recent_ins[e.id],
            }
            for e in employees
        ),
        key=lambda e: e["recent_attendance"],
        reverse=True,
    )

    department_performance = []
    for dept in sorted(departments.values(), key=lambda d: d["total_revenue"], reverse=True):
        members = len(dept.pop("members"))
        department_performance.append(
            {
                **dept,
                "employee_count": members,
                "avg_tasks_per_employee": round_half_up(dept["completed_tasks"] / members, 2),
                "avg_revenue_per_employee": round_half_up(dept["total_revenue"] / members, 2),
            }
        )

    return {
        "top_performers": top[:10],
        "attendance_leaders": leaders[:10],
        "department_performance": department_performance,
        "total_employees": len(employees),
    }


async def dashboard(db: AsyncSession, now: datetime | None = None) -> dict[str, Any]:
    return {
        "revenue_trends": (await revenue_trends(db, "month"))["trends"],
        "salary_distribution": await salary_distribution(db),
        "task_analytics": await task_analytics(db),
        "employee_performance": await employee_performance(db, now),
    }
