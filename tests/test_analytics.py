"""Tests for the read-only analytics projections."""

from datetime import datetime, timezone

import pytest
from httpx import AsyncClient

from salon_api.models.task import Task
from salon_api.services import analytics

MARCH = datetime(2025, 3, 15, 6, 0, tzinfo=timezone.utc)
APRIL = datetime(2025, 4, 2, 6, 0, tzinfo=timezone.utc)


def _task(employee, title: str, price: float, completed_at=None, status="completed") -> Task:
    return Task(
        title=title,
        description=title,
        assigned_to=employee,
        status=status,
        priority="medium",
        due_date=MARCH,
        price=price,
        completed_at=completed_at,
        created_at=MARCH,
    )


@pytest.mark.parametrize(
    ("title", "expected"),
    [
        ("Hair colour touch-up", "Hair Services"),
        ("Bridal MAKEUP", "Beauty Services"),
        ("Gel manicure", "Nail Services"),
        ("Head massage", "Spa Services"),
        ("Eyebrow threading", "Eyebrow Services"),
        ("Consultation", "Other Services"),
    ],
)
def test_categorize(title, expected):
    assert analytics.categorize(title) == expected


@pytest.mark.asyncio
async def test_revenue_trends_by_month(db_session, employee):
    db_session.add_all(
        [
            _task(employee, "Haircut", 300, MARCH),
            _task(employee, "Facial", 900, MARCH),
            _task(employee, "Pedicure", 500, APRIL),
            _task(employee, "Spa", 2000, None, status="assigned"),
        ]
    )
    await db_session.commit()

    result = await analytics.revenue_trends(db_session, "month")
    assert result["period"] == "month"
    assert result["trends"] == [
        {"period": "Mar 2025", "revenue": 1200, "tasks": 2, "avg_revenue": 600},
        {"period": "Apr 2025", "revenue": 500, "tasks": 1, "avg_revenue": 500},
    ]


@pytest.mark.asyncio
async def test_salary_distribution(db_session, employee_factory):
    await employee_factory(email="junior@salon.test", salary=15_000, department="Hair")
    await employee_factory(email="senior@salon.test", salary=45_000, department="Hair")
    await employee_factory(email="spa@salon.test", salary=90_000, department="Spa")

    result = await analytics.salary_distribution(db_session)
    assert result["total_employees"] == 3
    assert [r["range"] for r in result["salary_ranges"]] == ["0-20k", "40k-60k", "80k+"]
    hair = next(d for d in result["department_salaries"] if d["department"] == "Hair")
    assert hair == {"department": "Hair", "employee_count": 2, "total_salary": 60_000, "avg_salary": 30_000}


@pytest.mark.asyncio
async def test_employee_performance(db_session, employee):
    db_session.add_all(
        [
            _task(employee, "Haircut", 300, MARCH),
            _task(employee, "Styling", 500, MARCH),
        ]
    )
    await db_session.commit()

    result = await analytics.employee_performance(db_session, now=APRIL)
    top = result["top_performers"][0]
    assert top["completed_tasks"] == 2
    assert top["total_revenue"] == 800
    assert top["avg_revenue_per_task"] == 400
    assert result["department_performance"][0]["employee_count"] == 1
    assert result["attendance_leaders"][0]["total_punch_ins"] == 0


@pytest.mark.asyncio
async def test_analytics_permissions(async_client: AsyncClient, admin_headers, super_admin_headers):
    trends = await async_client.get(
        "/api/v1/analytics/revenue-trends?period=week", headers=admin_headers
    )
    assert trends.status_code == 200
    assert trends.json()["data"] == {"trends": [], "period": "week"}

    bad_period = await async_client.get(
        "/api/v1/analytics/revenue-trends?period=year", headers=admin_headers
    )
    assert bad_period.status_code == 400

    denied = await async_client.get("/api/v1/analytics/dashboard", headers=admin_headers)
    assert denied.status_code == 403

    dashboard = await async_client.get("/api/v1/analytics/dashboard", headers=super_admin_headers)
    assert dashboard.status_code == 200
    assert set(dashboard.json()["data"]) == {
        "revenue_trends",
        "salary_distribution",
        "task_analytics",
        "employee_performance",
    }
