"""
Fuzz the public surface: hostile input must never produce a 500.
"""

import random
import string

import pytest
from httpx import AsyncClient


def generate_garbage(length=100):
    return "".join(random.choices(string.ascii_letters + string.digits + "!@#$%^&*()", k=length))


def generate_sql_injection():
    payloads = ["' OR '1'='1", "'; DROP TABLE employees--", "admin'--", "' UNION SELECT 1,2,3--"]
    return random.choice(payloads)


def generate_xss():
    payloads = ["<script>alert(1)</script>", "<img src=x onerror=alert(1)>", "javascript:alert(1)"]
    return random.choice(payloads)


def _hostile(i: int):
    if i % 10 == 0:
        return generate_sql_injection()
    if i % 11 == 0:
        return generate_xss()
    choices = [
        generate_garbage(random.randint(1, 255)),
        random.randint(-(2**63), 2**63),
        None,
        [],
        {},
        1.5,
        True,
    ]
    return random.choice(choices)


@pytest.mark.asyncio
async def test_punch_fuzz(async_client: AsyncClient, employee):
    """Fuzz /attendance/punch with 100 random bodies."""
    for i in range(100):
        body = {
            "employee_id": _hostile(i) if i % 2 else employee.id,
            "action": _hostile(i + 1) if i % 3 else "punch_in",
            "notes": _hostile(i + 2),
        }
        resp = await async_client.post("/api/v1/attendance/punch", json=body)
        assert resp.status_code in (201, 400, 403, 404, 409), f"Punch crashed on payload: {body}"


@pytest.mark.asyncio
async def test_login_fuzz(async_client: AsyncClient, admin):
    """Fuzz /auth/login with junk credentials."""
    for i in range(50):
        body = {"email": _hostile(i), "password": _hostile(i + 1)}
        resp = await async_client.post("/api/v1/auth/login", json=body)
        assert resp.status_code in (400, 401), f"Login crashed with {body}"


@pytest.mark.asyncio
async def test_query_param_fuzz(async_client: AsyncClient, admin_headers):
    """Dates and months that do not parse are client errors."""
    for value in ["2020-01-01", "9999-12-31", "0000-00-00", "not-a-date", "' OR 1=1"]:
        attendance = await async_client.get(
            "/api/v1/attendance", params={"date": value}, headers=admin_headers
        )
        revenue = await async_client.get(
            "/api/v1/tasks/revenue", params={"month": value[:7]}, headers=admin_headers
        )
        assert attendance.status_code in (200, 400), f"Attendance crashed on date: {value}"
        assert revenue.status_code in (200, 400), f"Revenue crashed on month: {value}"
