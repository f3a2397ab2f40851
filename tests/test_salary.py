"""Tests for the monthly salary ledger."""

from datetime import datetime, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from salon_api.core.exceptions import Conflict, ValidationFailed
from salon_api.models.employee import SalaryRecord
from salon_api.services import salary as salary_service

# 2025-03-31 23:00 in Asia/Kolkata is still March locally
LATE_MARCH = datetime(2025, 3, 31, 17, 30, tzinfo=timezone.utc)
EARLY_APRIL = datetime(2025, 3, 31, 19, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_pay_once_per_month(db_session, employee_factory):
    stylist = await employee_factory(email="paid@salon.test", salary=500)

    record = await salary_service.pay_salary(db_session, stylist.id, LATE_MARCH)
    assert record.amount == 500
    assert record.month == "2025-03"
    assert record.status == "paid"

    with pytest.raises(Conflict, match="2025-03"):
        await salary_service.pay_salary(db_session, stylist.id, LATE_MARCH)

    # Local midnight has passed, so this is April's payment
    april = await salary_service.pay_salary(db_session, stylist.id, EARLY_APRIL)
    assert april.month == "2025-04"

    count = await db_session.scalar(select(func.count()).select_from(SalaryRecord))
    assert count == 2


@pytest.mark.asyncio
async def test_pay_uses_current_rate(db_session, employee_factory):
    stylist = await employee_factory(email="rate@salon.test", salary=500)
    stylist.salary = 650
    await db_session.commit()
    record = await salary_service.pay_salary(db_session, stylist.id, LATE_MARCH)
    assert record.amount == 650


@pytest.mark.asyncio
async def test_pay_zero_salary_rejected(db_session, employee):
    with pytest.raises(ValidationFailed, match="Invalid salary amount"):
        await salary_service.pay_salary(db_session, employee.id, LATE_MARCH)


@pytest.mark.asyncio
async def test_history_pending_preview_and_order(db_session, employee_factory):
    stylist = await employee_factory(email="history@salon.test", salary=400)
    stylist.salary_history.append(
        SalaryRecord(
            amount=380,
            date=datetime(2025, 1, 31, 6, 0, tzinfo=timezone.utc),
            month="2025-01",
            status="paid",
        )
    )
    stylist.salary_history.append(
        SalaryRecord(
            amount=390,
            date=datetime(2025, 2, 28, 6, 0, tzinfo=timezone.utc),
            month="2025-02",
            status="paid",
        )
    )
    await db_session.commit()

    history = await salary_service.salary_history(db_session, stylist.id, LATE_MARCH)
    assert [r.month for r in history["salary_history"]] == ["2025-02", "2025-01"]
    pending = history["pending_salary"]
    assert pending.amount == 400
    assert pending.month == "2025-03"
    assert pending.status.value == "pending"

    await salary_service.pay_salary(db_session, stylist.id, LATE_MARCH)
    history = await salary_service.salary_history(db_session, stylist.id, LATE_MARCH)
    assert history["pending_salary"] is None
    assert history["salary_history"][0].month == "2025-03"

    # The preview is never written to the ledger
    pending_rows = await db_session.scalar(
        select(func.count()).select_from(SalaryRecord).where(SalaryRecord.status == "pending")
    )
    assert pending_rows == 0


@pytest.mark.asyncio
async def test_no_pending_preview_without_rate(db_session, employee):
    history = await salary_service.salary_history(db_session, employee.id, LATE_MARCH)
    assert history["pending_salary"] is None


@pytest.mark.asyncio
async def test_pay_endpoint_and_stats(
    async_client: AsyncClient, super_admin_headers, admin_headers, publisher, employee_factory
):
    stylist = await employee_factory(email="endpoint@salon.test", salary=1200)

    by_admin = await async_client.post(f"/api/v1/salary/{stylist.id}/pay", headers=admin_headers)
    assert by_admin.status_code == 403

    paid = await async_client.post(f"/api/v1/salary/{stylist.id}/pay", headers=super_admin_headers)
    assert paid.status_code == 201
    assert paid.json()["data"]["salary_record"]["amount"] == 1200
    assert publisher.named("employee_update")[-1]["type"] == "salary_paid"

    again = await async_client.post(f"/api/v1/salary/{stylist.id}/pay", headers=super_admin_headers)
    assert again.status_code == 409

    stats = (await async_client.get("/api/v1/salary/stats", headers=admin_headers)).json()["data"]
    assert stats["total_salary_given"] == 1200
    assert stats["employees_paid"] == 1
    assert stats["total_employees"] == 1


@pytest.mark.asyncio
async def test_employee_sees_only_own_history(
    async_client: AsyncClient, employee_headers, employee, employee_factory
):
    other = await employee_factory(email="someone.else@salon.test")

    own = await async_client.get(f"/api/v1/salary/{employee.id}", headers=employee_headers)
    assert own.status_code == 200
    assert own.json()["data"]["employee"]["name"] == "Priya Sharma"

    theirs = await async_client.get(f"/api/v1/salary/{other.id}", headers=employee_headers)
    assert theirs.status_code == 403


@pytest.mark.asyncio
async def test_pay_then_history_end_to_end(
    async_client: AsyncClient, super_admin_headers, employee_factory
):
    stylist = await employee_factory(email="e2e@salon.test", salary=1000)

    before = (await async_client.get(f"/api/v1/salary/{stylist.id}", headers=super_admin_headers)).json()
    assert before["data"]["pending_salary"]["amount"] == 1000
    assert before["data"]["salary_history"] == []

    paid = await async_client.post(f"/api/v1/salary/{stylist.id}/pay", headers=super_admin_headers)
    month = paid.json()["data"]["salary_record"]["month"]

    after = (await async_client.get(f"/api/v1/salary/{stylist.id}", headers=super_admin_headers)).json()
    assert after["data"]["pending_salary"] is None
    first = after["data"]["salary_history"][0]
    assert (first["amount"], first["status"], first["month"]) == (1000, "paid", month)
