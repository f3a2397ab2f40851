"""
Tests for punches, live stats, the nightly rollup and retention.

Service-level tests pin ``now`` so local days (Asia/Kolkata, UTC+05:30)
are deterministic.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from salon_api.core.exceptions import Conflict, Forbidden, NotFound
from salon_api.models.employee import Attendance, AttendanceRollup, Employee
from salon_api.services import attendance as attendance_service

# 09:00 and 17:00 in Asia/Kolkata on 2025-03-10
SHIFT_START = datetime(2025, 3, 10, 3, 30, tzinfo=timezone.utc)
SHIFT_END = datetime(2025, 3, 10, 11, 30, tzinfo=timezone.utc)


def _punch(employee_id: int, action: str = "punch_in") -> dict:
    return {"employee_id": employee_id, "action": action}


# ── HTTP ────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_punch_in_updates_stats(
    async_client: AsyncClient, admin_headers, publisher, employee
):
    resp = await async_client.post("/api/v1/attendance/punch", json=_punch(employee.id))
    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "Employee punch in successful"
    record = body["data"]["attendance"]
    assert record["action"] == "punch_in"
    assert record["employee"]["current_status"] == "checked_in"

    stats = (await async_client.get("/api/v1/attendance/stats", headers=admin_headers)).json()["data"]
    assert stats["total_employees"] == 1
    assert stats["present_employees"] == 1
    assert stats["currently_checked_in"] == 1
    assert stats["attendance_percentage"] == 100

    punch_event = publisher.named("attendance_update")[0]
    assert punch_event["type"] == "punch_update"
    assert punch_event["data"]["employee_id"] == employee.id
    stats_event = publisher.named("attendance_stats_update")[0]
    assert stats_event["data"]["currently_checked_in"] == 1


@pytest.mark.asyncio
async def test_double_punch_in_rejected_without_side_effects(
    async_client: AsyncClient, db_session, publisher, employee
):
    first = await async_client.post("/api/v1/attendance/punch", json=_punch(employee.id))
    assert first.status_code == 201

    second = await async_client.post("/api/v1/attendance/punch", json=_punch(employee.id))
    assert second.status_code == 409
    assert second.json()["success"] is False

    rows = await db_session.scalar(select(func.count()).select_from(Attendance))
    assert rows == 1
    assert len(publisher.named("attendance_update")) == 1


@pytest.mark.asyncio
async def test_punch_out_while_checked_out_rejected(async_client: AsyncClient, employee):
    resp = await async_client.post("/api/v1/attendance/punch", json=_punch(employee.id, "punch_out"))
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_punch_unknown_and_inactive(async_client: AsyncClient, employee_factory):
    missing = await async_client.post("/api/v1/attendance/punch", json=_punch(4242))
    assert missing.status_code == 404

    retired = await employee_factory(email="retired@salon.test", is_active=False)
    inactive = await async_client.post("/api/v1/attendance/punch", json=_punch(retired.id))
    assert inactive.status_code == 403


@pytest.mark.asyncio
async def test_punch_validation(async_client: AsyncClient, employee):
    bad_action = await async_client.post(
        "/api/v1/attendance/punch", json={"employee_id": employee.id, "action": "lunch"}
    )
    bad_location = await async_client.post(
        "/api/v1/attendance/punch",
        json={**_punch(employee.id), "location": {"latitude": 200, "longitude": 0}},
    )
    assert bad_action.status_code == 400
    assert bad_location.status_code == 400


@pytest.mark.asyncio
async def test_stats_with_no_employees(async_client: AsyncClient, admin_headers):
    resp = await async_client.get("/api/v1/attendance/stats", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["attendance_percentage"] == 0


@pytest.mark.asyncio
async def test_stats_requires_admin(async_client: AsyncClient, employee_headers):
    resp = await async_client.get("/api/v1/attendance/stats", headers=employee_headers)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_list_today_and_mine(
    async_client: AsyncClient, admin_headers, employee_headers, employee
):
    await async_client.post("/api/v1/attendance/punch", json=_punch(employee.id))
    await async_client.post("/api/v1/attendance/punch", json=_punch(employee.id, "punch_out"))

    page = (await async_client.get("/api/v1/attendance?limit=1", headers=admin_headers)).json()["data"]
    assert page["pagination"] == {"current": 1, "total": 2, "count": 1, "total_records": 2}
    assert page["attendance"][0]["action"] == "punch_out"

    today = (await async_client.get("/api/v1/attendance/today", headers=admin_headers)).json()["data"]
    assert today["count"] == 2

    mine = await async_client.get("/api/v1/attendance/my-attendance", headers=employee_headers)
    assert mine.status_code == 200
    assert mine.json()["data"]["count"] == 2


@pytest.mark.asyncio
async def test_my_attendance_without_employee_record(async_client: AsyncClient, admin_headers):
    resp = await async_client.get("/api/v1/attendance/my-attendance", headers=admin_headers)
    assert resp.status_code == 404


# ── Service ─────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_percentage_rounds_half_up(db_session, employee_factory):
    employees = [await employee_factory(email=f"stylist{i}@salon.test") for i in range(3)]
    await attendance_service.punch(db_session, employees[0].id, "punch_in", now=SHIFT_START)
    stats = await attendance_service.attendance_stats(db_session, SHIFT_START)
    assert stats.attendance_percentage == 33

    await attendance_service.punch(db_session, employees[1].id, "punch_in", now=SHIFT_START)
    stats = await attendance_service.attendance_stats(db_session, SHIFT_START)
    assert stats.attendance_percentage == 67
    assert stats.date == date(2025, 3, 10)


@pytest.mark.asyncio
async def test_punch_errors_from_service(db_session, employee):
    with pytest.raises(NotFound):
        await attendance_service.punch(db_session, 999, "punch_in")

    await attendance_service.punch(db_session, employee.id, "punch_in", now=SHIFT_START)
    with pytest.raises(Conflict):
        await attendance_service.punch(db_session, employee.id, "punch_in", now=SHIFT_START)

    employee.is_active = False
    await db_session.commit()
    with pytest.raises(Forbidden):
        await attendance_service.punch(db_session, employee.id, "punch_out", now=SHIFT_END)


def test_round_half_up():
    assert attendance_service.round_half_up(2.5) == 3
    assert attendance_service.round_half_up(66.665, 2) == 66.67
    assert attendance_service.round_half_up(33.333) == 33


def test_total_hours_pairs_sessions():
    ins = [SHIFT_START, SHIFT_START + timedelta(hours=5)]
    outs = [SHIFT_START + timedelta(hours=4)]
    # Second session is still open and does not count
    assert attendance_service.total_hours(ins, outs) == 4.0


@pytest.mark.asyncio
async def test_rollup_single_session(db_session, employee):
    await attendance_service.punch(db_session, employee.id, "punch_in", now=SHIFT_START)
    await attendance_service.punch(db_session, employee.id, "punch_out", now=SHIFT_END)

    written = await attendance_service.rollup_attendance_day(db_session, date(2025, 3, 10))
    assert written == 1

    rollup = (await db_session.execute(select(AttendanceRollup))).scalar_one()
    assert rollup.total_hours == pytest.approx(8.0)
    assert rollup.total_sessions == 1
    assert len(rollup.punch_ins) == 1
    assert len(rollup.punch_outs) == 1


@pytest.mark.asyncio
async def test_rollup_rerun_skips_existing(db_session, employee):
    await attendance_service.punch(db_session, employee.id, "punch_in", now=SHIFT_START)
    await attendance_service.punch(db_session, employee.id, "punch_out", now=SHIFT_END)

    assert await attendance_service.rollup_attendance_day(db_session, date(2025, 3, 10)) == 1
    assert await attendance_service.rollup_attendance_day(db_session, date(2025, 3, 10)) == 0
    count = await db_session.scalar(select(func.count()).select_from(AttendanceRollup))
    assert count == 1


@pytest.mark.asyncio
async def test_rollup_ignores_other_days(db_session, employee):
    await attendance_service.punch(db_session, employee.id, "punch_in", now=SHIFT_START)
    assert await attendance_service.rollup_attendance_day(db_session, date(2025, 3, 11)) == 0


@pytest.mark.asyncio
async def test_retention_keeps_cutoff_instant(db_session, employee):
    cutoff = attendance_service.retention_cutoff(SHIFT_START, days_back=0)
    assert cutoff == datetime(2025, 3, 9, 18, 30, tzinfo=timezone.utc)

    for ts in (cutoff - timedelta(seconds=1), cutoff, cutoff + timedelta(hours=1)):
        db_session.add(Attendance(employee_id=employee.id, action="punch_in", timestamp=ts))
    await db_session.commit()

    deleted = await attendance_service.prune_attendance(db_session, cutoff)
    assert deleted == 1
    remaining = await db_session.scalar(select(func.count()).select_from(Attendance))
    assert remaining == 2


def test_retention_cutoff_days_back():
    assert attendance_service.retention_cutoff(SHIFT_START, days_back=1) == datetime(
        2025, 3, 8, 18, 30, tzinfo=timezone.utc
    )


@pytest.mark.asyncio
async def test_punch_status_survives_reload(db_session, employee):
    await attendance_service.punch(db_session, employee.id, "punch_in", now=SHIFT_START)
    status = await db_session.scalar(
        select(Employee.current_status).where(Employee.id == employee.id)
    )
    assert status == "checked_in"


@pytest.mark.asyncio
async def test_shift_end_to_end(async_client: AsyncClient, admin_headers, employee):
    async def checked_in() -> int:
        resp = await async_client.get("/api/v1/attendance/stats", headers=admin_headers)
        return resp.json()["data"]["currently_checked_in"]

    assert await checked_in() == 0
    await async_client.post("/api/v1/attendance/punch", json=_punch(employee.id))
    assert await checked_in() == 1

    again = await async_client.post("/api/v1/attendance/punch", json=_punch(employee.id))
    assert again.status_code == 409
    assert await checked_in() == 1

    out = await async_client.post("/api/v1/attendance/punch", json=_punch(employee.id, "punch_out"))
    assert out.status_code == 201
    assert await checked_in() == 0
