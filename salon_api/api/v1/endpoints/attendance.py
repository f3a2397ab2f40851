"""
Attendance endpoints.

POST /attendance/punch is public (the kiosk does not log in); every
other read requires an admin, except /my-attendance.
"""

from __future__ import annotations

import logging
from datetime import date
from math import ceil

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from salon_api.api.v1.deps import get_current_active_user, get_db, get_notifier, require_admin
from salon_api.models.user import User
from salon_api.schemas.attendance import (AttendanceListData, AttendancePage, AttendanceRead,
                                          AttendanceStats, CleanupResult, Pagination,
                                          PunchData, PunchRequest)
from salon_api.schemas.common import Envelope
from salon_api.services import attendance as attendance_service
from salon_api.services.notifier import Notifier

router = APIRouter(prefix="/attendance", tags=["attendance"])
logger = logging.getLogger(__name__)


# ── Punch (PUBLIC) ──────────────────────────────────────────────────
@router.post("/punch", response_model=Envelope[PunchData], status_code=status.HTTP_201_CREATED)
async def punch(
    body: PunchRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> Envelope[PunchData]:
    record = await attendance_service.punch(
        db,
        body.employee_id,
        body.action,
        notes=body.notes,
        ip_address=request.client.host if request.client else None,
        latitude=body.location.latitude if body.location else None,
        longitude=body.location.longitude if body.location else None,
        notifier=notifier,
    )
    return Envelope(
        message=f"Employee {body.action.value.replace('_', ' ')} successful",
        data=PunchData(attendance=AttendanceRead.model_validate(record)),
    )


# ── Admin reads ─────────────────────────────────────────────────────
@router.get("", response_model=Envelope[AttendancePage])
async def list_attendance(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
    employee_id: int | None = None,
    day: date | None = Query(default=None, alias="date"),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[AttendancePage]:
    records, total = await attendance_service.list_attendance(
        db, page=page, limit=limit, employee_id=employee_id, day=day
    )
    return Envelope(
        data=AttendancePage(
            attendance=[AttendanceRead.model_validate(r) for r in records],
            pagination=Pagination(
                current=page,
                total=ceil(total / limit),
                count=len(records),
                total_records=total,
            ),
        )
    )


@router.get("/stats", response_model=Envelope[AttendanceStats])
async def attendance_stats(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[AttendanceStats]:
    stats = await attendance_service.attendance_stats(db)
    logger.debug(
        "Attendance stats: total=%d present=%d in=%d pct=%d",
        stats.total_employees,
        stats.present_employees,
        stats.currently_checked_in,
        stats.attendance_percentage,
    )
    return Envelope(data=stats)


@router.get("/today", response_model=Envelope[AttendanceListData])
async def todays_attendance(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[AttendanceListData]:
    records, today = await attendance_service.todays_attendance(db)
    return Envelope(
        data=AttendanceListData(
            attendance=[AttendanceRead.model_validate(r) for r in records],
            count=len(records),
            date=today,
        )
    )


@router.get("/my-attendance", response_model=Envelope[AttendanceListData])
async def my_attendance(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Envelope[AttendanceListData]:
    records = await attendance_service.attendance_for_user(db, current_user.email)
    return Envelope(
        data=AttendanceListData(
            attendance=[AttendanceRead.model_validate(r) for r in records],
            count=len(records),
        )
    )


@router.get("/employee/{employee_id}", response_model=Envelope[AttendanceListData])
async def employee_attendance(
    employee_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[AttendanceListData]:
    records = await attendance_service.employee_attendance(db, employee_id, start_date, end_date)
    return Envelope(
        data=AttendanceListData(
            attendance=[AttendanceRead.model_validate(r) for r in records],
            count=len(records),
        )
    )


@router.delete("/cleanup", response_model=Envelope[CleanupResult])
async def cleanup_attendance(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> Envelope[CleanupResult]:
    """Delete every punch from before today's local midnight."""
    cutoff = attendance_service.retention_cutoff(days_back=1)
    deleted = await attendance_service.prune_attendance(db, cutoff)
    logger.info("Manual attendance cleanup by %s removed %d rows", admin.email, deleted)
    return Envelope(
        message=f"Deleted {deleted} attendance records",
        data=CleanupResult(deleted_count=deleted, cutoff=cutoff),
    )
