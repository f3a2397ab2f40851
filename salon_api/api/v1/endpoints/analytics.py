"""
Read-only analytics endpoints.

Revenue trends, task analytics and employee performance are open to
admins; salary distribution and the combined dashboard to super admins.
"""

from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from salon_api.api.v1.deps import get_db, require_admin, require_super_admin
from salon_api.models.user import User
from salon_api.schemas.common import Envelope
from salon_api.services import analytics

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/revenue-trends", response_model=Envelope[dict[str, Any]])
async def revenue_trends(
    period: Literal["day", "week", "month"] = "month",
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[dict[str, Any]]:
    return Envelope(data=await analytics.revenue_trends(db, period))


@router.get("/salary-distribution", response_model=Envelope[dict[str, Any]])
async def salary_distribution(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_super_admin),
) -> Envelope[dict[str, Any]]:
    return Envelope(data=await analytics.salary_distribution(db))


@router.get("/task-analytics", response_model=Envelope[dict[str, Any]])
async def task_analytics(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[dict[str, Any]]:
    return Envelope(data=await analytics.task_analytics(db))


@router.get("/employee-performance", response_model=Envelope[dict[str, Any]])
async def employee_performance(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[dict[str, Any]]:
    return Envelope(data=await analytics.employee_performance(db))


@router.get("/dashboard", response_model=Envelope[dict[str, Any]])
async def dashboard(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_super_admin),
) -> Envelope[dict[str, Any]]:
    return Envelope(data=await analytics.dashboard(db))
