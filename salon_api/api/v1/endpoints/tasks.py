"""
Task endpoints.

Reads need an admin (or the assignee for /my-tasks); create, update and
delete need a super admin.  Every read refreshes escalated priorities.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from salon_api.api.v1.deps import (get_current_active_user, get_db, get_notifier,
                                   require_admin, require_super_admin)
from salon_api.core.exceptions import ValidationFailed
from salon_api.models.user import User
from salon_api.schemas.common import Envelope, MessageResponse
from salon_api.schemas.task import (MONTH_RE, RevenueData, TaskCreate, TaskData,
                                    TaskListData, TaskRead, TaskStats, TaskUpdate)
from salon_api.services import tasks as task_service
from salon_api.services.notifier import Notifier

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _listing(tasks: list) -> TaskListData:
    return TaskListData(tasks=[TaskRead.model_validate(t) for t in tasks], count=len(tasks))


@router.get("", response_model=Envelope[TaskListData])
async def list_tasks(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[TaskListData]:
    return Envelope(data=_listing(await task_service.list_tasks(db)))


@router.get("/stats", response_model=Envelope[TaskStats])
async def task_stats(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[TaskStats]:
    return Envelope(data=TaskStats(**await task_service.task_stats(db)))


@router.get("/revenue", response_model=Envelope[RevenueData])
async def revenue(
    month: str | None = Query(default=None, description="YYYY-MM"),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[RevenueData]:
    if month is not None and not MONTH_RE.match(month):
        raise ValidationFailed("month must use YYYY-MM")
    return Envelope(data=RevenueData(**await task_service.revenue(db, month)))


@router.get("/my-tasks", response_model=Envelope[TaskListData])
async def my_tasks(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Envelope[TaskListData]:
    return Envelope(data=_listing(await task_service.tasks_for_user(db, current_user.email)))


@router.get("/employee/{employee_id}", response_model=Envelope[TaskListData])
async def tasks_for_employee(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[TaskListData]:
    return Envelope(data=_listing(await task_service.tasks_for_employee(db, employee_id)))


@router.get("/{task_id}", response_model=Envelope[TaskData])
async def get_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[TaskData]:
    task = await task_service.get_task(db, task_id)
    return Envelope(data=TaskData(task=TaskRead.model_validate(task)))


@router.post("", response_model=Envelope[TaskData], status_code=status.HTTP_201_CREATED)
async def create_task(
    body: TaskCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
    notifier: Notifier = Depends(get_notifier),
) -> Envelope[TaskData]:
    task = await task_service.create_task(db, body.model_dump(), admin)
    data = TaskRead.model_validate(task)
    notifier.task_update("created", task.id, data)
    return Envelope(message="Task created successfully", data=TaskData(task=data))


@router.put("/{task_id}", response_model=Envelope[TaskData])
async def update_task(
    task_id: int,
    body: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_super_admin),
    notifier: Notifier = Depends(get_notifier),
) -> Envelope[TaskData]:
    task = await task_service.update_task(db, task_id, body.model_dump(exclude_unset=True))
    data = TaskRead.model_validate(task)
    notifier.task_update("updated", task.id, data)
    return Envelope(message="Task updated successfully", data=TaskData(task=data))


@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_super_admin),
    notifier: Notifier = Depends(get_notifier),
) -> MessageResponse:
    await task_service.delete_task(db, task_id)
    notifier.task_update("deleted", task_id)
    return MessageResponse(message="Task deleted successfully")
