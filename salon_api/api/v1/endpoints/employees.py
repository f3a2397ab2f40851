"""
Employee registry endpoints.

- GET operations require any authenticated user.
- Create / update / delete / mark-leaving / salary rate require an admin.
- Archival (move-to-previous-staff, cleanup, previous-staff list) requires
  a super admin.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from salon_api.api.v1.deps import (get_current_active_user, get_db, get_notifier,
                                   require_admin, require_super_admin)
from salon_api.models.user import User
from salon_api.schemas.common import Envelope, MessageResponse
from salon_api.schemas.employee import (CleanupData, EmployeeCreate, EmployeeData,
                                        EmployeeListData, EmployeeRead, EmployeeUpdate,
                                        IncomeData, LeavingData, LeavingStatus,
                                        MarkLeavingRequest, MoveToPreviousStaffData,
                                        MoveToPreviousStaffRequest, PreviousStaffListData,
                                        PreviousStaffRead, SalaryUpdate)
from salon_api.services import archive
from salon_api.services import employees as employee_service
from salon_api.services.notifier import Notifier

router = APIRouter(prefix="/employees", tags=["employees"])
logger = logging.getLogger(__name__)


@router.get("", response_model=Envelope[EmployeeListData])
async def list_employees(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> Envelope[EmployeeListData]:
    employees = [EmployeeRead.model_validate(e) for e in await employee_service.list_employees(db)]
    return Envelope(data=EmployeeListData(employees=employees, count=len(employees)))


# Registered before /{employee_id} so the literal path wins
@router.get("/previous-staff", response_model=Envelope[PreviousStaffListData])
async def list_previous_staff(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_super_admin),
) -> Envelope[PreviousStaffListData]:
    staff = [PreviousStaffRead.model_validate(s) for s in await archive.list_previous_staff(db)]
    return Envelope(data=PreviousStaffListData(previous_staff=staff, count=len(staff)))


@router.post("/cleanup-left-employees", response_model=Envelope[CleanupData])
async def cleanup_left_employees(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_super_admin),
    notifier: Notifier = Depends(get_notifier),
) -> Envelope[CleanupData]:
    report = CleanupData.model_validate(await archive.cleanup_left_employees(db))
    if report.processed_count:
        notifier.employee_update("cleanup", 0, {"processed_count": report.processed_count})
    if not report.processed_count and not report.failed_employees:
        message = "No employees marked as leaving need to be cleaned up"
    else:
        message = f"Successfully processed {report.processed_count} left employees"
    return Envelope(message=message, data=report)


@router.get("/{employee_id}", response_model=Envelope[EmployeeData])
async def get_employee(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> Envelope[EmployeeData]:
    employee = await employee_service.get_employee(db, employee_id)
    return Envelope(data=EmployeeData(employee=EmployeeRead.model_validate(employee)))


@router.post("", response_model=Envelope[EmployeeData], status_code=status.HTTP_201_CREATED)
async def create_employee(
    body: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
    notifier: Notifier = Depends(get_notifier),
) -> Envelope[EmployeeData]:
    employee = await employee_service.create_employee(db, body.model_dump())
    data = EmployeeRead.model_validate(employee)
    notifier.employee_update("created", employee.id, data)
    return Envelope(message="Employee created successfully", data=EmployeeData(employee=data))


@router.put("/{employee_id}", response_model=Envelope[EmployeeData])
async def update_employee(
    employee_id: int,
    body: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
    notifier: Notifier = Depends(get_notifier),
) -> Envelope[EmployeeData]:
    employee = await employee_service.update_employee(
        db, employee_id, body.model_dump(exclude_unset=True)
    )
    data = EmployeeRead.model_validate(employee)
    notifier.employee_update("updated", employee.id, data)
    return Envelope(message="Employee updated successfully", data=EmployeeData(employee=data))


@router.delete("/{employee_id}", response_model=MessageResponse)
async def delete_employee(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
    notifier: Notifier = Depends(get_notifier),
) -> MessageResponse:
    """Archive the employee, then remove the live record and login."""
    await archive.delete_employee(db, employee_id)
    notifier.employee_update("deleted", employee_id)
    return MessageResponse(message="Employee deleted successfully")


@router.patch("/{employee_id}/mark-leaving", response_model=Envelope[LeavingData])
async def mark_leaving(
    employee_id: int,
    body: MarkLeavingRequest | None = None,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
    notifier: Notifier = Depends(get_notifier),
) -> Envelope[LeavingData]:
    body = body or MarkLeavingRequest()
    employee = await employee_service.mark_as_leaving(
        db, employee_id, body.leaving_date, body.reason_for_leaving
    )
    data = LeavingStatus.model_validate(employee)
    notifier.employee_update("marked_leaving", employee.id, data)
    return Envelope(message="Employee marked as leaving successfully", data=LeavingData(employee=data))


@router.patch("/{employee_id}/salary", response_model=Envelope[EmployeeData])
async def update_salary(
    employee_id: int,
    body: SalaryUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
    notifier: Notifier = Depends(get_notifier),
) -> Envelope[EmployeeData]:
    employee = await employee_service.update_salary(db, employee_id, body.salary)
    data = EmployeeRead.model_validate(employee)
    notifier.employee_update("salary_updated", employee.id, data)
    return Envelope(message="Salary updated successfully", data=EmployeeData(employee=data))


@router.post("/{employee_id}/move-to-previous-staff", response_model=Envelope[MoveToPreviousStaffData])
async def move_to_previous_staff(
    employee_id: int,
    body: MoveToPreviousStaffRequest | None = None,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_super_admin),
    notifier: Notifier = Depends(get_notifier),
) -> Envelope[MoveToPreviousStaffData]:
    body = body or MoveToPreviousStaffRequest()
    outcome = await archive.move_to_previous_staff(
        db, employee_id, body.reason_for_leaving, body.performance_rating
    )
    notifier.employee_update("archived", employee_id)
    return Envelope(
        message="Employee successfully moved to previous staff and deleted from active records",
        data=MoveToPreviousStaffData(
            moved_to_previous_staff=True,
            user_deleted=outcome.user_deleted,
            employee_deleted=True,
            salary_data=IncomeData(
                total_income=outcome.income.total_income,
                paid_income=outcome.income.paid_income,
                pending_income=outcome.income.pending_income,
            ),
        ),
    )
