"""
Salary ledger endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from salon_api.api.v1.deps import (get_current_active_user, get_db, get_notifier,
                                   require_admin, require_super_admin)
from salon_api.core.exceptions import Forbidden
from salon_api.models.enums import Role
from salon_api.models.user import User
from salon_api.schemas.common import Envelope
from salon_api.schemas.employee import SalaryRecordRead
from salon_api.schemas.salary import (SalaryEmployee, SalaryHistoryData,
                                      SalaryPaymentData, SalaryStats)
from salon_api.services import salary as salary_service
from salon_api.services.notifier import Notifier

router = APIRouter(prefix="/salary", tags=["salary"])


@router.get("/stats", response_model=Envelope[SalaryStats])
async def salary_stats(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[SalaryStats]:
    return Envelope(data=SalaryStats(**await salary_service.salary_stats(db)))


@router.get("/{employee_id}", response_model=Envelope[SalaryHistoryData])
async def salary_history(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Envelope[SalaryHistoryData]:
    """Ledger for one employee. Employees may only read their own."""
    history = await salary_service.salary_history(db, employee_id)
    employee = history["employee"]
    if current_user.role == Role.EMPLOYEE.value and employee.email != current_user.email:
        raise Forbidden("You can only view your own salary history")
    return Envelope(
        data=SalaryHistoryData(
            employee=SalaryEmployee.model_validate(employee),
            pending_salary=history["pending_salary"],
            salary_history=[SalaryRecordRead.model_validate(r) for r in history["salary_history"]],
        )
    )


@router.post("/{employee_id}/pay", response_model=Envelope[SalaryPaymentData], status_code=status.HTTP_201_CREATED)
async def pay_salary(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_super_admin),
    notifier: Notifier = Depends(get_notifier),
) -> Envelope[SalaryPaymentData]:
    record = await salary_service.pay_salary(db, employee_id)
    data = SalaryRecordRead.model_validate(record)
    notifier.employee_update("salary_paid", employee_id, data)
    return Envelope(message="Salary paid successfully", data=SalaryPaymentData(salary_record=data))
