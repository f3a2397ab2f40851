"""
Employee, salary ledger, daily rollups & raw attendance punches.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import (JSON, Boolean, CheckConstraint, Column, Date, DateTime,
                        Float, ForeignKey, Index, Integer, String,
                        UniqueConstraint)
from sqlalchemy.orm import relationship

from salon_api.db.base import Base
from salon_api.models.enums import AttendanceStatus, SalaryStatus


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Employee(Base):
    __tablename__ = "employees"
    __table_args__ = (CheckConstraint("salary >= 0", name="ck_employee_salary_positive"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    phone: str = Column(String(30), nullable=False)  # type: ignore[assignment]
    position: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    department: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    address: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    date_of_birth: str | None = Column(String(10), nullable=True)  # type: ignore[assignment]
    emergency_contact: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    salary: float = Column(Float, nullable=False, default=0)  # type: ignore[assignment]
    join_date: datetime = Column(DateTime(timezone=True), nullable=False, default=_now)  # type: ignore[assignment]
    is_active: bool = Column(Boolean, nullable=False, default=True)  # type: ignore[assignment]

    # Owned by the attendance state machine only
    current_status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default=AttendanceStatus.CHECKED_OUT.value,
        index=True,
    )
    last_punch_in: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    last_punch_out: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]

    # leaving_date is only ever set while is_leaving is true
    is_leaving: bool = Column(Boolean, nullable=False, default=False, index=True)  # type: ignore[assignment]
    leaving_date: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    leaving_reason: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]

    created_at: datetime = Column(DateTime(timezone=True), default=_now)  # type: ignore[assignment]
    updated_at: datetime = Column(DateTime(timezone=True), default=_now)  # type: ignore[assignment]

    salary_history = relationship(
        "SalaryRecord",
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="SalaryRecord.date",
        lazy="selectin",
    )
    attendance_history = relationship(
        "AttendanceRollup",
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="AttendanceRollup.date",
        lazy="selectin",
    )


class SalaryRecord(Base):
    __tablename__ = "salary_records"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_salary_amount_positive"),
        # Pending salaries are never stored, so one row per month means one payment
        UniqueConstraint("employee_id", "month", name="uq_salary_employee_month"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    amount: float = Column(Float, nullable=False)  # type: ignore[assignment]
    date: datetime = Column(DateTime(timezone=True), nullable=False, default=_now)  # type: ignore[assignment]
    month: str = Column(String(7), nullable=False)  # type: ignore[assignment]  # YYYY-MM
    status: str = Column(  # type: ignore[assignment]
        String(10), nullable=False, default=SalaryStatus.PENDING.value
    )  # pending | paid

    employee = relationship("Employee", back_populates="salary_history")


class AttendanceRollup(Base):
    """One per employee per calendar day, written by the nightly rollup."""

    __tablename__ = "attendance_rollups"
    __table_args__ = (UniqueConstraint("employee_id", "date", name="uq_rollup_employee_date"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    punch_ins: list = Column(JSON, nullable=False, default=list)  # type: ignore[assignment]
    punch_outs: list = Column(JSON, nullable=False, default=list)  # type: ignore[assignment]
    total_hours: float = Column(Float, nullable=False, default=0)  # type: ignore[assignment]
    total_sessions: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]

    employee = relationship("Employee", back_populates="attendance_history")


class Attendance(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        Index("ix_attendance_employee_timestamp", "employee_id", "timestamp"),
        Index("ix_attendance_action_timestamp", "action", "timestamp"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    action: str = Column(String(20), nullable=False)  # type: ignore[assignment]  # punch_in | punch_out
    timestamp: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        nullable=False,
        default=_now,
        index=True,
    )
    ip_address: str | None = Column(String(64), nullable=True)  # type: ignore[assignment]
    latitude: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    longitude: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    notes: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=_now)  # type: ignore[assignment]

    employee = relationship("Employee", lazy="selectin")
