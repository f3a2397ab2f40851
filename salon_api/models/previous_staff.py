"""
PreviousStaff model: write-once snapshot of an employee who left.

No back-reference to the live employee row; the snapshot stands alone.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, Float, Integer, String

from salon_api.db.base import Base


class PreviousStaff(Base):
    __tablename__ = "previous_staff"
    __table_args__ = (
        CheckConstraint(
            "performance_rating IS NULL OR (performance_rating BETWEEN 1 AND 5)",
            name="ck_previous_staff_rating",
        ),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    email: str = Column(String(320), nullable=False, index=True)  # type: ignore[assignment]
    phone: str = Column(String(30), nullable=False, default="")  # type: ignore[assignment]
    position: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    department: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    address: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    date_of_birth: str | None = Column(String(10), nullable=True)  # type: ignore[assignment]
    emergency_contact: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    join_date: datetime = Column(DateTime(timezone=True), nullable=False)  # type: ignore[assignment]
    leaving_date: datetime = Column(DateTime(timezone=True), nullable=False)  # type: ignore[assignment]
    total_income: float = Column(Float, nullable=False, default=0)  # type: ignore[assignment]
    paid_income: float = Column(Float, nullable=False, default=0)  # type: ignore[assignment]
    pending_income: float = Column(Float, nullable=False, default=0)  # type: ignore[assignment]
    salary_history: list = Column(JSON, nullable=False, default=list)  # type: ignore[assignment]
    last_position: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    reason_for_leaving: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    performance_rating: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
