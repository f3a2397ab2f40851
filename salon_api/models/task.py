"""
Task model: work assigned to an employee by an admin user.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from salon_api.db.base import Base
from salon_api.models.enums import TaskPriority, TaskStatus


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _initial_priority(context) -> str:
    return context.get_current_parameters().get("priority") or TaskPriority.MEDIUM.value


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (Index("ix_task_status_priority", "status", "priority"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    title: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    description: str = Column(Text, nullable=False)  # type: ignore[assignment]
    # Nullable so completed work (and its revenue) outlives an archived employee
    assigned_to_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True, index=True
    )
    assigned_by_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    status: str = Column(  # type: ignore[assignment]
        String(20), nullable=False, default=TaskStatus.ASSIGNED.value
    )  # assigned | in_progress | completed | cancelled
    priority: str = Column(  # type: ignore[assignment]
        String(10), nullable=False, default=TaskPriority.MEDIUM.value
    )  # low | medium | high
    # Priority as created or last set by hand; escalation counts from here
    base_priority: str = Column(  # type: ignore[assignment]
        String(10), nullable=False, default=_initial_priority
    )
    due_date: datetime = Column(DateTime(timezone=True), nullable=False)  # type: ignore[assignment]
    price: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    completed_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=_now, index=True)  # type: ignore[assignment]
    updated_at: datetime = Column(DateTime(timezone=True), default=_now)  # type: ignore[assignment]

    assigned_to = relationship("Employee", lazy="selectin")
    assigned_by = relationship("User", lazy="selectin")
