"""
Celery application for the nightly and periodic jobs.

Run with ``celery -A salon_api.worker worker --beat``.  Daily times are
local wall-clock times in ``settings.TIMEZONE``.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from functools import lru_cache
from typing import Any

from celery import Celery
from celery.schedules import crontab
from celery.signals import beat_init

from salon_api.core.config import settings
from salon_api.core.timeutils import parse_clock
from salon_api.db.session import async_session_factory, engine
from salon_api.services import scheduler

logger = logging.getLogger(__name__)

celery_app = Celery("salon_api", broker=settings.REDIS_URL, backend=settings.REDIS_URL)


def _at(clock: str) -> crontab:
    hour, minute = parse_clock(clock)
    return crontab(hour=hour, minute=minute)


def beat_schedule() -> dict[str, dict[str, Any]]:
    return {
        # Yesterday's punches, rolled up before the retention sweeps drop them
        "attendance-rollup": {
            "task": "salon.attendance_rollup",
            "schedule": _at(settings.DAILY_ROLLUP_TIME),
        },
        "attendance-retention-midday": {
            "task": "salon.attendance_retention",
            "schedule": _at(settings.RETENTION_MIDDAY_TIME),
        },
        "attendance-retention-midnight": {
            "task": "salon.attendance_retention",
            "schedule": _at(settings.RETENTION_MIDNIGHT_TIME),
        },
        "departure-cleanup": {
            "task": "salon.departure_cleanup",
            "schedule": _at(settings.DEPARTURE_CLEANUP_TIME),
        },
        "priority-sweep": {
            "task": "salon.priority_sweep",
            "schedule": timedelta(seconds=settings.PRIORITY_SWEEP_SECONDS),
        },
    }


celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.TIMEZONE,
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=86400,  # 24 hours
    beat_schedule=beat_schedule(),
)


@lru_cache(maxsize=1)
def get_guard() -> scheduler.JobGuard:
    return scheduler.JobGuard.from_url(settings.REDIS_URL)


def run_scheduled(name: str) -> bool:
    """Run the named job with its own session under its guard."""
    body = scheduler.JOBS[name]

    async def job() -> None:
        try:
            async with async_session_factory() as db:
                await body(db)
        finally:
            # Pooled connections are bound to this run's event loop
            await engine.dispose()

    return scheduler.run_job(name, job, get_guard())


@celery_app.task(name="salon.attendance_rollup")
def attendance_rollup_task() -> bool:
    return run_scheduled("attendance_rollup")


@celery_app.task(name="salon.attendance_retention")
def attendance_retention_task() -> bool:
    return run_scheduled("attendance_retention")


@celery_app.task(name="salon.departure_cleanup")
def departure_cleanup_task() -> bool:
    return run_scheduled("departure_cleanup")


@celery_app.task(name="salon.priority_sweep")
def priority_sweep_task() -> bool:
    return run_scheduled("priority_sweep")


@beat_init.connect
def _cleanup_on_startup(**_kwargs: Any) -> None:
    if settings.RUN_CLEANUP_ON_STARTUP:
        departure_cleanup_task.apply_async(countdown=settings.STARTUP_CLEANUP_DELAY_SECONDS)
        logger.info(
            "Departure cleanup queued %.0fs after beat start", settings.STARTUP_CLEANUP_DELAY_SECONDS
        )
