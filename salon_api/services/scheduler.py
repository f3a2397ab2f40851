"""
Scheduled jobs and their single-slot guard.

The job bodies are plain coroutines over a session; ``salon_api.worker``
puts them on the Celery beat schedule.  Each job name owns a Redis lock,
so a run that would overlap a previous one (on any worker) is skipped
rather than queued.  Jobs never raise: failures are logged.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any

import redis
from redis.exceptions import LockError
from sqlalchemy.ext.asyncio import AsyncSession

from salon_api.core.config import settings
from salon_api.core.timeutils import local_date, utcnow
from salon_api.services import archive, attendance, tasks

logger = logging.getLogger(__name__)

JobBody = Callable[[AsyncSession], Awaitable[Any]]


# ── Job bodies ──────────────────────────────────────────────────────
async def rollup_previous_day(db: AsyncSession, now: datetime | None = None) -> int:
    """Roll up the local day that ended at the last midnight."""
    return await attendance.rollup_attendance_day(db, local_date(now) - timedelta(days=1))


async def prune_expired_attendance(db: AsyncSession, now: datetime | None = None) -> int:
    """Keep yesterday and today; the rollup reads yesterday before it goes."""
    return await attendance.prune_attendance(db, attendance.retention_cutoff(now, days_back=1))


async def archive_departed(db: AsyncSession) -> dict:
    return await archive.cleanup_left_employees(db)


async def sweep_priorities(db: AsyncSession, now: datetime | None = None) -> int:
    return await tasks.escalate_open_tasks(db, now)


JOBS: dict[str, JobBody] = {
    "attendance_rollup": rollup_previous_day,
    "attendance_retention": prune_expired_attendance,
    "departure_cleanup": archive_departed,
    "priority_sweep": sweep_priorities,
}


# ── Guard ───────────────────────────────────────────────────────────
class JobGuard:
    """One lock per job name, held in Redis so every worker sees it.

    The lock expires after ``timeout`` seconds so a crashed worker
    cannot block a job forever.
    """

    def __init__(self, client: Any, timeout: float = settings.JOB_LOCK_TIMEOUT_SECONDS) -> None:
        self.client = client
        self.timeout = timeout

    @classmethod
    def from_url(cls, url: str) -> JobGuard:
        return cls(redis.Redis.from_url(url))

    @contextmanager
    def hold(self, name: str) -> Iterator[bool]:
        lock = self.client.lock(f"salon:job:{name}", timeout=self.timeout)
        acquired = lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                try:
                    lock.release()
                except LockError:
                    logger.warning("Lock for job %s expired before the run finished", name)


def run_job(name: str, job: Callable[[], Awaitable[Any]], guard: JobGuard) -> bool:
    """Run *job* on a private event loop unless *name* is already running.

    Returns ``False`` when skipped.  Failures are logged, not raised.
    """
    with guard.hold(name) as acquired:
        if not acquired:
            logger.warning("Job %s is still running; skipping this run", name)
            return False

        started = utcnow()
        logger.info("Job %s started", name)
        loop = asyncio.new_event_loop()
        try:
            loop.run_until_complete(job())
        except Exception:
            logger.exception("Job %s failed", name)
        else:
            logger.info("Job %s finished in %.2fs", name, (utcnow() - started).total_seconds())
        finally:
            loop.close()
    return True
