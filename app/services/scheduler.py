"""Internal task scheduler using APScheduler.

Runs the role-sync drain within the FastAPI process. Uses a PostgreSQL
advisory lock to prevent duplicate drains when multiple instances are
running (e.g., Fly.io auto-scaling).
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import text

from app.config import settings
from app.core.database import async_session_maker
from app.services.role_sync.synchronizer import role_synchronizer

logger = logging.getLogger(__name__)

# Advisory lock IDs (arbitrary unique integers, one per job)
ROLE_SYNC_LOCK_ID = 891250

# Seconds to wait for an in-flight drain on shutdown
SHUTDOWN_GRACE_SECONDS = 30.0


@asynccontextmanager
async def advisory_lock(lock_id: int) -> AsyncIterator[bool]:
    """
    Acquire a PostgreSQL advisory lock for the duration of the context.

    Advisory locks are session-level and automatically released when the
    session ends. We use pg_try_advisory_lock() which returns immediately
    (non-blocking): if the lock is held by another process, we skip.
    """
    async with async_session_maker() as session:
        result = await session.execute(
            text("SELECT pg_try_advisory_lock(:lock_id)"),
            {"lock_id": lock_id},
        )
        acquired = result.scalar()

        if not acquired:
            yield False
            return

        try:
            yield True
        finally:
            await session.execute(
                text("SELECT pg_advisory_unlock(:lock_id)"),
                {"lock_id": lock_id},
            )
            await session.commit()


async def run_role_sync() -> dict[str, Any] | None:
    """
    Execute one role-sync drain with advisory lock protection.

    Returns the report dict if executed, None if skipped (lock held by another
    instance) or failed.
    """
    async with advisory_lock(ROLE_SYNC_LOCK_ID) as acquired:
        if not acquired:
            logger.debug("[scheduler] Role-sync: skipped (another instance is running)")
            return None

        try:
            report = await role_synchronizer.process_queue()
            return asdict(report)
        except Exception as e:
            logger.exception(f"[scheduler] Role-sync: failed with error: {e}")
            return None


class Scheduler:
    """Manages the APScheduler instance and job registration."""

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None

    def start(self) -> None:
        """Start the scheduler and register jobs."""
        if not settings.scheduler_enabled:
            logger.info("[scheduler] Disabled via SCHEDULER_ENABLED=false")
            return

        self._scheduler = AsyncIOScheduler()

        # Role sync: drain pending events on a short interval
        self._scheduler.add_job(
            run_role_sync,
            trigger=IntervalTrigger(seconds=settings.sync_interval_seconds),
            id="role_sync",
            name="Cross-Context Role Sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        role_synchronizer.resume()
        self._scheduler.start()
        logger.info(f"[scheduler] Started with role-sync every {settings.sync_interval_seconds}s")

    async def stop(self) -> None:
        """Stop scheduling, then let an in-flight drain batch finish."""
        role_synchronizer.request_stop()
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        if not await role_synchronizer.wait_idle(timeout=SHUTDOWN_GRACE_SECONDS):
            logger.warning("[scheduler] Role-sync drain still running at shutdown")
        logger.info("[scheduler] Stopped")

    async def trigger_now(self, job_id: str) -> dict[str, Any] | None:
        """
        Manually trigger a job immediately (for testing/debugging).

        Returns the job result or None if job not found.
        """
        if job_id == "role_sync":
            return await run_role_sync()
        return None


scheduler = Scheduler()
