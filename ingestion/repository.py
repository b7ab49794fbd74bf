"""
Job store: persistence of jobs, job logs and job statistics.

All status changes go through JobRepository.update(), which performs an
atomic read-modify-write:

- a per-job asyncio.Lock serialises writers inside this process
  (scheduler ticks, worker pool, "execute now" requests)
- the Job.version column (SQLAlchemy version_id_col) rejects a write whose
  row changed underneath it; the conflict surfaces as StaleJobError
"""

import asyncio
import weakref
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from core.clock import utcnow
from core.config import settings
from core.exceptions import NotFoundError, StaleJobError
from ingestion import state_machine
from models.base import JobStatus, LogLevel
from models.job import Job
from models.job_log import JobLog
from models.job_statistics import JobStatistics
import logging

logger = logging.getLogger(__name__)


class JobRepository:
    """
    Async SQLAlchemy repository for the job engine.

    Each call opens its own short session from the factory, so the
    repository can be shared by concurrent tasks. The factory must be
    built with expire_on_commit=False: returned rows are used detached.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        default_max_retries: Optional[int] = None
    ):
        self.session_factory = session_factory
        self.default_max_retries = (
            settings.DEFAULT_MAX_RETRIES if default_max_retries is None else default_max_retries
        )
        # entries disappear once no writer holds or waits on the lock
        self._locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, job_id: int) -> asyncio.Lock:
        lock = self._locks.get(job_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[job_id] = lock
        return lock

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    async def create(self, job: Job) -> Job:
        """Insert a new job after stamping its creation defaults."""
        state_machine.stamp_created(job, self.default_max_retries)

        async with self.session_factory() as session:
            session.add(job)
            await session.commit()
            await session.refresh(job)

        logger.info(f"Created job {job.id} ({job.name})")
        return job

    async def get(self, job_id: int) -> Job:
        async with self.session_factory() as session:
            job = await session.get(Job, job_id)

        if job is None:
            raise NotFoundError(job_id)
        return job

    async def list(self, status: Optional[JobStatus] = None) -> List[Job]:
        query = select(Job).order_by(Job.id)
        if status is not None:
            query = query.where(Job.status == status)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def list_retry_candidates(self, now: Optional[datetime] = None) -> List[Job]:
        """RETRYING jobs whose backoff has elapsed."""
        now = now or utcnow()
        query = (
            select(Job)
            .where(
                Job.status == JobStatus.RETRYING,
                Job.retry_count <= Job.max_retries,
                or_(Job.next_eligible_at.is_(None), Job.next_eligible_at <= now)
            )
            .order_by(Job.id)
        )

        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def count_by_status(self) -> Dict[str, int]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Job.status, func.count(Job.id)).group_by(Job.status)
            )
            counts = {status.value: 0 for status in JobStatus}
            for status, count in result.all():
                counts[JobStatus(status).value] = count
            return counts

    async def update(self, job_id: int, mutator: Callable[[Job], None]) -> Job:
        """
        Atomically load a job, apply ``mutator`` and commit.

        Args:
            job_id: Job to change
            mutator: Function mutating the job in place; usually one of the
                ingestion.state_machine transitions. Whatever it raises is
                propagated and nothing is written.

        Returns:
            The job as committed

        Raises:
            NotFoundError: If the job does not exist
            StaleJobError: If the row changed between read and write
        """
        lock = self._lock_for(job_id)
        async with lock:
            async with self.session_factory() as session:
                job = await session.get(Job, job_id, populate_existing=True)
                if job is None:
                    raise NotFoundError(job_id)

                mutator(job)
                state_machine.stamp_updated(job)

                try:
                    await session.commit()
                except StaleDataError as e:
                    await session.rollback()
                    raise StaleJobError(
                        "Job was modified by another writer",
                        context={"job_id": job_id},
                        original_exception=e
                    )

        return job

    # ------------------------------------------------------------------
    # Logs and statistics (append-only)
    # ------------------------------------------------------------------

    async def add_log(
        self,
        job_id: int,
        level: LogLevel,
        message: str,
        stack_trace: Optional[str] = None
    ) -> JobLog:
        entry = JobLog(
            job_id=job_id,
            level=level,
            message=message,
            timestamp=utcnow(),
            stack_trace=stack_trace
        )
        async with self.session_factory() as session:
            session.add(entry)
            await session.commit()
        return entry

    async def add_statistics(
        self,
        job_id: int,
        records_processed: int = 0,
        records_failed: int = 0,
        bytes_processed: int = 0,
        processing_time_ms: int = 0
    ) -> JobStatistics:
        row = JobStatistics(
            job_id=job_id,
            records_processed=records_processed,
            records_failed=records_failed,
            bytes_processed=bytes_processed,
            processing_time_ms=processing_time_ms,
            timestamp=utcnow()
        )
        async with self.session_factory() as session:
            session.add(row)
            await session.commit()
        return row

    async def get_logs(self, job_id: int) -> List[JobLog]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(JobLog).where(JobLog.job_id == job_id).order_by(JobLog.id)
            )
            return list(result.scalars().all())

    async def get_statistics(self, job_id: int) -> List[JobStatistics]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(JobStatistics)
                .where(JobStatistics.job_id == job_id)
                .order_by(JobStatistics.id)
            )
            return list(result.scalars().all())
