"""
Job scheduler: the periodic loops that hand QUEUED and RETRYING jobs to the
worker pool.

Dispatch never waits: a saturated pool leaves the job in the store for the
next tick.
"""

import logging
from typing import Optional, Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from core.config import settings
from core.exceptions import InvalidTransition, NotFoundError, PoolSaturatedError, StaleJobError
from ingestion.repository import JobRepository
from ingestion.retry import RetryHandler
from ingestion.worker_pool import WorkerPool
from models.base import JobStatus

logger = logging.getLogger(__name__)


class JobScheduler:
    """
    Two poll loops feeding the worker pool.

    - queued loop: every SCHEDULER_CHECK_INTERVAL_SECONDS, dispatches QUEUED jobs
    - retrying loop: every SCHEDULER_RETRY_INTERVAL_SECONDS, dispatches RETRYING
      jobs whose backoff has elapsed

    A job id stays in ``in_flight`` from dispatch until its attempt settles, so
    a job is never executed twice at the same time by this process.
    """

    def __init__(
        self,
        repository: JobRepository,
        retry_handler: RetryHandler,
        pool: WorkerPool,
        check_interval: Optional[float] = None,
        retry_interval: Optional[float] = None,
        scheduler: Optional[AsyncIOScheduler] = None
    ):
        self.repository = repository
        self.retry_handler = retry_handler
        self.pool = pool
        self.check_interval = (
            settings.SCHEDULER_CHECK_INTERVAL_SECONDS if check_interval is None else check_interval
        )
        self.retry_interval = (
            settings.SCHEDULER_RETRY_INTERVAL_SECONDS if retry_interval is None else retry_interval
        )
        self.scheduler = scheduler or AsyncIOScheduler()
        self.in_flight: Set[int] = set()

    @property
    def running(self) -> bool:
        return self.scheduler.running

    async def process_queued_jobs(self) -> int:
        """Queued-job loop tick. Returns the number of jobs dispatched."""
        try:
            jobs = await self.repository.list(JobStatus.QUEUED)
        except Exception as e:
            logger.error(f"Scheduler: failed to list queued jobs - {e}")
            return 0

        if jobs:
            logger.info(f"Scheduler: found {len(jobs)} queued jobs")
        return self._dispatch_all(job.id for job in jobs)

    async def process_retrying_jobs(self) -> int:
        """Retrying-job loop tick. Returns the number of jobs dispatched."""
        try:
            jobs = await self.repository.list_retry_candidates()
        except Exception as e:
            logger.error(f"Scheduler: failed to list retrying jobs - {e}")
            return 0

        if jobs:
            logger.info(f"Scheduler: found {len(jobs)} jobs eligible for retry")
        return self._dispatch_all(job.id for job in jobs)

    def _dispatch_all(self, job_ids) -> int:
        dispatched = 0
        for job_id in job_ids:
            try:
                if self.dispatch(job_id):
                    dispatched += 1
            except Exception as e:
                logger.error(f"Scheduler: failed to dispatch job {job_id} - {e}")
        return dispatched

    def dispatch(self, job_id: int) -> bool:
        """
        Hand a job to the worker pool without waiting for it.

        Returns False when the job is already in flight or the pool is
        saturated; a saturated job stays in the store and is picked up again
        on the next tick.
        """
        if job_id in self.in_flight:
            logger.debug(f"Scheduler: job {job_id} already in flight, skipping")
            return False

        self.in_flight.add(job_id)
        try:
            self.pool.submit(self._run, job_id, on_done=lambda: self.in_flight.discard(job_id))
        except PoolSaturatedError as e:
            self.in_flight.discard(job_id)
            logger.warning(f"Scheduler: deferring job {job_id} to next tick - {e.message}")
            return False

        logger.debug(f"Scheduler: dispatched job {job_id} ({self.pool.pending} waiting for a worker)")
        return True

    async def _run(self, job_id: int) -> None:
        try:
            result = await self.retry_handler.attempt(job_id)
            logger.info(f"Scheduler: job {job_id} attempt finished ({result.outcome.value})")
        except (InvalidTransition, StaleJobError, NotFoundError) as e:
            logger.warning(f"Scheduler: job {job_id} skipped - {e.message}")
        except Exception as e:
            logger.exception(f"Scheduler: job {job_id} execution failed - {e}")

    def start(self, poll: bool = True) -> None:
        """Start the worker pool and, when ``poll`` is set, both poll loops."""
        self.pool.start()

        if poll:
            self.scheduler.add_job(
                self.process_queued_jobs,
                trigger=IntervalTrigger(seconds=self.check_interval),
                id="process_queued_jobs",
                replace_existing=True,
                max_instances=1,
                coalesce=True
            )
            self.scheduler.add_job(
                self.process_retrying_jobs,
                trigger=IntervalTrigger(seconds=self.retry_interval),
                id="process_retrying_jobs",
                replace_existing=True,
                max_instances=1,
                coalesce=True
            )
            self.scheduler.start()

        logger.info(
            f"Job scheduler started (polling={'on' if poll else 'off'}, "
            f"check every {self.check_interval}s, retry every {self.retry_interval}s)"
        )

    async def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        await self.pool.shutdown()
        logger.info("Job scheduler stopped")
