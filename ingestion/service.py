"""
Job service: the operations exposed to callers (HTTP routes, scripts).

build_job_service() wires the whole engine from settings:

    JobRepository → JobRecorder → JobExecutor → RetryHandler
                                                     ↓
                               WorkerPool → JobScheduler → JobService
"""

from typing import Any, Dict, List, Optional, Union
import logging

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import Settings, settings as default_settings
from core.exceptions import ValidationError
from ingestion import state_machine
from ingestion.executor import JobExecutor
from ingestion.recorder import JobRecorder
from ingestion.registry import PipelineRegistry, build_default_registry
from ingestion.repository import JobRepository
from ingestion.retry import RetryHandler, RetryPolicy
from ingestion.scheduler import JobScheduler
from ingestion.worker_pool import WorkerPool
from models.base import JobStatus
from models.job import Job
from models.job_log import JobLog
from models.job_statistics import JobStatistics
from schemas.jobs import JobCreate

logger = logging.getLogger(__name__)


class JobService:
    def __init__(self, repository: JobRepository, recorder: JobRecorder, scheduler: JobScheduler):
        self.repository = repository
        self.recorder = recorder
        self.scheduler = scheduler

    async def create_job(self, spec: Union[JobCreate, Dict[str, Any]]) -> Job:
        """
        Create a job in CREATED state.

        Raises:
            ValidationError: If the specification is incomplete or malformed
        """
        if not isinstance(spec, JobCreate):
            try:
                spec = JobCreate.model_validate(spec)
            except PydanticValidationError as e:
                raise ValidationError(
                    "Invalid job specification",
                    context={"errors": "; ".join(
                        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                        for err in e.errors()
                    )},
                    original_exception=e
                )

        job = await self.repository.create(Job(**spec.to_job_fields()))
        await self.recorder.info(job.id, "Job created")
        return job

    async def queue_job(self, job_id: int) -> Job:
        """
        Move a CREATED or FAILED job to QUEUED.

        Raises:
            NotFoundError: Unknown job id
            InvalidTransition: The job is in any other state; it is left unchanged
        """
        job = await self.repository.update(job_id, state_machine.queue)
        await self.recorder.info(job_id, "Job queued for processing")
        return job

    async def execute_now(self, job_id: int) -> Job:
        """Queue the job and hand it to the worker pool without waiting for the result."""
        job = await self.queue_job(job_id)
        if not self.scheduler.dispatch(job_id):
            logger.info(f"Job {job_id} left queued for the next scheduler tick")
        return job

    async def get_job(self, job_id: int) -> Job:
        return await self.repository.get(job_id)

    async def list_jobs(self, status: Optional[JobStatus] = None) -> List[Job]:
        return await self.repository.list(status)

    async def get_logs(self, job_id: int) -> List[JobLog]:
        await self.repository.get(job_id)
        return await self.repository.get_logs(job_id)

    async def get_statistics(self, job_id: int) -> List[JobStatistics]:
        await self.repository.get(job_id)
        return await self.repository.get_statistics(job_id)


def build_job_service(
    session_factory: async_sessionmaker[AsyncSession],
    registry: Optional[PipelineRegistry] = None,
    config: Settings = default_settings,
    pool: Optional[WorkerPool] = None,
    policy: Optional[RetryPolicy] = None
) -> JobService:
    """Assemble the engine. The scheduler is returned unstarted (service.scheduler.start())."""
    repository = JobRepository(session_factory, default_max_retries=config.DEFAULT_MAX_RETRIES)
    recorder = JobRecorder(repository)
    executor = JobExecutor(repository, registry or build_default_registry(config), recorder)
    retry_handler = RetryHandler(
        repository,
        executor,
        recorder,
        policy or RetryPolicy.from_settings(config)
    )
    scheduler = JobScheduler(
        repository,
        retry_handler,
        pool or WorkerPool(config.WORKER_POOL_SIZE, config.WORKER_QUEUE_SIZE),
        check_interval=config.SCHEDULER_CHECK_INTERVAL_SECONDS,
        retry_interval=config.SCHEDULER_RETRY_INTERVAL_SECONDS
    )
    return JobService(repository, recorder, scheduler)
