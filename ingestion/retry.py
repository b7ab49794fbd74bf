"""
Retry policy and the attempt wrapper used by the scheduler.

RetryPolicy is pure: given a job's retry count and retry budget it decides
whether the next failure is retried and how long to wait. RetryHandler runs
one executor attempt and applies that decision to the job atomically.

Backoff:
    delay(n) = initial_interval * multiplier ** (n - 1)    (n = retry number)

The wait is persisted as Job.next_eligible_at; the retrying-job loop of the
scheduler only redispatches a job once that time has passed.
"""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Optional
import logging

from core.clock import utcnow
from core.config import Settings, settings as default_settings
from core.exceptions import describe_error, InvalidTransition, NotFoundError, StaleJobError
from ingestion import state_machine
from ingestion.executor import ExecutionResult, JobExecutor
from ingestion.recorder import JobRecorder
from ingestion.repository import JobRepository
from models.job import Job

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryDecision:
    retry: bool
    attempt: int = 0
    delay: float = 0.0


class RetryPolicy:
    """Retry/backoff decisions. Never sleeps and never loops."""

    def __init__(
        self,
        initial_interval: float = 1.0,
        multiplier: float = 2.0,
        max_interval: Optional[float] = None
    ):
        if initial_interval < 0:
            raise ValueError("initial_interval must be >= 0")
        if multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if max_interval is not None and max_interval < 0:
            raise ValueError("max_interval must be >= 0")

        self.initial_interval = initial_interval
        self.multiplier = multiplier
        self.max_interval = max_interval

    @classmethod
    def from_settings(cls, config: Settings = default_settings) -> "RetryPolicy":
        return cls(
            initial_interval=config.RETRY_INITIAL_INTERVAL_SECONDS,
            multiplier=config.RETRY_MULTIPLIER,
            max_interval=config.RETRY_MAX_INTERVAL_SECONDS
        )

    def backoff(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt`` (1-based)."""
        if attempt < 1:
            raise ValueError("attempt must be >= 1")
        delay = self.initial_interval * self.multiplier ** (attempt - 1)
        if self.max_interval is not None:
            delay = min(delay, self.max_interval)
        return delay

    def decide(self, retry_count: int, max_retries: int) -> RetryDecision:
        if retry_count < max_retries:
            attempt = retry_count + 1
            return RetryDecision(retry=True, attempt=attempt, delay=self.backoff(attempt))
        return RetryDecision(retry=False)

    def __repr__(self) -> str:
        return (
            f"<RetryPolicy initial={self.initial_interval}s multiplier={self.multiplier} "
            f"max={self.max_interval}>"
        )


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


@dataclass
class AttemptResult:
    job_id: int
    outcome: AttemptOutcome
    execution: Optional[ExecutionResult] = None
    delay: Optional[float] = None
    error: Optional[BaseException] = None


class RetryHandler:
    """
    Runs one executor attempt and turns a failure into RETRYING or FAILED.

    Pipeline failures (including an unregistered type key) and unexpected
    exceptions count against the job's retry budget. InvalidTransition,
    StaleJobError and NotFoundError mean the attempt never started; they
    propagate without touching retry_count.
    """

    def __init__(
        self,
        repository: JobRepository,
        executor: JobExecutor,
        recorder: JobRecorder,
        policy: Optional[RetryPolicy] = None
    ):
        self.repository = repository
        self.executor = executor
        self.recorder = recorder
        self.policy = policy or RetryPolicy.from_settings()

    async def attempt(self, job_id: int) -> AttemptResult:
        try:
            execution = await self.executor.execute(job_id)
        except (InvalidTransition, StaleJobError, NotFoundError):
            raise
        except Exception as e:
            return await self._handle_failure(job_id, e)

        return AttemptResult(job_id=job_id, outcome=AttemptOutcome.SUCCESS, execution=execution)

    async def _handle_failure(self, job_id: int, error: Exception) -> AttemptResult:
        decision: Optional[RetryDecision] = None

        def apply(job: Job) -> None:
            nonlocal decision
            decision = self.policy.decide(job.retry_count, job.max_retries)
            if decision.retry:
                state_machine.retry(job, utcnow() + timedelta(seconds=decision.delay))
            else:
                state_machine.fail(job)

        job = await self.repository.update(job_id, apply)
        cause = describe_error(error)

        if decision.retry:
            await self.recorder.warn(
                job_id,
                f"Retrying job, attempt {job.retry_count} of {job.max_retries}: {cause}"
            )
            return AttemptResult(
                job_id=job_id,
                outcome=AttemptOutcome.RETRYABLE,
                delay=decision.delay,
                error=error
            )

        await self.recorder.error(
            job_id,
            f"Job failed after {job.retry_count} retry attempts: {cause}",
            error
        )
        return AttemptResult(job_id=job_id, outcome=AttemptOutcome.TERMINAL, error=error)
