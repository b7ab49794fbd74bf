"""
Unit tests for the retry policy and the attempt wrapper
"""

from datetime import timedelta

import pytest

from core.clock import utcnow
from core.exceptions import InvalidTransition
from ingestion.retry import AttemptOutcome, RetryHandler, RetryPolicy
from models.base import JobStatus, LogLevel
from ingestion import state_machine


class TestRetryPolicy:
    """Pure decision and backoff logic"""

    def test_backoff_is_exponential(self):
        policy = RetryPolicy(initial_interval=1.0, multiplier=2.0)

        assert policy.backoff(1) == 1.0
        assert policy.backoff(2) == 2.0
        assert policy.backoff(3) == 4.0

    def test_backoff_capped(self):
        policy = RetryPolicy(initial_interval=1.0, multiplier=10.0, max_interval=30.0)

        assert policy.backoff(2) == 10.0
        assert policy.backoff(3) == 30.0

    def test_backoff_rejects_attempt_zero(self):
        with pytest.raises(ValueError):
            RetryPolicy().backoff(0)

    def test_decide_retry_below_budget(self):
        decision = RetryPolicy(initial_interval=1.0, multiplier=2.0).decide(retry_count=1, max_retries=3)

        assert decision.retry is True
        assert decision.attempt == 2
        assert decision.delay == 2.0

    def test_decide_fail_when_budget_used(self):
        decision = RetryPolicy().decide(retry_count=3, max_retries=3)
        assert decision.retry is False

    def test_zero_retries_fails_immediately(self):
        assert RetryPolicy().decide(retry_count=0, max_retries=0).retry is False

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            RetryPolicy(initial_interval=-1)
        with pytest.raises(ValueError):
            RetryPolicy(multiplier=0.5)

    def test_from_settings(self):
        from core.config import Settings

        config = Settings(RETRY_INITIAL_INTERVAL_SECONDS=5.0, RETRY_MULTIPLIER=3.0, RETRY_MAX_INTERVAL_SECONDS=60.0)
        policy = RetryPolicy.from_settings(config)

        assert policy.backoff(2) == 15.0
        assert policy.max_interval == 60.0


class TestRetryHandler:
    """One attempt plus its retry decision, against the job store"""

    @pytest.mark.asyncio
    async def test_success(self, retry_handler, repository, make_job):
        job = await make_job()
        await repository.update(job.id, state_machine.queue)

        result = await retry_handler.attempt(job.id)

        assert result.outcome == AttemptOutcome.SUCCESS
        assert result.execution.records_processed == 2
        assert (await repository.get(job.id)).status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_failure_below_budget_schedules_retry(self, repository, executor, recorder, make_job):
        handler = RetryHandler(repository, executor, recorder, RetryPolicy(initial_interval=30.0, multiplier=2.0))
        job = await make_job(source_type="BROKEN")
        await repository.update(job.id, state_machine.queue)

        before = utcnow()
        result = await handler.attempt(job.id)

        assert result.outcome == AttemptOutcome.RETRYABLE
        assert result.delay == 30.0

        stored = await repository.get(job.id)
        assert stored.status == JobStatus.RETRYING
        assert stored.retry_count == 1
        assert stored.next_eligible_at >= before + timedelta(seconds=30)

        warnings = [entry for entry in await repository.get_logs(job.id) if entry.level == LogLevel.WARN]
        assert len(warnings) == 1
        assert warnings[0].message.startswith("Retrying job, attempt 1 of 3: ")
        assert "source is down" in warnings[0].message

    @pytest.mark.asyncio
    async def test_failure_with_budget_used_fails_job(self, retry_handler, repository, make_job):
        job = await make_job(source_type="BROKEN", max_retries=0)
        await repository.update(job.id, state_machine.queue)

        result = await retry_handler.attempt(job.id)

        assert result.outcome == AttemptOutcome.TERMINAL
        stored = await repository.get(job.id)
        assert stored.status == JobStatus.FAILED
        assert stored.retry_count == 0

        errors = [entry for entry in await repository.get_logs(job.id) if entry.level == LogLevel.ERROR]
        assert len(errors) == 1
        assert errors[0].message.startswith("Job failed after 0 retry attempts: ")
        assert "SourceUnavailable" in errors[0].stack_trace

    @pytest.mark.asyncio
    async def test_start_failure_propagates_without_consuming_retries(self, retry_handler, repository, make_job):
        job = await make_job()

        with pytest.raises(InvalidTransition):
            await retry_handler.attempt(job.id)

        stored = await repository.get(job.id)
        assert stored.status == JobStatus.CREATED
        assert stored.retry_count == 0
        assert await repository.get_statistics(job.id) == []
