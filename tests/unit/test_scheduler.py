import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

from core.clock import utcnow
from core.config import settings
from ingestion import state_machine
from ingestion.retry import RetryHandler, RetryPolicy
from ingestion.scheduler import JobScheduler
from ingestion.worker_pool import WorkerPool
from models.base import JobStatus


@pytest_asyncio.fixture
async def scheduler(repository, retry_handler):
    scheduler = JobScheduler(
        repository,
        retry_handler,
        WorkerPool(size=1, queue_size=10),
        check_interval=60,
        retry_interval=60
    )
    scheduler.start(poll=False)
    yield scheduler
    await scheduler.shutdown()


async def queued(make_job, repository, **overrides):
    job = await make_job(**overrides)
    await repository.update(job.id, state_machine.queue)
    return job


@pytest.mark.asyncio
async def test_queued_job_is_executed(scheduler, repository, make_job):
    job = await queued(make_job, repository)

    assert await scheduler.process_queued_jobs() == 1
    await scheduler.pool.join()

    assert (await repository.get(job.id)).status == JobStatus.COMPLETED
    assert scheduler.in_flight == set()


@pytest.mark.asyncio
async def test_slow_job_never_dispatched_twice(scheduler, repository, make_job, static_source):
    static_source.delay = 0.2
    job = await queued(make_job, repository)

    assert await scheduler.process_queued_jobs() == 1
    # second tick while the first execution is still in flight
    assert await scheduler.process_queued_jobs() == 0
    assert scheduler.dispatch(job.id) is False

    await scheduler.pool.join()

    assert static_source.calls == 1
    assert static_source.max_active == 1
    assert len(await repository.get_statistics(job.id)) == 1
    assert (await repository.get(job.id)).status == JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_saturated_pool_defers_to_next_tick(repository, retry_handler, make_job, static_source):
    static_source.delay = 0.05
    scheduler = JobScheduler(repository, retry_handler, WorkerPool(size=1, queue_size=1), 60, 60)
    scheduler.start(poll=False)
    try:
        jobs = [await queued(make_job, repository, name=f"job-{i}") for i in range(3)]

        assert await scheduler.process_queued_jobs() == 1
        await scheduler.pool.join()
        assert await scheduler.process_queued_jobs() == 1
        await scheduler.pool.join()
        assert await scheduler.process_queued_jobs() == 1
        await scheduler.pool.join()

        for job in jobs:
            assert (await repository.get(job.id)).status == JobStatus.COMPLETED
    finally:
        await scheduler.shutdown()


@pytest.mark.asyncio
async def test_retrying_job_waits_for_backoff(repository, executor, recorder, make_job):
    handler = RetryHandler(repository, executor, recorder, RetryPolicy(initial_interval=60.0, multiplier=2.0))
    scheduler = JobScheduler(repository, handler, WorkerPool(size=1, queue_size=10), 60, 60)
    scheduler.start(poll=False)
    try:
        job = await queued(make_job, repository, source_type="BROKEN")
        await scheduler.process_queued_jobs()
        await scheduler.pool.join()

        stored = await repository.get(job.id)
        assert stored.status == JobStatus.RETRYING

        # backoff not elapsed yet
        assert await scheduler.process_retrying_jobs() == 0

        later = await repository.list_retry_candidates(now=utcnow() + timedelta(seconds=61))
        assert [candidate.id for candidate in later] == [job.id]
    finally:
        await scheduler.shutdown()


@pytest.mark.asyncio
async def test_retrying_job_redispatched_when_eligible(scheduler, repository, make_job, broken_source):
    job = await queued(make_job, repository, source_type="BROKEN")

    await scheduler.process_queued_jobs()
    await scheduler.pool.join()
    assert await scheduler.process_retrying_jobs() == 1
    await scheduler.pool.join()

    stored = await repository.get(job.id)
    assert stored.status == JobStatus.RETRYING
    assert stored.retry_count == 2
    assert broken_source.calls == 2


@pytest.mark.asyncio
async def test_tick_survives_store_errors(scheduler):
    scheduler.repository = AsyncMock()
    scheduler.repository.list.side_effect = RuntimeError("database down")
    scheduler.repository.list_retry_candidates.side_effect = RuntimeError("database down")

    assert await scheduler.process_queued_jobs() == 0
    assert await scheduler.process_retrying_jobs() == 0


@pytest.mark.asyncio
async def test_stale_dispatch_is_skipped(scheduler, repository, make_job):
    """A job that left QUEUED before its worker ran is skipped, not failed."""
    job = await make_job()

    assert scheduler.dispatch(job.id) is True
    await scheduler.pool.join()

    stored = await repository.get(job.id)
    assert stored.status == JobStatus.CREATED
    assert await repository.get_statistics(job.id) == []


@pytest.mark.asyncio
async def test_start_registers_poll_loops(repository, retry_handler):
    scheduler = JobScheduler(repository, retry_handler, WorkerPool(size=1), check_interval=5, retry_interval=10)

    scheduler.start(poll=True)
    try:
        assert scheduler.running
        job_ids = sorted(job.id for job in scheduler.scheduler.get_jobs())
        assert job_ids == ["process_queued_jobs", "process_retrying_jobs"]
        assert all(job.max_instances == 1 for job in scheduler.scheduler.get_jobs())
    finally:
        await scheduler.shutdown()

    await asyncio.sleep(0)
    assert not scheduler.running
    assert not scheduler.pool.running


def test_explicit_intervals_are_kept(repository, retry_handler):
    scheduler = JobScheduler(repository, retry_handler, WorkerPool(size=1), check_interval=0, retry_interval=0.5)
    assert scheduler.check_interval == 0
    assert scheduler.retry_interval == 0.5

    defaults = JobScheduler(repository, retry_handler, WorkerPool(size=1))
    assert defaults.check_interval == settings.SCHEDULER_CHECK_INTERVAL_SECONDS
    assert defaults.retry_interval == settings.SCHEDULER_RETRY_INTERVAL_SECONDS
