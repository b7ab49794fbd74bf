"""
Unit tests for the job state machine
"""

from datetime import datetime, timedelta

import pytest

from core.exceptions import InvalidTransition
from ingestion import state_machine
from models.base import JobStatus
from models.job import Job


def make(status: JobStatus, retry_count: int = 0, max_retries: int = 3) -> Job:
    return Job(id=1, name="job", status=status, retry_count=retry_count, max_retries=max_retries)


class TestTransitions:
    """Legal and illegal status changes"""

    def test_queue_from_created(self):
        job = make(JobStatus.CREATED)
        state_machine.queue(job)
        assert job.status == JobStatus.QUEUED

    def test_requeue_from_failed_resets_retry_budget(self):
        job = make(JobStatus.FAILED, retry_count=3)
        job.next_eligible_at = datetime(2024, 1, 1)

        state_machine.queue(job)

        assert job.status == JobStatus.QUEUED
        assert job.retry_count == 0
        assert job.next_eligible_at is None

    @pytest.mark.parametrize("status", [
        JobStatus.QUEUED, JobStatus.RUNNING, JobStatus.RETRYING, JobStatus.COMPLETED
    ])
    def test_queue_rejected_and_job_unchanged(self, status):
        job = make(status, retry_count=1)

        with pytest.raises(InvalidTransition) as exc_info:
            state_machine.queue(job)

        assert job.status == status
        assert job.retry_count == 1
        assert exc_info.value.context["from_status"] == status.value
        assert exc_info.value.context["to_status"] == "QUEUED"

    @pytest.mark.parametrize("status", [JobStatus.QUEUED, JobStatus.RETRYING])
    def test_start(self, status):
        job = make(status)
        state_machine.start(job)
        assert job.status == JobStatus.RUNNING

    @pytest.mark.parametrize("status", [JobStatus.CREATED, JobStatus.COMPLETED, JobStatus.FAILED])
    def test_start_rejected(self, status):
        job = make(status)
        with pytest.raises(InvalidTransition):
            state_machine.start(job)

    def test_complete_sets_completed_at(self):
        job = make(JobStatus.RUNNING)
        now = datetime(2024, 1, 15, 10, 0, 0)

        state_machine.complete(job, now=now)

        assert job.status == JobStatus.COMPLETED
        assert job.completed_at == now

    def test_retry_consumes_one_retry(self):
        job = make(JobStatus.RUNNING, retry_count=1)
        eligible = datetime(2024, 1, 15, 10, 0, 5)

        state_machine.retry(job, eligible)

        assert job.status == JobStatus.RETRYING
        assert job.retry_count == 2
        assert job.next_eligible_at == eligible

    def test_retry_refused_when_budget_used(self):
        job = make(JobStatus.RUNNING, retry_count=3, max_retries=3)

        with pytest.raises(InvalidTransition):
            state_machine.retry(job, datetime(2024, 1, 1))

        assert job.retry_count == 3
        assert job.status == JobStatus.RUNNING

    def test_fail(self):
        job = make(JobStatus.RUNNING, retry_count=3)
        state_machine.fail(job)
        assert job.status == JobStatus.FAILED

    def test_terminal_states_have_no_automatic_exit(self):
        assert state_machine.ALLOWED_TRANSITIONS[JobStatus.COMPLETED] == frozenset()
        assert state_machine.ALLOWED_TRANSITIONS[JobStatus.FAILED] == frozenset({JobStatus.QUEUED})
        assert JobStatus.COMPLETED.is_terminal
        assert JobStatus.FAILED.is_terminal
        assert not JobStatus.RETRYING.is_terminal


class TestStamping:
    """Creation defaults and updated_at monotonicity"""

    def test_stamp_created_fills_defaults(self):
        job = Job(name="job")
        now = datetime(2024, 1, 15, 10, 0, 0)

        state_machine.stamp_created(job, default_max_retries=5, now=now)

        assert job.status == JobStatus.CREATED
        assert job.retry_count == 0
        assert job.max_retries == 5
        assert job.created_at == now
        assert job.updated_at == now

    def test_stamp_created_keeps_explicit_max_retries(self):
        job = Job(name="job", max_retries=0)
        state_machine.stamp_created(job, default_max_retries=5)
        assert job.max_retries == 0

    def test_updated_at_never_moves_backwards(self):
        job = make(JobStatus.CREATED)
        later = datetime(2024, 1, 15, 10, 0, 0)
        job.updated_at = later

        state_machine.stamp_updated(job, now=later - timedelta(seconds=5))
        assert job.updated_at == later

        state_machine.stamp_updated(job, now=later + timedelta(seconds=5))
        assert job.updated_at == later + timedelta(seconds=5)
