"""
Job lifecycle state machine.

Every status change of a Job goes through one of the functions below. They
mutate the ORM object in place and are meant to run inside
JobRepository.update(), which provides the atomic read-modify-write.

    CREATED ──queue──▶ QUEUED ──start──▶ RUNNING ──complete──▶ COMPLETED
                          ▲                │  │
    FAILED ──queue────────┘                │  └──fail──▶ FAILED
                                           ▼
                         RETRYING ◀──retry─┘
                             │
                             └──start──▶ RUNNING
"""

from datetime import datetime
from typing import Dict, FrozenSet, Optional

from core.clock import utcnow
from core.exceptions import InvalidTransition
from models.base import JobStatus
from models.job import Job


ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.CREATED: frozenset({JobStatus.QUEUED}),
    JobStatus.QUEUED: frozenset({JobStatus.RUNNING}),
    JobStatus.RUNNING: frozenset({JobStatus.COMPLETED, JobStatus.RETRYING, JobStatus.FAILED}),
    JobStatus.RETRYING: frozenset({JobStatus.RUNNING}),
    JobStatus.COMPLETED: frozenset(),
    # Only an explicit operator re-queue leaves FAILED
    JobStatus.FAILED: frozenset({JobStatus.QUEUED}),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(job: Job, target: JobStatus) -> None:
    if not can_transition(job.status, target):
        raise InvalidTransition(job.id, job.status, target)


# ============================================================================
# Stamping (called by the store on insert/update)
# ============================================================================

def stamp_created(job: Job, default_max_retries: int, now: Optional[datetime] = None) -> None:
    """Fill creation defaults on a new job."""
    now = now or utcnow()
    if job.status is None:
        job.status = JobStatus.CREATED
    if job.retry_count is None:
        job.retry_count = 0
    if job.max_retries is None:
        job.max_retries = default_max_retries
    job.created_at = now
    job.updated_at = now


def stamp_updated(job: Job, now: Optional[datetime] = None) -> None:
    """Advance updated_at, never moving it backwards."""
    now = now or utcnow()
    if job.updated_at is None or now > job.updated_at:
        job.updated_at = now


# ============================================================================
# Transitions
# ============================================================================

def queue(job: Job) -> None:
    """CREATED/FAILED → QUEUED. Resubmitting a failed job restarts its retry budget."""
    ensure_transition(job, JobStatus.QUEUED)
    if job.status == JobStatus.FAILED:
        job.retry_count = 0
    job.status = JobStatus.QUEUED
    job.next_eligible_at = None


def start(job: Job) -> None:
    """QUEUED/RETRYING → RUNNING."""
    ensure_transition(job, JobStatus.RUNNING)
    job.status = JobStatus.RUNNING
    job.next_eligible_at = None


def complete(job: Job, now: Optional[datetime] = None) -> None:
    """RUNNING → COMPLETED."""
    ensure_transition(job, JobStatus.COMPLETED)
    job.status = JobStatus.COMPLETED
    job.completed_at = now or utcnow()


def retry(job: Job, next_eligible_at: datetime) -> None:
    """RUNNING → RETRYING, consuming one retry."""
    ensure_transition(job, JobStatus.RETRYING)
    if job.retry_count >= job.max_retries:
        raise InvalidTransition(job.id, job.status, JobStatus.RETRYING)
    job.retry_count += 1
    job.status = JobStatus.RETRYING
    job.next_eligible_at = next_eligible_at


def fail(job: Job) -> None:
    """RUNNING → FAILED."""
    ensure_transition(job, JobStatus.FAILED)
    job.status = JobStatus.FAILED
    job.next_eligible_at = None
