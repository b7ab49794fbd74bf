"""
SQLAlchemy ORM models for the job store.

Models:
    base: Base declarative class and shared enums (JobStatus, LogLevel)
    job: Ingestion job definition and lifecycle state
    job_log: Append-only job events
    job_statistics: Per-attempt execution metrics

Usage:
    from models import Job, JobLog, JobStatistics
    from models.base import JobStatus, LogLevel

Relationships:
    - Job → JobLog (one-to-many, same lifetime)
    - Job → JobStatistics (one-to-many, one row per execution attempt)
"""

from models.base import Base, JobStatus, LogLevel
from models.job import Job
from models.job_log import JobLog
from models.job_statistics import JobStatistics

__all__ = [
    "Base",
    "JobStatus",
    "LogLevel",
    "Job",
    "JobLog",
    "JobStatistics",
]
