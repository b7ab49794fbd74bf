"""
Pydantic schemas for request validation and response serialization.

Schemas:
    jobs: job specification accepted by JobService.create_job
    api: HTTP response models (jobs, logs, statistics, health, errors)

Usage:
    from schemas.jobs import JobCreate
    from schemas.api import JobResponse, JobLogResponse
"""

__all__ = [
    "JobCreate",
    "JobResponse",
    "JobLogResponse",
    "JobStatisticsResponse",
    "HealthCheckResponse",
    "ErrorResponse",
]
