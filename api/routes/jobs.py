"""
Ingestion job endpoints
"""

from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, Body, Depends, Query, Request

from api.dependencies import get_job_service
from ingestion.service import JobService
from models.base import JobStatus
from schemas.api import ErrorResponse, JobLogResponse, JobResponse, JobStatisticsResponse

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/ingestion",
    tags=["Jobs"],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid job specification"},
        404: {"model": ErrorResponse, "description": "Unknown job id"},
        409: {"model": ErrorResponse, "description": "Status change not allowed"}
    }
)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "-")


@router.post("/jobs", response_model=JobResponse)
async def create_job(
    request: Request,
    payload: Dict[str, Any] = Body(..., description="Job specification, see schemas.jobs.JobCreate"),
    service: JobService = Depends(get_job_service)
):
    """
    Create a job in CREATED state.

    The body is validated by the service so that a bad specification is
    reported as 400 with the list of offending fields.
    """
    logger.info(f"[{_request_id(request)}] POST /jobs - name={payload.get('name')}")
    job = await service.create_job(payload)
    return JobResponse.model_validate(job)


@router.get("/jobs", response_model=List[JobResponse])
async def list_jobs(
    request: Request,
    status: Optional[JobStatus] = Query(None, description="Filter by status"),
    service: JobService = Depends(get_job_service)
):
    logger.info(f"[{_request_id(request)}] GET /jobs - status={status}")
    jobs = await service.list_jobs(status)
    return [JobResponse.model_validate(job) for job in jobs]


@router.get("/jobs/status/{status}", response_model=List[JobResponse])
async def list_jobs_by_status(
    request: Request,
    status: JobStatus,
    service: JobService = Depends(get_job_service)
):
    logger.info(f"[{_request_id(request)}] GET /jobs/status/{status.value}")
    jobs = await service.list_jobs(status)
    return [JobResponse.model_validate(job) for job in jobs]


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(
    request: Request,
    job_id: int,
    service: JobService = Depends(get_job_service)
):
    logger.info(f"[{_request_id(request)}] GET /jobs/{job_id}")
    job = await service.get_job(job_id)
    return JobResponse.model_validate(job)


@router.post("/jobs/{job_id}/queue", response_model=JobResponse)
async def queue_job(
    request: Request,
    job_id: int,
    service: JobService = Depends(get_job_service)
):
    """Queue a CREATED or FAILED job; any other state answers 409."""
    logger.info(f"[{_request_id(request)}] POST /jobs/{job_id}/queue")
    job = await service.queue_job(job_id)
    return JobResponse.model_validate(job)


@router.post("/jobs/{job_id}/execute", response_model=JobResponse)
async def execute_job(
    request: Request,
    job_id: int,
    service: JobService = Depends(get_job_service)
):
    """Queue the job and start it on the worker pool. Returns the queued job immediately."""
    logger.info(f"[{_request_id(request)}] POST /jobs/{job_id}/execute")
    job = await service.execute_now(job_id)
    return JobResponse.model_validate(job)


@router.get("/jobs/{job_id}/logs", response_model=List[JobLogResponse])
async def get_job_logs(
    request: Request,
    job_id: int,
    service: JobService = Depends(get_job_service)
):
    logger.info(f"[{_request_id(request)}] GET /jobs/{job_id}/logs")
    logs = await service.get_logs(job_id)
    return [JobLogResponse.model_validate(entry) for entry in logs]


@router.get("/jobs/{job_id}/statistics", response_model=List[JobStatisticsResponse])
async def get_job_statistics(
    request: Request,
    job_id: int,
    service: JobService = Depends(get_job_service)
):
    logger.info(f"[{_request_id(request)}] GET /jobs/{job_id}/statistics")
    statistics = await service.get_statistics(job_id)
    return [JobStatisticsResponse.model_validate(row) for row in statistics]
