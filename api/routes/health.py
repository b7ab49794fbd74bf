"""
Health check endpoint with database and scheduler status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from api.dependencies import get_db, get_job_service
from ingestion.service import JobService
from schemas.api import HealthCheckResponse
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    service: JobService = Depends(get_job_service)
):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Whether the scheduler poll loops are running
    - Number of jobs in each status
    """

    db_connected = False
    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")

    jobs_by_status = {}
    if db_connected:
        try:
            jobs_by_status = await service.repository.count_by_status()
        except Exception as e:
            logger.error(f"Failed to count jobs by status: {str(e)}")

    # Overall status is derived by the validator in HealthCheckResponse
    return HealthCheckResponse(
        database_connected=db_connected,
        scheduler_running=service.scheduler.running,
        jobs_by_status=jobs_by_status
    )
