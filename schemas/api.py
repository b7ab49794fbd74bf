"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, Dict, Any
from datetime import datetime

from core.clock import utcnow
from models.base import JobStatus, LogLevel


# ============================================================================
# Job Schemas
# ============================================================================

class JobResponse(BaseModel):
    """Response model for a job"""
    id: int
    name: str

    source_type: str
    source_format: Optional[str] = None
    source_location: str

    transform_type: Optional[str] = None
    transform_config: Optional[str] = None

    destination_type: str
    destination_location: str

    status: JobStatus
    retry_count: int
    max_retries: int
    next_eligible_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "id": 1,
                "name": "daily-products",
                "source_type": "FILE",
                "source_format": "CSV",
                "source_location": "/data/in/products.csv",
                "destination_type": "LOCAL",
                "destination_location": "products/products.csv",
                "status": "COMPLETED",
                "retry_count": 0,
                "max_retries": 3,
                "created_at": "2024-01-15T10:00:00",
                "updated_at": "2024-01-15T10:00:02",
                "completed_at": "2024-01-15T10:00:02"
            }
        }


class JobLogResponse(BaseModel):
    """One narrative event of a job"""
    id: int
    job_id: int
    level: LogLevel
    message: str
    timestamp: datetime
    stack_trace: Optional[str] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class JobStatisticsResponse(BaseModel):
    """Metrics of one execution attempt"""
    id: int
    job_id: int
    records_processed: int
    records_failed: int
    bytes_processed: int
    processing_time_ms: int
    timestamp: datetime

    class Config:
        from_attributes = True


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    database_connected: bool
    scheduler_running: bool = False
    jobs_by_status: Dict[str, int] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)
    # Declared last: the validator reads the fields above
    status: str = Field("unhealthy", description="Overall system status: healthy, degraded, unhealthy")

    @validator("status", pre=True, always=True)
    def determine_status(cls, v, values):
        """Determine overall health status"""
        if not values.get("database_connected", False):
            return "unhealthy"
        if not values.get("scheduler_running", False):
            return "degraded"
        return "healthy"

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00",
                "database_connected": True,
                "scheduler_running": True,
                "jobs_by_status": {
                    "CREATED": 0,
                    "QUEUED": 2,
                    "RUNNING": 1,
                    "RETRYING": 0,
                    "COMPLETED": 40,
                    "FAILED": 1
                }
            }
        }


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    error_type: str
    message: str
    context: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)
    original_error: Optional[str] = None
