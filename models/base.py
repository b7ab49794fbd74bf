from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class JobStatus(str, enum.Enum):
    """Lifecycle status of an ingestion job"""
    CREATED = "CREATED"
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    RETRYING = "RETRYING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class LogLevel(str, enum.Enum):
    """Severity of a job log event"""
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
