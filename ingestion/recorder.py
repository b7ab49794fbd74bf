"""
Statistics and log recorder.

Persists job events and per-attempt metrics through the repository and
mirrors every event to the application log.
"""

import logging
import traceback
from typing import Optional

from ingestion.repository import JobRepository
from models.base import LogLevel
from models.job_log import JobLog
from models.job_statistics import JobStatistics

logger = logging.getLogger(__name__)

_PYTHON_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class JobRecorder:
    """Append-only writer for JobLog and JobStatistics rows."""

    def __init__(self, repository: JobRepository):
        self.repository = repository

    async def log_event(
        self,
        job_id: int,
        level: LogLevel,
        message: str,
        error: Optional[BaseException] = None
    ) -> JobLog:
        stack_trace = None
        if error is not None:
            stack_trace = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )

        entry = await self.repository.add_log(job_id, level, message, stack_trace)

        logger.log(
            _PYTHON_LEVELS[level],
            f"Job {job_id}: {message}",
            exc_info=error if level == LogLevel.ERROR and error is not None else None
        )
        return entry

    async def info(self, job_id: int, message: str) -> JobLog:
        return await self.log_event(job_id, LogLevel.INFO, message)

    async def warn(self, job_id: int, message: str) -> JobLog:
        return await self.log_event(job_id, LogLevel.WARN, message)

    async def error(self, job_id: int, message: str, error: Optional[BaseException] = None) -> JobLog:
        return await self.log_event(job_id, LogLevel.ERROR, message, error)

    async def record_statistics(
        self,
        job_id: int,
        records_processed: int,
        records_failed: int,
        bytes_processed: int,
        processing_time_ms: int
    ) -> JobStatistics:
        row = await self.repository.add_statistics(
            job_id,
            records_processed=records_processed,
            records_failed=records_failed,
            bytes_processed=bytes_processed,
            processing_time_ms=processing_time_ms
        )
        await self.info(
            job_id,
            f"Job statistics: Records processed={records_processed}, "
            f"Records failed={records_failed}, Bytes processed={bytes_processed}, "
            f"Processing time={processing_time_ms} ms"
        )
        return row
