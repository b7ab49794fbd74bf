"""
Job Executor - runs one execution attempt of a job.

    RUNNING transition → extract → transform (optional) → store → COMPLETED

Every attempt that gets past the RUNNING transition writes exactly one
JobStatistics row, whether the pipeline succeeds or raises. Retry decisions
are not taken here; failures propagate to the caller (ingestion.retry).
"""

import re
import time
from dataclasses import dataclass
from typing import Awaitable, Dict, Any, Type, TypeVar
import logging

from core.exceptions import (
    ETLException,
    PipelineError,
    SourceError,
    TransformError,
    StorageError
)
from ingestion import state_machine
from ingestion.base import StoreResult
from ingestion.recorder import JobRecorder
from ingestion.registry import PipelineRegistry
from ingestion.repository import JobRepository

logger = logging.getLogger(__name__)

INSERTED_PATTERN = re.compile(r"\binserted\s+(\d+)", re.IGNORECASE)

T = TypeVar("T")


@dataclass
class ExecutionResult:
    job_id: int
    descriptor: str
    records_processed: int
    bytes_processed: int
    processing_time_ms: int


def count_records(result: StoreResult) -> int:
    """
    Records written by a storage.

    Uses the count reported by the storage; otherwise looks for
    "inserted <n>" in the descriptor, and falls back to 0.
    """
    if result.records_written is not None:
        return result.records_written

    match = INSERTED_PATTERN.search(result.descriptor or "")
    return int(match.group(1)) if match else 0


class JobExecutor:
    """Runs the extract → transform → store pipeline for one job."""

    def __init__(self, repository: JobRepository, registry: PipelineRegistry, recorder: JobRecorder):
        self.repository = repository
        self.registry = registry
        self.recorder = recorder

    async def execute(self, job_id: int) -> ExecutionResult:
        """
        Run one attempt of a job.

        Raises:
            InvalidTransition: The job is not QUEUED or RETRYING. Nothing is
                recorded in that case.
            PipelineError: Any stage failure. Statistics are recorded before
                the error is re-raised.
        """
        job = await self.repository.update(job_id, state_machine.start)

        started = time.perf_counter()
        bytes_processed = 0
        records_processed = 0
        records_failed = 0

        try:
            await self.recorder.info(job_id, "Started processing job")

            # --------------------------------------------------
            # PHASE 1: EXTRACT
            # --------------------------------------------------
            await self.recorder.info(job_id, f"Extracting data from source: {job.source_type}")
            connector = self.registry.sources.resolve(job.source_type)
            payload = await self._guard(
                connector.extract(job.source_location, job.source_format),
                SourceError,
                "Unexpected error during extraction",
                {"job_id": job_id, "source_type": job.source_type, "location": job.source_location}
            )
            bytes_processed = len(payload)
            logger.info(f"Job {job_id}: extracted {bytes_processed} bytes")

            # --------------------------------------------------
            # PHASE 2: TRANSFORM (optional)
            # --------------------------------------------------
            if job.transform_type:
                await self.recorder.info(job_id, f"Transforming data with: {job.transform_type}")
                transformer = self.registry.transformers.resolve(job.transform_type)
                payload = await self._guard(
                    transformer.transform(payload, job.source_format, job.transform_config),
                    TransformError,
                    "Unexpected error during transformation",
                    {"job_id": job_id, "transform_type": job.transform_type}
                )

            # --------------------------------------------------
            # PHASE 3: STORE
            # --------------------------------------------------
            await self.recorder.info(job_id, f"Storing data to: {job.destination_type}")
            storage = self.registry.storages.resolve(job.destination_type)
            result = await self._guard(
                storage.store(payload, job.source_format, job.destination_location),
                StorageError,
                "Unexpected error during storage",
                {
                    "job_id": job_id,
                    "destination_type": job.destination_type,
                    "location": job.destination_location
                }
            )
            records_processed = count_records(result)

            # --------------------------------------------------
            # PHASE 4: COMPLETE
            # --------------------------------------------------
            await self.repository.update(job_id, state_machine.complete)
            await self.recorder.info(job_id, f"Job completed successfully: {result.descriptor}")

            return ExecutionResult(
                job_id=job_id,
                descriptor=result.descriptor,
                records_processed=records_processed,
                bytes_processed=bytes_processed,
                processing_time_ms=self._elapsed_ms(started)
            )

        except Exception:
            records_failed = records_processed
            records_processed = 0
            raise

        finally:
            await self.recorder.record_statistics(
                job_id,
                records_processed=records_processed,
                records_failed=records_failed,
                bytes_processed=bytes_processed,
                processing_time_ms=self._elapsed_ms(started)
            )

    @staticmethod
    async def _guard(
        step: Awaitable[T],
        error_class: Type[PipelineError],
        message: str,
        context: Dict[str, Any]
    ) -> T:
        """Await a stage call, wrapping unknown errors in the stage's error class."""
        try:
            return await step
        except ETLException:
            raise
        except Exception as e:
            raise error_class(message, context=context, original_exception=e)

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)
