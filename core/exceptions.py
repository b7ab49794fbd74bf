"""
Custom exceptions for the job engine with structured error context.

Every error raised by the engine carries a context dictionary (job id,
type key, location, ...) so failures can be logged and persisted with
enough detail to debug them later.

Exception Hierarchy:
    ETLException (base)
    ├── ValidationError          bad job specification (client-facing)
    ├── NotFoundError            unknown job id (client-facing)
    ├── InvalidTransition        illegal state change (client-facing)
    ├── StaleJobError            optimistic-lock conflict on a job row
    ├── PoolSaturatedError       worker pool queue is full
    └── PipelineError            retried, counted against max_retries
        ├── ConfigurationError   no strategy registered for a type key
        ├── SourceError
        │   ├── SourceUnavailable
        │   └── FormatMismatch
        ├── TransformError
        │   ├── InvalidConfig
        │   └── UnsupportedFormat
        └── StorageError
            ├── WriteFailure
            └── SchemaError
"""

from typing import Optional, Dict, Any

from core.clock import utcnow


class ETLException(Exception):
    """
    Base exception for all engine errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (job id, type key, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = utcnow()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {self.original_exception}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/API responses."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": {k: str(v) for k, v in self.context.items()},
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


def describe_error(exc: BaseException) -> str:
    """Short cause string for job logs: the message without the context tail."""
    if isinstance(exc, ETLException):
        if exc.original_exception is not None:
            return f"{exc.message}: {exc.original_exception}"
        return exc.message
    return f"{type(exc).__name__}: {exc}"


# ============================================================================
# Client-facing Errors
# ============================================================================

class ValidationError(ETLException):
    """
    Raised when a job specification is rejected.

    Not retried; surfaced to the caller immediately.
    """
    pass


class NotFoundError(ETLException):
    """Raised when a job id does not exist."""

    def __init__(self, job_id: Any):
        super().__init__(f"Job not found with ID: {job_id}", context={"job_id": job_id})
        self.job_id = job_id


class InvalidTransition(ETLException):
    """
    Raised when a status change is not allowed by the job state machine.

    Context includes:
        - job_id: The job that was asked to change
        - from_status: Its current status
        - to_status: The requested status
    """

    def __init__(self, job_id: Any, from_status: Any, to_status: Any):
        from_value = getattr(from_status, "value", from_status)
        to_value = getattr(to_status, "value", to_status)
        super().__init__(
            f"Cannot move job {job_id} from {from_value} to {to_value}",
            context={"job_id": job_id, "from_status": from_value, "to_status": to_value}
        )
        self.job_id = job_id
        self.from_status = from_status
        self.to_status = to_status


# ============================================================================
# Concurrency Errors
# ============================================================================

class StaleJobError(ETLException):
    """Raised when another writer updated the job row between read and write."""
    pass


class PoolSaturatedError(ETLException):
    """Raised by the worker pool when its queue cannot accept more work."""
    pass


# ============================================================================
# Pipeline Errors
# ============================================================================

class PipelineError(ETLException):
    """Base exception for failures inside an execution attempt. Always retried."""
    pass


class ConfigurationError(PipelineError):
    """
    Raised when no strategy is registered for a type key, or when two
    strategies claim the same key at registration time.

    Retried like any pipeline error: an operator may fix the registration
    before the job runs out of retries.
    """
    pass


class SourceError(PipelineError):
    """
    Raised when extraction fails.

    Context should include:
        - source_type: Type key of the connector
        - location: Path, URL or query that was read
    """
    pass


class SourceUnavailable(SourceError):
    """The source could not be reached or read."""
    pass


class FormatMismatch(SourceError):
    """The source data does not match the declared format."""
    pass


class TransformError(PipelineError):
    """Raised when the optional transform step fails."""
    pass


class InvalidConfig(TransformError):
    """The transformation config is not valid JSON or has the wrong shape."""
    pass


class UnsupportedFormat(TransformError):
    """The transformer cannot handle the payload format."""
    pass


class StorageError(PipelineError):
    """
    Raised when storing the payload fails.

    Context should include:
        - destination_type: Type key of the storage
        - location: Destination path, URI or table
    """
    pass


class WriteFailure(StorageError):
    """The destination rejected the write or is unreachable."""
    pass


class SchemaError(StorageError):
    """The payload does not fit the destination schema."""
    pass
