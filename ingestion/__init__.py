"""
Job execution engine for data ingestion.

Modules:
    state_machine: legal job status transitions and timestamp stamping
    base: stage contracts (SourceConnector, Transformer, Storage)
    registry: type-key → stage lookup, built-in registry
    repository: job store with atomic read-modify-write
    recorder: job logs and per-attempt statistics
    executor: one extract → transform → store attempt
    retry: retry/backoff policy and the attempt wrapper
    worker_pool: bounded pool of async workers
    scheduler: queued/retrying poll loops (APScheduler)
    service: caller-facing operations and engine wiring

Subpackages:
    extractors: source connectors (FILE, API, DATABASE)
    transformers: payload transformers (CSV, JSON, XML)
    loaders: storages (LOCAL, CLOUD, DATABASE)

Usage:
    from core.database import async_session_maker
    from ingestion.service import build_job_service

    service = build_job_service(async_session_maker)
    service.scheduler.start()

    job = await service.create_job({
        "name": "products",
        "source_type": "FILE",
        "source_format": "CSV",
        "source_location": "/data/in/products.csv",
        "destination_type": "LOCAL",
        "destination_location": "products.csv",
    })
    await service.queue_job(job.id)

Error Handling:
    Stage failures raise subclasses of core.exceptions.PipelineError and are
    retried with exponential backoff until the job's max_retries is used up.
"""

__all__ = [
    "JobExecutor",
    "JobRecorder",
    "JobRepository",
    "JobScheduler",
    "JobService",
    "PipelineRegistry",
    "RetryHandler",
    "RetryPolicy",
    "WorkerPool",
]
