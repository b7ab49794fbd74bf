"""
Run the job scheduler as a standalone worker process (no HTTP surface).

Polls for QUEUED and RETRYING jobs and executes them on the worker pool
until interrupted.
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import async_session_maker, engine, init_models
from core.logging import setup_logging
from ingestion.service import build_job_service

logger = logging.getLogger(__name__)


async def run_scheduler():
    """Start the poll loops and keep them running until cancelled"""
    await init_models()

    service = build_job_service(async_session_maker)
    service.scheduler.start(poll=True)
    logger.info(
        f"Scheduler worker running: pool={settings.WORKER_POOL_SIZE}, "
        f"check={settings.SCHEDULER_CHECK_INTERVAL_SECONDS}s, retry={settings.SCHEDULER_RETRY_INTERVAL_SECONDS}s"
    )

    # First pass right away instead of waiting a full interval
    await service.scheduler.process_queued_jobs()
    await service.scheduler.process_retrying_jobs()

    try:
        await asyncio.Event().wait()
    finally:
        await service.scheduler.shutdown()
        await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    try:
        asyncio.run(run_scheduler())
    except KeyboardInterrupt:
        logger.info("Scheduler worker stopped")
