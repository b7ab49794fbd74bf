"""
FastAPI dependencies
"""

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from ingestion.service import JobService


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Database session from the application's session factory"""
    async with request.app.state.session_factory() as session:
        yield session


def get_job_service(request: Request) -> JobService:
    """Job service built at startup"""
    return request.app.state.job_service
