"""
Pytest configuration and fixtures
"""

import asyncio
from typing import AsyncGenerator, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

import models  # noqa: F401  registers every table on Base.metadata
from core.exceptions import SourceUnavailable
from ingestion.base import SourceConnector, Storage, StoreResult
from ingestion.executor import JobExecutor
from ingestion.extractors.file_connector import FileSourceConnector
from ingestion.loaders.local_storage import LocalFileStorage
from ingestion.recorder import JobRecorder
from ingestion.registry import PipelineRegistry
from ingestion.repository import JobRepository
from ingestion.retry import RetryHandler, RetryPolicy
from ingestion.transformers.csv_transformer import CSVTransformer
from ingestion.transformers.json_transformer import JSONTransformer
from models.base import Base
from models.job import Job

CSV_PAYLOAD = b"id,name,price\n1,Widget,9.99\n2,Gadget,19.99\n"


# ============================================================================
# Test stages
# ============================================================================

class StaticSource(SourceConnector):
    """Returns a fixed payload; optionally slow. Tracks concurrent calls."""

    TYPE_KEY = "STATIC"

    def __init__(self, payload: bytes = CSV_PAYLOAD, delay: float = 0.0):
        self.payload = payload
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.max_active = 0

    async def extract(self, location: str, source_format: Optional[str]) -> bytes:
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            return self.payload
        finally:
            self.active -= 1


class BrokenSource(SourceConnector):
    """Always unavailable."""

    TYPE_KEY = "BROKEN"

    def __init__(self):
        self.calls = 0

    async def extract(self, location: str, source_format: Optional[str]) -> bytes:
        self.calls += 1
        raise SourceUnavailable("source is down", context={"source_type": self.TYPE_KEY, "location": location})


class MemoryStorage(Storage):
    """Keeps payloads in memory and reports one record per CSV data line."""

    TYPE_KEY = "MEMORY"

    def __init__(self):
        self.stored: List[bytes] = []

    async def store(self, payload: bytes, source_format: Optional[str], location: str) -> StoreResult:
        self.stored.append(payload)
        lines = [line for line in payload.decode("utf-8").splitlines() if line.strip()]
        records = max(len(lines) - 1, 0)
        return StoreResult(
            descriptor=f"Inserted {records} records into {location}",
            records_written=records,
            bytes_written=len(payload)
        )


# ============================================================================
# Database
# ============================================================================

@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """SQLite job store in a temporary file"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}",
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def repository(session_factory):
    return JobRepository(session_factory, default_max_retries=3)


@pytest.fixture
def recorder(repository):
    return JobRecorder(repository)


# ============================================================================
# Engine
# ============================================================================

@pytest.fixture
def static_source():
    return StaticSource()


@pytest.fixture
def broken_source():
    return BrokenSource()


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def output_dir(tmp_path):
    path = tmp_path / "output"
    path.mkdir()
    return path


@pytest.fixture
def registry(static_source, broken_source, memory_storage, output_dir):
    registry = PipelineRegistry()
    registry.register_source(FileSourceConnector())
    registry.register_source(static_source)
    registry.register_source(broken_source)
    registry.register_transformer(CSVTransformer())
    registry.register_transformer(JSONTransformer())
    registry.register_storage(LocalFileStorage(base_path=str(output_dir)))
    registry.register_storage(memory_storage)
    return registry


@pytest.fixture
def executor(repository, registry, recorder):
    return JobExecutor(repository, registry, recorder)


@pytest.fixture
def policy():
    """No backoff wait, so retried jobs are eligible immediately"""
    return RetryPolicy(initial_interval=0.0, multiplier=1.0)


@pytest.fixture
def retry_handler(repository, executor, recorder, policy):
    return RetryHandler(repository, executor, recorder, policy)


@pytest.fixture
def make_job(repository):
    """Create a job in CREATED state"""

    async def _make_job(**overrides) -> Job:
        fields = {
            "name": "test-job",
            "source_type": "STATIC",
            "source_format": "CSV",
            "source_location": "memory://input",
            "destination_type": "MEMORY",
            "destination_location": "items",
        }
        fields.update(overrides)
        return await repository.create(Job(**fields))

    return _make_job


@pytest.fixture
def sample_csv_file(tmp_path):
    path = tmp_path / "products.csv"
    path.write_bytes(CSV_PAYLOAD)
    return path
