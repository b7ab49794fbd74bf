"""
LOCAL storage: writes the payload to the local filesystem
"""

import asyncio
from pathlib import Path
from typing import Optional
import logging

from core.config import settings
from core.exceptions import WriteFailure
from ingestion.base import Storage, StoreResult

logger = logging.getLogger(__name__)


class LocalFileStorage(Storage):
    """
    Store data as a file.

    Relative destination paths are resolved under ``base_path``. The
    storage does not parse the payload, so it reports no record count.
    """

    TYPE_KEY = "LOCAL"

    def __init__(self, base_path: Optional[str] = None):
        self.base_path = Path(base_path or settings.LOCAL_STORAGE_BASE_PATH)

    def resolve_path(self, location: str) -> Path:
        path = Path(location)
        if not path.is_absolute():
            path = self.base_path / path
        return path

    async def store(self, payload: bytes, source_format: Optional[str], location: str) -> StoreResult:
        path = self.resolve_path(location)

        try:
            await asyncio.to_thread(self._write, path, payload)
        except OSError as e:
            raise WriteFailure(
                f"Failed to write file at: {path}",
                context={"destination_type": self.TYPE_KEY, "location": str(path)},
                original_exception=e
            )

        logger.info(f"Wrote {len(payload)} bytes to {path}")
        return StoreResult(descriptor=str(path), bytes_written=len(payload))

    @staticmethod
    def _write(path: Path, payload: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)
