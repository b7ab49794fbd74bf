"""
FILE source connector: reads a payload from the local filesystem
"""

import asyncio
import os
from pathlib import Path
from typing import Optional
import logging

from core.exceptions import FormatMismatch, SourceUnavailable
from ingestion.base import SourceConnector

logger = logging.getLogger(__name__)


class FileSourceConnector(SourceConnector):
    """
    Read a whole file as the job payload.

    The file extension must match the declared source format
    (``data.csv`` for CSV, ``feed.json`` for JSON, ...).
    """

    TYPE_KEY = "FILE"

    async def extract(self, location: str, source_format: Optional[str]) -> bytes:
        path = Path(location)

        if not path.is_file():
            raise SourceUnavailable(
                f"File does not exist at: {location}",
                context={"source_type": self.TYPE_KEY, "location": location}
            )

        if not os.access(path, os.R_OK):
            raise SourceUnavailable(
                f"Cannot read file at: {location}",
                context={"source_type": self.TYPE_KEY, "location": location}
            )

        extension = path.suffix.lstrip(".").lower()
        if source_format and source_format.lower() != extension:
            raise FormatMismatch(
                f"File format mismatch. Expected: {source_format}, Found: {extension}",
                context={"source_type": self.TYPE_KEY, "location": location}
            )

        logger.info(f"Reading file {path}")
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise SourceUnavailable(
                f"Failed to read file at: {location}",
                context={"source_type": self.TYPE_KEY, "location": location},
                original_exception=e
            )
