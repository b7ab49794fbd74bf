"""
DATABASE source connector: runs a SQL query and serialises the rows
"""

import json
from typing import Optional
import logging

import pandas as pd
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from core.exceptions import FormatMismatch, SourceUnavailable
from ingestion.base import SourceConnector

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("CSV", "JSON")


class DatabaseSourceConnector(SourceConnector):
    """
    Extract rows from a relational database.

    The job's source location is the SQL query. Rows are returned as CSV
    (header line + one line per row) or as a JSON array of objects.
    """

    TYPE_KEY = "DATABASE"

    def __init__(self, database_url: Optional[str] = None, engine: Optional[AsyncEngine] = None):
        self.database_url = database_url
        self._engine = engine

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_async_engine(self.database_url, future=True)
        return self._engine

    async def extract(self, location: str, source_format: Optional[str]) -> bytes:
        fmt = (source_format or "").upper()
        context = {"source_type": self.TYPE_KEY, "location": location}

        if fmt not in SUPPORTED_FORMATS:
            raise FormatMismatch(
                f"Unsupported format for database extraction: {source_format}",
                context=context
            )

        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text(location))
                columns = list(result.keys())
                rows = [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            raise SourceUnavailable(
                "Database query failed",
                context=context,
                original_exception=e
            )

        logger.info(f"Query returned {len(rows)} rows")

        if fmt == "CSV":
            if not rows:
                return b""
            frame = pd.DataFrame(rows, columns=columns)
            return frame.to_csv(index=False).encode("utf-8")

        return json.dumps(rows, default=str).encode("utf-8")
