"""
CSV transformer: renames and drops columns of a CSV payload
"""

import asyncio
import io
from typing import Any, Dict, Optional
import logging

import pandas as pd

from core.exceptions import InvalidConfig, UnsupportedFormat
from ingestion.base import Transformer

logger = logging.getLogger(__name__)


class CSVTransformer(Transformer):
    """
    Apply column-level changes to CSV data.

    Config keys:
        fieldMappings: {"target_column": "source_column", ...} renames columns
        fieldsToRemove: ["column", ...] drops columns that are not renamed

    Column order of the input is preserved. All values are kept as text.
    """

    TYPE_KEY = "CSV"

    async def transform(self, payload: bytes, source_format: Optional[str], config: Optional[str]) -> bytes:
        if (source_format or "").upper() != "CSV":
            raise UnsupportedFormat(
                "This transformer only works with CSV data",
                context={"transform_type": self.TYPE_KEY, "source_format": source_format}
            )

        options = self.parse_config(config)
        return await asyncio.to_thread(self._apply, payload, options)

    def _apply(self, payload: bytes, options: Dict[str, Any]) -> bytes:
        mappings = options.get("fieldMappings") or {}
        to_remove = options.get("fieldsToRemove") or []

        if not isinstance(mappings, dict):
            raise InvalidConfig("fieldMappings must be an object", context={"transform_type": self.TYPE_KEY})
        if not isinstance(to_remove, list):
            raise InvalidConfig("fieldsToRemove must be a list", context={"transform_type": self.TYPE_KEY})

        try:
            frame = pd.read_csv(io.BytesIO(payload), dtype=str, keep_default_na=False)
        except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
            raise UnsupportedFormat(
                "CSV payload could not be parsed",
                context={"transform_type": self.TYPE_KEY},
                original_exception=e
            )

        renames = {str(source): str(target) for target, source in mappings.items()}
        removed = {str(field) for field in to_remove}

        kept = [column for column in frame.columns if column in renames or column not in removed]
        frame = frame[kept].rename(columns=renames)

        logger.debug(f"CSV transform: {len(frame)} rows, columns={list(frame.columns)}")
        return frame.to_csv(index=False).encode("utf-8")
