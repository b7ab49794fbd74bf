"""
DATABASE storage: inserts CSV or JSON records into a relational table.

Destination location format:
    tableName:{"column": "TYPE", ...}

The schema JSON lists the insertable columns and how their text values are
converted (INTEGER, INT, LONG, BIGINT, DOUBLE, FLOAT, BOOLEAN, DATE,
TIMESTAMP; anything else is stored as text).
"""

import io
import json
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple
import logging

import pandas as pd
from sqlalchemy import column, insert, table
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from core.exceptions import SchemaError, WriteFailure
from ingestion.base import Storage, StoreResult

logger = logging.getLogger(__name__)

TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


def coerce_value(value: Any, column_type: str) -> Any:
    """Convert a raw CSV/JSON value to the Python type of the column."""
    if value is None or (isinstance(value, str) and value == ""):
        return None

    kind = column_type.upper()
    if kind in ("INTEGER", "INT", "LONG", "BIGINT"):
        return int(value)
    if kind in ("DOUBLE", "FLOAT"):
        return float(value)
    if kind == "BOOLEAN":
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() == "true"
    if kind == "DATE":
        return date.fromisoformat(str(value))
    if kind == "TIMESTAMP":
        return datetime.fromisoformat(str(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


class DatabaseStorage(Storage):
    TYPE_KEY = "DATABASE"

    def __init__(self, database_url: Optional[str] = None, engine: Optional[AsyncEngine] = None):
        self.database_url = database_url
        self._engine = engine

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_async_engine(self.database_url, future=True)
        return self._engine

    def parse_location(self, location: str) -> Tuple[str, Dict[str, str]]:
        table_name, separator, schema_json = location.partition(":")
        table_name = table_name.strip()

        if not separator or not table_name:
            raise WriteFailure(
                "Destination location should be in format 'tableName:schemaJson'",
                context={"destination_type": self.TYPE_KEY, "location": location}
            )

        if not TABLE_NAME_PATTERN.match(table_name):
            raise SchemaError(
                f"Invalid table name: {table_name}",
                context={"destination_type": self.TYPE_KEY, "location": location}
            )

        try:
            schema = json.loads(schema_json)
        except ValueError as e:
            raise SchemaError(
                "Destination schema is not valid JSON",
                context={"destination_type": self.TYPE_KEY, "table": table_name},
                original_exception=e
            )

        if not isinstance(schema, dict) or not schema:
            raise SchemaError(
                "Destination schema must be a non-empty JSON object",
                context={"destination_type": self.TYPE_KEY, "table": table_name}
            )

        return table_name, {str(name): str(kind) for name, kind in schema.items()}

    async def store(self, payload: bytes, source_format: Optional[str], location: str) -> StoreResult:
        table_name, column_types = self.parse_location(location)
        fmt = (source_format or "").upper()

        if fmt == "CSV":
            columns, raw_rows = self._read_csv(payload, column_types, table_name)
        elif fmt == "JSON":
            columns, raw_rows = self._read_json(payload, column_types, table_name)
        else:
            raise SchemaError(
                f"Unsupported format for database storage: {source_format}",
                context={"destination_type": self.TYPE_KEY, "table": table_name}
            )

        if not columns:
            return StoreResult(descriptor="No matching fields found in schema", records_written=0)

        records = []
        for index, raw in enumerate(raw_rows):
            try:
                records.append({name: coerce_value(raw.get(name), column_types[name]) for name in columns})
            except (TypeError, ValueError) as e:
                raise SchemaError(
                    f"Record {index} does not match the destination schema",
                    context={"destination_type": self.TYPE_KEY, "table": table_name, "record": index},
                    original_exception=e
                )

        target = table(table_name, *[column(name) for name in columns])
        try:
            async with self.engine.begin() as conn:
                if records:
                    await conn.execute(insert(target), records)
        except SQLAlchemyError as e:
            raise WriteFailure(
                f"Insert into {table_name} failed",
                context={"destination_type": self.TYPE_KEY, "table": table_name},
                original_exception=e
            )

        logger.info(f"Inserted {len(records)} records into {table_name}")
        return StoreResult(
            descriptor=f"Inserted {len(records)} records into table {table_name}",
            records_written=len(records),
            bytes_written=len(payload)
        )

    def _read_csv(
        self, payload: bytes, column_types: Dict[str, str], table_name: str
    ) -> Tuple[List[str], List[Dict[str, Any]]]:
        try:
            frame = pd.read_csv(io.BytesIO(payload), dtype=str, keep_default_na=False)
        except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
            raise SchemaError(
                "CSV payload could not be parsed",
                context={"destination_type": self.TYPE_KEY, "table": table_name},
                original_exception=e
            )

        headers = [str(name) for name in frame.columns]
        for header in headers:
            if header not in column_types:
                raise SchemaError(
                    f"Header '{header}' not found in schema",
                    context={"destination_type": self.TYPE_KEY, "table": table_name}
                )

        return headers, frame.to_dict(orient="records")

    def _read_json(
        self, payload: bytes, column_types: Dict[str, str], table_name: str
    ) -> Tuple[List[str], List[Dict[str, Any]]]:
        try:
            data = json.loads(payload)
        except (UnicodeDecodeError, ValueError) as e:
            raise SchemaError(
                "JSON payload could not be parsed",
                context={"destination_type": self.TYPE_KEY, "table": table_name},
                original_exception=e
            )

        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise SchemaError(
                "JSON data must be an array of objects",
                context={"destination_type": self.TYPE_KEY, "table": table_name}
            )

        if not data:
            return [], []

        fields = [name for name in data[0].keys() if name in column_types]
        return fields, data
