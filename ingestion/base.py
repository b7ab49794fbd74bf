"""
Abstract base classes for pipeline stages.

A job runs through three stages, each selected at runtime by a string type
key stored on the job:

    SourceConnector.extract()  →  Transformer.transform()  →  Storage.store()
         (FILE, API, ...)           (optional: CSV, ...)        (LOCAL, ...)

Every stage works on the raw payload bytes and declares the type key it
answers to. The PipelineRegistry (ingestion.registry) maps job type keys to
stage instances.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
import json

from core.exceptions import InvalidConfig


class PipelineStage(ABC):
    """Common type-key handling for all stages."""

    TYPE_KEY: str = ""
    # further keys this stage answers to besides TYPE_KEY
    TYPE_ALIASES: Tuple[str, ...] = ()

    def type_key(self) -> str:
        return self.TYPE_KEY

    def handled_keys(self) -> Tuple[str, ...]:
        """Every key this stage declares, TYPE_KEY first."""
        return (self.TYPE_KEY,) + tuple(self.TYPE_ALIASES)

    def can_handle(self, key: Optional[str]) -> bool:
        """
        Whether this stage serves ``key``.

        Overrides may accept more keys than handled_keys() but must accept
        all of them; registration checks the declared keys of both sides.
        """
        return key is not None and key in self.handled_keys()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} type_key={self.TYPE_KEY}>"


class SourceConnector(PipelineStage):
    """
    Reads the whole payload of a job from its source.

    Raises:
        SourceUnavailable: The source cannot be reached or read
        FormatMismatch: The data does not match the declared format
    """

    @abstractmethod
    async def extract(self, location: str, source_format: Optional[str]) -> bytes:
        """
        Args:
            location: Path, URL or query, depending on the connector
            source_format: Declared payload format (CSV, JSON, XML)

        Returns:
            Raw payload bytes
        """
        pass


class Transformer(PipelineStage):
    """
    Rewrites a payload according to a JSON configuration.

    Raises:
        InvalidConfig: The configuration cannot be used
        UnsupportedFormat: The payload format is not handled
    """

    @abstractmethod
    async def transform(self, payload: bytes, source_format: Optional[str], config: Optional[str]) -> bytes:
        pass

    @staticmethod
    def parse_config(config: Optional[str]) -> Dict[str, Any]:
        """Decode the job's transformation config; empty means no-op."""
        if config is None or not str(config).strip():
            return {}
        try:
            parsed = json.loads(config)
        except (TypeError, ValueError) as e:
            raise InvalidConfig(
                "Transformation config is not valid JSON",
                context={"config": str(config)[:200]},
                original_exception=e
            )
        if not isinstance(parsed, dict):
            raise InvalidConfig(
                "Transformation config must be a JSON object",
                context={"config": str(config)[:200]}
            )
        return parsed


@dataclass(frozen=True)
class StoreResult:
    """
    Outcome of Storage.store().

    Attributes:
        descriptor: Where the payload went (path, URI, summary line)
        records_written: Number of records written, when the storage knows it
        bytes_written: Size of the payload written
    """
    descriptor: str
    records_written: Optional[int] = None
    bytes_written: int = 0

    def __str__(self) -> str:
        return self.descriptor


class Storage(PipelineStage):
    """
    Writes the final payload to its destination.

    Raises:
        WriteFailure: The destination rejected the write
        SchemaError: The payload does not fit the destination schema
    """

    @abstractmethod
    async def store(self, payload: bytes, source_format: Optional[str], location: str) -> StoreResult:
        pass
