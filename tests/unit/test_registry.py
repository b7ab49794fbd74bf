"""
Unit tests for the pipeline registry
"""

import pytest

from core.config import Settings
from core.exceptions import ConfigurationError
from ingestion.base import SourceConnector
from ingestion.registry import PipelineRegistry, StrategyRegistry, build_default_registry


class CsvFileSource(SourceConnector):
    TYPE_KEY = "FILE"

    async def extract(self, location, source_format):
        return b""


class AnotherFileSource(SourceConnector):
    TYPE_KEY = "FILE"

    async def extract(self, location, source_format):
        return b""


class GreedySource(SourceConnector):
    """Claims every key"""

    TYPE_KEY = "ANY"

    def can_handle(self, key):
        return key is not None

    async def extract(self, location, source_format):
        return b""


class ArchiveSource(SourceConnector):
    TYPE_KEY = "ARCHIVE"
    TYPE_ALIASES = ("SFTP",)

    async def extract(self, location, source_format):
        return b""


class MirrorSource(SourceConnector):
    TYPE_KEY = "MIRROR"
    TYPE_ALIASES = ("SFTP",)

    async def extract(self, location, source_format):
        return b""


class TestStrategyRegistry:
    def test_resolve(self):
        source = CsvFileSource()
        registry = StrategyRegistry("source", [source])

        assert registry.resolve("FILE") is source
        assert "FILE" in registry
        assert registry.keys() == ["FILE"]
        assert len(registry) == 1

    def test_resolve_unknown_key(self):
        registry = StrategyRegistry("source", [CsvFileSource()])

        with pytest.raises(ConfigurationError) as exc_info:
            registry.resolve("FTP")

        assert exc_info.value.message == "no handler for FTP"

    def test_resolve_is_case_sensitive(self):
        registry = StrategyRegistry("source", [CsvFileSource()])
        with pytest.raises(ConfigurationError):
            registry.resolve("file")

    def test_duplicate_key_rejected_at_registration(self):
        registry = StrategyRegistry("source", [CsvFileSource()])

        with pytest.raises(ConfigurationError) as exc_info:
            registry.register(AnotherFileSource())

        assert exc_info.value.message == "duplicate source handler for FILE"
        assert len(registry) == 1

    def test_overlapping_handler_rejected_in_either_direction(self):
        registry = StrategyRegistry("source", [GreedySource()])
        with pytest.raises(ConfigurationError):
            registry.register(CsvFileSource())

        registry = StrategyRegistry("source", [CsvFileSource()])
        with pytest.raises(ConfigurationError):
            registry.register(GreedySource())


    def test_aliases_resolve(self):
        source = ArchiveSource()
        registry = StrategyRegistry("source", [source])

        assert registry.resolve("SFTP") is source
        assert registry.keys() == ["ARCHIVE"]

    def test_shared_alias_rejected(self):
        registry = StrategyRegistry("source", [ArchiveSource()])

        with pytest.raises(ConfigurationError) as exc_info:
            registry.register(MirrorSource())

        assert exc_info.value.message == "duplicate source handler for SFTP"
        assert registry.resolve("SFTP").TYPE_KEY == "ARCHIVE"
        assert "MIRROR" not in registry


class TestPipelineRegistry:
    def test_tables_are_independent(self):
        from ingestion.loaders.database_storage import DatabaseStorage
        from ingestion.extractors.database_connector import DatabaseSourceConnector

        registry = PipelineRegistry()
        registry.register_source(DatabaseSourceConnector(database_url="sqlite+aiosqlite://"))
        registry.register_storage(DatabaseStorage(database_url="sqlite+aiosqlite://"))

        assert registry.sources.resolve("DATABASE").TYPE_KEY == "DATABASE"
        assert registry.storages.resolve("DATABASE").TYPE_KEY == "DATABASE"

    def test_default_registry(self, tmp_path):
        config = Settings(
            LOCAL_STORAGE_BASE_PATH=str(tmp_path / "out"),
            CLOUD_STORAGE_STAGING_DIR=str(tmp_path / "cloud"),
            DATA_DATABASE_URL="sqlite+aiosqlite://"
        )

        registry = build_default_registry(config)

        assert registry.sources.keys() == ["FILE", "API", "DATABASE"]
        assert registry.transformers.keys() == ["CSV", "JSON", "XML"]
        assert registry.storages.keys() == ["LOCAL", "CLOUD", "DATABASE"]
