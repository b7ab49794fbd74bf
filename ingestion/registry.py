"""
Pipeline registry: resolves job type keys to stage implementations.

Three independent tables are kept, one per stage kind. A key may be served
by exactly one strategy per table; a second strategy claiming an already
served key is rejected when it is registered, not when a job runs.
"""

from typing import Generic, Iterable, List, Optional, TypeVar
import logging

from core.config import Settings, settings as default_settings
from core.exceptions import ConfigurationError
from ingestion.base import PipelineStage, SourceConnector, Storage, Transformer

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=PipelineStage)


class StrategyRegistry(Generic[T]):
    """Ordered collection of strategies of one stage kind."""

    def __init__(self, kind: str, strategies: Optional[Iterable[T]] = None):
        self.kind = kind
        self._strategies: List[T] = []
        for strategy in strategies or []:
            self.register(strategy)

    def register(self, strategy: T) -> T:
        for existing in self._strategies:
            clash = self._clash(existing, strategy)
            if clash is not None:
                raise ConfigurationError(
                    f"duplicate {self.kind} handler for {clash}",
                    context={
                        "kind": self.kind,
                        "type_key": clash,
                        "registered": existing.__class__.__name__,
                        "rejected": strategy.__class__.__name__
                    }
                )
        self._strategies.append(strategy)
        logger.debug(f"Registered {self.kind} {strategy.__class__.__name__} for {strategy.handled_keys()}")
        return strategy

    @staticmethod
    def _clash(existing: T, candidate: T) -> Optional[str]:
        """First declared key of either strategy that the other one also serves."""
        for key in candidate.handled_keys():
            if existing.can_handle(key):
                return key
        for key in existing.handled_keys():
            if candidate.can_handle(key):
                return key
        return None

    def resolve(self, key: Optional[str]) -> T:
        for strategy in self._strategies:
            if strategy.can_handle(key):
                return strategy
        raise ConfigurationError(
            f"no handler for {key}",
            context={"kind": self.kind, "type_key": key}
        )

    def keys(self) -> List[str]:
        return [strategy.type_key() for strategy in self._strategies]

    def __contains__(self, key: str) -> bool:
        return any(strategy.can_handle(key) for strategy in self._strategies)

    def __len__(self) -> int:
        return len(self._strategies)


class PipelineRegistry:
    """Source connectors, transformers and storages available to the executor."""

    def __init__(self):
        self.sources: StrategyRegistry[SourceConnector] = StrategyRegistry("source")
        self.transformers: StrategyRegistry[Transformer] = StrategyRegistry("transformer")
        self.storages: StrategyRegistry[Storage] = StrategyRegistry("storage")

    def register_source(self, connector: SourceConnector) -> SourceConnector:
        return self.sources.register(connector)

    def register_transformer(self, transformer: Transformer) -> Transformer:
        return self.transformers.register(transformer)

    def register_storage(self, storage: Storage) -> Storage:
        return self.storages.register(storage)


def build_default_registry(config: Settings = default_settings) -> PipelineRegistry:
    """Registry with every built-in connector, transformer and storage."""
    from ingestion.extractors.api_connector import APISourceConnector
    from ingestion.extractors.database_connector import DatabaseSourceConnector
    from ingestion.extractors.file_connector import FileSourceConnector
    from ingestion.loaders.cloud_storage import CloudStorage
    from ingestion.loaders.database_storage import DatabaseStorage
    from ingestion.loaders.local_storage import LocalFileStorage
    from ingestion.transformers.csv_transformer import CSVTransformer
    from ingestion.transformers.json_transformer import JSONTransformer
    from ingestion.transformers.xml_transformer import XMLTransformer

    registry = PipelineRegistry()

    registry.register_source(FileSourceConnector())
    registry.register_source(APISourceConnector(timeout=config.API_SOURCE_TIMEOUT_SECONDS))
    registry.register_source(DatabaseSourceConnector(database_url=config.data_database_url))

    registry.register_transformer(CSVTransformer())
    registry.register_transformer(JSONTransformer())
    registry.register_transformer(XMLTransformer())

    registry.register_storage(LocalFileStorage(base_path=config.LOCAL_STORAGE_BASE_PATH))
    registry.register_storage(CloudStorage(
        default_provider=config.CLOUD_STORAGE_PROVIDER,
        staging_dir=config.CLOUD_STORAGE_STAGING_DIR
    ))
    registry.register_storage(DatabaseStorage(database_url=config.data_database_url))

    logger.info(
        f"Pipeline registry ready: sources={registry.sources.keys()}, "
        f"transformers={registry.transformers.keys()}, storages={registry.storages.keys()}"
    )
    return registry
