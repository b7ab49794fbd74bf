"""
Core utilities and configuration for the ingestion job engine.

This package provides foundational components used throughout the engine:

Modules:
    config: Application configuration and environment variable management
    database: Database engine, session factory and table creation
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration
    clock: Naive-UTC time helper used for every stored timestamp

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import SourceError, InvalidTransition
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Get database session
    async with async_session_maker() as session:
        # Perform database operations
        pass
"""

__all__ = [
    "settings",
    "init_models",
    "setup_logging",
    "utcnow",
    # Exceptions
    "ETLException",
    "ValidationError",
    "NotFoundError",
    "InvalidTransition",
    "StaleJobError",
    "PoolSaturatedError",
    "PipelineError",
    "ConfigurationError",
    "SourceError",
    "SourceUnavailable",
    "FormatMismatch",
    "TransformError",
    "InvalidConfig",
    "UnsupportedFormat",
    "StorageError",
    "WriteFailure",
    "SchemaError",
]
