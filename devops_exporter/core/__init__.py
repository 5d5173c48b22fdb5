"""
Core Infrastructure - Configuration, Logging, Cycle Tracking

This package provides centralized infrastructure utilities that should be used
throughout the exporter instead of direct library calls.

Usage:
    from devops_exporter.core import get_config, get_logger

    config = get_config()
    ado_config = config.get_ado_config()

    logger = get_logger(__name__)
"""

from ..secure_config import (
    AzureDevOpsConfig,
    ConfigurationError,
    ExporterConfig,
    SecureConfig,
    get_config,
    validate_config_on_startup,
)
from .collector_metrics import (
    CollectorHealth,
    CycleState,
    CycleTracker,
    get_current_tracker,
    track_collection_cycle,
)
from .logging_config import get_logger, log_with_context, setup_logging

__all__ = [
    # Configuration
    "get_config",
    "validate_config_on_startup",
    "ConfigurationError",
    "SecureConfig",
    "AzureDevOpsConfig",
    "ExporterConfig",
    # Logging
    "get_logger",
    "log_with_context",
    "setup_logging",
    # Cycle tracking
    "CollectorHealth",
    "CycleState",
    "CycleTracker",
    "get_current_tracker",
    "track_collection_cycle",
]
