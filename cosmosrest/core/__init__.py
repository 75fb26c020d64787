"""Configuration and logging for cosmosrest."""

from .config_manager import ConfigManager, CosmosRestConfig
from .logging_config import setup_logging

__all__ = [
    "ConfigManager",
    "CosmosRestConfig",
    "setup_logging",
]
