"""
Configuration management for cosmosrest.

Handles loading, validation, and access to configuration settings.
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from enum import Enum

import yaml
from pydantic import BaseModel, Field, field_validator, ValidationError, ConfigDict

from cosmosrest.cosmos.constants import (
    DEFAULT_ADMISSION_TIMEOUT,
    DEFAULT_API_VERSION,
    DEFAULT_MAX_CONCURRENCY,
)

logger = logging.getLogger(__name__)

REDACTED = "***REDACTED***"


class LogLevel(str, Enum):
    """Valid log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ControlPlaneType(str, Enum):
    """Supported control-plane collaborators."""
    NONE = "none"
    ARM = "arm"
    MEMORY = "memory"  # starts empty; for tests and embedding code that seeds it


class AccountConfig(BaseModel):
    """Cosmos account and credential settings."""
    name: Optional[str] = None
    resource_group: Optional[str] = None
    subscription_id: Optional[str] = None
    master_key: Optional[str] = None
    key_type: str = "master"
    token_version: str = "1.0"
    api_version: str = DEFAULT_API_VERSION

    @field_validator("key_type")
    @classmethod
    def validate_key_type(cls, v: str) -> str:
        if v not in ("master", "resource"):
            raise ValueError("key_type must be 'master' or 'resource'")
        return v


class HttpConfig(BaseModel):
    """HTTP transport settings."""
    timeout: float = Field(default=30.0, gt=0.0)
    max_connections: int = Field(default=100, ge=1)
    min_tls_version: str = "1.2"

    @field_validator("min_tls_version")
    @classmethod
    def validate_tls(cls, v: str) -> str:
        if v not in ("1.2", "1.3"):
            raise ValueError("min_tls_version must be '1.2' or '1.3'")
        return v


class BulkConfig(BaseModel):
    """Bulk writer settings."""
    max_concurrency: int = Field(
        default=DEFAULT_MAX_CONCURRENCY,
        ge=1,
        le=DEFAULT_MAX_CONCURRENCY,
        description="Concurrent write tasks per batch"
    )
    admission_timeout: float = Field(
        default=DEFAULT_ADMISSION_TIMEOUT,
        gt=0.0,
        description="Seconds to wait for a free slot before writing inline"
    )


class ControlPlaneConfig(BaseModel):
    """Control-plane collaborator settings."""
    type: ControlPlaneType = ControlPlaneType.NONE
    endpoint: str = "https://management.azure.com"
    api_version: str = "2023-04-15"
    token: Optional[str] = None
    poll_interval: float = Field(default=5.0, gt=0.0)
    operation_timeout: float = Field(default=1800.0, gt=0.0)


class RetryConfig(BaseModel):
    """Caller-side retry policy applied by the command line."""
    max_attempts: int = Field(default=3, ge=1)
    initial_backoff: float = Field(default=1.0, ge=0.0)
    max_backoff: float = Field(default=30.0, ge=0.0)


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: LogLevel = LogLevel.INFO
    format: str = "text"
    file: Optional[str] = None
    rotation_size: str = "10MB"
    rotation_count: int = 5
    module_levels: Optional[Dict[str, str]] = Field(
        default=None,
        description="Per-module log levels, e.g., {'cosmosrest.cosmos.bulk': 'DEBUG'}"
    )


class CosmosRestConfig(BaseModel):
    """Main cosmosrest configuration schema."""

    version: str = Field(default="0.1.0", description="Configuration version")

    account: AccountConfig = Field(default_factory=AccountConfig)

    http: HttpConfig = Field(default_factory=HttpConfig)

    bulk: BulkConfig = Field(default_factory=BulkConfig)

    control_plane: ControlPlaneConfig = Field(default_factory=ControlPlaneConfig)

    retry: RetryConfig = Field(default_factory=RetryConfig)

    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Validate version format."""
        parts = v.split(".")
        if len(parts) != 3:
            raise ValueError("Version must be in format x.y.z")
        for part in parts:
            if not part.isdigit():
                raise ValueError("Version components must be numeric")
        return v

    model_config = ConfigDict(use_enum_values=True)


class ConfigManager:
    """
    Loads and validates cosmosrest configuration.

    Configuration precedence (highest to lowest):
    1. CLI arguments
    2. Environment variables (COSMOSREST_*)
    3. Configuration file (YAML/JSON)
    4. Defaults
    """

    # (environment variable, section, key, converter)
    ENV_VARS = [
        ("COSMOSREST_ACCOUNT", "account", "name", str),
        ("COSMOSREST_RESOURCE_GROUP", "account", "resource_group", str),
        ("COSMOSREST_SUBSCRIPTION_ID", "account", "subscription_id", str),
        ("COSMOSREST_MASTER_KEY", "account", "master_key", str),
        ("COSMOSREST_API_VERSION", "account", "api_version", str),
        ("COSMOSREST_HTTP_TIMEOUT", "http", "timeout", float),
        ("COSMOSREST_BULK_CONCURRENCY", "bulk", "max_concurrency", int),
        ("COSMOSREST_BULK_ADMISSION_TIMEOUT", "bulk", "admission_timeout", float),
        ("COSMOSREST_CONTROL_PLANE", "control_plane", "type", str.lower),
        ("COSMOSREST_ARM_TOKEN", "control_plane", "token", str),
        ("COSMOSREST_LOG_LEVEL", "logging", "level", str.upper),
        ("COSMOSREST_LOG_FORMAT", "logging", "format", str.lower),
        ("COSMOSREST_LOG_FILE", "logging", "file", str),
    ]

    def __init__(self):
        self._config: Optional[CosmosRestConfig] = None
        self._config_file: Optional[Path] = None

    def load(
        self,
        config_file: Optional[str] = None,
        cli_overrides: Optional[Dict[str, Any]] = None
    ) -> CosmosRestConfig:
        """
        Load and validate configuration from multiple sources.

        Args:
            config_file: Path to configuration file (YAML or JSON)
            cli_overrides: Nested dictionary of CLI argument overrides

        Returns:
            Validated CosmosRestConfig instance

        Raises:
            ValidationError: If configuration is invalid
            FileNotFoundError: If specified config file doesn't exist
        """
        config_dict: Dict[str, Any] = {}

        if config_file:
            config_dict = self._load_from_file(config_file)
            self._config_file = Path(config_file)
            logger.info(f"Loaded configuration from file: {config_file}")

        env_config = self._load_from_env()
        config_dict = self._merge_configs(config_dict, env_config)
        if env_config:
            logger.debug(f"Applied environment overrides for sections: {sorted(env_config)}")

        if cli_overrides:
            config_dict = self._merge_configs(config_dict, self._drop_none(cli_overrides))

        try:
            self._config = CosmosRestConfig(**config_dict)
        except ValidationError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise

        self._log_configuration()
        return self._config

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file."""
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        with open(path, 'r') as f:
            if path.suffix in ['.yaml', '.yml']:
                return yaml.safe_load(f) or {}
            elif path.suffix == '.json':
                return json.load(f)
            else:
                raise ValueError(f"Unsupported config file format: {path.suffix}")

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from COSMOSREST_* environment variables."""
        config: Dict[str, Any] = {}
        for env_name, section, key, convert in self.ENV_VARS:
            if value := os.getenv(env_name):
                config.setdefault(section, {})[key] = convert(value)
        return config

    def _drop_none(self, overrides: Dict[str, Any]) -> Dict[str, Any]:
        """Remove unset CLI options so they don't mask lower-precedence values."""
        result: Dict[str, Any] = {}
        for key, value in overrides.items():
            if isinstance(value, dict):
                nested = self._drop_none(value)
                if nested:
                    result[key] = nested
            elif value is not None:
                result[key] = value
        return result

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two configuration dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def redacted(self) -> Dict[str, Any]:
        """The loaded configuration with secrets masked."""
        if not self._config:
            return {}

        config_dict = self._config.model_dump()
        if config_dict["account"].get("master_key"):
            config_dict["account"]["master_key"] = REDACTED
        if config_dict["control_plane"].get("token"):
            config_dict["control_plane"]["token"] = REDACTED
        return config_dict

    def _log_configuration(self) -> None:
        logger.debug(f"Active configuration: {json.dumps(self.redacted(), indent=2)}")

    def get_config(self) -> CosmosRestConfig:
        """
        Get the loaded configuration.

        Raises:
            RuntimeError: If configuration hasn't been loaded
        """
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call load() first.")
        return self._config

    def reload(self) -> CosmosRestConfig:
        """Reload configuration from the same sources."""
        config_file = str(self._config_file) if self._config_file else None
        return self.load(config_file=config_file)
