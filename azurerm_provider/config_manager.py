"""
Configuration Management for the AzureRM provider

This module provides centralized configuration management with validation
and environment variable handling. Values are read from the process
environment, after loading a local ``.env`` file if one exists.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import colorlog
from dotenv import load_dotenv

from .exceptions import InvalidConfigurationError, MissingConfigurationError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _set_azure_http_log_level(log_level: str) -> None:
    """Set log levels for HTTP-related loggers to reduce noise."""
    http_loggers = [
        "azure.core.pipeline.policies.http_logging_policy",
        "azure.core.pipeline",
        "azure.identity",
        "azure.mgmt",
        "azure",
        "urllib3",
        "urllib3.connectionpool",
    ]
    # HTTP logging should only appear at DEBUG level
    target_level = logging.DEBUG if log_level == "DEBUG" else logging.WARNING
    for name in http_loggers:
        logging.getLogger(name).setLevel(target_level)


@dataclass
class AzureConfig:
    """Credentials and defaults for the Azure Resource Manager API."""

    subscription_id: str = field(
        default_factory=lambda: os.getenv(
            "ARM_SUBSCRIPTION_ID", os.getenv("AZURE_SUBSCRIPTION_ID", "")
        )
    )
    tenant_id: str = field(
        default_factory=lambda: os.getenv("ARM_TENANT_ID", os.getenv("AZURE_TENANT_ID", ""))
    )
    client_id: str = field(
        default_factory=lambda: os.getenv("ARM_CLIENT_ID", os.getenv("AZURE_CLIENT_ID", ""))
    )
    client_secret: str = field(
        default_factory=lambda: os.getenv(
            "ARM_CLIENT_SECRET", os.getenv("AZURE_CLIENT_SECRET", "")
        )
    )
    location: str = field(default_factory=lambda: os.getenv("ARM_LOCATION", "westus2"))

    def has_service_principal(self) -> bool:
        """Check whether explicit service principal credentials are configured."""
        return bool(self.tenant_id and self.client_id and self.client_secret)

    def validate(self) -> None:
        """Validate Azure configuration."""
        if not self.subscription_id:
            raise MissingConfigurationError(
                "Azure subscription is not configured",
                missing_keys=["ARM_SUBSCRIPTION_ID"],
            )
        partial = [self.tenant_id, self.client_id, self.client_secret]
        if any(partial) and not all(partial):
            raise InvalidConfigurationError(
                "Service principal configuration is incomplete. Set ARM_TENANT_ID, "
                "ARM_CLIENT_ID and ARM_CLIENT_SECRET together",
                config_section="azure",
            )

    def get_safe_client_id(self) -> str:
        """Get client ID for logging (masked)."""
        if self.client_id:
            return f"{self.client_id[:8]}..."
        return "Not configured"


@dataclass
class FeaturesConfig:
    """Side-effect flags applied when resources are deleted."""

    app_service_delete_metrics: bool = field(
        default_factory=lambda: _env_flag("ARM_APP_SERVICE_DELETE_METRICS", "true")
    )
    app_service_delete_empty_server_farm: bool = field(
        default_factory=lambda: _env_flag(
            "ARM_APP_SERVICE_DELETE_EMPTY_SERVER_FARM", "true"
        )
    )


@dataclass
class LoggingConfig:
    """Configuration for logging behavior."""

    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    format: str = field(
        default_factory=lambda: os.getenv(
            "LOG_FORMAT", "%(log_color)s%(levelname)s:%(name)s:%(message)s"
        )
    )
    file_output: Optional[str] = field(default_factory=lambda: os.getenv("LOG_FILE"))

    def __post_init__(self) -> None:
        """Validate logging configuration."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        self.level = self.level.upper()

    def get_log_level(self) -> int:
        """Convert string log level to logging constant."""
        level_attr = getattr(logging, self.level, None)
        if level_attr is None:
            raise ValueError(f"Invalid log level: {self.level}")
        return int(level_attr)


@dataclass
class ProviderConfig:
    """Main configuration class that aggregates all configuration sections."""

    azure: AzureConfig = field(default_factory=AzureConfig)
    features: FeaturesConfig = field(default_factory=FeaturesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_environment(
        cls,
        subscription_id: Optional[str] = None,
        log_level: Optional[str] = None,
    ) -> "ProviderConfig":
        """
        Create configuration from environment variables.

        Args:
            subscription_id: Optional subscription overriding ARM_SUBSCRIPTION_ID
            log_level: Optional log level overriding LOG_LEVEL

        Returns:
            ProviderConfig: Configured instance
        """
        config = cls()
        if subscription_id:
            config.azure.subscription_id = subscription_id
        if log_level:
            config.logging.level = log_level
            config.logging.__post_init__()
        return config

    def validate_all(self) -> None:
        """Validate all configuration sections."""
        try:
            self.azure.validate()
            self.logging.__post_init__()
            logger.debug("Configuration validation successful")
        except Exception as e:
            logger.error(f"Configuration validation failed: {e}")
            raise

    def log_configuration_summary(self) -> None:
        """Log a summary of the current configuration (without sensitive data)."""
        logger.info("=" * 60)
        logger.info("AZURERM PROVIDER CONFIGURATION")
        logger.info("=" * 60)
        logger.info(f"Subscription: {self.azure.subscription_id or 'Not configured'}")
        logger.info(
            "Credential: "
            + (
                f"service principal {self.azure.get_safe_client_id()}"
                if self.azure.has_service_principal()
                else "DefaultAzureCredential"
            )
        )
        logger.info(f"Default location: {self.azure.location}")
        logger.info(
            f"App Service delete: metrics={self.features.app_service_delete_metrics}, "
            f"empty server farm={self.features.app_service_delete_empty_server_farm}"
        )
        logger.info(f"Logging Level: {self.logging.level}")
        if self.logging.file_output:
            logger.info(f"Log File: {self.logging.file_output}")
        logger.info("=" * 60)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for serialization."""
        return {
            "azure": {
                "subscription_id": self.azure.subscription_id,
                "tenant_id": self.azure.tenant_id,
                "client_id": self.azure.get_safe_client_id(),
                "location": self.azure.location,
                # Don't include the client secret in serialization
            },
            "features": {
                "app_service_delete_metrics": self.features.app_service_delete_metrics,
                "app_service_delete_empty_server_farm": self.features.app_service_delete_empty_server_farm,
            },
            "logging": {
                "level": self.logging.level,
                "file_output": self.logging.file_output,
            },
        }


def setup_logging(config: LoggingConfig) -> None:
    """
    Setup logging configuration based on config.
    """
    _set_azure_http_log_level(config.level.upper())

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.handlers.clear()  # Remove any existing handlers
    root_logger.setLevel(config.get_log_level())

    console_handler = colorlog.StreamHandler()
    console_handler.setFormatter(colorlog.ColoredFormatter(config.format))
    root_logger.addHandler(console_handler)

    # Add file handler if file output is configured
    if config.file_output:
        file_handler = logging.FileHandler(config.file_output)
        file_formatter = logging.Formatter(
            "%(asctime)s - %(levelname)s:%(name)s:%(message)s"
        )
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

    logger.debug(
        f"Logging configured: level={config.level}, file={config.file_output or 'console'}"
    )


def create_config_from_env(
    subscription_id: Optional[str] = None,
    log_level: Optional[str] = None,
) -> ProviderConfig:
    """
    Factory function to create and validate configuration from environment.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    config = ProviderConfig.from_environment(subscription_id, log_level)
    config.validate_all()
    return config
