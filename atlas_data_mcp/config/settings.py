"""Centralized configuration management using Pydantic Settings.

This module provides type-safe configuration with environment variable support,
validation, and clear defaults for the Atlas Data API MCP server. It is the single
source of truth for process-level settings: the Data API host, response size
limits, page sizes, fallback tenant credentials and server transport.

Settings are read once at import time and are read-only afterwards. Tenant
credentials normally arrive per request (HTTP headers); the credential fields
here only fill in values a request did not supply, which is how stdio clients
such as Claude Desktop configure a single tenant.

Example:
    Loading and validating settings:
    >>> from atlas_data_mcp.config.settings import settings
    >>> settings.validate_configuration()
    >>> print(settings.default_page_size)
    20
"""

import logging
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_DATA_API_HOST = "https://data.mongodb-api.com/app"


class Settings(BaseSettings):
    """Application settings loaded from environment variables with validation.

    Settings are loaded from:
    1. Environment variables (highest priority)
    2. .env file (if present)
    3. Class defaults (lowest priority)

    All settings can be overridden via environment variables using uppercase names
    (e.g., CHARACTER_LIMIT=20000, MONGODB_APP_ID=data-abcde).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================================================
    # Atlas Data API Configuration
    # ========================================================================

    data_api_default_host: str = Field(
        default=DEFAULT_DATA_API_HOST,
        description=(
            "Host prefix used to derive a tenant's base URL when none is supplied. "
            "The base URL becomes {host}/{app_id}/endpoint/data/v1"
        ),
    )

    http_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds applied by the HTTP transport to each Data API call",
        gt=0,
        le=600,
    )

    # ========================================================================
    # Fallback Tenant Credentials (stdio / single-tenant deployments)
    # ========================================================================

    mongodb_data_api_key: str | None = Field(
        default=None,
        description="Data API key used when a request carries no X-MongoDB-API-Key header",
    )

    mongodb_app_id: str | None = Field(
        default=None,
        description="Atlas App ID used when a request carries no X-MongoDB-App-ID header",
    )

    mongodb_data_source: str | None = Field(
        default=None,
        description="Cluster name used when a request carries no X-MongoDB-Data-Source header",
    )

    mongodb_data_api_base_url: str | None = Field(
        default=None,
        description="Base URL override used when a request carries no X-MongoDB-Base-URL header",
    )

    # ========================================================================
    # Response Limits
    # ========================================================================

    character_limit: int = Field(
        default=50000,
        description="Maximum characters in a tool response before list payloads are truncated",
        ge=1,
    )

    default_page_size: int = Field(
        default=20,
        description="Number of documents mongodb_find returns when no limit is given",
        ge=1,
    )

    max_page_size: int = Field(
        default=1000,
        description="Largest limit mongodb_find accepts",
        ge=1,
    )

    # ========================================================================
    # MCP Server Configuration
    # ========================================================================

    mcp_transport: Literal["stdio", "http", "sse"] = Field(
        default="stdio",
        description="Transport used by the MCP server. HTTP transports read tenant headers",
    )

    mcp_server_host: str = Field(
        default="127.0.0.1",
        description="Host address for the MCP server. Use 0.0.0.0 to listen on all interfaces",
    )

    mcp_server_port: int = Field(
        default=8000,
        description="Port number for the MCP server",
        ge=1024,
        le=65535,
    )

    # ========================================================================
    # Logging Configuration
    # ========================================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level for application logs. DEBUG provides most detail",
    )

    # ========================================================================
    # Field Validators
    # ========================================================================

    @field_validator("character_limit", "default_page_size", "max_page_size", mode="before")
    @classmethod
    def fallback_on_non_numeric(cls, value: Any, info) -> Any:
        """Replace a non-numeric environment value with the field default.

        Operators sometimes leave placeholders such as ``CHARACTER_LIMIT=unset``
        in deployment manifests. Those values fall back to the default instead
        of stopping the server at startup.

        Args:
            value: Raw value from the environment or constructor
            info: Validation context carrying the field name

        Returns:
            The value unchanged when it parses as an integer, else the default
        """
        if isinstance(value, str):
            try:
                return int(value.strip(), 10)
            except ValueError:
                default = cls.model_fields[info.field_name].default
                logger.warning(
                    f"Ignoring non-numeric value {value!r} for {info.field_name}, using {default}"
                )
                return default
        return value

    @field_validator("max_page_size")
    @classmethod
    def validate_page_sizes(cls, max_size: int, info) -> int:
        """Validate that the default page size does not exceed the maximum.

        Raises:
            ValueError: If default_page_size > max_page_size
        """
        if "default_page_size" in info.data:
            default_size = info.data["default_page_size"]
            if default_size > max_size:
                raise ValueError(
                    f"default_page_size ({default_size}) cannot exceed "
                    f"max_page_size ({max_size})"
                )
        return max_size

    @field_validator("data_api_default_host", "mongodb_data_api_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str | None) -> str | None:
        if value:
            return value.rstrip("/")
        return value

    # ========================================================================
    # Helper Properties
    # ========================================================================

    @property
    def mcp_server_url(self) -> str:
        """Get the formatted MCP server URL.

        Example:
            >>> settings.mcp_server_url
            'http://127.0.0.1:8000'
        """
        return f"http://{self.mcp_server_host}:{self.mcp_server_port}"

    @property
    def has_default_credentials(self) -> bool:
        """True when all mandatory fallback credentials are configured."""
        return bool(self.mongodb_data_api_key and self.mongodb_app_id and self.mongodb_data_source)

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def validate_configuration(self) -> None:
        """Validate complete application configuration at startup.

        Fallback credentials are optional, but a partial set is almost always a
        deployment mistake, so it is reported as a warning.

        Raises:
            ConfigurationError: If configuration is invalid

        Example:
            >>> from atlas_data_mcp.config.settings import settings
            >>> settings.validate_configuration()
        """
        from atlas_data_mcp.mcp_server.exceptions import ConfigurationError

        logger.info("Validating application configuration...")

        if self.default_page_size > self.max_page_size:
            error_msg = (
                f"Invalid page size configuration: default_page_size "
                f"({self.default_page_size}) > max_page_size ({self.max_page_size})"
            )
            logger.error(error_msg)
            raise ConfigurationError(
                message=error_msg,
                details={
                    "default_page_size": self.default_page_size,
                    "max_page_size": self.max_page_size,
                },
            )

        if not self.data_api_default_host.startswith(("http://", "https://")):
            error_msg = f"Invalid data_api_default_host: {self.data_api_default_host}"
            logger.error(error_msg)
            raise ConfigurationError(
                message=error_msg, details={"data_api_default_host": self.data_api_default_host}
            )

        configured = [
            self.mongodb_data_api_key,
            self.mongodb_app_id,
            self.mongodb_data_source,
        ]
        if any(configured) and not all(configured):
            logger.warning(
                "Fallback credentials are only partially configured; requests without "
                "tenant headers will be rejected"
            )

        logger.info("Configuration validation passed")

    def print_config(self) -> None:
        """Print current configuration in a formatted table (excluding sensitive data).

        The API key is masked to prevent accidental exposure.

        Example:
            >>> from atlas_data_mcp.config.settings import settings
            >>> settings.print_config()
        """
        from rich.console import Console
        from rich.table import Table

        console = Console()
        table = Table(title="Application Configuration", show_header=True)
        table.add_column("Setting", style="cyan", no_wrap=False)
        table.add_column("Value", style="magenta", no_wrap=False)

        api_key_display = "✗ Not set"
        if self.mongodb_data_api_key:
            api_key_display = f"{self.mongodb_data_api_key[:4]}***"

        config_items = {
            "Data API Host": self.data_api_default_host,
            "HTTP Timeout": f"{self.http_timeout}s",
            "Default App ID": self.mongodb_app_id or "✗ Not set",
            "Default Data Source": self.mongodb_data_source or "✗ Not set",
            "Default API Key": api_key_display,
            "Base URL Override": self.mongodb_data_api_base_url or "-",
            "Character Limit": str(self.character_limit),
            "Page Size": f"{self.default_page_size} (max {self.max_page_size})",
            "MCP Transport": self.mcp_transport,
            "MCP Server URL": self.mcp_server_url,
            "Log Level": self.log_level,
        }

        for key, value in config_items.items():
            table.add_row(key, str(value))

        console.print(table)


# Global settings instance - initialized once at module import
settings = Settings()


def print_config() -> None:
    """Convenience function to print current configuration.

    Example:
        >>> from atlas_data_mcp.config.settings import print_config
        >>> print_config()
    """
    settings.print_config()


if __name__ == "__main__":
    # Script: Validate and display configuration
    import sys

    from atlas_data_mcp.mcp_server.exceptions import ConfigurationError

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        logger.info("Starting configuration validation...")
        settings.validate_configuration()
        print_config()
        logger.info("✓ Configuration is valid and ready for use")
        sys.exit(0)

    except ConfigurationError as e:
        logger.error(f"✗ Configuration validation failed: {e}")
        sys.exit(1)
