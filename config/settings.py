"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # MCP BACKEND
    # ===================
    mcp_server_url: str = Field(
        default="http://localhost:8080/mcp",
        description="JSON-RPC endpoint of the catalog MCP server"
    )
    mcp_auth_token: Optional[str] = Field(
        None,
        description="Static bearer token for the MCP server"
    )
    mcp_use_gcloud_auth: bool = Field(
        default=False,
        description="Fetch a GCP identity token via the gcloud CLI"
    )
    mcp_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        le=120,
        description="Transport timeout for MCP calls"
    )

    # ===================
    # CLASSIFIER
    # ===================
    anthropic_api_key: Optional[str] = Field(
        None,
        description="Anthropic API key for the command classifier"
    )
    classifier_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Model used to turn commands into tool calls"
    )
    classifier_max_tokens: int = Field(
        default=512,
        ge=64,
        le=4096,
        description="Maximum tokens in a classifier response"
    )

    # ===================
    # CACHES
    # ===================
    response_cache_ttl_seconds: float = Field(
        default=30.0,
        gt=0,
        le=3600,
        description="Lifetime of cached command responses"
    )
    tool_catalog_ttl_seconds: float = Field(
        default=600.0,
        gt=0,
        le=86400,
        description="Lifetime of the cached MCP tool catalog"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=3001,
        ge=1000,
        le=65535,
        description="API port"
    )
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:3001"],
        description="Origins allowed to call the API"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def classifier_configured(self) -> bool:
        """Check if the classifier has credentials."""
        return bool(self.anthropic_api_key)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
