"""
Configuration management for the tool server.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """Raised when required start-up configuration is missing."""

    def __init__(self, missing: List[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            "Missing required configuration: " + ", ".join(self.missing)
        )


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLBRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Server
    host: str = Field(default="0.0.0.0", description="Host to bind the server")
    port: int = Field(default=3000, description="Port to bind the server")
    debug: bool = Field(default=False, description="Include error types in 500 responses")

    # Application
    app_name: str = Field(default="toolbridge")
    app_version: str = Field(default="1.0.0")
    protocol_version: int = Field(default=1, description="Advertised by initialize")

    # Logging
    log_level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    json_logs: bool = Field(default=True, description="Render logs as JSON lines")

    # HTTP
    cors_origins: str = Field(default="*", description="Comma separated list of allowed origins")
    sse_queue_size: int = Field(default=100, ge=1, description="Frames buffered per event-stream listener")

    # Identity directory (Auth0 Management API)
    directory_domain: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("AUTH0_DOMAIN", "TOOLBRIDGE_DIRECTORY_DOMAIN"),
        description="Tenant domain, e.g. your-tenant.auth0.com",
    )
    directory_client_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("AUTH0_CLIENT_ID", "TOOLBRIDGE_DIRECTORY_CLIENT_ID"),
    )
    directory_client_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("AUTH0_CLIENT_SECRET", "TOOLBRIDGE_DIRECTORY_CLIENT_SECRET"),
    )
    directory_timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")

    @property
    def parsed_cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


#: Settings fields that must be present before the first request is served.
REQUIRED_DIRECTORY_SETTINGS = {
    "directory_domain": "AUTH0_DOMAIN",
    "directory_client_id": "AUTH0_CLIENT_ID",
    "directory_client_secret": "AUTH0_CLIENT_SECRET",
}


def require_directory_config(settings: Settings) -> None:
    """
    Fail fast when the directory credentials are incomplete.

    Raises
    ------
    ConfigurationError
        Listing every missing environment variable, not only the first.
    """
    missing = [
        env_name
        for field_name, env_name in REQUIRED_DIRECTORY_SETTINGS.items()
        if not getattr(settings, field_name)
    ]
    if missing:
        raise ConfigurationError(missing)


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
