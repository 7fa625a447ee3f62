"""Server configuration using pydantic-settings.

Settings are read once at startup from CATO_* environment variables (or a
.env file) and are immutable afterwards.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

DEFAULT_MAX_RESPONSE_LENGTH = 200_000

# MCP logging levels, lowest to highest
LOG_LEVELS = ["debug", "info", "notice", "warning", "error", "critical", "alert", "emergency"]
DEFAULT_LOG_LEVEL = "info"


class Settings(BaseSettings):
    """Configuration for the Cato MCP server.

    Environment variables:
        CATO_API_HOST: API host name, e.g. api.catonetworks.com (required)
        CATO_API_KEY: API key sent as the x-api-key header (required)
        CATO_ACCOUNT_ID: default accountID for every tool (required)
        CATO_MAX_RESPONSE_LENGTH: truncation budget in characters
        CATO_LOG_LEVEL: one of the MCP logging levels
    """

    model_config = SettingsConfigDict(
        env_prefix="CATO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    api_host: str = Field(description="Cato API host name")
    api_key: str = Field(description="Cato API key")
    account_id: str = Field(description="Default tenant account ID")
    max_response_length: int = Field(
        default=DEFAULT_MAX_RESPONSE_LENGTH,
        description="Maximum serialized result length before truncation",
    )
    log_level: str = Field(default=DEFAULT_LOG_LEVEL, description="Logging level")

    @field_validator("max_response_length", mode="before")
    @classmethod
    def _fallback_max_response_length(cls, value: Any) -> int:
        try:
            length = int(value)
        except (TypeError, ValueError):
            return DEFAULT_MAX_RESPONSE_LENGTH
        return length if length > 0 else DEFAULT_MAX_RESPONSE_LENGTH

    @field_validator("log_level", mode="before")
    @classmethod
    def _fallback_log_level(cls, value: Any) -> str:
        level = str(value or "").strip().lower()
        return level if level in LOG_LEVELS else DEFAULT_LOG_LEVEL

    @property
    def graphql_url(self) -> str:
        return f"https://{self.api_host}/api/v1/graphql2"


def load_settings(**overrides: Any) -> Settings:
    """Build Settings from the environment, raising ConfigurationError on failure."""
    try:
        return Settings(**overrides)
    except ValidationError as e:
        missing = [
            f"CATO_{str(err['loc'][0]).upper()}"
            for err in e.errors()
            if err.get("type") == "missing" and err.get("loc")
        ]
        if missing:
            raise ConfigurationError(
                f"Environment variable {', '.join(missing)} is not set"
            ) from e
        raise ConfigurationError(f"Invalid configuration: {e}") from e
