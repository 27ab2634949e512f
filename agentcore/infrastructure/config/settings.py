"""Configuration management using pydantic-settings."""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AgentSettings(BaseSettings):
    """Agent defaults loaded from environment variables (prefix AGENTCORE_)."""

    model_config = SettingsConfigDict(
        env_prefix="AGENTCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    service_name: str = "agentcore"
    log_level: str = "INFO"
    log_format: str = "json"

    context_limit: int = Field(default=10, ge=0, description="Prior messages fetched from memory")
    max_history_entries: int = Field(default=0, ge=0, description="0 keeps every entry")
    strict_hooks: bool = Field(default=False, description="Re-raise hook exceptions after logging")


@lru_cache()
def get_settings() -> AgentSettings:
    """Get cached settings instance."""
    return AgentSettings()
