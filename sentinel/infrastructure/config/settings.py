"""
Configuration management using Pydantic Settings
"""
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_prefix="SENTINEL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Application
    service_name: str = Field(default="sentinel", description="Service name bound into every log entry")
    host: str = Field(default="0.0.0.0", description="API host")
    port: int = Field(default=8000, ge=1, le=65535, description="API port")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="'json' for structured logging, 'console' for humans")

    # Persistence
    config_dir: str = Field(default="config/ai", description="Directory holding <provider>.json settings")
    selection_file: str = Field(default="config/ai/active_provider.json", description="Active provider file")
    history_file: Optional[str] = Field(default=None, description="JSON-lines turn log; in-memory when unset")
    targets_file: str = Field(default="config/servers.json", description="SSH target table")

    # Providers and sessions
    default_provider: str = Field(default="ollama", description="Provider bound when nothing is stored")
    codec: str = Field(default="base64", description="Confirmation token codec: base64 or base32")
    stale_after_seconds: int = Field(default=300, ge=1, description="Idle websocket cutoff")

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return v

    @field_validator("default_provider", "codec")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        return v.strip().lower()


@lru_cache()
def get_settings() -> Settings:
    return Settings()
