"""
Application configuration with environment variables.
"""
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ACQ_",
        extra="ignore",  # Ignore extra fields in .env file
    )

    # Server configuration
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8010)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_TO_FILE: bool = Field(default=False)
    LOG_DIR: str = Field(default="logs")

    # Persisted state
    DATA_DIR: str = Field(default="data")
    STATE_FILE: str = Field(default="selection_state.json")
    SEGMENTS_FILE: str = Field(default="segments.json")

    # Mock telemetry (0 disables the background ticker)
    TELEMETRY_INTERVAL_SECONDS: float = Field(default=6.0, ge=0)
    TELEMETRY_BUFFER_SIZE: int = Field(default=61, gt=0)
    TELEMETRY_SEED: Optional[int] = Field(default=None)


# Singleton
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
