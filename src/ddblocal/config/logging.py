"""Logging configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingConfig(BaseSettings):
    """Log level and renderer selection."""

    model_config = SettingsConfigDict(env_prefix="DDBLOCAL_", extra="ignore")

    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")
