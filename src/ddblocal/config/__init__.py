"""Configuration management for the DynamoDB Local fixture.

This module provides a unified Settings class with flat fields that can be
set from ``DDBLOCAL_*`` environment variables, plus grouped read-only views.

Usage:
    from ddblocal.config import settings

    # Access grouped settings
    settings.container.image
    settings.readiness.readiness_timeout_seconds

    # Or the flat fields
    settings.image
    settings.readiness_timeout_seconds
"""

import tempfile
from pathlib import Path
from typing import Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .container import ContainerConfig
from .logging import LoggingConfig
from .readiness import ReadinessConfig

ENV_PREFIX = "DDBLOCAL_"


def _default_temp_root() -> Path:
    return Path(tempfile.gettempdir()) / "ddblocal"


class Settings(BaseSettings):
    """Fixture settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Container Configuration
    image: str = Field(
        default="amazon/dynamodb-local:2.5.2",
        description="Pinned DynamoDB Local image reference",
    )
    container_name_prefix: str = Field(default="dynamodb-local")
    container_working_dir: str = Field(default="/home/dynamodblocal")
    container_data_path: str = Field(
        default="/home/dynamodblocal/data",
        description="Path inside the container where the data dir is bind-mounted",
    )
    pull_missing_image: bool = Field(default=True)
    docker_base_url: Optional[str] = Field(
        default=None,
        description="Docker daemon URL; docker.from_env() is used when unset",
    )

    # Service Configuration
    host: str = Field(default="localhost")
    port: int = Field(default=8000, ge=1, le=65535)
    temp_root: Path = Field(
        default_factory=_default_temp_root,
        description="Root under which run-* workspaces are allocated",
    )

    # Readiness Configuration
    readiness_timeout_seconds: float = Field(default=60.0, gt=0)
    readiness_poll_interval_seconds: float = Field(default=0.25, gt=0)
    probe_timeout_seconds: float = Field(default=10.0, gt=0)
    stop_ack_timeout_seconds: float = Field(default=10.0, gt=0)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Restrict the renderer to the two supported formats."""
        v = v.lower()
        if v not in ("console", "json"):
            raise ValueError("log_format must be 'console' or 'json'")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v):
        return v.upper()

    @field_validator("image")
    @classmethod
    def validate_image(cls, v):
        """Reject floating tags so every run uses the same image."""
        if ":" not in v.rsplit("/", 1)[-1] and "@" not in v:
            raise ValueError("image must be pinned to a tag or digest")
        if v.endswith(":latest"):
            raise ValueError("image must not use the 'latest' tag")
        return v

    # ========================================================================
    # GROUPED CONFIG ACCESS
    # ========================================================================

    @property
    def container(self) -> ContainerConfig:
        """Access container configuration group."""
        return ContainerConfig(
            image=self.image,
            container_name_prefix=self.container_name_prefix,
            container_working_dir=self.container_working_dir,
            container_data_path=self.container_data_path,
            pull_missing_image=self.pull_missing_image,
            docker_base_url=self.docker_base_url,
        )

    @property
    def readiness(self) -> ReadinessConfig:
        """Access readiness configuration group."""
        return ReadinessConfig(
            host=self.host,
            readiness_timeout_seconds=self.readiness_timeout_seconds,
            readiness_poll_interval_seconds=self.readiness_poll_interval_seconds,
            probe_timeout_seconds=self.probe_timeout_seconds,
            stop_ack_timeout_seconds=self.stop_ack_timeout_seconds,
        )

    @property
    def logging(self) -> LoggingConfig:
        """Access logging configuration group."""
        return LoggingConfig(log_level=self.log_level, log_format=self.log_format)

    # ========================================================================
    # HELPER METHODS
    # ========================================================================

    def to_env(self) -> Dict[str, str]:
        """Render every field except unset optionals as DDBLOCAL_* variables.

        The supervisor child inherits these so it rebuilds the same settings
        without widening its command line.
        """
        env: Dict[str, str] = {}
        for name, value in self.model_dump().items():
            if value is None:
                continue
            if isinstance(value, bool):
                rendered = "true" if value else "false"
            else:
                rendered = str(value)
            env[f"{ENV_PREFIX}{name.upper()}"] = rendered
        return env


# Global settings instance
settings = Settings()

__all__ = [
    "Settings",
    "settings",
    "ENV_PREFIX",
    "ContainerConfig",
    "ReadinessConfig",
    "LoggingConfig",
]
