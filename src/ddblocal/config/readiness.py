"""Readiness and teardown timing configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReadinessConfig(BaseSettings):
    """Timeouts for the readiness probe and the stop acknowledgment."""

    model_config = SettingsConfigDict(env_prefix="DDBLOCAL_", extra="ignore")

    host: str = Field(default="localhost")
    readiness_timeout_seconds: float = Field(default=60.0, gt=0)
    readiness_poll_interval_seconds: float = Field(default=0.25, gt=0)
    probe_timeout_seconds: float = Field(default=10.0, gt=0)
    stop_ack_timeout_seconds: float = Field(default=10.0, gt=0)

    def endpoint_url(self, port: int) -> str:
        """Get the client endpoint for a service port."""
        return f"http://{self.host}:{port}"
