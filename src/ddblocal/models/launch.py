"""Launch configuration and inter-process message models.

LaunchConfig crosses the process boundary as JSON; the message models are
the newline-delimited JSON frames exchanged between the orchestrator and
the supervisor over the supervisor's stdin/stdout.
"""

import json
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ProtocolError

# Command token the supervisor entry point dispatches on
SUPERVISOR_COMMAND = "launch-ddb-local-docker-subprocess"


class LaunchConfig(BaseModel):
    """Everything the supervisor needs to create its container."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    options: List[str] = Field(default_factory=list)
    data_dir: str = Field(..., alias="dataDir")
    logs_dir: str = Field(..., alias="logsDir")
    port: int = Field(..., ge=1, le=65535)

    @field_validator("options")
    @classmethod
    def validate_options(cls, v):
        """Engine options are ``key=value`` environment entries."""
        for option in v:
            key, sep, _ = option.partition("=")
            if not sep or not key:
                raise ValueError(f"option {option!r} is not of the form key=value")
        return v

    def to_json(self) -> str:
        """Serialize with the wire field names."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str) -> "LaunchConfig":
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise ProtocolError(f"Invalid launch configuration: {e}") from e


class ReadinessOutcome(str, Enum):
    """Tagged result of racing the port probe against supervisor exit."""

    READY = "ready"
    PROCESS_EXITED = "process_exited"
    TIMEOUT = "timeout"


class HandleState(str, Enum):
    """Lifecycle of one launched instance."""

    LAUNCHING = "launching"
    READY = "ready"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


class SupervisorMessage(BaseModel):
    """Frame written by the supervisor on its stdout."""

    event: Literal["started", "stopped", "failed"]
    container_id: Optional[str] = None
    error: Optional[str] = None

    def encode(self) -> bytes:
        return (self.model_dump_json(exclude_none=True) + "\n").encode("utf-8")

    @classmethod
    def decode(cls, line: bytes) -> "SupervisorMessage":
        try:
            return cls.model_validate_json(line.decode("utf-8", errors="replace"))
        except ValidationError as e:
            raise ProtocolError(f"Invalid supervisor message: {line!r}") from e


class StopCommand(BaseModel):
    """Frame written by the orchestrator on the supervisor's stdin."""

    command: Literal["stop"] = "stop"

    def encode(self) -> bytes:
        return (self.model_dump_json() + "\n").encode("utf-8")

    @classmethod
    def decode(cls, line: bytes) -> "StopCommand":
        try:
            return cls.model_validate(json.loads(line.decode("utf-8", errors="replace")))
        except (ValueError, ValidationError) as e:
            raise ProtocolError(f"Invalid command: {line!r}") from e
