"""Data models for the DynamoDB Local fixture."""

from .errors import (
    DynamoDBLocalError,
    ErrorType,
    LaunchError,
    ProbeError,
    ProtocolError,
    ReadinessTimeoutError,
    SupervisorError,
    TeardownError,
    UnexpectedTerminationError,
    WorkspaceError,
)
from .launch import (
    SUPERVISOR_COMMAND,
    HandleState,
    LaunchConfig,
    ReadinessOutcome,
    StopCommand,
    SupervisorMessage,
)

__all__ = [
    # Errors
    "DynamoDBLocalError",
    "ErrorType",
    "LaunchError",
    "ProbeError",
    "ProtocolError",
    "ReadinessTimeoutError",
    "SupervisorError",
    "TeardownError",
    "UnexpectedTerminationError",
    "WorkspaceError",
    # Launch
    "SUPERVISOR_COMMAND",
    "HandleState",
    "LaunchConfig",
    "ReadinessOutcome",
    "StopCommand",
    "SupervisorMessage",
]
