"""Ephemeral DynamoDB Local instances for test suites.

Usage:
    from ddblocal import launch

    db = await launch(port=8000)
    ...  # talk to db.url
    await db.stop()
"""

from .config import Settings, settings
from .models.errors import (
    DynamoDBLocalError,
    LaunchError,
    ProbeError,
    ReadinessTimeoutError,
    TeardownError,
    UnexpectedTerminationError,
    WorkspaceError,
)
from .services.handle import LifecycleHandle
from .services.orchestrator import launch

__version__ = "1.0.0"

__all__ = [
    "launch",
    "LifecycleHandle",
    "Settings",
    "settings",
    "DynamoDBLocalError",
    "LaunchError",
    "ProbeError",
    "ReadinessTimeoutError",
    "TeardownError",
    "UnexpectedTerminationError",
    "WorkspaceError",
]
