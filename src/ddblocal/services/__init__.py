"""Lifecycle services: workspace, container runtime, supervisor, orchestration."""

from .handle import LifecycleHandle
from .orchestrator import SupervisorProcess, default_options, launch
from .workspace import Workspace, create_workspace

__all__ = [
    "LifecycleHandle",
    "SupervisorProcess",
    "Workspace",
    "create_workspace",
    "default_options",
    "launch",
]
