"""Container supervisor (runs in its own process).

- state.py: states, events, exit codes and the single-container slot
- supervisor.py: ContainerSupervisor state machine
- entry.py: process entry point, stdin/stdout channel and signal wiring
"""

from .state import ContainerSlot, SupervisorEvent, SupervisorState
from .supervisor import ContainerSupervisor

__all__ = [
    "ContainerSlot",
    "ContainerSupervisor",
    "SupervisorEvent",
    "SupervisorState",
]
