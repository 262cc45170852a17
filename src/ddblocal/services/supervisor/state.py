"""Supervisor states, events and the single-container slot."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

# Process exit codes
EXIT_STOPPED = 0
EXIT_START_FAILED = 1
EXIT_CONTAINER_EXITED = 2
EXIT_USAGE = 64


class SupervisorState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    TERMINATING = "terminating"
    TERMINATED = "terminated"
    FAILED = "failed"


class SupervisorEvent(str, Enum):
    """Inputs that drive the supervisor towards termination."""

    STOP_MESSAGE = "stop_message"
    SIGTERM = "sigterm"
    SIGINT = "sigint"
    STDIN_CLOSED = "stdin_closed"
    CONTAINER_EXITED = "container_exited"


@dataclass
class ContainerSlot:
    """The one container a supervisor owns, and where it is in its lifecycle."""

    container_id: Optional[str] = None
    state: SupervisorState = SupervisorState.STARTING
    exit_reason: Optional[SupervisorEvent] = None

    @property
    def accepts_termination(self) -> bool:
        return self.state == SupervisorState.RUNNING
