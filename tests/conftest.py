"""Pytest configuration and shared fixtures."""

import asyncio
import json
import sys
import threading
from typing import Dict, Iterator, List, Optional

import pytest
import structlog

from ddblocal.config import Settings
from ddblocal.models.launch import LaunchConfig
from ddblocal.services.container.runtime import ContainerRuntime
from ddblocal.services.container.spec import ContainerSpec
from ddblocal.services.orchestrator import SupervisorProcess

FAKE_CONTAINER_ID = "abc123def456789"


class FakeRuntime(ContainerRuntime):
    """In-memory ContainerRuntime recording every call."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.specs: List[ContainerSpec] = []
        self.containers: Dict[str, str] = {}  # id -> status
        self._exited: Dict[str, threading.Event] = {}
        self.fail_create: Optional[Exception] = None
        self.fail_start: Optional[Exception] = None
        self.fail_kill: Optional[Exception] = None
        self.fail_remove: Optional[Exception] = None
        self._next = 0

    def create(self, spec: ContainerSpec) -> str:
        self.calls.append(("create", spec.name))
        if self.fail_create:
            raise self.fail_create
        self._next += 1
        container_id = f"{FAKE_CONTAINER_ID}{self._next}"
        self.specs.append(spec)
        self.containers[container_id] = "created"
        self._exited[container_id] = threading.Event()
        return container_id

    def start(self, container_id: str) -> None:
        self.calls.append(("start", container_id))
        if self.fail_start:
            raise self.fail_start
        self.containers[container_id] = "running"

    def attach(self, container_id: str) -> Iterator[bytes]:
        self.calls.append(("attach", container_id))
        exited = self._exited[container_id]

        def _stream():
            yield b"Initializing DynamoDB Local with the following configuration:\n"
            exited.wait(10)

        return _stream()

    def kill(self, container_id: str) -> bool:
        self.calls.append(("kill", container_id))
        if self.fail_kill:
            raise self.fail_kill
        if self.containers.get(container_id) != "running":
            return False
        self.exit(container_id)
        return True

    def remove(self, container_id: str, force: bool = False) -> bool:
        self.calls.append(("remove", container_id, force))
        if self.fail_remove:
            raise self.fail_remove
        if container_id not in self.containers:
            return False
        del self.containers[container_id]
        self._exited[container_id].set()
        return True

    def exists(self, container_id: str) -> bool:
        return container_id in self.containers

    def exit(self, container_id: str) -> None:
        """Simulate the container process ending."""
        self.containers[container_id] = "exited"
        self._exited[container_id].set()

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def fake_runtime():
    """Fake container runtime."""
    return FakeRuntime()


@pytest.fixture
def test_settings(tmp_path):
    """Settings with a private temp root and short timeouts."""
    return Settings(
        host="127.0.0.1",
        temp_root=tmp_path / "runs",
        readiness_timeout_seconds=2.0,
        readiness_poll_interval_seconds=0.05,
        probe_timeout_seconds=1.0,
        stop_ack_timeout_seconds=2.0,
    )


@pytest.fixture
def launch_config(tmp_path):
    """A launch config pointing at a workspace-shaped directory."""
    run_dir = tmp_path / "run-abc123"
    (run_dir / "data").mkdir(parents=True)
    (run_dir / "logs").mkdir()
    return LaunchConfig(
        options=["http.port=8000", "discovery.type=single-node"],
        data_dir=str(run_dir / "data"),
        logs_dir=str(run_dir / "logs"),
        port=8000,
    )


# Scripts standing in for the real supervisor process. They speak the same
# stdin/stdout protocol without touching Docker.

def _frame(event: str, **fields) -> str:
    return json.dumps({"event": event, **fields})


COOPERATIVE_SUPERVISOR = f"""
import sys
sys.stdout.write({_frame("started", container_id=FAKE_CONTAINER_ID)!r} + "\\n")
sys.stdout.flush()
sys.stdin.readline()
sys.stdout.write({_frame("stopped", container_id=FAKE_CONTAINER_ID)!r} + "\\n")
sys.stdout.flush()
"""

UNRESPONSIVE_SUPERVISOR = f"""
import sys, time
sys.stdout.write({_frame("started", container_id=FAKE_CONTAINER_ID)!r} + "\\n")
sys.stdout.flush()
time.sleep(30)
"""

FAILING_SUPERVISOR = f"""
import sys
sys.stdout.write({_frame("failed", error="image not found")!r} + "\\n")
sys.stdout.flush()
sys.exit(1)
"""


async def spawn_script(script: str, ack_timeout: float = 2.0) -> SupervisorProcess:
    """Start a fake supervisor script wrapped in a SupervisorProcess."""
    process = await asyncio.create_subprocess_exec(
        sys.executable,
        "-c",
        script,
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
    )
    return SupervisorProcess(process, ack_timeout=ack_timeout)


SUPERVISOR_SCRIPTS = {
    "cooperative": COOPERATIVE_SUPERVISOR,
    "unresponsive": UNRESPONSIVE_SUPERVISOR,
    "failing": FAILING_SUPERVISOR,
}


@pytest.fixture
def spawn_supervisor():
    """Factory starting a scripted stand-in supervisor by behaviour name."""

    async def _spawn(behaviour: str, ack_timeout: float = 2.0) -> SupervisorProcess:
        return await spawn_script(SUPERVISOR_SCRIPTS[behaviour], ack_timeout=ack_timeout)

    return _spawn


@pytest.fixture
def fake_container_id():
    return FAKE_CONTAINER_ID


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by entry points under test."""
    yield
    structlog.reset_defaults()
