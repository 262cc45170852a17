"""Container supervisor.

A ContainerSupervisor owns exactly one container for the lifetime of its
process. Termination inputs (stop message, SIGTERM/SIGINT, stdin EOF,
container exit) are queued as events and processed by a small loop, so
kill-then-remove runs once, from one place, whatever triggered it.
"""

import asyncio
import sys
import threading
from typing import BinaryIO, Callable, Iterator, Optional

import structlog

from ...config.container import ContainerConfig
from ...models.errors import SupervisorError
from ...models.launch import LaunchConfig, SupervisorMessage
from ...utils.async_helpers import run_in_executor
from ..container.runtime import ContainerRuntime
from ..container.spec import build_container_spec
from .state import (
    EXIT_CONTAINER_EXITED,
    EXIT_STOPPED,
    ContainerSlot,
    SupervisorEvent,
    SupervisorState,
)

logger = structlog.get_logger(__name__)


class ContainerSupervisor:
    """Creates, starts and finally kills/removes a single container."""

    def __init__(
        self,
        config: LaunchConfig,
        runtime: ContainerRuntime,
        container_config: ContainerConfig,
        emit: Callable[[SupervisorMessage], None],
        output: Optional[BinaryIO] = None,
    ):
        """Initialize the supervisor.

        Args:
            config: Launch configuration received from the orchestrator
            runtime: Container runtime capability
            container_config: Image and container path settings
            emit: Sink for protocol messages to the orchestrator
            output: Where container output is forwarded (stderr by default)
        """
        self._config = config
        self._runtime = runtime
        self._container_config = container_config
        self._emit = emit
        self._output = output if output is not None else sys.stderr.buffer
        self._events: Optional[asyncio.Queue] = None
        self._pump: Optional[threading.Thread] = None
        self.slot = ContainerSlot()

    @property
    def state(self) -> SupervisorState:
        return self.slot.state

    def _queue(self) -> asyncio.Queue:
        if self._events is None:
            self._events = asyncio.Queue()
        return self._events

    def deliver(self, event: SupervisorEvent) -> None:
        """Queue a termination input. Safe to call from signal handlers.

        Inputs delivered before start() returns wait in the queue and are
        applied once run_until_terminated() runs.
        """
        logger.debug("Supervisor event", supervisor_event=event.value, state=self.slot.state.value)
        self._queue().put_nowait(event)

    async def start(self) -> str:
        """Create, attach and start the container.

        Returns:
            The container identifier

        Raises:
            SupervisorError: If the container cannot be created or started
        """
        spec = build_container_spec(self._config, self._container_config)

        try:
            container_id = await run_in_executor(self._runtime.create, spec)
        except Exception as e:
            self.slot.state = SupervisorState.FAILED
            logger.error("Container creation failed", image=spec.image, error=str(e))
            raise SupervisorError(f"Failed to create container from {spec.image}: {e}") from e

        self.slot.container_id = container_id

        try:
            stream = await run_in_executor(self._runtime.attach, container_id)
            self._start_pump(stream)
            await run_in_executor(self._runtime.start, container_id)
        except Exception as e:
            self.slot.state = SupervisorState.FAILED
            logger.error("Container start failed", container_id=container_id[:12], error=str(e))
            await self._remove_quietly(container_id)
            raise SupervisorError(f"Failed to start container {container_id[:12]}: {e}") from e

        self.slot.state = SupervisorState.RUNNING
        logger.info(
            "Container running",
            container_id=container_id[:12],
            port=self._config.port,
            data_dir=self._config.data_dir,
        )
        self._emit(SupervisorMessage(event="started", container_id=container_id))
        return container_id

    async def run_until_terminated(self) -> int:
        """Process queued events until the container has been torn down.

        Returns:
            Process exit code
        """
        queue = self._queue()
        while True:
            event = await queue.get()
            exit_code = await self.handle_event(event)
            if exit_code is not None:
                return exit_code

    async def handle_event(self, event: SupervisorEvent) -> Optional[int]:
        """Apply one event to the state machine.

        Returns:
            Exit code once terminated, None if the event was ignored
        """
        if not self.slot.accepts_termination:
            logger.debug("Ignoring event", supervisor_event=event.value, state=self.slot.state.value)
            return None

        self.slot.state = SupervisorState.TERMINATING
        self.slot.exit_reason = event
        container_id = self.slot.container_id

        if event == SupervisorEvent.CONTAINER_EXITED:
            logger.warning("Container exited on its own", container_id=container_id[:12])
        else:
            logger.info("Terminating container", container_id=container_id[:12], reason=event.value)
            await self._kill_quietly(container_id)

        await self._remove_quietly(container_id)

        self.slot.state = SupervisorState.TERMINATED
        self._emit(SupervisorMessage(event="stopped", container_id=container_id))

        if event == SupervisorEvent.CONTAINER_EXITED:
            return EXIT_CONTAINER_EXITED
        return EXIT_STOPPED

    # =========================================================================
    # Private methods
    # =========================================================================

    async def _kill_quietly(self, container_id: str) -> None:
        try:
            killed = await run_in_executor(self._runtime.kill, container_id)
            if not killed:
                logger.debug("Container already stopped", container_id=container_id[:12])
        except Exception as e:
            logger.warning("Failed to kill container", container_id=container_id[:12], error=str(e))

    async def _remove_quietly(self, container_id: str) -> None:
        try:
            await run_in_executor(self._runtime.remove, container_id, True)
        except Exception as e:
            logger.warning("Failed to remove container", container_id=container_id[:12], error=str(e))

    def _start_pump(self, stream: Iterator[bytes]) -> None:
        """Forward container output on a daemon thread.

        The attach stream ends when the container stops, which is reported
        back to the loop as CONTAINER_EXITED.
        """
        loop = asyncio.get_running_loop()
        queue = self._queue()

        def _forward():
            try:
                for chunk in stream:
                    self._output.write(chunk)
                    self._output.flush()
            except Exception as e:
                logger.debug("Container output stream closed", error=str(e))
            try:
                loop.call_soon_threadsafe(queue.put_nowait, SupervisorEvent.CONTAINER_EXITED)
            except RuntimeError:
                # Loop already closed
                pass

        self._pump = threading.Thread(target=_forward, name="container-output", daemon=True)
        self._pump.start()
