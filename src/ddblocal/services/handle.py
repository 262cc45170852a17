"""Caller-facing handle for one launched DynamoDB Local instance."""

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

import structlog

from ..models.errors import TeardownError
from ..models.launch import HandleState
from ..utils.async_helpers import run_in_executor
from .container.runtime import ContainerRuntime
from .workspace import Workspace

if TYPE_CHECKING:
    from .orchestrator import SupervisorProcess

logger = structlog.get_logger(__name__)


class LifecycleHandle:
    """A running instance and its teardown capability.

    ``stop()`` runs: stop request to the supervisor, wait for its exit,
    container removal, workspace removal. Each step starts only after the
    previous one finished, a failing step does not skip the later ones, and
    calling ``stop()`` again is a no-op.
    """

    def __init__(
        self,
        url: str,
        port: int,
        workspace: Workspace,
        supervisor: "SupervisorProcess",
        runtime: ContainerRuntime,
        owns_runtime: bool = False,
    ):
        self.url = url
        self.port = port
        self._workspace = workspace
        self._supervisor = supervisor
        self._runtime = runtime
        self._owns_runtime = owns_runtime
        self._state = HandleState.LAUNCHING
        self._cleaned_up = False
        self._lock = asyncio.Lock()
        self.teardown_errors: List[Exception] = []

    def __repr__(self) -> str:
        return f"LifecycleHandle(url={self.url!r}, state={self._state.value!r})"

    @property
    def state(self) -> HandleState:
        return self._state

    @property
    def workspace(self) -> Path:
        return self._workspace.path

    @property
    def data_dir(self) -> Path:
        return self._workspace.data_dir

    @property
    def container_id(self) -> Optional[str]:
        """Identifier echoed back by the supervisor, once known."""
        return self._supervisor.container_id

    def _mark_ready(self) -> None:
        self._state = HandleState.READY

    def _mark_failed(self) -> None:
        self._state = HandleState.FAILED

    async def stop(self, raise_on_error: bool = False) -> None:
        """Tear the instance down.

        Args:
            raise_on_error: Raise TeardownError if any step failed

        Raises:
            TeardownError: Only when raise_on_error is set and a step failed
        """
        async with self._lock:
            if self._cleaned_up:
                return
            failed = self._state == HandleState.FAILED
            self._state = HandleState.STOPPING
            errors: List[Exception] = []

            logger.info("Stopping DynamoDB Local", url=self.url, workspace=str(self.workspace))

            container_id = self._supervisor.container_id
            try:
                container_id = await self._supervisor.kill() or container_id
            except Exception as e:
                logger.warning("Failed to signal supervisor", pid=self._supervisor.pid, error=str(e))
                errors.append(e)

            try:
                exit_code = await self._supervisor.wait_until_stopped()
                logger.debug("Supervisor exited", pid=self._supervisor.pid, exit_code=exit_code)
            except Exception as e:
                logger.warning("Failed waiting for supervisor exit", pid=self._supervisor.pid, error=str(e))
                errors.append(e)

            if container_id:
                try:
                    removed = await run_in_executor(self._runtime.remove, container_id, True)
                    if removed:
                        logger.info("Removed container", container_id=container_id[:12])
                    else:
                        logger.debug("Container already removed", container_id=container_id[:12])
                except Exception as e:
                    logger.warning("Failed to remove container", container_id=container_id[:12], error=str(e))
                    errors.append(e)
            else:
                logger.debug("No container identifier was reported; nothing to remove")

            try:
                await self._workspace.cleanup()
                logger.info("Removed temporary directory", workspace=str(self.workspace))
            except Exception as e:
                logger.warning("Failed to remove temporary directory", workspace=str(self.workspace), error=str(e))
                errors.append(e)

            if self._owns_runtime:
                self._runtime.close()

            self.teardown_errors = errors
            self._cleaned_up = True
            self._state = HandleState.FAILED if failed else HandleState.STOPPED

        if raise_on_error and errors:
            raise TeardownError(errors)

    async def __aenter__(self) -> "LifecycleHandle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
