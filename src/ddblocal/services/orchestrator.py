"""Launch orchestration.

Allocates a workspace, spawns the supervisor process, waits for the service
to become ready and hands back a LifecycleHandle. The orchestrator never
touches the container directly until teardown; it learns the container id
from the supervisor's messages.
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Union

import structlog
from pydantic import ValidationError

from ..config import ENV_PREFIX, Settings, settings
from ..models.errors import (
    LaunchError,
    ProtocolError,
    ReadinessTimeoutError,
    UnexpectedTerminationError,
)
from ..models.launch import (
    SUPERVISOR_COMMAND,
    LaunchConfig,
    ReadinessOutcome,
    StopCommand,
    SupervisorMessage,
)
from .container.runtime import ContainerRuntime, DockerRuntime
from .handle import LifecycleHandle
from .readiness import DynamoDBProbe, race_with_exit, wait_until_reachable
from .workspace import create_workspace

logger = structlog.get_logger(__name__)


def default_options(port: int) -> List[str]:
    """Engine options used when the caller passes none."""
    return [f"http.port={port}", "discovery.type=single-node"]


class SupervisorProcess:
    """Parent-side view of a spawned supervisor.

    Reads the supervisor's protocol frames in the background to learn the
    container id, and exposes kill() / wait_until_stopped().
    """

    def __init__(self, process: asyncio.subprocess.Process, ack_timeout: float = 10.0):
        self.process = process
        self.container_id: Optional[str] = None
        self.failure: Optional[str] = None
        self._ack_timeout = ack_timeout
        self._stop_acknowledged = asyncio.Event()
        self._reader_task = asyncio.create_task(self._read_messages())

    @classmethod
    async def spawn(cls, config: LaunchConfig, app_settings: Settings) -> "SupervisorProcess":
        """Start ``python -m ddblocal <token> <json>`` with piped stdin/stdout."""
        # The parent's settings replace any inherited DDBLOCAL_* values
        env = {k: v for k, v in os.environ.items() if not k.upper().startswith(ENV_PREFIX)}
        env.update(app_settings.to_env())
        process = await asyncio.create_subprocess_exec(
            sys.executable,
            "-m",
            "ddblocal",
            SUPERVISOR_COMMAND,
            config.to_json(),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            env=env,
        )
        logger.info("Spawned supervisor", pid=process.pid, port=config.port)
        return cls(process, ack_timeout=app_settings.stop_ack_timeout_seconds)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode

    @property
    def is_running(self) -> bool:
        return self.process.returncode is None

    async def kill(self) -> Optional[str]:
        """Ask the supervisor to kill and remove its container.

        Returns:
            The container id echoed back in the stop acknowledgment, or the
            one reported at creation if no acknowledgment arrives
        """
        if self.is_running:
            logger.info("Killing Docker container", pid=self.pid)
            if not await self._send_stop():
                self._terminate()
            try:
                await asyncio.wait_for(self._stop_acknowledged.wait(), timeout=self._ack_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "Supervisor did not acknowledge stop, sending SIGTERM",
                    pid=self.pid,
                    timeout=self._ack_timeout,
                )
                self._terminate()
        return self.container_id

    async def wait_until_stopped(self) -> int:
        """Wait for the supervisor process to exit."""
        exit_code = await self.process.wait()
        await self._reader_task
        if self.process.stdin is not None and not self.process.stdin.is_closing():
            self.process.stdin.close()
        logger.info("Docker container exited", pid=self.pid, exit_code=exit_code)
        return exit_code

    async def _send_stop(self) -> bool:
        stdin = self.process.stdin
        if stdin is None or stdin.is_closing():
            return False
        try:
            stdin.write(StopCommand().encode())
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.debug("Supervisor stdin closed", pid=self.pid, error=str(e))
            return False
        return True

    def _terminate(self) -> None:
        try:
            self.process.terminate()
        except ProcessLookupError:
            pass

    async def _read_messages(self) -> None:
        stdout = self.process.stdout
        if stdout is None:
            return
        try:
            while True:
                line = await stdout.readline()
                if not line:
                    break
                if not line.strip():
                    continue
                try:
                    message = SupervisorMessage.decode(line.strip())
                except ProtocolError as e:
                    logger.warning("Ignoring supervisor output", pid=self.pid, error=str(e))
                    continue
                self._handle_message(message)
        finally:
            # No further frames can arrive
            self._stop_acknowledged.set()

    def _handle_message(self, message: SupervisorMessage) -> None:
        if message.event == "started":
            self.container_id = message.container_id
            logger.info("Supervisor started container", container_id=(message.container_id or "")[:12])
        elif message.event == "stopped":
            if message.container_id:
                self.container_id = message.container_id
            self._stop_acknowledged.set()
        elif message.event == "failed":
            self.failure = message.error
            logger.error("Supervisor failed to start container", error=message.error)


async def launch(
    port: Optional[int] = None,
    options: Optional[Sequence[str]] = None,
    *,
    app_settings: Optional[Settings] = None,
    runtime: Optional[ContainerRuntime] = None,
    temp_root: Optional[Union[str, Path]] = None,
) -> LifecycleHandle:
    """Launch a DynamoDB Local instance and wait until it answers requests.

    Args:
        port: Service port (container and host), defaults to settings.port
        options: ``key=value`` engine options, defaults to default_options(port)
        app_settings: Settings override
        runtime: Container runtime used for teardown, docker SDK by default
        temp_root: Workspace root override

    Returns:
        LifecycleHandle in READY state

    Raises:
        WorkspaceError: Workspace could not be allocated
        UnexpectedTerminationError: Supervisor exited before readiness
        ReadinessTimeoutError: Not ready in time; ``error.handle`` still runs
        ProbeError: The service answered ListTables with an error
    """
    app_settings = app_settings or settings
    port = port or app_settings.port
    options = list(options) if options is not None else default_options(port)
    readiness = app_settings.readiness
    url = readiness.endpoint_url(port)

    logger.info("Making workspace", temp_root=str(temp_root or app_settings.temp_root))
    workspace = await create_workspace(temp_root or app_settings.temp_root)

    try:
        config = LaunchConfig(
            options=options,
            data_dir=str(workspace.data_dir),
            logs_dir=str(workspace.logs_dir),
            port=port,
        )
    except ValidationError as e:
        await workspace.cleanup()
        raise LaunchError(f"Invalid launch configuration: {e}") from e

    logger.info("Launching Docker", port=port, image=app_settings.image)
    try:
        supervisor = await SupervisorProcess.spawn(config, app_settings)
    except OSError as e:
        await workspace.cleanup()
        raise LaunchError(f"Failed to spawn supervisor: {e}") from e

    owns_runtime = runtime is None
    handle = LifecycleHandle(
        url=url,
        port=port,
        workspace=workspace,
        supervisor=supervisor,
        runtime=runtime or DockerRuntime(app_settings.container),
        owns_runtime=owns_runtime,
    )

    await _wait_for_readiness(handle, supervisor, app_settings)

    handle._mark_ready()
    logger.info("Launched", url=url, container_id=(handle.container_id or "")[:12])
    return handle


async def _wait_for_readiness(
    handle: LifecycleHandle,
    supervisor: SupervisorProcess,
    app_settings: Settings,
) -> None:
    readiness = app_settings.readiness
    loop = asyncio.get_running_loop()
    deadline = loop.time() + readiness.readiness_timeout_seconds

    outcome = await wait_until_reachable(
        readiness.host,
        handle.port,
        supervisor.process.wait(),
        timeout=readiness.readiness_timeout_seconds,
        interval=readiness.readiness_poll_interval_seconds,
    )
    await _classify(outcome, handle, supervisor, readiness.readiness_timeout_seconds)

    probe = DynamoDBProbe(handle.url, timeout=readiness.probe_timeout_seconds)
    try:
        outcome, tables = await race_with_exit(
            probe.wait_until_answering(readiness.readiness_poll_interval_seconds),
            supervisor.process.wait(),
            timeout=deadline - loop.time(),
        )
    except Exception:
        logger.error("Sanity probe failed", url=handle.url)
        handle._mark_failed()
        await handle.stop()
        raise
    finally:
        await probe.close()

    await _classify(outcome, handle, supervisor, readiness.readiness_timeout_seconds)
    logger.debug("Sanity probe answered", url=handle.url, tables=tables)


async def _classify(
    outcome: ReadinessOutcome,
    handle: LifecycleHandle,
    supervisor: SupervisorProcess,
    timeout: float,
) -> None:
    """Raise the error matching a non-READY outcome."""
    if outcome == ReadinessOutcome.READY:
        return

    if outcome == ReadinessOutcome.PROCESS_EXITED:
        exit_code = await supervisor.wait_until_stopped()
        logger.error(
            "Local DynamoDB instance terminated unexpectedly",
            exit_code=exit_code,
            reason=supervisor.failure,
        )
        handle._mark_failed()
        await handle.stop()
        raise UnexpectedTerminationError(exit_code=exit_code, reason=supervisor.failure)

    logger.error("DynamoDB Local not ready in time", port=handle.port, timeout=timeout)
    raise ReadinessTimeoutError(port=handle.port, timeout=timeout, handle=handle)
