"""Supervisor process entry point.

Invoked by the orchestrator as::

    python -m ddblocal launch-ddb-local-docker-subprocess '<launch config json>'

Protocol frames go out on stdout; stop commands come in on stdin; logs and
container output go to stderr.
"""

import asyncio
import signal
import sys
from typing import List, Optional

import structlog

from ...config import Settings, settings
from ...models.errors import ProtocolError, SupervisorError
from ...models.launch import SUPERVISOR_COMMAND, LaunchConfig, StopCommand, SupervisorMessage
from ...utils.logging import setup_logging
from ..container.runtime import DockerRuntime
from .state import EXIT_START_FAILED, EXIT_USAGE, SupervisorEvent
from .supervisor import ContainerSupervisor

logger = structlog.get_logger(__name__)

_SIGNAL_EVENTS = (
    (signal.SIGTERM, SupervisorEvent.SIGTERM),
    (signal.SIGINT, SupervisorEvent.SIGINT),
)


class StdoutChannel:
    """Writes protocol frames to the orchestrator."""

    def __init__(self, stream=None):
        self._stream = stream if stream is not None else sys.stdout.buffer

    def send(self, message: SupervisorMessage) -> None:
        self._stream.write(message.encode())
        self._stream.flush()


async def read_commands(supervisor: ContainerSupervisor, reader: asyncio.StreamReader) -> None:
    """Turn stdin frames into supervisor events until EOF."""
    while True:
        line = await reader.readline()
        if not line:
            supervisor.deliver(SupervisorEvent.STDIN_CLOSED)
            return
        if not line.strip():
            continue
        try:
            StopCommand.decode(line)
        except ProtocolError as e:
            logger.warning("Ignoring unknown command", error=str(e))
            continue
        supervisor.deliver(SupervisorEvent.STOP_MESSAGE)


def install_signal_handlers(supervisor: ContainerSupervisor) -> None:
    """Route SIGTERM/SIGINT into the supervisor's event queue."""
    loop = asyncio.get_running_loop()
    for signum, event in _SIGNAL_EVENTS:
        try:
            loop.add_signal_handler(signum, supervisor.deliver, event)
        except NotImplementedError:
            signal.signal(
                signum,
                lambda *_args, _event=event: loop.call_soon_threadsafe(supervisor.deliver, _event),
            )


def remove_signal_handlers() -> None:
    loop = asyncio.get_running_loop()
    for signum, _ in _SIGNAL_EVENTS:
        try:
            loop.remove_signal_handler(signum)
        except NotImplementedError:
            signal.signal(signum, signal.SIG_DFL)


async def _open_stdin() -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    return reader


async def serve(config: LaunchConfig, app_settings: Settings) -> int:
    """Run one supervised container to completion.

    Returns:
        Process exit code
    """
    channel = StdoutChannel()
    runtime = DockerRuntime(app_settings.container)
    supervisor = ContainerSupervisor(config, runtime, app_settings.container, emit=channel.send)

    # Signals received while the container is being created stay queued
    # until start() returns, then tear it down like any other stop input.
    install_signal_handlers(supervisor)
    try:
        try:
            await supervisor.start()
        except SupervisorError as e:
            channel.send(SupervisorMessage(event="failed", error=e.message))
            return EXIT_START_FAILED

        reader = await _open_stdin()
        reader_task = asyncio.create_task(read_commands(supervisor, reader))
        try:
            return await supervisor.run_until_terminated()
        finally:
            reader_task.cancel()
    finally:
        remove_signal_handlers()
        runtime.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Parse the two positional arguments and run the supervisor."""
    argv = list(sys.argv[1:] if argv is None else argv)
    setup_logging()

    if len(argv) != 2 or argv[0] != SUPERVISOR_COMMAND:
        logger.error("Usage: <command token> <launch config json>", argv=argv)
        return EXIT_USAGE

    try:
        config = LaunchConfig.from_json(argv[1])
    except ProtocolError as e:
        logger.error("Invalid launch configuration", error=str(e))
        return EXIT_USAGE

    exit_code = asyncio.run(serve(config, settings))
    logger.info("Supervisor exiting", exit_code=exit_code)
    return exit_code
