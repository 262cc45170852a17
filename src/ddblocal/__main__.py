#!/usr/bin/env python3
"""
DynamoDB Local command line.

Usage:
  python -m ddblocal run                          # launch on port 8000 until Ctrl-C
  python -m ddblocal run --port 8001 --option k=v # custom port and engine options

The supervisor child process is started through the same entry point with
a dedicated command token followed by its JSON launch configuration.
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel

from .config import settings
from .models.errors import LaunchError, ReadinessTimeoutError
from .models.launch import SUPERVISOR_COMMAND
from .services.orchestrator import launch
from .utils.logging import setup_logging

console = Console(stderr=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ddblocal",
        description="Run an ephemeral DynamoDB Local container",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Launch and wait for Ctrl-C")
    run_parser.add_argument("--port", type=int, default=settings.port, help="Service port")
    run_parser.add_argument(
        "--option",
        dest="options",
        action="append",
        default=None,
        metavar="KEY=VALUE",
        help="Engine option passed as an environment entry (repeatable)",
    )
    return parser


async def run_until_interrupted(port: int, options: Optional[List[str]]) -> int:
    """Launch, wait for SIGINT/SIGTERM, then tear down."""
    try:
        handle = await launch(port=port, options=options)
    except ReadinessTimeoutError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        if e.handle is not None:
            await e.handle.stop()
        return 1
    except LaunchError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        return 1

    console.print(
        Panel(
            f"DynamoDB Local ready at [cyan]{handle.url}[/cyan]\n"
            f"Workspace: {handle.workspace}\n"
            f"Container: {(handle.container_id or 'unknown')[:12]}\n\n"
            "Press Ctrl-C to stop",
            title="ddblocal",
            border_style="green",
        )
    )

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop_requested.set)

    try:
        await stop_requested.wait()
    finally:
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(signum)
        console.print("Stopping...")
        await handle.stop()

    if handle.teardown_errors:
        console.print(f"[yellow]Teardown finished with {len(handle.teardown_errors)} error(s)[/yellow]")
        return 1
    console.print("[green]Stopped[/green]")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)

    if argv and argv[0] == SUPERVISOR_COMMAND:
        from .services.supervisor.entry import main as supervisor_main

        return supervisor_main(argv)

    args = build_parser().parse_args(argv)
    setup_logging()

    if args.command == "run":
        return asyncio.run(run_until_interrupted(args.port, args.options))
    return 2


if __name__ == "__main__":
    sys.exit(main())
