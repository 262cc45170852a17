"""pytest plugin providing a session-wide DynamoDB Local instance.

The handle lives on a private event loop so that synchronous and async test
suites can both use it.
"""

import asyncio
from typing import Iterator, Optional

import pytest

from .models.errors import ReadinessTimeoutError
from .services.handle import LifecycleHandle
from .services.orchestrator import launch


def pytest_addoption(parser):
    group = parser.getgroup("ddblocal")
    group.addoption(
        "--ddblocal-port",
        action="store",
        type=int,
        default=None,
        help="Port for the dynamodb_local fixture (defaults to DDBLOCAL_PORT / 8000)",
    )


def session_instance(port: Optional[int] = None) -> Iterator[LifecycleHandle]:
    """Launch on a private loop, yield the handle, stop it when resumed.

    An instance that missed its readiness deadline is stopped before the
    error propagates.
    """
    loop = asyncio.new_event_loop()
    try:
        try:
            handle = loop.run_until_complete(launch(port=port))
        except ReadinessTimeoutError as e:
            if e.handle is not None:
                loop.run_until_complete(e.handle.stop())
            raise
        try:
            yield handle
        finally:
            loop.run_until_complete(handle.stop())
    finally:
        loop.close()


@pytest.fixture(scope="session")
def dynamodb_local(request):
    """A running DynamoDB Local instance; ``.url`` is its endpoint."""
    yield from session_instance(request.config.getoption("ddblocal_port"))
