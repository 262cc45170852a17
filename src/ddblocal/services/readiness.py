"""Readiness checks for a launched DynamoDB Local instance.

Readiness is two-staged: the service port must accept TCP connections, and
the service must answer a ListTables request. Both stages race against the
supervisor process exiting, and the race result is a ReadinessOutcome tag.
"""

import asyncio
from typing import Any, Awaitable, List, Optional, Tuple, TypeVar

import httpx
import structlog

from ..models.errors import ProbeError
from ..models.launch import ReadinessOutcome

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# DynamoDB JSON protocol
LIST_TABLES_TARGET = "DynamoDB_20120810.ListTables"
DYNAMODB_CONTENT_TYPE = "application/x-amz-json-1.0"
# DynamoDB Local requires a well-formed SigV4 header but does not verify it
PLACEHOLDER_AUTHORIZATION = (
    "AWS4-HMAC-SHA256 Credential=ddblocal/20240101/us-east-1/dynamodb/aws4_request, "
    "SignedHeaders=content-type;host;x-amz-target, Signature=0"
)


async def is_port_open(host: str, port: int, timeout: float = 1.0) -> bool:
    """Try one TCP connection to host:port."""
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout)
    except (OSError, asyncio.TimeoutError):
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


async def poll_port(host: str, port: int, interval: float) -> None:
    """Return once host:port accepts a connection."""
    attempts = 0
    while not await is_port_open(host, port):
        attempts += 1
        await asyncio.sleep(interval)
    logger.debug("Port reachable", host=host, port=port, attempts=attempts + 1)


async def race_with_exit(
    work: Awaitable[T],
    process_exited: Awaitable[Any],
    timeout: float,
) -> Tuple[ReadinessOutcome, Optional[T]]:
    """Run ``work`` against the supervisor exiting and a deadline.

    Exceptions raised by ``work`` propagate unchanged.

    Returns:
        (READY, result), (PROCESS_EXITED, None) or (TIMEOUT, None)
    """
    work_task = asyncio.ensure_future(work)
    exit_task = asyncio.ensure_future(process_exited)
    try:
        done, _ = await asyncio.wait(
            {work_task, exit_task},
            timeout=max(timeout, 0.0),
            return_when=asyncio.FIRST_COMPLETED,
        )
    finally:
        for task in (work_task, exit_task):
            if not task.done():
                task.cancel()
        await asyncio.gather(work_task, exit_task, return_exceptions=True)

    if work_task in done:
        return ReadinessOutcome.READY, work_task.result()
    if exit_task in done:
        return ReadinessOutcome.PROCESS_EXITED, None
    return ReadinessOutcome.TIMEOUT, None


async def wait_until_reachable(
    host: str,
    port: int,
    process_exited: Awaitable[Any],
    timeout: float,
    interval: float = 0.25,
) -> ReadinessOutcome:
    """Wait for the port to open, unless the supervisor exits first."""
    outcome, _ = await race_with_exit(poll_port(host, port, interval), process_exited, timeout)
    return outcome


class DynamoDBProbe:
    """Application-level sanity check against a DynamoDB endpoint."""

    def __init__(
        self,
        endpoint_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the probe.

        Args:
            endpoint_url: Service endpoint, e.g. http://localhost:8000
            timeout: Per-request timeout in seconds
            client: Optional preconfigured HTTP client (closed by close())
        """
        self.endpoint_url = endpoint_url
        self.client = client or httpx.AsyncClient(
            base_url=endpoint_url,
            timeout=httpx.Timeout(timeout=float(timeout)),
        )

    async def list_tables(self) -> List[str]:
        """Issue one ListTables request.

        Returns:
            Table names reported by the service

        Raises:
            ProbeError: If the service answers with an error or malformed body
            httpx.TransportError: If the service cannot be reached
        """
        response = await self.client.post(
            "/",
            content=b"{}",
            headers={
                "Content-Type": DYNAMODB_CONTENT_TYPE,
                "X-Amz-Target": LIST_TABLES_TARGET,
                "Authorization": PLACEHOLDER_AUTHORIZATION,
            },
        )

        if response.status_code != 200:
            raise ProbeError(
                f"ListTables failed with HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ProbeError(f"ListTables returned a non-JSON body: {response.text[:200]}") from e

        tables = body.get("TableNames") if isinstance(body, dict) else None
        if not isinstance(tables, list):
            raise ProbeError(f"ListTables response has no TableNames list: {body!r}")
        return tables

    async def wait_until_answering(self, interval: float = 0.25) -> List[str]:
        """Repeat ListTables while the endpoint is still unreachable.

        A forwarding proxy can accept TCP before the service listens, so
        transport errors are retried; any other failure propagates.
        """
        while True:
            try:
                return await self.list_tables()
            except httpx.TransportError as e:
                logger.debug("Endpoint not answering yet", endpoint=self.endpoint_url, error=str(e))
                await asyncio.sleep(interval)

    async def close(self) -> None:
        await self.client.aclose()
