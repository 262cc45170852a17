"""Unit tests for readiness polling, the exit race and the ListTables probe."""

import asyncio
import json
import socket

import httpx
import pytest

from ddblocal.models.errors import ProbeError
from ddblocal.models.launch import ReadinessOutcome
from ddblocal.services.readiness import (
    LIST_TABLES_TARGET,
    DynamoDBProbe,
    is_port_open,
    race_with_exit,
    wait_until_reachable,
)


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def _start_listener():
    async def _accept(reader, writer):
        writer.close()

    server = await asyncio.start_server(_accept, "127.0.0.1", 0)
    return server, server.sockets[0].getsockname()[1]


async def _never():
    await asyncio.Event().wait()


def _probe(handler) -> DynamoDBProbe:
    client = httpx.AsyncClient(
        base_url="http://localhost:8000", transport=httpx.MockTransport(handler)
    )
    return DynamoDBProbe("http://localhost:8000", client=client)


class TestPortChecks:
    """Tests for TCP reachability."""

    @pytest.mark.asyncio
    async def test_open_port(self):
        server, port = await _start_listener()
        try:
            assert await is_port_open("127.0.0.1", port) is True
        finally:
            server.close()
            await server.wait_closed()

    @pytest.mark.asyncio
    async def test_closed_port(self):
        assert await is_port_open("127.0.0.1", _unused_port()) is False

    @pytest.mark.asyncio
    async def test_reachable(self):
        server, port = await _start_listener()
        try:
            outcome = await wait_until_reachable(
                "127.0.0.1", port, _never(), timeout=5, interval=0.05
            )
        finally:
            server.close()
            await server.wait_closed()

        assert outcome == ReadinessOutcome.READY

    @pytest.mark.asyncio
    async def test_process_exit_wins(self):
        outcome = await wait_until_reachable(
            "127.0.0.1", _unused_port(), asyncio.sleep(0.05), timeout=5, interval=0.05
        )

        assert outcome == ReadinessOutcome.PROCESS_EXITED

    @pytest.mark.asyncio
    async def test_timeout(self):
        outcome = await wait_until_reachable(
            "127.0.0.1", _unused_port(), _never(), timeout=0.3, interval=0.05
        )

        assert outcome == ReadinessOutcome.TIMEOUT


class TestRaceWithExit:
    """Tests for race_with_exit."""

    @pytest.mark.asyncio
    async def test_work_result_returned(self):
        async def _work():
            return ["Music"]

        assert await race_with_exit(_work(), _never(), timeout=1) == (
            ReadinessOutcome.READY,
            ["Music"],
        )

    @pytest.mark.asyncio
    async def test_work_exception_propagates(self):
        async def _work():
            raise ProbeError("bad answer", status_code=500)

        with pytest.raises(ProbeError):
            await race_with_exit(_work(), _never(), timeout=1)

    @pytest.mark.asyncio
    async def test_losers_are_cancelled(self):
        cancelled = asyncio.Event()

        async def _slow():
            try:
                await _never()
            except asyncio.CancelledError:
                cancelled.set()
                raise

        outcome, result = await race_with_exit(_slow(), asyncio.sleep(0), timeout=1)

        assert outcome == ReadinessOutcome.PROCESS_EXITED
        assert result is None
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_expired_deadline(self):
        outcome, _ = await race_with_exit(_never(), _never(), timeout=-1)

        assert outcome == ReadinessOutcome.TIMEOUT


class TestDynamoDBProbe:
    """Tests for the ListTables sanity probe."""

    @pytest.mark.asyncio
    async def test_list_tables(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"TableNames": ["Music"]})

        probe = _probe(handler)
        try:
            assert await probe.list_tables() == ["Music"]
        finally:
            await probe.close()

        request = seen[0]
        assert request.method == "POST"
        assert request.headers["X-Amz-Target"] == LIST_TABLES_TARGET
        assert request.headers["Content-Type"] == "application/x-amz-json-1.0"
        assert request.headers["Authorization"].startswith("AWS4-HMAC-SHA256 ")
        assert json.loads(request.content) == {}

    @pytest.mark.asyncio
    async def test_error_status(self):
        probe = _probe(lambda request: httpx.Response(400, json={"__type": "MissingAuthenticationToken"}))
        try:
            with pytest.raises(ProbeError) as exc_info:
                await probe.list_tables()
        finally:
            await probe.close()

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        probe = _probe(lambda request: httpx.Response(200, text="<html>proxy</html>"))
        try:
            with pytest.raises(ProbeError):
                await probe.list_tables()
        finally:
            await probe.close()

    @pytest.mark.asyncio
    async def test_missing_table_names(self):
        probe = _probe(lambda request: httpx.Response(200, json={"Tables": []}))
        try:
            with pytest.raises(ProbeError):
                await probe.list_tables()
        finally:
            await probe.close()

    @pytest.mark.asyncio
    async def test_retries_until_answering(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"TableNames": []})

        probe = _probe(handler)
        try:
            assert await probe.wait_until_answering(interval=0.01) == []
        finally:
            await probe.close()

        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_error_answer_not_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(500, text="internal")

        probe = _probe(handler)
        try:
            with pytest.raises(ProbeError):
                await probe.wait_until_answering(interval=0.01)
        finally:
            await probe.close()

        assert len(attempts) == 1
