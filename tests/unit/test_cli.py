"""Unit tests for the command line entry point."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ddblocal import __main__ as cli
from ddblocal.models.errors import ReadinessTimeoutError, WorkspaceError
from ddblocal.models.launch import SUPERVISOR_COMMAND


class TestParser:
    """Tests for argument parsing."""

    def test_run_arguments(self):
        args = cli.build_parser().parse_args(
            ["run", "--port", "8001", "--option", "a=b", "--option", "c=d"]
        )

        assert args.command == "run"
        assert args.port == 8001
        assert args.options == ["a=b", "c=d"]

    def test_run_defaults(self):
        args = cli.build_parser().parse_args(["run"])

        assert args.port == 8000
        assert args.options is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestMain:
    """Tests for dispatch in main()."""

    def test_supervisor_token_dispatches(self):
        with patch("ddblocal.services.supervisor.entry.main", return_value=0) as supervisor_main:
            assert cli.main([SUPERVISOR_COMMAND, "{}"]) == 0

        supervisor_main.assert_called_once_with([SUPERVISOR_COMMAND, "{}"])


class TestRunUntilInterrupted:
    """Tests for launch failures in the run command."""

    @pytest.mark.asyncio
    async def test_launch_error(self):
        with patch.object(cli, "launch", new=AsyncMock(side_effect=WorkspaceError("no space"))):
            assert await cli.run_until_interrupted(8000, None) == 1

    @pytest.mark.asyncio
    async def test_timeout_stops_instance(self):
        handle = MagicMock()
        handle.stop = AsyncMock()
        error = ReadinessTimeoutError(port=8000, timeout=60, handle=handle)

        with patch.object(cli, "launch", new=AsyncMock(side_effect=error)):
            assert await cli.run_until_interrupted(8000, None) == 1

        handle.stop.assert_awaited_once()
