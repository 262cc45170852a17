"""Unit tests for workspace allocation and removal."""

import asyncio
import os

import pytest

from ddblocal.models.errors import WorkspaceError
from ddblocal.services.workspace import RUN_PREFIX, create_workspace


class TestCreateWorkspace:
    """Tests for create_workspace."""

    @pytest.mark.asyncio
    async def test_creates_run_tree(self, tmp_path):
        workspace = await create_workspace(tmp_path)

        assert workspace.path.parent == tmp_path
        assert workspace.path.name.startswith(RUN_PREFIX)
        assert workspace.data_dir == workspace.path / "data"
        assert workspace.logs_dir == workspace.path / "logs"
        assert workspace.data_dir.is_dir()
        assert workspace.logs_dir.is_dir()
        assert workspace.suffix
        assert workspace.path.name == RUN_PREFIX + workspace.suffix

    @pytest.mark.asyncio
    async def test_subdirectories_are_shared(self, tmp_path):
        """The container user must be able to write into the bind mount."""
        workspace = await create_workspace(tmp_path)

        assert os.stat(workspace.data_dir).st_mode & 0o777 == 0o777

    @pytest.mark.asyncio
    async def test_creates_missing_root(self, tmp_path):
        root = tmp_path / "a" / "b"

        workspace = await create_workspace(root)

        assert workspace.path.parent == root

    @pytest.mark.asyncio
    async def test_concurrent_allocations_are_distinct(self, tmp_path):
        workspaces = await asyncio.gather(*(create_workspace(tmp_path) for _ in range(8)))

        assert len({w.path for w in workspaces}) == 8

    @pytest.mark.asyncio
    async def test_root_unusable(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")

        with pytest.raises(WorkspaceError) as exc_info:
            await create_workspace(blocker / "sub")

        assert exc_info.value.path == str(blocker / "sub")
        assert list(tmp_path.iterdir()) == [blocker]


class TestWorkspaceCleanup:
    """Tests for Workspace.cleanup."""

    @pytest.mark.asyncio
    async def test_removes_tree(self, tmp_path):
        workspace = await create_workspace(tmp_path)
        (workspace.data_dir / "shared-local-instance.db").write_bytes(b"\x00" * 16)

        await workspace.cleanup()

        assert not workspace.path.exists()

    @pytest.mark.asyncio
    async def test_cleanup_twice_is_noop(self, tmp_path):
        workspace = await create_workspace(tmp_path)

        await workspace.cleanup()
        await workspace.cleanup()

        assert not workspace.path.exists()

    @pytest.mark.asyncio
    async def test_removes_read_only_directories(self, tmp_path):
        workspace = await create_workspace(tmp_path)
        nested = workspace.data_dir / "nested"
        nested.mkdir()
        (nested / "file").write_text("x")
        os.chmod(nested, 0o500)

        try:
            await workspace.cleanup()
        finally:
            if nested.exists():
                os.chmod(nested, 0o700)

        assert not workspace.path.exists()
