"""Temporary workspace allocation for one DynamoDB Local instance.

Each instance gets ``<root>/run-<unique>/{data,logs}``. The data directory
is bind-mounted into the container, so the tree may end up holding files
written by the container's user.
"""

import asyncio
import os
import shutil
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import structlog

from ..models.errors import WorkspaceError
from ..utils.async_helpers import run_in_executor

logger = structlog.get_logger(__name__)

RUN_PREFIX = "run-"


@dataclass(frozen=True)
class Workspace:
    """Handle for an allocated workspace tree."""

    path: Path
    data_dir: Path
    logs_dir: Path

    @property
    def suffix(self) -> str:
        """Unique part of the directory name."""
        return self.path.name[len(RUN_PREFIX):]

    async def cleanup(self) -> None:
        """Remove the whole tree. Removing an absent tree is a no-op."""
        await run_in_executor(_remove_tree, self.path)
        logger.debug("Removed workspace", workspace=str(self.path))


async def create_workspace(root: Union[str, Path]) -> Workspace:
    """Allocate a fresh, uniquely named workspace under ``root``.

    Args:
        root: Directory under which run-* trees are created (made if missing)

    Returns:
        Workspace with data and logs subdirectories in place

    Raises:
        WorkspaceError: If root cannot be created or is not writable
    """
    root = Path(root)
    try:
        await run_in_executor(root.mkdir, parents=True, exist_ok=True)
        path = Path(await run_in_executor(tempfile.mkdtemp, prefix=RUN_PREFIX, dir=str(root)))
    except OSError as e:
        logger.error("Workspace root unusable", root=str(root), error=str(e))
        raise WorkspaceError(f"Cannot create workspace under {root}: {e}", path=str(root)) from e

    workspace = Workspace(path=path, data_dir=path / "data", logs_dir=path / "logs")

    try:
        await asyncio.gather(
            run_in_executor(_make_shared_dir, workspace.data_dir),
            run_in_executor(_make_shared_dir, workspace.logs_dir),
        )
    except OSError as e:
        logger.error("Workspace subdirectory creation failed", workspace=str(path), error=str(e))
        await run_in_executor(shutil.rmtree, str(path), True)
        raise WorkspaceError(f"Cannot create workspace subdirectories in {path}: {e}", path=str(path)) from e

    logger.info("Created workspace", workspace=str(path))
    return workspace


def _make_shared_dir(path: Path) -> None:
    path.mkdir()
    # The container runs as its own user; each workspace is private to one run.
    os.chmod(str(path), 0o777)


def _remove_tree(path: Path) -> None:
    if not path.exists():
        return
    try:
        shutil.rmtree(str(path))
        return
    except OSError as first_error:
        logger.debug("Retrying workspace removal with relaxed permissions", workspace=str(path), error=str(first_error))

    _make_tree_writable(path)
    try:
        shutil.rmtree(str(path))
    except OSError as e:
        raise WorkspaceError(f"Cannot remove workspace {path}: {e}", path=str(path)) from e


def _make_tree_writable(path: Path) -> None:
    """Grant owner rwx on every directory we are allowed to chmod."""
    for dirpath, dirnames, _ in os.walk(str(path)):
        for name in [dirpath] + [os.path.join(dirpath, d) for d in dirnames]:
            try:
                mode = os.stat(name).st_mode
                os.chmod(name, mode | stat.S_IRWXU)
            except OSError:
                continue
