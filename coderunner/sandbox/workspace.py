"""
Ephemeral per-request workspaces.

A workspace is a uniquely named temp directory holding the submitted files.
It belongs to exactly one request and is removed on every exit path; use
``WorkspaceManager.session`` rather than pairing ``acquire``/``release`` by hand.
"""

from __future__ import annotations

import asyncio
import shutil
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path, PurePosixPath
from typing import AsyncIterator, Mapping

from structlog import get_logger

from coderunner.errors import InvalidFileName
from coderunner.sandbox.models import Workspace

logger = get_logger()


def check_filename(name: str) -> PurePosixPath:
    """Return *name* as a relative path, rejecting anything that leaves the root."""
    if not name or "\x00" in name or "\\" in name:
        raise InvalidFileName(name)
    path = PurePosixPath(name)
    if path.is_absolute() or ".." in path.parts:
        raise InvalidFileName(name)
    # "./a.js" and "a.js" refer to the same file
    parts = [part for part in path.parts if part != "."]
    if not parts:
        raise InvalidFileName(name)
    return PurePosixPath(*parts)


class WorkspaceManager:
    """Creates, fills and removes request workspaces."""

    def __init__(self, root: str | Path | None = None, prefix: str = "exec-") -> None:
        self._root = Path(root) if root else None
        self._prefix = prefix

    def acquire(self, request_id: str) -> Workspace:
        """Create an empty, uniquely named workspace directory."""
        if self._root is not None:
            self._root.mkdir(parents=True, exist_ok=True)
        path = tempfile.mkdtemp(prefix=f"{self._prefix}{request_id}-", dir=self._root)
        logger.debug("Workspace acquired", path=path)
        return Workspace(request_id=request_id, root_path=Path(path))

    def materialize(self, workspace: Workspace, files: Mapping[str, str]) -> None:
        """Write *files* under the workspace root."""
        root = workspace.root_path.resolve()
        for name, content in files.items():
            relative = check_filename(name)
            target = (root / relative).resolve()
            if root not in target.parents:
                raise InvalidFileName(name)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
            workspace.files[str(relative)] = content

    def release(self, workspace: Workspace) -> None:
        """Remove the workspace tree. Failures are logged, never raised."""
        try:
            shutil.rmtree(workspace.root_path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning(
                "Failed to remove workspace",
                path=str(workspace.root_path),
                error=str(exc),
            )
        else:
            logger.debug("Workspace released", path=str(workspace.root_path))

    @asynccontextmanager
    async def session(
        self, request_id: str, files: Mapping[str, str]
    ) -> AsyncIterator[Workspace]:
        """Acquire and fill a workspace; release it however the block exits."""
        workspace = await asyncio.to_thread(self.acquire, request_id)
        try:
            await asyncio.to_thread(self.materialize, workspace, files)
            yield workspace
        finally:
            await asyncio.to_thread(self.release, workspace)
