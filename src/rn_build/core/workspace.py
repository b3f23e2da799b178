import asyncio
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from ..exception import CLIException
from .config import BASE_TEMP_DIR
from .models import Workspace
from .services.git_module.utils import PathLike, ensure_base_temp_dir, on_rm_error


class WorkspaceError(CLIException):
    def __init__(self, path: PathLike, action: str) -> None:
        super().__init__(description=f"Could not {action} {path}")
        self.path = Path(path)
        self.action = action


class WorkspaceManager:
    """
    Owns the temporary directory of one build run.

    allocate() creates <base>/<prefix>/<unique>/ and release() removes it again.
    In quiet mode only the source directory is removed, so build.log survives.
    """

    def __init__(self, base_dir: PathLike = BASE_TEMP_DIR) -> None:
        self.base_dir = Path(base_dir)
        self.active: Optional[Workspace] = None

    async def allocate(self, prefix: str, src_dir: str) -> Workspace:
        """
        :raises WorkspaceError: if the root or the unique directory cannot be created.
        """
        return await asyncio.to_thread(self._allocate, prefix, src_dir)

    def _allocate(self, prefix: str, src_dir: str) -> Workspace:
        root = self.base_dir / prefix
        try:
            ensure_base_temp_dir(root)
        except OSError:
            raise WorkspaceError(root, "create root build directory")
        try:
            path = Path(tempfile.mkdtemp(dir=root))
        except OSError:
            raise WorkspaceError(root, "create build directory in")
        self.active = Workspace(root=path, source=path / src_dir)
        return self.active

    async def release(self, workspace: Workspace, quiet: bool) -> Path:
        """
        Removes the workspace (or just its source directory in quiet mode).

        Returns the removed path.
        :raises WorkspaceError: when removal fails.
        """
        target = workspace.source if quiet else workspace.root
        try:
            await asyncio.to_thread(self._remove, target)
        except OSError:
            raise WorkspaceError(target, "remove")
        if not quiet and self.active is workspace:
            self.active = None
        return target

    @staticmethod
    def _remove(target: Path) -> None:
        if target.exists():
            shutil.rmtree(target, onerror=on_rm_error)
