from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List

from ...models import TransportMode


@dataclass
class ClonedRepo:
    """
    Handle of a freshly cloned repository.

    repo_path : working tree root
    transport : transport the clone finally succeeded with
    handle    : the underlying GitPython Repo
    logs      : step log of the clone
    """

    repo_path: Path
    transport: TransportMode
    handle: Any = None
    logs: List[str] = field(default_factory=list)

    def close(self) -> None:
        """
        Releases the GitPython handle so no file stays locked before cleanup.
        """
        if self.handle is not None:
            self.handle.close()
            self.handle = None
