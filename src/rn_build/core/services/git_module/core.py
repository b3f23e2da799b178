import asyncio
from pathlib import Path
from typing import List

from git import (
    Repo as GitRepo,
    GitCommandError,
)

from ...models import TransportMode
from .models import ClonedRepo
from .utils import PathLike, is_transport_failure, redact, strip_credentials
from .exceptions import GitCloneError, GitCheckoutError


class GitSource:
    """
    Version control collaborator of the build pipeline (GitPython).

    - clone(remote, dest, transport)  : full clone of the remote into dest;
    - checkout_branch(repo, branch)   : check out origin/<branch> as a local branch.

    Both run GitPython in a worker thread so the event loop keeps serving
    the build number request while git works.
    """

    async def clone(
        self,
        remote: str,
        dest: PathLike,
        transport: TransportMode,
    ) -> ClonedRepo:
        """
        :param remote: URL of the remote, already shaped for the transport.
        :param dest:   Empty directory to clone into.
        :raises GitCloneError: on any clone failure, transport_failure tells
                               whether the transport itself was at fault.
        """
        return await asyncio.to_thread(self._clone, remote, Path(dest), transport)

    def _clone(self, remote: str, dest: Path, transport: TransportMode) -> ClonedRepo:
        logs: List[str] = [f"Cloning {redact(remote)} into {dest}"]
        try:
            repo_obj = GitRepo.clone_from(remote, dest)
            # git keeps the clone URL in .git/config, which outlives a quiet cleanup
            public = strip_credentials(remote)
            if public != remote:
                repo_obj.remotes.origin.set_url(public)
        except GitCommandError as e:
            output = f"{e.stderr or ''} {e.stdout or ''}"
            logs.append("GitPython: clone_from failed.")
            logs.append(redact(output.strip()))
            raise GitCloneError(
                repository=redact(remote),
                transport=transport,
                transport_failure=(
                    transport == TransportMode.ssh and is_transport_failure(output)
                ),
                logs=logs,
            )
        logs.append(f"Repository cloned into {dest}")
        return ClonedRepo(
            repo_path=dest,
            transport=transport,
            handle=repo_obj,
            logs=logs,
        )

    async def checkout_branch(self, repo: ClonedRepo, branch: str) -> ClonedRepo:
        """
        :raises GitCheckoutError: when origin/<branch> is missing or checkout fails.
        """
        return await asyncio.to_thread(self._checkout_branch, repo, branch)

    def _checkout_branch(self, repo: ClonedRepo, branch: str) -> ClonedRepo:
        repo_obj: GitRepo = repo.handle
        try:
            remote_ref = repo_obj.remotes.origin.refs[branch]
        except (IndexError, AttributeError):
            raise GitCheckoutError(branch=branch, logs=[f"origin/{branch} not found"])
        try:
            repo_obj.git.checkout("-B", branch, remote_ref.name)
        except GitCommandError as e:
            raise GitCheckoutError(branch=branch, logs=[str(e)])
        repo.logs.append(f"Checked out {remote_ref.name}")
        return repo
