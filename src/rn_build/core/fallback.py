from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..exception import CLIException
from .ledger import Ledger
from .models import BuildConfig, PipelineContext, TransportMode
from .services.git_module import (
    ClonedRepo,
    GitCheckoutError,
    GitCloneError,
    GitExceptions,
    GitSource,
    remote_url,
)


class FallbackExhausted(CLIException):
    """The first attempt failed and the single retry failed or was not allowed."""


class FallbackResolver:
    """
    The two bounded retries of a build: SSH -> HTTPS for the clone,
    requested branch -> default branch for the checkout.

    Each retry is tracked by a FallbackPolicy on the context and is taken
    at most once per run. The first failure is always reported as a warning.
    """

    def __init__(self, context: PipelineContext, ledger: Ledger, git: GitSource) -> None:
        self.context = context
        self.ledger = ledger
        self.git = git

    def _show_logs(self, error: GitExceptions) -> None:
        for line in error.logs:
            self.ledger.info(line)

    async def clone(self, config: BuildConfig, dest: Path) -> ClonedRepo:
        """
        :raises FallbackExhausted: when no transport could clone the repository.
        """
        policy = self.context.transport_fallback
        try:
            return await self.git.clone(
                remote_url(config.host, config.repo, TransportMode.ssh),
                dest,
                TransportMode.ssh,
            )
        except GitCloneError as e:
            if not (e.transport_failure and policy.allow()):
                self._show_logs(e)
                raise FallbackExhausted(description=f"Could not clone repository {config.repo}")
        policy.consume()
        self.ledger.warn("SSH clone failed, falling back to HTTPS")

        credentials = config.github.credentials
        if credentials is None or not credentials.complete:
            raise FallbackExhausted(description="Cannot use HTTPS auth without user and password")
        self.ledger.info(f"Cloning repository {config.repo} over HTTPS")
        try:
            return await self.git.clone(
                remote_url(config.host, config.repo, TransportMode.https, credentials),
                dest,
                TransportMode.https,
            )
        except GitCloneError as e:
            self._show_logs(e)
            raise FallbackExhausted(
                description=f"Could not clone repository {config.repo} with provided credentials"
            )

    async def checkout(
        self,
        repo: ClonedRepo,
        branch: str,
        default_branch: str,
    ) -> str:
        """
        Checks out branch, or default_branch once if branch is missing.

        Returns the branch actually checked out.
        :raises FallbackExhausted: when neither branch could be checked out.
        """
        policy = self.context.branch_fallback
        failed: Optional[str] = None
        while True:
            self.ledger.info(f"Checking out branch {branch}")
            try:
                await self.git.checkout_branch(repo, branch)
                return branch
            except GitCheckoutError:
                failed = branch
            if failed == default_branch or not policy.allow():
                raise FallbackExhausted(description=f"Failed to checkout {failed} branch")
            policy.consume()
            self.ledger.warn(f"Failed to checkout branch {failed}, falling back to {default_branch}")
            branch = default_branch
