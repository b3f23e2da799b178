from typing import List, Optional

from ....exception import CLIException
from ...models import TransportMode


class GitExceptions(CLIException):
    """
    Base error for version control work.

    Keeps the log lines collected while the operation ran.
    """

    def __init__(
        self,
        *args,
        description: str = "Something happend when work with Git",
        logs: Optional[List[str]] = None,
    ) -> None:
        super().__init__(*args, description=description)
        self.logs: List[str] = logs or []


class GitCloneError(GitExceptions):
    """
    Cloning the remote failed.

    transport_failure is set when the failure came from the transport itself
    (SSH agent, key, host verification) rather than from the repository.
    """

    def __init__(
        self,
        repository: str,
        transport: TransportMode,
        transport_failure: bool = False,
        logs: Optional[List[str]] = None,
        *args,
    ) -> None:
        description = f"Error to clone repository {repository} over {transport.value}"
        super().__init__(*args, description=description, logs=logs)
        self.repository = repository
        self.transport = transport
        self.transport_failure = transport_failure


class GitCheckoutError(GitExceptions):
    """
    The requested branch does not exist on origin or could not be checked out.
    """

    def __init__(
        self,
        branch: str,
        logs: Optional[List[str]] = None,
        *args,
    ) -> None:
        description = f"Error to checkout branch {branch}"
        super().__init__(*args, description=description, logs=logs)
        self.branch = branch
