"""Exceptions raised by branch aggregation and orchestration."""

from collections.abc import Mapping


class BranchPilotError(Exception):
    """Base exception for branch operations."""

    pass


class CatalogUnavailableError(BranchPilotError):
    """The list of candidate repositories could not be obtained."""

    def __init__(self, message: str, cause: BaseException | None = None):
        """Initialize catalog error.

        Args:
            message: Error message
            cause: Underlying exception, if any
        """
        super().__init__(message)
        self.cause = cause


class PartialFailureError(BranchPilotError):
    """A best-effort batch operation failed on some repositories."""

    def __init__(
        self,
        operation: str,
        succeeded: list[str],
        failed: Mapping[str, BaseException],
    ):
        """Initialize partial failure error.

        Args:
            operation: Name of the batch operation
            succeeded: Repositories where the operation succeeded
            failed: Cause of failure per repository
        """
        names = ", ".join(sorted(failed))
        super().__init__(f"{operation} failed on {len(failed)} repositories: {names}")
        self.operation = operation
        self.succeeded = list(succeeded)
        self.failed = dict(failed)


class MissingPullRequestError(BranchPilotError):
    """A pull request operation was attempted on a repository without one."""

    def __init__(self, repository: str, branch: str):
        super().__init__(f"No open pull request for {branch} in {repository}")
        self.repository = repository
        self.branch = branch
