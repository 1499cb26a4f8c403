"""GitHub API client exceptions and forge error classification."""

from enum import Enum
from typing import Any


class GitHubError(Exception):
    """Base exception for GitHub API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_data: dict[str, Any] | None = None,
    ):
        """Initialize GitHub error.

        Args:
            message: Error message
            status_code: HTTP status code
            response_data: Response data from GitHub API
        """
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data or {}


class GitHubAuthenticationError(GitHubError):
    """Raised when authentication fails or the credential lacks access."""

    pass


class GitHubRateLimitError(GitHubError):
    """Raised when a primary or secondary rate limit is exceeded."""

    def __init__(
        self,
        message: str,
        reset_time: int | None = None,
        remaining: int = 0,
        limit: int = 0,
        status_code: int | None = None,
    ):
        """Initialize rate limit error.

        Args:
            message: Error message
            reset_time: Unix timestamp when rate limit resets
            remaining: Remaining API calls
            limit: Total rate limit
            status_code: HTTP status code (403 or 429) when raised from a response
        """
        super().__init__(message, status_code)
        self.reset_time = reset_time
        self.remaining = remaining
        self.limit = limit


class GitHubNotFoundError(GitHubError):
    """Raised when resource is not found."""

    pass


class GitHubValidationError(GitHubError):
    """Raised when request validation fails."""

    pass


class GitHubServerError(GitHubError):
    """Raised when GitHub server returns 5xx error."""

    pass


class GitHubConnectionError(GitHubError):
    """Raised when connection to GitHub fails."""

    pass


class GitHubTimeoutError(GitHubError):
    """Raised when request times out."""

    pass


class ForgeErrorKind(str, Enum):
    """Classification every forge failure is reduced to."""

    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    OTHER = "other"


def classify_error(error: BaseException) -> ForgeErrorKind:
    """Classify a failure raised by the forge transport.

    Args:
        error: Exception raised by a client call

    Returns:
        Exactly one ForgeErrorKind
    """
    if isinstance(error, ForgeOperationError):
        return error.kind
    if isinstance(error, GitHubNotFoundError):
        return ForgeErrorKind.NOT_FOUND
    if isinstance(error, GitHubRateLimitError):
        return ForgeErrorKind.RATE_LIMITED
    if isinstance(error, GitHubAuthenticationError):
        return ForgeErrorKind.UNAUTHORIZED
    return ForgeErrorKind.OTHER


class ForgeOperationError(Exception):
    """A forge operation failed for one repository.

    Carries the repository name and the underlying cause so the calling
    layer can report which repository failed and why.
    """

    operation = "operation"

    def __init__(self, repository: str, cause: BaseException):
        """Initialize operation error.

        Args:
            repository: Repository the operation targeted
            cause: Underlying exception
        """
        super().__init__(f"{self.operation} failed on {repository}: {cause}")
        self.repository = repository
        self.cause = cause

    @property
    def kind(self) -> ForgeErrorKind:
        """Classification of the underlying cause."""
        return classify_error(self.cause)

    @property
    def detail(self) -> str:
        """Human-readable detail of the underlying cause."""
        return str(self.cause) or type(self.cause).__name__


class BranchReadError(ForgeOperationError):
    """Reading branch, status, pull request or review data failed."""

    operation = "Branch read"


class PullRequestCreateError(ForgeOperationError):
    """Pull request creation failed."""

    operation = "Pull request creation"


class PullRequestUpdateError(ForgeOperationError):
    """Pull request update failed."""

    operation = "Pull request update"


class PullRequestMergeError(ForgeOperationError):
    """Pull request merge failed."""

    operation = "Pull request merge"


class PullRequestCloseError(ForgeOperationError):
    """Pull request close failed."""

    operation = "Pull request close"


class PullRequestCommentError(ForgeOperationError):
    """Commenting on a pull request or issue failed."""

    operation = "Comment"


class BranchDeleteError(ForgeOperationError):
    """Branch deletion failed."""

    operation = "Branch deletion"


class CodeSearchError(ForgeOperationError):
    """Organization-wide code search failed for a reason other than rate limiting."""

    operation = "Code search"
