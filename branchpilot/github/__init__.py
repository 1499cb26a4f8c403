"""GitHub forge adapter package."""

from .auth import (
    AuthProvider,
    AuthToken,
    CredentialStore,
    GitHubAppAuth,
    PersonalAccessTokenAuth,
    StaticCredentialStore,
    TokenAuth,
)
from .client import GitHubClient, GitHubClientConfig, GitHubResponse
from .exceptions import (
    BranchDeleteError,
    BranchReadError,
    CodeSearchError,
    ForgeErrorKind,
    ForgeOperationError,
    GitHubAuthenticationError,
    GitHubConnectionError,
    GitHubError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubServerError,
    GitHubTimeoutError,
    GitHubValidationError,
    PullRequestCloseError,
    PullRequestCommentError,
    PullRequestCreateError,
    PullRequestMergeError,
    PullRequestUpdateError,
    classify_error,
)
from .forge import ForgeClient, ForgeClientPool
from .models import (
    BranchRef,
    CheckState,
    CodeSearchMatch,
    MergeMethod,
    PullRequest,
    PullRequestSpec,
    PullRequestState,
    Review,
    ReviewState,
    StatusCheck,
)
from .pagination import AsyncPaginator, LinkHeader, PaginatedResponse
from .rate_limiting import CircuitBreaker, RateLimitInfo, RateLimitManager

__all__ = [
    "AsyncPaginator",
    "AuthProvider",
    "AuthToken",
    "BranchDeleteError",
    "BranchReadError",
    "BranchRef",
    "CheckState",
    "CircuitBreaker",
    "CodeSearchError",
    "CodeSearchMatch",
    "CredentialStore",
    "ForgeClient",
    "ForgeClientPool",
    "ForgeErrorKind",
    "ForgeOperationError",
    "GitHubAppAuth",
    "GitHubAuthenticationError",
    "GitHubClient",
    "GitHubClientConfig",
    "GitHubConnectionError",
    "GitHubError",
    "GitHubNotFoundError",
    "GitHubRateLimitError",
    "GitHubResponse",
    "GitHubServerError",
    "GitHubTimeoutError",
    "GitHubValidationError",
    "LinkHeader",
    "MergeMethod",
    "PaginatedResponse",
    "PersonalAccessTokenAuth",
    "PullRequest",
    "PullRequestCloseError",
    "PullRequestCommentError",
    "PullRequestCreateError",
    "PullRequestMergeError",
    "PullRequestSpec",
    "PullRequestState",
    "PullRequestUpdateError",
    "RateLimitInfo",
    "RateLimitManager",
    "Review",
    "ReviewState",
    "StaticCredentialStore",
    "StatusCheck",
    "TokenAuth",
    "classify_error",
]
