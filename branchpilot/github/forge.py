"""Capability-scoped wrapper around the GitHub API for one organization.

Read operations raise the classified ``GitHubError`` subclasses untouched so
callers can tell "branch absent" from "repository unreadable". Mutating
operations wrap failures in a ``ForgeOperationError`` subclass naming the
repository, so batch callers can record per-repository outcomes.
"""

import logging
from collections.abc import Awaitable
from typing import Any, TypeVar
from urllib.parse import quote

from .auth import AuthProvider, CredentialStore, PersonalAccessTokenAuth
from .client import GitHubClient, GitHubClientConfig
from .exceptions import (
    BranchDeleteError,
    CodeSearchError,
    ForgeOperationError,
    GitHubError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    PullRequestCloseError,
    PullRequestCommentError,
    PullRequestCreateError,
    PullRequestMergeError,
    PullRequestUpdateError,
)
from .models import (
    BranchRef,
    CodeSearchMatch,
    MergeMethod,
    PullRequest,
    PullRequestSpec,
    Review,
    StatusCheck,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ForgeClient:
    """Per-repository forge primitives for one organization and credential."""

    def __init__(
        self,
        client: GitHubClient,
        organization: str,
        search_max_pages: int = 10,
    ):
        """Initialize forge client.

        Args:
            client: Authenticated GitHub client
            organization: Organization owning the repositories
            search_max_pages: Page ceiling for code search results
        """
        self.client = client
        self.organization = organization
        self.search_max_pages = search_max_pages

    def _repo_path(self, repository: str, *parts: str) -> str:
        return "/".join(["/repos", self.organization, repository, *parts])

    async def _guarded(
        self,
        error_type: type[ForgeOperationError],
        repository: str,
        operation: Awaitable[T],
    ) -> T:
        """Await a mutating call, wrapping GitHub failures for the repository."""
        try:
            return await operation
        except GitHubError as e:
            logger.warning(f"{error_type.operation} failed on {repository}: {e}")
            raise error_type(repository, e) from e

    # Reads

    async def get_branch(self, repository: str, branch: str) -> BranchRef:
        """Look up a branch.

        Raises:
            GitHubNotFoundError: If the repository has no such branch
        """
        data = await self.client.get(
            self._repo_path(repository, "branches", quote(branch, safe="/"))
        )
        return BranchRef.from_api(data)

    async def list_status_checks(self, repository: str, ref: str) -> list[StatusCheck]:
        """List every commit status reported for a ref (newest first)."""
        paginator = self.client.paginate(
            self._repo_path(repository, "commits", quote(ref, safe="/"), "statuses")
        )
        return [StatusCheck.from_api(item) async for item in paginator]

    async def find_open_pull_request(
        self, repository: str, branch: str
    ) -> PullRequest | None:
        """Find the open pull request whose head is the branch.

        Returns:
            The first matching open pull request, or None when there is none
        """
        paginator = self.client.paginate(
            self._repo_path(repository, "pulls"),
            params={"state": "open", "head": f"{self.organization}:{branch}"},
        )
        async for item in paginator:
            if item.get("head", {}).get("ref") == branch:
                return PullRequest.from_api(item)
        return None

    async def list_reviews(
        self, repository: str, pull_request: PullRequest | None
    ) -> list[Review]:
        """List the reviews of a pull request, oldest first."""
        if pull_request is None:
            return []

        paginator = self.client.paginate(
            self._repo_path(repository, "pulls", str(pull_request.number), "reviews")
        )
        reviews = [Review.from_api(item) async for item in paginator]
        return [review for review in reviews if review is not None]

    async def get_default_branch(self, repository: str) -> str:
        """Return the repository's default branch name."""
        data = await self.client.get(self._repo_path(repository))
        return str(data.get("default_branch") or "master")

    async def get_issue_title(self, repository: str, number: int) -> str | None:
        """Return an issue's title, or None when the issue does not exist."""
        try:
            data = await self.client.get(
                self._repo_path(repository, "issues", str(number))
            )
        except GitHubNotFoundError:
            return None
        return data.get("title")

    async def search_code_across_org(
        self, query: str, max_pages: int | None = None
    ) -> dict[str, list[CodeSearchMatch]]:
        """Search code in every repository of the organization.

        Args:
            query: Search terms (the organization qualifier is added)
            max_pages: Page ceiling, defaults to ``search_max_pages``

        Returns:
            Matches grouped by repository name

        Raises:
            GitHubRateLimitError: On primary or secondary search rate limits
            CodeSearchError: On any other failure
        """
        paginator = self.client.paginate(
            "/search/code",
            params={"q": f"{query} org:{self.organization}"},
            max_pages=max_pages or self.search_max_pages,
            items_key="items",
            resource="search",
        )

        matches: dict[str, list[CodeSearchMatch]] = {}
        try:
            async for item in paginator:
                match = CodeSearchMatch.from_api(item)
                matches.setdefault(match.repository, []).append(match)
        except GitHubRateLimitError:
            raise
        except GitHubError as e:
            raise CodeSearchError(self.organization, e) from e

        return matches

    # Mutations

    async def create_pull_request(
        self, repository: str, spec: PullRequestSpec
    ) -> PullRequest:
        """Open a pull request."""
        data = await self._guarded(
            PullRequestCreateError,
            repository,
            self.client.post(self._repo_path(repository, "pulls"), spec.to_payload()),
        )
        return PullRequest.from_api(data)

    async def update_pull_request(
        self, repository: str, number: int, **patch: Any
    ) -> PullRequest:
        """Patch pull request fields (body, title, state, base)."""
        data = await self._guarded(
            PullRequestUpdateError,
            repository,
            self.client.patch(self._repo_path(repository, "pulls", str(number)), patch),
        )
        return PullRequest.from_api(data)

    async def merge_pull_request(
        self, repository: str, number: int, method: MergeMethod = MergeMethod.SQUASH
    ) -> dict[str, Any]:
        """Merge a pull request."""
        data: dict[str, Any] = await self._guarded(
            PullRequestMergeError,
            repository,
            self.client.put(
                self._repo_path(repository, "pulls", str(number), "merge"),
                {"merge_method": MergeMethod(method).value},
            ),
        )
        return data

    async def close_pull_request(self, repository: str, number: int) -> PullRequest:
        """Close a pull request without merging."""
        data = await self._guarded(
            PullRequestCloseError,
            repository,
            self.client.patch(
                self._repo_path(repository, "pulls", str(number)), {"state": "closed"}
            ),
        )
        return PullRequest.from_api(data)

    async def delete_branch(self, repository: str, branch: str) -> None:
        """Delete a branch ref."""
        await self._guarded(
            BranchDeleteError,
            repository,
            self.client.delete(
                self._repo_path(repository, "git", "refs", "heads", quote(branch, safe="/"))
            ),
        )

    async def comment_on_pull_request(
        self, repository: str, number: int, body: str
    ) -> dict[str, Any]:
        """Leave a COMMENT review on a pull request."""
        data: dict[str, Any] = await self._guarded(
            PullRequestCommentError,
            repository,
            self.client.post(
                self._repo_path(repository, "pulls", str(number), "reviews"),
                {"body": body, "event": "COMMENT"},
            ),
        )
        return data

    async def comment_on_issue(
        self, repository: str, number: int, body: str
    ) -> dict[str, Any]:
        """Add a comment to an issue."""
        data: dict[str, Any] = await self._guarded(
            PullRequestCommentError,
            repository,
            self.client.post(
                self._repo_path(repository, "issues", str(number), "comments"),
                {"body": body},
            ),
        )
        return data


class ForgeClientPool:
    """Resolves the forge client to use for an acting user.

    A user with a stored token gets a client authenticated as themselves;
    everyone else shares the default (service) credential. Clients are
    cached per credential and closed together.
    """

    def __init__(
        self,
        default_auth: AuthProvider,
        organization: str,
        client_config: GitHubClientConfig | None = None,
        credential_store: CredentialStore | None = None,
        search_max_pages: int = 10,
    ):
        """Initialize pool.

        Args:
            default_auth: Service credential
            organization: Organization owning the repositories
            client_config: Shared HTTP client configuration
            credential_store: Per-user token lookup
            search_max_pages: Page ceiling for code search
        """
        self.default_auth = default_auth
        self.organization = organization
        self.client_config = client_config or GitHubClientConfig()
        self.credential_store = credential_store
        self.search_max_pages = search_max_pages
        self._clients: dict[str, ForgeClient] = {}

    async def for_user(self, user: str | None = None) -> ForgeClient:
        """Return the forge client for a user (or the service credential)."""
        auth = self.default_auth
        if user and self.credential_store is not None:
            token = await self.credential_store.get_user_token(user)
            if token:
                auth = PersonalAccessTokenAuth(token)
            else:
                logger.debug(f"No stored credential for {user}, using default")

        forge = self._clients.get(auth.cache_key)
        if forge is None:
            forge = ForgeClient(
                GitHubClient(auth, self.client_config),
                self.organization,
                self.search_max_pages,
            )
            self._clients[auth.cache_key] = forge
        return forge

    async def close(self) -> None:
        """Close every pooled HTTP session."""
        for forge in self._clients.values():
            await forge.client.close()
        self._clients.clear()
