"""GitHub API client with authentication, rate limiting, and pagination."""

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any

import aiohttp

from .auth import AuthProvider
from .exceptions import (
    GitHubAuthenticationError,
    GitHubConnectionError,
    GitHubError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubServerError,
    GitHubTimeoutError,
    GitHubValidationError,
)
from .pagination import AsyncPaginator, PaginatedResponse
from .rate_limiting import CircuitBreaker, RateLimitManager

logger = logging.getLogger(__name__)


@dataclass
class GitHubClientConfig:
    """Configuration for GitHub client."""

    base_url: str = "https://api.github.com"
    timeout: int = 30
    max_retries: int = 3
    retry_backoff_factor: float = 2.0
    core_rate_limit_buffer: int = 100
    user_agent: str = "branchpilot/1.0"
    max_concurrent_requests: int = 10


@dataclass
class GitHubResponse:
    """Decoded GitHub API response."""

    status: int
    data: Any
    headers: dict[str, str]


class GitHubClient:
    """Async GitHub REST client.

    Transient failures (timeouts, connection errors, 5xx) are retried with
    exponential backoff up to ``max_retries`` times. Client errors are
    raised immediately as classified ``GitHubError`` subclasses.
    """

    def __init__(
        self,
        auth: AuthProvider,
        config: GitHubClientConfig | None = None,
    ) -> None:
        """Initialize GitHub client.

        Args:
            auth: Authentication provider
            config: Client configuration
        """
        self.auth = auth
        self.config = config or GitHubClientConfig()
        self.rate_limiter = RateLimitManager(
            buffers={"core": self.config.core_rate_limit_buffer}
        )
        self.circuit_breaker = CircuitBreaker()

        # HTTP session will be initialized on first use
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()
        self._request_semaphore = asyncio.Semaphore(self.config.max_concurrent_requests)

    async def __aenter__(self) -> "GitHubClient":
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure HTTP session is initialized."""
        if self._session is None or self._session.closed:
            async with self._session_lock:
                if self._session is None or self._session.closed:
                    timeout = aiohttp.ClientTimeout(total=self.config.timeout)
                    connector = aiohttp.TCPConnector(limit=100, limit_per_host=30)

                    self._session = aiohttp.ClientSession(
                        timeout=timeout,
                        connector=connector,
                        headers={
                            "User-Agent": self.config.user_agent,
                            "Accept": "application/vnd.github+json",
                            "X-GitHub-Api-Version": "2022-11-28",
                        },
                    )
        return self._session

    async def close(self) -> None:
        """Close HTTP session and cleanup resources."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _url(self, path: str) -> str:
        """Build an absolute API URL from a path."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        resource: str = "core",
    ) -> GitHubResponse:
        """Make HTTP request with retry logic and error handling.

        Args:
            method: HTTP method
            url: Absolute URL or API path
            params: Query parameters
            data: JSON request body
            resource: Rate limit resource the endpoint counts against

        Returns:
            Decoded response

        Raises:
            GitHubError: Classified GitHub API errors
        """
        url = self._url(url)
        correlation_id = str(uuid.uuid4())[:8]

        if not self.circuit_breaker.can_attempt_request():
            wait_time = self.circuit_breaker.get_wait_time()
            raise GitHubConnectionError(
                f"Circuit breaker open. Wait {wait_time:.1f}s before retry."
            )

        self.rate_limiter.check_rate_limit(resource)

        auth_token = await self.auth.get_token()
        request_kwargs: dict[str, Any] = {
            "params": params,
            "headers": auth_token.to_header(),
        }
        if data is not None:
            request_kwargs["json"] = data

        session = await self._ensure_session()

        last_exception: GitHubError | None = None
        for attempt in range(self.config.max_retries + 1):
            try:
                async with self._request_semaphore:
                    start_time = time.monotonic()
                    logger.debug(
                        f"GitHub API request [{correlation_id}] {method} {url} "
                        f"(attempt {attempt + 1})"
                    )

                    async with session.request(method, url, **request_kwargs) as response:
                        headers = dict(response.headers)
                        self.rate_limiter.update_rate_limit(headers)
                        body = await response.text()

                    logger.debug(
                        f"GitHub API response [{correlation_id}] "
                        f"{response.status} in {time.monotonic() - start_time:.2f}s"
                    )

                if response.status < 300:
                    self.circuit_breaker.record_success()
                    return GitHubResponse(
                        status=response.status,
                        data=json.loads(body) if body else None,
                        headers=headers,
                    )

                self._raise_for_status(response.status, body, headers, correlation_id)

            except GitHubServerError as e:
                last_exception = e
                self.circuit_breaker.record_failure()

            except TimeoutError:
                last_exception = GitHubTimeoutError(
                    f"Request timeout for {method} {url}"
                )
                self.circuit_breaker.record_failure()

            except aiohttp.ClientError as e:
                last_exception = GitHubConnectionError(
                    f"Connection error for {method} {url}: {e}"
                )
                self.circuit_breaker.record_failure()

            if attempt < self.config.max_retries:
                backoff_time = self.config.retry_backoff_factor**attempt
                logger.warning(
                    f"Request [{correlation_id}] failed (attempt {attempt + 1}), "
                    f"retrying in {backoff_time:.1f}s: {last_exception}"
                )
                await asyncio.sleep(backoff_time)

        if last_exception:
            raise last_exception
        raise GitHubError(f"Request failed after {self.config.max_retries} retries")

    def _raise_for_status(
        self,
        status: int,
        body: str,
        headers: dict[str, str],
        correlation_id: str,
    ) -> None:
        """Raise the GitHubError subclass matching an error response.

        Args:
            status: HTTP status code
            body: Raw response body
            headers: Response headers
            correlation_id: Request correlation ID

        Raises:
            GitHubError: Appropriate error based on status code
        """
        try:
            error_data = json.loads(body) if body else {}
            if not isinstance(error_data, dict):
                error_data = {"message": body}
        except json.JSONDecodeError:
            error_data = {"message": body}

        error_message = error_data.get("message") or f"HTTP {status}"

        logger.warning(f"GitHub API error [{correlation_id}] {status}: {error_message}")

        if status == 401:
            raise GitHubAuthenticationError(error_message, status, error_data)
        if status == 429 or (
            status == 403
            and (
                "rate limit" in error_message.lower()
                or headers.get("X-RateLimit-Remaining") == "0"
            )
        ):
            reset_time = headers.get("X-RateLimit-Reset")
            raise GitHubRateLimitError(
                error_message,
                reset_time=int(reset_time) if reset_time else None,
                remaining=int(headers.get("X-RateLimit-Remaining", "0")),
                limit=int(headers.get("X-RateLimit-Limit", "0")),
                status_code=status,
            )
        if status == 403:
            raise GitHubAuthenticationError(error_message, status, error_data)
        if status == 404:
            raise GitHubNotFoundError(error_message, status, error_data)
        if status == 422:
            raise GitHubValidationError(error_message, status, error_data)
        if 500 <= status < 600:
            raise GitHubServerError(error_message, status, error_data)
        raise GitHubError(error_message, status, error_data)

    async def get(
        self, path: str, params: dict[str, Any] | None = None
    ) -> Any:
        """Make GET request and return the decoded body."""
        return (await self.request("GET", path, params=params)).data

    async def post(self, path: str, data: dict[str, Any] | None = None) -> Any:
        """Make POST request and return the decoded body."""
        return (await self.request("POST", path, data=data)).data

    async def put(self, path: str, data: dict[str, Any] | None = None) -> Any:
        """Make PUT request and return the decoded body."""
        return (await self.request("PUT", path, data=data)).data

    async def patch(self, path: str, data: dict[str, Any] | None = None) -> Any:
        """Make PATCH request and return the decoded body."""
        return (await self.request("PATCH", path, data=data)).data

    async def delete(self, path: str) -> Any:
        """Make DELETE request; returns None for 204 responses."""
        return (await self.request("DELETE", path)).data

    async def _fetch_paginated(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        items_key: str | None = None,
        resource: str = "core",
    ) -> PaginatedResponse:
        """Fetch one page (used by AsyncPaginator)."""
        response = await self.request("GET", url, params=params, resource=resource)
        return PaginatedResponse(response.data, response.headers, url, items_key)

    def paginate(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        per_page: int = 100,
        max_pages: int | None = None,
        items_key: str | None = None,
        resource: str = "core",
    ) -> AsyncPaginator:
        """Create async paginator for GitHub API endpoint.

        Args:
            path: API path
            params: Query parameters
            per_page: Items per page (max 100)
            max_pages: Maximum pages to fetch
            items_key: Key holding items in object responses
            resource: Rate limit resource the endpoint counts against

        Returns:
            AsyncPaginator for iterating through results
        """
        return AsyncPaginator(
            client=self,
            initial_url=self._url(path),
            params=params,
            per_page=per_page,
            max_pages=max_pages,
            items_key=items_key,
            resource=resource,
        )

    async def get_rate_limit(self) -> dict[str, Any]:
        """Get current rate limit status."""
        data: dict[str, Any] = await self.get("/rate_limit")
        return data
