"""
Unit tests for GitHub API client.

Why: Every forge call goes through GitHubClient; its status classification
     decides whether a branch is "absent", a caller is rate limited or a
     credential is unauthorized, and its retries decide how transient
     failures surface.

What: Tests GitHubClient error classification, retry behaviour, circuit
      breaking, pagination and HTTP verb helpers.

How: Uses aioresponses to serve GitHub responses and patches asyncio.sleep
     so retry backoff does not slow the suite.
"""

import re
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest
from aioresponses import aioresponses

from branchpilot.github.auth import PersonalAccessTokenAuth
from branchpilot.github.client import GitHubClient, GitHubClientConfig
from branchpilot.github.exceptions import (
    GitHubAuthenticationError,
    GitHubConnectionError,
    GitHubError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubServerError,
    GitHubValidationError,
)

API = "https://api.github.com"


class TestGitHubClientConfig:
    """Test GitHubClientConfig data class."""

    def test_defaults(self) -> None:
        config = GitHubClientConfig()

        assert config.base_url == "https://api.github.com"
        assert config.timeout == 30
        assert config.max_retries == 3
        assert config.retry_backoff_factor == 2.0
        assert config.core_rate_limit_buffer == 100
        assert config.user_agent == "branchpilot/1.0"
        assert config.max_concurrent_requests == 10


class TestGitHubClient:
    """Test GitHubClient class."""

    @pytest.fixture
    async def client(self):
        client = GitHubClient(PersonalAccessTokenAuth("ghp_test"))
        yield client
        await client.close()

    @pytest.fixture
    def no_sleep(self):
        with patch("branchpilot.github.client.asyncio.sleep", new_callable=AsyncMock) as sleep:
            yield sleep

    async def test_get_returns_decoded_body(self, client: GitHubClient) -> None:
        with aioresponses() as mocked:
            mocked.get(f"{API}/repos/acme/api", payload={"default_branch": "main"})

            assert await client.get("/repos/acme/api") == {"default_branch": "main"}

    async def test_sends_token_header(self, client: GitHubClient) -> None:
        with aioresponses() as mocked:
            mocked.get(f"{API}/user", payload={})

            await client.get("/user")

            request = next(iter(mocked.requests.values()))[0]
            assert request.kwargs["headers"]["Authorization"] == "token ghp_test"

    async def test_not_found(self, client: GitHubClient, no_sleep: AsyncMock) -> None:
        """404 is classified and never retried."""
        with aioresponses() as mocked:
            mocked.get(f"{API}/repos/acme/api/branches/x", status=404, payload={"message": "Branch not found"})

            with pytest.raises(GitHubNotFoundError) as exc_info:
                await client.get("/repos/acme/api/branches/x")

        assert exc_info.value.status_code == 404
        assert str(exc_info.value) == "Branch not found"
        no_sleep.assert_not_awaited()

    async def test_unauthorized(self, client: GitHubClient) -> None:
        with aioresponses() as mocked:
            mocked.get(f"{API}/user", status=401, payload={"message": "Bad credentials"})

            with pytest.raises(GitHubAuthenticationError):
                await client.get("/user")

    async def test_forbidden_without_rate_limit_is_unauthorized(
        self, client: GitHubClient
    ) -> None:
        """A plain 403 means the credential lacks access."""
        with aioresponses() as mocked:
            mocked.put(
                f"{API}/repos/acme/api/pulls/1/merge",
                status=403,
                payload={"message": "Resource not accessible by integration"},
            )

            with pytest.raises(GitHubAuthenticationError):
                await client.put("/repos/acme/api/pulls/1/merge", {})

    async def test_secondary_rate_limit_403(self, client: GitHubClient) -> None:
        """A 403 mentioning the rate limit is a rate-limit error."""
        with aioresponses() as mocked:
            mocked.get(
                f"{API}/search/code",
                status=403,
                payload={"message": "You have exceeded a secondary rate limit."},
            )

            with pytest.raises(GitHubRateLimitError) as exc_info:
                await client.get("/search/code")

        assert exc_info.value.status_code == 403

    async def test_primary_rate_limit_headers(self, client: GitHubClient) -> None:
        """A 403 with no remaining quota is a rate-limit error."""
        with aioresponses() as mocked:
            mocked.get(
                f"{API}/user",
                status=403,
                payload={"message": "Forbidden"},
                headers={
                    "X-RateLimit-Limit": "5000",
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": "1700000000",
                },
            )

            with pytest.raises(GitHubRateLimitError) as exc_info:
                await client.get("/user")

        assert exc_info.value.reset_time == 1700000000
        assert exc_info.value.limit == 5000

    async def test_too_many_requests(self, client: GitHubClient) -> None:
        with aioresponses() as mocked:
            mocked.get(f"{API}/user", status=429, body="")

            with pytest.raises(GitHubRateLimitError):
                await client.get("/user")

    async def test_validation_error(self, client: GitHubClient) -> None:
        with aioresponses() as mocked:
            mocked.post(
                f"{API}/repos/acme/api/pulls",
                status=422,
                payload={"message": "Validation Failed"},
            )

            with pytest.raises(GitHubValidationError):
                await client.post("/repos/acme/api/pulls", {"title": "x"})

    async def test_unexpected_status(self, client: GitHubClient) -> None:
        with aioresponses() as mocked:
            mocked.get(f"{API}/user", status=409, body="conflict")

            with pytest.raises(GitHubError) as exc_info:
                await client.get("/user")

        assert exc_info.value.status_code == 409
        assert str(exc_info.value) == "conflict"

    async def test_server_error_retried_then_succeeds(
        self, client: GitHubClient, no_sleep: AsyncMock
    ) -> None:
        with aioresponses() as mocked:
            mocked.get(f"{API}/user", status=502, body="bad gateway")
            mocked.get(f"{API}/user", payload={"login": "bot"})

            assert await client.get("/user") == {"login": "bot"}

        no_sleep.assert_awaited_once_with(1.0)

    async def test_server_error_exhausts_retries(
        self, client: GitHubClient, no_sleep: AsyncMock
    ) -> None:
        with aioresponses() as mocked:
            for _ in range(4):
                mocked.get(f"{API}/user", status=500, body="")

            with pytest.raises(GitHubServerError):
                await client.get("/user")

        assert [call.args[0] for call in no_sleep.await_args_list] == [1.0, 2.0, 4.0]

    async def test_connection_error_retried(
        self, client: GitHubClient, no_sleep: AsyncMock
    ) -> None:
        with aioresponses() as mocked:
            for _ in range(4):
                mocked.get(f"{API}/user", exception=aiohttp.ClientConnectionError("refused"))

            with pytest.raises(GitHubConnectionError):
                await client.get("/user")

        assert no_sleep.await_count == 3

    async def test_circuit_breaker_rejects_when_open(self, client: GitHubClient) -> None:
        for _ in range(client.circuit_breaker.failure_threshold):
            client.circuit_breaker.record_failure()

        with pytest.raises(GitHubConnectionError, match="Circuit breaker open"):
            await client.get("/user")

    async def test_delete_no_content(self, client: GitHubClient) -> None:
        with aioresponses() as mocked:
            mocked.delete(f"{API}/repos/acme/api/git/refs/heads/x", status=204, body="")

            assert await client.delete("/repos/acme/api/git/refs/heads/x") is None

    async def test_paginate_follows_link_header(self, client: GitHubClient) -> None:
        with aioresponses() as mocked:
            mocked.get(
                f"{API}/repos/acme/api/pulls?per_page=100",
                payload=[{"number": 1}],
                headers={"Link": f'<{API}/repos/acme/api/pulls?page=2>; rel="next"'},
            )
            mocked.get(f"{API}/repos/acme/api/pulls?page=2", payload=[{"number": 2}])

            items = await client.paginate("/repos/acme/api/pulls").collect_all()

        assert [item["number"] for item in items] == [1, 2]

    async def test_paginate_items_key(self, client: GitHubClient) -> None:
        with aioresponses() as mocked:
            mocked.get(
                re.compile(rf"^{re.escape(API)}/search/code\?.*"),
                payload={"total_count": 1, "items": [{"path": "a.py"}]},
            )

            items = await client.paginate(
                "/search/code", params={"q": "x"}, items_key="items"
            ).collect_all()

        assert items == [{"path": "a.py"}]

    async def test_absolute_urls_pass_through(self, client: GitHubClient) -> None:
        with aioresponses() as mocked:
            mocked.get("https://ghe.example.com/api/v3/user", payload={"login": "x"})

            assert await client.get("https://ghe.example.com/api/v3/user") == {"login": "x"}
