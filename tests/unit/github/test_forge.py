"""
Unit tests for the forge adapter.

Why: ForgeClient is the only place that knows GitHub's endpoints; the rest
     of the system depends on its typed results and on reads raising the
     classified errors while mutations name the failing repository.

What: Tests ForgeClient reads, mutations, code search and the
      ForgeClientPool credential selection.

How: Serves GitHub endpoints with aioresponses against a real GitHubClient.
"""

import re
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from aioresponses import aioresponses

from branchpilot.github.auth import PersonalAccessTokenAuth, StaticCredentialStore
from branchpilot.github.client import GitHubClient, GitHubClientConfig
from branchpilot.github.exceptions import (
    CodeSearchError,
    ForgeErrorKind,
    GitHubNotFoundError,
    GitHubRateLimitError,
    PullRequestMergeError,
)
from branchpilot.github.forge import ForgeClient, ForgeClientPool
from branchpilot.github.models import (
    CheckState,
    MergeMethod,
    PullRequestSpec,
    PullRequestState,
    ReviewState,
)

REPO = "https://api.github.com/repos/acme/api"


def url(pattern: str) -> re.Pattern[str]:
    return re.compile(rf"^{re.escape(pattern)}(\?.*)?$")


def sent_json(mocked: aioresponses, method: str) -> list[Any]:
    return [
        call.kwargs.get("json")
        for (verb, _url), calls in mocked.requests.items()
        if verb == method
        for call in calls
    ]


def pr_payload(number: int, ref: str = "feature/x", **extra: Any) -> dict[str, Any]:
    return {
        "number": number,
        "state": "open",
        "html_url": f"https://github.com/acme/api/pull/{number}",
        "title": "Title",
        "body": "Body",
        "head": {"ref": ref},
        "base": {"ref": "main"},
        **extra,
    }


class TestForgeClient:
    """Test ForgeClient."""

    @pytest.fixture
    async def forge(self):
        client = GitHubClient(PersonalAccessTokenAuth("ghp_test"))
        yield ForgeClient(client, "acme")
        await client.close()

    async def test_get_branch(self, forge: ForgeClient) -> None:
        with aioresponses() as mocked:
            mocked.get(
                f"{REPO}/branches/feature/x",
                payload={"name": "feature/x", "commit": {"sha": "abc123"}, "protected": False},
            )

            branch = await forge.get_branch("api", "feature/x")

        assert branch.name == "feature/x"
        assert branch.sha == "abc123"

    async def test_get_branch_absent_raises_not_found(self, forge: ForgeClient) -> None:
        with aioresponses() as mocked:
            mocked.get(f"{REPO}/branches/gone", status=404, payload={"message": "Branch not found"})

            with pytest.raises(GitHubNotFoundError):
                await forge.get_branch("api", "gone")

    async def test_list_status_checks(self, forge: ForgeClient) -> None:
        with aioresponses() as mocked:
            mocked.get(
                url(f"{REPO}/commits/abc123/statuses"),
                payload=[
                    {"context": "build", "state": "success", "updated_at": "2024-01-01T10:05:00Z"},
                    {"context": "build", "state": "pending", "updated_at": "2024-01-01T10:00:00Z"},
                ],
            )

            checks = await forge.list_status_checks("api", "abc123")

        assert [check.state for check in checks] == [CheckState.SUCCESS, CheckState.PENDING]
        assert checks[0].updated_at.tzinfo is not None

    async def test_find_open_pull_request_matches_head(self, forge: ForgeClient) -> None:
        with aioresponses() as mocked:
            mocked.get(
                url(f"{REPO}/pulls"),
                payload=[pr_payload(3, ref="feature/other"), pr_payload(4)],
            )

            pull = await forge.find_open_pull_request("api", "feature/x")

        assert pull is not None
        assert pull.number == 4
        assert pull.state is PullRequestState.OPEN

    async def test_find_open_pull_request_none(self, forge: ForgeClient) -> None:
        with aioresponses() as mocked:
            mocked.get(url(f"{REPO}/pulls"), payload=[])

            assert await forge.find_open_pull_request("api", "feature/x") is None

    async def test_list_reviews_skips_unknown_states(self, forge: ForgeClient) -> None:
        pull = await self._pull(forge)
        with aioresponses() as mocked:
            mocked.get(
                url(f"{REPO}/pulls/4/reviews"),
                payload=[
                    {"state": "APPROVED", "submitted_at": "2024-01-01T10:00:00Z", "user": {"login": "bo"}},
                    {"state": "SOMETHING_NEW"},
                ],
            )

            reviews = await forge.list_reviews("api", pull)

        assert [review.state for review in reviews] == [ReviewState.APPROVED]
        assert reviews[0].reviewer == "bo"

    async def test_list_reviews_without_pull_request(self, forge: ForgeClient) -> None:
        assert await forge.list_reviews("api", None) == []

    async def test_get_default_branch(self, forge: ForgeClient) -> None:
        with aioresponses() as mocked:
            mocked.get(REPO, payload={"default_branch": "main"})

            assert await forge.get_default_branch("api") == "main"

    async def test_get_issue_title(self, forge: ForgeClient) -> None:
        with aioresponses() as mocked:
            mocked.get(f"{REPO}/issues/42", payload={"title": "Login fails"})
            mocked.get(f"{REPO}/issues/43", status=404, payload={"message": "Not Found"})

            assert await forge.get_issue_title("api", 42) == "Login fails"
            assert await forge.get_issue_title("api", 43) is None

    async def test_search_groups_by_repository(self, forge: ForgeClient) -> None:
        with aioresponses() as mocked:
            mocked.get(
                url("https://api.github.com/search/code"),
                payload={
                    "items": [
                        {"repository": {"name": "api"}, "path": "a.py", "html_url": "u1"},
                        {"repository": {"name": "web"}, "path": "b.js", "html_url": "u2"},
                        {"repository": {"name": "api"}, "path": "c.py", "html_url": "u3"},
                    ]
                },
            )

            matches = await forge.search_code_across_org("ISSUE-42")

        assert sorted(matches) == ["api", "web"]
        assert [match.path for match in matches["api"]] == ["a.py", "c.py"]
        (_verb, sent_url), calls = next(iter(mocked.requests.items()))
        assert sent_url.query["q"] == "ISSUE-42 org:acme"

    async def test_search_rate_limit_propagates(self, forge: ForgeClient) -> None:
        with aioresponses() as mocked:
            mocked.get(
                url("https://api.github.com/search/code"),
                status=403,
                payload={"message": "You have exceeded a secondary rate limit"},
            )

            with pytest.raises(GitHubRateLimitError):
                await forge.search_code_across_org("ISSUE-42")

    async def test_search_other_failure_wrapped(self, forge: ForgeClient) -> None:
        with aioresponses() as mocked:
            mocked.get(
                url("https://api.github.com/search/code"),
                status=422,
                payload={"message": "Validation Failed"},
            )

            with pytest.raises(CodeSearchError):
                await forge.search_code_across_org("")

    async def test_create_pull_request(self, forge: ForgeClient) -> None:
        spec = PullRequestSpec(title="T", head="feature/x", base="main", body="B", draft=True)
        with aioresponses() as mocked:
            mocked.post(f"{REPO}/pulls", status=201, payload=pr_payload(7, draft=True))

            pull = await forge.create_pull_request("api", spec)

            assert sent_json(mocked, "POST") == [spec.to_payload()]

        assert pull.number == 7
        assert pull.draft is True

    async def test_merge_sends_method(self, forge: ForgeClient) -> None:
        with aioresponses() as mocked:
            mocked.put(f"{REPO}/pulls/4/merge", payload={"merged": True, "sha": "def"})

            result = await forge.merge_pull_request("api", 4, MergeMethod.REBASE)

            assert sent_json(mocked, "PUT") == [{"merge_method": "rebase"}]

        assert result["merged"] is True

    async def test_merge_failure_names_repository(self, forge: ForgeClient) -> None:
        with aioresponses() as mocked:
            mocked.put(
                f"{REPO}/pulls/4/merge",
                status=403,
                payload={"message": "Resource not accessible by integration"},
            )

            with pytest.raises(PullRequestMergeError) as exc_info:
                await forge.merge_pull_request("api", 4)

        assert exc_info.value.repository == "api"
        assert exc_info.value.kind is ForgeErrorKind.UNAUTHORIZED

    async def test_close_pull_request(self, forge: ForgeClient) -> None:
        with aioresponses() as mocked:
            mocked.patch(f"{REPO}/pulls/4", payload=pr_payload(4, state="closed"))

            pull = await forge.close_pull_request("api", 4)

            assert sent_json(mocked, "PATCH") == [{"state": "closed"}]

        assert pull.state is PullRequestState.CLOSED

    async def test_delete_branch(self, forge: ForgeClient) -> None:
        with aioresponses() as mocked:
            mocked.delete(f"{REPO}/git/refs/heads/feature/x", status=204, body="")

            assert await forge.delete_branch("api", "feature/x") is None

    async def test_comment_on_pull_request_is_review(self, forge: ForgeClient) -> None:
        with aioresponses() as mocked:
            mocked.post(f"{REPO}/pulls/4/reviews", payload={"id": 1})

            await forge.comment_on_pull_request("api", 4, "Merged")

            assert sent_json(mocked, "POST") == [{"body": "Merged", "event": "COMMENT"}]

    async def test_comment_on_issue(self, forge: ForgeClient) -> None:
        with aioresponses() as mocked:
            mocked.post(f"{REPO}/issues/42/comments", status=201, payload={"id": 1})

            assert await forge.comment_on_issue("api", 42, "hi") == {"id": 1}

    async def _pull(self, forge: ForgeClient):
        with aioresponses() as mocked:
            mocked.get(url(f"{REPO}/pulls"), payload=[pr_payload(4)])
            return await forge.find_open_pull_request("api", "feature/x")


class TestForgeClientPool:
    """Test ForgeClientPool."""

    @pytest.fixture
    async def pool(self):
        pool = ForgeClientPool(
            PersonalAccessTokenAuth("ghp_service"),
            "acme",
            client_config=GitHubClientConfig(max_retries=0),
            credential_store=StaticCredentialStore({"dana": "ghp_dana"}),
        )
        yield pool
        await pool.close()

    async def test_default_credential_without_user(self, pool: ForgeClientPool) -> None:
        forge = await pool.for_user()
        token = await forge.client.auth.get_token()

        assert token.token == "ghp_service"
        assert forge.organization == "acme"

    async def test_user_credential_when_stored(self, pool: ForgeClientPool) -> None:
        forge = await pool.for_user("dana")
        token = await forge.client.auth.get_token()

        assert token.token == "ghp_dana"

    async def test_unknown_user_falls_back(self, pool: ForgeClientPool) -> None:
        assert await pool.for_user("eve") is await pool.for_user()

    async def test_clients_are_reused(self, pool: ForgeClientPool) -> None:
        assert await pool.for_user("dana") is await pool.for_user("dana")

    async def test_close_closes_clients(self, pool: ForgeClientPool) -> None:
        forge = await pool.for_user()
        with patch.object(forge.client, "close", new_callable=AsyncMock) as close:
            await pool.close()

        close.assert_awaited_once()
