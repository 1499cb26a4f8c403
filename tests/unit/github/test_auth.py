"""
Unit tests for GitHub authentication.

Why: Every forge call is authorized either as the service or as the acting
     user; the wrong credential means actions are attributed to the wrong
     identity or fail outright.

What: Tests AuthToken, PersonalAccessTokenAuth, TokenAuth, GitHubAppAuth
      installation token exchange and StaticCredentialStore.

How: Patches JWT signing and serves the installation token endpoint with
     aioresponses.
"""

import time
from unittest.mock import Mock, patch

import pytest
from aioresponses import aioresponses

from branchpilot.github.auth import (
    AuthToken,
    GitHubAppAuth,
    PersonalAccessTokenAuth,
    StaticCredentialStore,
    TokenAuth,
)
from branchpilot.github.exceptions import GitHubAuthenticationError

TOKEN_URL = "https://api.github.com/app/installations/67890/access_tokens"


class TestAuthToken:
    """Test AuthToken."""

    def test_header(self) -> None:
        assert AuthToken("abc", "token").to_header() == {"Authorization": "token abc"}

    def test_expiry(self) -> None:
        assert not AuthToken("abc").is_expired
        assert AuthToken("abc", expires_at=int(time.time()) - 1).is_expired
        assert not AuthToken("abc", expires_at=int(time.time()) + 600).is_expired


class TestPersonalAccessTokenAuth:
    """Test PersonalAccessTokenAuth."""

    async def test_get_token(self) -> None:
        token = await PersonalAccessTokenAuth("ghp_abc").get_token()

        assert token.token == "ghp_abc"
        assert token.token_type == "token"

    def test_empty_token_rejected(self) -> None:
        with pytest.raises(GitHubAuthenticationError):
            PersonalAccessTokenAuth("")

    def test_cache_key_by_value(self) -> None:
        assert PersonalAccessTokenAuth("a").cache_key == PersonalAccessTokenAuth("a").cache_key
        assert PersonalAccessTokenAuth("a").cache_key != PersonalAccessTokenAuth("b").cache_key


class TestTokenAuth:
    """Test TokenAuth."""

    async def test_defaults_to_bearer(self) -> None:
        token = await TokenAuth("abc").get_token()

        assert token.to_header() == {"Authorization": "Bearer abc"}


class TestGitHubAppAuth:
    """Test GitHubAppAuth."""

    @pytest.fixture
    def auth(self) -> GitHubAppAuth:
        return GitHubAppAuth(app_id="12345", private_key="key", installation_id="67890")

    @patch("branchpilot.github.auth.jwt.encode")
    def test_generate_jwt(self, mock_jwt_encode: Mock, auth: GitHubAppAuth) -> None:
        mock_jwt_encode.return_value = "signed"

        assert auth._generate_jwt() == "signed"
        payload = mock_jwt_encode.call_args[0][0]
        assert payload["iss"] == "12345"
        assert payload["exp"] - payload["iat"] == 660

    @patch("branchpilot.github.auth.jwt.encode")
    def test_generate_jwt_error(self, mock_jwt_encode: Mock, auth: GitHubAppAuth) -> None:
        mock_jwt_encode.side_effect = ValueError("bad key")

        with pytest.raises(GitHubAuthenticationError):
            auth._generate_jwt()

    @patch("branchpilot.github.auth.GitHubAppAuth._generate_jwt", return_value="jwt")
    async def test_exchanges_installation_token(
        self, mock_generate_jwt: Mock, auth: GitHubAppAuth
    ) -> None:
        with aioresponses() as mocked:
            mocked.post(
                TOKEN_URL,
                status=201,
                payload={"token": "ghs_install", "expires_at": "2099-01-01T00:00:00Z"},
            )

            token = await auth.get_token()
            cached = await auth.get_token()

        assert token.token == "ghs_install"
        assert token.token_type == "token"
        assert cached is token
        assert mock_generate_jwt.call_count == 1

    @patch("branchpilot.github.auth.GitHubAppAuth._generate_jwt", return_value="jwt")
    async def test_refreshes_near_expiry(self, mock_generate_jwt: Mock, auth: GitHubAppAuth) -> None:
        auth._current_token = AuthToken("old", "token", expires_at=int(time.time()) + 30)

        with aioresponses() as mocked:
            mocked.post(TOKEN_URL, status=201, payload={"token": "new"})

            token = await auth.get_token()

        assert token.token == "new"

    @patch("branchpilot.github.auth.GitHubAppAuth._generate_jwt", return_value="jwt")
    async def test_exchange_failure(self, mock_generate_jwt: Mock, auth: GitHubAppAuth) -> None:
        with aioresponses() as mocked:
            mocked.post(TOKEN_URL, status=401, payload={"message": "Bad credentials"})

            with pytest.raises(GitHubAuthenticationError):
                await auth.get_token()

    def test_cache_key_per_installation(self, auth: GitHubAppAuth) -> None:
        assert auth.cache_key == "app:12345:67890"


class TestStaticCredentialStore:
    """Test StaticCredentialStore."""

    async def test_lookup(self) -> None:
        store = StaticCredentialStore({"dana": "ghp_dana", "empty": ""})

        assert await store.get_user_token("dana") == "ghp_dana"
        assert await store.get_user_token("empty") is None
        assert await store.get_user_token("nobody") is None

    async def test_set_user_token(self) -> None:
        store = StaticCredentialStore()
        store.set_user_token("dana", "ghp_dana")

        assert await store.get_user_token("dana") == "ghp_dana"
