"""GitHub authentication handlers and per-user credential lookup."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime

import aiohttp
import jwt

from .exceptions import GitHubAuthenticationError

logger = logging.getLogger(__name__)


@dataclass
class AuthToken:
    """Authentication token with metadata."""

    token: str
    token_type: str = "Bearer"
    expires_at: int | None = None

    @property
    def is_expired(self) -> bool:
        """Check if token is expired."""
        if self.expires_at is None:
            return False
        return time.time() >= self.expires_at

    def to_header(self) -> dict[str, str]:
        """Convert to authorization header."""
        return {"Authorization": f"{self.token_type} {self.token}"}


class AuthProvider(ABC):
    """Abstract base class for authentication providers."""

    @abstractmethod
    async def get_token(self) -> AuthToken:
        """Get authentication token."""
        pass

    @property
    def cache_key(self) -> str:
        """Key identifying the credential, used to share clients."""
        return f"{type(self).__name__}:{id(self)}"


class PersonalAccessTokenAuth(AuthProvider):
    """Personal Access Token authentication provider."""

    def __init__(self, token: str):
        """Initialize PAT authentication.

        Args:
            token: GitHub Personal Access Token
        """
        if not token:
            raise GitHubAuthenticationError("Personal Access Token is required")
        self._token = AuthToken(token=token, token_type="token")  # nosec B106

    async def get_token(self) -> AuthToken:
        """Get authentication token."""
        return self._token

    @property
    def cache_key(self) -> str:
        """Tokens are shared by value."""
        return f"pat:{self._token.token}"


class TokenAuth(AuthProvider):
    """Simple bearer token authentication."""

    DEFAULT_TOKEN_TYPE = "Bearer"  # nosec B105

    def __init__(self, token: str, token_type: str | None = None):
        """Initialize token authentication.

        Args:
            token: Authentication token
            token_type: Type of token (Bearer, token, etc.). Uses Bearer by default.
        """
        self._token = AuthToken(
            token=token, token_type=token_type or self.DEFAULT_TOKEN_TYPE
        )

    async def get_token(self) -> AuthToken:
        """Get authentication token."""
        return self._token

    @property
    def cache_key(self) -> str:
        """Tokens are shared by value."""
        return f"token:{self._token.token}"


class GitHubAppAuth(AuthProvider):
    """GitHub App installation authentication.

    Signs a short-lived JWT with the app's private key and exchanges it for
    an installation access token, refreshed a minute before it expires.
    """

    REFRESH_MARGIN = 60

    def __init__(
        self,
        app_id: str,
        private_key: str,
        installation_id: str,
        base_url: str = "https://api.github.com",
    ):
        """Initialize GitHub App authentication.

        Args:
            app_id: GitHub App ID
            private_key: PEM private key for JWT signing
            installation_id: Installation ID of the app in the organization
            base_url: GitHub API base URL
        """
        self.app_id = app_id
        self.private_key = private_key
        self.installation_id = installation_id
        self.base_url = base_url.rstrip("/")
        self._current_token: AuthToken | None = None
        self._lock = asyncio.Lock()

    def _generate_jwt(self) -> str:
        """Generate JWT for GitHub App authentication."""
        now = int(time.time())
        payload = {
            "iat": now - 60,  # clock drift allowance
            "exp": now + 600,
            "iss": self.app_id,
        }

        try:
            token = jwt.encode(payload, self.private_key, algorithm="RS256")
            return token if isinstance(token, str) else token.decode("utf-8")
        except Exception as e:
            raise GitHubAuthenticationError(f"Failed to generate JWT: {e}") from e

    async def get_token(self) -> AuthToken:
        """Get a valid installation token, refreshing when close to expiry."""
        async with self._lock:
            token = self._current_token
            if token is None or (
                token.expires_at is not None
                and time.time() >= token.expires_at - self.REFRESH_MARGIN
            ):
                self._current_token = await self._exchange_installation_token()
            return self._current_token

    async def _exchange_installation_token(self) -> AuthToken:
        """Exchange the app JWT for an installation access token."""
        url = f"{self.base_url}/app/installations/{self.installation_id}/access_tokens"
        headers = {
            "Authorization": f"Bearer {self._generate_jwt()}",
            "Accept": "application/vnd.github+json",
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(url, headers=headers) as response:
                    if response.status != 201:
                        raise GitHubAuthenticationError(
                            f"Installation token exchange failed: HTTP {response.status}",
                            response.status,
                        )
                    data = await response.json()
        except aiohttp.ClientError as e:
            raise GitHubAuthenticationError(
                f"Installation token exchange failed: {e}"
            ) from e

        expires_at = None
        if data.get("expires_at"):
            expires_at = int(
                datetime.fromisoformat(
                    data["expires_at"].replace("Z", "+00:00")
                ).timestamp()
            )

        logger.debug(f"Refreshed installation token for app {self.app_id}")
        return AuthToken(token=data["token"], token_type="token", expires_at=expires_at)

    @property
    def cache_key(self) -> str:
        """One client per installation."""
        return f"app:{self.app_id}:{self.installation_id}"


class CredentialStore(ABC):
    """Lookup of per-user forge credentials."""

    @abstractmethod
    async def get_user_token(self, user: str) -> str | None:
        """Return the user's access token, or None when none is stored."""
        pass


class StaticCredentialStore(CredentialStore):
    """Credential store backed by an in-memory mapping."""

    def __init__(self, tokens: Mapping[str, str] | None = None):
        """Initialize store.

        Args:
            tokens: Mapping of user identity to access token
        """
        self._tokens = dict(tokens or {})

    async def get_user_token(self, user: str) -> str | None:
        """Return the stored token for user, if any."""
        return self._tokens.get(user) or None

    def set_user_token(self, user: str, token: str) -> None:
        """Store or replace a user's token."""
        self._tokens[user] = token
