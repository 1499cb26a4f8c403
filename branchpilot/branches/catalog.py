"""Sources of the candidate repository list."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import Any

import aiohttp

from ..cache.memory_cache import MemoryCache
from .exceptions import CatalogUnavailableError

logger = logging.getLogger(__name__)


class RepositoryCatalog(ABC):
    """Provides the repositories a branch may span."""

    @abstractmethod
    async def list_repositories(self) -> list[str]:
        """Return the candidate repository names.

        Raises:
            CatalogUnavailableError: If the list cannot be obtained
        """
        pass

    async def close(self) -> None:  # noqa: B027
        """Release resources held by the catalog."""
        pass


class StaticRepositoryCatalog(RepositoryCatalog):
    """Fixed list of repositories from configuration."""

    def __init__(self, repositories: Iterable[str]):
        self._repositories = list(dict.fromkeys(repositories))

    async def list_repositories(self) -> list[str]:
        return list(self._repositories)


class ManifestRepositoryCatalog(RepositoryCatalog):
    """Repository list read from a JSON manifest served over HTTPS.

    The manifest is a JSON object whose top-level keys are repository
    names. The parsed list is cached for ``refresh_interval`` seconds.
    """

    CACHE_KEY = "repositories"

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        refresh_interval: float = 300,
        timeout: float = 30,
        session: aiohttp.ClientSession | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize manifest catalog.

        Args:
            url: Manifest URL
            headers: Extra request headers (e.g. authorization)
            refresh_interval: Seconds a fetched list stays valid
            timeout: Request timeout in seconds
            session: Optional shared HTTP session
            clock: Monotonic time source
        """
        self.url = url
        self.headers = headers or {}
        self.refresh_interval = refresh_interval
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._cache = MemoryCache(max_size=1, default_ttl=refresh_interval, clock=clock)
        self._refresh_lock = asyncio.Lock()
        self._last_known: list[str] = []

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self._session

    async def list_repositories(self) -> list[str]:
        cached = await self._cache.get(self.CACHE_KEY)
        if cached is not None:
            return list(cached)

        async with self._refresh_lock:
            cached = await self._cache.get(self.CACHE_KEY)
            if cached is not None:
                return list(cached)

            repositories = await self._fetch()
            if not repositories and self._last_known:
                logger.error(
                    f"Manifest at {self.url} returned no repositories, "
                    f"{len(self._last_known)} were known before"
                )
                raise CatalogUnavailableError(
                    f"Repository manifest at {self.url} is unexpectedly empty"
                )

            await self._cache.set(self.CACHE_KEY, repositories)
            self._last_known = repositories
            logger.info(f"Loaded {len(repositories)} repositories from manifest")
            return list(repositories)

    async def _fetch(self) -> list[str]:
        session = await self._get_session()
        try:
            async with session.get(self.url, headers=self.headers) as response:
                if response.status != 200:
                    raise CatalogUnavailableError(
                        f"Repository manifest request failed with HTTP {response.status}"
                    )
                data: Any = await response.json(content_type=None)
        except CatalogUnavailableError:
            raise
        except ValueError as e:
            raise CatalogUnavailableError(
                f"Repository manifest at {self.url} is not valid JSON", e
            ) from e
        except (TimeoutError, aiohttp.ClientError) as e:
            raise CatalogUnavailableError(
                f"Could not fetch repository manifest: {e}", e
            ) from e

        if not isinstance(data, dict):
            raise CatalogUnavailableError(
                f"Repository manifest at {self.url} is not a JSON object"
            )
        return [str(name) for name in data]

    async def invalidate(self) -> None:
        """Force the next call to refetch the manifest."""
        await self._cache.delete(self.CACHE_KEY)

    async def close(self) -> None:
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
