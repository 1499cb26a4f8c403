"""Time-bounded suppression of repeated webhook deliveries.

GitHub delivers webhooks at least once, and a branch spanning several
repositories produces one "opened" or "merged" delivery per repository.
Each cache remembers when a branch was first seen; further deliveries for
that branch are dropped until the entry is older than the TTL.
"""

import logging
import time
from collections.abc import Callable
from enum import Enum

from .memory_cache import MemoryCache

logger = logging.getLogger(__name__)

DEFAULT_DEDUP_TTL = 300


class WebhookEventKind(str, Enum):
    """Webhook side effects gated by their own deduplication cache."""

    PR_OPENED = "pr_opened"
    PR_MERGED = "pr_merged"


class WebhookDeduplicationCache:
    """First-seen registry keyed by branch name."""

    def __init__(
        self,
        ttl: float = DEFAULT_DEDUP_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize deduplication cache.

        Args:
            ttl: Seconds during which repeated deliveries are suppressed
            clock: Monotonic time source
        """
        self.ttl = ttl
        self._clock = clock
        # Unbounded: evicting a live entry would let a duplicate through
        self._entries = MemoryCache(max_size=None, default_ttl=ttl, clock=clock)

    async def note_delivery(self, branch_name: str) -> bool:
        """Record a delivery for a branch.

        Returns:
            True for the first delivery inside the TTL window, False otherwise
        """
        first_seen = await self._entries.add(branch_name, self._clock())
        if not first_seen:
            return False

        expired = await self._entries.cleanup_expired()
        if expired:
            logger.debug(f"Swept {len(expired)} expired webhook entries")
        return True

    async def first_seen_at(self, branch_name: str) -> float | None:
        """When the live entry for a branch was created, if there is one."""
        value: float | None = await self._entries.get(branch_name)
        return value

    def __len__(self) -> int:
        """Number of entries held, including expired ones not yet swept."""
        return len(self._entries)


class WebhookDeduplicator:
    """One independent deduplication cache per webhook event kind."""

    def __init__(
        self,
        ttl: float = DEFAULT_DEDUP_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize deduplicator.

        Args:
            ttl: TTL shared by the per-kind caches
            clock: Monotonic time source
        """
        self.caches = {
            kind: WebhookDeduplicationCache(ttl=ttl, clock=clock)
            for kind in WebhookEventKind
        }

    async def note_webhook_delivery(
        self, kind: WebhookEventKind | str, branch_name: str
    ) -> bool:
        """Record a delivery of an event kind for a branch.

        Returns:
            True if the caller should process the event, False if it is a duplicate
        """
        cache = self.caches[WebhookEventKind(kind)]
        is_new = await cache.note_delivery(branch_name)
        if not is_new:
            logger.info(f"Dropping duplicate {WebhookEventKind(kind).value} for {branch_name}")
        return is_new
