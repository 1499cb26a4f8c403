"""Bounded retry of operations that hit GitHub rate limits."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from ..github.exceptions import GitHubRateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimitRetryController:
    """Retries an operation on rate-limit errors, a fixed number of times.

    Only ``GitHubRateLimitError`` is retried; anything else propagates on
    the first occurrence. The wait uses an awaitable sleep, so cancelling
    the calling task interrupts it.
    """

    def __init__(
        self,
        max_attempts: int = 5,
        backoff_seconds: float = 60.0,
        backoff_multiplier: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize retry controller.

        Args:
            max_attempts: Total attempts including the first one
            backoff_seconds: Wait before the first retry
            backoff_multiplier: Growth factor applied to each further wait
            sleep: Awaitable sleep
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.backoff_multiplier = backoff_multiplier
        self._sleep = sleep

    def backoff_for(self, attempt: int) -> float:
        """Wait after a failed attempt (1-based)."""
        return self.backoff_seconds * (self.backoff_multiplier ** (attempt - 1))

    async def run(
        self, operation: Callable[[], Awaitable[T]], description: str = "operation"
    ) -> T:
        """Run an operation, retrying while it is rate limited.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per attempt
            description: Name used in log messages

        Returns:
            The operation's result

        Raises:
            GitHubRateLimitError: If every attempt was rate limited
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except GitHubRateLimitError:
                if attempt == self.max_attempts:
                    logger.error(
                        f"{description} still rate limited after {attempt} attempts"
                    )
                    raise
                wait = self.backoff_for(attempt)
                logger.warning(
                    f"{description} rate limited (attempt {attempt}/"
                    f"{self.max_attempts}), retrying in {wait:.0f}s"
                )
                await self._sleep(wait)

        raise AssertionError("unreachable")
