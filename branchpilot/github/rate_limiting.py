"""GitHub API rate limit tracking and circuit breaking."""

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime

from .exceptions import GitHubRateLimitError

# Only the core resource keeps a reserve; search allows 30 requests a minute
# so any reserve would block it permanently.
DEFAULT_RESOURCE_BUFFERS = {"core": 100}


@dataclass
class RateLimitInfo:
    """Rate limit information from GitHub API."""

    limit: int
    remaining: int
    reset: int
    used: int = 0
    resource: str = "core"

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "RateLimitInfo | None":
        """Build rate limit info from response headers, if present."""
        if "X-RateLimit-Limit" not in headers:
            return None

        try:
            return cls(
                limit=int(headers.get("X-RateLimit-Limit", 5000)),
                remaining=int(headers.get("X-RateLimit-Remaining", 0)),
                reset=int(headers.get("X-RateLimit-Reset", 0)),
                used=int(headers.get("X-RateLimit-Used", 0)),
                resource=headers.get("X-RateLimit-Resource", "core"),
            )
        except (ValueError, TypeError):
            return None

    @property
    def reset_datetime(self) -> datetime:
        """Get reset time as datetime."""
        return datetime.fromtimestamp(self.reset)

    @property
    def seconds_until_reset(self) -> float:
        """Get seconds until rate limit resets."""
        return max(0, self.reset - time.time())

    @property
    def is_exceeded(self) -> bool:
        """Check if rate limit is exceeded."""
        return self.remaining <= 0


@dataclass
class RateLimitManager:
    """Tracks GitHub rate limits per resource from response headers."""

    buffers: dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_RESOURCE_BUFFERS)
    )
    max_retry_wait: int = 3600

    _rate_limits: dict[str, RateLimitInfo] = field(default_factory=dict)

    def get_rate_limit(self, resource: str = "core") -> RateLimitInfo | None:
        """Get current rate limit info for resource."""
        return self._rate_limits.get(resource)

    def update_rate_limit(self, headers: Mapping[str, str]) -> None:
        """Update rate limit info from response headers.

        Args:
            headers: HTTP response headers from GitHub API
        """
        rate_limit = RateLimitInfo.from_headers(headers)
        if rate_limit is not None:
            self._rate_limits[rate_limit.resource] = rate_limit

    def check_rate_limit(self, resource: str = "core") -> None:
        """Check if rate limit allows request.

        Args:
            resource: GitHub API resource type

        Raises:
            GitHubRateLimitError: If the resource is inside its reserve until reset
        """
        rate_limit = self.get_rate_limit(resource)
        if not rate_limit:
            return

        buffer = self.buffers.get(resource, 0)
        if rate_limit.remaining <= buffer and rate_limit.seconds_until_reset > 0:
            wait_time = min(rate_limit.seconds_until_reset, self.max_retry_wait)
            raise GitHubRateLimitError(
                f"Rate limit approaching for {resource}. "
                f"Remaining: {rate_limit.remaining}, "
                f"Reset in {wait_time:.0f} seconds",
                reset_time=rate_limit.reset,
                remaining=rate_limit.remaining,
                limit=rate_limit.limit,
            )


class CircuitBreaker:
    """Circuit breaker for GitHub API transport failures."""

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize circuit breaker.

        Args:
            failure_threshold: Number of consecutive failures before opening
            recovery_timeout: Seconds to wait before allowing a probe request
            clock: Monotonic time source
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock

        self._failure_count = 0
        self._last_failure_time: float | None = None
        self._state = "closed"  # closed, open, half_open

    @property
    def state(self) -> str:
        """Current breaker state."""
        return self._state

    @property
    def is_open(self) -> bool:
        """Check if circuit is open."""
        return self._state == "open"

    def record_success(self) -> None:
        """Record successful call."""
        self._failure_count = 0
        self._state = "closed"

    def record_failure(self) -> None:
        """Record failed call."""
        self._failure_count += 1
        self._last_failure_time = self._clock()

        # A failed probe reopens immediately
        if self._state == "half_open" or self._failure_count >= self.failure_threshold:
            self._state = "open"

    def can_attempt_request(self) -> bool:
        """Check if request can be attempted."""
        if self._state != "open":
            return True

        if (
            self._last_failure_time is not None
            and self._clock() - self._last_failure_time >= self.recovery_timeout
        ):
            self._state = "half_open"
            return True

        return False

    def get_wait_time(self) -> float:
        """Get time to wait before next attempt."""
        if not self.is_open or self._last_failure_time is None:
            return 0

        elapsed = self._clock() - self._last_failure_time
        return max(0, self.recovery_timeout - elapsed)
