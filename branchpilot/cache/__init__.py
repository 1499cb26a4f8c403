"""In-process caches."""

from .memory_cache import MemoryCache
from .webhook_dedup import (
    DEFAULT_DEDUP_TTL,
    WebhookDeduplicationCache,
    WebhookDeduplicator,
    WebhookEventKind,
)

__all__ = [
    "DEFAULT_DEDUP_TTL",
    "MemoryCache",
    "WebhookDeduplicationCache",
    "WebhookDeduplicator",
    "WebhookEventKind",
]
