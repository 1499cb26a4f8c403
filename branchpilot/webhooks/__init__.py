"""Webhook payload handling."""

from .events import PullRequestEvent, parse_pull_request_event
from .exceptions import WebhookRequestError, WebhookSignatureError
from .processor import (
    CreateRequestResult,
    MergeAnnouncement,
    WebhookOutcome,
    WebhookProcessor,
    WebhookResult,
)
from .signed_requests import (
    CreatePullRequestsRequest,
    compute_signature,
    verify_signature,
)

__all__ = [
    "CreatePullRequestsRequest",
    "CreateRequestResult",
    "MergeAnnouncement",
    "PullRequestEvent",
    "WebhookOutcome",
    "WebhookProcessor",
    "WebhookRequestError",
    "WebhookResult",
    "WebhookSignatureError",
    "compute_signature",
    "parse_pull_request_event",
    "verify_signature",
]
