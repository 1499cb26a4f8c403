"""Reactions to pull request webhooks and signed create-PR requests.

A branch spanning several repositories triggers one delivery per
repository, so each side effect is gated by the deduplication cache of
its event kind. Dropped duplicates must still be acknowledged by the
transport layer.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..branches.interfaces import BatchOperationResult
from ..cache.webhook_dedup import WebhookEventKind
from .events import PullRequestEvent, parse_pull_request_event
from .signed_requests import CreatePullRequestsRequest

if TYPE_CHECKING:
    from ..service import BranchService

logger = logging.getLogger(__name__)


class WebhookOutcome(str, Enum):
    """What happened to a delivery."""

    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


@dataclass(frozen=True)
class MergeAnnouncement:
    """A branch was merged; the caller decides how to tell people."""

    branch: str
    repository: str
    base: str
    merge_commit_sha: str | None


@dataclass
class WebhookResult:
    """Result of handling a pull_request delivery."""

    outcome: WebhookOutcome
    event: PullRequestEvent | None = None
    issue_comments: BatchOperationResult | None = None
    announcement: MergeAnnouncement | None = None


@dataclass
class CreateRequestResult:
    """Result of handling a signed create-PR request."""

    request: CreatePullRequestsRequest
    created: BatchOperationResult | None = None

    @property
    def dry_run(self) -> bool:
        return self.request.dry_run


class WebhookProcessor:
    """Dispatches webhook payloads to the branch service."""

    def __init__(self, service: "BranchService"):
        self.service = service

    async def handle_pull_request(self, payload: Mapping[str, Any]) -> WebhookResult:
        """Handle a pull_request delivery.

        On "opened", every issue referenced by the branch name gets a
        comment linking the pull request. On a merge, a MergeAnnouncement is
        returned. Other actions are ignored.
        """
        event = parse_pull_request_event(payload)
        if event is None:
            return WebhookResult(WebhookOutcome.IGNORED)

        if event.is_opened:
            return await self._on_opened(event)
        if event.is_merged:
            return await self._on_merged(event)

        logger.debug(f"Ignoring pull_request {event.action} on {event.repository}")
        return WebhookResult(WebhookOutcome.IGNORED, event)

    async def _on_opened(self, event: PullRequestEvent) -> WebhookResult:
        if not await self.service.note_webhook_delivery(
            WebhookEventKind.PR_OPENED, event.branch
        ):
            return WebhookResult(WebhookOutcome.DUPLICATE, event)

        body = f"Pull request opened on `{event.branch}`: {event.html_url}"
        comments = await self.service.comment_on_referenced_issues(event.branch, body)
        logger.info(
            f"PR opened on {event.branch} ({event.repository}), "
            f"commented on {len(comments.succeeded)} issues"
        )
        return WebhookResult(WebhookOutcome.PROCESSED, event, issue_comments=comments)

    async def _on_merged(self, event: PullRequestEvent) -> WebhookResult:
        if not await self.service.note_webhook_delivery(
            WebhookEventKind.PR_MERGED, event.branch
        ):
            return WebhookResult(WebhookOutcome.DUPLICATE, event)

        logger.info(f"Branch {event.branch} merged into {event.base}")
        return WebhookResult(
            WebhookOutcome.PROCESSED,
            event,
            announcement=MergeAnnouncement(
                branch=event.branch,
                repository=event.repository,
                base=event.base,
                merge_commit_sha=event.merge_commit_sha,
            ),
        )

    async def handle_create_request(
        self, payload: Mapping[str, Any] | None
    ) -> CreateRequestResult:
        """Validate a signed create-PR request and act on it.

        Raises:
            WebhookRequestError: If the payload is incomplete
            WebhookSignatureError: If the signature does not match
        """
        request = CreatePullRequestsRequest.from_payload(payload)
        request.verify(self.service.config.webhooks.create_pr_secret)

        if request.dry_run:
            logger.info(
                f"Dry run: would create PRs on {request.branch} for {request.author} "
                f"targeting {request.target}"
            )
            return CreateRequestResult(request)

        created = await self.service.create_pull_requests(
            request.branch,
            target_base=request.target,
            draft=request.draft,
            created_by=request.author,
        )
        return CreateRequestResult(request, created)
