"""Typed views of the GitHub payloads the forge adapter works with."""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a GitHub ISO-8601 timestamp."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class CheckState(str, Enum):
    """Commit status states."""

    SUCCESS = "success"
    PENDING = "pending"
    ERROR = "error"
    FAILURE = "failure"


class PullRequestState(str, Enum):
    """Pull request lifecycle states."""

    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"


class ReviewState(str, Enum):
    """Pull request review states."""

    PENDING = "PENDING"
    COMMENTED = "COMMENTED"
    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    DISMISSED = "DISMISSED"

    @classmethod
    def _missing_(cls, value: object) -> "ReviewState | None":
        # The review creation API names the event REQUEST_CHANGES
        if value == "REQUEST_CHANGES":
            return cls.CHANGES_REQUESTED
        return None


class MergeMethod(str, Enum):
    """Pull request merge strategies."""

    MERGE = "merge"
    SQUASH = "squash"
    REBASE = "rebase"


@dataclass(frozen=True)
class BranchRef:
    """A branch and the commit it points at."""

    name: str
    sha: str
    protected: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "BranchRef":
        """Build from a ``GET /branches/{branch}`` response."""
        return cls(
            name=data["name"],
            sha=data.get("commit", {}).get("sha", ""),
            protected=bool(data.get("protected", False)),
        )


@dataclass(frozen=True)
class StatusCheck:
    """A commit status reported by CI for one context."""

    context: str
    state: CheckState
    updated_at: datetime | None = None
    target_url: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "StatusCheck":
        """Build from one item of the commit statuses listing."""
        return cls(
            context=data["context"],
            state=CheckState(data["state"]),
            updated_at=parse_timestamp(data.get("updated_at")),
            target_url=data.get("target_url"),
        )


@dataclass
class PullRequest:
    """Pull request fields the orchestration needs."""

    number: int
    state: PullRequestState
    html_url: str
    body: str | None = None
    title: str = ""
    head_ref: str = ""
    base_ref: str = ""
    draft: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "PullRequest":
        """Build from a pull request payload."""
        if data.get("merged_at") or data.get("merged"):
            state = PullRequestState.MERGED
        else:
            state = PullRequestState(data.get("state", "open"))

        return cls(
            number=data["number"],
            state=state,
            html_url=data.get("html_url", ""),
            body=data.get("body"),
            title=data.get("title", ""),
            head_ref=data.get("head", {}).get("ref", ""),
            base_ref=data.get("base", {}).get("ref", ""),
            draft=bool(data.get("draft", False)),
        )


@dataclass(frozen=True)
class Review:
    """A submitted (or pending) pull request review."""

    state: ReviewState
    submitted_at: datetime | None = None
    reviewer: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Review | None":
        """Build from a review payload; unknown states yield None."""
        try:
            state = ReviewState(data.get("state"))
        except ValueError:
            logger.debug(f"Ignoring review with unknown state {data.get('state')!r}")
            return None

        return cls(
            state=state,
            submitted_at=parse_timestamp(data.get("submitted_at")),
            reviewer=(data.get("user") or {}).get("login"),
        )


@dataclass(frozen=True)
class CodeSearchMatch:
    """One file matched by a code search."""

    repository: str
    path: str
    html_url: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "CodeSearchMatch":
        """Build from one item of ``/search/code``."""
        return cls(
            repository=data["repository"]["name"],
            path=data.get("path", ""),
            html_url=data.get("html_url", ""),
        )


@dataclass(frozen=True)
class PullRequestSpec:
    """Everything needed to open one pull request."""

    title: str
    head: str
    base: str
    body: str = ""
    draft: bool = False

    def to_payload(self) -> dict[str, Any]:
        """Request body for ``POST /pulls``."""
        return {
            "title": self.title,
            "head": self.head,
            "base": self.base,
            "body": self.body,
            "draft": self.draft,
        }
