"""Typed view of GitHub ``pull_request`` webhook payloads."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class PullRequestEvent:
    """The fields of a pull_request delivery the bot reacts to."""

    action: str
    repository: str
    branch: str
    base: str
    number: int
    merged: bool = False
    merge_commit_sha: str | None = None
    html_url: str = ""
    delivery_id: int | None = None

    @property
    def is_opened(self) -> bool:
        return self.action == "opened"

    @property
    def is_merged(self) -> bool:
        return self.action == "closed" and self.merged


def parse_pull_request_event(payload: Mapping[str, Any]) -> PullRequestEvent | None:
    """Extract a PullRequestEvent from a webhook body.

    Returns:
        The event, or None when the payload is not a pull_request delivery
    """
    pull_request = payload.get("pull_request")
    if not isinstance(pull_request, Mapping):
        return None

    head = pull_request.get("head") or {}
    head_repo = head.get("repo") or {}
    repository = head_repo.get("name") or (payload.get("repository") or {}).get("name")
    if not head.get("ref") or not repository:
        return None

    return PullRequestEvent(
        action=str(payload.get("action", "")),
        repository=repository,
        branch=head["ref"],
        base=(pull_request.get("base") or {}).get("ref", ""),
        number=int(pull_request.get("number") or payload.get("number") or 0),
        merged=bool(pull_request.get("merged")),
        merge_commit_sha=pull_request.get("merge_commit_sha"),
        html_url=pull_request.get("html_url", ""),
        delivery_id=pull_request.get("id"),
    )
