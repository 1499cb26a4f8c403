"""Merge CI status and review state into a mergeability verdict.

Everything here is pure: the same inputs always give the same verdict.
"""

from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from ..github.models import (
    CheckState,
    PullRequest,
    Review,
    ReviewState,
    StatusCheck,
)
from .interfaces import Reconciliation, ReviewSummary, StatusSummary

_EPOCH = datetime.min.replace(tzinfo=UTC)


def _timestamp(value: datetime | None) -> datetime:
    return value if value is not None else _EPOCH


def latest_status_checks(status_checks: Iterable[StatusCheck]) -> list[StatusCheck]:
    """Keep the most recent status per context.

    When two statuses of a context share the same ``updated_at``, the one
    appearing later in the input wins.

    Args:
        status_checks: Statuses in any order

    Returns:
        One status per context, ordered by ``updated_at`` descending
    """
    latest: dict[str, StatusCheck] = {}
    for check in status_checks:
        current = latest.get(check.context)
        if current is None or _timestamp(check.updated_at) >= _timestamp(
            current.updated_at
        ):
            latest[check.context] = check

    return sorted(
        latest.values(), key=lambda check: _timestamp(check.updated_at), reverse=True
    )


def summarize_status(
    status_checks: Iterable[StatusCheck], required_checks: Iterable[str]
) -> StatusSummary:
    """Summarize CI status against the required contexts.

    Required contexts that never reported are synthesized as pending. With
    no required contexts, the status is ok only if at least one context
    reported and all of them succeeded.
    """
    latest = latest_status_checks(status_checks)
    by_context = {check.context: check for check in latest}
    required = sorted(set(required_checks))

    missing = [
        StatusCheck(context=context, state=CheckState.PENDING)
        for context in required
        if context not in by_context
    ]
    required_states = {
        context: by_context[context].state if context in by_context else CheckState.PENDING
        for context in required
    }

    if required:
        all_ok = all(state == CheckState.SUCCESS for state in required_states.values())
    else:
        all_ok = bool(latest) and all(
            check.state == CheckState.SUCCESS for check in latest
        )

    return StatusSummary(
        checks=latest + missing, required_states=required_states, all_ok=all_ok
    )


def summarize_reviews(reviews: Sequence[Review]) -> ReviewSummary:
    """Count reviews by state and decide approval.

    Any approval counts, even if changes were requested afterwards.
    """
    counts = Counter(review.state for review in reviews)

    latest: Review | None = None
    for review in reviews:
        if latest is None or _timestamp(review.submitted_at) >= _timestamp(
            latest.submitted_at
        ):
            latest = review

    return ReviewSummary(
        counts=dict(counts),
        approved=counts[ReviewState.APPROVED] > 0,
        latest_state=latest.state if latest is not None else None,
    )


def reconcile(
    status_checks: Iterable[StatusCheck],
    reviews: Sequence[Review],
    required_checks: Iterable[str],
    pull_request: PullRequest | None,
) -> Reconciliation:
    """Combine status and reviews for one repository.

    Args:
        status_checks: Every status reported for the branch head
        reviews: Reviews of the open pull request, if any
        required_checks: Contexts that must succeed
        pull_request: The open pull request, or None

    Returns:
        Reconciliation whose ``mergeable`` requires passing checks, an
        approval and an open pull request
    """
    status = summarize_status(status_checks, required_checks)
    review_summary = summarize_reviews(reviews)
    return Reconciliation(
        status=status,
        reviews=review_summary,
        mergeable=status.all_ok and review_summary.approved and pull_request is not None,
    )
