"""Data transfer objects shared by aggregation and orchestration.

Records are built by exactly one per-repository task and handed back to the
aggregator only once complete, so none of these types need locking.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from ..github.exceptions import BranchReadError
from ..github.models import (
    CheckState,
    PullRequest,
    Review,
    ReviewState,
    StatusCheck,
)
from .exceptions import MissingPullRequestError, PartialFailureError


@dataclass(frozen=True)
class BranchQuery:
    """A branch to look up across the catalog, and who is asking."""

    branch_name: str
    acting_user: str | None = None  # None selects the service credential


# Reconciliation results


@dataclass
class StatusSummary:
    """Latest CI state per context, with synthesized pending for missing ones."""

    checks: list[StatusCheck]  # newest first
    required_states: dict[str, CheckState]
    all_ok: bool

    @property
    def total(self) -> int:
        """Number of contexts reported or required."""
        return len(self.checks)

    @property
    def ok_count(self) -> int:
        """Number of contexts whose latest state is success."""
        return sum(1 for check in self.checks if check.state == CheckState.SUCCESS)

    @property
    def non_ok(self) -> dict[CheckState, list[str]]:
        """Contexts not in success, grouped by state."""
        grouped: dict[CheckState, list[str]] = {}
        for check in self.checks:
            if check.state != CheckState.SUCCESS:
                grouped.setdefault(check.state, []).append(check.context)
        return grouped


@dataclass
class ReviewSummary:
    """Review counts and approval verdict for a pull request."""

    counts: dict[ReviewState, int]
    approved: bool
    latest_state: ReviewState | None = None


@dataclass
class Reconciliation:
    """Combined status and review verdict for one repository."""

    status: StatusSummary
    reviews: ReviewSummary
    mergeable: bool


# Aggregation results


@dataclass
class RepoBranchRecord:
    """Everything known about one repository that carries the branch."""

    repository: str
    branch: str
    head_sha: str | None = None
    status_checks: list[StatusCheck] = field(default_factory=list)
    pull_request: PullRequest | None = None
    reviews: list[Review] = field(default_factory=list)
    reconciliation: Reconciliation | None = None
    error: BranchReadError | None = None

    @property
    def errored(self) -> bool:
        """Whether reading this repository failed."""
        return self.error is not None

    @property
    def mergeable(self) -> bool:
        """Whether checks pass, the PR is approved and it exists."""
        return (
            not self.errored
            and self.reconciliation is not None
            and self.reconciliation.mergeable
        )

    def require_pull_request(self) -> PullRequest:
        """The open pull request of this repository.

        Raises:
            MissingPullRequestError: If the branch has no open pull request
        """
        if self.pull_request is None:
            raise MissingPullRequestError(self.repository, self.branch)
        return self.pull_request


@dataclass
class AggregatedBranchView:
    """Per-repository records for a branch, keyed by repository name.

    Only repositories where the branch exists, or where reading it failed,
    are present.
    """

    query: BranchQuery
    records: dict[str, RepoBranchRecord] = field(default_factory=dict)

    @property
    def branch_name(self) -> str:
        return self.query.branch_name

    @property
    def repositories(self) -> list[str]:
        """Repository names in the view, sorted."""
        return sorted(self.records)

    def healthy(self) -> list[RepoBranchRecord]:
        """Records that were read successfully, sorted by repository."""
        records = (self.records[name] for name in self.repositories)
        return [record for record in records if not record.errored]

    def with_pull_requests(self) -> list[RepoBranchRecord]:
        """Readable records that have an open pull request."""
        return [record for record in self.healthy() if record.pull_request is not None]

    def without_pull_requests(self) -> list[RepoBranchRecord]:
        """Readable records that have no open pull request."""
        return [record for record in self.healthy() if record.pull_request is None]

    def errored(self) -> list[RepoBranchRecord]:
        """Records whose read failed."""
        records = (self.records[name] for name in self.repositories)
        return [record for record in records if record.errored]

    @property
    def mergeable(self) -> bool:
        """True when the view is non-empty, error free and every record is mergeable."""
        return bool(self.records) and all(
            record.mergeable for record in self.records.values()
        )

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[RepoBranchRecord]:
        return iter(self.records[name] for name in self.repositories)

    def __contains__(self, repository: object) -> bool:
        return repository in self.records

    def __getitem__(self, repository: str) -> RepoBranchRecord:
        return self.records[repository]


# Batch operation results


@dataclass
class RepositoryOutcome:
    """Result of a batch operation on one repository."""

    repository: str
    value: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchOperationResult:
    """Per-repository outcomes of a batch operation.

    Partial failure is reported, never raised, unless the caller asks for it
    with ``raise_for_failures``.
    """

    operation: str
    outcomes: dict[str, RepositoryOutcome] = field(default_factory=dict)

    def record(self, outcome: RepositoryOutcome) -> None:
        """Store the outcome for a repository."""
        self.outcomes[outcome.repository] = outcome

    @property
    def succeeded(self) -> dict[str, Any]:
        """Result value per repository that succeeded."""
        return {
            name: outcome.value
            for name, outcome in sorted(self.outcomes.items())
            if outcome.ok
        }

    @property
    def failed(self) -> dict[str, BaseException]:
        """Failure cause per repository that failed."""
        return {
            name: outcome.error
            for name, outcome in sorted(self.outcomes.items())
            if outcome.error is not None
        }

    @property
    def has_failures(self) -> bool:
        return any(not outcome.ok for outcome in self.outcomes.values())

    def raise_for_failures(self) -> None:
        """Raise PartialFailureError if any repository failed."""
        if self.has_failures:
            raise PartialFailureError(
                self.operation, list(self.succeeded), self.failed
            )

    def __len__(self) -> int:
        return len(self.outcomes)


# Pull request text


@dataclass(frozen=True)
class IssueReference:
    """An issue referenced from a branch name."""

    repository: str
    number: int

    def url(self, template: str) -> str:
        """Render the issue URL from a ``{repository}``/``{number}`` template."""
        return template.format(repository=self.repository, number=self.number)


@dataclass(frozen=True)
class PullRequestText:
    """Title and body for newly created pull requests."""

    title: str
    body: str
