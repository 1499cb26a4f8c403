"""Multi-repository branch aggregation and pull request orchestration."""

from .aggregator import BranchAggregator, ConcurrencyController
from .catalog import (
    ManifestRepositoryCatalog,
    RepositoryCatalog,
    StaticRepositoryCatalog,
)
from .exceptions import (
    BranchPilotError,
    CatalogUnavailableError,
    MissingPullRequestError,
    PartialFailureError,
)
from .interfaces import (
    AggregatedBranchView,
    BatchOperationResult,
    BranchQuery,
    IssueReference,
    PullRequestText,
    Reconciliation,
    RepoBranchRecord,
    RepositoryOutcome,
    ReviewSummary,
    StatusSummary,
)
from .orchestrator import PullRequestOrchestrator
from .pull_request_text import (
    REPOS_MARKER,
    build_link_block,
    build_pull_request_body,
    build_pull_request_text,
    parse_issue_references,
    pull_request_title,
    splice_repos_section,
)
from .reconciler import latest_status_checks, reconcile
from .retry import RateLimitRetryController

__all__ = [
    "REPOS_MARKER",
    "AggregatedBranchView",
    "BatchOperationResult",
    "BranchAggregator",
    "BranchPilotError",
    "BranchQuery",
    "CatalogUnavailableError",
    "ConcurrencyController",
    "IssueReference",
    "ManifestRepositoryCatalog",
    "MissingPullRequestError",
    "PartialFailureError",
    "PullRequestOrchestrator",
    "PullRequestText",
    "RateLimitRetryController",
    "Reconciliation",
    "RepoBranchRecord",
    "RepositoryCatalog",
    "RepositoryOutcome",
    "ReviewSummary",
    "StaticRepositoryCatalog",
    "StatusSummary",
    "build_link_block",
    "build_pull_request_body",
    "build_pull_request_text",
    "latest_status_checks",
    "parse_issue_references",
    "pull_request_title",
    "reconcile",
    "splice_repos_section",
]
