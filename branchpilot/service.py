"""Entry point used by the chat command and webhook layers.

``BranchService`` wires the catalog, forge clients, aggregator,
orchestrator, retry controller and webhook deduplication together from a
``Config``. It never formats chat replies: every method returns data or
raises a classified error.
"""

import logging
from typing import Any

from .branches.aggregator import BranchAggregator
from .branches.catalog import (
    ManifestRepositoryCatalog,
    RepositoryCatalog,
    StaticRepositoryCatalog,
)
from .branches.interfaces import (
    AggregatedBranchView,
    BatchOperationResult,
    BranchQuery,
    PullRequestText,
    RepositoryOutcome,
)
from .branches.orchestrator import PullRequestOrchestrator
from .branches.pull_request_text import (
    build_pull_request_body,
    parse_issue_references,
    pull_request_title,
)
from .branches.retry import RateLimitRetryController
from .cache.webhook_dedup import WebhookDeduplicator, WebhookEventKind
from .config.models import Config
from .github.auth import (
    AuthProvider,
    CredentialStore,
    GitHubAppAuth,
    PersonalAccessTokenAuth,
    StaticCredentialStore,
)
from .github.client import GitHubClientConfig
from .github.exceptions import GitHubError, PullRequestCommentError
from .github.forge import ForgeClientPool
from .github.models import CodeSearchMatch, MergeMethod

logger = logging.getLogger(__name__)


def build_auth_provider(config: Config) -> AuthProvider:
    """Service credential from the github section."""
    github = config.github
    if github.token:
        return PersonalAccessTokenAuth(github.token)
    return GitHubAppAuth(
        app_id=str(github.app_id),
        private_key=str(github.private_key),
        installation_id=str(github.installation_id),
        base_url=github.base_url,
    )


def build_catalog(config: Config) -> RepositoryCatalog:
    """Repository catalog from the catalog section."""
    catalog = config.catalog
    if catalog.manifest_url:
        headers = {}
        if catalog.manifest_token:
            headers["Authorization"] = f"token {catalog.manifest_token}"
        return ManifestRepositoryCatalog(
            catalog.manifest_url,
            headers=headers,
            refresh_interval=catalog.refresh_interval,
            timeout=config.github.timeout,
        )
    return StaticRepositoryCatalog(catalog.repositories)


class BranchService:
    """Branch status and pull request lifecycle across the organization."""

    def __init__(
        self,
        config: Config,
        catalog: RepositoryCatalog,
        forge_pool: ForgeClientPool,
        deduplicator: WebhookDeduplicator | None = None,
        retry_controller: RateLimitRetryController | None = None,
    ):
        """Initialize service.

        Args:
            config: Loaded configuration
            catalog: Source of candidate repositories
            forge_pool: Forge clients per acting user
            deduplicator: Webhook deduplication caches
            retry_controller: Retry policy for rate-limited code search
        """
        self.config = config
        self.catalog = catalog
        self.forge_pool = forge_pool
        self.deduplicator = deduplicator or WebhookDeduplicator(
            ttl=config.webhooks.dedup_ttl_seconds
        )
        self.retry_controller = retry_controller or RateLimitRetryController(
            max_attempts=config.search.max_attempts,
            backoff_seconds=config.search.backoff_seconds,
            backoff_multiplier=config.search.backoff_multiplier,
        )
        self.aggregator = BranchAggregator(
            catalog,
            forge_pool,
            config.branches.required_checks,
            config.branches.max_concurrent_repositories,
        )
        self.orchestrator = PullRequestOrchestrator(forge_pool, config.branches)

    @classmethod
    def from_config(
        cls, config: Config, credential_store: CredentialStore | None = None
    ) -> "BranchService":
        """Build a service and its collaborators from configuration.

        Args:
            config: Loaded configuration
            credential_store: Per-user tokens, defaults to ``github.user_tokens``
        """
        github = config.github
        client_config = GitHubClientConfig(
            base_url=github.base_url,
            timeout=github.timeout,
            max_retries=github.max_retries,
            retry_backoff_factor=github.retry_backoff_factor,
            user_agent=github.user_agent,
            max_concurrent_requests=github.max_concurrent_requests,
        )
        forge_pool = ForgeClientPool(
            build_auth_provider(config),
            github.organization,
            client_config=client_config,
            credential_store=credential_store or StaticCredentialStore(github.user_tokens),
            search_max_pages=config.search.max_pages,
        )
        return cls(config, build_catalog(config), forge_pool)

    async def __aenter__(self) -> "BranchService":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close pooled HTTP sessions."""
        await self.forge_pool.close()
        await self.catalog.close()

    async def list_repositories(self) -> list[str]:
        """Candidate repositories from the catalog."""
        return await self.catalog.list_repositories()

    async def aggregate(
        self, branch_name: str, acting_user: str | None = None
    ) -> AggregatedBranchView:
        """Look a branch up across every repository of the catalog."""
        return await self.aggregator.aggregate(
            BranchQuery(branch_name, acting_user),
            timeout=self.config.system.operation_timeout,
        )

    async def _has_user_credential(self, user: str | None) -> bool:
        store = self.forge_pool.credential_store
        if not user or store is None:
            return False
        return bool(await store.get_user_token(user))

    async def build_pull_request_text(
        self, view: AggregatedBranchView, created_by: str | None = None
    ) -> PullRequestText:
        """Title and body for new pull requests on the view's branch.

        The creator note is only added when the PRs are opened with the
        service credential on someone's behalf.
        """
        references = parse_issue_references(
            view.branch_name, self.config.branches.issue_separator
        )

        issue_titles: list[str | None] = []
        if len(references) == 1:
            forge = await self.forge_pool.for_user(view.query.acting_user)
            reference = references[0]
            try:
                issue_titles.append(
                    await forge.get_issue_title(reference.repository, reference.number)
                )
            except GitHubError as e:
                logger.warning(
                    f"Could not read issue {reference.repository}#{reference.number}: {e}"
                )

        if created_by and await self._has_user_credential(view.query.acting_user):
            created_by = None

        return PullRequestText(
            title=pull_request_title(view.branch_name, references, issue_titles),
            body=build_pull_request_body(
                view.branch_name,
                view.repositories,
                references,
                self.config.issue_url_template,
                created_by,
            ),
        )

    async def create_for_missing(
        self,
        view: AggregatedBranchView,
        text: PullRequestText | None = None,
        target_base: str | None = None,
        draft: bool = False,
    ) -> BatchOperationResult:
        """Open pull requests where the view has none."""
        if text is None:
            text = await self.build_pull_request_text(view, view.query.acting_user)
        return await self.orchestrator.create_for_missing(view, text, target_base, draft)

    async def create_pull_requests(
        self,
        branch_name: str,
        acting_user: str | None = None,
        target_base: str | None = None,
        draft: bool = False,
        created_by: str | None = None,
    ) -> BatchOperationResult:
        """Open missing pull requests for a branch, then cross-link all of them.

        Args:
            branch_name: Head branch
            acting_user: Chat user whose credential is used, if stored
            target_base: Base branch, defaults to each repository's default branch
            draft: Open the pull requests as drafts
            created_by: Name recorded in the body when acting with the service credential

        Returns:
            Creation outcome per repository that had no pull request
        """
        view = await self.aggregate(branch_name, acting_user)
        text = await self.build_pull_request_text(view, created_by or acting_user)
        created = await self.orchestrator.create_for_missing(
            view, text, target_base, draft
        )

        refreshed = await self.aggregate(branch_name, acting_user)
        await self.orchestrator.update_descriptions(refreshed)
        return created

    async def merge_all(
        self, view: AggregatedBranchView, method: MergeMethod | None = None
    ) -> BatchOperationResult:
        """Merge every open pull request of the view."""
        return await self.orchestrator.merge_all(view, method)

    async def close_all(self, view: AggregatedBranchView) -> BatchOperationResult:
        """Close every open pull request of the view."""
        return await self.orchestrator.close_all(view)

    async def update_descriptions(
        self, view: AggregatedBranchView, link_block: str | None = None
    ) -> BatchOperationResult:
        """Refresh the cross-repository links of every open pull request."""
        return await self.orchestrator.update_descriptions(view, link_block)

    async def delete_branches_across_repos(self, view: AggregatedBranchView) -> list[str]:
        """Delete the branch everywhere; raises PartialFailureError on any failure."""
        return await self.orchestrator.delete_branches_across_repos(view)

    async def announce(self, view: AggregatedBranchView, body: str) -> BatchOperationResult:
        """Comment on every open pull request of the view."""
        return await self.orchestrator.announce(view, body)

    async def comment_on_referenced_issues(
        self, branch_name: str, body: str, acting_user: str | None = None
    ) -> BatchOperationResult:
        """Comment on every issue referenced by a branch name.

        Outcomes are keyed by ``<repository>#<number>``.
        """
        forge = await self.forge_pool.for_user(acting_user)
        result = BatchOperationResult("Comment on issues")
        references = parse_issue_references(
            branch_name, self.config.branches.issue_separator
        )
        for reference in references:
            key = f"{reference.repository}#{reference.number}"
            try:
                value = await forge.comment_on_issue(
                    reference.repository, reference.number, body
                )
            except PullRequestCommentError as e:
                result.record(RepositoryOutcome(key, error=e))
            else:
                result.record(RepositoryOutcome(key, value=value))
        return result

    async def search_issue_references(
        self, issue_id: str
    ) -> dict[str, list[CodeSearchMatch]] | None:
        """Find code mentioning an issue across the organization.

        Rate-limited searches are retried by the retry controller.

        Returns:
            Matches per repository, or None when nothing matched

        Raises:
            GitHubRateLimitError: If the search stays rate limited
            CodeSearchError: If the search fails otherwise
        """
        forge = await self.forge_pool.for_user(None)
        matches = await self.retry_controller.run(
            lambda: forge.search_code_across_org(issue_id, self.config.search.max_pages),
            description=f"Code search for {issue_id}",
        )
        return matches or None

    async def note_webhook_delivery(
        self, kind: WebhookEventKind | str, branch_name: str
    ) -> bool:
        """Whether a webhook delivery for a branch is the first inside the TTL."""
        return await self.deduplicator.note_webhook_delivery(kind, branch_name)
