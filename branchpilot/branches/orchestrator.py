"""Batch pull request operations across the repositories of a branch.

Every operation works on an ``AggregatedBranchView``, skips records whose
read failed, and reports one outcome per repository. A failure on one
repository never stops the others.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from ..config.models import BranchesConfig
from ..github.exceptions import GitHubError, PullRequestCreateError
from ..github.forge import ForgeClient, ForgeClientPool
from ..github.models import MergeMethod, PullRequest, PullRequestSpec
from .interfaces import (
    AggregatedBranchView,
    BatchOperationResult,
    PullRequestText,
    RepoBranchRecord,
    RepositoryOutcome,
)
from .pull_request_text import build_link_block, splice_repos_section

logger = logging.getLogger(__name__)

RecordOperation = Callable[[ForgeClient, RepoBranchRecord], Awaitable[Any]]


class PullRequestOrchestrator:
    """Creates, merges, closes, describes and cleans up a branch's pull requests."""

    def __init__(
        self,
        forge_pool: ForgeClientPool,
        settings: BranchesConfig,
        max_concurrent: int | None = None,
    ):
        """Initialize orchestrator.

        Args:
            forge_pool: Resolves the forge client for the acting user
            settings: Branch operation settings
            max_concurrent: Concurrent requests for parallel operations,
                defaults to ``settings.max_concurrent_repositories``
        """
        self.forge_pool = forge_pool
        self.settings = settings
        self.max_concurrent = max_concurrent or settings.max_concurrent_repositories

    async def _run_sequentially(
        self,
        operation: str,
        view: AggregatedBranchView,
        records: Sequence[RepoBranchRecord],
        action: RecordOperation,
    ) -> BatchOperationResult:
        forge = await self.forge_pool.for_user(view.query.acting_user)
        result = BatchOperationResult(operation)
        for record in records:
            result.record(await self._attempt(forge, record, action))
        self._log_result(view, result)
        return result

    async def _run_concurrently(
        self,
        operation: str,
        view: AggregatedBranchView,
        records: Sequence[RepoBranchRecord],
        action: RecordOperation,
    ) -> BatchOperationResult:
        forge = await self.forge_pool.for_user(view.query.acting_user)
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def run_one(record: RepoBranchRecord) -> RepositoryOutcome:
            async with semaphore:
                return await self._attempt(forge, record, action)

        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(run_one(record)) for record in records]

        result = BatchOperationResult(operation)
        for task in tasks:
            result.record(task.result())
        self._log_result(view, result)
        return result

    async def _attempt(
        self, forge: ForgeClient, record: RepoBranchRecord, action: RecordOperation
    ) -> RepositoryOutcome:
        try:
            value = await action(forge, record)
        except Exception as e:
            return RepositoryOutcome(record.repository, error=e)
        return RepositoryOutcome(record.repository, value=value)

    def _log_result(self, view: AggregatedBranchView, result: BatchOperationResult) -> None:
        if result.has_failures:
            logger.warning(
                f"{result.operation} on {view.branch_name}: "
                f"{len(result.succeeded)} succeeded, failed on {', '.join(result.failed)}"
            )
        else:
            logger.info(
                f"{result.operation} on {view.branch_name}: "
                f"{len(result.succeeded)} repositories"
            )

    async def create_for_missing(
        self,
        view: AggregatedBranchView,
        text: PullRequestText,
        target_base: str | None = None,
        draft: bool = False,
    ) -> BatchOperationResult:
        """Open a pull request in every repository of the view that lacks one.

        Requests are issued one at a time. A ``target_base`` equal to the
        configured default base means "each repository's default branch".

        Args:
            view: Aggregated branch view
            text: Title and body for the new pull requests
            target_base: Base branch, defaults to ``settings.default_base``
            draft: Open the pull requests as drafts

        Returns:
            Created PullRequest per repository, or the PullRequestCreateError
        """
        base = target_base or self.settings.default_base

        async def create(forge: ForgeClient, record: RepoBranchRecord) -> PullRequest:
            resolved_base = base
            if base == self.settings.default_base:
                try:
                    resolved_base = await forge.get_default_branch(record.repository)
                except GitHubError as e:
                    raise PullRequestCreateError(record.repository, e) from e

            spec = PullRequestSpec(
                title=text.title,
                head=view.branch_name,
                base=resolved_base,
                body=text.body,
                draft=draft,
            )
            return await forge.create_pull_request(record.repository, spec)

        return await self._run_sequentially(
            "Create pull requests", view, view.without_pull_requests(), create
        )

    async def merge_all(
        self, view: AggregatedBranchView, method: MergeMethod | None = None
    ) -> BatchOperationResult:
        """Merge every open pull request of the view."""
        merge_method = method or self.settings.merge_method

        async def merge(forge: ForgeClient, record: RepoBranchRecord) -> dict[str, Any]:
            pull_request = record.require_pull_request()
            return await forge.merge_pull_request(
                record.repository, pull_request.number, merge_method
            )

        return await self._run_concurrently(
            "Merge pull requests", view, view.with_pull_requests(), merge
        )

    async def close_all(self, view: AggregatedBranchView) -> BatchOperationResult:
        """Close every open pull request of the view without merging."""

        async def close(forge: ForgeClient, record: RepoBranchRecord) -> PullRequest:
            pull_request = record.require_pull_request()
            return await forge.close_pull_request(record.repository, pull_request.number)

        return await self._run_concurrently(
            "Close pull requests", view, view.with_pull_requests(), close
        )

    async def update_descriptions(
        self, view: AggregatedBranchView, link_block: str | None = None
    ) -> BatchOperationResult:
        """Rewrite the ``# REPOS`` section of every open pull request.

        Pull requests whose body already carries the same section are left
        untouched, so running this twice issues no second round of updates.

        Args:
            view: Aggregated branch view
            link_block: Section content, defaults to links to every pull request
                of the view

        Returns:
            The (possibly unchanged) PullRequest per repository
        """
        if link_block is None:
            link_block = build_link_block(
                view,
                self.settings.ci_badge_url_template,
                self.settings.ci_job_url_template,
            )

        async def describe(forge: ForgeClient, record: RepoBranchRecord) -> PullRequest:
            pull_request = record.require_pull_request()
            body = splice_repos_section(pull_request.body, link_block)
            if body == pull_request.body:
                logger.debug(f"Description of {record.repository} is up to date")
                return pull_request
            return await forge.update_pull_request(
                record.repository, pull_request.number, body=body
            )

        return await self._run_sequentially(
            "Update descriptions", view, view.with_pull_requests(), describe
        )

    async def delete_branches_across_repos(self, view: AggregatedBranchView) -> list[str]:
        """Delete the branch from every repository of the view.

        Deletion is attempted everywhere, with or without a pull request.
        Repositories whose read failed count as failures.

        Returns:
            Repositories the branch was deleted from

        Raises:
            PartialFailureError: If any repository could not be cleaned up
        """

        async def delete(forge: ForgeClient, record: RepoBranchRecord) -> None:
            await forge.delete_branch(record.repository, record.branch)

        result = await self._run_concurrently(
            "Delete branches", view, view.healthy(), delete
        )
        for record in view.errored():
            result.record(RepositoryOutcome(record.repository, error=record.error))

        result.raise_for_failures()
        return list(result.succeeded)

    async def announce(self, view: AggregatedBranchView, body: str) -> BatchOperationResult:
        """Leave a comment review on every open pull request of the view."""

        async def comment(forge: ForgeClient, record: RepoBranchRecord) -> dict[str, Any]:
            pull_request = record.require_pull_request()
            return await forge.comment_on_pull_request(
                record.repository, pull_request.number, body
            )

        return await self._run_concurrently(
            "Announce", view, view.with_pull_requests(), comment
        )
