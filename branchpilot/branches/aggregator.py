"""Concurrent per-repository branch reads merged into one view."""

import asyncio
import functools
import logging
import time
from collections.abc import Callable, Coroutine, Iterable
from typing import Any

from ..github.exceptions import BranchReadError, GitHubNotFoundError
from ..github.forge import ForgeClient, ForgeClientPool
from .catalog import RepositoryCatalog
from .interfaces import AggregatedBranchView, BranchQuery, RepoBranchRecord
from .reconciler import latest_status_checks, reconcile

logger = logging.getLogger(__name__)


class ConcurrencyController:
    """Bounds how many repository pipelines run at once."""

    def __init__(self, max_concurrent: int):
        """Initialize concurrency controller.

        Args:
            max_concurrent: Maximum concurrent operations
        """
        self.semaphore = asyncio.Semaphore(max_concurrent)
        self.active_tasks: set[asyncio.Task[Any]] = set()
        self.max_concurrent = max_concurrent

    async def run_with_limit(
        self, operation: Callable[[], Coroutine[Any, Any, Any]], task_name: str
    ) -> Any:
        """Start the operation once a slot is free and await it."""
        async with self.semaphore:
            task = asyncio.create_task(operation(), name=task_name)
            self.active_tasks.add(task)
            try:
                return await task
            finally:
                self.active_tasks.discard(task)

    def get_stats(self) -> dict[str, Any]:
        """Get concurrency statistics."""
        return {
            "max_concurrent": self.max_concurrent,
            "active_tasks": len(self.active_tasks),
            "task_names": [task.get_name() for task in self.active_tasks],
        }


class BranchAggregator:
    """Finds which repositories carry a branch and what state each is in.

    Every candidate repository is read by its own task. A repository without
    the branch is left out of the view; one whose read fails for any other
    reason is kept and tagged as errored. One repository failing never
    cancels its siblings; cancelling the aggregation cancels all of them.
    """

    def __init__(
        self,
        catalog: RepositoryCatalog,
        forge_pool: ForgeClientPool,
        required_checks: Iterable[str],
        max_concurrent: int = 10,
    ):
        """Initialize aggregator.

        Args:
            catalog: Source of candidate repositories
            forge_pool: Resolves the forge client for the acting user
            required_checks: CI contexts that must succeed
            max_concurrent: Maximum repositories read at once
        """
        self.catalog = catalog
        self.forge_pool = forge_pool
        self.required_checks = frozenset(required_checks)
        self.concurrency_controller = ConcurrencyController(max_concurrent)

    async def aggregate(
        self, query: BranchQuery, timeout: float | None = None
    ) -> AggregatedBranchView:
        """Build the view of a branch across the catalog.

        Args:
            query: Branch name and acting user
            timeout: Optional overall deadline in seconds

        Returns:
            View with one record per repository carrying (or failing to read) the branch

        Raises:
            CatalogUnavailableError: If the repository list cannot be obtained
            TimeoutError: If the deadline passes; in-flight reads are cancelled
        """
        start_time = time.monotonic()
        repositories = await self.catalog.list_repositories()
        forge = await self.forge_pool.for_user(query.acting_user)

        async with asyncio.timeout(timeout):
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(
                        self.concurrency_controller.run_with_limit(
                            functools.partial(
                                self._read_repository, forge, repository, query.branch_name
                            ),
                            task_name=f"read-{repository}",
                        )
                    )
                    for repository in dict.fromkeys(repositories)
                ]

        view = AggregatedBranchView(query=query)
        for task in tasks:
            record = task.result()
            if record is not None:
                view.records[record.repository] = record

        elapsed = time.monotonic() - start_time
        logger.info(
            f"Aggregated {query.branch_name}: found in {len(view)} of "
            f"{len(repositories)} repositories, {len(view.errored())} errored, "
            f"{len(view.with_pull_requests())} with PR in {elapsed:.2f}s"
        )
        return view

    async def _read_repository(
        self, forge: ForgeClient, repository: str, branch: str
    ) -> RepoBranchRecord | None:
        """Read one repository; None when it does not carry the branch."""
        try:
            ref = await forge.get_branch(repository, branch)
        except GitHubNotFoundError:
            return None
        except Exception as e:
            return self._errored_record(repository, branch, e)

        try:
            checks = await forge.list_status_checks(repository, ref.sha)
            pull_request = await forge.find_open_pull_request(repository, branch)
            reviews = await forge.list_reviews(repository, pull_request)
        except Exception as e:
            return self._errored_record(repository, branch, e)

        return RepoBranchRecord(
            repository=repository,
            branch=branch,
            head_sha=ref.sha,
            status_checks=latest_status_checks(checks),
            pull_request=pull_request,
            reviews=reviews,
            reconciliation=reconcile(
                checks, reviews, self.required_checks, pull_request
            ),
        )

    def _errored_record(
        self, repository: str, branch: str, cause: Exception
    ) -> RepoBranchRecord:
        error = BranchReadError(repository, cause)
        logger.warning(f"Could not read {branch} on {repository}: {error.detail}")
        return RepoBranchRecord(repository=repository, branch=branch, error=error)
