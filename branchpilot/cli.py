"""Command line access to branch status and code search.

Examples:
  # Repositories of the catalog
  branchpilot --config config.yaml repos

  # Status of a branch across the organization
  branchpilot status feature/login__webapp-42

  # Where an issue is referenced in code
  branchpilot search-issue PROJ-123
"""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from typing import Any

from .branches.exceptions import BranchPilotError
from .branches.interfaces import AggregatedBranchView, RepoBranchRecord
from .config import ConfigurationError, load_config
from .github.exceptions import ForgeOperationError, GitHubError
from .service import BranchService

logger = logging.getLogger(__name__)


def record_to_dict(record: RepoBranchRecord) -> dict[str, Any]:
    """JSON-friendly summary of one repository record."""
    if record.error is not None:
        return {"errored": True, "kind": record.error.kind.value, "detail": record.error.detail}

    summary: dict[str, Any] = {"errored": False, "mergeable": record.mergeable}
    if record.pull_request is not None:
        summary["pull_request"] = {
            "number": record.pull_request.number,
            "url": record.pull_request.html_url,
        }
    if record.reconciliation is not None:
        status = record.reconciliation.status
        reviews = record.reconciliation.reviews
        summary["checks"] = {
            "ok": status.ok_count,
            "total": status.total,
            "all_ok": status.all_ok,
            "non_ok": {state.value: contexts for state, contexts in status.non_ok.items()},
        }
        summary["reviews"] = {
            "approved": reviews.approved,
            "counts": {state.value: count for state, count in reviews.counts.items()},
        }
    return summary


def view_to_dict(view: AggregatedBranchView) -> dict[str, Any]:
    """JSON-friendly summary of an aggregated branch view."""
    return {
        "branch": view.branch_name,
        "mergeable": view.mergeable,
        "repositories": {record.repository: record_to_dict(record) for record in view},
    }


async def run_command(args: argparse.Namespace) -> Any:
    """Execute a parsed command and return its JSON-serializable result."""
    config = load_config(args.config)
    if not args.log_level:
        logging.getLogger().setLevel(config.system.log_level.value)

    async with BranchService.from_config(config) as service:
        if args.command == "repos":
            return await service.list_repositories()

        if args.command == "status":
            view = await service.aggregate(args.branch, acting_user=args.user)
            return view_to_dict(view)

        if args.command == "search-issue":
            matches = await service.search_issue_references(args.issue_id)
            return {
                repository: [match.path for match in repository_matches]
                for repository, repository_matches in (matches or {}).items()
            }

    raise ValueError(f"Unknown command: {args.command}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="branchpilot",
        description="Multi-repository branch status and pull request tooling",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", "-c", help="Configuration file path")
    parser.add_argument("--log-level", help="Log level (default: from configuration)")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("repos", help="List catalog repositories")

    status = subparsers.add_parser("status", help="Show a branch across repositories")
    status.add_argument("branch", help="Branch name")
    status.add_argument("--user", help="Chat user whose credential to use")

    search = subparsers.add_parser("search-issue", help="Find code referencing an issue")
    search.add_argument("issue_id", help="Issue identifier to search for")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, (args.log_level or "INFO").upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        result = asyncio.run(run_command(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
    except (
        ConfigurationError,
        BranchPilotError,
        ForgeOperationError,
        GitHubError,
        TimeoutError,
    ) as e:
        logger.error(f"Command failed: {e}")
        sys.exit(1)

    print(json.dumps(result, indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
