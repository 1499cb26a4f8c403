"""Generated pull request text and the ``# REPOS`` cross-link section.

Branch names may reference issues as ``<separator><repository>-<number>``,
e.g. ``fix/login__webapp-42__api-7`` with the default ``__`` separator.
"""

import re
from collections.abc import Iterable, Sequence

from .interfaces import AggregatedBranchView, IssueReference, PullRequestText

REPOS_MARKER = "# REPOS"
DEFAULT_ISSUE_SEPARATOR = "__"

_MARKER_LINE = re.compile(rf"^{re.escape(REPOS_MARKER)}[ \t]*\r?$", re.MULTILINE)


def parse_issue_references(
    branch_name: str, separator: str = DEFAULT_ISSUE_SEPARATOR
) -> list[IssueReference]:
    """Extract the issues referenced by a branch name, in order of appearance."""
    pattern = re.compile(re.escape(separator) + r"([A-Za-z0-9._-]+?)-(\d+)")
    references: list[IssueReference] = []
    for match in pattern.finditer(branch_name):
        reference = IssueReference(repository=match.group(1), number=int(match.group(2)))
        if reference not in references:
            references.append(reference)
    return references


def build_pull_request_body(
    branch_name: str,
    repositories: Sequence[str],
    references: Sequence[IssueReference],
    issue_url_template: str,
    created_by: str | None = None,
) -> str:
    """Body for the pull requests opened for a branch.

    Args:
        branch_name: Head branch
        repositories: Repositories the branch spans
        references: Issues parsed from the branch name
        issue_url_template: Issue URL with ``{repository}`` and ``{number}`` fields
        created_by: Chat user who asked for the PRs, when acting with the
            service credential

    Returns:
        Markdown body ending with the ``# REPOS`` section
    """
    lines = ["# Issues", ""]
    if references:
        lines.extend(f" - {reference.url(issue_url_template)}" for reference in references)
    else:
        lines.append(f"No linked issue found in `{branch_name}`")

    if created_by:
        lines.extend(["", f"This pull request has been created by {created_by} via the bot."])

    repository_list = ", ".join(f"`{name}`" for name in repositories)
    lines.extend(["", REPOS_MARKER, "", repository_list])
    return "\n".join(lines)


def build_link_block(
    view: AggregatedBranchView,
    badge_url_template: str | None = None,
    job_url_template: str | None = None,
) -> str:
    """One markdown bullet per open pull request, sorted by repository.

    When both templates are given each bullet starts with a CI build badge.
    Templates receive ``{repository}`` and ``{number}``.
    """
    lines = []
    for record in view.healthy():
        pull_request = record.pull_request
        if pull_request is None:
            continue
        link = f"[{record.repository} PR #{pull_request.number}]({pull_request.html_url})"
        if badge_url_template and job_url_template:
            fields = {"repository": record.repository, "number": pull_request.number}
            badge = (
                f"[![Build Status]({badge_url_template.format(**fields)})]"
                f"({job_url_template.format(**fields)})"
            )
            link = f"{badge} {link}"
        lines.append(f" * {link}")
    return "\n".join(lines)


def splice_repos_section(body: str | None, link_block: str) -> str:
    """Replace (or append) the ``# REPOS`` section of a pull request body.

    Everything after the marker line is replaced. Splicing the result again
    with the same links returns it unchanged.
    """
    section = f"{REPOS_MARKER}\n\n{link_block}"
    match = _MARKER_LINE.search(body or "")
    prefix = (body or "")[: match.start()] if match else (body or "")
    prefix = prefix.rstrip()
    if not prefix:
        return section
    return f"{prefix}\n\n{section}"


def pull_request_title(
    branch_name: str, references: Sequence[IssueReference], issue_titles: Iterable[str | None]
) -> str:
    """Title for new pull requests.

    The referenced issue's title is used when the branch references exactly
    one issue whose title is known; otherwise the branch name.
    """
    titles = [title for title in issue_titles if title]
    if len(references) == 1 and len(titles) == 1:
        return titles[0]
    return branch_name


def build_pull_request_text(
    branch_name: str,
    repositories: Sequence[str],
    issue_url_template: str,
    separator: str = DEFAULT_ISSUE_SEPARATOR,
    issue_title: str | None = None,
    created_by: str | None = None,
) -> PullRequestText:
    """Title and body for the pull requests opened for a branch."""
    references = parse_issue_references(branch_name, separator)
    return PullRequestText(
        title=pull_request_title(branch_name, references, [issue_title]),
        body=build_pull_request_body(
            branch_name, repositories, references, issue_url_template, created_by
        ),
    )
