"""
Unit tests for the status/review reconciler.

Why: The mergeability verdict drives merge commands; it must be exact for
     missing checks, repeated contexts and mixed reviews.

What: Tests latest_status_checks, summarize_status, summarize_reviews and
      reconcile.

How: Builds statuses and reviews with fixed timestamps and asserts on
     the resulting summaries.
"""

from branchpilot.branches.reconciler import (
    latest_status_checks,
    reconcile,
    summarize_reviews,
    summarize_status,
)
from branchpilot.github.models import CheckState, ReviewState, StatusCheck
from tests.fixtures.forge import pull_request, review, status


class TestLatestStatusChecks:
    """Test per-context deduplication of statuses."""

    def test_keeps_most_recent_per_context(self) -> None:
        """Older statuses of a context are dropped."""
        checks = [
            status("build", "pending", minutes=0),
            status("build", "success", minutes=5),
            status("tests", "failure", minutes=2),
        ]

        latest = latest_status_checks(checks)

        assert [(c.context, c.state) for c in latest] == [
            ("build", CheckState.SUCCESS),
            ("tests", CheckState.FAILURE),
        ]

    def test_ordered_by_updated_at_descending(self) -> None:
        """Result is newest first regardless of input order."""
        checks = [
            status("a", "success", minutes=1),
            status("b", "success", minutes=9),
            status("c", "success", minutes=4),
        ]

        assert [c.context for c in latest_status_checks(checks)] == ["b", "c", "a"]

    def test_equal_timestamps_last_in_input_wins(self) -> None:
        """Ties resolve to the status appearing later in the input."""
        checks = [
            status("build", "failure", minutes=3),
            status("build", "success", minutes=3),
        ]

        assert latest_status_checks(checks)[0].state == CheckState.SUCCESS
        assert latest_status_checks(list(reversed(checks)))[0].state == CheckState.FAILURE

    def test_missing_timestamp_loses_to_dated_status(self) -> None:
        """A status without updated_at is older than any dated one."""
        checks = [
            status("build", "success", minutes=1),
            StatusCheck(context="build", state=CheckState.ERROR),
        ]

        assert latest_status_checks(checks)[0].state == CheckState.SUCCESS


class TestSummarizeStatus:
    """Test required-check evaluation."""

    def test_all_required_successful(self) -> None:
        """Every required context green means ok."""
        summary = summarize_status(
            [status("build", "success"), status("tests", "success", 1)],
            {"build", "tests"},
        )

        assert summary.all_ok is True
        assert summary.ok_count == 2
        assert summary.total == 2
        assert summary.non_ok == {}

    def test_missing_required_check_is_pending(self) -> None:
        """A required context that never reported is synthesized as pending."""
        summary = summarize_status([status("build", "success")], {"build", "tests"})

        assert summary.all_ok is False
        assert summary.required_states["tests"] == CheckState.PENDING
        assert summary.non_ok == {CheckState.PENDING: ["tests"]}
        assert summary.total == 2

    def test_extra_contexts_do_not_block(self) -> None:
        """Failing non-required contexts are reported but ignored for ok."""
        summary = summarize_status(
            [status("build", "success"), status("lint", "failure", 1)], {"build"}
        )

        assert summary.all_ok is True
        assert summary.non_ok == {CheckState.FAILURE: ["lint"]}

    def test_latest_state_counts_not_history(self) -> None:
        """A context that failed then passed is ok."""
        summary = summarize_status(
            [status("build", "failure", 0), status("build", "success", 10)], {"build"}
        )

        assert summary.all_ok is True

    def test_empty_required_set_is_never_vacuously_ok(self) -> None:
        """With nothing required, at least one green context is needed."""
        assert summarize_status([], set()).all_ok is False
        assert summarize_status([status("build", "success")], set()).all_ok is True
        assert summarize_status([status("build", "pending")], set()).all_ok is False


class TestSummarizeReviews:
    """Test review aggregation."""

    def test_counts_and_approval(self) -> None:
        """Reviews are counted per state and any approval approves."""
        summary = summarize_reviews(
            [review("COMMENTED", 0), review("APPROVED", 1), review("COMMENTED", 2)]
        )

        assert summary.counts == {ReviewState.COMMENTED: 2, ReviewState.APPROVED: 1}
        assert summary.approved is True
        assert summary.latest_state == ReviewState.COMMENTED

    def test_later_change_request_does_not_retract_approval(self) -> None:
        """Approval stands even when changes are requested afterwards."""
        summary = summarize_reviews(
            [review("APPROVED", 0), review("CHANGES_REQUESTED", 5, reviewer="bob")]
        )

        assert summary.approved is True
        assert summary.latest_state == ReviewState.CHANGES_REQUESTED

    def test_no_reviews(self) -> None:
        """No reviews means not approved and no latest state."""
        summary = summarize_reviews([])

        assert summary.approved is False
        assert summary.counts == {}
        assert summary.latest_state is None


class TestReconcile:
    """Test the combined verdict."""

    def test_mergeable_requires_checks_approval_and_pr(self) -> None:
        """All three conditions together make a repository mergeable."""
        checks = [status("build", "success"), status("tests", "success")]
        reviews = [review("APPROVED")]

        assert reconcile(checks, reviews, {"build", "tests"}, pull_request("api", 1)).mergeable
        assert not reconcile(checks, reviews, {"build", "tests"}, None).mergeable
        assert not reconcile(checks, [], {"build", "tests"}, pull_request("api", 1)).mergeable
        assert not reconcile(
            checks[:1], reviews, {"build", "tests"}, pull_request("api", 1)
        ).mergeable

    def test_deterministic(self) -> None:
        """Same inputs give equal results."""
        checks = [status("build", "success"), status("tests", "pending", 2)]
        reviews = [review("APPROVED")]
        pr = pull_request("api", 1)

        assert reconcile(checks, reviews, {"build"}, pr) == reconcile(
            checks, reviews, {"build"}, pr
        )
