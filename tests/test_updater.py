"""Tests for the pull request branch updater."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, call

import pytest
from structlog.testing import capture_logs

from core.updater import (
    UPDATE_FAILED_TEMPLATE,
    AuthResolutionError,
    BranchUpdateHandler,
    CommentError,
    CompareError,
    DecodeError,
    ListError,
    UpdateError,
    has_all_labels,
)
from integrations.github.errors import (
    UPDATE_SCHEDULED_SENTINEL,
    AuthError,
    GitHubAPIError,
    UpdateScheduledError,
)
from integrations.github.models import CommitComparison, PullRequestState, UpdateBranchResponse

# =============================================================================
# Label Filter Tests
# =============================================================================


class TestHasAllLabels:
    """Tests for the label predicate."""

    def test_empty_requirement_matches_everything(self):
        """No configured labels means no filter."""
        assert has_all_labels([], []) is True
        assert has_all_labels([], ["wip"]) is True

    def test_all_present(self):
        """Every required label present."""
        assert has_all_labels(["ready", "approved"], ["approved", "ready", "docs"]) is True

    def test_one_missing(self):
        """A single missing label fails the predicate."""
        assert has_all_labels(["ready", "approved"], ["ready"]) is False

    def test_case_insensitive(self):
        """Matching ignores case on both sides."""
        assert has_all_labels(["approved to merge"], ["Approved To Merge"]) is True
        assert has_all_labels(["Approved To Merge"], ["approved to merge"]) is True

    def test_surrounding_whitespace_ignored(self):
        """Stray whitespace in configured labels does not break matching."""
        assert has_all_labels([" ready "], ["Ready"]) is True


# =============================================================================
# Handler Tests
# =============================================================================


def _behind(count: int) -> CommitComparison:
    return CommitComparison(ahead_by=1, behind_by=count, status="diverged" if count else "ahead")


class TestBranchUpdateHandlerGate:
    """Tests for event decoding and the default branch gate."""

    def test_handles_push_only(self, client_factory):
        """The handler registers for push events."""
        handler = BranchUpdateHandler(client_factory)
        assert handler.handles() == ["push"]

    @pytest.mark.asyncio
    async def test_push_to_other_branch_is_ignored(
        self, client_factory, github_client, push_payload
    ):
        """Pushes to non-default branches make no API calls."""
        handler = BranchUpdateHandler(client_factory)

        await handler.handle("push", "delivery-1", push_payload(ref="refs/heads/feature"))

        github_client.list_pull_requests.assert_not_awaited()
        github_client.compare_commits.assert_not_awaited()
        github_client.update_branch.assert_not_awaited()
        github_client.create_issue_comment.assert_not_awaited()
        github_client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_ref_must_match_exactly(self, client_factory, github_client, push_payload):
        """A tag or branch sharing the default branch name is not the default branch."""
        handler = BranchUpdateHandler(client_factory)

        await handler.handle("push", "d", push_payload(ref="refs/tags/main"))
        await handler.handle("push", "d", push_payload(ref="main"))

        github_client.list_pull_requests.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_push_to_default_branch_lists_open_pull_requests(
        self, client_factory, github_client, push_payload
    ):
        """Pushes to the default branch list the repository's open PRs."""
        handler = BranchUpdateHandler(client_factory)

        payload = push_payload(ref="refs/heads/develop", default_branch="develop")

        await handler.handle("push", "d", payload)

        client_factory.new_installation_client.assert_called_once_with(42)
        github_client.list_pull_requests.assert_awaited_once_with(
            "acme", "widgets", state=PullRequestState.OPEN
        )

    @pytest.mark.asyncio
    async def test_malformed_json(self, client_factory):
        """Invalid JSON raises DecodeError before any client is created."""
        handler = BranchUpdateHandler(client_factory)

        with pytest.raises(DecodeError):
            await handler.handle("push", "d", b"{not json")

        client_factory.new_installation_client.assert_not_called()

    @pytest.mark.asyncio
    async def test_payload_missing_repository(self, client_factory):
        """A payload without the consumed fields raises DecodeError."""
        handler = BranchUpdateHandler(client_factory)

        with pytest.raises(DecodeError):
            await handler.handle("push", "d", b'{"ref": "refs/heads/main"}')

    @pytest.mark.asyncio
    async def test_missing_installation(self, client_factory, push_payload):
        """An event without an installation cannot be authenticated."""
        handler = BranchUpdateHandler(client_factory)

        with pytest.raises(AuthResolutionError):
            await handler.handle("push", "d", push_payload(installation_id=None))

        client_factory.new_installation_client.assert_not_called()

    @pytest.mark.asyncio
    async def test_client_creation_failure_propagates(self, client_factory, push_payload):
        """AuthError from the factory reaches the caller unchanged."""
        client_factory.new_installation_client.side_effect = AuthError("bad key")
        handler = BranchUpdateHandler(client_factory)

        with pytest.raises(AuthError, match="bad key"):
            await handler.handle("push", "d", push_payload())


class TestBranchUpdateHandlerEvaluation:
    """Tests for per pull request evaluation."""

    @pytest.mark.asyncio
    async def test_up_to_date_pull_request_untouched(
        self, client_factory, github_client, push_payload, make_pull_request
    ):
        """behind_by == 0 means no update and no comment."""
        github_client.list_pull_requests.return_value = [make_pull_request(1)]
        github_client.compare_commits.return_value = _behind(0)
        handler = BranchUpdateHandler(client_factory)

        await handler.handle("push", "d", push_payload())

        github_client.compare_commits.assert_awaited_once_with("acme", "widgets", "main", "feature")
        github_client.update_branch.assert_not_awaited()
        github_client.create_issue_comment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stale_pull_request_updated_once(
        self, client_factory, github_client, push_payload, make_pull_request
    ):
        """behind_by >= 1 triggers exactly one update and no comment."""
        github_client.list_pull_requests.return_value = [make_pull_request(7)]
        github_client.compare_commits.return_value = _behind(1)
        handler = BranchUpdateHandler(client_factory)

        await handler.handle("push", "d", push_payload())

        github_client.update_branch.assert_awaited_once_with("acme", "widgets", 7)
        github_client.create_issue_comment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_two_pull_requests_one_behind(
        self, client_factory, github_client, push_payload, make_pull_request
    ):
        """PR#1 up to date, PR#2 three commits behind: only PR#2 is updated."""
        github_client.list_pull_requests.return_value = [
            make_pull_request(1, head="one"),
            make_pull_request(2, head="two"),
        ]
        github_client.compare_commits.side_effect = [_behind(0), _behind(3)]
        handler = BranchUpdateHandler(client_factory)

        result = await handler.handle("push", "d", push_payload())

        assert result is None
        assert github_client.compare_commits.await_args_list == [
            call("acme", "widgets", "main", "one"),
            call("acme", "widgets", "main", "two"),
        ]
        github_client.update_branch.assert_awaited_once_with("acme", "widgets", 2)
        github_client.create_issue_comment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_compares_against_pull_request_base(
        self, client_factory, github_client, push_payload, make_pull_request
    ):
        """The comparison uses the PR's own base ref, base first."""
        github_client.list_pull_requests.return_value = [
            make_pull_request(4, head="topic", base="release")
        ]
        handler = BranchUpdateHandler(client_factory)

        await handler.handle("push", "d", push_payload())

        github_client.compare_commits.assert_awaited_once_with(
            "acme", "widgets", "release", "topic"
        )

    @pytest.mark.asyncio
    async def test_missing_label_skips_before_compare(
        self, client_factory, github_client, push_payload, make_pull_request
    ):
        """A PR missing a required label gets no compare, update or comment."""
        github_client.list_pull_requests.return_value = [make_pull_request(3, labels=["wip"])]
        github_client.compare_commits.return_value = _behind(5)
        handler = BranchUpdateHandler(client_factory, labels=["ready"])

        await handler.handle("push", "d", push_payload())

        github_client.compare_commits.assert_not_awaited()
        github_client.update_branch.assert_not_awaited()
        github_client.create_issue_comment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_labels_matched_case_insensitively(
        self, client_factory, github_client, push_payload, make_pull_request
    ):
        """A PR labelled "Approved To Merge" satisfies "approved to merge"."""
        github_client.list_pull_requests.return_value = [
            make_pull_request(5, labels=["Approved To Merge", "docs"])
        ]
        github_client.compare_commits.return_value = _behind(2)
        handler = BranchUpdateHandler(client_factory, labels=["approved to merge"])

        await handler.handle("push", "d", push_payload())

        github_client.update_branch.assert_awaited_once_with("acme", "widgets", 5)

    @pytest.mark.asyncio
    async def test_label_filter_mixed(
        self, client_factory, github_client, push_payload, make_pull_request
    ):
        """Only labelled PRs are compared when a filter is configured."""
        github_client.list_pull_requests.return_value = [
            make_pull_request(1, head="a", labels=["ready"]),
            make_pull_request(2, head="b"),
            make_pull_request(3, head="c", labels=["Ready", "wip"]),
        ]
        github_client.compare_commits.return_value = _behind(1)
        handler = BranchUpdateHandler(client_factory, labels=["ready"])

        await handler.handle("push", "d", push_payload())

        assert github_client.update_branch.await_args_list == [
            call("acme", "widgets", 1),
            call("acme", "widgets", 3),
        ]


class TestBranchUpdateHandlerOutcomes:
    """Tests for update outcomes and comments."""

    @pytest.mark.asyncio
    async def test_scheduled_update_comments_and_continues(
        self, client_factory, github_client, push_payload, make_pull_request
    ):
        """A scheduled update posts preamble and message, then moves on."""
        github_client.list_pull_requests.return_value = [
            make_pull_request(1, head="one"),
            make_pull_request(2, head="two"),
        ]
        github_client.compare_commits.return_value = _behind(3)
        github_client.update_branch.side_effect = [
            UpdateScheduledError("Updating pull request branch."),
            UpdateBranchResponse(message="Updated"),
        ]
        handler = BranchUpdateHandler(client_factory, preamble="Auto-update:")

        result = await handler.handle("push", "d", push_payload())

        assert result is None
        github_client.create_issue_comment.assert_awaited_once_with(
            "acme", "widgets", 1, "Auto-update:\n\nUpdating pull request branch."
        )
        assert github_client.update_branch.await_count == 2

    @pytest.mark.asyncio
    async def test_sentinel_text_recognised_on_plain_api_error(
        self, client_factory, github_client, push_payload, make_pull_request
    ):
        """An error whose text is the sentinel is treated as scheduled."""
        github_client.list_pull_requests.return_value = [make_pull_request(2)]
        github_client.compare_commits.return_value = _behind(3)
        github_client.update_branch.side_effect = GitHubAPIError(
            UPDATE_SCHEDULED_SENTINEL, status_code=202, message="Updating pull request branch."
        )
        handler = BranchUpdateHandler(client_factory, preamble="Auto-update:")

        await handler.handle("push", "d", push_payload())

        github_client.create_issue_comment.assert_awaited_once_with(
            "acme", "widgets", 2, "Auto-update:\n\nUpdating pull request branch."
        )

    @pytest.mark.asyncio
    async def test_scheduled_update_with_empty_preamble(
        self, client_factory, github_client, push_payload, make_pull_request
    ):
        """The separator is kept when no preamble is configured."""
        github_client.list_pull_requests.return_value = [make_pull_request(2)]
        github_client.compare_commits.return_value = _behind(1)
        github_client.update_branch.side_effect = UpdateScheduledError("Updating.")
        handler = BranchUpdateHandler(client_factory)

        await handler.handle("push", "d", push_payload())

        github_client.create_issue_comment.assert_awaited_once_with(
            "acme", "widgets", 2, "\n\nUpdating."
        )

    @pytest.mark.asyncio
    async def test_scheduled_update_comment_failure_is_fatal(
        self, client_factory, github_client, push_payload, make_pull_request
    ):
        """Failing to post the scheduled-update comment aborts the delivery."""
        github_client.list_pull_requests.return_value = [
            make_pull_request(1, head="one"),
            make_pull_request(2, head="two"),
        ]
        github_client.compare_commits.return_value = _behind(3)
        github_client.update_branch.side_effect = UpdateScheduledError("Updating.")
        github_client.create_issue_comment.side_effect = GitHubAPIError("403 Forbidden", 403)
        handler = BranchUpdateHandler(client_factory)

        with pytest.raises(CommentError) as exc_info:
            await handler.handle("push", "d", push_payload())

        assert exc_info.value.pr_number == 1
        github_client.update_branch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_update_failure_comments_and_aborts(
        self, client_factory, github_client, push_payload, make_pull_request
    ):
        """Any other failure comments the error text and stops processing."""
        failure = GitHubAPIError(
            "PUT https://api.github.com/repos/acme/widgets/pulls/1/update-branch: "
            "422 merge conflict between base and head",
            status_code=422,
            message="merge conflict between base and head",
        )
        github_client.list_pull_requests.return_value = [
            make_pull_request(1, head="one"),
            make_pull_request(2, head="two"),
        ]
        github_client.compare_commits.return_value = _behind(3)
        github_client.update_branch.side_effect = failure
        handler = BranchUpdateHandler(client_factory)

        with pytest.raises(UpdateError) as exc_info:
            await handler.handle("push", "d", push_payload())

        assert exc_info.value.__cause__ is failure
        assert exc_info.value.pr_number == 1
        github_client.create_issue_comment.assert_awaited_once_with(
            "acme", "widgets", 1, UPDATE_FAILED_TEMPLATE.format(error=failure)
        )
        body = github_client.create_issue_comment.await_args.args[3]
        assert str(failure) in body
        github_client.compare_commits.assert_awaited_once()
        github_client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_update_failure_comment_error_wins(
        self, client_factory, github_client, push_payload, make_pull_request
    ):
        """When the failure comment also fails, the comment error is raised."""
        github_client.list_pull_requests.return_value = [make_pull_request(1)]
        github_client.compare_commits.return_value = _behind(3)
        github_client.update_branch.side_effect = GitHubAPIError("422 conflict", 422)
        comment_failure = GitHubAPIError("404 Not Found", 404)
        github_client.create_issue_comment.side_effect = comment_failure
        handler = BranchUpdateHandler(client_factory)

        with pytest.raises(CommentError) as exc_info:
            await handler.handle("push", "d", push_payload())

        assert exc_info.value.__cause__ is comment_failure


class TestBranchUpdateHandlerErrors:
    """Tests for read failures and authentication errors."""

    @pytest.mark.asyncio
    async def test_list_failure(self, client_factory, github_client, push_payload):
        """A failed listing raises ListError."""
        github_client.list_pull_requests.side_effect = GitHubAPIError("502 Bad Gateway", 502)
        handler = BranchUpdateHandler(client_factory)

        with pytest.raises(ListError):
            await handler.handle("push", "d", push_payload())

        github_client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_token_exchange_failure_is_auth_error(
        self, client_factory, github_client, push_payload
    ):
        """A lazy token exchange failure surfaces as AuthError, not ListError."""
        github_client.list_pull_requests.side_effect = AuthError("token exchange failed")
        handler = BranchUpdateHandler(client_factory)

        with pytest.raises(AuthError):
            await handler.handle("push", "d", push_payload())

    @pytest.mark.asyncio
    async def test_compare_failure(
        self, client_factory, github_client, push_payload, make_pull_request
    ):
        """A failed comparison raises CompareError and stops processing."""
        github_client.list_pull_requests.return_value = [
            make_pull_request(1, head="one"),
            make_pull_request(2, head="two"),
        ]
        github_client.compare_commits.side_effect = GitHubAPIError("404 Not Found", 404)
        handler = BranchUpdateHandler(client_factory)

        with pytest.raises(CompareError) as exc_info:
            await handler.handle("push", "d", push_payload())

        assert exc_info.value.pr_number == 1
        github_client.compare_commits.assert_awaited_once()
        github_client.update_branch.assert_not_awaited()


class TestBranchUpdateHandlerLogging:
    """Tests for the handler's structured logs."""

    @pytest.mark.asyncio
    async def test_logs_carry_delivery_and_pull_request(
        self, client_factory, github_client, push_payload, make_pull_request
    ):
        """Log events are bound to the delivery, repository and PR."""
        github_client.list_pull_requests.return_value = [make_pull_request(9)]
        github_client.compare_commits.return_value = _behind(2)
        handler = BranchUpdateHandler(client_factory)

        with capture_logs() as logs:
            await handler.handle("push", "delivery-9", push_payload())

        updated = [entry for entry in logs if entry["event"] == "pull_request_updated"]
        assert len(updated) == 1
        assert updated[0]["delivery_id"] == "delivery-9"
        assert updated[0]["repo"] == "acme/widgets"
        assert updated[0]["pr_number"] == 9

    @pytest.mark.asyncio
    async def test_injected_logger_is_used(
        self, client_factory, github_client, push_payload
    ):
        """A logger passed at construction receives the handler's events."""
        bound = MagicMock()
        logger = MagicMock()
        logger.bind.return_value = bound
        bound.bind.return_value = bound
        handler = BranchUpdateHandler(client_factory, logger=logger)

        await handler.handle("push", "d", push_payload())

        logger.bind.assert_called_once_with(handler="branch_update")
        bound.info.assert_any_call("open_pull_requests_found", count=0)


class TestBranchUpdateHandlerCancellation:
    """Tests for cancellation."""

    @pytest.mark.asyncio
    async def test_cancellation_stops_further_calls(
        self, client_factory, github_client, push_payload, make_pull_request
    ):
        """A cancelled API call propagates and nothing else is issued."""
        github_client.list_pull_requests.return_value = [
            make_pull_request(1, head="one"),
            make_pull_request(2, head="two"),
        ]
        github_client.compare_commits = AsyncMock(side_effect=asyncio.CancelledError())
        handler = BranchUpdateHandler(client_factory)

        with pytest.raises(asyncio.CancelledError):
            await handler.handle("push", "d", push_payload())

        github_client.compare_commits.assert_awaited_once()
        github_client.update_branch.assert_not_awaited()
        github_client.close.assert_awaited_once()
