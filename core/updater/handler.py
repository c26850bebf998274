"""Keeps open pull requests up to date with the default branch.

On every push to a repository's default branch, each open pull request
whose head is behind its base gets a branch update (a merge of the base
into the head). GitHub usually schedules that merge asynchronously; the
handler then leaves a comment made of the configured preamble and
GitHub's message. Rejected updates get a failure comment and abort the
delivery.
"""

from collections.abc import Iterable
from typing import Protocol

import structlog
from pydantic import ValidationError

from integrations.github.client import GitHubClient
from integrations.github.errors import AuthError, GitHubAPIError, GitHubError, is_update_scheduled
from integrations.github.models import (
    GitHubPullRequest,
    PullRequestState,
    PushEvent,
    WebhookEvent,
)
from integrations.github.webhooks import WebhookHandler

from .errors import (
    AuthResolutionError,
    CommentError,
    CompareError,
    DecodeError,
    ListError,
    UpdateError,
)
from .labels import has_all_labels

UPDATE_FAILED_TEMPLATE = "Failed to update pull request. Error: {error}"


class InstallationClientFactory(Protocol):
    """Anything able to create installation-scoped GitHub clients."""

    def new_installation_client(self, installation_id: int) -> GitHubClient: ...


class BranchUpdateHandler(WebhookHandler):
    """Handler for push events to a repository's default branch.

    Attributes:
        preamble: Text placed before GitHub's message in scheduled-update
            comments.
        labels: Labels a pull request must all carry to be updated. Empty
            means every open pull request is eligible.
    """

    def __init__(
        self,
        client_factory: InstallationClientFactory,
        preamble: str = "",
        labels: Iterable[str] = (),
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        """Initialize handler.

        Args:
            client_factory: Creates a client for the event's installation.
            preamble: Scheduled-update comment preamble.
            labels: Required pull request labels.
            logger: Logger to use instead of the module logger.
        """
        self._client_factory = client_factory
        self.preamble = preamble
        self.labels = tuple(labels)
        logger = logger or structlog.get_logger(__name__)
        self._logger = logger.bind(handler="branch_update")

    def handles(self) -> list[str]:
        """Return the event types this handler processes."""
        return [WebhookEvent.PUSH.value]

    async def handle(self, event_type: str, delivery_id: str, payload: bytes) -> None:
        """Handle a push event.

        Args:
            event_type: X-GitHub-Event header value.
            delivery_id: X-GitHub-Delivery header value.
            payload: Raw push event body.

        Raises:
            DecodeError: If the payload is not a push event.
            AuthResolutionError: If the event names no installation.
            AuthError: If the installation cannot be authenticated.
            ListError: If open pull requests cannot be listed.
            CompareError: If a pull request cannot be compared to its base.
            UpdateError: If GitHub rejects a branch update.
            CommentError: If a pull request comment cannot be posted.
        """
        event = self.decode(payload)
        log = self._logger.bind(
            delivery_id=delivery_id,
            event_type=event_type,
            repo=event.repository.slug,
            ref=event.ref,
        )

        installation_id = event.installation_id
        if installation_id is None:
            raise AuthResolutionError(
                f"push event for {event.repository.slug} has no installation"
            )

        client = self._client_factory.new_installation_client(installation_id)
        try:
            await self._update_pull_requests(client, event, log)
        finally:
            await client.close()

    @staticmethod
    def decode(payload: bytes | str) -> PushEvent:
        """Decode a raw push event payload.

        Raises:
            DecodeError: If the payload is malformed.
        """
        try:
            return PushEvent.model_validate_json(payload)
        except ValidationError as e:
            raise DecodeError(f"failed to parse push event payload: {e}") from e

    async def _update_pull_requests(
        self,
        client: GitHubClient,
        event: PushEvent,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        """Bring every eligible open pull request up to date."""
        if event.ref != event.default_branch_ref:
            log.debug("push_not_to_default_branch", default_branch=event.repository.default_branch)
            return

        owner = event.repository.owner.login
        repo = event.repository.name

        log.info("listing_open_pull_requests")
        try:
            pull_requests = await client.list_pull_requests(
                owner, repo, state=PullRequestState.OPEN
            )
        except AuthError:
            raise
        except GitHubError as e:
            raise ListError(
                f"failed to list open pull requests for {event.repository.slug}: {e}"
            ) from e
        log.info("open_pull_requests_found", count=len(pull_requests))

        for pr in pull_requests:
            await self._update_pull_request(client, event, pr, log)

    async def _update_pull_request(
        self,
        client: GitHubClient,
        event: PushEvent,
        pr: GitHubPullRequest,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        """Update one pull request if it is eligible and behind its base."""
        owner = event.repository.owner.login
        repo = event.repository.name
        slug = f"{event.repository.slug}#{pr.number}"
        log = log.bind(pr_number=pr.number, head=pr.head.ref, base=pr.base.ref)

        if self.labels and not has_all_labels(self.labels, pr.label_names):
            log.info(
                "pull_request_missing_labels",
                required=list(self.labels),
                labels=pr.label_names,
            )
            return

        try:
            comparison = await client.compare_commits(owner, repo, pr.base.ref, pr.head.ref)
        except AuthError:
            raise
        except GitHubError as e:
            raise CompareError(f"failed to compare {slug}: {e}", pr.number) from e

        if comparison.behind_by < 1:
            log.info("pull_request_up_to_date")
            return

        log.info("pull_request_behind", behind_by=comparison.behind_by)
        try:
            response = await client.update_branch(owner, repo, pr.number)
        except AuthError:
            raise
        except GitHubError as e:
            if is_update_scheduled(e):
                message = e.message if isinstance(e, GitHubAPIError) else ""
                log.info("pull_request_update_scheduled", message=message)
                await self._comment(client, event, pr, f"{self.preamble}\n\n{message}", log)
                return

            log.warning("pull_request_update_failed", error=str(e))
            await self._comment(client, event, pr, UPDATE_FAILED_TEMPLATE.format(error=e), log)
            raise UpdateError(f"failed to update {slug}: {e}", pr.number) from e

        log.info("pull_request_updated", message=response.message)

    async def _comment(
        self,
        client: GitHubClient,
        event: PushEvent,
        pr: GitHubPullRequest,
        body: str,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        """Post a comment on a pull request."""
        log.info("commenting_on_pull_request")
        try:
            await client.create_issue_comment(
                event.repository.owner.login,
                event.repository.name,
                pr.number,
                body,
            )
        except AuthError:
            raise
        except GitHubError as e:
            raise CommentError(
                f"failed to comment on {event.repository.slug}#{pr.number}: {e}", pr.number
            ) from e
