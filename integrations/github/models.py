"""Pydantic models for GitHub integration.

This module defines data models for the GitHub entities the updater
consumes: push event payloads, pull requests, commit comparisons,
branch update responses and comments.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class WebhookEvent(str, Enum):
    """GitHub webhook event types."""

    PUSH = "push"
    PING = "ping"


class PullRequestState(str, Enum):
    """Pull request states accepted by the listing endpoint."""

    OPEN = "open"
    CLOSED = "closed"
    ALL = "all"


class GitHubUser(BaseModel):
    """GitHub user or organization."""

    model_config = ConfigDict(frozen=True)

    login: str = Field(..., description="Username")
    id: int | None = Field(None, description="User ID")
    html_url: str | None = Field(None, description="Profile URL")


class GitHubRepository(BaseModel):
    """Repository as embedded in webhook payloads."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Repository name")
    owner: GitHubUser = Field(..., description="Repository owner")
    default_branch: str = Field(..., description="Default branch")
    id: int | None = Field(None, description="Repository ID")
    full_name: str | None = Field(None, description="Full name (owner/repo)")
    html_url: str | None = Field(None, description="Repository URL")

    @property
    def slug(self) -> str:
        """Return ``owner/name``."""
        return f"{self.owner.login}/{self.name}"


class GitHubInstallation(BaseModel):
    """GitHub App installation reference carried by webhook payloads."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Installation ID")


class PushEvent(BaseModel):
    """Payload of a ``push`` webhook delivery."""

    model_config = ConfigDict(frozen=True)

    ref: str = Field(..., description="Pushed ref, e.g. refs/heads/main")
    repository: GitHubRepository = Field(..., description="Repository pushed to")
    installation: GitHubInstallation | None = Field(None, description="App installation")
    before: str | None = Field(None, description="SHA before the push")
    after: str | None = Field(None, description="SHA after the push")

    @property
    def installation_id(self) -> int | None:
        """Return the installation ID, if the payload carries one."""
        return self.installation.id if self.installation else None

    @property
    def default_branch_ref(self) -> str:
        """Return the fully qualified ref of the repository default branch."""
        return f"refs/heads/{self.repository.default_branch}"


class GitHubLabel(BaseModel):
    """Issue or pull request label."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Label name")
    id: int | None = Field(None, description="Label ID")
    color: str | None = Field(None, description="Label colour")


class GitHubBranch(BaseModel):
    """Branch reference of a pull request."""

    model_config = ConfigDict(frozen=True)

    ref: str = Field(..., description="Branch name")
    sha: str | None = Field(None, description="Commit SHA")
    label: str | None = Field(None, description="owner:branch label")


class GitHubPullRequest(BaseModel):
    """Pull request summary as returned by the listing endpoint."""

    model_config = ConfigDict(frozen=True)

    number: int = Field(..., description="PR number")
    head: GitHubBranch = Field(..., description="Head branch")
    base: GitHubBranch = Field(..., description="Base branch")
    labels: list[GitHubLabel] = Field(default_factory=list, description="Labels")
    title: str | None = Field(None, description="PR title")
    state: str = Field(default="open", description="PR state")
    html_url: str | None = Field(None, description="PR URL")

    @property
    def label_names(self) -> list[str]:
        """Return the names of the pull request labels."""
        return [label.name for label in self.labels]


class CommitComparison(BaseModel):
    """Result of comparing two commit-ish references."""

    model_config = ConfigDict(frozen=True)

    ahead_by: int = Field(default=0, description="Commits on head missing from base")
    behind_by: int = Field(default=0, description="Commits on base missing from head")
    status: str | None = Field(None, description="ahead, behind, diverged or identical")
    total_commits: int = Field(default=0, description="Commits in the comparison")


class UpdateBranchResponse(BaseModel):
    """Body returned by the update-branch endpoint."""

    model_config = ConfigDict(frozen=True)

    message: str = Field(default="", description="Status message")
    url: str | None = Field(None, description="Pull request URL")


class GitHubComment(BaseModel):
    """Issue or pull request comment."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Comment ID")
    body: str = Field(default="", description="Comment body")
    user: GitHubUser | None = Field(None, description="Comment author")
    html_url: str | None = Field(None, description="Comment URL")
