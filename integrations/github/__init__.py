"""GitHub integration for the PR updater.

This module provides GitHub App integration including:
- GitHub API client authenticated as an App installation
- Installation client factory with shared token and response caches
- Webhook signature verification and event dispatching
- Request metrics for outbound API calls
"""

from .app import GitHubAppClientFactory
from .cache import CachedResponse, ResponseCache, TokenCache
from .client import GitHubClient, GitHubClientConfig
from .errors import (
    UPDATE_SCHEDULED_SENTINEL,
    AuthError,
    GitHubAPIError,
    GitHubError,
    UpdateScheduledError,
    is_update_scheduled,
)
from .metrics import ClientMetrics
from .models import (
    CommitComparison,
    GitHubBranch,
    GitHubComment,
    GitHubLabel,
    GitHubPullRequest,
    GitHubRepository,
    GitHubUser,
    PushEvent,
    UpdateBranchResponse,
    WebhookEvent,
)
from .webhooks import WebhookHandler, WebhookProcessor, WebhookResult

__all__ = [
    # Client
    "GitHubClient",
    "GitHubClientConfig",
    "GitHubAppClientFactory",
    "ClientMetrics",
    "TokenCache",
    "ResponseCache",
    "CachedResponse",
    # Errors
    "GitHubError",
    "AuthError",
    "GitHubAPIError",
    "UpdateScheduledError",
    "UPDATE_SCHEDULED_SENTINEL",
    "is_update_scheduled",
    # Models
    "CommitComparison",
    "GitHubBranch",
    "GitHubComment",
    "GitHubLabel",
    "GitHubPullRequest",
    "GitHubRepository",
    "GitHubUser",
    "PushEvent",
    "UpdateBranchResponse",
    "WebhookEvent",
    # Webhooks
    "WebhookHandler",
    "WebhookProcessor",
    "WebhookResult",
]
