"""Pytest configuration and shared fixtures.

This module provides push event payloads, pull request builders, a GitHub
App private key and mocked GitHub clients used across the test suite.
"""

import json
from collections.abc import Callable, Iterable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from integrations.github.client import GitHubClient
from integrations.github.models import (
    CommitComparison,
    GitHubBranch,
    GitHubLabel,
    GitHubPullRequest,
    UpdateBranchResponse,
)

# ---------------------------------------------------------------------------
# GitHub App credentials
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def private_key_pem() -> str:
    """RSA private key in PEM form, as GitHub issues for Apps."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


# ---------------------------------------------------------------------------
# Webhook payloads
# ---------------------------------------------------------------------------


@pytest.fixture
def push_payload() -> Callable[..., bytes]:
    """Build a raw push event payload."""

    def _build(
        ref: str = "refs/heads/main",
        default_branch: str = "main",
        owner: str = "acme",
        name: str = "widgets",
        installation_id: int | None = 42,
    ) -> bytes:
        payload: dict[str, Any] = {
            "ref": ref,
            "before": "a" * 40,
            "after": "b" * 40,
            "repository": {
                "id": 1296269,
                "name": name,
                "full_name": f"{owner}/{name}",
                "owner": {"login": owner, "id": 1},
                "default_branch": default_branch,
                "html_url": f"https://github.com/{owner}/{name}",
            },
            "pusher": {"name": "octocat", "email": "octocat@github.com"},
            "commits": [],
        }
        if installation_id is not None:
            payload["installation"] = {"id": installation_id, "node_id": "MDIzOkludGVncmF0aW9u"}
        return json.dumps(payload).encode()

    return _build


# ---------------------------------------------------------------------------
# Pull requests
# ---------------------------------------------------------------------------


@pytest.fixture
def make_pull_request() -> Callable[..., GitHubPullRequest]:
    """Build a pull request summary."""

    def _build(
        number: int,
        head: str = "feature",
        base: str = "main",
        labels: Iterable[str] = (),
    ) -> GitHubPullRequest:
        return GitHubPullRequest(
            number=number,
            head=GitHubBranch(ref=head, sha="c" * 40),
            base=GitHubBranch(ref=base, sha="d" * 40),
            labels=[GitHubLabel(name=label) for label in labels],
            title=f"PR {number}",
        )

    return _build


# ---------------------------------------------------------------------------
# Mocked GitHub client
# ---------------------------------------------------------------------------


@pytest.fixture
def github_client() -> AsyncMock:
    """Installation client with no open pull requests."""
    client = AsyncMock(spec=GitHubClient)
    client.list_pull_requests.return_value = []
    client.compare_commits.return_value = CommitComparison(ahead_by=1, behind_by=0)
    client.update_branch.return_value = UpdateBranchResponse(message="Updated")
    return client


@pytest.fixture
def client_factory(github_client: AsyncMock) -> MagicMock:
    """Client factory handing out ``github_client``."""
    factory = MagicMock()
    factory.new_installation_client.return_value = github_client
    return factory
