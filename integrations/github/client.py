"""GitHub API client for the PR updater.

This module provides an async client for the GitHub REST API,
authenticated as a GitHub App installation.
"""

import time
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
import jwt
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .cache import CachedResponse, ResponseCache, TokenCache
from .errors import AuthError, GitHubAPIError, UpdateScheduledError
from .metrics import ClientMetrics
from .models import (
    CommitComparison,
    GitHubComment,
    GitHubPullRequest,
    PullRequestState,
    UpdateBranchResponse,
)

logger = structlog.get_logger(__name__)

DEFAULT_USER_AGENT = "pr-updater-app/1.0.0"

# Installation tokens are valid for one hour
TOKEN_LIFETIME = 3600

_IDEMPOTENT_METHODS = frozenset({"GET", "HEAD"})

ModelT = TypeVar("ModelT", bound=BaseModel)


def _parse(model: type[ModelT], data: Any) -> ModelT:
    """Validate a response body, reporting malformed bodies as API errors."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise GitHubAPIError(f"unexpected {model.__name__} payload: {e}") from e


class GitHubClientConfig(BaseModel):
    """Configuration for GitHub client."""

    model_config = ConfigDict(frozen=True)

    # GitHub App authentication
    app_id: int | None = Field(None, description="GitHub App ID")
    private_key: str | None = Field(None, description="GitHub App private key (PEM)")
    installation_id: int | None = Field(None, description="Installation ID")

    # API settings
    base_url: str = Field(default="https://api.github.com", description="API base URL")
    timeout: float = Field(default=3.0, description="Request timeout in seconds")
    max_retries: int = Field(default=3, ge=1, description="Attempts for idempotent requests")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent header")


class GitHubClient:
    """Async GitHub API client scoped to one App installation.

    The installation token is exchanged lazily on the first API call and
    refreshed when GitHub answers 401. Tokens live in a TokenCache, which
    the client factory shares between clients. With a ResponseCache, GET
    requests are revalidated with ``If-None-Match``.
    """

    def __init__(
        self,
        config: GitHubClientConfig,
        metrics: ClientMetrics | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        token_cache: TokenCache | None = None,
        response_cache: ResponseCache | None = None,
    ) -> None:
        """Initialize the GitHub client.

        Args:
            config: Client configuration.
            metrics: Registry receiving per-request metrics.
            transport: Optional httpx transport, used by tests.
            token_cache: Installation token store; a private one by default.
            response_cache: Store of ETag-validated GET responses; GET
                requests are not cached when omitted.
        """
        self.config = config
        self._metrics = metrics
        self._transport = transport
        self._tokens = token_cache if token_cache is not None else TokenCache()
        self._response_cache = response_cache
        self._logger = logger.bind(
            component="github_client",
            installation_id=config.installation_id,
        )
        self._http_client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "GitHubClient":
        """Enter async context."""
        await self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Exit async context."""
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure HTTP client is initialized."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                headers={
                    "Accept": "application/vnd.github+json",
                    "User-Agent": self.config.user_agent,
                    "X-GitHub-Api-Version": "2022-11-28",
                },
                event_hooks=self._metrics.event_hooks() if self._metrics else None,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _generate_jwt(self) -> str:
        """Generate a JWT for GitHub App authentication.

        Returns:
            JWT token string.
        """
        if not self.config.app_id or not self.config.private_key:
            raise AuthError("GitHub App credentials not configured")

        now = int(time.time())
        payload = {
            "iat": now - 60,  # Issued 60 seconds ago
            "exp": now + 600,  # Expires in 10 minutes
            "iss": str(self.config.app_id),
        }

        token: str = jwt.encode(payload, self.config.private_key, algorithm="RS256")
        return token

    async def _get_installation_token(self) -> str:
        """Get or refresh installation access token.

        Returns:
            Installation access token.

        Raises:
            AuthError: If the token exchange fails.
        """
        installation_id = self.config.installation_id
        if not installation_id:
            raise AuthError("Installation ID not configured")

        # Return cached token if still valid
        cached = self._tokens.get(installation_id)
        if cached:
            return cached

        client = await self._ensure_client()
        try:
            jwt_token = self._generate_jwt()
            response = await client.post(
                f"/app/installations/{installation_id}/access_tokens",
                headers={"Authorization": f"Bearer {jwt_token}"},
            )
            response.raise_for_status()
            token: str = response.json()["token"]
        except AuthError:
            raise
        except (httpx.HTTPError, jwt.PyJWTError, KeyError, TypeError, ValueError) as e:
            self._logger.error("installation_token_failed", error=str(e))
            raise AuthError(
                f"could not obtain token for installation {installation_id}: {e}"
            ) from e

        self._tokens.set(installation_id, token, time.time() + TOKEN_LIFETIME)

        self._logger.debug("obtained_installation_token")
        return token

    async def _get_auth_header(self) -> dict[str, str]:
        """Get authorization header for API requests.

        Returns:
            Dict with Authorization header.
        """
        token = await self._get_installation_token()
        return {"Authorization": f"Bearer {token}"}

    async def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Make an authenticated API request.

        Server errors are retried for idempotent methods only. A 401 answer
        drops the cached token and retries once with a fresh one. A GET
        answered ``304 Not Modified`` returns the cached response.

        Args:
            method: HTTP method.
            path: API path.
            params: Query parameters.
            json_data: JSON body data.

        Returns:
            The successful response.

        Raises:
            AuthError: If no installation token can be obtained.
            GitHubAPIError: If the request fails.
        """
        client = await self._ensure_client()
        headers = await self._get_auth_header()
        attempts = self.config.max_retries if method in _IDEMPOTENT_METHODS else 1

        cache_key: str | None = None
        cached: CachedResponse | None = None
        conditional: dict[str, str] = {}
        if method == "GET" and self._response_cache is not None:
            cache_key = self._cache_key(path, params)
            cached = self._response_cache.get(cache_key)
            if cached is not None:
                conditional["If-None-Match"] = cached.etag

        attempt = 0
        refreshed = False
        while True:
            attempt += 1
            try:
                response = await client.request(
                    method=method,
                    url=path,
                    params=params,
                    json=json_data,
                    headers={**headers, **conditional},
                )
            except httpx.TransportError as e:
                if self._metrics is not None:
                    self._metrics.record_failure()
                if attempt < attempts:
                    self._logger.warning(
                        "request_failed_retrying",
                        attempt=attempt,
                        path=path,
                        error=str(e),
                    )
                    continue
                detail = str(e) or type(e).__name__
                raise GitHubAPIError(f"{method} {path}: {detail}") from e

            if response.status_code == 401 and not refreshed:
                # Token revoked or expired early, refresh and retry
                refreshed = True
                self._tokens.discard(self.config.installation_id or 0)
                headers = await self._get_auth_header()
                continue

            if response.status_code == httpx.codes.NOT_MODIFIED and cached is not None:
                self._logger.debug("response_not_modified", path=path)
                return httpx.Response(
                    cached.status_code,
                    content=cached.content,
                    headers=(
                        {"Content-Type": cached.content_type} if cached.content_type else None
                    ),
                    request=response.request,
                )

            if response.status_code >= 500 and attempt < attempts:
                self._logger.warning(
                    "request_failed_retrying",
                    attempt=attempt,
                    path=path,
                    status=response.status_code,
                )
                continue

            if response.is_error:
                raise self._api_error(response)

            etag = response.headers.get("ETag")
            if (
                cache_key is not None
                and self._response_cache is not None
                and etag
                and response.status_code == httpx.codes.OK
            ):
                self._response_cache.put(
                    cache_key,
                    CachedResponse(
                        etag=etag,
                        status_code=response.status_code,
                        content=response.content,
                        content_type=response.headers.get("Content-Type"),
                    ),
                )
            return response

    def _cache_key(self, path: str, params: dict[str, Any] | None) -> str:
        """Key cached responses by installation and full request URL."""
        url = httpx.URL(self.config.base_url + path, params=params)
        return f"{self.config.installation_id}:{url}"

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> Any:
        """Make an authenticated API request and decode the JSON body."""
        response = await self._send(method, path, params=params, json_data=json_data)
        try:
            return response.json()
        except ValueError as e:
            raise GitHubAPIError(
                f"{method} {path}: invalid JSON in response", response.status_code
            ) from e

    @staticmethod
    def _api_error(response: httpx.Response) -> GitHubAPIError:
        """Build an error from a failed response."""
        try:
            body = response.json()
        except ValueError:
            body = None
        message = body.get("message") if isinstance(body, dict) else None
        message = message or response.text or response.reason_phrase
        request = response.request
        return GitHubAPIError(
            f"{request.method} {request.url}: {response.status_code} {message}",
            status_code=response.status_code,
            message=message,
        )

    # Pull request operations

    async def list_pull_requests(
        self,
        owner: str,
        repo: str,
        state: PullRequestState | str = PullRequestState.OPEN,
    ) -> list[GitHubPullRequest]:
        """List pull requests.

        Only the first page is fetched.

        Args:
            owner: Repository owner.
            repo: Repository name.
            state: PR state filter (open, closed, all).

        Returns:
            List of pull requests.
        """
        params: dict[str, Any] = {"state": PullRequestState(state).value}

        data = await self._request("GET", f"/repos/{owner}/{repo}/pulls", params=params)
        if not isinstance(data, list):
            raise GitHubAPIError(f"GET /repos/{owner}/{repo}/pulls: expected a list")
        return [_parse(GitHubPullRequest, pr) for pr in data]

    async def update_branch(
        self,
        owner: str,
        repo: str,
        pr_number: int,
    ) -> UpdateBranchResponse:
        """Merge the base branch into a pull request's head branch.

        Args:
            owner: Repository owner.
            repo: Repository name.
            pr_number: PR number.

        Returns:
            The update response.

        Raises:
            UpdateScheduledError: If GitHub accepted the update for
                asynchronous processing (HTTP 202).
            GitHubAPIError: If the update was rejected.
        """
        response = await self._send(
            "PUT",
            f"/repos/{owner}/{repo}/pulls/{pr_number}/update-branch",
            json_data={},
        )
        try:
            body = response.json()
        except ValueError:
            body = {}
        result = UpdateBranchResponse.model_validate(body if isinstance(body, dict) else {})

        if response.status_code == httpx.codes.ACCEPTED:
            raise UpdateScheduledError(result.message)
        return result

    # Commit operations

    async def compare_commits(
        self, owner: str, repo: str, base: str, head: str
    ) -> CommitComparison:
        """Compare two commits.

        Args:
            owner: Repository owner.
            repo: Repository name.
            base: Base commit/branch.
            head: Head commit/branch.

        Returns:
            Comparison with ahead/behind counts.
        """
        data = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/compare/{quote(base, safe='/')}...{quote(head, safe='/')}",
        )
        return _parse(CommitComparison, data)

    # Comment operations

    async def create_issue_comment(
        self, owner: str, repo: str, issue_number: int, body: str
    ) -> GitHubComment:
        """Create a comment on an issue or PR.

        Args:
            owner: Repository owner.
            repo: Repository name.
            issue_number: Issue/PR number.
            body: Comment body.

        Returns:
            Created comment.
        """
        data = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/issues/{issue_number}/comments",
            json_data={"body": body},
        )
        return _parse(GitHubComment, data)
