"""GitHub App client factory.

Turns the App's global credentials into clients scoped to a single
installation.
"""

import httpx
import structlog

from .cache import ResponseCache, TokenCache
from .client import GitHubClient, GitHubClientConfig
from .errors import AuthError
from .metrics import ClientMetrics

logger = structlog.get_logger(__name__)


class GitHubAppClientFactory:
    """Creates installation-scoped GitHub clients.

    Creating a client does no network I/O. The installation token is
    exchanged on the client's first request and kept in a token cache
    shared by every client of the factory, so later deliveries for the
    same installation reuse it until it expires. GET responses are kept
    in a shared ETag cache and revalidated on reuse.
    """

    def __init__(
        self,
        config: GitHubClientConfig,
        metrics: ClientMetrics | None = None,
        response_cache_size: int = 1024,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the factory.

        Args:
            config: App-level client configuration (no installation ID).
            metrics: Registry shared by every client the factory creates.
            response_cache_size: Maximum number of cached GET responses.
            transport: Optional httpx transport for every client, used by tests.
        """
        self.config = config
        self.metrics = metrics
        self.tokens = TokenCache()
        self.responses = ResponseCache(max_entries=response_cache_size)
        self._transport = transport

    def new_installation_client(self, installation_id: int) -> GitHubClient:
        """Create a client authenticated as one installation.

        Args:
            installation_id: Installation the client acts for.

        Returns:
            A GitHubClient; the caller owns it and must close it.

        Raises:
            AuthError: If the App credentials are incomplete.
        """
        if not self.config.app_id or not self.config.private_key:
            raise AuthError("GitHub App credentials not configured")
        if installation_id <= 0:
            raise AuthError(f"invalid installation ID: {installation_id}")

        logger.debug("creating_installation_client", installation_id=installation_id)
        return GitHubClient(
            self.config.model_copy(update={"installation_id": installation_id}),
            metrics=self.metrics,
            transport=self._transport,
            token_cache=self.tokens,
            response_cache=self.responses,
        )
