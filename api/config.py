"""Configuration for the PR updater service.

Two sources feed the service:

- the configuration document (``config.yml`` by default), parsed strictly:
  unknown keys at any level are rejected;
- process environment variables prefixed ``PR_UPDATER_``, read with
  pydantic-settings, selecting the document path and logging options.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from integrations.github.client import DEFAULT_USER_AGENT, GitHubClientConfig

DEFAULT_CONFIG_PATH = Path("config.yml")


class ConfigError(Exception):
    """The configuration document is missing or invalid."""

    pass


class _StrictModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class ServerConfig(_StrictModel):
    """HTTP server bind settings.

    Attributes:
        address: Interface to bind.
        port: TCP port to listen on.
    """

    address: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8080, ge=0, le=65535, description="Bind port")


class GitHubAppCredentials(_StrictModel):
    """GitHub App identity."""

    integration_id: int = Field(..., description="GitHub App ID")
    webhook_secret: str = Field(default="", description="Webhook signature secret")
    private_key: str = Field(..., description="GitHub App private key (PEM)")


class GitHubOAuthConfig(_StrictModel):
    """GitHub App OAuth credentials. Accepted but unused."""

    client_id: str = Field(default="", description="OAuth client ID")
    client_secret: str = Field(default="", description="OAuth client secret")


class GitHubConfig(_StrictModel):
    """GitHub endpoints and App credentials."""

    web_url: str = Field(default="https://github.com", description="GitHub web URL")
    v3_api_url: str = Field(default="https://api.github.com/", description="REST API URL")
    v4_api_url: str = Field(
        default="https://api.github.com/graphql",
        description="GraphQL API URL",
    )
    app: GitHubAppCredentials = Field(..., description="App credentials")
    oauth: GitHubOAuthConfig = Field(
        default_factory=GitHubOAuthConfig,
        description="OAuth credentials",
    )

    def client_config(
        self,
        timeout: float = 3.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> GitHubClientConfig:
        """Build the App-level GitHub client configuration.

        Args:
            timeout: Per-request timeout in seconds.
            user_agent: User-Agent sent with every request.

        Returns:
            Client configuration without an installation ID.
        """
        return GitHubClientConfig(
            app_id=self.app.integration_id,
            private_key=self.app.private_key,
            base_url=self.v3_api_url.rstrip("/"),
            timeout=timeout,
            user_agent=user_agent,
        )


class AppConfiguration(_StrictModel):
    """Updater behaviour.

    Attributes:
        pull_request_preamble: Text placed before GitHub's message when an
            update is scheduled asynchronously.
        pull_request_labels: Labels a pull request must all carry to be
            updated; empty means no filter.
    """

    pull_request_preamble: str = Field(default="", description="Comment preamble")
    pull_request_labels: list[str] = Field(default_factory=list, description="Required labels")


class Config(_StrictModel):
    """The configuration document."""

    server: ServerConfig = Field(default_factory=ServerConfig, description="HTTP server")
    github: GitHubConfig = Field(..., description="GitHub App settings")
    app_configuration: AppConfiguration = Field(
        default_factory=AppConfiguration,
        description="Updater behaviour",
    )


class Settings(BaseSettings):
    """Process settings loaded from environment variables.

    Attributes:
        config_path: Location of the configuration document.
        log_level: Logging level.
        log_format: ``console`` for human-readable output, ``json`` for
            one JSON object per line.
    """

    model_config = SettingsConfigDict(
        env_prefix="PR_UPDATER_",
        case_sensitive=False,
        extra="ignore",
    )

    config_path: Path = Field(default=DEFAULT_CONFIG_PATH, description="Config document")
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["console", "json"] = Field(default="console", description="Log format")


class _StrictLoader(yaml.SafeLoader):
    """SafeLoader that rejects duplicate mapping keys."""


def _construct_unique_mapping(loader: _StrictLoader, node: yaml.MappingNode) -> dict[Any, Any]:
    mapping = loader.construct_mapping(node, deep=True)
    seen: set[Any] = set()
    for key_node, _ in node.value:
        key = loader.construct_object(key_node, deep=True)
        if key in seen:
            raise yaml.constructor.ConstructorError(
                "while constructing a mapping",
                node.start_mark,
                f"found duplicate key {key!r}",
                key_node.start_mark,
            )
        seen.add(key)
    return mapping


_StrictLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, _construct_unique_mapping
)


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> Config:
    """Read and validate the configuration document.

    Args:
        path: YAML file to read.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If the file cannot be read, is not YAML, or does not
            match the schema.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"failed reading server config file: {path}: {e}") from e

    try:
        data = yaml.load(text, Loader=_StrictLoader)
    except yaml.YAMLError as e:
        raise ConfigError(f"failed parsing configuration file {path}: {e}") from e

    try:
        return Config.model_validate(data or {})
    except ValidationError as e:
        raise ConfigError(f"invalid configuration file {path}: {e}") from e


@lru_cache
def get_settings() -> Settings:
    """Get cached process settings.

    Returns:
        The settings instance.
    """
    return Settings()
