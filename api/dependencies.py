"""Dependency injection setup for the PR updater API.

This module builds the long-lived collaborators (metrics registry, GitHub
client factory, push handler, webhook processor) at startup and exposes
them as FastAPI dependencies.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

import structlog
from fastapi import Depends

from core.updater import BranchUpdateHandler
from integrations.github.app import GitHubAppClientFactory
from integrations.github.metrics import ClientMetrics
from integrations.github.webhooks import WebhookProcessor

from .config import Config

logger = structlog.get_logger(__name__)

# Global instances for the application lifetime
_metrics: ClientMetrics | None = None
_webhook_processor: WebhookProcessor | None = None


def build_webhook_processor(
    config: Config,
    metrics: ClientMetrics,
    logger: structlog.stdlib.BoundLogger | None = None,
) -> WebhookProcessor:
    """Wire the push handler into a webhook processor.

    Args:
        config: Validated configuration document.
        metrics: Registry for outbound GitHub requests.
        logger: Logger handed to the processor and handler.

    Returns:
        Processor with the branch update handler registered.
    """
    factory = GitHubAppClientFactory(config.github.client_config(), metrics=metrics)
    handler = BranchUpdateHandler(
        factory,
        preamble=config.app_configuration.pull_request_preamble,
        labels=config.app_configuration.pull_request_labels,
        logger=logger,
    )
    processor = WebhookProcessor(config.github.app.webhook_secret, logger=logger)
    processor.register_handler(handler)
    return processor


async def init_dependencies(config: Config) -> None:
    """Initialize global dependencies on application startup.

    Args:
        config: Validated configuration document.
    """
    global _metrics, _webhook_processor

    _metrics = ClientMetrics()
    _webhook_processor = build_webhook_processor(config, _metrics, logger=logger)

    if not config.github.app.webhook_secret:
        logger.warning("webhook_secret_missing", detail="all deliveries will be rejected")
    if config.app_configuration.pull_request_labels:
        logger.info(
            "label_filter_enabled",
            labels=config.app_configuration.pull_request_labels,
        )


async def shutdown_dependencies() -> None:
    """Release global dependencies on application shutdown."""
    global _metrics, _webhook_processor

    _metrics = None
    _webhook_processor = None


async def get_webhook_processor() -> AsyncGenerator[WebhookProcessor, None]:
    """Get the webhook processor.

    Yields:
        The shared WebhookProcessor instance.

    Raises:
        RuntimeError: If dependencies have not been initialized.
    """
    if _webhook_processor is None:
        raise RuntimeError(
            "Webhook processor not initialized. Ensure init_dependencies() was called on startup."
        )
    yield _webhook_processor


async def get_client_metrics() -> AsyncGenerator[ClientMetrics, None]:
    """Get the GitHub client metrics registry.

    Yields:
        The shared ClientMetrics instance.

    Raises:
        RuntimeError: If dependencies have not been initialized.
    """
    if _metrics is None:
        raise RuntimeError(
            "Client metrics not initialized. Ensure init_dependencies() was called on startup."
        )
    yield _metrics


# Type aliases for commonly used dependencies
WebhookProcessorDep = Annotated[WebhookProcessor, Depends(get_webhook_processor)]
ClientMetricsDep = Annotated[ClientMetrics, Depends(get_client_metrics)]
