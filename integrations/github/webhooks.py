"""GitHub webhook dispatching.

This module verifies webhook deliveries and routes them to the handler
registered for their event type.
"""

import hashlib
import hmac
from abc import ABC, abstractmethod

import structlog
from pydantic import BaseModel, ConfigDict, Field

from .models import WebhookEvent

SIGNATURE_PREFIX = "sha256="


class WebhookResult(BaseModel):
    """Result of processing a webhook."""

    model_config = ConfigDict(frozen=True)

    success: bool = Field(..., description="Whether processing succeeded")
    event_type: str = Field(..., description="Event type processed")
    delivery_id: str | None = Field(None, description="X-GitHub-Delivery value")
    handled: bool = Field(default=False, description="Whether the delivery was acted on")
    message: str = Field(default="", description="Result message")


class WebhookHandler(ABC):
    """Abstract base class for webhook handlers."""

    @abstractmethod
    def handles(self) -> list[str]:
        """Return the event types this handler processes."""

    @abstractmethod
    async def handle(self, event_type: str, delivery_id: str, payload: bytes) -> None:
        """Handle one webhook delivery.

        Args:
            event_type: X-GitHub-Event header value.
            delivery_id: X-GitHub-Delivery header value, for tracing.
            payload: Raw JSON body.

        Raises:
            Exception: Any failure; the processor reports the delivery failed.
        """


class WebhookProcessor:
    """Processes GitHub webhooks by routing to appropriate handlers."""

    def __init__(
        self,
        webhook_secret: str | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        """Initialize the processor.

        Args:
            webhook_secret: Secret shared with GitHub for payload signatures.
            logger: Logger to use instead of the module logger.
        """
        self._webhook_secret = webhook_secret
        self._handlers: dict[str, WebhookHandler] = {}
        logger = logger or structlog.get_logger(__name__)
        self._logger = logger.bind(component="webhook_processor")

    @property
    def event_types(self) -> list[str]:
        """Return the event types with a registered handler."""
        return sorted(self._handlers)

    def register_handler(self, handler: WebhookHandler) -> None:
        """Register a webhook handler for every event type it handles.

        Args:
            handler: Handler to register.

        Raises:
            ValueError: If another handler already owns one of its event types.
        """
        for event_type in handler.handles():
            if event_type in self._handlers:
                raise ValueError(f"handler already registered for {event_type!r} events")
            self._handlers[event_type] = handler

    def verify_signature(self, payload: bytes, signature: str | None) -> bool:
        """Verify webhook payload signature.

        Args:
            payload: Raw request body.
            signature: X-Hub-Signature-256 header value.

        Returns:
            True if signature is valid.
        """
        if not self._webhook_secret:
            self._logger.warning("webhook_secret_not_configured")
            return False
        if not signature:
            return False

        expected = hmac.new(
            self._webhook_secret.encode(),
            payload,
            hashlib.sha256,
        ).hexdigest()

        expected_signature = f"{SIGNATURE_PREFIX}{expected}"
        # Headers arrive latin-1 decoded; compare bytes so non-ASCII input
        # is a mismatch rather than a TypeError.
        return hmac.compare_digest(
            expected_signature.encode(),
            signature.encode("utf-8", "surrogateescape"),
        )

    async def process(
        self,
        event_type: str,
        delivery_id: str,
        payload: bytes,
    ) -> WebhookResult:
        """Process a webhook event.

        Args:
            event_type: X-GitHub-Event header value.
            delivery_id: X-GitHub-Delivery header value.
            payload: Raw JSON body, already verified.

        Returns:
            WebhookResult describing the outcome.
        """
        log = self._logger.bind(event_type=event_type, delivery_id=delivery_id)

        if event_type == WebhookEvent.PING.value:
            log.info("ping_received")
            return WebhookResult(
                success=True,
                event_type=event_type,
                delivery_id=delivery_id,
                handled=True,
                message="pong",
            )

        handler = self._handlers.get(event_type)
        if handler is None:
            log.debug("no_handler_for_event")
            return WebhookResult(
                success=True,
                event_type=event_type,
                delivery_id=delivery_id,
                message="No handler registered for this event",
            )

        log.info("processing_webhook")
        try:
            await handler.handle(event_type, delivery_id, payload)
        except Exception as e:
            log.error("handler_error", error=str(e), error_type=type(e).__name__, exc_info=True)
            return WebhookResult(
                success=False,
                event_type=event_type,
                delivery_id=delivery_id,
                handled=True,
                message=f"Handler error: {e}",
            )

        log.info("webhook_processed")
        return WebhookResult(
            success=True,
            event_type=event_type,
            delivery_id=delivery_id,
            handled=True,
            message=f"Processed {event_type} event",
        )
