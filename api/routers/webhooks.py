"""GitHub webhook endpoint.

Deliveries are verified against the App's webhook secret and handed to
the webhook processor. The processor's outcome maps to the HTTP status
GitHub records for the delivery.
"""

import structlog
from fastapi import APIRouter, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse

from api.dependencies import WebhookProcessorDep

logger = structlog.get_logger(__name__)

WEBHOOK_ROUTE = "/api/github/hook"

router = APIRouter(tags=["Webhooks"])


@router.post(
    WEBHOOK_ROUTE,
    summary="Receive a GitHub webhook delivery",
    responses={
        status.HTTP_200_OK: {"description": "Delivery handled"},
        status.HTTP_202_ACCEPTED: {"description": "Event type not handled"},
        status.HTTP_400_BAD_REQUEST: {"description": "Malformed delivery"},
        status.HTTP_401_UNAUTHORIZED: {"description": "Invalid signature"},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"description": "Handler failed"},
    },
)
async def receive_webhook(
    request: Request,
    processor: WebhookProcessorDep,
    x_github_event: str | None = Header(None, alias="X-GitHub-Event"),
    x_github_delivery: str | None = Header(None, alias="X-GitHub-Delivery"),
    x_hub_signature_256: str | None = Header(None, alias="X-Hub-Signature-256"),
) -> JSONResponse:
    """Verify and dispatch one webhook delivery.

    Args:
        request: The incoming request; its raw body is verified.
        processor: Webhook processor.
        x_github_event: Event type header.
        x_github_delivery: Delivery ID header.
        x_hub_signature_256: HMAC-SHA256 signature header.

    Returns:
        JSON body describing the outcome.

    Raises:
        HTTPException: On missing headers, empty body or bad signature.
    """
    if not x_github_event:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing X-GitHub-Event header",
        )

    payload = await request.body()
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Empty webhook payload",
        )

    if not processor.verify_signature(payload, x_hub_signature_256):
        logger.warning(
            "invalid_webhook_signature",
            event_type=x_github_event,
            delivery_id=x_github_delivery,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature",
        )

    result = await processor.process(x_github_event, x_github_delivery or "", payload)

    if not result.success:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    elif result.handled:
        status_code = status.HTTP_200_OK
    else:
        status_code = status.HTTP_202_ACCEPTED

    return JSONResponse(status_code=status_code, content=result.model_dump())
