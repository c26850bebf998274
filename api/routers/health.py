"""Health check endpoints for the PR updater API.

This module provides endpoints for monitoring application health and
the outbound GitHub request metrics.
"""

from enum import Enum
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from api.dependencies import ClientMetricsDep

router = APIRouter(prefix="/health", tags=["Health"])


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Response model for health check endpoints.

    Attributes:
        status: Overall health status.
        message: Optional status message.
    """

    status: HealthStatus = Field(..., description="Health status")
    message: str | None = Field(None, description="Optional status message")


class MetricsResponse(BaseModel):
    """Response model for the metrics endpoint."""

    counters: dict[str, int] = Field(default_factory=dict, description="Request counters")
    latency_ms_total: float = Field(default=0.0, description="Cumulative latency")
    latency_ms_mean: float = Field(default=0.0, description="Mean latency")


@router.get(
    "",
    response_model=HealthResponse,
    summary="Basic health check",
    description="Returns basic health status of the API.",
)
async def health_check() -> HealthResponse:
    """Basic health check endpoint.

    Returns:
        HealthResponse with healthy status.
    """
    return HealthResponse(
        status=HealthStatus.HEALTHY,
        message="PR updater is running",
    )


@router.get(
    "/metrics",
    response_model=MetricsResponse,
    summary="GitHub client metrics",
    description="Counters and latency for outbound GitHub API requests.",
)
async def client_metrics(metrics: ClientMetricsDep) -> dict[str, Any]:
    """Return a snapshot of the GitHub client metrics registry."""
    return metrics.snapshot()
