"""API routers for the PR updater.

This module exports all API routers for inclusion in the main FastAPI app.
"""

from .health import router as health_router
from .webhooks import router as webhooks_router

__all__ = [
    "health_router",
    "webhooks_router",
]
