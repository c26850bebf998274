"""Request metrics for outbound GitHub API calls.

A ClientMetrics registry is created once at startup and handed to the
client factory, which wires it into every installation client through
httpx event hooks.
"""

import time
from collections import Counter
from typing import Any

import httpx
import structlog

logger = structlog.get_logger(__name__)

METRIC_PREFIX = "github.requests"
_START_KEY = "pr_updater_started_at"


class ClientMetrics:
    """Counters and latency totals for GitHub API requests."""

    def __init__(self, prefix: str = METRIC_PREFIX) -> None:
        self.prefix = prefix
        self._counters: Counter[str] = Counter()
        self._latency_ms: float = 0.0

    def record_response(self, status_code: int, duration_ms: float) -> None:
        """Record a completed request.

        Args:
            status_code: HTTP status of the response.
            duration_ms: Time between sending the request and the response.
        """
        self._counters[self.prefix] += 1
        self._counters[f"{self.prefix}.{status_code // 100}xx"] += 1
        self._latency_ms += duration_ms

    def record_failure(self) -> None:
        """Record a request that never produced a response."""
        self._counters[self.prefix] += 1
        self._counters[f"{self.prefix}.failed"] += 1

    def count(self, name: str) -> int:
        """Return the value of a counter, zero if never incremented."""
        return self._counters[name]

    def snapshot(self) -> dict[str, Any]:
        """Return a copy of all counters plus latency totals."""
        total = self._counters[self.prefix]
        responses = total - self._counters[f"{self.prefix}.failed"]
        return {
            "counters": dict(self._counters),
            "latency_ms_total": round(self._latency_ms, 2),
            "latency_ms_mean": round(self._latency_ms / responses, 2) if responses else 0.0,
        }

    def event_hooks(self) -> dict[str, list[Any]]:
        """Build httpx event hooks feeding this registry."""

        async def on_request(request: httpx.Request) -> None:
            request.extensions[_START_KEY] = time.perf_counter()

        async def on_response(response: httpx.Response) -> None:
            started = response.request.extensions.get(_START_KEY)
            duration_ms = (time.perf_counter() - started) * 1000 if started else 0.0
            self.record_response(response.status_code, duration_ms)
            logger.debug(
                "github_request",
                method=response.request.method,
                path=response.request.url.path,
                status=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

        return {"request": [on_request], "response": [on_response]}
