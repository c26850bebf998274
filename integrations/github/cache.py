"""Caches shared by the clients of one GitHub App.

Installation clients live for a single webhook delivery. The caches here
outlive them: the client factory hands the same instances to every client
it creates, so installation tokens and validated responses carry over from
one delivery to the next.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass

# Tokens are treated as expired this many seconds early
TOKEN_EXPIRY_MARGIN = 60.0


class TokenCache:
    """Installation access tokens keyed by installation ID."""

    def __init__(self) -> None:
        self._tokens: dict[int, tuple[str, float]] = {}

    def get(self, installation_id: int) -> str | None:
        """Return a token that is still valid, or None."""
        entry = self._tokens.get(installation_id)
        if entry is None:
            return None
        token, expires_at = entry
        if time.time() >= expires_at - TOKEN_EXPIRY_MARGIN:
            del self._tokens[installation_id]
            return None
        return token

    def set(self, installation_id: int, token: str, expires_at: float) -> None:
        """Store a token until ``expires_at`` (epoch seconds)."""
        self._tokens[installation_id] = (token, expires_at)

    def discard(self, installation_id: int) -> None:
        """Forget the token of an installation."""
        self._tokens.pop(installation_id, None)


@dataclass(frozen=True)
class CachedResponse:
    """Body of a GET response together with its validator."""

    etag: str
    status_code: int
    content: bytes
    content_type: str | None = None


class ResponseCache:
    """ETag-validated GET responses.

    Entries are only served after GitHub confirms them with ``304 Not
    Modified``, so cached data is never stale. GitHub does not count 304
    answers against the rate limit.

    Args:
        max_entries: Least recently used entries are evicted past this size.
    """

    def __init__(self, max_entries: int = 1024) -> None:
        self.max_entries = max_entries
        self._entries: OrderedDict[str, CachedResponse] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> CachedResponse | None:
        entry = self._entries.get(key)
        if entry is not None:
            self._entries.move_to_end(key)
        return entry

    def put(self, key: str, entry: CachedResponse) -> None:
        self._entries[key] = entry
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
