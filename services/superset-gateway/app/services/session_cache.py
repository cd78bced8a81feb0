"""Short-lived cache of Superset session tokens keyed by credential identity"""
import logging
import time
from typing import Callable, Dict, Optional, Tuple

from ..models import SessionTokens, SupersetCredentials

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str]


class SessionCache:
    """TTL cache for login handshakes. A TTL of 0 disables caching."""

    def __init__(self, ttl_seconds: int = 0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[CacheKey, Tuple[SessionTokens, float]] = {}

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    @staticmethod
    def key_for(credentials: SupersetCredentials) -> CacheKey:
        return (credentials.base_url, credentials.username)

    def get(self, credentials: SupersetCredentials) -> Optional[SessionTokens]:
        """Return unexpired tokens for these credentials, if any"""
        if not self.enabled:
            return None

        key = self.key_for(credentials)
        entry = self._entries.get(key)
        if entry is None:
            return None

        tokens, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return tokens

    def put(self, credentials: SupersetCredentials, tokens: SessionTokens) -> None:
        if not self.enabled:
            return
        self._entries[self.key_for(credentials)] = (tokens, self._clock() + self.ttl_seconds)

    def invalidate(self, credentials: SupersetCredentials) -> None:
        if self._entries.pop(self.key_for(credentials), None) is not None:
            logger.info(f"Invalidated cached Superset session for {credentials.username}")

    def clear(self) -> None:
        self._entries.clear()


# Global cache instance
_cache: Optional[SessionCache] = None


def get_session_cache(ttl_seconds: int) -> SessionCache:
    """Get the global session cache, resizing its TTL to the current setting"""
    global _cache
    if _cache is None:
        _cache = SessionCache(ttl_seconds)
    else:
        _cache.ttl_seconds = ttl_seconds
    return _cache
