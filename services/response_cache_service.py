"""
Short-lived cache of command responses.

Stores responses in memory with TTL expiration. Expired entries are purged
lazily (on read and on store), never by a timer. Mutations clear every
product-related entry.

One instance is created per process and handed to the pipeline; tests build
their own with a controllable clock.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional
import structlog

from services.pattern_matcher import is_list_products_command
from utils.text_utils import normalize_command

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 30

# Keys containing any of these refer to product data
PRODUCT_KEY_FRAGMENTS = ("product", "show all", "list all", "get all")


@dataclass
class CacheEntry:
    response: Any
    stored_at: datetime


def is_cacheable_command(command: str) -> bool:
    """Only the bare "list all products" read is safe to cache."""
    return is_list_products_command(normalize_command(command))


def references_products(key: str) -> bool:
    """Check if a cache key refers to product data."""
    return any(fragment in key for fragment in PRODUCT_KEY_FRAGMENTS) or is_list_products_command(key)


class ResponseCache:
    """
    TTL memoization of command → response.

    Keys are normalized command text. No locking: concurrent commands may
    interleave a store with an invalidation, bounded by the TTL.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _is_fresh(self, entry: CacheEntry, now: datetime) -> bool:
        return now - entry.stored_at < self.ttl

    def get(self, command: str) -> Optional[Any]:
        """
        Return the cached response for a command, or None on miss/expiry.

        Expired entries are removed.
        """
        key = normalize_command(command)
        entry = self._entries.get(key)
        if entry is None:
            return None

        if not self._is_fresh(entry, self._clock()):
            del self._entries[key]
            logger.debug("cache_expired", key=key)
            return None

        logger.info("cache_hit", key=key)
        return entry.response

    def set(self, command: str, response: Any) -> None:
        """Store a response. Also sweeps expired entries."""
        key = normalize_command(command)
        self._entries[key] = CacheEntry(response=response, stored_at=self._clock())
        self._cleanup_expired()
        logger.info("cache_stored", key=key)

    def invalidate(self, reason: str) -> int:
        """
        Remove every product-related entry.

        Over-inclusive: unrelated product queries are cleared too.

        Args:
            reason: Why (logged)

        Returns:
            Number of entries removed
        """
        keys = [key for key in self._entries if references_products(key)]
        for key in keys:
            del self._entries[key]

        logger.info("cache_invalidated", reason=reason, cleared=len(keys), keys=keys)
        return len(keys)

    def clear(self) -> None:
        """Drop everything."""
        self._entries.clear()

    def _cleanup_expired(self) -> None:
        """Remove all expired entries."""
        now = self._clock()
        expired = [k for k, entry in self._entries.items() if not self._is_fresh(entry, now)]
        for k in expired:
            del self._entries[k]
