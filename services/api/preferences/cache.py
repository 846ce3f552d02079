"""
PreferenceCache — short-TTL in-memory cache in front of the preference store.

Keyed by user id. TTL: 300 seconds (settings.preference_cache_ttl_s),
measured from insertion. A read past the TTL is a miss and evicts the
stale entry.

This is a latency optimization only. It is never the source of truth:
every consumer must treat a miss as "ask the store". Writes for the same
user replace the whole record (last write wins, no merging).
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from services.api.preferences.types import UserPreferences

logger = logging.getLogger(__name__)

_DEFAULT_TTL_SECONDS = 5 * 60


class PreferenceCache:
    """
    Usage:
        cache = PreferenceCache()
        prefs = cache.get(user_id)
        if prefs is None:
            prefs = await store.select(user_id)
            cache.set(user_id, prefs)
    """

    def __init__(
        self,
        ttl_seconds: float = _DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            ttl_seconds: Entry lifetime from insertion.
            clock:       Monotonic seconds source; injectable for tests.
        """
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[UserPreferences, float]] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, user_id: str) -> UserPreferences | None:
        """Return the cached record, or None on miss / expiry."""
        entry = self._entries.get(user_id)
        if entry is None:
            logger.debug("preference cache miss: user=%s", user_id)
            return None

        value, stored_at = entry
        if self._clock() - stored_at > self._ttl:
            del self._entries[user_id]
            logger.debug("preference cache expired: user=%s", user_id)
            return None

        logger.debug("preference cache hit: user=%s", user_id)
        return value

    def set(self, user_id: str, value: UserPreferences) -> None:
        self._entries[user_id] = (value, self._clock())

    def invalidate(self, user_id: str) -> None:
        if self._entries.pop(user_id, None) is not None:
            logger.debug("preference cache invalidated: user=%s", user_id)

    def clear(self) -> None:
        logger.info("preference cache cleared: entries=%d", len(self._entries))
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
