"""
LocalStorage — namespaced key-value snapshots backed by Redis.

Key formats:
  wanderplan_preferences:{user_id}   per-user preference snapshot (JSON)
  wanderplan_onboarding_complete     onboarding completion marker, unscoped
                                     (one profile per device)

Values are JSON-encoded. No TTL: snapshots are the most-recently-known-good
state and live until overwritten or removed.

Failures raise LocalStorageError; callers decide whether to report and
continue. With redis=None every read misses and every write is dropped
with a warning, so the service still runs remote-only.
"""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

PREFERENCES_KEY_PREFIX = "wanderplan_preferences"
ONBOARDING_COMPLETE_KEY = "wanderplan_onboarding_complete"


class LocalStorageError(Exception):
    """Reading or writing a local snapshot failed."""


def preferences_key(user_id: str) -> str:
    return f"{PREFERENCES_KEY_PREFIX}:{user_id}"


class LocalStorage:
    """
    Usage:
        storage = LocalStorage(app.state.redis)
        await storage.set(preferences_key(user_id), prefs.to_dict())
        snapshot = await storage.get(preferences_key(user_id))
    """

    def __init__(self, redis: Any) -> None:
        """
        Args:
            redis: An async Redis client (redis.asyncio compatible).
                   May be None, in which case reads miss and writes are dropped.
        """
        self._redis = redis

    @property
    def available(self) -> bool:
        return self._redis is not None

    async def get(self, key: str) -> Any:
        """Return the decoded value, or None when absent or unavailable."""
        if self._redis is None:
            return None
        try:
            raw = await self._redis.get(key)
        except Exception as exc:
            raise LocalStorageError(f"GET {key} failed: {exc}") from exc
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, ValueError):
            # Plain string values (e.g. markers written by older clients)
            return raw

    async def set(self, key: str, value: Any) -> None:
        if self._redis is None:
            logger.warning("local storage unavailable, dropping write: key=%s", key)
            return
        try:
            await self._redis.set(key, json.dumps(value))
        except Exception as exc:
            raise LocalStorageError(f"SET {key} failed: {exc}") from exc

    async def remove(self, key: str) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.delete(key)
        except Exception as exc:
            raise LocalStorageError(f"DELETE {key} failed: {exc}") from exc
