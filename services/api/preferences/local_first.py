"""
LocalFirstPreferences — fast local snapshot reads, background reconciliation
against the authoritative store.

load(user_id):
  - snapshot present  -> return it at once (source="local", pending=True)
                         and reconcile with the store in the background
  - no snapshot       -> reconcile before returning (caller waits)

save(user_id, partial):
  1. merge partial onto the current state, write the optimistic snapshot
  2. persist to the store
  3. on success, replace the snapshot with the authoritative record
     (server-assigned id included); on failure keep the optimistic
     snapshot and return the error in the result. Nothing is rolled back.

Ordering: every save bumps a per-user local version. A reconciliation
started under an older version is discarded when it lands, so a slow
remote response can never overwrite a newer local edit. Changes that have
not reached the store yet are kept per user and re-applied over any remote
record that arrives, and re-sent with the next save.

Per-user bookkeeping lives only while work for that user is in flight or
changes are still unsynced; after that the snapshot is the state of record
and the in-memory entries are released.

Store and local-storage failures never raise out of this class; they are
logged and reported on PreferenceResult.error. No user id -> no-op.
"""

from __future__ import annotations

import asyncio
import dataclasses
import functools
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Coroutine, Mapping

from services.api.preferences.local_storage import (
    LocalStorage,
    LocalStorageError,
    preferences_key,
)
from services.api.preferences.normalize import (
    apply_partial,
    canonical_keys,
    normalize_partial,
    normalize_preferences,
)
from services.api.preferences.store import PreferenceStore, PreferenceStoreError
from services.api.preferences.types import UserPreferences

logger = logging.getLogger(__name__)


@dataclass
class PreferenceResult:
    preferences: UserPreferences | None
    source: str
    """'local', 'remote', 'default' or 'none'."""
    error: str | None = None
    pending: bool = False
    """True while a background reconciliation or save is still in flight."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "preferences": self.preferences.to_dict() if self.preferences else None,
            "source": self.source,
            "error": self.error,
            "pending": self.pending,
        }


class LocalFirstPreferences:
    """
    Usage:
        prefs = LocalFirstPreferences(store, LocalStorage(redis))
        result = await prefs.load(user_id)
        result = await prefs.save(user_id, {"pace_preference": "relaxed"})
        await prefs.aclose()
    """

    def __init__(self, store: PreferenceStore, storage: LocalStorage) -> None:
        self._store = store
        self._storage = storage
        self._versions: dict[str, int] = {}
        self._state: dict[str, UserPreferences] = {}
        self._unsynced: dict[str, dict[str, Any]] = {}
        self._errors: dict[str, str] = {}
        self._inflight: dict[str, int] = {}
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def current(self, user_id: str) -> UserPreferences | None:
        """In-memory state; None once the user's work has settled and been released."""
        return self._state.get(user_id)

    def last_error(self, user_id: str) -> str | None:
        return self._errors.get(user_id)

    def version(self, user_id: str) -> int:
        return self._versions.get(user_id, 0)

    def has_unsynced_changes(self, user_id: str) -> bool:
        return bool(self._unsynced.get(user_id))

    def tracked_users(self) -> int:
        """Users with any in-memory bookkeeping."""
        return len(set(self._state) | set(self._versions) | set(self._errors) | set(self._unsynced))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def load(self, user_id: str | None) -> PreferenceResult:
        if not user_id:
            logger.debug("local_first load: no user id")
            return PreferenceResult(None, "none")

        self._begin(user_id)
        try:
            version = self.version(user_id)
            snapshot = await self._read_snapshot(user_id)
            if snapshot is not None:
                self._state[user_id] = snapshot
                self._spawn(user_id, self._reconcile(user_id, version))
                return PreferenceResult(snapshot, "local", pending=True)

            return await self._reconcile(user_id, version)
        finally:
            self._end(user_id)

    async def save(
        self,
        user_id: str | None,
        partial: Mapping[str, Any],
        wait: bool = True,
    ) -> PreferenceResult:
        """
        Write optimistically, then persist.

        With wait=False the remote write runs in the background and the
        optimistic result is returned immediately (pending=True). A success
        lands in the local snapshot; a failure stays visible through
        current() / last_error() while the changes remain unsynced.
        """
        if not user_id:
            logger.debug("local_first save: no user id")
            return PreferenceResult(None, "none")

        self._begin(user_id)
        try:
            version = self._versions[user_id] = self.version(user_id) + 1
            changes = canonical_keys(partial)
            self._unsynced.setdefault(user_id, {}).update(changes)

            base = self._state.get(user_id)
            if base is None:
                base = await self._read_snapshot(user_id) or self._store.default_preferences(user_id)
            optimistic = dataclasses.replace(
                apply_partial(base, normalize_partial(changes)),
                updated_at=datetime.now(timezone.utc).isoformat(),
            )
            self._state[user_id] = optimistic
            local_error = await self._write_snapshot(user_id, optimistic)

            if not wait:
                self._spawn(user_id, self._persist(user_id, version, local_error))
                return PreferenceResult(optimistic, "local", error=local_error, pending=True)
            return await self._persist(user_id, version, local_error)
        finally:
            self._end(user_id)

    async def forget(self, user_id: str) -> None:
        """Drop every local trace of a user (after an erasure request)."""
        if self._inflight.get(user_id):
            # Outstanding work for the old record must not land.
            self._versions[user_id] = self.version(user_id) + 1
        else:
            self._versions.pop(user_id, None)
        self._state.pop(user_id, None)
        self._unsynced.pop(user_id, None)
        self._errors.pop(user_id, None)
        try:
            await self._storage.remove(preferences_key(user_id))
        except LocalStorageError:
            logger.warning("local_first forget: snapshot removal failed user=%s", user_id, exc_info=True)

    async def drain(self) -> None:
        """Wait for all background reconciliations and saves."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Stop applying late results, then let in-flight work finish."""
        self._closed = True
        await self.drain()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _accepts(self, user_id: str, version: int) -> bool:
        return not self._closed and self.version(user_id) == version

    def _begin(self, user_id: str) -> None:
        self._inflight[user_id] = self._inflight.get(user_id, 0) + 1

    def _end(self, user_id: str) -> None:
        remaining = self._inflight.get(user_id, 0) - 1
        if remaining > 0:
            self._inflight[user_id] = remaining
            return
        self._inflight.pop(user_id, None)
        if self._unsynced.get(user_id):
            return
        # Settled: the snapshot holds the last known good state.
        self._state.pop(user_id, None)
        self._errors.pop(user_id, None)
        self._versions.pop(user_id, None)
        self._unsynced.pop(user_id, None)

    def _spawn(self, user_id: str, coro: Coroutine[Any, Any, Any]) -> None:
        self._begin(user_id)
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(functools.partial(self._on_task_done, user_id))

    def _on_task_done(self, user_id: str, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        self._end(user_id)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("local_first background task failed", exc_info=exc)

    async def _read_snapshot(self, user_id: str) -> UserPreferences | None:
        try:
            raw = await self._storage.get(preferences_key(user_id))
        except LocalStorageError as exc:
            logger.warning("local_first: snapshot read failed user=%s", user_id, exc_info=True)
            self._errors[user_id] = str(exc)
            return None
        if not isinstance(raw, Mapping):
            if raw is not None:
                logger.debug("local_first: ignoring non-object snapshot user=%s", user_id)
            return None
        return normalize_preferences(raw, user_id=user_id)

    async def _write_snapshot(self, user_id: str, prefs: UserPreferences) -> str | None:
        try:
            await self._storage.set(preferences_key(user_id), prefs.to_dict())
        except LocalStorageError as exc:
            logger.warning("local_first: snapshot write failed user=%s", user_id, exc_info=True)
            self._errors[user_id] = str(exc)
            return str(exc)
        return None

    def _overlay_unsynced(self, user_id: str, prefs: UserPreferences) -> UserPreferences:
        unsynced = self._unsynced.get(user_id)
        if not unsynced:
            return prefs
        return apply_partial(prefs, normalize_partial(unsynced))

    async def _reconcile(self, user_id: str, version: int) -> PreferenceResult:
        try:
            remote = await self._store.get(user_id)
        except PreferenceStoreError as exc:
            logger.warning(
                "local_first: reconcile failed, serving local user=%s", user_id, exc_info=True
            )
            self._errors[user_id] = str(exc)
            fallback = self._state.get(user_id)
            return PreferenceResult(fallback, "local" if fallback else "none", error=str(exc))

        if not self._accepts(user_id, version):
            logger.debug("local_first: discarding stale reconcile user=%s v=%d", user_id, version)
            return PreferenceResult(self._state.get(user_id), "local")

        if not remote.id:
            # No stored row: defaults never replace a snapshot we already hold.
            known = self._state.get(user_id)
            if known is not None:
                return PreferenceResult(known, "local")
            self._state[user_id] = remote
            return PreferenceResult(remote, "default")

        self._errors.pop(user_id, None)
        merged = self._overlay_unsynced(user_id, remote)
        self._state[user_id] = merged
        error = await self._write_snapshot(user_id, merged)
        return PreferenceResult(merged, "remote", error=error)

    async def _persist(
        self, user_id: str, version: int, local_error: str | None
    ) -> PreferenceResult:
        changes = dict(self._unsynced.get(user_id, {}))
        try:
            remote = await self._store.update(user_id, changes)
        except PreferenceStoreError as exc:
            logger.warning(
                "local_first: remote save failed, keeping optimistic snapshot user=%s",
                user_id,
                exc_info=True,
            )
            self._errors[user_id] = str(exc)
            return PreferenceResult(self._state.get(user_id), "local", error=str(exc))

        if not self._accepts(user_id, version):
            logger.debug("local_first: newer local write, discarding save result user=%s", user_id)
            return PreferenceResult(self._state.get(user_id), "local", pending=True)

        self._unsynced.pop(user_id, None)
        self._errors.pop(user_id, None)
        self._state[user_id] = remote
        error = await self._write_snapshot(user_id, remote)
        return PreferenceResult(remote, "remote", error=error or local_error)
