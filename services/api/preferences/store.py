"""
Preference Store Adapter — the only reader/writer of the authoritative
user_preferences record.

Contract:
  get(user_id)              -> UserPreferences (defaults when no row exists)
  update(user_id, partial)  -> UserPreferences (creates when no row exists)
  create(user_id, partial)  -> UserPreferences (defaults overlaid with partial)
  delete(user_id)           -> bool           (right to erasure; evicts cache)

Every result is normalized (normalize.py) before it leaves this module,
and every successful get/update/create populates the PreferenceCache.
A missing row is not an error. Remote failures (driver errors, timeouts)
raise PreferenceStoreError so the local-first layer can degrade.

The remote collaborator speaks the wire shape (accommodation_type as a
plain string array). SQLPreferenceStore implements it over SQLAlchemy;
tests substitute an in-memory fake with the same four methods.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol

from sqlalchemy import delete as sa_delete
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import async_sessionmaker

from services.api.db.models import UserPreferenceRow
from services.api.preferences.cache import PreferenceCache
from services.api.preferences.normalize import (
    apply_partial,
    changed_fields,
    normalize_partial,
    normalize_preferences,
    to_wire_record,
)
from services.api.preferences.types import UserPreferences

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 3.0

_TIMESTAMP_COLUMNS = ("created_at", "updated_at", "last_calculated_at")


class PreferenceStoreError(Exception):
    """The remote preference store failed or timed out."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Remote collaborator
# ---------------------------------------------------------------------------

class RemotePreferenceStore(Protocol):
    async def select(self, user_id: str) -> dict[str, Any] | None: ...

    async def insert(self, record: dict[str, Any]) -> dict[str, Any]: ...

    async def update(self, user_id: str, changes: dict[str, Any]) -> dict[str, Any]: ...

    async def delete(self, user_id: str) -> bool: ...


def _to_datetime(value: Any) -> Any:
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


def _row_to_record(row: UserPreferenceRow) -> dict[str, Any]:
    record: dict[str, Any] = {}
    for column in UserPreferenceRow.__table__.columns:
        value = getattr(row, column.key)
        if isinstance(value, datetime):
            value = value.isoformat()
        record[column.key] = value
    return record


class SQLPreferenceStore:
    """RemotePreferenceStore over the user_preferences table."""

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    async def select(self, user_id: str) -> dict[str, Any] | None:
        async with self._session_factory() as session:
            result = await session.execute(
                sa_select(UserPreferenceRow).where(UserPreferenceRow.user_id == user_id)
            )
            row = result.scalars().first()
            return _row_to_record(row) if row is not None else None

    async def insert(self, record: dict[str, Any]) -> dict[str, Any]:
        columns = {c.key for c in UserPreferenceRow.__table__.columns}
        values = {k: v for k, v in record.items() if k in columns and k != "id"}
        for key in _TIMESTAMP_COLUMNS:
            if key in values:
                values[key] = _to_datetime(values[key])
        async with self._session_factory() as session:
            row = UserPreferenceRow(**values)
            session.add(row)
            await session.commit()
            return _row_to_record(row)

    async def update(self, user_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        columns = {c.key for c in UserPreferenceRow.__table__.columns}
        async with self._session_factory() as session:
            result = await session.execute(
                sa_select(UserPreferenceRow).where(UserPreferenceRow.user_id == user_id)
            )
            row = result.scalars().first()
            if row is None:
                raise PreferenceStoreError(f"No preference row for user {user_id!r}")
            for key, value in changes.items():
                if key not in columns or key in ("id", "user_id"):
                    continue
                if key in _TIMESTAMP_COLUMNS:
                    value = _to_datetime(value)
                setattr(row, key, value)
            await session.commit()
            return _row_to_record(row)

    async def delete(self, user_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                sa_delete(UserPreferenceRow).where(UserPreferenceRow.user_id == user_id)
            )
            await session.commit()
            return (result.rowcount or 0) > 0


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------

class PreferenceStore:
    """
    Normalizing, caching adapter over a RemotePreferenceStore.

    Usage:
        store = PreferenceStore(SQLPreferenceStore(factory), PreferenceCache())
        prefs = await store.get(user_id)
        prefs = await store.update(user_id, {"budgetType": "luxury"})
    """

    def __init__(
        self,
        remote: RemotePreferenceStore,
        cache: PreferenceCache,
        timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._remote = remote
        self._cache = cache
        self._timeout = timeout_seconds

    @property
    def cache(self) -> PreferenceCache:
        return self._cache

    async def _call(self, op: str, user_id: str, coro: Any) -> Any:
        try:
            return await asyncio.wait_for(coro, timeout=self._timeout)
        except PreferenceStoreError:
            raise
        except asyncio.TimeoutError as exc:
            raise PreferenceStoreError(f"{op} timed out for user {user_id!r}") from exc
        except Exception as exc:
            raise PreferenceStoreError(f"{op} failed for user {user_id!r}: {exc}") from exc

    def default_preferences(self, user_id: str) -> UserPreferences:
        """Materialized defaults for a user with no stored row (id is empty)."""
        now = _now_iso()
        return UserPreferences(user_id=user_id, created_at=now, updated_at=now)

    async def get(self, user_id: str) -> UserPreferences:
        cached = self._cache.get(user_id)
        if cached is not None:
            return cached

        row = await self._call("select", user_id, self._remote.select(user_id))
        if row is None:
            logger.debug("preference store: no row for user=%s, returning defaults", user_id)
            return self.default_preferences(user_id)

        prefs = normalize_preferences(row, user_id=user_id)
        self._cache.set(user_id, prefs)
        return prefs

    async def create(
        self, user_id: str, partial: Mapping[str, Any] | None = None
    ) -> UserPreferences:
        seeded = apply_partial(self.default_preferences(user_id), normalize_partial(partial))
        record = to_wire_record(seeded)
        record.pop("id", None)

        row = await self._call("insert", user_id, self._remote.insert(record))
        prefs = normalize_preferences(row, user_id=user_id)
        self._cache.set(user_id, prefs)
        logger.info("preference store: created record user=%s id=%s", user_id, prefs.id)
        return prefs

    async def update(self, user_id: str, partial: Mapping[str, Any]) -> UserPreferences:
        normalized = normalize_partial(partial)
        existing = await self.get(user_id)
        if not existing.id:
            return await self.create(user_id, partial)

        merged = apply_partial(existing, normalized)
        changes = changed_fields(merged, normalized)
        changes["updated_at"] = _now_iso()

        row = await self._call("update", user_id, self._remote.update(user_id, changes))
        prefs = normalize_preferences(row, user_id=user_id)
        self._cache.set(user_id, prefs)
        logger.info(
            "preference store: updated user=%s fields=%s", user_id, sorted(normalized)
        )
        return prefs

    async def delete(self, user_id: str) -> bool:
        try:
            deleted = await self._call("delete", user_id, self._remote.delete(user_id))
        except PreferenceStoreError:
            logger.warning("preference store: delete failed user=%s", user_id, exc_info=True)
            return False
        finally:
            self._cache.invalidate(user_id)
        logger.info("preference store: deleted user=%s found=%s", user_id, deleted)
        return True

    async def initialize(self, user_id: str) -> UserPreferences:
        """Return the stored record, creating one from defaults if absent."""
        existing = await self.get(user_id)
        if existing.id:
            return existing
        return await self.create(user_id)

    def clear_cache(self) -> None:
        self._cache.clear()
