"""
OnboardingCompletion — the process-wide onboarding completion marker.

Persisted under ONBOARDING_COMPLETE_KEY with no user scoping (one profile
per device). Values:
  "true"  onboarding finished
  "skip"  onboarding skipped
Either value means complete. Read once by initialize() at app startup;
afterwards only the state machine's completion and reset transitions
change it.
"""

from __future__ import annotations

import logging

from services.api.preferences.local_storage import (
    ONBOARDING_COMPLETE_KEY,
    LocalStorage,
    LocalStorageError,
)

logger = logging.getLogger(__name__)

MARKER_COMPLETE = "true"
MARKER_SKIPPED = "skip"
_VALID_MARKERS = (MARKER_COMPLETE, MARKER_SKIPPED)


class OnboardingCompletion:
    def __init__(self, storage: LocalStorage) -> None:
        self._storage = storage
        self._value: str | None = None
        self._initialized = False

    @property
    def value(self) -> str | None:
        return self._value

    @property
    def is_complete(self) -> bool:
        return self._value in _VALID_MARKERS

    @property
    def skipped(self) -> bool:
        return self._value == MARKER_SKIPPED

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> str | None:
        """Load the persisted marker. Unreadable or unknown values count as absent."""
        try:
            raw = await self._storage.get(ONBOARDING_COMPLETE_KEY)
        except LocalStorageError:
            logger.warning("onboarding marker: read failed, assuming incomplete", exc_info=True)
            raw = None
        # JSON "true" decodes to a bool
        if raw is True:
            raw = MARKER_COMPLETE
        self._value = raw if raw in _VALID_MARKERS else None
        self._initialized = True
        logger.info("onboarding marker loaded: value=%s", self._value)
        return self._value

    async def mark_complete(self) -> None:
        await self._write(MARKER_COMPLETE)

    async def mark_skipped(self) -> None:
        await self._write(MARKER_SKIPPED)

    async def clear(self) -> None:
        self._value = None
        try:
            await self._storage.remove(ONBOARDING_COMPLETE_KEY)
        except LocalStorageError:
            logger.warning("onboarding marker: remove failed", exc_info=True)

    async def _write(self, value: str) -> None:
        self._value = value
        try:
            await self._storage.set(ONBOARDING_COMPLETE_KEY, value)
        except LocalStorageError:
            logger.warning("onboarding marker: write failed value=%s", value, exc_info=True)
