"""
services.api.preferences — the preference pipeline.

Reads go local snapshot -> cache -> remote store; writes go optimistic
snapshot first, then the remote store. Every raw shape is normalized at
the boundary before merge or scoring code sees it.

Usage:
    from services.api.preferences import LocalFirstPreferences, merge_preferences

    result = await accessor.load(user_id)
    merged = merge_preferences(result.preferences, overrides)
"""

from __future__ import annotations

from services.api.preferences.cache import PreferenceCache
from services.api.preferences.local_first import LocalFirstPreferences, PreferenceResult
from services.api.preferences.local_storage import (
    ONBOARDING_COMPLETE_KEY,
    LocalStorage,
    LocalStorageError,
    preferences_key,
)
from services.api.preferences.merge import (
    MergeResult,
    PreferenceOverride,
    PreferenceSource,
    RequestDefaults,
    TrackedPreference,
    TripPreferenceMetadata,
    build_metadata,
    merge_into_request,
    merge_preferences,
)
from services.api.preferences.normalize import normalize_partial, normalize_preferences
from services.api.preferences.store import (
    PreferenceStore,
    PreferenceStoreError,
    RemotePreferenceStore,
    SQLPreferenceStore,
)
from services.api.preferences.types import UserPreferences

__all__ = [
    "PreferenceCache",
    "LocalFirstPreferences",
    "PreferenceResult",
    "ONBOARDING_COMPLETE_KEY",
    "LocalStorage",
    "LocalStorageError",
    "preferences_key",
    "MergeResult",
    "PreferenceOverride",
    "PreferenceSource",
    "RequestDefaults",
    "TrackedPreference",
    "TripPreferenceMetadata",
    "build_metadata",
    "merge_into_request",
    "merge_preferences",
    "normalize_partial",
    "normalize_preferences",
    "PreferenceStore",
    "PreferenceStoreError",
    "RemotePreferenceStore",
    "SQLPreferenceStore",
    "UserPreferences",
]
