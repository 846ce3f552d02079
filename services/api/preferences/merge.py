"""
Preference merge & provenance tracking.

Stage 1 — merge_preferences(profile, overrides, enabled):
  effective = profile with every override field laid over it.
  For each tracked field whose effective value is non-empty, record a
  TrackedPreference with source 'override' if the field was overridden,
  else 'profile'. Empty fields are left out of tracking entirely.
  Disabled (or no profile) -> effective None, tracking {}.

Stage 2 — merge_into_request(request, effective, tracking):
  Copies effective preferences into a trip-generation request where the
  request does not already say otherwise, then fills whatever tracked
  request field is still empty from the request-time defaults and tracks
  it with source 'default'.

The two stages are independent: a field missing from stage-1 tracking is
"untracked", not "default". Both stages are pure; calling them twice with
the same inputs gives the same result apart from applied_at timestamps.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator, Mapping

from services.api.preferences.normalize import (
    apply_partial,
    canonical_field,
    canonical_keys,
    normalize_partial,
)
from services.api.preferences.types import UPDATABLE_FIELDS, UserPreferences

logger = logging.getLogger(__name__)

# tracking key -> UserPreferences attribute
TRACKED_FIELDS: dict[str, str] = {
    "budget": "budget",
    "budget_type": "budget_type",
    "dietary_restrictions": "dietary_restrictions",
    "accommodation_style": "accommodation_style",
    "accessibility_needs": "accessibility_needs",
    "travel_pace": "pace_preference",
    "cuisine_preferences": "preferred_cuisines",
}

# Cuisines below this confidence are not forwarded into generation requests
_CUISINE_CONFIDENCE_FLOOR = 0.5


class PreferenceSource(str, Enum):
    PROFILE = "profile"
    OVERRIDE = "override"
    DEFAULT = "default"


@dataclass
class TrackedPreference:
    value: Any
    source: PreferenceSource
    applied_at: str

    def to_dict(self) -> dict[str, Any]:
        value = self.value
        if isinstance(value, list):
            value = [v.to_dict() if hasattr(v, "to_dict") else v for v in value]
        return {"value": value, "source": self.source.value, "appliedAt": self.applied_at}


PreferenceTracking = dict[str, TrackedPreference]


def tracking_to_dict(tracking: PreferenceTracking) -> dict[str, Any]:
    """JSON form of a tracking map; field keys are camelCased like the rest of the payload."""
    return {_camel(key): tracked.to_dict() for key, tracked in tracking.items()}


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.title() for part in rest)


def track_preference(value: Any, source: PreferenceSource, now: str | None = None) -> TrackedPreference:
    return TrackedPreference(
        value=value,
        source=source,
        applied_at=now or datetime.now(timezone.utc).isoformat(),
    )


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict, set)):
        return len(value) == 0
    if isinstance(value, bool):
        return not value
    if isinstance(value, (int, float)):
        return value == 0
    return False


# ---------------------------------------------------------------------------
# Overrides
# ---------------------------------------------------------------------------

class PreferenceOverride:
    """
    Session-scoped partial preferences, edited one field at a time.

    Created empty, never persisted as such. Setting a field to None
    removes the override so the profile value shows through again.
    """

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = {}
        for key, value in canonical_keys(values or {}).items():
            self.set(key, value)

    def set(self, field_name: str, value: Any) -> None:
        key = canonical_field(field_name)
        if key not in UPDATABLE_FIELDS:
            logger.debug("override: ignoring unknown field %r", field_name)
            return
        if value is None:
            self._values.pop(key, None)
        else:
            self._values[key] = value

    def unset(self, field_name: str) -> None:
        self._values.pop(canonical_field(field_name), None)

    def clear(self) -> None:
        self._values.clear()

    def normalized(self) -> dict[str, Any]:
        return normalize_partial(self._values)

    def __contains__(self, field_name: object) -> bool:
        return isinstance(field_name, str) and canonical_field(field_name) in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)


# ---------------------------------------------------------------------------
# Stage 1
# ---------------------------------------------------------------------------

@dataclass
class MergeResult:
    effective: UserPreferences | None
    tracking: PreferenceTracking = field(default_factory=dict)


def merge_preferences(
    profile: UserPreferences | None,
    overrides: PreferenceOverride | Mapping[str, Any] | None,
    enabled: bool = True,
    now: str | None = None,
) -> MergeResult:
    if not enabled or profile is None:
        return MergeResult(effective=None, tracking={})

    if not isinstance(overrides, PreferenceOverride):
        overrides = PreferenceOverride(overrides)

    override_values = overrides.normalized()
    effective = apply_partial(profile, override_values)
    applied_at = now or datetime.now(timezone.utc).isoformat()

    tracking: PreferenceTracking = {}
    for key, attr in TRACKED_FIELDS.items():
        value = getattr(effective, attr)
        if _is_empty(value):
            continue
        source = PreferenceSource.OVERRIDE if attr in override_values else PreferenceSource.PROFILE
        tracking[key] = track_preference(value, source, applied_at)

    return MergeResult(effective=effective, tracking=tracking)


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------

@dataclass
class TripPreferenceMetadata:
    total_preferences_applied: int
    profile_preferences: int
    overridden_preferences: int
    default_preferences: int
    tracking: PreferenceTracking

    def summary(self) -> str:
        parts: list[str] = []
        if self.profile_preferences > 0:
            parts.append(f"{self.profile_preferences} from profile")
        if self.overridden_preferences > 0:
            parts.append(f"{self.overridden_preferences} customized")
        if self.default_preferences > 0:
            parts.append(f"{self.default_preferences} defaults")
        return ", ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalPreferencesApplied": self.total_preferences_applied,
            "profilePreferences": self.profile_preferences,
            "overriddenPreferences": self.overridden_preferences,
            "defaultPreferences": self.default_preferences,
            "tracking": tracking_to_dict(self.tracking),
            "summary": self.summary(),
        }


def build_metadata(tracking: PreferenceTracking) -> TripPreferenceMetadata:
    counts = {source: 0 for source in PreferenceSource}
    for tracked in tracking.values():
        counts[tracked.source] += 1
    return TripPreferenceMetadata(
        total_preferences_applied=sum(counts.values()),
        profile_preferences=counts[PreferenceSource.PROFILE],
        overridden_preferences=counts[PreferenceSource.OVERRIDE],
        default_preferences=counts[PreferenceSource.DEFAULT],
        tracking=dict(tracking),
    )


# ---------------------------------------------------------------------------
# Stage 2
# ---------------------------------------------------------------------------

@dataclass
class RequestDefaults:
    budget: float = 200
    budget_type: str = "mid_range"
    pace: str = "moderate"


# request key -> (tracking key, RequestDefaults attribute)
_DEFAULTED_REQUEST_FIELDS: dict[str, tuple[str, str]] = {
    "budget": ("budget", "budget"),
    "budget_type": ("budget_type", "budget_type"),
    "pace": ("travel_pace", "pace"),
}


def merge_into_request(
    request: Mapping[str, Any],
    effective: UserPreferences | None,
    tracking: PreferenceTracking | None = None,
    defaults: RequestDefaults | None = None,
    now: str | None = None,
) -> tuple[dict[str, Any], TripPreferenceMetadata]:
    """
    Lay effective preferences into a generation request, then default the rest.

    Values already present on the request always win. Returns the merged
    request and the metadata over stage-1 tracking plus default entries.
    """
    merged = dict(request)
    tracked: PreferenceTracking = dict(tracking or {})
    defaults = defaults or RequestDefaults()
    applied_at = now or datetime.now(timezone.utc).isoformat()

    if effective is not None:
        if effective.dietary_restrictions and not merged.get("dietary_restrictions"):
            merged["dietary_restrictions"] = list(effective.dietary_restrictions)
        if effective.accessibility_needs and not merged.get("accessibility_needs"):
            merged["accessibility_needs"] = effective.accessibility_needs
        if effective.pace_preference and not merged.get("pace"):
            merged["pace"] = effective.pace_preference
        if effective.budget and not merged.get("budget"):
            merged["budget"] = effective.budget
        if effective.budget_type and not merged.get("budget_type"):
            merged["budget_type"] = effective.budget_type
        if effective.travel_style:
            existing = list(merged.get("preferences") or [])
            merged["preferences"] = existing + [
                style for style in effective.travel_style if style not in existing
            ]
        if effective.budget_range.min or effective.budget_range.max:
            merged["budget_context"] = effective.budget_range.to_dict()
        if effective.preferred_cuisines:
            merged["cuisine_preferences"] = [
                c.cuisine
                for c in effective.preferred_cuisines
                if c.confidence > _CUISINE_CONFIDENCE_FLOOR
            ]
        if effective.accommodation_style and not merged.get("accommodation_style"):
            merged["accommodation_style"] = effective.accommodation_styles()

    for request_key, (tracking_key, default_attr) in _DEFAULTED_REQUEST_FIELDS.items():
        if not _is_empty(merged.get(request_key)):
            continue
        value = getattr(defaults, default_attr)
        merged[request_key] = value
        tracked[tracking_key] = track_preference(value, PreferenceSource.DEFAULT, applied_at)

    logger.debug(
        "merge_into_request: fields=%d defaulted=%d",
        len(merged),
        sum(1 for t in tracked.values() if t.source is PreferenceSource.DEFAULT),
    )
    return merged, build_metadata(tracked)
