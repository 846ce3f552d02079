"""
Preference normalization — one canonical shape at every storage boundary.

Stored and submitted preference data arrives in several shapes:
  - camelCase keys from the web client, snake_case from the database
  - legacy field names (accommodation_type, pace, pace_type, ...)
  - accommodation entries as bare strings, a single non-list value,
    double-encoded JSON strings, or structured objects
  - cuisines / activities / destinations as bare strings
  - null collections

Everything here converts those variants into the dataclasses in types.py.
Nothing raises on malformed input: bad entries are dropped and logged at
debug level, confidences are clamped into [0, 1], and absent collections
become empty lists.

The reverse direction (to_wire_record) renders the remote store's row
format, where accommodation_style is a plain TEXT[] named accommodation_type.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import re
from typing import Any, Mapping

from services.api.preferences.types import (
    BUDGET_TYPES,
    PACE_PREFERENCES,
    UPDATABLE_FIELDS,
    AccommodationPreference,
    ActivityPreference,
    BudgetRange,
    CuisinePreference,
    FrequentDestination,
    UserPreferences,
)

logger = logging.getLogger(__name__)

# Old name -> canonical name. The canonical key wins when both are present.
_LEGACY_FIELDS: dict[str, str] = {
    "accommodation_type": "accommodation_style",
    "pace": "pace_preference",
    "pace_type": "pace_preference",
    "travel_pace": "pace_preference",
    "cuisine_preferences": "preferred_cuisines",
}

_LIST_FIELDS = frozenset({
    "preferred_cuisines",
    "activity_types",
    "accommodation_style",
    "travel_style",
    "frequent_destinations",
    "dietary_restrictions",
})

_DICT_FIELDS = frozenset({"seasonal_patterns", "preferred_chains", "avoided_chains"})

_DNA_DIMENSIONS = ("adventure", "culture", "luxury", "social", "relaxation", "culinary")

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


# ---------------------------------------------------------------------------
# Key handling
# ---------------------------------------------------------------------------

def _snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"_\1", key).lower()


def canonical_field(name: str) -> str:
    """Canonical field name for any accepted spelling (camelCase or legacy)."""
    key = _snake(name)
    return _LEGACY_FIELDS.get(key, key)


def canonical_keys(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Snake-case every key and fold legacy field names into canonical ones."""
    snaked = {_snake(str(k)): v for k, v in raw.items()}
    result: dict[str, Any] = {}
    legacy: dict[str, Any] = {}
    for key, value in snaked.items():
        target = _LEGACY_FIELDS.get(key)
        if target is None:
            result[key] = value
        elif value is not None:
            legacy.setdefault(target, value)
    for target, value in legacy.items():
        if result.get(target) is None:
            logger.debug("normalize: legacy field mapped onto %s", target)
            result[target] = value
    return result


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------

def clamp_confidence(value: Any) -> float:
    try:
        conf = float(value)
    except (TypeError, ValueError):
        return 0.0
    if conf != conf:  # NaN
        return 0.0
    return max(0.0, min(1.0, conf))


def _number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _int(value: Any, default: int = 0) -> int:
    num = _number(value)
    return int(num) if num is not None else default


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _enum_value(value: Any, allowed: tuple[str, ...], field_name: str) -> str | None:
    if value is None:
        return None
    text = str(value).strip().lower()
    if text in allowed:
        return text
    logger.debug("normalize: dropping unknown %s=%r", field_name, value)
    return None


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def _string_list(value: Any) -> list[str]:
    items: list[str] = []
    for item in _as_list(value):
        text = _str_or_none(item)
        if text is not None:
            items.append(text)
    return items


# ---------------------------------------------------------------------------
# Structured collections
# ---------------------------------------------------------------------------

def _decode_if_json(value: Any) -> Any:
    """Undo double encoding: '{"style": "hotel"}' -> {'style': 'hotel'}."""
    if isinstance(value, str) and value.lstrip().startswith("{"):
        try:
            return json.loads(value)
        except (json.JSONDecodeError, ValueError):
            return value
    return value


def normalize_accommodation(value: Any) -> list[AccommodationPreference]:
    result: list[AccommodationPreference] = []
    seen: set[str] = set()
    for item in _as_list(value):
        item = _decode_if_json(item)
        if isinstance(item, AccommodationPreference):
            entry = dataclasses.replace(item, confidence=clamp_confidence(item.confidence))
        elif isinstance(item, str):
            style = item.strip()
            if not style:
                continue
            entry = AccommodationPreference(style=style, confidence=1.0, count=1)
        elif isinstance(item, Mapping) and item.get("style"):
            data = canonical_keys(item)
            style = _decode_if_json(data["style"])
            if isinstance(style, Mapping):
                style = style.get("style")
            style = _str_or_none(style)
            if style is None:
                continue
            entry = AccommodationPreference(
                style=style,
                confidence=clamp_confidence(data.get("confidence", 1.0)),
                last_seen=_str_or_none(data.get("last_seen")),
                count=_int(data.get("count"), default=1),
            )
        else:
            logger.debug("normalize: dropping accommodation entry %r", item)
            continue
        if entry.style in seen:
            continue
        seen.add(entry.style)
        result.append(entry)
    return result


def normalize_cuisines(value: Any) -> list[CuisinePreference]:
    result: list[CuisinePreference] = []
    for item in _as_list(value):
        if isinstance(item, CuisinePreference):
            result.append(dataclasses.replace(item, confidence=clamp_confidence(item.confidence)))
        elif isinstance(item, str) and item.strip():
            result.append(CuisinePreference(cuisine=item.strip(), confidence=1.0, sample_size=1))
        elif isinstance(item, Mapping) and item.get("cuisine"):
            data = canonical_keys(item)
            result.append(CuisinePreference(
                cuisine=str(data["cuisine"]),
                confidence=clamp_confidence(data.get("confidence")),
                sample_size=_int(data.get("sample_size")),
                last_seen=_str_or_none(data.get("last_seen")),
            ))
        else:
            logger.debug("normalize: dropping cuisine entry %r", item)
    return result


def normalize_activities(value: Any) -> list[ActivityPreference]:
    result: list[ActivityPreference] = []
    for item in _as_list(value):
        if isinstance(item, ActivityPreference):
            result.append(dataclasses.replace(item, confidence=clamp_confidence(item.confidence)))
        elif isinstance(item, str) and item.strip():
            result.append(ActivityPreference(type=item.strip(), confidence=1.0, count=1))
        elif isinstance(item, Mapping) and item.get("type"):
            data = canonical_keys(item)
            result.append(ActivityPreference(
                type=str(data["type"]),
                confidence=clamp_confidence(data.get("confidence")),
                recency_weight=_number(data.get("recency_weight")) or 0.0,
                count=_int(data.get("count")),
            ))
        else:
            logger.debug("normalize: dropping activity entry %r", item)
    return result


def normalize_destinations(value: Any) -> list[FrequentDestination]:
    result: list[FrequentDestination] = []
    for item in _as_list(value):
        if isinstance(item, FrequentDestination):
            result.append(item)
        elif isinstance(item, str) and item.strip():
            result.append(FrequentDestination(city=item.strip(), count=1))
        elif isinstance(item, Mapping) and item.get("city"):
            data = canonical_keys(item)
            result.append(FrequentDestination(
                city=str(data["city"]),
                country=_str_or_none(data.get("country")),
                count=_int(data.get("count")),
                last_visit=_str_or_none(data.get("last_visit")),
            ))
        else:
            logger.debug("normalize: dropping destination entry %r", item)
    return result


def _budget_range_fields(value: Any) -> dict[str, Any]:
    """Partial BudgetRange fields present in value (merged onto the existing range)."""
    if isinstance(value, BudgetRange):
        value = value.to_dict()
    if not isinstance(value, Mapping):
        return {}
    data = canonical_keys(value)
    fields: dict[str, Any] = {}
    for key in ("min", "max", "typical"):
        if key in data:
            fields[key] = _number(data[key])
    if data.get("currency"):
        fields["currency"] = str(data["currency"]).upper()
    if "confidence" in data:
        fields["confidence"] = clamp_confidence(data["confidence"])
    return fields


def _dna_scores(value: Any) -> dict[str, int] | None:
    if not isinstance(value, Mapping):
        return None
    scores: dict[str, int] = {}
    for dim in _DNA_DIMENSIONS:
        num = _number(value.get(dim))
        scores[dim] = max(0, min(100, int(num))) if num is not None else 0
    return scores


_FIELD_NORMALIZERS = {
    "preferred_cuisines": normalize_cuisines,
    "activity_types": normalize_activities,
    "accommodation_style": normalize_accommodation,
    "frequent_destinations": normalize_destinations,
    "travel_style": _string_list,
    "dietary_restrictions": _string_list,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def normalize_partial(raw: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Normalize a partial update into canonical field -> typed value.

    Only fields present in raw (after legacy renaming) appear in the result.
    Unknown keys, identity fields and audit timestamps are dropped.
    ``budget_range`` is returned as a dict of the sub-fields that were given,
    so apply_partial() can merge it onto the existing range.
    """
    if not raw:
        return {}
    data = canonical_keys(raw)
    partial: dict[str, Any] = {}
    for key, value in data.items():
        if key not in UPDATABLE_FIELDS:
            continue
        if key in _FIELD_NORMALIZERS:
            partial[key] = _FIELD_NORMALIZERS[key](value)
        elif key in _DICT_FIELDS:
            partial[key] = dict(value) if isinstance(value, Mapping) else {}
        elif key == "budget_range":
            partial[key] = _budget_range_fields(value)
        elif key == "budget_type":
            partial[key] = _enum_value(value, BUDGET_TYPES, key)
        elif key == "pace_preference":
            partial[key] = _enum_value(value, PACE_PREFERENCES, key)
        elif key in ("budget", "avg_trip_duration"):
            partial[key] = _number(value)
        elif key == "dna_scores":
            partial[key] = _dna_scores(value)
        elif key in ("dna_completeness", "total_trips_analyzed", "data_retention_days"):
            partial[key] = _int(value)
        elif key in ("quiz_completed", "learning_enabled"):
            partial[key] = bool(value)
        else:
            partial[key] = _str_or_none(value)
    return partial


def apply_partial(prefs: UserPreferences, partial: Mapping[str, Any]) -> UserPreferences:
    """Return a copy of prefs with an already-normalized partial laid over it."""
    changes = dict(partial)
    if "budget_range" in changes:
        changes["budget_range"] = dataclasses.replace(prefs.budget_range, **changes["budget_range"])
    for key in _LIST_FIELDS:
        if key in changes and changes[key] is None:
            changes[key] = []
    return dataclasses.replace(prefs, **changes)


def normalize_preferences(raw: Mapping[str, Any], user_id: str | None = None) -> UserPreferences:
    """Build a full UserPreferences from any supported raw shape, defaults filling gaps."""
    data = canonical_keys(raw)
    resolved_user = user_id or _str_or_none(data.get("user_id")) or ""
    base = UserPreferences(
        user_id=resolved_user,
        id=_str_or_none(data.get("id")) or "",
        created_at=_str_or_none(data.get("created_at")),
        updated_at=_str_or_none(data.get("updated_at")),
    )
    return apply_partial(base, normalize_partial(data))


def to_wire_record(prefs: UserPreferences) -> dict[str, Any]:
    """Render the remote store's row shape (accommodation_type: list[str])."""
    record = prefs.to_dict()
    record.pop("accommodation_style", None)
    record["accommodation_type"] = prefs.accommodation_styles()
    return record


def changed_fields(prefs: UserPreferences, partial: Mapping[str, Any]) -> dict[str, Any]:
    """Remote column values for the fields a partial touched, read from the merged record."""
    wire: dict[str, Any] = {}
    for key in partial:
        value = getattr(prefs, key)
        if key == "accommodation_style":
            wire["accommodation_type"] = [a.style for a in value]
        elif hasattr(value, "to_dict"):
            wire[key] = value.to_dict()
        elif isinstance(value, list):
            wire[key] = [v.to_dict() if hasattr(v, "to_dict") else v for v in value]
        else:
            wire[key] = value
    return wire
