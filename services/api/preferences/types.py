"""
UserPreferences and its component dataclasses.

These are the canonical shapes for every preference read in the service.
Raw records (remote rows, local snapshots, request bodies) never reach the
merge or scoring code directly; they go through normalize.py first, which
is the only place that knows about legacy field names and loose shapes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

BUDGET_TYPES: tuple[str, ...] = ("shoestring", "mid_range", "luxury", "ultra_luxury")
PACE_PREFERENCES: tuple[str, ...] = ("relaxed", "moderate", "packed")

DEFAULT_CURRENCY = "USD"
DEFAULT_BUDGET = 200
DEFAULT_BUDGET_TYPE = "mid_range"
DEFAULT_DATA_RETENTION_DAYS = 730
CALCULATION_VERSION = "v1.0"


@dataclass
class BudgetRange:
    min: float | None = None
    max: float | None = None
    typical: float | None = None
    currency: str = DEFAULT_CURRENCY
    confidence: float = 0.0
    """0.0 - 1.0"""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "min": self.min,
            "max": self.max,
            "currency": self.currency,
            "confidence": self.confidence,
        }
        if self.typical is not None:
            data["typical"] = self.typical
        return data


@dataclass
class CuisinePreference:
    cuisine: str
    confidence: float = 0.0
    sample_size: int = 0
    last_seen: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "cuisine": self.cuisine,
            "confidence": self.confidence,
            "sample_size": self.sample_size,
        }
        if self.last_seen is not None:
            data["last_seen"] = self.last_seen
        return data


@dataclass
class ActivityPreference:
    type: str
    confidence: float = 0.0
    recency_weight: float = 0.0
    count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "confidence": self.confidence,
            "recency_weight": self.recency_weight,
            "count": self.count,
        }


@dataclass
class AccommodationPreference:
    style: str
    """Free-form tag: hotel, airbnb, hostel, resort, ..."""
    confidence: float = 0.0
    last_seen: str | None = None
    count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "style": self.style,
            "confidence": self.confidence,
            "last_seen": self.last_seen,
            "count": self.count,
        }


@dataclass
class FrequentDestination:
    city: str
    country: str | None = None
    count: int = 0
    last_visit: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "city": self.city,
            "count": self.count,
            "last_visit": self.last_visit,
        }
        if self.country is not None:
            data["country"] = self.country
        return data


@dataclass
class UserPreferences:
    """
    A user's cross-trip preference record.

    Collections are always lists/dicts, never None. Confidence values are
    always within [0, 1]. Both invariants are established by normalize.py.
    """

    user_id: str
    id: str = ""

    # Budget
    budget_range: BudgetRange = field(default_factory=BudgetRange)
    budget: float | None = DEFAULT_BUDGET
    budget_type: str | None = DEFAULT_BUDGET_TYPE

    # Inferred
    preferred_cuisines: list[CuisinePreference] = field(default_factory=list)
    activity_types: list[ActivityPreference] = field(default_factory=list)
    accommodation_style: list[AccommodationPreference] = field(default_factory=list)
    travel_style: list[str] = field(default_factory=list)
    pace_preference: str | None = None

    # Statistics
    avg_trip_duration: float | None = None
    frequent_destinations: list[FrequentDestination] = field(default_factory=list)
    seasonal_patterns: dict[str, Any] = field(default_factory=dict)

    # Explicit, user-set
    dietary_restrictions: list[str] = field(default_factory=list)
    accessibility_needs: str | None = None
    preferred_chains: dict[str, list[str]] = field(default_factory=dict)
    avoided_chains: dict[str, list[str]] = field(default_factory=dict)

    # Travel DNA
    travel_archetype: str | None = None
    dna_scores: dict[str, int] | None = None
    dna_completeness: int | None = None
    dna_created_at: str | None = None
    dna_updated_at: str | None = None
    quiz_completed: bool = False
    total_trips_analyzed: int = 0

    # Privacy
    learning_enabled: bool = True
    data_retention_days: int = DEFAULT_DATA_RETENTION_DAYS

    # Metadata
    last_calculated_at: str | None = None
    calculation_version: str = CALCULATION_VERSION
    created_at: str | None = None
    updated_at: str | None = None

    def accommodation_styles(self) -> list[str]:
        return [a.style for a in self.accommodation_style]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "budget_range": self.budget_range.to_dict(),
            "budget": self.budget,
            "budget_type": self.budget_type,
            "preferred_cuisines": [c.to_dict() for c in self.preferred_cuisines],
            "activity_types": [a.to_dict() for a in self.activity_types],
            "accommodation_style": [a.to_dict() for a in self.accommodation_style],
            "travel_style": list(self.travel_style),
            "pace_preference": self.pace_preference,
            "avg_trip_duration": self.avg_trip_duration,
            "frequent_destinations": [d.to_dict() for d in self.frequent_destinations],
            "seasonal_patterns": dict(self.seasonal_patterns),
            "dietary_restrictions": list(self.dietary_restrictions),
            "accessibility_needs": self.accessibility_needs,
            "preferred_chains": dict(self.preferred_chains),
            "avoided_chains": dict(self.avoided_chains),
            "travel_archetype": self.travel_archetype,
            "dna_scores": dict(self.dna_scores) if self.dna_scores is not None else None,
            "dna_completeness": self.dna_completeness,
            "dna_created_at": self.dna_created_at,
            "dna_updated_at": self.dna_updated_at,
            "quiz_completed": self.quiz_completed,
            "total_trips_analyzed": self.total_trips_analyzed,
            "learning_enabled": self.learning_enabled,
            "data_retention_days": self.data_retention_days,
            "last_calculated_at": self.last_calculated_at,
            "calculation_version": self.calculation_version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


# Field names a partial update may carry. Identity and audit fields are
# owned by the store and never accepted from callers.
UPDATABLE_FIELDS: frozenset[str] = frozenset(
    name
    for name in UserPreferences.__dataclass_fields__
    if name not in ("id", "user_id", "created_at", "updated_at")
)
