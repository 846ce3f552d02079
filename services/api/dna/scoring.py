"""
Travel DNA scoring — six 0-100 dimensions derived from raw preference
signals, the archetype they classify into, and profile completeness.

Everything here is pure: no I/O, no clock reads except in update_dna().
Inputs may be a UserPreferences or any raw mapping (camelCase, legacy
names and loose shapes are normalized first). A raw mapping is read
as-is, so fields it omits count as unset rather than as stored defaults.

Dimensions:
  adventure   25 per adventure activity (capped at 100), +30 packed / +15 moderate
  culture     20 per culture activity (capped at 100), +40 'cultural' style,
              +5 per frequent destination (capped at 30)
  luxury      budget tier base, +20 for resort or hotel stays
  social      60 'group' style, +40 'social' style, +30 hostel; 0 -> 30
  relaxation  pace base, +20 for resort stays; 0 -> 40
  culinary    30 + 15 per cuisine (capped at 100), +20 with dietary
              restrictions; 0 -> 30
Each dimension is clamped to [0, 100] after combining.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Union

from services.api.dna.archetypes import TravelArchetype, get_definition
from services.api.preferences.normalize import normalize_partial
from services.api.preferences.types import UserPreferences

logger = logging.getLogger(__name__)

PreferenceInput = Union[UserPreferences, Mapping[str, Any]]

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Fixed order; ties in the ranking keep this order.
DIMENSIONS: tuple[str, ...] = ("adventure", "culture", "luxury", "social", "relaxation", "culinary")

_ADVENTURE_KEYWORDS = ("hiking", "sports", "outdoor", "extreme")
_CULTURE_KEYWORDS = ("museum", "art", "history", "tour", "local")

_LUXURY_BY_BUDGET: dict[str, int] = {
    "shoestring": 10,
    "mid_range": 40,
    "luxury": 70,
    "ultra_luxury": 90,
}

_RELAXATION_BY_PACE: dict[str, int] = {
    "relaxed": 80,
    "moderate": 50,
    "packed": 20,
}

_COMPLETENESS_WEIGHTS: tuple[tuple[str, int], ...] = (
    ("budget_type", 15),
    ("accommodation_style", 15),
    ("pace_preference", 10),
    ("preferred_cuisines", 10),
    ("frequent_destinations", 10),
    ("dietary_restrictions", 5),
    ("travel_style", 10),
    ("activity_types", 10),
    ("quiz_completed", 15),
)

_BUDGET_LABELS: dict[str, str] = {
    "shoestring": "Shoestring",
    "mid_range": "Mid-range",
    "luxury": "Luxury",
    "ultra_luxury": "Ultra-luxury",
}

_PACE_LABELS: dict[str, str] = {
    "relaxed": "Relaxed",
    "moderate": "Moderate",
    "packed": "Fast-paced",
}

_DIMENSION_COLORS: dict[str, str] = {
    "adventure": "green",
    "culture": "purple",
    "luxury": "pink",
    "social": "blue",
    "relaxation": "cyan",
    "culinary": "orange",
}

_NOT_SET = "Not set"

_SIGNAL_FIELDS = (
    "activity_types",
    "pace_preference",
    "travel_style",
    "frequent_destinations",
    "budget_type",
    "accommodation_style",
    "preferred_cuisines",
    "dietary_restrictions",
    "quiz_completed",
    "total_trips_analyzed",
)


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DNAScores:
    adventure: int = 0
    culture: int = 0
    luxury: int = 0
    social: int = 0
    relaxation: int = 0
    culinary: int = 0

    def to_dict(self) -> dict[str, int]:
        return {dim: getattr(self, dim) for dim in DIMENSIONS}

    def ranked(self) -> list[tuple[str, int]]:
        """Dimensions by score, highest first. Stable on ties."""
        return sorted(self.to_dict().items(), key=lambda item: item[1], reverse=True)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DNAScores":
        values: dict[str, int] = {}
        for dim in DIMENSIONS:
            try:
                values[dim] = _clamp(int(data.get(dim) or 0))
            except (TypeError, ValueError):
                values[dim] = 0
        return cls(**values)


@dataclass
class TravelStats:
    trips_analyzed: int
    destinations_visited: int
    cuisines_tried: int
    preferred_budget: str
    travel_pace: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "tripsAnalyzed": self.trips_analyzed,
            "destinationsVisited": self.destinations_visited,
            "cuisinesTried": self.cuisines_tried,
            "preferredBudget": self.preferred_budget,
            "travelPace": self.travel_pace,
        }


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _clamp(value: float) -> int:
    return int(max(0, min(100, value)))


def _signals(preferences: PreferenceInput) -> dict[str, Any]:
    """Flat view of the fields scoring reads. Missing collections are []."""
    if isinstance(preferences, UserPreferences):
        view = {name: getattr(preferences, name) for name in _SIGNAL_FIELDS}
    else:
        partial = normalize_partial(preferences)
        view = {name: partial.get(name) for name in _SIGNAL_FIELDS}
    for name in ("activity_types", "travel_style", "frequent_destinations",
                 "accommodation_style", "preferred_cuisines", "dietary_restrictions"):
        view[name] = view[name] or []
    return view


def _matching_activities(activities: list[Any], keywords: tuple[str, ...]) -> int:
    return sum(
        1
        for activity in activities
        if any(keyword in activity.type.lower() for keyword in keywords)
    )


def _has_style(accommodations: list[Any], *styles: str) -> bool:
    return any(a.style in styles for a in accommodations)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def compute_scores(preferences: PreferenceInput) -> DNAScores:
    s = _signals(preferences)
    pace = s["pace_preference"]
    travel_style = s["travel_style"]
    accommodations = s["accommodation_style"]

    adventure = min(100, _matching_activities(s["activity_types"], _ADVENTURE_KEYWORDS) * 25)
    if pace == "packed":
        adventure += 30
    elif pace == "moderate":
        adventure += 15

    culture = min(100, _matching_activities(s["activity_types"], _CULTURE_KEYWORDS) * 20)
    if "cultural" in travel_style:
        culture += 40
    culture += min(30, len(s["frequent_destinations"]) * 5)

    luxury = _LUXURY_BY_BUDGET.get(s["budget_type"] or "", 0)
    if _has_style(accommodations, "resort", "hotel"):
        luxury += 20

    social = 0
    if "group" in travel_style:
        social = 60
    if "social" in travel_style:
        social += 40
    if _has_style(accommodations, "hostel"):
        social += 30
    social = social or 30

    relaxation = _RELAXATION_BY_PACE.get(pace or "", 0)
    if _has_style(accommodations, "resort"):
        relaxation += 20
    relaxation = relaxation or 40

    culinary = 0
    if s["preferred_cuisines"]:
        culinary = min(100, 30 + len(s["preferred_cuisines"]) * 15)
    if s["dietary_restrictions"]:
        culinary += 20
    culinary = culinary or 30

    return DNAScores(
        adventure=_clamp(adventure),
        culture=_clamp(culture),
        luxury=_clamp(luxury),
        social=_clamp(social),
        relaxation=_clamp(relaxation),
        culinary=_clamp(culinary),
    )


def classify_archetype(scores: DNAScores) -> TravelArchetype:
    """
    Archetype from the top two dimensions, then absolute thresholds.

    Rules are checked in order; the first match wins.
    """
    ranked = scores.ranked()
    primary, secondary = ranked[0][0], ranked[1][0]
    pair = (primary, secondary)

    if pair == ("adventure", "culture"):
        return TravelArchetype.ADVENTURE_JUNKIE
    if pair == ("culture", "culinary"):
        return TravelArchetype.CULTURE_SEEKER
    if pair == ("luxury", "relaxation"):
        return TravelArchetype.LUXURY_TRAVELER
    if primary == "relaxation" and scores.luxury < 40:
        return TravelArchetype.BEACH_LOUNGER
    if primary == "culinary":
        return TravelArchetype.FOODIE_WANDERER
    if primary == "social":
        return TravelArchetype.SOCIAL_BUTTERFLY
    if primary == "adventure" and scores.luxury < 30:
        return TravelArchetype.BUDGET_BACKPACKER
    if pair == ("culture", "social"):
        return TravelArchetype.URBAN_EXPLORER
    if pair == ("adventure", "relaxation"):
        return TravelArchetype.NATURE_LOVER

    if scores.luxury > 70:
        return TravelArchetype.LUXURY_TRAVELER
    if scores.culture > 60:
        return TravelArchetype.CULTURE_SEEKER
    if scores.adventure > 60:
        return TravelArchetype.ADVENTURE_JUNKIE

    return TravelArchetype.URBAN_EXPLORER


def compute_completeness(preferences: PreferenceInput) -> int:
    """Percent (0-100) of weighted profile fields that are filled in."""
    s = _signals(preferences)
    total = sum(weight for _, weight in _COMPLETENESS_WEIGHTS)
    completed = sum(weight for name, weight in _COMPLETENESS_WEIGHTS if s[name])
    # Round half up, not Python's banker's rounding
    return int(math.floor(completed * 100 / total + 0.5))


def travel_stats(preferences: PreferenceInput) -> TravelStats:
    s = _signals(preferences)
    budget_type = s["budget_type"]
    pace = s["pace_preference"]
    return TravelStats(
        trips_analyzed=int(s["total_trips_analyzed"] or 0),
        destinations_visited=len(s["frequent_destinations"]),
        cuisines_tried=len(s["preferred_cuisines"]),
        preferred_budget=_BUDGET_LABELS.get(budget_type, budget_type) if budget_type else _NOT_SET,
        travel_pace=_PACE_LABELS.get(pace, pace) if pace else _NOT_SET,
    )


def dna_gradient(scores: DNAScores) -> str:
    """Colour gradient from the top two dimensions, e.g. 'from-pink-500 to-cyan-500'."""
    ranked = scores.ranked()
    first = _DIMENSION_COLORS.get(ranked[0][0], "gray")
    second = _DIMENSION_COLORS.get(ranked[1][0], "gray")
    return f"from-{first}-500 to-{second}-500"


def update_dna(preferences: UserPreferences, now: str | None = None) -> UserPreferences:
    """Return a copy with DNA scores, archetype and completeness recomputed."""
    now = now or datetime.now(timezone.utc).isoformat()
    scores = compute_scores(preferences)
    archetype = classify_archetype(scores)
    updated = dataclasses.replace(
        preferences,
        dna_scores=scores.to_dict(),
        travel_archetype=archetype.value,
        dna_completeness=compute_completeness(preferences),
        dna_updated_at=now,
        dna_created_at=preferences.dna_created_at or now,
    )
    logger.debug(
        "update_dna: user=%s archetype=%s completeness=%s",
        preferences.user_id,
        archetype.value,
        updated.dna_completeness,
    )
    return updated


def build_profile(preferences: PreferenceInput) -> dict[str, Any]:
    """Everything the Travel DNA view needs, computed from one preference set."""
    scores = compute_scores(preferences)
    archetype = classify_archetype(scores)
    return {
        "scores": scores.to_dict(),
        "archetype": archetype.value,
        "definition": get_definition(archetype).to_dict(),
        "completeness": compute_completeness(preferences),
        "stats": travel_stats(preferences).to_dict(),
        "gradient": dna_gradient(scores),
    }
